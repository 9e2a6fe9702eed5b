"""
Trip and match enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    PENDING = "pending"  # Open for matching
    MATCHED = "matched"  # Part of an accepted match


class MatchStatus(str, enum.Enum):
    """Match status enumeration."""
    PROPOSED = "proposed"  # Found by a match search, awaiting a decision
    ACCEPTED = "accepted"  # Both trips are now MATCHED
    REJECTED = "rejected"


class InvalidationReason(str, enum.Enum):
    """Why an accepted match was unwound."""
    CANCELLED = "cancelled"  # Counterpart trip was deleted
    CHANGED = "changed"  # Counterpart trip changed pickup, drop-off or departure
