"""
Primary key generation.

Ids are opaque UUID strings; match rows rely on their string ordering.
"""

import uuid


def generate_id() -> str:
    return str(uuid.uuid4())
