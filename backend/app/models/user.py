"""
User database model.

Users own trips, either as a driver offering seats or as a rider requesting them.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ids import generate_id


class User(Base):
    """
    User model.

    Minimal profile: the engine only needs a display name for match results.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    full_name = Column(String(200), nullable=False)
    phone_number = Column(String(32), unique=True, index=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, full_name='{self.full_name}')>"
