"""
Staff account with secure password storage.
"""

from sqlalchemy import Column, Integer, String, Boolean

from getaways.db.base import Base, TimestampMixin


class Staff(Base, TimestampMixin):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, email={self.email})>"
