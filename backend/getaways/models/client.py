"""
Client contact record, deduplicated by lowercased email.
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from getaways.db.base import Base, TimestampMixin


class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=False, default="")
    status = Column(String(20), nullable=False, default="Lead")
    last_contact = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, email={self.email})>"
