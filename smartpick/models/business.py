"""
Business model
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship

from smartpick.core.database import Base


class BusinessStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    business_type = Column(String, nullable=False, index=True)  # bakery, cafe, grocery...
    address = Column(String)
    phone = Column(String)
    status = Column(
        Enum(BusinessStatus, name="business_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BusinessStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    owner = relationship("User", back_populates="businesses")
    products = relationship("Product", back_populates="business")

    def __repr__(self):
        return f"<Business(id={self.id}, name='{self.name}', status='{self.status}')>"
