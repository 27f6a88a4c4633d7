"""
Product model

A product row is one listing of surplus food. Its quantity is the stock
ledger for reservations: decremented on reserve, restored on cancel/expiry.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Text, Numeric, DateTime, Enum, ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from smartpick.core.database import Base


class ProductStatus(str, PyEnum):
    AVAILABLE = "available"
    SOLD_OUT = "sold_out"
    EXPIRED = "expired"
    PAUSED = "paused"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),
        Index("ix_products_catalogue", "status", "expires_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)

    # Pricing
    original_price = Column(Numeric(10, 2), nullable=False)
    discounted_price = Column(Numeric(10, 2), nullable=False)

    # Inventory
    quantity = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(ProductStatus, name="product_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProductStatus.AVAILABLE,
    )

    # Media
    image_url = Column(String)

    # Pickup window (HH:MM, local to the business)
    pickup_time_start = Column(String(5), nullable=False)
    pickup_time_end = Column(String(5), nullable=False)
    available_date = Column(DateTime(timezone=True), nullable=False)

    # Absolute delisting time
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    business = relationship("Business", back_populates="products")
    reservations = relationship("Reservation", back_populates="product")

    def __repr__(self):
        return f"<Product(id={self.id}, quantity={self.quantity}, status='{self.status}')>"

    def take_stock(self, quantity: int) -> None:
        """Decrement stock for a new hold; hitting zero marks the product sold out."""
        self.quantity -= quantity
        self.status = ProductStatus.SOLD_OUT if self.quantity == 0 else ProductStatus.AVAILABLE

    def restore_stock(self, quantity: int) -> None:
        """Return held units. Only sold_out flips back; paused/expired are left alone."""
        self.quantity += quantity
        if self.status == ProductStatus.SOLD_OUT:
            self.status = ProductStatus.AVAILABLE
