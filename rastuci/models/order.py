# rastuci/models/order.py
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rastuci.db import Base
from rastuci.utils.enums import OrderStatus

__all__ = ["Order", "OrderItem"]


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Public link token (order page and PDF receipt)
    access_token: Mapped[str] = mapped_column(String(128), unique=True)

    customer_name: Mapped[str] = mapped_column(String(120))
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    customer_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Structured shipping address, preferred over customer_address when present
    shipping_street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shipping_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    shipping_floor: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    shipping_apartment: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    shipping_city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    shipping_province: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    shipping_province_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    shipping_postal_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    shipping_agency: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    shipping_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    # PENDING | PENDING_PAYMENT | PROCESSED | DELIVERED
    status: Mapped[str] = mapped_column(String(24), default=OrderStatus.PENDING.value, index=True)
    status_changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    status_note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    payment_method: Mapped[str] = mapped_column(String(24))
    mp_payment_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    mp_preference_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    mp_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    external_reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    tracking_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    ca_import_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )

    @property
    def total_items(self) -> int:
        return sum(int(i.qty) for i in self.items)


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)

    # plain ids, the row keeps a snapshot even if the product is deleted later
    product_id: Mapped[int] = mapped_column(Integer)
    variant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    product_name: Mapped[str] = mapped_column(String(255))
    size: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)

    qty: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2))

    order: Mapped["Order"] = relationship("Order", back_populates="items")
