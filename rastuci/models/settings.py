# rastuci/models/settings.py
from typing import Optional
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from rastuci.db import Base

__all__ = ["StoreSettings", "ContactSettings", "SETTINGS_ROW_ID"]

# Both tables hold a single row
SETTINGS_ROW_ID = 1


class StoreSettings(Base):
    __tablename__ = "store_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=SETTINGS_ROW_ID)
    name: Mapped[str] = mapped_column(String(120))
    admin_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sales_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    support_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sender_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    # Origin address for shipments
    address_street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address_city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    address_province_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    address_postal_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    free_shipping: Mapped[bool] = mapped_column(Boolean, default=False)
    free_shipping_min_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=5)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ContactSettings(Base):
    __tablename__ = "contact_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=SETTINGS_ROW_ID)
    emails: Mapped[list] = mapped_column(JSON, default=list)
    phones: Mapped[list] = mapped_column(JSON, default=list)
    whatsapp: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    instagram: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    facebook: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    hours: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
