# rastuci/models/stock_audit.py
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from rastuci.db import Base

__all__ = ["StockAudit"]


class StockAudit(Base):
    __tablename__ = "stock_audit"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, nullable=True, index=True)  # null when the product stock itself changed

    # INCREASE | DECREASE | SET
    change_type = Column(String(16), nullable=False)

    delta_units = Column(Integer, nullable=False)       # units moved, or the new value for SET
    old_stock   = Column(Integer, nullable=False)
    new_stock   = Column(Integer, nullable=False)
    note        = Column(String(500), nullable=True)    # reason, e.g. "order #12"

    user       = Column(String(64), nullable=False, default="system")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product")
