from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.catalog import Product
from rastuci.models.order import Order
from rastuci.services.orders import order_to_dict
from rastuci.services.store_settings import get_store_settings
from rastuci.utils.enums import OrderStatus
from rastuci.utils.money import money
from rastuci.utils.responses import ok

router = APIRouter(prefix="/api/admin", tags=["admin-dashboard"])

RECENT_ORDERS = 5


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
    counts = {s.value: 0 for s in OrderStatus}
    for status, n in db.query(Order.status, func.count(Order.id)).group_by(Order.status).all():
        counts[status] = n

    revenue = (
        db.query(func.coalesce(func.sum(Order.total), 0))
        .filter(Order.status != OrderStatus.PENDING.value)
        .scalar()
    )

    threshold = get_store_settings(db).low_stock_threshold
    low_stock = [
        {"id": p.id, "name": p.name, "stock": p.available_stock}
        for p in db.query(Product).filter(Product.is_active.is_(True)).order_by(Product.name.asc()).all()
        if p.available_stock <= threshold
    ]

    recent = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(RECENT_ORDERS).all()

    return ok({
        "orders_by_status": counts,
        "total_orders": sum(counts.values()),
        "revenue": float(money(Decimal(str(revenue or 0)))),
        "product_count": db.query(Product).count(),
        "low_stock_threshold": threshold,
        "low_stock": low_stock,
        "recent_orders": [order_to_dict(o, with_items=False) for o in recent],
    })
