from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import and_, or_
from sqlalchemy.orm import Query as OrmQuery, Session, selectinload

from rastuci.db import get_db
from rastuci.models.order import Order
from rastuci.notify.email_notify import notifier
from rastuci.schemas import StatusChangeIn
from rastuci.services.documents import XLSX_MEDIA_TYPE, content_disposition_utf8, orders_xlsx
from rastuci.services.orders import change_status, order_to_dict
from rastuci.services.shipments import create_ca_shipment
from rastuci.utils.enums import OrderStatus
from rastuci.utils.logs import get_logger
from rastuci.utils.responses import ApiError, ok

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin/orders", tags=["admin-orders"])


def _parse_date(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    s = s.strip()
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            pass
    raise ApiError(400, "Fecha inválida: {0}".format(s))


def _filtered(db: Session, q: Optional[str], status: Optional[str],
              date_from: Optional[str], date_to: Optional[str]) -> OrmQuery:
    query = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc())

    if q:
        like = "%%%s%%" % q.strip()
        conds = [
            Order.customer_name.ilike(like),
            Order.customer_email.ilike(like),
            Order.customer_phone.ilike(like),
            Order.tracking_number.ilike(like),
        ]
        if q.strip().isdigit():
            conds.append(Order.id == int(q.strip()))
        query = query.filter(or_(*conds))

    if status:
        if status not in {s.value for s in OrderStatus}:
            raise ApiError(400, "Estado inválido")
        query = query.filter(Order.status == status)

    df = _parse_date(date_from)
    dt = _parse_date(date_to)
    if df and dt:
        dt_end = datetime(dt.year, dt.month, dt.day, 23, 59, 59)
        query = query.filter(and_(Order.created_at >= df, Order.created_at <= dt_end))
    elif df:
        query = query.filter(Order.created_at >= df)
    elif dt:
        dt_end = datetime(dt.year, dt.month, dt.day, 23, 59, 59)
        query = query.filter(Order.created_at <= dt_end)
    return query


def _get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise ApiError(404, "Pedido no encontrado")
    return order


def _user(request: Request) -> str:
    return request.session.get("username") or "admin"


@router.get("")
def list_orders(
    q: Optional[str] = Query(None, description="nombre, email, teléfono, tracking o número"),
    status: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = _filtered(db, q, status, date_from, date_to)
    total = query.count()
    rows = query.options(selectinload(Order.items)).offset((page - 1) * limit).limit(limit).all()
    return ok({
        "items": [order_to_dict(o, with_items=False) for o in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if total else 0,
    })


@router.get("/export.xlsx")
def export_orders(
    q: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    orders = _filtered(db, q, status, date_from, date_to).options(selectinload(Order.items)).all()
    bio = orders_xlsx(orders)
    date_str = datetime.now().strftime("%Y-%m-%d")
    headers = {"Content-Disposition": content_disposition_utf8(
        "Pedidos Rastuci {0}.xlsx".format(date_str), "pedidos_{0}.xlsx".format(date_str)
    )}
    return StreamingResponse(bio, media_type=XLSX_MEDIA_TYPE, headers=headers)


@router.get("/{order_id}")
def order_detail(order_id: int, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    data = order_to_dict(order, with_log=True, db=db)
    data["access_token"] = order.access_token
    return ok(data)


@router.patch("/{order_id}/mark-processed")
def mark_processed(order_id: int, request: Request, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    if order.status != OrderStatus.PENDING_PAYMENT.value:
        raise ApiError(400, "Solo se pueden procesar pedidos pagados", "INVALID_TRANSITION")
    order = change_status(db, order, OrderStatus.PROCESSED.value, _user(request))
    return ok(order_to_dict(order), "Pedido marcado como procesado")


@router.patch("/{order_id}/mark-delivered")
def mark_delivered(order_id: int, request: Request, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    if order.status != OrderStatus.PROCESSED.value:
        raise ApiError(400, "Solo se pueden entregar pedidos procesados", "INVALID_TRANSITION")
    order = change_status(db, order, OrderStatus.DELIVERED.value, _user(request))
    notifier.notify_order_delivered(order)
    return ok(order_to_dict(order), "Pedido marcado como entregado")


@router.post("/{order_id}/status")
def order_status(order_id: int, body: StatusChangeIn, request: Request, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    order = change_status(db, order, body.status.value, _user(request), body.note)
    if order.status == OrderStatus.DELIVERED.value:
        notifier.notify_order_delivered(order)
    return ok(order_to_dict(order), "Estado actualizado")


@router.post("/{order_id}/retry-ca-import")
def retry_ca_import(order_id: int, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    if order.tracking_number:
        raise ApiError(409, "El pedido ya tiene número de seguimiento")
    if order.status == OrderStatus.DELIVERED.value:
        raise ApiError(400, "El pedido ya fue entregado", "INVALID_TRANSITION")
    if not create_ca_shipment(db, order):
        db.refresh(order)
        raise ApiError(502, order.ca_import_error or "No se pudo generar el envío", "IMPORT_ERROR")
    db.refresh(order)
    return ok(order_to_dict(order), "Envío generado")
