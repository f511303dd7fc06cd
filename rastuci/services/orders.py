"""Order creation and lifecycle.

Status flow: PENDING -> PENDING_PAYMENT -> PROCESSED -> DELIVERED
(cash orders may jump from PENDING straight to PROCESSED). Stock is
consumed once, the first time an order enters a paid status.
"""
import hmac
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rastuci.models.catalog import Product, Variant
from rastuci.models.order import Order, OrderItem
from rastuci.models.order_status_log import OrderStatusLog
from rastuci.models.stock_audit import StockAudit
from rastuci.utils.enums import OrderStatus, PaymentMethod, StockChange
from rastuci.utils.logs import get_logger
from rastuci.utils.money import money, to_decimal
from rastuci.utils.responses import ApiError
from rastuci.utils.tokens import make_pkey

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.PENDING_PAYMENT.value, OrderStatus.PROCESSED.value},
    OrderStatus.PENDING_PAYMENT.value: {OrderStatus.PROCESSED.value},
    OrderStatus.PROCESSED.value: {OrderStatus.DELIVERED.value},
    OrderStatus.DELIVERED.value: set(),
}

# statuses in which the order's units have left the shelf
STOCK_CONSUMED = {
    OrderStatus.PENDING_PAYMENT.value,
    OrderStatus.PROCESSED.value,
    OrderStatus.DELIVERED.value,
}

CASH_MP_STATUS = "cash_payment"


class OrderError(ApiError):
    def __init__(self, message: str, status_code: int = 400, code: str = "ORDER_ERROR"):
        super().__init__(status_code, message, code)


def map_status(mp_status: Optional[str]) -> str:
    """MercadoPago payment status -> order status."""
    if mp_status == "approved":
        return OrderStatus.PENDING_PAYMENT.value
    return OrderStatus.PENDING.value


def order_to_dict(order: Order, with_items: bool = True, with_log: bool = False, db: Session = None) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "status": order.status,
        "status_changed_at": order.status_changed_at.isoformat() if order.status_changed_at else None,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "customer_address": order.customer_address,
        "shipping_method": order.shipping_method,
        "shipping_agency": order.shipping_agency,
        "shipping_cost": float(to_decimal(order.shipping_cost)),
        "subtotal": float(to_decimal(order.subtotal)),
        "total": float(to_decimal(order.total)),
        "total_items": order.total_items,
        "payment_method": order.payment_method,
        "mp_status": order.mp_status,
        "mp_payment_id": order.mp_payment_id,
        "tracking_number": order.tracking_number,
        "ca_import_error": order.ca_import_error,
        "delivered_at": order.delivered_at.isoformat() if order.delivered_at else None,
    }
    if with_items:
        data["items"] = [
            {
                "product_id": i.product_id,
                "variant_id": i.variant_id,
                "product_name": i.product_name,
                "size": i.size,
                "color": i.color,
                "qty": i.qty,
                "unit_price": float(to_decimal(i.unit_price)),
                "line_total": float(to_decimal(i.line_total)),
            }
            for i in order.items
        ]
    if with_log and db is not None:
        logs = (
            db.query(OrderStatusLog)
            .filter(OrderStatusLog.order_id == order.id)
            .order_by(OrderStatusLog.created_at.asc(), OrderStatusLog.id.asc())
            .all()
        )
        data["status_log"] = [
            {
                "old_status": l.old_status,
                "new_status": l.new_status,
                "user": l.user,
                "note": l.note,
                "created_at": l.created_at.isoformat() if l.created_at else None,
            }
            for l in logs
        ]
    return data


# ---------------- stock ----------------
def _adjust(db: Session, product: Product, variant: Optional[Variant], units: int, note: str, user: str) -> None:
    holder = variant if variant is not None else product
    old = int(holder.stock or 0)
    new = old - units
    if new < 0:
        logger.warning("Stock below zero for product %s, clamping", product.id,
                       extra={"variant_id": variant.id if variant else None, "wanted": units, "had": old})
        new = 0
    holder.stock = new
    db.add(StockAudit(
        product_id=product.id,
        variant_id=variant.id if variant is not None else None,
        change_type=StockChange.DECREASE.value,
        delta_units=units,
        old_stock=old,
        new_stock=new,
        note=note,
        user=user,
    ))


def consume_stock(db: Session, order: Order, user: str = "system") -> None:
    """Take the order's units off product or variant stock, with an audit row per line."""
    for item in order.items:
        product = db.get(Product, item.product_id)
        if product is None:
            logger.warning("Order %s references missing product %s", order.id, item.product_id)
            continue
        variant = db.get(Variant, item.variant_id) if item.variant_id else None
        if variant is None:
            variant = product.find_variant(item.color, item.size)
        _adjust(db, product, variant, int(item.qty), "order #{0}".format(order.id), user)


def apply_status(db: Session, order: Order, new_status: str, user: str, note: Optional[str] = None) -> bool:
    """Apply a status without transition checks. Returns True when stock was consumed."""
    old = order.status
    if old == new_status:
        return False
    consumed = old not in STOCK_CONSUMED and new_status in STOCK_CONSUMED
    if consumed:
        consume_stock(db, order, user)
    order.status = new_status
    order.status_changed_at = datetime.utcnow()
    if note:
        order.status_note = note
    if new_status == OrderStatus.DELIVERED.value and order.delivered_at is None:
        order.delivered_at = datetime.utcnow()
    db.add(OrderStatusLog(order_id=order.id, old_status=old, new_status=new_status, user=user, note=note))
    return consumed


def change_status(db: Session, order: Order, new_status: str, user: str = "system", note: Optional[str] = None) -> Order:
    """Validated status change, logged in ``order_status_log``."""
    new_status = getattr(new_status, "value", new_status)
    if new_status not in ALLOWED_TRANSITIONS:
        raise OrderError("Estado inválido", code="INVALID_STATUS")
    cur = order.status or OrderStatus.PENDING.value
    if new_status not in ALLOWED_TRANSITIONS.get(cur, set()):
        raise OrderError(
            "Transición de estado no permitida: {0} -> {1}".format(cur, new_status),
            code="INVALID_TRANSITION",
        )
    apply_status(db, order, new_status, user, note)
    db.commit()
    db.refresh(order)
    logger.info("Order %s status %s -> %s by %s", order.id, cur, new_status, user)
    return order


def update_order(db: Session, order: Order, mp_payment_id: Optional[str], mp_status: Optional[str],
                 new_status: str, user: str = "webhook") -> Tuple[Order, bool]:
    """Payment update for an existing order. ``should_ship`` is True only on the
    notification that moved it into PENDING_PAYMENT."""
    if mp_payment_id:
        order.mp_payment_id = str(mp_payment_id)
    if mp_status:
        order.mp_status = mp_status

    should_ship = False
    if new_status != order.status:
        # never move a paid/shipped order back to PENDING on a late notification
        if new_status == OrderStatus.PENDING.value and order.status in STOCK_CONSUMED:
            logger.info("Ignoring status downgrade for order %s (%s)", order.id, order.status)
        else:
            consumed = apply_status(db, order, new_status, user, note="MercadoPago: {0}".format(mp_status))
            should_ship = consumed and new_status == OrderStatus.PENDING_PAYMENT.value
    db.commit()
    db.refresh(order)
    return order, should_ship


# ---------------- creation ----------------
def build_order_lines(db: Session, items: List[dict]) -> List[dict]:
    """Order lines from ``{product_id, qty, size, color}`` with prices read from the DB."""
    lines = []
    for raw in items:
        product_id = int(raw.get("product_id") or raw.get("productId") or raw.get("id") or 0)
        qty = int(raw.get("qty") or raw.get("quantity") or 0)
        if qty <= 0:
            raise OrderError("Cantidad inválida para el producto {0}".format(product_id))
        product = db.get(Product, product_id)
        if product is None:
            raise OrderError("Producto {0} no encontrado".format(product_id), code="PRODUCT_NOT_FOUND")
        size, color = raw.get("size") or None, raw.get("color") or None
        variant = product.find_variant(color, size)
        unit_price = money(product.effective_price)
        lines.append({
            "product_id": product.id,
            "variant_id": variant.id if variant else None,
            "product_name": product.name,
            "size": size,
            "color": color,
            "qty": qty,
            "unit_price": unit_price,
            "line_total": money(unit_price * qty),
        })
    return lines


def _create_order(db: Session, customer: Dict[str, Any], lines: List[dict], shipping: Dict[str, Any],
                  payment_method: str, **fields) -> Order:
    subtotal = sum((to_decimal(l["line_total"]) for l in lines), Decimal("0"))
    shipping_cost = money(shipping.get("cost") or 0)
    order = Order(
        access_token=make_pkey(),
        customer_name=customer.get("name") or "Cliente",
        customer_email=customer.get("email") or None,
        customer_phone=customer.get("phone") or None,
        customer_address=customer.get("address") or None,
        shipping_street=customer.get("street") or None,
        shipping_number=customer.get("number") or None,
        shipping_floor=customer.get("floor") or None,
        shipping_apartment=customer.get("apartment") or None,
        shipping_city=customer.get("city") or None,
        shipping_province=customer.get("province") or None,
        shipping_province_code=customer.get("province_code") or None,
        shipping_postal_code=customer.get("postal_code") or None,
        shipping_method=shipping.get("method") or None,
        shipping_agency=shipping.get("agency") or None,
        shipping_cost=shipping_cost,
        subtotal=money(subtotal),
        total=money(subtotal + shipping_cost),
        status=OrderStatus.PENDING.value,
        payment_method=payment_method,
        **fields,
    )
    for l in lines:
        order.items.append(OrderItem(
            product_id=l["product_id"],
            variant_id=l.get("variant_id"),
            product_name=l["product_name"],
            size=l.get("size"),
            color=l.get("color"),
            qty=int(l["qty"]),
            unit_price=l["unit_price"],
            line_total=l["line_total"],
        ))
    db.add(order)
    db.flush()
    db.add(OrderStatusLog(order_id=order.id, old_status="", new_status=order.status, user="system",
                          note="Pedido creado"))
    return order


def create_cash_order(db: Session, customer: Dict[str, Any], lines: List[dict], shipping: Dict[str, Any]) -> Order:
    """Cash orders wait in PENDING until the store gets the money."""
    order = _create_order(db, customer, lines, shipping, PaymentMethod.CASH.value, mp_status=CASH_MP_STATUS)
    db.commit()
    db.refresh(order)
    logger.info("Cash order %s created", order.id, extra={"total": str(order.total)})
    return order


def _metadata_items(metadata: Dict[str, Any]) -> List[dict]:
    items = metadata.get("items")
    if isinstance(items, str):
        try:
            items = json.loads(items)
        except ValueError:
            raise OrderError("Items de metadata inválidos", code="INVALID_METADATA")
    if not items or not isinstance(items, list):
        raise OrderError("La metadata del pago no incluye items", code="INVALID_METADATA")
    return items


def _customer_from(metadata: Dict[str, Any], payer: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    payer = payer or {}
    payer_name = " ".join(x for x in (payer.get("first_name"), payer.get("last_name")) if x).strip()
    payer_phone = (payer.get("phone") or {}).get("number") if isinstance(payer.get("phone"), dict) else None
    return {
        "name": metadata.get("customer_name") or payer_name or None,
        "email": metadata.get("customer_email") or payer.get("email"),
        "phone": metadata.get("customer_phone") or payer_phone,
        "address": metadata.get("customer_address"),
        "street": metadata.get("shipping_street"),
        "number": metadata.get("shipping_number"),
        "floor": metadata.get("shipping_floor"),
        "apartment": metadata.get("shipping_apartment"),
        "city": metadata.get("shipping_city"),
        "province": metadata.get("shipping_province"),
        "province_code": metadata.get("shipping_province_code"),
        "postal_code": metadata.get("shipping_postal_code"),
    }


def create_from_metadata(db: Session, mp_payment_id: str, mp_status: Optional[str], preference_id: Optional[str],
                         metadata: Optional[Dict[str, Any]], payer: Optional[Dict[str, Any]] = None,
                         external_reference: Optional[str] = None) -> Tuple[Order, bool]:
    """Create (or update) the order for a MercadoPago payment.

    Repeated notifications for the same payment id update the existing order.
    """
    mp_payment_id = str(mp_payment_id)
    new_status = map_status(mp_status)

    existing = db.query(Order).filter(Order.mp_payment_id == mp_payment_id).first()
    if existing is not None:
        return update_order(db, existing, mp_payment_id, mp_status, new_status)

    metadata = metadata or {}
    lines = build_order_lines(db, _metadata_items(metadata))
    shipping = {
        "method": metadata.get("shipping_method"),
        "agency": metadata.get("shipping_agency"),
        "cost": metadata.get("shipping_cost") or 0,
    }
    order = _create_order(
        db, _customer_from(metadata, payer), lines, shipping, PaymentMethod.MERCADOPAGO.value,
        mp_payment_id=mp_payment_id,
        mp_status=mp_status,
        mp_preference_id=preference_id,
        external_reference=external_reference or metadata.get("external_reference"),
    )
    should_ship = False
    if new_status != order.status:
        should_ship = apply_status(db, order, new_status, "webhook", note="MercadoPago: {0}".format(mp_status))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent notification for the same payment won the insert
        db.rollback()
        existing = db.query(Order).filter(Order.mp_payment_id == mp_payment_id).first()
        if existing is None:
            raise
        return update_order(db, existing, mp_payment_id, mp_status, new_status)
    db.refresh(order)
    logger.info("Order %s created from payment %s (%s)", order.id, mp_payment_id, mp_status)
    return order, should_ship


def get_public_order(db: Session, order_id: int, token: Optional[str]) -> Order:
    order = db.get(Order, order_id)
    if not order or not token or not hmac.compare_digest(order.access_token.encode(), token.encode()):
        raise ApiError(404, "Pedido no encontrado")
    return order
