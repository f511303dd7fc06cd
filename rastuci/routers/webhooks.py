import json

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from rastuci import config
from rastuci.db import get_db
from rastuci.integrations import correo_argentino, mercadopago
from rastuci.integrations.mercadopago import MercadoPagoError
from rastuci.models.order import Order
from rastuci.notify.email_notify import notifier
from rastuci.schemas import CarrierEventIn
from rastuci.services.orders import OrderError, change_status, create_from_metadata
from rastuci.services.shipments import create_ca_shipment
from rastuci.services.shipping import is_carrier_method
from rastuci.utils.enums import OrderStatus
from rastuci.utils.logs import get_logger
from rastuci.utils.ratelimit import check_rate_limit, get_client_id
from rastuci.utils.responses import ApiError, fail, ok

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

DELIVERED_STATUSES = {"DELIVERED", "ENTREGADO"}


def _json_body(raw: bytes) -> dict:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise ApiError(400, "JSON inválido")
    return data if isinstance(data, dict) else {}


async def raw_body(request: Request) -> bytes:
    return await request.body()


@router.post("/mercadopago")
def mercadopago_webhook(request: Request, raw: bytes = Depends(raw_body), db: Session = Depends(get_db)):
    if not check_rate_limit(request, "webhook").ok:
        # over the limit is still acknowledged with a 200
        logger.warning("Webhook rate limit exceeded", extra={"client": get_client_id(request)})
        return ok({"received": True, "processed": False})

    body = _json_body(raw)
    params = request.query_params
    topic = body.get("type") or body.get("topic") or params.get("type") or params.get("topic")
    data_id = (body.get("data") or {}).get("id") or params.get("data.id") or params.get("id")

    if not mercadopago.verify_webhook_signature(
        request.headers.get("x-signature", ""),
        request.headers.get("x-request-id", ""),
        data_id or "",
        config.MP_WEBHOOK_SECRET,
    ):
        logger.warning("Invalid MercadoPago signature", extra={"data_id": data_id})
        return fail("Firma inválida", 401, "INVALID_SIGNATURE")

    if topic != "payment" or not data_id:
        logger.info("Ignoring MercadoPago notification", extra={"topic": topic, "data_id": data_id})
        return ok({"received": True, "processed": False})

    try:
        payment = mercadopago.get_client().get_payment(str(data_id))
    except MercadoPagoError as e:
        # non-2xx makes MercadoPago retry later
        logger.error("Could not fetch payment %s: %s", data_id, e.message, extra={"code": e.code})
        return fail("No se pudo obtener el pago", 500, e.code)

    try:
        order, should_ship = create_from_metadata(
            db,
            mp_payment_id=str(payment.get("id") or data_id),
            mp_status=payment.get("status"),
            preference_id=payment.get("preference_id"),
            metadata=payment.get("metadata") or {},
            payer=payment.get("payer") or {},
            external_reference=payment.get("external_reference"),
        )
    except OrderError as e:
        logger.error("Payment %s could not be turned into an order: %s", data_id, e.message)
        return ok({"received": True, "processed": False})

    if should_ship:
        if is_carrier_method(order.shipping_method):
            create_ca_shipment(db, order)
            db.refresh(order)
        notifier.notify_order_created(order)

    logger.info("Payment %s processed", data_id, extra={"order_id": order.id, "status": order.status})
    return ok({"received": True, "processed": True, "orderId": order.id, "status": order.status})


@router.post("/correo-argentino")
def correo_argentino_webhook(request: Request, raw: bytes = Depends(raw_body), db: Session = Depends(get_db)):
    if not correo_argentino.verify_webhook_signature(
        request.headers.get("x-ca-signature", ""), raw, config.CORREO_ARGENTINO_WEBHOOK_SECRET
    ):
        logger.warning("Invalid Correo Argentino signature")
        return fail("Firma inválida", 401, "INVALID_SIGNATURE")

    try:
        event = CarrierEventIn.model_validate(_json_body(raw))
    except ValidationError as e:
        issues = [{"loc": [str(p) for p in err["loc"]], "msg": err["msg"]} for err in e.errors()]
        raise ApiError(400, "Datos inválidos", details={"issues": issues})

    order = db.query(Order).filter(Order.tracking_number == event.tracking_number).first()
    if order is None:
        logger.info("Tracking event for unknown shipment %s", event.tracking_number)
        return ok({"received": True, "processed": False})

    status = event.status.strip().upper()
    if status in DELIVERED_STATUSES and order.status == OrderStatus.PROCESSED.value:
        change_status(db, order, OrderStatus.DELIVERED.value, user="webhook",
                      note=event.description or "Entregado por Correo Argentino")
        notifier.notify_order_delivered(order)
        return ok({"received": True, "processed": True, "orderId": order.id, "status": order.status})

    return ok({"received": True, "processed": False, "orderId": order.id, "status": order.status})
