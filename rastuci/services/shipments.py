from sqlalchemy.orm import Session

from rastuci.integrations import correo_argentino
from rastuci.integrations.correo_argentino import DELIVERY_AGENCY, DELIVERY_HOME, CorreoArgentinoError
from rastuci.models.order import Order
from rastuci.services.orders import apply_status
from rastuci.services.shipping import estimate_package
from rastuci.services.store_settings import get_store_settings
from rastuci.utils.address import parse_address, province_code_for
from rastuci.utils.enums import OrderStatus
from rastuci.utils.logs import get_logger

logger = get_logger(__name__)

CARRIER_METHOD = "correo-argentino"


def _recipient_address(order: Order) -> dict:
    """Structured shipping fields when present, else parse ``customer_address``."""
    if order.shipping_street and order.shipping_postal_code:
        postal_code = order.shipping_postal_code
        return {
            "streetName": order.shipping_street,
            "streetNumber": order.shipping_number or "S/N",
            "floor": order.shipping_floor or "",
            "apartment": order.shipping_apartment or "",
            "city": order.shipping_city or "",
            "provinceCode": order.shipping_province_code or province_code_for(postal_code),
            "postalCode": postal_code,
        }
    parsed = parse_address(order.customer_address)
    return {
        "streetName": parsed.street_name,
        "streetNumber": parsed.street_number,
        "floor": "",
        "apartment": "",
        "city": parsed.city,
        "provinceCode": parsed.province_code,
        "postalCode": parsed.postal_code,
    }


def build_import_payload(db: Session, order: Order, customer_id: str) -> dict:
    store = get_store_settings(db)
    package = estimate_package(order.total_items)
    address = _recipient_address(order)
    delivery_type = DELIVERY_AGENCY if order.shipping_agency else DELIVERY_HOME
    shipping = {
        "deliveryType": delivery_type,
        "productType": correo_argentino.DEFAULT_PRODUCT_TYPE,
        "declaredValue": float(order.total or 0),
        **package,
    }
    if delivery_type == DELIVERY_AGENCY:
        shipping["agency"] = order.shipping_agency
    else:
        shipping["address"] = address
    return {
        "customerId": customer_id,
        "extOrderId": str(order.id),
        "orderNumber": str(order.id),
        "sender": {
            "name": store.sender_name or store.name,
            "phone": store.phone or "",
            "email": store.sales_email or store.admin_email or "",
            "originAddress": {
                "streetName": store.address_street or "",
                "streetNumber": store.address_number or "",
                "city": store.address_city or "",
                "provinceCode": store.address_province_code or "B",
                "postalCode": store.address_postal_code or "",
            },
        },
        "recipient": {
            "name": order.customer_name,
            "phone": order.customer_phone or "",
            "email": order.customer_email,
        },
        "shipping": shipping,
    }


def create_ca_shipment(db: Session, order: Order) -> bool:
    """Import the order into MiCorreo.

    On success the order gets its tracking number and moves to PROCESSED.
    On failure the error is stored on ``ca_import_error`` and False is returned.
    """
    if not order.customer_name or not order.customer_email or not (
        order.customer_address or order.shipping_street or order.shipping_agency
    ):
        return _fail(db, order, "Faltan datos del cliente para generar el envío")

    try:
        client = correo_argentino.get_client()
        payload = build_import_payload(db, order, client.customer_id)
        result = client.import_shipment(payload)
    except CorreoArgentinoError as e:
        logger.error("Correo Argentino import failed for order %s: %s", order.id, e.message,
                     extra={"code": e.code, "details": e.details})
        return _fail(db, order, "{0}: {1}".format(e.code, e.message))

    result = result if isinstance(result, dict) else {}
    tracking = result.get("trackingNumber") or result.get("shippingId") or result.get("tracking_number")
    if not tracking:
        return _fail(db, order, "Respuesta sin número de seguimiento")

    order.tracking_number = str(tracking)
    order.shipping_method = CARRIER_METHOD
    order.ca_import_error = None
    if order.status != OrderStatus.PROCESSED.value:
        apply_status(db, order, OrderStatus.PROCESSED.value, "system", note="Envío importado en Correo Argentino")
    db.commit()
    logger.info("Order %s imported into Correo Argentino, tracking %s", order.id, tracking)
    return True


def _fail(db: Session, order: Order, message: str) -> bool:
    order.ca_import_error = message[:1000]
    db.commit()
    logger.warning("Shipment not created for order %s: %s", order.id, message)
    return False
