import json
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from rastuci.integrations import mercadopago
from rastuci.integrations.mercadopago import MercadoPagoError
from rastuci.models.catalog import Product
from rastuci.notify.email_notify import notifier
from rastuci.schemas import CheckoutIn
from rastuci.services.orders import build_order_lines, create_cash_order
from rastuci.services.shipments import create_ca_shipment
from rastuci.services.shipping import (
    LOCAL_METHODS, calculate_shipping_options, free_shipping_applies, is_carrier_method,
)
from rastuci.services.store_settings import get_store_settings
from rastuci.utils.enums import PaymentMethod
from rastuci.utils.logs import get_logger
from rastuci.utils.money import money, to_decimal
from rastuci.utils.responses import ApiError
from rastuci.utils.tokens import make_reference

logger = get_logger(__name__)

SUMMARY_ITEM_ID = "purchase_summary"
SUMMARY_ITEM_TITLE = "Compra en Rastuci"
CURRENCY = "ARS"


class CheckoutError(ApiError):
    def __init__(self, message: str, code: str = "CHECKOUT_ERROR"):
        super().__init__(400, message, code)


def validate_stock(db: Session, items: List[dict]) -> Dict[int, Product]:
    """Check every line against current stock; returns the products by id."""
    if not items:
        raise CheckoutError("No hay productos en el carrito", "EMPTY_CART")

    ids = {int(i["product_id"]) for i in items}
    products = {
        p.id: p
        for p in db.query(Product).options(selectinload(Product.variants)).filter(Product.id.in_(ids)).all()
    }

    # the same product/variant can appear on several lines
    wanted = defaultdict(int)
    for item in items:
        pid = int(item["product_id"])
        p = products.get(pid)
        if p is None or not p.is_active:
            raise CheckoutError("Producto {0} no encontrado".format(pid), "PRODUCT_NOT_FOUND")
        size, color = item.get("size") or None, item.get("color") or None
        if p.variants and (size or color):
            variant = p.find_variant(color, size)
            if variant is None:
                raise CheckoutError(
                    "La variante {0} / {1} de {2} ya no está disponible".format(size, color, p.name),
                    "VARIANT_NOT_FOUND",
                )
            wanted[(pid, variant.id)] += int(item["qty"])
        else:
            wanted[(pid, None)] += int(item["qty"])

    for (pid, variant_id), qty in wanted.items():
        p = products[pid]
        if variant_id is None:
            available = int(p.stock or 0)
        else:
            available = next(int(v.stock or 0) for v in p.variants if v.id == variant_id)
        if qty > available:
            raise CheckoutError(
                "Stock insuficiente para {0}: disponible {1}, solicitado {2}".format(p.name, available, qty),
                "INSUFFICIENT_STOCK",
            )
    return products


def items_subtotal(items: List[dict], products: Dict[int, Product]) -> Decimal:
    return sum(
        (products[int(i["product_id"])].effective_price * int(i["qty"]) for i in items),
        Decimal("0"),
    )


def resolve_shipping(db: Session, method: Optional[str], postal_code: Optional[str], subtotal,
                     quoted_cost=None, agency: Optional[str] = None) -> dict:
    """Shipping method and cost for an order; local methods are priced here, not by the client."""
    method = (method or "pickup").strip()
    store = get_store_settings(db)

    if method == "pickup":
        cost = Decimal("0")
    elif method in LOCAL_METHODS:
        try:
            options = calculate_shipping_options(postal_code or "")
        except ValueError:
            raise CheckoutError("Código postal inválido", "INVALID_POSTAL_CODE")
        cost = next(o["price"] for o in options if o["id"] == method)
    elif is_carrier_method(method):
        if quoted_cost is None or to_decimal(quoted_cost) < 0:
            raise CheckoutError("Falta el costo de envío cotizado", "INVALID_SHIPPING")
        cost = to_decimal(quoted_cost)
    else:
        raise CheckoutError("Método de envío inválido", "INVALID_SHIPPING")

    if cost > 0 and free_shipping_applies(store, subtotal):
        cost = Decimal("0")
    return {"method": method, "cost": money(cost), "agency": agency or None}


def prepare_mp_items(items: List[dict], products: Dict[int, Product], shipping_cost=0) -> List[dict]:
    """Single summary line for the preference: items at effective price plus shipping."""
    total = items_subtotal(items, products) + to_decimal(shipping_cost)
    count = sum(int(i["qty"]) for i in items)
    return [{
        "id": SUMMARY_ITEM_ID,
        "title": SUMMARY_ITEM_TITLE,
        "description": "{0} producto(s)".format(count),
        "quantity": 1,
        "currency_id": CURRENCY,
        "unit_price": float(money(max(total, Decimal("0")))),
    }]


def _customer_dict(payload: CheckoutIn) -> dict:
    c = payload.customer
    data = c.model_dump()
    if not data.get("address") and c.street:
        parts = ["{0} {1}".format(c.street, c.number or "").strip(), c.city, c.postal_code]
        data["address"] = ", ".join(p for p in parts if p)
    return data


def _mp_metadata(customer: dict, items: List[dict], shipping: dict, external_reference: str) -> dict:
    # MercadoPago hands metadata back with snake_case keys
    return {
        "customer_name": customer.get("name"),
        "customer_email": customer.get("email"),
        "customer_phone": customer.get("phone"),
        "customer_address": customer.get("address"),
        "shipping_street": customer.get("street"),
        "shipping_number": customer.get("number"),
        "shipping_floor": customer.get("floor"),
        "shipping_apartment": customer.get("apartment"),
        "shipping_city": customer.get("city"),
        "shipping_province": customer.get("province"),
        "shipping_province_code": customer.get("province_code"),
        "shipping_postal_code": customer.get("postal_code"),
        "shipping_method": shipping["method"],
        "shipping_cost": float(shipping["cost"]),
        "shipping_agency": shipping.get("agency"),
        "external_reference": external_reference,
        "items": json.dumps([
            {"product_id": int(i["product_id"]), "qty": int(i["qty"]), "size": i.get("size"), "color": i.get("color")}
            for i in items
        ]),
    }


def process_checkout(db: Session, payload: CheckoutIn, origin: Optional[str] = None) -> dict:
    items = [i.model_dump() for i in payload.items]
    products = validate_stock(db, items)
    customer = _customer_dict(payload)
    subtotal = items_subtotal(items, products)
    shipping = resolve_shipping(
        db, payload.shipping_method, customer.get("postal_code"), subtotal,
        quoted_cost=payload.shipping_cost, agency=payload.shipping_agency,
    )

    if payload.payment_method == PaymentMethod.CASH.value:
        order = create_cash_order(db, customer, build_order_lines(db, items), shipping)
        if is_carrier_method(shipping["method"]):
            create_ca_shipment(db, order)
            db.refresh(order)
        notifier.notify_order_created(order)
        return {
            "success": True,
            "orderId": order.id,
            "orderToken": order.access_token,
            "paymentMethod": PaymentMethod.CASH.value,
            "message": "Pedido registrado. Pagás en efectivo al retirar o recibir tu compra.",
        }

    if payload.payment_method == PaymentMethod.MERCADOPAGO.value:
        external_reference = make_reference("order")
        back_urls = None
        if origin:
            base = origin.rstrip("/")
            back_urls = {
                "success": "{0}/checkout/success".format(base),
                "failure": "{0}/checkout/failure".format(base),
                "pending": "{0}/checkout/pending".format(base),
            }
        payer = {"name": customer.get("name"), "email": customer.get("email")}
        if customer.get("phone"):
            payer["phone"] = {"number": customer["phone"]}
        try:
            preference = mercadopago.get_client().create_preference(
                items=prepare_mp_items(items, products, shipping["cost"]),
                payer=payer,
                external_reference=external_reference,
                metadata=_mp_metadata(customer, items, shipping, external_reference),
                back_urls=back_urls,
            )
        except MercadoPagoError as e:
            logger.error("Checkout preference failed: %s", e.message, extra={"code": e.code})
            raise ApiError(502, "No se pudo iniciar el pago con MercadoPago", e.code)
        logger.info("Preference %s created", preference.get("id"), extra={"reference": external_reference})
        return {
            "success": True,
            "preferenceId": preference.get("id"),
            "initPoint": preference.get("init_point"),
            "paymentMethod": PaymentMethod.MERCADOPAGO.value,
        }

    raise CheckoutError("Método de pago no soportado", "INVALID_PAYMENT_METHOD")
