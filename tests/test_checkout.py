import json
from decimal import Decimal
from unittest import mock

import pytest

from rastuci.models.catalog import Product
from rastuci.models.order import Order
from rastuci.services.checkout import CheckoutError, prepare_mp_items, resolve_shipping, validate_stock

CUSTOMER = {"name": "Ana Pérez", "email": "ana@example.com", "address": "Av. Rivadavia 1234, CABA, 1406",
            "postal_code": "1406"}


def test_validate_stock_empty(db):
    with pytest.raises(CheckoutError) as exc:
        validate_stock(db, [])
    assert exc.value.message == "No hay productos en el carrito"
    assert exc.value.status_code == 400


def test_validate_stock_errors(db, make_product):
    p = make_product(stock=2, variants=[("4", "Rosa", 1)])
    with pytest.raises(CheckoutError):
        validate_stock(db, [{"product_id": 999, "qty": 1}])
    with pytest.raises(CheckoutError) as exc:
        validate_stock(db, [{"product_id": p.id, "qty": 1, "size": "8", "color": "Rosa"}])
    assert exc.value.code == "VARIANT_NOT_FOUND"
    with pytest.raises(CheckoutError) as exc:
        validate_stock(db, [
            {"product_id": p.id, "qty": 1, "size": "4", "color": "Rosa"},
            {"product_id": p.id, "qty": 1, "size": "4", "color": "Rosa"},
        ])
    assert exc.value.code == "INSUFFICIENT_STOCK"
    assert validate_stock(db, [{"product_id": p.id, "qty": 1, "size": "4", "color": "Rosa"}])[p.id].id == p.id


def test_prepare_mp_items_single_summary(db, make_product):
    a = make_product(price="100", sale_price="80", on_sale=True)
    b = make_product(name="B", price="50")
    items = [{"product_id": a.id, "qty": 2}, {"product_id": b.id, "qty": 1}]
    products = {a.id: a, b.id: b}
    mp_items = prepare_mp_items(items, products, Decimal("800"))
    assert mp_items == [{
        "id": "purchase_summary",
        "title": "Compra en Rastuci",
        "description": "3 producto(s)",
        "quantity": 1,
        "currency_id": "ARS",
        "unit_price": 1010.0,
    }]
    assert prepare_mp_items(items, products, Decimal("-5000"))[0]["unit_price"] == 0.0


def test_resolve_shipping_reprices_local_methods(db):
    assert resolve_shipping(db, "express", "1406", 1000, quoted_cost=1)["cost"] == Decimal("1500.00")
    assert resolve_shipping(db, "pickup", None, 1000)["cost"] == Decimal("0.00")
    assert resolve_shipping(db, "ca-home", "1406", 1000, quoted_cost="2345.5")["cost"] == Decimal("2345.50")
    with pytest.raises(CheckoutError):
        resolve_shipping(db, "teleport", "1406", 1000)
    with pytest.raises(CheckoutError):
        resolve_shipping(db, "standard", "xx", 1000)
    with pytest.raises(CheckoutError):
        resolve_shipping(db, "ca-home", "1406", 1000)


def test_cash_checkout_creates_pending_order(client, db, make_product):
    p = make_product(price="100", stock=5)
    client.post("/api/cart/add", json={"product_id": p.id, "qty": 2})
    r = client.post("/api/checkout", json={
        "customer": CUSTOMER,
        "items": [{"product_id": p.id, "qty": 2}],
        "payment_method": "cash",
        "shipping_method": "standard",
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["paymentMethod"] == "cash"

    order = db.get(Order, body["orderId"])
    assert order.status == "PENDING"
    assert order.mp_status == "cash_payment"
    assert order.shipping_cost == Decimal("800.00")
    assert order.total == Decimal("1000.00")
    # stock is held until payment is confirmed
    assert db.get(Product, p.id).stock == 5
    # cart is emptied after a successful order
    assert client.get("/api/cart").json()["data"]["items"] == []


def test_cash_checkout_with_carrier_imports_shipment(client, db, make_product):
    p = make_product(price="100", stock=5)
    ca = mock.Mock(customer_id="0001")
    ca.import_shipment.return_value = {"trackingNumber": "000123AR"}
    with mock.patch("rastuci.integrations.correo_argentino.get_client", return_value=ca):
        r = client.post("/api/checkout", json={
            "customer": CUSTOMER,
            "items": [{"product_id": p.id, "qty": 1}],
            "payment_method": "cash",
            "shipping_method": "ca-home",
            "shipping_cost": 2500,
        })
    assert r.status_code == 200, r.text
    order = db.get(Order, r.json()["orderId"])
    assert order.tracking_number == "000123AR"
    assert order.status == "PROCESSED"
    assert order.shipping_method == "correo-argentino"
    assert db.get(Product, p.id).stock == 4


def test_mercadopago_checkout_creates_preference(client, db, make_product):
    p = make_product(price="100", stock=5)
    mp = mock.Mock()
    mp.create_preference.return_value = {"id": "pref-1", "init_point": "https://mp.test/pref-1"}
    with mock.patch("rastuci.integrations.mercadopago.get_client", return_value=mp):
        r = client.post("/api/checkout", json={
            "customer": CUSTOMER,
            "items": [{"product_id": p.id, "qty": 3, "size": None, "color": None}],
            "payment_method": "mercadopago",
            "shipping_method": "pickup",
        })
    assert r.status_code == 200, r.text
    assert r.json() == {
        "success": True,
        "preferenceId": "pref-1",
        "initPoint": "https://mp.test/pref-1",
        "paymentMethod": "mercadopago",
    }
    kwargs = mp.create_preference.call_args.kwargs
    assert kwargs["items"][0]["unit_price"] == 300.0
    meta = kwargs["metadata"]
    assert meta["customer_email"] == "ana@example.com"
    assert meta["shipping_method"] == "pickup"
    assert json.loads(meta["items"]) == [{"product_id": p.id, "qty": 3, "size": None, "color": None}]
    # no order until the payment notification arrives
    assert db.query(Order).count() == 0


def test_unknown_payment_method(client, make_product):
    p = make_product()
    r = client.post("/api/checkout", json={
        "customer": CUSTOMER,
        "items": [{"product_id": p.id, "qty": 1}],
        "payment_method": "bitcoin",
    })
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_PAYMENT_METHOD"


def test_invalid_body_uses_envelope(client):
    r = client.post("/api/checkout", json={"items": "nope"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "BAD_REQUEST"
    assert body["details"]["issues"]
