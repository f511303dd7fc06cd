from decimal import Decimal

from rastuci.services.cart import cart_key, compute_cart_totals


def test_totals_use_sale_price_when_on_sale():
    totals = compute_cart_totals([
        {"price": Decimal("100"), "sale_price": Decimal("80"), "on_sale": True, "qty": 2},
        {"price": "50", "sale_price": None, "on_sale": False, "qty": 1},
    ])
    assert totals["subtotal"] == Decimal("210.00")
    assert totals["total_items"] == 3
    assert totals["savings"] == Decimal("40.00")
    assert [l["unit_price"] for l in totals["lines"]] == [Decimal("80.00"), Decimal("50.00")]
    assert totals["lines"][0]["line_total"] == Decimal("160.00")


def test_sale_price_ignored_when_not_on_sale_or_zero():
    totals = compute_cart_totals([
        {"price": "100", "sale_price": "60", "on_sale": False, "qty": 1},
        {"price": "30", "sale_price": "0", "on_sale": True, "qty": 1},
    ])
    assert totals["subtotal"] == Decimal("130.00")
    assert totals["savings"] == Decimal("0.00")


def test_empty_cart_totals():
    totals = compute_cart_totals([])
    assert totals["subtotal"] == Decimal("0.00")
    assert totals["total_items"] == 0
    assert totals["lines"] == []


def test_cart_key_includes_size_and_color():
    assert cart_key(5, "4", "Rosa") == "5:4:Rosa"
    assert cart_key(5) == "5::"


def test_add_clamps_to_stock(client, make_product):
    p = make_product(stock=3)
    r = client.post("/api/cart/add", json={"product_id": p.id, "qty": 5})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["total_items"] == 3
    assert "Stock insuficiente" in body["message"]


def test_add_uses_variant_stock(client, make_product):
    p = make_product(stock=0, variants=[("4", "Rosa", 2), ("6", "Azul", 8)])
    r = client.post("/api/cart/add", json={"product_id": p.id, "qty": 3, "size": "4", "color": "Rosa"})
    assert r.status_code == 200
    items = r.json()["data"]["items"]
    assert len(items) == 1
    assert items[0]["qty"] == 2
    assert items[0]["key"] == "{0}:4:Rosa".format(p.id)


def test_add_out_of_stock_rejected(client, make_product):
    p = make_product(stock=0)
    r = client.post("/api/cart/add", json={"product_id": p.id})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Sin stock disponible", "code": "OUT_OF_STOCK"}


def test_add_unknown_product(client):
    r = client.post("/api/cart/add", json={"product_id": 999})
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_cart_view_totals_with_sale_price(client, make_product):
    p = make_product(price="100", sale_price="75", on_sale=True)
    client.post("/api/cart/add", json={"product_id": p.id, "qty": 2})
    data = client.get("/api/cart").json()["data"]
    assert data["subtotal"] == 150.0
    assert data["savings"] == 50.0


def test_update_to_zero_removes_line(client, make_product):
    p = make_product()
    client.post("/api/cart/add", json={"product_id": p.id, "qty": 2})
    r = client.post("/api/cart/update", json={"product_id": p.id, "qty": 0})
    assert r.status_code == 200
    assert r.json()["data"]["items"] == []


def test_remove_and_clear(client, make_product):
    a = make_product(name="A")
    b = make_product(name="B")
    client.post("/api/cart/add", json={"product_id": a.id})
    client.post("/api/cart/add", json={"product_id": b.id})
    r = client.post("/api/cart/remove", json={"product_id": a.id})
    assert [i["product_id"] for i in r.json()["data"]["items"]] == [b.id]
    client.post("/api/cart/clear")
    assert client.get("/api/cart").json()["data"]["items"] == []
