from io import BytesIO

from openpyxl import load_workbook

from rastuci.models.order import Order
from rastuci.models.stock_audit import StockAudit


def test_product_crud(admin_client, make_category):
    cat = make_category()
    r = admin_client.post("/api/admin/products", json={
        "name": "Remera Niña",
        "price": 9500,
        "category_id": cat.id,
        "variants": [{"size": "4", "color": "Rosa", "stock": 3}, {"size": "6", "color": "Rosa", "stock": 2}],
    })
    assert r.status_code == 201, r.text
    product = r.json()["data"]
    assert product["slug"] == "remera-nina"
    assert product["stock"] == 5

    r = admin_client.patch("/api/admin/products/{0}".format(product["id"]),
                           json={"sale_price": 7000, "on_sale": True})
    assert r.json()["data"]["effective_price"] == 7000.0

    r = admin_client.post("/api/admin/products", json={
        "name": "Dup", "price": 10,
        "variants": [{"size": "4", "color": "Rosa"}, {"size": "4", "color": "Rosa"}],
    })
    assert r.status_code == 400

    assert admin_client.delete("/api/admin/products/{0}".format(product["id"])).status_code == 200
    assert admin_client.get("/api/admin/products/{0}".format(product["id"])).status_code == 404


def test_stock_adjustment_writes_audit(admin_client, db, make_product):
    p = make_product(stock=5)
    r = admin_client.patch("/api/admin/products/{0}/stock".format(p.id),
                           json={"change_type": "INCREASE", "units": 3, "note": "reposición"})
    assert r.status_code == 200
    assert r.json()["data"]["stock"] == 8

    assert admin_client.patch("/api/admin/products/{0}/stock".format(p.id),
                              json={"change_type": "DECREASE", "units": 20}).status_code == 400

    admin_client.patch("/api/admin/products/{0}/stock".format(p.id), json={"change_type": "SET", "units": 2})
    audits = db.query(StockAudit).order_by(StockAudit.id).all()
    assert [(a.change_type, a.old_stock, a.new_stock) for a in audits] == [("INCREASE", 5, 8), ("SET", 8, 2)]
    assert audits[0].user == "admin"


def test_category_delete_conflict(admin_client, make_category, make_product):
    used = make_category("Remeras")
    free = make_category("Bodies", "bodies")
    make_product(category=used)
    r = admin_client.delete("/api/admin/categories/{0}".format(used.id))
    assert r.status_code == 409
    assert r.json()["success"] is False
    assert admin_client.delete("/api/admin/categories/{0}".format(free.id)).status_code == 200


def test_category_create_and_duplicate(admin_client):
    r = admin_client.post("/api/admin/categories", json={"name": "Pantalones"})
    assert r.status_code == 201
    assert r.json()["data"]["slug"] == "pantalones"
    assert admin_client.post("/api/admin/categories", json={"name": "Pantalones"}).status_code == 409


def test_orders_list_filters_and_detail(admin_client, db, make_product, make_order):
    p = make_product(stock=10)
    ana = make_order([{"product_id": p.id, "qty": 1}])
    luis = make_order([{"product_id": p.id, "qty": 1}], customer={"name": "Luis Gómez", "email": "luis@example.com"})
    ana.status = "PENDING_PAYMENT"
    db.commit()

    data = admin_client.get("/api/admin/orders", params={"q": "luis"}).json()["data"]
    assert [o["id"] for o in data["items"]] == [luis.id]
    data = admin_client.get("/api/admin/orders", params={"status": "PENDING_PAYMENT"}).json()["data"]
    assert [o["id"] for o in data["items"]] == [ana.id]
    assert admin_client.get("/api/admin/orders", params={"status": "LOST"}).status_code == 400
    assert admin_client.get("/api/admin/orders", params={"date_from": "31-31-2020"}).status_code == 400

    detail = admin_client.get("/api/admin/orders/{0}".format(ana.id)).json()["data"]
    assert detail["status_log"][0]["new_status"] == "PENDING"
    assert detail["access_token"] == ana.access_token


def test_mark_processed_and_delivered(admin_client, db, make_product, make_order):
    order = make_order([{"product_id": make_product().id, "qty": 1}])
    r = admin_client.patch("/api/admin/orders/{0}/mark-processed".format(order.id))
    assert r.status_code == 400

    order.status = "PENDING_PAYMENT"
    db.commit()
    assert admin_client.patch("/api/admin/orders/{0}/mark-delivered".format(order.id)).status_code == 400
    r = admin_client.patch("/api/admin/orders/{0}/mark-processed".format(order.id))
    assert r.json()["data"]["status"] == "PROCESSED"
    r = admin_client.patch("/api/admin/orders/{0}/mark-delivered".format(order.id))
    data = r.json()["data"]
    assert data["status"] == "DELIVERED"
    assert data["delivered_at"]


def test_status_endpoint_validates_transition(admin_client, make_product, make_order):
    order = make_order([{"product_id": make_product().id, "qty": 1}])
    r = admin_client.post("/api/admin/orders/{0}/status".format(order.id), json={"status": "DELIVERED"})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_TRANSITION"
    r = admin_client.post("/api/admin/orders/{0}/status".format(order.id),
                          json={"status": "PROCESSED", "note": "pagado en local"})
    assert r.json()["data"]["status"] == "PROCESSED"


def test_retry_ca_import_conflict_when_tracked(admin_client, db, make_product, make_order):
    order = make_order([{"product_id": make_product().id, "qty": 1}])
    order.tracking_number = "TN"
    db.commit()
    assert admin_client.post("/api/admin/orders/{0}/retry-ca-import".format(order.id)).status_code == 409


def test_dashboard(admin_client, db, make_product, make_order):
    p = make_product(stock=3)
    make_product(name="Lleno", stock=50)
    paid = make_order([{"product_id": p.id, "qty": 2}])
    make_order([{"product_id": p.id, "qty": 1}])
    paid.status = "PENDING_PAYMENT"
    db.commit()

    data = admin_client.get("/api/admin/dashboard").json()["data"]
    assert data["orders_by_status"]["PENDING"] == 1
    assert data["orders_by_status"]["PENDING_PAYMENT"] == 1
    assert data["revenue"] == 200.0
    assert data["product_count"] == 2
    assert [x["id"] for x in data["low_stock"]] == [p.id]
    assert len(data["recent_orders"]) == 2


def test_orders_export_xlsx(admin_client, make_product, make_order):
    order = make_order([{"product_id": make_product().id, "qty": 2}])
    r = admin_client.get("/api/admin/orders/export.xlsx")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/vnd.openxmlformats")
    ws = load_workbook(BytesIO(r.content)).active
    assert ws["A1"].value == "#"
    assert ws["A2"].value == order.id
    assert ws["C2"].value == "Ana Pérez"


def test_settings_roundtrip(admin_client, client):
    r = admin_client.put("/api/admin/settings/store", json={"free_shipping": True, "free_shipping_min_amount": 30000})
    assert r.json()["data"]["free_shipping"] is True
    public = client.get("/api/settings/store").json()["data"]
    assert public["free_shipping_min_amount"] == 30000.0
    assert "admin_email" not in public

    admin_client.put("/api/admin/settings/contact", json={"whatsapp": "+5491155550000", "emails": ["a@b.co"]})
    contact = client.get("/api/settings/contact").json()["data"]
    assert contact["whatsapp"] == "+5491155550000"
    assert contact["emails"] == ["a@b.co"]


def test_users(admin_client):
    r = admin_client.post("/api/admin/users", json={"username": "vendedora", "password": "clave123", "role": "staff"})
    assert r.status_code == 201
    uid = r.json()["data"]["id"]
    assert admin_client.post("/api/admin/users",
                             json={"username": "vendedora", "password": "clave123"}).status_code == 409
    r = admin_client.patch("/api/admin/users/{0}".format(uid), json={"role": "admin"})
    assert r.json()["data"]["role"] == "admin"
    names = [u["username"] for u in admin_client.get("/api/admin/users").json()["data"]]
    assert names == ["admin", "vendedora"]


def test_free_shipping_applies_to_checkout(admin_client, db, make_product):
    admin_client.put("/api/admin/settings/store", json={"free_shipping": True, "free_shipping_min_amount": 100})
    p = make_product(price="150")
    r = admin_client.post("/api/checkout", json={
        "customer": {"name": "Ana", "email": "ana@example.com", "postal_code": "1406"},
        "items": [{"product_id": p.id, "qty": 1}],
        "payment_method": "cash",
        "shipping_method": "express",
    })
    order = db.get(Order, r.json()["orderId"])
    assert float(order.shipping_cost) == 0.0


def test_variant_edit_keeps_ids(admin_client, make_product):
    p = make_product(variants=(("4", "Rosa", 3), ("6", "Rosa", 2)))
    ids = {(v.size, v.color): v.id for v in p.variants}

    r = admin_client.patch("/api/admin/products/{0}".format(p.id), json={"variants": [
        {"color": "Rosa", "size": "4", "stock": 7},
        {"color": "Azul", "size": "8", "stock": 1},
    ]})
    assert r.status_code == 200, r.text
    variants = {(v["size"], v["color"]): v for v in r.json()["data"]["variants"]}
    assert set(variants) == {("4", "Rosa"), ("8", "Azul")}
    assert variants[("4", "Rosa")]["id"] == ids[("4", "Rosa")]
    assert variants[("4", "Rosa")]["stock"] == 7

    r = admin_client.patch("/api/admin/products/{0}".format(p.id), json={"variants": [
        {"color": "Rosa", "size": "4", "stock": 7},
        {"color": "Azul", "size": "8", "stock": 1},
    ]})
    assert r.status_code == 200
    assert r.json()["data"]["stock"] == 8
