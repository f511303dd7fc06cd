from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rastuci import config
from rastuci.db import get_db, init_db
from rastuci.integrations import correo_argentino
from rastuci.main import app
from rastuci.models.catalog import Category, Product, Variant
from rastuci.models.user import User
from rastuci.services.orders import build_order_lines, create_cash_order
from rastuci.utils.enums import UserRole
from rastuci.utils.ratelimit import limiter
from rastuci.utils.security import hash_password


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    limiter.clear()
    monkeypatch.setattr(correo_argentino, "_client", None)
    monkeypatch.setattr(config, "RESEND_API_KEY", "")
    monkeypatch.setattr(config, "MP_WEBHOOK_SECRET", "")
    monkeypatch.setattr(config, "CORREO_ARGENTINO_WEBHOOK_SECRET", "")
    monkeypatch.setattr(config, "MP_WEBHOOK_URL", "")
    yield
    limiter.clear()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    def _make(name="Remera Rayada", price="100", sale_price=None, on_sale=False, stock=10,
              variants=(), category=None, is_active=True, featured=False):
        p = Product(
            name=name,
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            on_sale=on_sale,
            stock=stock,
            images=[],
            sizes=sorted({v[0] for v in variants}),
            colors=sorted({v[1] for v in variants}),
            is_active=is_active,
            featured=featured,
            category=category,
        )
        for size, color, vstock in variants:
            p.variants.append(Variant(size=size, color=color, stock=vstock))
        db.add(p)
        db.commit()
        db.refresh(p)
        return p
    return _make


@pytest.fixture
def make_category(db):
    def _make(name="Remeras", slug=None):
        c = Category(name=name, slug=slug or name.lower())
        db.add(c)
        db.commit()
        db.refresh(c)
        return c
    return _make


CUSTOMER = {
    "name": "Ana Pérez",
    "email": "ana@example.com",
    "phone": "1155550000",
    "address": "Av. Rivadavia 1234, CABA, 1406",
}


@pytest.fixture
def make_order(db):
    def _make(items, shipping=None, customer=None):
        lines = build_order_lines(db, items)
        return create_cash_order(db, dict(customer or CUSTOMER), lines, shipping or {"method": "pickup", "cost": 0})
    return _make


def _login(client, db, username, role):
    db.add(User(username=username, password_hash=hash_password("secret123"), role=role))
    db.commit()
    r = client.post("/api/auth/login", json={"username": username, "password": "secret123"})
    assert r.status_code == 200, r.text
    return client


@pytest.fixture
def admin_client(client, db):
    return _login(client, db, "admin", UserRole.ADMIN.value)


@pytest.fixture
def staff_client(client, db):
    return _login(client, db, "staff", UserRole.STAFF.value)
