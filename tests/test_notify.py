from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import requests

from rastuci import config
from rastuci.notify.email_notify import RESEND_URL, OrderNotifier


def _order(**overrides):
    item = SimpleNamespace(product_name="Remera <Rayada>", size="4", color="Rosa", qty=2,
                           line_total=Decimal("200.00"))
    data = dict(
        id=7, customer_name="Ana <b>Pérez</b>", customer_email="ana@example.com",
        access_token="tok&en", tracking_number=None, items=[item],
        shipping_cost=Decimal("800"), total=Decimal("1000"), created_at=datetime(2024, 3, 1),
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def test_send_skips_without_api_key():
    session = mock.Mock()
    notifier = OrderNotifier(api_key="", session=session)
    assert notifier.send("ana@example.com", "Hola", "<p>x</p>") is False
    session.post.assert_not_called()


def test_send_skips_without_recipient():
    session = mock.Mock()
    assert OrderNotifier(api_key="re_key", session=session).send("", "Hola", "<p>x</p>") is False
    session.post.assert_not_called()


def test_send_posts_to_resend(monkeypatch):
    monkeypatch.setattr(config, "EMAIL_FROM", "Rastuci <ventas@rastuci.com>")
    session = mock.Mock()
    assert OrderNotifier(api_key="re_key", session=session).send("ana@example.com", "Hola", "<p>x</p>") is True

    args, kwargs = session.post.call_args
    assert args[0] == RESEND_URL
    assert kwargs["json"] == {
        "from": "Rastuci <ventas@rastuci.com>",
        "to": ["ana@example.com"],
        "subject": "Hola",
        "html": "<p>x</p>",
    }
    assert kwargs["headers"]["Authorization"] == "Bearer re_key"


def test_send_logs_http_failures():
    session = mock.Mock()
    session.post.side_effect = requests.ConnectionError("down")
    assert OrderNotifier(api_key="re_key", session=session).send("ana@example.com", "Hola", "x") is False

    resp = mock.Mock()
    resp.raise_for_status.side_effect = requests.HTTPError("422")
    session.post.side_effect = None
    session.post.return_value = resp
    assert OrderNotifier(api_key="re_key", session=session).send("ana@example.com", "Hola", "x") is False


def test_order_created_email_escapes_customer_text(monkeypatch):
    monkeypatch.setattr(config, "APP_URL", "https://tienda.example.com/")
    session = mock.Mock()
    notifier = OrderNotifier(api_key="re_key", session=session)
    assert notifier.notify_order_created(_order(tracking_number="TN<1>")) is True

    kwargs = session.post.call_args[1]
    assert kwargs["json"]["subject"] == "Confirmación de pedido #7"
    html = kwargs["json"]["html"]
    assert "Ana &lt;b&gt;Pérez&lt;/b&gt;" in html
    assert "Remera &lt;Rayada&gt; (4 / Rosa) × 2 = $200.00" in html
    assert "TN&lt;1&gt;" in html
    assert 'href="https://tienda.example.com/orders/7?token=tok&amp;en"' in html
    assert "<b>Total: $1000.00</b>" in html


def test_order_delivered_email():
    session = mock.Mock()
    assert OrderNotifier(api_key="re_key", session=session).notify_order_delivered(_order()) is True
    kwargs = session.post.call_args[1]
    assert kwargs["json"]["subject"] == "Pedido #7 entregado"
    assert kwargs["json"]["to"] == ["ana@example.com"]
