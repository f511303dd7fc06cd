from decimal import Decimal
from unittest import mock

import pytest

from rastuci.integrations.correo_argentino import CorreoArgentinoError
from rastuci.models.settings import StoreSettings
from rastuci.services.shipping import apply_free_shipping, calculate_shipping_options, estimate_package


def _prices(postal_code):
    return {o["id"]: o["price"] for o in calculate_shipping_options(postal_code)}


@pytest.mark.parametrize("cp,standard,express", [
    ("1406", 800, 1500),
    ("C1406", 800, 1500),
    ("b1611", 1200, 2000),
    ("2000", 1800, 3000),
    ("3599", 1800, 3000),
    ("5000", 1800, 3000),
    ("4000", 2500, 4000),
    ("9410", 2500, 4000),
])
def test_regional_prices(cp, standard, express):
    prices = _prices(cp)
    assert prices == {"pickup": Decimal("0"), "standard": Decimal(standard), "express": Decimal(express)}


@pytest.mark.parametrize("cp", ["", "123", "12345", "AB1234", "14O6"])
def test_invalid_postal_code(cp):
    with pytest.raises(ValueError):
        calculate_shipping_options(cp)


def test_free_shipping_threshold():
    store = StoreSettings(name="x", free_shipping=True, free_shipping_min_amount=Decimal("10000"))
    options = calculate_shipping_options("1406")
    assert [o["price"] for o in apply_free_shipping(options, store, 5000)] == [0, 800, 1500]
    assert all(o["price"] == 0 for o in apply_free_shipping(options, store, 10000))
    # no subtotal known -> threshold cannot be met
    assert apply_free_shipping(options, store) == options


def test_free_shipping_without_threshold():
    store = StoreSettings(name="x", free_shipping=True, free_shipping_min_amount=None)
    assert all(o["price"] == 0 for o in apply_free_shipping(calculate_shipping_options("4000"), store))


def test_package_estimate():
    assert estimate_package(1)["weight"] == 500
    assert estimate_package(3)["weight"] == 900
    assert estimate_package(1)["height"] == 10


def test_calculate_endpoint(client):
    r = client.get("/api/shipping/calculate", params={"postal_code": "1406"})
    assert r.status_code == 200
    assert [o["price"] for o in r.json()["data"]] == [0.0, 800.0, 1500.0]

    r = client.get("/api/shipping/calculate", params={"postal_code": "nope"})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_POSTAL_CODE"


def test_carrier_quote_endpoint(client):
    ca = mock.Mock()
    ca.get_rates.return_value = {"rates": [{"deliveredType": "D", "price": 5100}]}
    with mock.patch("rastuci.integrations.correo_argentino.get_client", return_value=ca):
        r = client.post("/api/shipping/correo-argentino/calculate",
                        json={"postal_code": "x5000", "items_count": 3, "delivered_type": "D"})

    assert r.status_code == 200, r.text
    assert r.json()["data"]["rates"][0]["price"] == 5100
    kwargs = ca.get_rates.call_args[1]
    assert kwargs["postal_code_origin"] == "1611"
    assert kwargs["postal_code_destination"] == "X5000"
    assert kwargs["dimensions"] == {"weight": 900, "height": 10, "width": 20, "length": 30}
    assert kwargs["delivered_type"] == "D"


def test_carrier_quote_rejects_bad_postal_code(client):
    r = client.post("/api/shipping/correo-argentino/calculate", json={"postal_code": "12"})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_POSTAL_CODE"


@pytest.mark.parametrize("code, status", [("CONFIG_ERROR", 503), ("AUTH_FAILED", 503), ("RATES_ERROR", 502)])
def test_carrier_quote_error_mapping(client, code, status):
    ca = mock.Mock()
    ca.get_rates.side_effect = CorreoArgentinoError(code, "falló")
    with mock.patch("rastuci.integrations.correo_argentino.get_client", return_value=ca):
        r = client.post("/api/shipping/correo-argentino/calculate", json={"postal_code": "1406"})
    assert r.status_code == status
    assert r.json()["success"] is False
    assert r.json()["code"] == code


def test_agencies_endpoint(client):
    ca = mock.Mock()
    ca.get_agencies.return_value = [{"code": "B0001", "name": "Sucursal Moreno"}]
    with mock.patch("rastuci.integrations.correo_argentino.get_client", return_value=ca):
        r = client.get("/api/shipping/agencies", params={"province_code": "b"})
        assert r.json()["data"][0]["code"] == "B0001"
        ca.get_agencies.assert_called_once_with("B")

        ca.get_agencies.side_effect = CorreoArgentinoError("AGENCIES_ERROR", "falló")
        assert client.get("/api/shipping/agencies", params={"province_code": "B"}).status_code == 502

    assert client.get("/api/shipping/agencies", params={"province_code": "BA"}).status_code == 400
