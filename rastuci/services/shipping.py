import re
from decimal import Decimal
from typing import List, Optional

from rastuci.utils.money import to_decimal

_POSTAL_RE = re.compile(r"^[A-Z]?\d{4}$", re.IGNORECASE)

# (from, to, name, standard price, standard days, express price, express days)
REGIONS = [
    (1000, 1499, "CABA", 800, "1-2", 1500, "24 hs"),
    (1500, 1999, "GBA", 1200, "2-3", 2000, "24-48 hs"),
    (2000, 3599, "Provincias cercanas", 1800, "3-5", 3000, "48-72 hs"),
    (5000, 5999, "Provincias cercanas", 1800, "3-5", 3000, "48-72 hs"),
]
DEFAULT_REGION = ("Resto del país", 2500, "5-7", 4000, "72-96 hs")

LOCAL_METHODS = ("pickup", "standard", "express")
CARRIER_PREFIX = "ca-"

# package estimate for carrier quotes and imports
GRAMS_PER_ITEM = 300
MIN_WEIGHT_GRAMS = 500
PACKAGE_CM = {"height": 10, "width": 20, "length": 30}


def postal_number(postal_code: str) -> int:
    """Numeric part of an Argentine postal code (``C1406`` -> 1406)."""
    code = (postal_code or "").strip()
    if not _POSTAL_RE.match(code):
        raise ValueError("Código postal inválido: {0!r}".format(postal_code))
    return int(code[-4:])


def region_for(postal_code: str) -> tuple:
    cp = postal_number(postal_code)
    for lo, hi, *rest in REGIONS:
        if lo <= cp <= hi:
            return tuple(rest)
    return DEFAULT_REGION


def calculate_shipping_options(postal_code: str) -> List[dict]:
    """Pickup, standard and express options for a destination postal code.

    Raises ``ValueError`` for malformed postal codes.
    """
    region, std_price, std_days, exp_price, exp_days = region_for(postal_code)
    return [
        {
            "id": "pickup",
            "name": "Retiro en tienda",
            "description": "Retirá tu pedido sin cargo",
            "price": Decimal("0"),
            "estimated_days": "Inmediato",
        },
        {
            "id": "standard",
            "name": "Envío estándar",
            "description": "Envío a domicilio ({0})".format(region),
            "price": Decimal(std_price),
            "estimated_days": "{0} días hábiles".format(std_days),
        },
        {
            "id": "express",
            "name": "Envío express",
            "description": "Envío prioritario ({0})".format(region),
            "price": Decimal(exp_price),
            "estimated_days": exp_days,
        },
    ]


def free_shipping_applies(store, subtotal=None) -> bool:
    if store is None or not store.free_shipping:
        return False
    threshold = store.free_shipping_min_amount
    if threshold is None or to_decimal(threshold) <= 0:
        return True
    return subtotal is not None and to_decimal(subtotal) >= to_decimal(threshold)


def apply_free_shipping(options: List[dict], store, subtotal=None) -> List[dict]:
    if not free_shipping_applies(store, subtotal):
        return options
    return [{**o, "price": Decimal("0")} for o in options]


def estimate_package(items_count: int) -> dict:
    weight = max(MIN_WEIGHT_GRAMS, int(items_count) * GRAMS_PER_ITEM)
    return {"weight": weight, **PACKAGE_CM}


def is_carrier_method(method: Optional[str]) -> bool:
    return bool(method) and method.startswith(CARRIER_PREFIX)
