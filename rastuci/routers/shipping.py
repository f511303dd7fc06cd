from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.integrations import correo_argentino
from rastuci.integrations.correo_argentino import CorreoArgentinoError
from rastuci.schemas import CarrierQuoteIn
from rastuci.services.shipping import apply_free_shipping, calculate_shipping_options, estimate_package, postal_number
from rastuci.services.store_settings import get_store_settings
from rastuci.utils.logs import get_logger
from rastuci.utils.ratelimit import rate_limited
from rastuci.utils.responses import ApiError, ok

logger = get_logger(__name__)

router = APIRouter(prefix="/api/shipping", tags=["shipping"], dependencies=[Depends(rate_limited("api"))])


def _carrier_error(e: CorreoArgentinoError) -> ApiError:
    status = 503 if e.code in ("CONFIG_ERROR", "AUTH_FAILED") else 502
    return ApiError(status, e.message, e.code)


@router.get("/calculate")
def calculate(
    postal_code: str = Query(...),
    subtotal: Optional[float] = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    try:
        options = calculate_shipping_options(postal_code)
    except ValueError:
        raise ApiError(400, "Código postal inválido", "INVALID_POSTAL_CODE")
    options = apply_free_shipping(options, get_store_settings(db), subtotal)
    return ok([{**o, "price": float(o["price"])} for o in options])


@router.post("/correo-argentino/calculate")
def carrier_quote(body: CarrierQuoteIn, db: Session = Depends(get_db)):
    try:
        postal_number(body.postal_code)
    except ValueError:
        raise ApiError(400, "Código postal inválido", "INVALID_POSTAL_CODE")
    store = get_store_settings(db)
    package = estimate_package(body.items_count)
    try:
        rates = correo_argentino.get_client().get_rates(
            postal_code_origin=store.address_postal_code,
            postal_code_destination=body.postal_code.strip().upper(),
            dimensions=package,
            delivered_type=body.delivered_type,
        )
    except CorreoArgentinoError as e:
        logger.warning("Rate quote failed: %s", e.message, extra={"code": e.code})
        raise _carrier_error(e)
    return ok(rates)


@router.get("/agencies")
def agencies(province_code: str = Query(..., min_length=1, max_length=1)):
    try:
        rows = correo_argentino.get_client().get_agencies(province_code.upper())
    except CorreoArgentinoError as e:
        logger.warning("Agency lookup failed: %s", e.message, extra={"code": e.code})
        raise _carrier_error(e)
    return ok(rows)
