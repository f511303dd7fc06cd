from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.schemas import CheckoutIn
from rastuci.services import cart as carts
from rastuci.services.checkout import process_checkout
from rastuci.utils.ratelimit import rate_limited

router = APIRouter(prefix="/api", tags=["checkout"])


@router.post("/checkout", dependencies=[Depends(rate_limited("order"))])
def checkout(body: CheckoutIn, request: Request, db: Session = Depends(get_db)):
    result = process_checkout(db, body, origin=request.headers.get("origin"))
    if result.get("orderId"):
        carts.set_cart(request.session, {})
    return result
