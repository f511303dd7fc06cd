from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.services.documents import content_disposition_utf8, order_receipt_pdf, receipt_filenames
from rastuci.services.orders import get_public_order, order_to_dict
from rastuci.services.store_settings import get_store_settings
from rastuci.utils.ratelimit import rate_limited
from rastuci.utils.responses import ok

router = APIRouter(prefix="/api/orders", tags=["orders"], dependencies=[Depends(rate_limited("api"))])


@router.get("/{order_id}")
def order_public(order_id: int, token: str = Query(...), db: Session = Depends(get_db)):
    order = get_public_order(db, order_id, token)
    data = order_to_dict(order)
    # internal carrier errors stay in the back-office
    data.pop("ca_import_error", None)
    return ok(data)


@router.get("/{order_id}/receipt.pdf")
def order_receipt(order_id: int, token: str = Query(...), db: Session = Depends(get_db)):
    order = get_public_order(db, order_id, token)
    buf = order_receipt_pdf(order, get_store_settings(db).name)
    pretty, fallback = receipt_filenames(order)
    headers = {"Content-Disposition": content_disposition_utf8(pretty, fallback)}
    return StreamingResponse(buf, media_type="application/pdf", headers=headers)
