from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.services.catalog import suggest as suggest_items
from rastuci.utils.ratelimit import rate_limited
from rastuci.utils.responses import ok

router = APIRouter(prefix="/api/search", tags=["search"], dependencies=[Depends(rate_limited("api"))])


@router.get("/suggest")
def suggest(
    q: str = Query(""),
    limit: int = Query(8, ge=1, le=20),
    db: Session = Depends(get_db),
):
    return ok(suggest_items(db, q, limit))
