from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.integrations import correo_argentino
from rastuci.integrations.correo_argentino import CorreoArgentinoError
from rastuci.models.order import Order
from rastuci.schemas import TrackingIn
from rastuci.services.documents import STATUS_LABELS_ES
from rastuci.utils.logs import get_logger
from rastuci.utils.ratelimit import enforce_rate_limit
from rastuci.utils.responses import ApiError, ok

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tracking", tags=["tracking"])

MAX_TRACKING_LENGTH = 50


def _last_event(data) -> Optional[dict]:
    """Most recent event of a MiCorreo tracking answer (list or single shipment)."""
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return None
    events = data.get("events") or data.get("eventos") or []
    if events:
        return events[-1] if isinstance(events[-1], dict) else None
    return data if (data.get("status") or data.get("event")) else None


def validate_tracking(db: Session, number: str) -> dict:
    result = {
        "isValid": False,
        "exists": False,
        "trackingNumber": number,
        "status": None,
        "description": None,
        "lastUpdate": None,
        "error": None,
    }
    try:
        event = _last_event(correo_argentino.get_client().get_tracking(number))
    except CorreoArgentinoError as e:
        logger.warning("Carrier tracking failed for %s: %s", number, e.message, extra={"code": e.code})
        event = None

    if event:
        result.update({
            "isValid": True,
            "exists": True,
            "status": event.get("status") or event.get("event"),
            "description": event.get("description") or event.get("event"),
            "lastUpdate": event.get("date"),
        })
        return result

    order = db.query(Order).filter(Order.tracking_number == number).first()
    if order is not None:
        result.update({
            "isValid": True,
            "exists": True,
            "status": order.status,
            "description": STATUS_LABELS_ES.get(order.status, order.status),
            "lastUpdate": order.status_changed_at.isoformat() if order.status_changed_at else None,
        })
        return result

    result["error"] = "El número de seguimiento no existe o no se puede validar en este momento"
    return result


def _checked_number(number: Optional[str]) -> str:
    number = (number or "").strip()
    if not number:
        raise ApiError(400, "Número de seguimiento requerido")
    if len(number) > MAX_TRACKING_LENGTH:
        raise ApiError(400, "Número de seguimiento muy largo")
    return number


@router.get("/validate")
def validate_get(request: Request, number: Optional[str] = Query(None), db: Session = Depends(get_db)):
    enforce_rate_limit(request, "tracking")
    data = validate_tracking(db, _checked_number(number))
    return ok(data, "Seguimiento validado" if data["isValid"] else "Seguimiento no encontrado")


@router.post("/validate")
def validate_post(body: TrackingIn, request: Request, db: Session = Depends(get_db)):
    enforce_rate_limit(request, "tracking")
    data = validate_tracking(db, _checked_number(body.tracking_number))
    return ok(data, "Seguimiento validado" if data["isValid"] else "Seguimiento no encontrado")
