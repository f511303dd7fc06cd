from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.services.store_settings import contact_to_dict, get_contact_settings, get_store_settings, store_to_dict
from rastuci.utils.responses import ok

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/store")
def store_public(db: Session = Depends(get_db)):
    return ok(store_to_dict(get_store_settings(db), public=True))


@router.get("/contact")
def contact_public(db: Session = Depends(get_db)):
    return ok(contact_to_dict(get_contact_settings(db)))
