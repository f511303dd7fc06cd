from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.schemas import ContactSettingsIn, StoreSettingsIn
from rastuci.services.store_settings import (
    contact_to_dict, get_contact_settings, get_store_settings, store_to_dict, update_settings,
)
from rastuci.utils.responses import ok

router = APIRouter(prefix="/api/admin/settings", tags=["admin-settings"])


@router.get("/store")
def store_get(db: Session = Depends(get_db)):
    return ok(store_to_dict(get_store_settings(db)))


@router.put("/store")
def store_put(body: StoreSettingsIn, db: Session = Depends(get_db)):
    row = update_settings(db, get_store_settings(db), body.model_dump(exclude_unset=True))
    return ok(store_to_dict(row), "Configuración guardada")


@router.get("/contact")
def contact_get(db: Session = Depends(get_db)):
    return ok(contact_to_dict(get_contact_settings(db)))


@router.put("/contact")
def contact_put(body: ContactSettingsIn, db: Session = Depends(get_db)):
    row = update_settings(db, get_contact_settings(db), body.model_dump(exclude_unset=True))
    return ok(contact_to_dict(row), "Configuración guardada")
