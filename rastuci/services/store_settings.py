from typing import Any, Dict

from sqlalchemy.orm import Session

from rastuci import config
from rastuci.models.settings import SETTINGS_ROW_ID, ContactSettings, StoreSettings

STORE_DEFAULTS = {
    "name": config.APP_NAME,
    "sender_name": config.APP_NAME,
    "address_city": "Buenos Aires",
    "address_province_code": "B",
    "address_postal_code": "1611",
    "free_shipping": False,
    "low_stock_threshold": 5,
}


def get_store_settings(db: Session) -> StoreSettings:
    """The single settings row, created with defaults on first access."""
    row = db.get(StoreSettings, SETTINGS_ROW_ID)
    if row is None:
        row = StoreSettings(id=SETTINGS_ROW_ID, **STORE_DEFAULTS)
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def get_contact_settings(db: Session) -> ContactSettings:
    row = db.get(ContactSettings, SETTINGS_ROW_ID)
    if row is None:
        row = ContactSettings(id=SETTINGS_ROW_ID, emails=[], phones=[])
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def update_settings(db: Session, row, changes: Dict[str, Any]):
    for field, value in changes.items():
        setattr(row, field, value)
    db.commit()
    db.refresh(row)
    return row


def store_to_dict(s: StoreSettings, public: bool = False) -> Dict[str, Any]:
    data = {
        "name": s.name,
        "sales_email": s.sales_email,
        "support_email": s.support_email,
        "phone": s.phone,
        "address": {
            "street": s.address_street,
            "number": s.address_number,
            "city": s.address_city,
            "province_code": s.address_province_code,
            "postal_code": s.address_postal_code,
        },
        "free_shipping": bool(s.free_shipping),
        "free_shipping_min_amount": float(s.free_shipping_min_amount) if s.free_shipping_min_amount is not None else None,
    }
    if not public:
        data.update({
            "admin_email": s.admin_email,
            "sender_name": s.sender_name,
            "low_stock_threshold": s.low_stock_threshold,
            "updated_at": s.updated_at.isoformat() if s.updated_at else None,
        })
    return data


def contact_to_dict(c: ContactSettings) -> Dict[str, Any]:
    return {
        "emails": list(c.emails or []),
        "phones": list(c.phones or []),
        "whatsapp": c.whatsapp,
        "instagram": c.instagram,
        "facebook": c.facebook,
        "address": c.address,
        "hours": c.hours,
    }
