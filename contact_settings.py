"""
Hotel contact details shown on the public site.

Stored as a single document keyed ``default``; reads create it with the
default values on first access through an upsert on the unique key, so
concurrent first reads cannot create two copies.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db, to_storage, utc_now
from responses import api_response
from schemas import CamelModel, ContactSettings
from security import Identity, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact-settings", tags=["contact-settings"])

SETTINGS_KEY = "default"


class LocationUpdate(CamelModel):
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class ServiceHoursUpdate(CamelModel):
    front_desk: Optional[str] = None
    room_service: Optional[str] = None
    concierge: Optional[str] = None
    spa: Optional[str] = None
    restaurant: Optional[str] = None


class ContactSettingsUpdate(CamelModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    location: Optional[LocationUpdate] = None
    service_hours: Optional[ServiceHoursUpdate] = None
    emergency_hotline: Optional[str] = None


def get_contact_settings(db: Database) -> dict:
    defaults = to_storage(ContactSettings(key=SETTINGS_KEY))
    defaults["createdAt"] = utc_now()
    return db["contactsettings"].find_one_and_update(
        {"key": SETTINGS_KEY},
        {"$setOnInsert": {**defaults, "updatedAt": defaults["createdAt"]}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def update_contact_settings(db: Database, data: ContactSettingsUpdate) -> dict:
    """Apply the non-empty fields; nested blocks merge key by key."""
    get_contact_settings(db)
    changes = {}
    for key, value in data.model_dump(by_alias=True, exclude_none=True).items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                if sub_value:
                    changes[f"{key}.{sub_key}"] = sub_value
        elif value:
            changes[key] = value
    changes["updatedAt"] = utc_now()
    settings_doc = db["contactsettings"].find_one_and_update(
        {"key": SETTINGS_KEY}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    logger.info("Contact settings updated: %s", sorted(k for k in changes if k != "updatedAt"))
    return settings_doc


@router.get("")
def read_contact_settings(db: Database = Depends(get_db)):
    return api_response(get_contact_settings(db))


@router.put("")
def put_contact_settings(
    data: ContactSettingsUpdate, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)
):
    return api_response(update_contact_settings(db, data), "Contact settings updated successfully")
