"""
Room catalog.

Rooms carry two identifiers: the storage ObjectId and the public ``slug``
used in URLs and bookings. Lookups try the ObjectId first.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import availability
from database import create_document, get_db, parse_object_id, to_storage, utc_now
from errors import InvalidInput, NotFound
from responses import api_response
from schemas import CamelModel, HousekeepingStatus, Room, RoomSpecs, SeasonalPrice
from security import Identity, get_optional_user, require_admin, require_staff

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


class RoomUpdate(CamelModel):
    """Partial room update; the slug is fixed once bookings reference it."""
    title: Optional[str] = None
    subtitle: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    hero_image: Optional[str] = None
    description: Optional[List[str]] = None
    specs: Optional[RoomSpecs] = None
    max_adults: Optional[int] = Field(None, ge=1)
    max_children: Optional[int] = Field(None, ge=0)
    gallery: Optional[List[str]] = None
    amenities: Optional[List[str]] = None
    services: Optional[List[str]] = None
    is_available: Optional[bool] = None
    room_number: Optional[str] = None
    floor: Optional[int] = None
    housekeeping_status: Optional[HousekeepingStatus] = None
    seasonal_pricing: Optional[List[SeasonalPrice]] = None


def find_room(db: Database, room_id: str) -> Optional[dict]:
    """Look a room up by storage id, falling back to its slug."""
    oid = parse_object_id(room_id)
    if oid is not None:
        room = db["room"].find_one({"_id": oid})
        if room:
            return room
    return db["room"].find_one({"slug": room_id})


def get_room(db: Database, room_id: str) -> dict:
    room = find_room(db, room_id)
    if not room:
        raise NotFound("Room not found")
    return room


def list_rooms(db: Database, identity: Optional[Identity]) -> List[dict]:
    # any signed-in caller sees unavailable rooms too
    query = {} if identity else {"isAvailable": True}
    return list(db["room"].find(query).sort("price", 1))


def rooms_available_between(db: Database, check_in, check_out) -> List[dict]:
    """Bookable rooms with no active booking overlapping the range, each
    with a price quote for the stay."""
    start, end = availability.validate_stay(check_in, check_out)
    rooms = list(db["room"].find({"isAvailable": True}).sort("price", 1))
    slugs = [room["slug"] for room in rooms]
    active = db["booking"].find({"roomSlug": {"$in": slugs}, "status": {"$ne": "cancelled"}})
    taken = {booking["roomSlug"] for booking in availability.conflicting_bookings(active, start, end)}

    nights = availability.count_nights(start, end)
    free = []
    for room in rooms:
        if room["slug"] in taken:
            continue
        room["nights"] = nights
        room["totalPrice"] = availability.quote_total(nights, room["price"])
        free.append(room)
    return free


def create_room(db: Database, data: Room) -> dict:
    if db["room"].find_one({"slug": data.slug}):
        raise InvalidInput(f"Room with id '{data.slug}' already exists")
    try:
        room_id = create_document(db, "room", data)
    except DuplicateKeyError:
        raise InvalidInput(f"Room with id '{data.slug}' already exists")
    return db["room"].find_one({"_id": parse_object_id(room_id)})


def update_room(db: Database, room_id: str, data: RoomUpdate) -> dict:
    changes = to_storage(data.model_dump(by_alias=True, exclude_unset=True))
    changes["updatedAt"] = utc_now()
    room = get_room(db, room_id)
    return db["room"].find_one_and_update(
        {"_id": room["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )


def delete_room(db: Database, room_id: str) -> dict:
    room = get_room(db, room_id)
    db["room"].delete_one({"_id": room["_id"]})
    logger.info("Deleted room %s", room["slug"])
    return room


# ----- Endpoints -----

@router.get("")
def read_rooms(identity: Optional[Identity] = Depends(get_optional_user), db: Database = Depends(get_db)):
    rooms = list_rooms(db, identity)
    return api_response(rooms, count=len(rooms))


@router.get("/available")
def read_available_rooms(
    check_in: Optional[str] = Query(None, alias="checkIn"),
    check_out: Optional[str] = Query(None, alias="checkOut"),
    db: Database = Depends(get_db),
):
    rooms = rooms_available_between(db, check_in, check_out)
    return api_response(rooms, count=len(rooms))


@router.get("/{room_id}")
def read_room(room_id: str, db: Database = Depends(get_db)):
    return api_response(get_room(db, room_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def post_room(data: Room, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    room = create_room(db, data)
    logger.info("Admin %s created room %s", admin.id, room["slug"])
    return api_response(room, "Room created successfully")


@router.put("/{room_id}")
def put_room(
    room_id: str, data: RoomUpdate, staff: Identity = Depends(require_staff), db: Database = Depends(get_db)
):
    return api_response(update_room(db, room_id, data), "Room updated successfully")


@router.delete("/{room_id}")
def remove_room(room_id: str, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    delete_room(db, room_id)
    return api_response(message="Room deleted successfully")
