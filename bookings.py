"""
Reservations: availability quotes, booking creation and the booking
lifecycle.

Double-booking is prevented in two layers. Creation re-reads the room's
active bookings right before writing, and every active booking also holds
one ``bookingnight`` document per calendar day of its closed stay interval.
The unique (roomSlug, night) index rejects the second of two concurrent
writers that both passed the read check, which then reports Conflict.
"""
import logging
import secrets
import string
import time
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, EmailStr, Field, field_validator
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import availability
from database import get_db, parse_object_id, to_storage, utc_now
from errors import AlreadyCancelled, Conflict, InvalidInput, NotFound, Unauthorized, Unavailable
from responses import api_response
from schemas import (
    BOOKING_STATUSES,
    PAYMENT_STATUSES,
    AdditionalService,
    Booking,
    BookingNight,
    CamelModel,
    GuestInfo,
)
from security import Identity, require_guest, require_staff

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])

INVOICE_ALPHABET = string.ascii_uppercase + string.digits


# ----- Models -----

class AvailabilityRequest(CamelModel):
    room_slug: Optional[str] = Field(None, validation_alias=AliasChoices("roomSlug", "roomId", "room_slug"))
    check_in: Optional[str] = Field(None, validation_alias=AliasChoices("checkIn", "checkInDate", "check_in"))
    check_out: Optional[str] = Field(None, validation_alias=AliasChoices("checkOut", "checkOutDate", "check_out"))


class GuestInfoIn(CamelModel):
    name: str
    email: EmailStr
    phone: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value


class BookingRequest(AvailabilityRequest):
    adults: Optional[int] = None
    children: int = 0
    guest_info: Optional[GuestInfoIn] = None
    special_requests: Optional[str] = None
    additional_services: List[AdditionalService] = Field(default_factory=list)


class StatusUpdate(CamelModel):
    status: Optional[str] = None


class PaymentStatusUpdate(CamelModel):
    payment_status: Optional[str] = Field(None, validation_alias=AliasChoices("paymentStatus", "status", "payment_status"))


# ----- Rules -----

def validate_status_change(current: str, new: Optional[str]) -> str:
    """Lifecycle rule for staff status updates.

    Any listed status may follow any other; a transition graph belongs here.
    """
    if new not in BOOKING_STATUSES:
        raise InvalidInput("Invalid status. Allowed: " + ", ".join(BOOKING_STATUSES))
    return new


def generate_invoice_number() -> str:
    suffix = "".join(secrets.choice(INVOICE_ALPHABET) for _ in range(9))
    return f"INV-{int(time.time() * 1000)}-{suffix}"


def _resolve_bookable_room(db: Database, data: AvailabilityRequest):
    if not data.room_slug or not data.check_in or not data.check_out:
        raise InvalidInput("Please provide room, check-in and check-out dates")
    check_in, check_out = availability.validate_stay(data.check_in, data.check_out)
    room = db["room"].find_one({"slug": data.room_slug})
    if not room:
        raise NotFound("Room not found")
    if not room.get("isAvailable", True):
        raise Unavailable()
    return room, check_in, check_out


def _validate_party(room: dict, data: BookingRequest) -> GuestInfo:
    if data.adults is None:
        raise InvalidInput("Number of adults is required")
    if data.adults < 1:
        raise InvalidInput("At least one adult is required")
    if data.children is None or data.children < 0:
        raise InvalidInput("Number of children cannot be negative")
    max_adults = room.get("maxAdults")
    if max_adults is not None and data.adults > max_adults:
        raise InvalidInput(f"Room capacity exceeded: at most {max_adults} adults")
    max_children = room.get("maxChildren")
    if max_children is not None and data.children > max_children:
        raise InvalidInput(f"Room capacity exceeded: at most {max_children} children")

    guest = data.guest_info
    if guest is None or not guest.name.strip() or not guest.phone.strip():
        raise InvalidInput("Guest name, email and phone are required")
    return GuestInfo(name=guest.name.strip(), email=guest.email.strip().lower(), phone=guest.phone.strip())


# ----- Store access -----

def active_bookings(db: Database, room_slug: str, exclude_id: Optional[ObjectId] = None) -> List[dict]:
    query = {"roomSlug": room_slug, "status": {"$ne": "cancelled"}}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return list(db["booking"].find(query))


def find_conflicts(db: Database, room_slug: str, check_in, check_out, exclude_id: Optional[ObjectId] = None) -> List[dict]:
    return availability.conflicting_bookings(active_bookings(db, room_slug, exclude_id), check_in, check_out)


def claim_nights(db: Database, booking_id: ObjectId, room_slug: str, check_in, check_out) -> List[ObjectId]:
    """Hold every day of the stay for ``booking_id``, all or nothing.

    Returns the ids of the claims written. A failed claim removes only the
    claims written by this call, never ones the booking already held.
    """
    claimed = []
    try:
        for night in availability.stay_days(check_in, check_out):
            claim = BookingNight(room_slug=room_slug, night=night, booking_id=str(booking_id))
            claimed.append(db["bookingnight"].insert_one(to_storage(claim)).inserted_id)
    except DuplicateKeyError:
        _drop_claims(db, claimed)
        logger.info("Night claim lost for room %s (%s to %s)", room_slug, check_in, check_out)
        raise Conflict()
    except PyMongoError:
        _drop_claims(db, claimed)
        raise
    return claimed


def _drop_claims(db: Database, claim_ids: List[ObjectId]) -> None:
    if claim_ids:
        db["bookingnight"].delete_many({"_id": {"$in": claim_ids}})


def release_nights(db: Database, booking_id: ObjectId) -> None:
    db["bookingnight"].delete_many({"bookingId": str(booking_id)})


def get_booking(db: Database, booking_id: str) -> dict:
    oid = parse_object_id(booking_id)
    booking = db["booking"].find_one({"_id": oid}) if oid else None
    if not booking:
        raise NotFound("Booking not found")
    return booking


def _owns(identity: Identity, booking: dict) -> bool:
    if booking.get("userId") == identity.id:
        return True
    return booking.get("guestInfo", {}).get("email") == identity.email.lower()


# ----- Operations -----

def check_availability(db: Database, data: AvailabilityRequest) -> dict:
    room, check_in, check_out = _resolve_bookable_room(db, data)
    nights = availability.count_nights(check_in, check_out)
    conflicts = find_conflicts(db, room["slug"], check_in, check_out)
    return {
        "available": not conflicts,
        "nights": nights,
        "pricePerNight": room["price"],
        "totalPrice": availability.quote_total(nights, room["price"]),
        "checkIn": check_in.isoformat(),
        "checkOut": check_out.isoformat(),
        "room": {"id": str(room["_id"]), "slug": room["slug"], "title": room["title"], "price": room["price"]},
    }


def create_booking(db: Database, data: BookingRequest, identity: Optional[Identity] = None) -> dict:
    room, check_in, check_out = _resolve_bookable_room(db, data)
    guest = _validate_party(room, data)

    if find_conflicts(db, room["slug"], check_in, check_out):
        raise Conflict()

    nights = availability.count_nights(check_in, check_out)
    booking = Booking(
        room_slug=room["slug"],
        room_title=room["title"],
        price_per_night=room["price"],
        check_in_date=check_in,
        check_out_date=check_out,
        nights=nights,
        adults=data.adults,
        children=data.children,
        total_price=availability.quote_total(nights, room["price"]),
        guest_info=guest,
        status="pending",
        payment_status="pending",
        invoice_number=generate_invoice_number(),
        special_requests=data.special_requests,
        additional_services=data.additional_services,
        user_id=identity.id if identity else None,
    )

    booking_id = ObjectId()
    claim_nights(db, booking_id, room["slug"], check_in, check_out)
    doc = to_storage(booking)
    now = utc_now()
    doc.update({"_id": booking_id, "createdAt": now, "updatedAt": now})
    try:
        db["booking"].insert_one(doc)
    except PyMongoError:
        release_nights(db, booking_id)
        raise
    logger.info("Booking %s created for room %s (%s to %s)", booking_id, room["slug"], check_in, check_out)
    return doc


def booking_summary(booking: dict) -> dict:
    return {
        "roomTitle": booking["roomTitle"],
        "nights": booking["nights"],
        "pricePerNight": booking["pricePerNight"],
        "totalPrice": booking["totalPrice"],
        "checkIn": availability.as_date(booking["checkInDate"]).isoformat(),
        "checkOut": availability.as_date(booking["checkOutDate"]).isoformat(),
        "status": booking["status"],
        "invoiceNumber": booking.get("invoiceNumber"),
    }


def list_bookings(
    db: Database, room: Optional[str] = None, status: Optional[str] = None, email: Optional[str] = None
) -> List[dict]:
    # no pagination: the full result set is returned
    query = {}
    if room:
        query["roomSlug"] = room
    if status:
        if status not in BOOKING_STATUSES:
            raise InvalidInput("Invalid status filter")
        query["status"] = status
    if email:
        query["guestInfo.email"] = email.strip().lower()
    return list(db["booking"].find(query).sort("createdAt", -1))


def list_own_bookings(db: Database, identity: Identity) -> List[dict]:
    query = {"$or": [{"userId": identity.id}, {"guestInfo.email": identity.email.lower()}]}
    return list(db["booking"].find(query).sort("createdAt", -1))


def get_booking_for(db: Database, booking_id: str, identity: Identity) -> dict:
    booking = get_booking(db, booking_id)
    if not identity.is_staff and not _owns(identity, booking):
        raise Unauthorized("You can only view your own bookings")
    return booking


def update_booking_status(db: Database, booking_id: str, new_status: Optional[str]) -> dict:
    booking = get_booking(db, booking_id)
    new_status = validate_status_change(booking["status"], new_status)
    was_active = booking["status"] != "cancelled"
    becomes_active = new_status != "cancelled"

    claimed = []
    if becomes_active and not was_active:
        check_in = availability.as_date(booking["checkInDate"])
        check_out = availability.as_date(booking["checkOutDate"])
        if find_conflicts(db, booking["roomSlug"], check_in, check_out, exclude_id=booking["_id"]):
            raise Conflict("Dates were booked since this booking was cancelled")
        claimed = claim_nights(db, booking["_id"], booking["roomSlug"], check_in, check_out)

    # only applies if nobody changed the status since it was read
    updated = db["booking"].find_one_and_update(
        {"_id": booking["_id"], "status": booking["status"]},
        {"$set": {"status": new_status, "updatedAt": utc_now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        _drop_claims(db, claimed)
        logger.info("Booking %s changed concurrently, %s -> %s refused", booking_id, booking["status"], new_status)
        raise Conflict("Booking was changed by another request, please retry")
    if was_active and not becomes_active:
        release_nights(db, booking["_id"])
    logger.info("Booking %s status %s -> %s", booking_id, booking["status"], new_status)
    return updated


def update_payment_status(db: Database, booking_id: str, payment_status: Optional[str]) -> dict:
    if payment_status not in PAYMENT_STATUSES:
        raise InvalidInput("Invalid payment status. Allowed: " + ", ".join(PAYMENT_STATUSES))
    oid = parse_object_id(booking_id)
    booking = db["booking"].find_one_and_update(
        {"_id": oid},
        {"$set": {"paymentStatus": payment_status, "updatedAt": utc_now()}},
        return_document=ReturnDocument.AFTER,
    ) if oid else None
    if not booking:
        raise NotFound("Booking not found")
    return booking


def cancel_booking(db: Database, booking_id: str, identity: Identity) -> dict:
    """Guest-facing cancellation; cancelling twice is rejected."""
    booking = get_booking(db, booking_id)
    if not identity.is_staff and not _owns(identity, booking):
        raise Unauthorized("You can only cancel your own bookings")
    if booking["status"] == "cancelled":
        raise AlreadyCancelled()
    updated = db["booking"].find_one_and_update(
        {"_id": booking["_id"], "status": {"$ne": "cancelled"}},
        {"$set": {"status": "cancelled", "updatedAt": utc_now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyCancelled()
    release_nights(db, booking["_id"])
    logger.info("Booking %s cancelled by %s", booking_id, identity.id)
    return updated


# ----- Endpoints -----

@router.post("/check-availability")
def post_check_availability(data: AvailabilityRequest, db: Database = Depends(get_db)):
    return api_response(check_availability(db, data))


@router.post("", status_code=status.HTTP_201_CREATED)
def post_booking(data: BookingRequest, identity: Identity = Depends(require_guest), db: Database = Depends(get_db)):
    booking = create_booking(db, data, identity)
    return api_response(
        {"booking": booking, "summary": booking_summary(booking)},
        "Booking created successfully",
    )


@router.get("")
def read_bookings(
    room: Optional[str] = None,
    status: Optional[str] = None,
    email: Optional[str] = None,
    staff: Identity = Depends(require_staff),
    db: Database = Depends(get_db),
):
    bookings = list_bookings(db, room=room, status=status, email=email)
    return api_response(bookings, count=len(bookings))


@router.get("/mine")
def read_own_bookings(identity: Identity = Depends(require_guest), db: Database = Depends(get_db)):
    bookings = list_own_bookings(db, identity)
    return api_response(bookings, count=len(bookings))


@router.get("/{booking_id}")
def read_booking(booking_id: str, identity: Identity = Depends(require_guest), db: Database = Depends(get_db)):
    return api_response(get_booking_for(db, booking_id, identity))


@router.patch("/{booking_id}/status")
def patch_booking_status(
    booking_id: str, data: StatusUpdate, staff: Identity = Depends(require_staff), db: Database = Depends(get_db)
):
    booking = update_booking_status(db, booking_id, data.status)
    return api_response(booking, "Booking status updated")


@router.patch("/{booking_id}/payment-status")
def patch_payment_status(
    booking_id: str, data: PaymentStatusUpdate, staff: Identity = Depends(require_staff), db: Database = Depends(get_db)
):
    booking = update_payment_status(db, booking_id, data.payment_status)
    return api_response(booking, "Payment status updated")


@router.delete("/{booking_id}")
def delete_booking(booking_id: str, identity: Identity = Depends(require_guest), db: Database = Depends(get_db)):
    booking = cancel_booking(db, booking_id, identity)
    return api_response(booking, "Booking cancelled successfully")
