"""
Database Schemas for the Hotel backend

Each Pydantic model represents a collection in MongoDB. The collection
name is the lowercase of the class name.

- User -> "user"
- Room -> "room"
- Booking -> "booking"
- BookingNight -> "bookingnight"
- PageContent -> "pagecontent"
- BlogPost -> "blogpost"
- Expense -> "expense"
- ContactSettings -> "contactsettings"

Documents are stored with the same camelCase keys the API speaks.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire and in storage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class UserRole(str, Enum):
    GUEST = "guest"
    STAFF = "staff"
    ADMIN = "admin"


BookingStatus = Literal["pending", "confirmed", "checked-in", "checked-out", "cancelled"]
PaymentStatus = Literal["pending", "paid", "refunded"]
PostStatus = Literal["draft", "published"]
PageName = Literal["home", "about", "rooms", "blog", "explore", "contact", "site-settings", "booking-settings"]
ExpenseCategory = Literal[
    "utilities",
    "maintenance",
    "supplies",
    "food-beverage",
    "staff-salary",
    "marketing",
    "cleaning",
    "laundry",
    "technology",
    "insurance",
    "taxes",
    "other",
]
PaymentMethod = Literal["cash", "card", "bank-transfer", "check", "other"]
ExpenseStatus = Literal["pending", "approved", "rejected"]
HousekeepingStatus = Literal["available", "occupied", "cleaning", "maintenance"]

BOOKING_STATUSES = ("pending", "confirmed", "checked-in", "checked-out", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "refunded")
PAGE_NAMES = ("home", "about", "rooms", "blog", "explore", "contact", "site-settings", "booking-settings")


# ----- Users -----

class User(CamelModel):
    """Users collection schema"""
    email: EmailStr = Field(..., description="Unique, stored lower-cased")
    password_hash: Optional[str] = Field(None, description="BCrypt hash for email/password users")
    name: str = Field(..., description="Display name")
    phone: Optional[str] = None
    role: UserRole = Field(UserRole.GUEST, description="Role")
    is_active: bool = Field(True, description="Whether user can sign in")
    auth_provider: Literal["local", "google"] = "local"
    google_id: Optional[str] = Field(None, description="External identity reference")
    avatar: Optional[str] = None


# ----- Rooms -----

class RoomSpecs(CamelModel):
    bed: Optional[str] = None
    capacity: Optional[str] = None
    size: Optional[str] = None
    view: Optional[str] = None


class SeasonalPrice(CamelModel):
    name: str
    start_date: date
    end_date: date
    price: float = Field(..., ge=0)


class Room(CamelModel):
    """Rooms collection schema"""
    slug: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("slug", "id"),
        description="External identifier used in URLs and bookings",
    )
    title: str
    subtitle: Optional[str] = None
    price: float = Field(..., ge=0, description="Nightly price")
    hero_image: Optional[str] = None
    description: List[str] = Field(default_factory=list)
    specs: RoomSpecs = Field(default_factory=RoomSpecs)
    max_adults: Optional[int] = Field(None, ge=1)
    max_children: Optional[int] = Field(None, ge=0)
    gallery: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    is_available: bool = True
    room_number: Optional[str] = None
    floor: Optional[int] = None
    housekeeping_status: HousekeepingStatus = "available"
    seasonal_pricing: List[SeasonalPrice] = Field(default_factory=list)


# ----- Bookings -----

class GuestInfo(CamelModel):
    name: str
    email: str
    phone: str


class AdditionalService(CamelModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class Booking(CamelModel):
    """Bookings collection schema; title and price are snapshots of the room"""
    room_slug: str
    room_title: str
    price_per_night: float
    check_in_date: date
    check_out_date: date
    nights: int
    adults: int
    children: int = 0
    total_price: float
    guest_info: GuestInfo
    status: BookingStatus = "pending"
    payment_status: PaymentStatus = "pending"
    invoice_number: Optional[str] = None
    special_requests: Optional[str] = None
    additional_services: List[AdditionalService] = Field(default_factory=list)
    user_id: Optional[str] = Field(None, description="Account that made the booking")


class BookingNight(CamelModel):
    """One calendar day held by an active booking; unique per (room, night)"""
    room_slug: str
    night: date
    booking_id: str


# ----- Page content -----

class PageSection(CamelModel):
    section_id: str
    section_name: str
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    hero_image: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    button_text: Optional[str] = None
    button_link: Optional[str] = None
    items: List[Any] = Field(default_factory=list)
    is_visible: bool = True
    order: int = 0


class PageMetadata(CamelModel):
    page_title: str
    page_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class PageContent(CamelModel):
    """Page content collection schema, one document per page"""
    page_name: PageName
    sections: List[PageSection] = Field(default_factory=list)
    metadata: PageMetadata


# ----- Blog -----

class BlogAuthor(CamelModel):
    name: str
    avatar: Optional[str] = None


class CommentAuthor(CamelModel):
    kind: Literal["user", "anonymous"]
    user_id: Optional[str] = None
    name: str
    email: str


class Reply(CamelModel):
    id: str
    author: CommentAuthor
    content: str
    created_at: datetime


class Comment(CamelModel):
    id: str
    author: CommentAuthor
    content: str
    created_at: datetime
    likes: List[str] = Field(default_factory=list, description="User ids that liked the comment")
    replies: List[Reply] = Field(default_factory=list)


class BlogPost(CamelModel):
    """Blog posts collection schema"""
    title: str
    slug: str
    excerpt: str
    content: str
    hero_image: str
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    author: BlogAuthor
    published_at: Optional[datetime] = None
    status: PostStatus = "draft"
    comments: List[Comment] = Field(default_factory=list)
    comments_revision: int = 0


# ----- Expenses -----

class Expense(CamelModel):
    """Expenses collection schema"""
    category: ExpenseCategory
    subcategory: Optional[str] = None
    amount: float = Field(..., ge=0)
    description: str
    date: datetime
    payment_method: PaymentMethod = "cash"
    vendor: Optional[str] = None
    receipt_url: Optional[str] = None
    status: ExpenseStatus = "pending"
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    created_by: str


# ----- Contact settings -----

class ContactLocation(CamelModel):
    address: str = "Perissa Beach"
    city: str = "Santorini"
    country: str = "Greece"
    postal_code: str = "84703"


class ServiceHours(CamelModel):
    front_desk: str = "24/7"
    room_service: str = "24/7"
    concierge: str = "7am - 11pm"
    spa: str = "9am - 8pm"
    restaurant: str = "7am - 10pm"


class ContactSettings(CamelModel):
    """Singleton settings document, addressed by ``key``"""
    key: str = "default"
    phone: str = "+30 228 601 2345"
    email: str = "concierge@hotelbeach.com"
    location: ContactLocation = Field(default_factory=ContactLocation)
    service_hours: ServiceHours = Field(default_factory=ServiceHours)
    emergency_hotline: str = "+30 228 601 2345"
