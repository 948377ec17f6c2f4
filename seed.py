"""
Seed a fresh database with demo accounts, rooms and page content.

Safe to re-run: existing users, rooms and pages are left untouched.

    python seed.py
"""
import logging
from typing import List

from pymongo.database import Database

from database import create_document, ensure_indexes, get_db
from logging_config import setup_logging
from schemas import ContactSettings, PageContent, Room, User, UserRole
from security import hash_password

logger = logging.getLogger("seed")

DEMO_USERS = [
    ("admin@hotel.com", "admin123", "Admin User", UserRole.ADMIN),
    ("staff@hotel.com", "staff123", "Staff User", UserRole.STAFF),
    ("guest@hotel.com", "guest123", "Guest User", UserRole.GUEST),
]

_AMENITIES = [
    "40-inch Samsung® LED TV",
    "Electronic safe with charging facility",
    "Iron and ironing board",
    "Mini bar",
    "Non-smoking",
    "Wired and wireless broadband Internet access",
    "Work desk",
]

_SERVICES = [
    "Free-to-use smartphone (Free)",
    "Safe-deposit box (Free)",
    "Luggage storage (Free)",
    "Massage ($15 / Once / Per Guest)",
]

ROOMS = [
    Room(
        slug="superior-room",
        title="Superior Room",
        subtitle="Great for business trip",
        price=199,
        hero_image="https://images.unsplash.com/photo-1590490359683-658d3d23f972",
        description=["Great choice for a relaxing vacation for families with children or a group of friends."],
        specs={"bed": "Twins Bed", "capacity": "2 Adults 1 Children", "size": "30m²", "view": "Sea view"},
        max_adults=2,
        max_children=1,
        amenities=_AMENITIES,
        services=_SERVICES,
        room_number="101",
        floor=1,
    ),
    Room(
        slug="deluxe-room",
        title="Deluxe Room",
        subtitle="Great for business trip",
        price=249,
        hero_image="https://images.unsplash.com/photo-1582719478250-c89cae4dc85b",
        description=["Great choice for a relaxing vacation for families with children or a group of friends."],
        specs={"bed": "King Bed", "capacity": "3 Adults 1 Children", "size": "55m²", "view": "Sea view"},
        max_adults=4,
        max_children=2,
        amenities=_AMENITIES,
        services=_SERVICES,
        room_number="201",
        floor=2,
    ),
    Room(
        slug="signature-suite",
        title="Signature Suite",
        subtitle="Private terrace over the caldera",
        price=459,
        hero_image="https://images.unsplash.com/photo-1578683010236-d716f9a3f461",
        description=["Our largest suite, with a living area and a private terrace."],
        specs={"bed": "King Bed", "capacity": "4 Adults 2 Children", "size": "90m²", "view": "Caldera view"},
        max_adults=4,
        max_children=2,
        amenities=_AMENITIES,
        services=_SERVICES,
        room_number="301",
        floor=3,
    ),
]

PAGES = [
    PageContent(
        page_name="home",
        sections=[
            {
                "sectionId": "hero",
                "sectionName": "Hero",
                "title": "Welcome to Hotel Beach",
                "subtitle": "Seaside rooms on Perissa Beach",
                "buttonText": "Book now",
                "buttonLink": "/rooms",
                "order": 0,
            },
            {
                "sectionId": "rooms",
                "sectionName": "Featured rooms",
                "title": "Rooms & Suites",
                "order": 1,
            },
        ],
        metadata={"pageTitle": "Hotel Beach", "keywords": ["hotel", "santorini", "beach"]},
    ),
    PageContent(
        page_name="contact",
        sections=[
            {"sectionId": "hero", "sectionName": "Hero", "title": "Contact us", "order": 0},
        ],
        metadata={"pageTitle": "Contact | Hotel Beach"},
    ),
]


def seed_users(db: Database) -> List[str]:
    created = []
    for email, password, name, role in DEMO_USERS:
        if db["user"].find_one({"email": email}):
            logger.info("User %s already exists", email)
            continue
        create_document(db, "user", User(email=email, password_hash=hash_password(password), name=name, role=role))
        created.append(email)
        logger.info("Created %s user %s", role.value, email)
    if created:
        logger.warning("Demo accounts use default passwords; change them after first login")
    return created


def seed_rooms(db: Database) -> List[str]:
    created = []
    for room in ROOMS:
        if db["room"].find_one({"slug": room.slug}):
            continue
        create_document(db, "room", room)
        created.append(room.slug)
    logger.info("Rooms created: %s", created or "none")
    return created


def seed_content(db: Database) -> List[str]:
    created = []
    for page in PAGES:
        if db["pagecontent"].find_one({"pageName": page.page_name}):
            continue
        create_document(db, "pagecontent", page)
        created.append(page.page_name)
    if not db["contactsettings"].find_one({"key": "default"}):
        create_document(db, "contactsettings", ContactSettings())
        created.append("contact-settings")
    logger.info("Content created: %s", created or "none")
    return created


def seed(db: Database) -> dict:
    ensure_indexes(db)
    return {
        "users": seed_users(db),
        "rooms": seed_rooms(db),
        "content": seed_content(db),
    }


if __name__ == "__main__":
    setup_logging()
    seed(get_db())
