"""
Page content for the public site: one document per known page, each with
ordered sections and SEO metadata.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db, to_storage, utc_now
from errors import InvalidInput, NotFound
from responses import api_response
from schemas import PAGE_NAMES, CamelModel, PageContent, PageMetadata, PageSection
from security import Identity, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/content", tags=["content"])


class PageContentUpdate(CamelModel):
    sections: Optional[List[PageSection]] = None
    metadata: Optional[PageMetadata] = None


def _check_page_name(page_name: str) -> None:
    if page_name not in PAGE_NAMES:
        raise InvalidInput(f"Unknown page '{page_name}'")


def _ordered(page: dict) -> dict:
    page["sections"] = sorted(page.get("sections", []), key=lambda section: section.get("order", 0))
    return page


def list_pages(db: Database) -> List[dict]:
    return [_ordered(page) for page in db["pagecontent"].find().sort("pageName", 1)]


def get_page(db: Database, page_name: str) -> dict:
    page = db["pagecontent"].find_one({"pageName": page_name})
    if not page:
        raise NotFound("Page content not found")
    return _ordered(page)


def save_page(db: Database, data: PageContent) -> dict:
    """Create or replace a page by name (upsert on the unique page name)."""
    doc = to_storage(data)
    now = utc_now()
    doc["updatedAt"] = now
    page = db["pagecontent"].find_one_and_update(
        {"pageName": data.page_name},
        {"$set": doc, "$setOnInsert": {"createdAt": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Saved page content '%s'", data.page_name)
    return _ordered(page)


def update_page(db: Database, page_name: str, data: PageContentUpdate) -> dict:
    _check_page_name(page_name)
    changes = to_storage(data.model_dump(by_alias=True, exclude_unset=True))
    changes["updatedAt"] = utc_now()
    page = db["pagecontent"].find_one_and_update(
        {"pageName": page_name}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not page:
        raise NotFound("Page content not found")
    return _ordered(page)


# ----- Endpoints -----

@router.get("")
def read_pages(db: Database = Depends(get_db)):
    return api_response(list_pages(db))


@router.get("/{page_name}")
def read_page(page_name: str, db: Database = Depends(get_db)):
    return api_response(get_page(db, page_name))


@router.post("")
def post_page(data: PageContent, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return api_response(save_page(db, data), "Page content saved successfully")


@router.post("/{page_name}")
def post_named_page(
    page_name: str, data: dict, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)
):
    _check_page_name(page_name)
    page = PageContent.model_validate({**data, "pageName": page_name})
    return api_response(save_page(db, page), "Page content saved successfully")


@router.put("/{page_name}")
def put_page(
    page_name: str, data: PageContentUpdate, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)
):
    return api_response(update_page(db, page_name, data), "Page content updated successfully")
