"""
Operating expenses ledger (admin only) with per-category summaries.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, parse_object_id, to_storage, utc_now
from errors import InvalidInput, NotFound
from responses import api_response
from schemas import CamelModel, Expense, ExpenseCategory, ExpenseStatus, PaymentMethod
from security import Identity, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


class ExpenseIn(CamelModel):
    category: ExpenseCategory
    subcategory: Optional[str] = None
    amount: float = Field(..., ge=0)
    description: str = Field(..., min_length=1)
    date: datetime
    payment_method: PaymentMethod = "cash"
    vendor: Optional[str] = None
    receipt_url: Optional[str] = None
    status: ExpenseStatus = "pending"
    notes: Optional[str] = None


class ExpenseUpdate(CamelModel):
    category: Optional[ExpenseCategory] = None
    subcategory: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    vendor: Optional[str] = None
    receipt_url: Optional[str] = None
    status: Optional[ExpenseStatus] = None
    notes: Optional[str] = None


def _date_query(start_date: Optional[datetime], end_date: Optional[datetime]) -> dict:
    bounds = to_storage({"$gte": start_date, "$lte": end_date})
    bounds = {op: value for op, value in bounds.items() if value is not None}
    if len(bounds) == 2 and bounds["$gte"] > bounds["$lte"]:
        raise InvalidInput("startDate must not be after endDate")
    return {"date": bounds} if bounds else {}


def _sum_by(expenses: Iterable[dict], field: str) -> Dict[str, float]:
    totals = defaultdict(float)
    for expense in expenses:
        totals[expense.get(field)] += expense.get("amount", 0)
    return dict(totals)


def _populate_people(db: Database, expenses: List[dict]) -> List[dict]:
    """Replace createdBy/approvedBy ids with ``{id, name, email}``."""
    ids = {
        parse_object_id(expense[field])
        for expense in expenses
        for field in ("createdBy", "approvedBy")
        if expense.get(field)
    }
    ids.discard(None)
    people = {
        str(user["_id"]): {"id": str(user["_id"]), "name": user.get("name"), "email": user.get("email")}
        for user in db["user"].find({"_id": {"$in": list(ids)}}, {"name": 1, "email": 1})
    }
    for expense in expenses:
        for field in ("createdBy", "approvedBy"):
            if expense.get(field):
                expense[field] = people.get(expense[field], {"id": expense[field]})
    return expenses


def list_expenses(
    db: Database,
    category: Optional[str] = None,
    status_filter: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> dict:
    query = _date_query(start_date, end_date)
    if category:
        query["category"] = category
    if status_filter:
        query["status"] = status_filter
    expenses = list(db["expense"].find(query).sort("date", -1))
    return {
        "count": len(expenses),
        "total": sum(expense.get("amount", 0) for expense in expenses),
        "byCategory": _sum_by(expenses, "category"),
        "expenses": _populate_people(db, expenses),
    }


def expense_stats(db: Database, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> dict:
    expenses = list(db["expense"].find(_date_query(start_date, end_date)))
    count_by_status = defaultdict(int)
    for expense in expenses:
        count_by_status[expense.get("status")] += 1
    return {
        "total": sum(expense.get("amount", 0) for expense in expenses),
        "count": len(expenses),
        "byCategory": _sum_by(expenses, "category"),
        "byStatus": _sum_by(expenses, "status"),
        "countByStatus": dict(count_by_status),
        "byPaymentMethod": _sum_by(expenses, "paymentMethod"),
    }


def get_expense(db: Database, expense_id: str) -> dict:
    oid = parse_object_id(expense_id)
    expense = db["expense"].find_one({"_id": oid}) if oid else None
    if not expense:
        raise NotFound("Expense not found")
    return _populate_people(db, [expense])[0]


def create_expense(db: Database, data: ExpenseIn, identity: Identity) -> dict:
    expense = Expense(**data.model_dump(), created_by=identity.id)
    if expense.status != "pending":
        expense.approved_by = identity.id
    expense_id = create_document(db, "expense", expense)
    logger.info("Expense %s recorded by %s: %s %.2f", expense_id, identity.id, expense.category, expense.amount)
    return get_expense(db, expense_id)


def update_expense(db: Database, expense_id: str, data: ExpenseUpdate, identity: Identity) -> dict:
    changes = to_storage(data.model_dump(by_alias=True, exclude_unset=True))
    # approving or rejecting records who did it
    if changes.get("status") and changes["status"] != "pending":
        changes["approvedBy"] = identity.id
    changes["updatedAt"] = utc_now()
    oid = parse_object_id(expense_id)
    expense = db["expense"].find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    ) if oid else None
    if not expense:
        raise NotFound("Expense not found")
    return _populate_people(db, [expense])[0]


def delete_expense(db: Database, expense_id: str) -> None:
    oid = parse_object_id(expense_id)
    result = db["expense"].delete_one({"_id": oid}) if oid else None
    if result is None or result.deleted_count == 0:
        raise NotFound("Expense not found")


# ----- Endpoints -----

@router.get("/stats/summary")
def read_expense_stats(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    admin: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return api_response(expense_stats(db, start_date, end_date))


@router.get("")
def read_expenses(
    category: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    admin: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    result = list_expenses(db, category, status, start_date, end_date)
    return api_response(
        result["expenses"], count=result["count"], total=result["total"], byCategory=result["byCategory"]
    )


@router.get("/{expense_id}")
def read_expense(expense_id: str, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return api_response(get_expense(db, expense_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def post_expense(data: ExpenseIn, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return api_response(create_expense(db, data, admin), "Expense created successfully")


@router.put("/{expense_id}")
def put_expense(
    expense_id: str, data: ExpenseUpdate, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)
):
    return api_response(update_expense(db, expense_id, data, admin), "Expense updated successfully")


@router.delete("/{expense_id}")
def remove_expense(expense_id: str, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    delete_expense(db, expense_id)
    return api_response(message="Expense deleted successfully")
