"""
Payroll ledger.

Each employee carries a salary, the amount paid so far this month and a
payment history. `salaryStatus` is always derived from salary and
paidAmount. Writes that depend on the current paidAmount/salary use a
compare-and-swap filter on both fields so concurrent admin edits cannot
lose a payment.
"""

import logging
import random
import re
import string
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

import config
from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import ConflictError, DuplicateKeyError, NotFoundError, ValidationError
from schemas import Employee, EmployeeCreate, EmployeeUpdate, PaymentEntry, PayrollReset, to_paise

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5
UNIQUE_FIELDS = ("employeeId", "aadhaar")
MONTH_YEAR_RE = re.compile(r"^(1[0-2]|[1-9])-\d{4}$")


class PaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)


class MonthlyReset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_month_year: str = Field(..., alias="currentMonthYear")

    @field_validator("current_month_year")
    @classmethod
    def valid_month_year(cls, v):
        v = v.strip()
        if not MONTH_YEAR_RE.match(v):
            raise ValueError("currentMonthYear must look like M-YYYY, e.g. 7-2025")
        return v


def derive_salary_status(salary: float, paid_amount: float) -> str:
    if to_paise(paid_amount) >= to_paise(salary):
        return "paid"
    if paid_amount > 0:
        return "partially_paid"
    return "unpaid"


def generate_employee_id() -> str:
    return "EMP-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=8))


def payroll_month(now: Optional[datetime] = None) -> str:
    now = (now or utcnow()).astimezone(ZoneInfo(config.PAYROLL_TIMEZONE))
    return f"{now.month}-{now.year}"


def history_entry(amount: float, now: Optional[datetime] = None, month_year: Optional[str] = None) -> dict:
    now = (now or utcnow()).astimezone(ZoneInfo(config.PAYROLL_TIMEZONE))
    entry = PaymentEntry(
        date=now.strftime("%d-%m-%Y"),
        time=now.strftime("%I:%M %p"),
        timestamp=now.astimezone(timezone.utc),
        month_year=month_year or payroll_month(now),
        amount=amount,
    )
    return entry.model_dump(by_alias=True)


def _duplicate_field(exc: MongoDuplicateKeyError) -> str:
    details = exc.details or {}
    for key in ("keyPattern", "keyValue"):
        if details.get(key):
            return next(iter(details[key]))
    message = str(exc)
    for field in UNIQUE_FIELDS:
        if field in message:
            return field
    return "key"


def _find(db, employee_id: str) -> dict:
    doc = db["employee"].find_one({"_id": to_object_id(employee_id)})
    if not doc:
        raise NotFoundError("Employee not found")
    return doc


def create_employee(db, payload: EmployeeCreate, now: Optional[datetime] = None) -> dict:
    employee_id = payload.employee_id or generate_employee_id()
    for field, value in (("employeeId", employee_id), ("aadhaar", payload.aadhaar)):
        if db["employee"].find_one({field: value}):
            raise DuplicateKeyError(field)

    now = now or utcnow()
    history = [history_entry(payload.paid_amount, now)] if payload.paid_amount > 0 else []
    employee = Employee(
        employee_id=employee_id,
        name=payload.name,
        phone=payload.phone,
        aadhaar=payload.aadhaar,
        role=payload.role,
        salary=payload.salary,
        address=payload.address or "",
        paid_amount=payload.paid_amount,
        salary_status=derive_salary_status(payload.salary, payload.paid_amount),
        last_payment=history[0]["timestamp"] if history else None,
        payment_history=history,
        # A new hire starts on the current payroll month, not on a stale one.
        last_reset_month_year=payroll_month(now),
    )
    try:
        doc = create_document(db, "employee", employee)
    except MongoDuplicateKeyError as exc:
        raise DuplicateKeyError(_duplicate_field(exc))
    logger.info("Employee %s created", employee_id)
    return serialize(doc)


def list_employees(db):
    return [serialize(d) for d in get_documents(db, "employee")]


def get_employee(db, employee_id: str) -> dict:
    return serialize(_find(db, employee_id))


def _guarded_update(db, employee_id: str, build_update):
    """Apply build_update(doc) with a compare-and-swap on paidAmount and salary."""
    for _ in range(MAX_WRITE_ATTEMPTS):
        doc = _find(db, employee_id)
        update = build_update(doc)
        result = db["employee"].update_one(
            {"_id": doc["_id"], "paidAmount": doc.get("paidAmount", 0), "salary": doc["salary"]},
            update,
        )
        if result.matched_count:
            return _find(db, employee_id)
    raise ConflictError()


def update_employee(db, employee_id: str, payload: EmployeeUpdate) -> dict:
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise ValidationError("Nothing to update")

    def build(doc):
        salary = changes.get("salary", doc["salary"])
        fields = dict(changes)
        fields["salaryStatus"] = derive_salary_status(salary, doc.get("paidAmount", 0))
        fields["updatedAt"] = utcnow()
        return {"$set": fields}

    return serialize(_guarded_update(db, employee_id, build))


def record_payment(db, employee_id: str, amount: float, now: Optional[datetime] = None) -> dict:
    if amount <= 0:
        raise ValidationError("Payment amount must be positive", {"amount": "must be greater than 0"})

    def build(doc):
        paid = to_paise(doc.get("paidAmount", 0))
        remaining = to_paise(doc["salary"]) - paid
        if to_paise(amount) > remaining:
            raise ValidationError(
                "Payment amount cannot exceed remaining salary",
                {"amount": f"cannot exceed remaining salary of {remaining / 100:g}"},
            )
        entry = history_entry(amount, now)
        total = (paid + to_paise(amount)) / 100
        return {
            "$set": {
                "paidAmount": total,
                "salaryStatus": derive_salary_status(doc["salary"], total),
                "lastPayment": entry["timestamp"],
                "updatedAt": utcnow(),
            },
            "$push": {"paymentHistory": entry},
        }

    doc = _guarded_update(db, employee_id, build)
    logger.info("Recorded payment of %s for employee %s", amount, doc.get("employeeId"))
    return serialize(doc)


def monthly_reset(db, month_year: str, now: Optional[datetime] = None) -> int:
    """Zero every employee's paidAmount for a new month; repeat calls for the same month are no-ops.

    A finished reset is recorded in `payrollreset`, so employees hired after
    it are left alone by a later call for the same month.
    """
    if db["payrollreset"].find_one({"monthYear": month_year}):
        logger.info("Monthly reset for %s already done", month_year)
        return 0

    result = db["employee"].update_many(
        {"lastResetMonthYear": {"$ne": month_year}},
        {
            "$set": {
                "salaryStatus": "unpaid",
                "paidAmount": 0,
                "lastPayment": None,
                "lastResetMonthYear": month_year,
                "updatedAt": utcnow(),
            },
            "$push": {"paymentHistory": history_entry(0, now, month_year)},
        },
    )
    try:
        create_document(db, "payrollreset", PayrollReset(month_year=month_year, modified_count=result.modified_count))
    except MongoDuplicateKeyError:
        logger.warning("Monthly reset for %s was recorded by a concurrent call", month_year)
    logger.info("Monthly reset for %s touched %d employee(s)", month_year, result.modified_count)
    return result.modified_count


def delete_employee(db, employee_id: str):
    result = db["employee"].delete_one({"_id": to_object_id(employee_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Employee not found")
    logger.info("Employee %s deleted", employee_id)
