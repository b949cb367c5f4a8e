"""
Database Schemas for FixEase

Define MongoDB collection schemas using Pydantic models.
Each model maps to a collection with the lowercase class name.
Documents are stored with the camelCase aliases the web client uses.
"""

import re
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

BOOKING_STATUSES = ("pending", "completed", "cancelled")
QUERY_STATUSES = ("pending", "resolved")

PHONE_RE = re.compile(r"^[0-9]{10}$")
PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")
AADHAAR_RE = re.compile(r"^[0-9]{12}$")


def check_phone(value: str) -> str:
    if not PHONE_RE.match(value):
        raise ValueError("Phone number must be exactly 10 digits")
    return value


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


class Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


# Users (authentication)
class User(Document):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    phone: str = Field(..., description="Phone number")
    password: str = Field(..., description="Hashed password")


class Admin(Document):
    name: Optional[str] = Field(None, description="Display name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Hashed password")


# Catalog
class Service(Document):
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    price: float = Field(..., ge=0, description="Price in rupees")
    category: str = Field(..., min_length=1)
    status: Literal["active", "inactive"] = "active"
    image: Optional[str] = Field(None, description="Path under the uploads directory")


class ServiceUpdate(Document):
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    status: Optional[Literal["active", "inactive"]] = None


# Bookings
class BookingCreate(Document):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone_number: str = Field(..., alias="phoneNumber")
    address: str = Field(..., min_length=10)
    pincode: str
    additional_message: Optional[str] = Field("", max_length=500, alias="additionalMessage")
    service_ids: List[str] = Field(..., alias="serviceIds")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v):
        return check_phone(v)

    @field_validator("pincode")
    @classmethod
    def valid_pincode(cls, v):
        if not PINCODE_RE.match(v):
            raise ValueError("Pincode must be a 6-digit number not starting with 0")
        return v

    @field_validator("additional_message")
    @classmethod
    def empty_message(cls, v):
        return v or ""

    @field_validator("service_ids")
    @classmethod
    def valid_service_ids(cls, v):
        if not v:
            raise ValueError("At least one service must be selected")
        for sid in v:
            if not ObjectId.is_valid(sid):
                raise ValueError(f"Invalid service id: {sid}")
        return v


class Booking(BookingCreate):
    status: Literal["pending", "completed", "cancelled"] = "pending"
    status_changed_at: Optional[datetime] = Field(None, alias="statusChangedAt")


# Payroll
class PaymentEntry(Document):
    date: str = Field(..., description="DD-MM-YYYY in the payroll timezone")
    time: str = Field(..., description="hh:mm AM/PM in the payroll timezone")
    timestamp: datetime
    month_year: str = Field(..., alias="monthYear", description="M-YYYY")
    amount: float = Field(..., ge=0)


class EmployeeCreate(Document):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="forbid")

    employee_id: Optional[str] = Field(None, alias="employeeId")
    name: str = Field(..., min_length=3)
    phone: str
    aadhaar: str
    role: str = Field(..., min_length=1)
    salary: float = Field(..., gt=0)
    address: Optional[str] = Field(None, min_length=5)
    paid_amount: float = Field(0, ge=0, alias="paidAmount")

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        return check_phone(v)

    @field_validator("aadhaar")
    @classmethod
    def valid_aadhaar(cls, v):
        digits = re.sub(r"\s", "", v)
        if not AADHAAR_RE.match(digits):
            raise ValueError("Aadhaar number must be 12 digits")
        return digits

    @model_validator(mode="after")
    def paid_within_salary(self):
        if to_paise(self.paid_amount) > to_paise(self.salary):
            raise ValueError("paidAmount cannot exceed salary")
        return self


class EmployeeUpdate(Document):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = None
    address: Optional[str] = Field(None, min_length=5)
    role: Optional[str] = Field(None, min_length=1)
    salary: Optional[float] = Field(None, gt=0)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        return check_phone(v) if v is not None else v


class Employee(Document):
    employee_id: str = Field(..., alias="employeeId")
    name: str
    phone: str
    aadhaar: str
    role: str
    salary: float = Field(..., gt=0)
    address: str = ""
    paid_amount: float = Field(0, ge=0, alias="paidAmount")
    salary_status: Literal["paid", "partially_paid", "unpaid"] = Field("unpaid", alias="salaryStatus")
    last_payment: Optional[datetime] = Field(None, alias="lastPayment")
    payment_history: List[PaymentEntry] = Field(default_factory=list, alias="paymentHistory")
    last_reset_month_year: Optional[str] = Field(None, alias="lastResetMonthYear")


class PayrollReset(Document):
    month_year: str = Field(..., alias="monthYear")
    modified_count: int = Field(0, alias="modifiedCount")


# Intake
class Testimonial(Document):
    rating: int = Field(..., ge=1, le=5)
    name: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class UserQueryCreate(Document):
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1, alias="phoneNumber")
    query: str = Field(..., min_length=1)


class UserQuery(UserQueryCreate):
    status: Literal["pending", "resolved"] = "pending"
    attended: bool = False
    resolved_at: Optional[datetime] = Field(None, alias="resolvedAt")
