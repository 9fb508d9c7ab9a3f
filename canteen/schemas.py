from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer, PositiveInt, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


# Amounts stay Decimal in Python and go out as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base for every wire model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


# -------------------- Verification --------------------

class PinRequest(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    # Required-ness is checked by the workflow so that missing fields share one error message
    email: Optional[str] = None
    name: Optional[str] = None
    roll_number: Optional[str] = None
    dob: Optional[date] = None


class PinVerify(CamelModel):
    # clients may send the PIN as a JSON number
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: Optional[str] = None
    pin: Optional[str] = None


class RequestVerify(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    request_id: Optional[str] = None
    pin: Optional[str] = None


class UserSummary(CamelModel):
    id: int
    email: str
    name: str


class UserRead(UserSummary):
    roll_number: str
    dob: Optional[date] = None
    phone: Optional[str] = None
    verified: bool = False
    role: str = "student"


class PinIssued(CamelModel):
    message: str
    email: str
    test_pin: Optional[str] = None


class PinVerified(CamelModel):
    message: str
    token: str
    user: UserSummary


class RequestIssued(CamelModel):
    message: str
    request_id: str
    test_pin: Optional[str] = None


class RequestVerified(CamelModel):
    success: bool
    user_id: int


# -------------------- Menu --------------------

class MenuItemCreate(CamelModel):
    id: Optional[int] = None
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    image: str = ""
    description: str = ""
    preparation_time: Optional[PositiveInt] = None


class MenuItemUpdate(CamelModel):
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    image: Optional[str] = None
    description: Optional[str] = None
    available: Optional[bool] = None
    preparation_time: Optional[PositiveInt] = None


class MenuItemRead(CamelModel):
    id: int
    name: str
    category: str
    price: Money
    image: str = ""
    description: str = ""
    available: bool = True
    preparation_time: int = 15


class MenuItemDeleted(CamelModel):
    message: str
    id: int


# -------------------- Orders --------------------

class OrderItem(CamelModel):
    menu_id: int
    name: str = Field(..., min_length=1)
    price: Money = Field(..., ge=0)
    quantity: PositiveInt


class OrderCreate(CamelModel):
    student_email: Optional[str] = None
    items: List[OrderItem] = []
    total_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    delivery_time: Optional[datetime] = None

    @field_validator("total_amount")
    def non_negative(cls, v: Optional[Decimal]):
        if v is not None and v < 0:
            raise ValueError("totalAmount must be non-negative")
        # rounding is business logic, done in crud.create_order
        return v


class OrderRead(CamelModel):
    id: int
    order_id: str
    student_email: str
    items: List[OrderItem]
    total_amount: Money
    status: str
    payment_status: str
    delivery_time: Optional[datetime] = None
    notes: str = ""
    created_at: datetime
    updated_at: datetime


class OrderEnvelope(CamelModel):
    message: str
    order: OrderRead


class StatusUpdate(CamelModel):
    status: Optional[str] = None


# -------------------- Admin --------------------

class Analytics(CamelModel):
    total_orders: int
    pending_orders: int
    completed_orders: int
    total_revenue: Money
