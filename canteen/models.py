from enum import Enum

from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, JSON, Text
from .db import Base


class Role(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"
    STAFF = "staff"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestStatus(str, Enum):
    PIN_SENT = "pin_sent"
    VERIFIED = "verified"
    EXPIRED = "expired"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # stored lower-cased, see utils.normalize_email
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    roll_number = Column(String, nullable=False, unique=True, index=True)
    dob = Column(Date, nullable=True)
    phone = Column(String, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    # plaintext PIN, or a passlib hash when HASH_PINS is on; set together with pin_expiry
    verification_pin = Column(String, nullable=True)
    pin_expiry = Column(DateTime, nullable=True)
    role = Column(String, nullable=False, default=Role.STUDENT.value, index=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class MenuItem(Base):
    __tablename__ = "menu_items"

    # external numeric id, assigned by whoever manages the menu
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(String, nullable=False, default="")
    description = Column(String, nullable=False, default="")
    available = Column(Boolean, nullable=False, default=True, index=True)
    preparation_time = Column(Integer, nullable=False, default=15)  # minutes
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String, nullable=False, unique=True, index=True)
    student_email = Column(String, nullable=False, index=True)
    # snapshot of the ordered menu lines: [{"menuId", "name", "price", "quantity"}]
    items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    delivery_time = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)


class VerificationRequest(Base):
    __tablename__ = "verification_requests"

    id = Column(String(32), primary_key=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    roll_number = Column(String, nullable=False)
    dob = Column(Date, nullable=True)
    pin_hash = Column(String, nullable=True)
    status = Column(String, nullable=False, default=RequestStatus.PIN_SENT.value)
    sent_at = Column(DateTime, nullable=False)
    verified_at = Column(DateTime, nullable=True)


class VerifiedStudent(Base):
    __tablename__ = "verified_students"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    roll_number = Column(String, nullable=True)
    dob = Column(Date, nullable=True)
    request_id = Column(String(32), nullable=False, index=True)
    verified_at = Column(DateTime, nullable=False)
