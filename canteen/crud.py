import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import Conflict, NotFound, ValidationError
from .utils import normalize_email, sanitize_input

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "ORD"

# Business rule: amounts stored rounded to 2 decimals, non-negative

def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def commit_or_conflict(db: Session, message: str) -> None:
    """Commit the pending unit of work; a unique-constraint violation becomes Conflict."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict(message) from e


# -------------------- Users --------------------

def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == normalize_email(email)).first()


def find_or_create_student(db: Session, email: str, name: str, roll_number: str, dob, now: datetime) -> models.User:
    """Return the (not yet committed) user for ``email``, refreshing name and dob when it exists."""
    user = get_user_by_email(db, email)
    if user is None:
        user = models.User(
            email=normalize_email(email),
            name=name,
            roll_number=roll_number,
            dob=dob,
            verified=False,
            role=models.Role.STUDENT.value,
            created_at=now,
        )
        db.add(user)
    else:
        user.name = name
        user.dob = dob
    user.updated_at = now
    return user


# -------------------- Menu --------------------

def list_menu(db: Session, category: Optional[str] = None, available_only: bool = True) -> List[models.MenuItem]:
    query = db.query(models.MenuItem)
    if category and category != "All":
        query = query.filter(models.MenuItem.category == category)
    if available_only:
        query = query.filter(models.MenuItem.available.is_(True))
    return query.order_by(models.MenuItem.category, models.MenuItem.id).all()


def list_all_menu_items(db: Session) -> List[models.MenuItem]:
    return db.query(models.MenuItem).order_by(models.MenuItem.id).all()


def list_categories(db: Session) -> List[str]:
    rows = db.query(models.MenuItem.category).distinct().all()
    return ["All"] + sorted(row[0] for row in rows)


def get_menu_item(db: Session, item_id: int) -> models.MenuItem:
    item = db.get(models.MenuItem, item_id)
    if not item:
        raise NotFound("Menu item not found")
    return item


def create_menu_item(db: Session, item: schemas.MenuItemCreate, now: datetime) -> models.MenuItem:
    if item.id is None or not item.name or not item.category or item.price is None:
        raise ValidationError("Missing required fields")
    if db.get(models.MenuItem, item.id):
        raise Conflict("Menu item already exists")
    db_item = models.MenuItem(
        id=item.id,
        name=sanitize_input(item.name),
        category=sanitize_input(item.category),
        price=round_amount(item.price),
        image=item.image or "",
        description=sanitize_input(item.description),
        available=True,
        preparation_time=item.preparation_time or 15,
        created_at=now,
        updated_at=now,
    )
    db.add(db_item)
    commit_or_conflict(db, "Menu item already exists")
    db.refresh(db_item)
    logger.info("menu item %s (%s) created", db_item.id, db_item.name)
    return db_item


def update_menu_item(db: Session, item_id: int, changes: schemas.MenuItemUpdate, now: datetime) -> models.MenuItem:
    item = get_menu_item(db, item_id)
    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field in ("name", "category", "description"):
            value = sanitize_input(value)
        elif field == "price":
            value = round_amount(value)
        setattr(item, field, value)
    item.updated_at = now
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("menu item %s updated", item_id)
    return item


def delete_menu_item(db: Session, item_id: int) -> int:
    item = get_menu_item(db, item_id)
    db.delete(item)
    db.commit()
    logger.info("menu item %s deleted", item_id)
    return item_id


def upsert_menu_item(db: Session, item: schemas.MenuItemCreate, now: datetime) -> models.MenuItem:
    """Insert or overwrite a menu item by id; used by the seeding script."""
    existing = db.get(models.MenuItem, item.id)
    if existing is None:
        return create_menu_item(db, item, now)
    changes = schemas.MenuItemUpdate(
        name=item.name,
        category=item.category,
        price=item.price,
        image=item.image,
        description=item.description,
        preparation_time=item.preparation_time,
    )
    return update_menu_item(db, item.id, changes, now)


# -------------------- Orders --------------------

def generate_order_id(db: Session, now: datetime) -> str:
    # count-based suffix is not atomic across concurrent creations; the unique
    # constraint on orders.order_id turns a collision into Conflict
    count = db.query(func.count(models.Order.id)).scalar() or 0
    millis = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"{ORDER_ID_PREFIX}-{millis}-{count + 1}"


def create_order(db: Session, order: schemas.OrderCreate, now: datetime) -> models.Order:
    email = normalize_email(order.student_email)
    if not email or not order.items:
        raise ValidationError("Missing required fields")

    if order.total_amount is None:
        total = sum((i.price * i.quantity for i in order.items), Decimal("0"))
    else:
        total = order.total_amount
    amount = round_amount(total)
    if amount < 0:
        raise ValidationError("totalAmount must be non-negative")

    db_order = models.Order(
        order_id=generate_order_id(db, now),
        student_email=email,
        items=[i.model_dump(mode="json", by_alias=True) for i in order.items],
        total_amount=amount,
        status=models.OrderStatus.PENDING.value,
        payment_status=models.PaymentStatus.PENDING.value,
        delivery_time=order.delivery_time,
        notes=sanitize_input(order.notes),
        created_at=now,
        updated_at=now,
    )
    db.add(db_order)
    commit_or_conflict(db, "Order id collision, please retry")
    db.refresh(db_order)
    logger.info("order %s placed by %s (%s items, total %s)", db_order.order_id, email, len(order.items), amount)
    return db_order


def list_orders(db: Session, status: Optional[str] = None, email: Optional[str] = None) -> List[models.Order]:
    query = db.query(models.Order)
    if status:
        query = query.filter(models.Order.status == status)
    if email:
        query = query.filter(models.Order.student_email == normalize_email(email))
    return query.order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()


def list_orders_by_email(db: Session, email: str) -> List[models.Order]:
    return list_orders(db, email=email) if email else []


def get_order(db: Session, order_id: str) -> models.Order:
    order = db.query(models.Order).filter(models.Order.order_id == order_id).first()
    if not order:
        raise NotFound("Order not found")
    return order


def update_order_status(db: Session, order_id: str, status: Optional[str], now: datetime) -> models.Order:
    if status not in {s.value for s in models.OrderStatus}:
        raise ValidationError("Invalid status")
    order = get_order(db, order_id)
    previous = order.status
    # any status may follow any other
    order.status = status
    order.updated_at = now
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("order %s status %s -> %s", order_id, previous, status)
    return order


# -------------------- Analytics --------------------

def compute_analytics(db: Session) -> dict:
    def count(status: Optional[str] = None) -> int:
        query = db.query(func.count(models.Order.id))
        if status:
            query = query.filter(models.Order.status == status)
        return query.scalar() or 0

    revenue = db.query(func.sum(models.Order.total_amount)).scalar()
    return {
        "total_orders": count(),
        "pending_orders": count(models.OrderStatus.PENDING.value),
        "completed_orders": count(models.OrderStatus.DELIVERED.value),
        "total_revenue": round_amount(revenue if revenue is not None else Decimal("0")),
    }
