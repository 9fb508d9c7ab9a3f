"""
Seed the canteen menu.
- Inserts the standard menu, overwriting items that already exist by id
- With --clear, removes every menu item first

Usage:
  python -m canteen.seed [--clear]
"""
import argparse
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .db import SessionLocal, engine, init_db
from .utils import utcnow

logger = logging.getLogger(__name__)

# (id, name, category, price, description, preparation minutes)
MENU = [
    (1, "Pav Bhaji", "Indian", "80", "Spicy potato curry with bread", 10),
    (2, "Samosa", "Snacks", "30", "Crispy fried pastry with spiced potato", 8),
    (3, "Dosa", "South Indian", "60", "Crispy pancake with sambar and chutney", 12),
    (4, "Idli", "South Indian", "40", "Steamed rice cake with sambar", 10),
    (5, "Vada Pav", "Snacks", "25", "Spicy potato ball in bread", 8),
    (6, "Misal Pav", "Indian", "70", "Spicy sprouted beans with bread", 12),
    (7, "Biryani", "Rice", "120", "Fragrant rice with meat", 20),
    (8, "Fried Rice", "Rice", "90", "Rice stir-fried with vegetables", 12),
    (9, "Butter Chicken", "Curries", "150", "Creamy tomato-based chicken curry", 15),
    (10, "Paneer Tikka", "Appetizers", "100", "Grilled cottage cheese with spices", 10),
    (11, "Tandoori Chicken", "Appetizers", "130", "Spiced grilled chicken", 18),
    (12, "Noodles", "Fast Food", "70", "Stir-fried noodles with vegetables", 10),
    (13, "Burger", "Fast Food", "80", "Classic beef burger", 8),
    (14, "Pizza", "Fast Food", "100", "Cheesy pizza with toppings", 15),
    (15, "Frankie", "Snacks", "60", "Rolled flatbread with filling", 10),
    (16, "Chocolate Cake", "Desserts", "60", "Rich chocolate cake slice", 5),
    (17, "Ice Cream", "Desserts", "40", "Vanilla ice cream cup", 3),
    (18, "Soft Drink", "Beverages", "30", "Cola or sprite", 2),
    (19, "Lassi", "Beverages", "40", "Traditional yogurt drink", 3),
    (20, "Fresh Juice", "Beverages", "50", "Fresh orange or apple juice", 5),
]


def seed(db: Session, clear: bool = False) -> int:
    if clear:
        removed = db.query(models.MenuItem).delete()
        db.commit()
        logger.info("cleared %s menu items", removed)

    now = utcnow()
    for item_id, name, category, price, description, minutes in MENU:
        item = schemas.MenuItemCreate(
            id=item_id,
            name=name,
            category=category,
            price=Decimal(price),
            description=description,
            preparation_time=minutes,
        )
        crud.upsert_menu_item(db, item, now)
    logger.info("seeded %s menu items", len(MENU))
    return len(MENU)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--clear", action="store_true", help="Delete existing menu items before seeding")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    init_db(engine)
    db = SessionLocal()
    try:
        seed(db, clear=args.clear)
    finally:
        db.close()

if __name__ == "__main__":
    main()
