"""Load demo accounts, a restaurant and its menu.

    python -m chopnow.seed

Safe to run repeatedly: rows are matched by email / owner / name.
"""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import db, models, security

logger = logging.getLogger("chopnow.seed")

DEMO_USERS = [
    ("admin@chopnow.com", "Admin User", "+1234567890", models.Role.ADMIN, "Admin123!"),
    ("owner@restaurant.com", "Restaurant Owner", "+1234567891", models.Role.RESTAURANT_OWNER, "Owner123!"),
    ("customer@example.com", "John Customer", "+1234567893", models.Role.CUSTOMER, "Customer123!"),
    ("rider@delivery.com", "Delivery Rider", "+1234567894", models.Role.RIDER, "Rider123!"),
]

DEMO_MENU = [
    ("Classic Burger", "Juicy beef patty with fresh lettuce, tomato, and special sauce", 12.99, "Burgers"),
    ("Margherita Pizza", "Traditional pizza with fresh mozzarella and basil", 16.99, "Pizza"),
    ("Caesar Salad", "Crisp romaine lettuce with parmesan and croutons", 9.99, "Salads"),
]


def _upsert_user(session: Session, email, name, phone, role, password) -> models.User:
    user = session.scalars(select(models.User).where(models.User.email == email)).first()
    if user is None:
        user = models.User(
            email=email,
            name=name,
            phone=phone,
            role=role,
            password_hash=security.hash_password(password),
        )
        session.add(user)
        session.flush()
        logger.info(f"Created {role.value} {email}")
    return user


def seed(session: Session) -> None:
    users = {}
    for email, name, phone, role, password in DEMO_USERS:
        users[role] = _upsert_user(session, email, name, phone, role, password)
    owner = users[models.Role.RESTAURANT_OWNER]

    restaurant = session.scalars(
        select(models.Restaurant).where(models.Restaurant.owner_id == owner.id)
    ).first()
    if restaurant is None:
        restaurant = models.Restaurant(
            owner_id=owner.id,
            name="Delicious Bites",
            description="Your favorite local restaurant with amazing food",
            address="123 Food Street, Taste City, TC 12345",
            phone="+1234567892",
            delivery_fee=2.99,
            min_order=15.00,
            delivery_time=30,
        )
        session.add(restaurant)
        session.flush()
        logger.info(f"Created restaurant {restaurant.name}")

    existing = set(
        session.scalars(select(models.MenuItem.name).where(models.MenuItem.restaurant_id == restaurant.id))
    )
    for name, description, price, category in DEMO_MENU:
        if name not in existing:
            session.add(models.MenuItem(
                restaurant_id=restaurant.id,
                name=name,
                description=description,
                price=price,
                category=category,
            ))
    session.commit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] [chopnow-seed] %(message)s")
    db.init_db()
    with db.SessionLocal() as s:
        seed(s)
    logger.info("Seeding finished")
