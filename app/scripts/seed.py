from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.http_hardening import configure_logging
from app.core.security import hash_password
from app.db.session import Base, SessionLocal, engine
from app.models.category import Category
from app.models.product import Product
from app.models.user import User

_LOG = logging.getLogger("app.seed")

DEMO_PRODUCTS = [
    {"name": "Laptop Pro", "price": 1500.00, "status": "active", "category": "Computers"},
    {"name": "Wireless Mouse", "price": 25.50, "status": "active", "category": "Peripherals"},
    {"name": "Mechanical Keyboard", "price": 89.99, "status": "active", "category": "Peripherals"},
    {"name": "USB-C Hub", "price": 45.00, "status": "inactive", "category": "Accessories"},
    {"name": "Monitor 4K", "price": 350.00, "status": "active", "category": "Displays"},
    {"name": "Gaming Chair", "price": 299.99, "status": "active", "category": "Furniture"},
    {"name": "Webcam HD", "price": 59.99, "status": "active", "category": "Peripherals"},
    {"name": "Desk Lamp", "price": 19.99, "status": "inactive", "category": "Furniture"},
    {"name": "External SSD 1TB", "price": 120.00, "status": "active", "category": "Storage"},
    {"name": "Noise Cancelling Headphones", "price": 199.00, "status": "active", "category": "Audio"},
]

DEMO_USERS = [
    {"name": "John Doe", "email": "john@example.com", "password": "password123", "role": "user"},
    {"name": "Jane Smith", "email": "jane@example.com", "password": "password123", "role": "user"},
    {"name": "Bob Manager", "email": "bob@example.com", "password": "password123", "role": "manager"},
]


def seed_products(db: Session, products: list[dict]) -> int:
    created = 0
    categories: dict[str, Category] = {}
    for item in products:
        name = str(item["name"]).strip()
        if db.query(Product).filter(Product.name == name).first() is not None:
            continue
        category_name = str(item.get("category") or "").strip()
        category = categories.get(category_name) if category_name else None
        if category_name and category is None:
            category = db.query(Category).filter(Category.name == category_name).first()
            if category is None:
                category = Category(name=category_name)
                db.add(category)
            categories[category_name] = category
        db.add(
            Product(
                name=name,
                price=item["price"],
                status=str(item.get("status") or "active"),
                category=category,
            )
        )
        created += 1
    db.commit()
    return created


def seed_users(db: Session, users: list[dict]) -> int:
    created = 0
    for item in users:
        email = str(item["email"]).strip().lower()
        if db.query(User).filter(User.email == email).first() is not None:
            continue
        db.add(
            User(
                name=str(item["name"]).strip(),
                email=email,
                password_hash=hash_password(str(item["password"])),
                role=str(item.get("role") or "user"),
            )
        )
        created += 1
    db.commit()
    return created


def demo_users() -> list[dict]:
    admin = {
        "name": settings.SEED_ADMIN_NAME,
        "email": settings.SEED_ADMIN_EMAIL,
        "password": settings.SEED_ADMIN_PASSWORD,
        "role": "admin",
    }
    return [admin, *DEMO_USERS]


def main() -> None:
    configure_logging(settings)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        users = seed_users(db, demo_users())
        products = seed_products(db, DEMO_PRODUCTS)
    finally:
        db.close()
    _LOG.info("Seeding completed: users created=%s products created=%s", users, products)


if __name__ == "__main__":
    main()
