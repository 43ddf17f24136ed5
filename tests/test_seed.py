import os
import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core.security import verify_password
from app.models.category import Category
from app.models.product import Product
from app.models.user import User
from app.scripts.seed import DEMO_PRODUCTS, demo_users, seed_products, seed_users


class SeedTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        User.__table__.create(bind=cls.engine)
        Category.__table__.create(bind=cls.engine)
        Product.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Product.__table__.drop(bind=cls.engine)
        Category.__table__.drop(bind=cls.engine)
        User.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        self.db = self.SessionLocal()
        self.db.query(Product).delete()
        self.db.query(Category).delete()
        self.db.query(User).delete()
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def test_seed_products_creates_catalogue_and_is_idempotent(self):
        self.assertEqual(seed_products(self.db, DEMO_PRODUCTS), 10)
        self.assertEqual(self.db.query(Product).count(), 10)
        self.assertEqual(self.db.query(Category).count(), 7)

        self.assertEqual(seed_products(self.db, DEMO_PRODUCTS), 0)
        self.assertEqual(self.db.query(Product).count(), 10)
        self.assertEqual(self.db.query(Category).count(), 7)

    def test_products_share_categories(self):
        seed_products(self.db, DEMO_PRODUCTS)
        peripherals = self.db.query(Category).filter(Category.name == "Peripherals").one()
        self.assertEqual(
            sorted(p.name for p in peripherals.products),
            ["Mechanical Keyboard", "Webcam HD", "Wireless Mouse"],
        )

    def test_seed_users_hashes_passwords_and_is_idempotent(self):
        users = demo_users()
        self.assertEqual(seed_users(self.db, users), 4)
        self.assertEqual(seed_users(self.db, users), 0)

        admin = self.db.query(User).filter(User.role == "admin").one()
        self.assertNotEqual(admin.password_hash, users[0]["password"])
        self.assertTrue(verify_password(users[0]["password"], admin.password_hash))
        bob = self.db.query(User).filter(User.email == "bob@example.com").one()
        self.assertEqual(bob.role, "manager")


if __name__ == "__main__":
    unittest.main()
