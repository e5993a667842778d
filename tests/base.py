import os
import unittest
from datetime import timedelta
from uuid import UUID

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core.config import settings
from app.core.security import create_jwt, hash_password
from app.db.session import Base, get_db
from app.main import app
from app.models.attraction import Attraction
from app.models.product import Product
from app.models.user import User


class FakeGeocoder:
    def __init__(self, places: dict | None = None):
        self.places = dict(places or {})
        self.queries: list[str] = []

    def geocode(self, query: str, limit: int = 1):
        self.queries.append(query)
        location = self.places.get(query)
        return [location] if location is not None else []


class FakePhotoStorage:
    def __init__(self):
        self.objects = {}

    def save(self, key: str, content: bytes, mime_type: str) -> str:
        self.objects[key] = {"content": content, "mime": mime_type}
        return key


class DatabaseTestBase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Base.metadata.drop_all(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(Product))
            db.execute(delete(Attraction))
            db.execute(delete(User))
            db.commit()

    def create_user(self, role: str = "publisher", email: str | None = None, password: str = "secret123") -> UUID:
        with self.SessionLocal() as db:
            count = db.query(User).count()
            user = User(
                name=f"User {count + 1}",
                email=email or f"user{count + 1}@example.com",
                role=role,
                password_hash=hash_password(password),
            )
            db.add(user)
            db.commit()
            return user.id

    def create_attraction(self, owner_id: UUID, name: str, **fields) -> UUID:
        with self.SessionLocal() as db:
            attraction = Attraction(
                name=name,
                slug=name.lower().replace(" ", "-"),
                description=fields.pop("description", f"About {name}"),
                user_id=owner_id,
                **fields,
            )
            db.add(attraction)
            db.commit()
            return attraction.id

    def create_product(self, attraction_id: UUID, owner_id: UUID, name: str, price: float = 0.0, **fields) -> UUID:
        with self.SessionLocal() as db:
            product = Product(name=name, price=price, attraction_id=attraction_id, user_id=owner_id, **fields)
            db.add(product)
            db.commit()
            return product.id


class ApiTestBase(DatabaseTestBase):
    def setUp(self):
        super().setUp()

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    @staticmethod
    def auth_headers(user_id: UUID, role: str = "publisher") -> dict[str, str]:
        token = create_jwt({"sub": str(user_id), "role": role}, settings.JWT_SECRET, timedelta(minutes=30))
        return {"Authorization": f"Bearer {token}"}
