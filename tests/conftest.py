import os
from decimal import Decimal

# Base de datos en memoria antes de importar la app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.config.database import Base, SessionLocal, engine, get_db
from app.core.auth.service import AuthService
from app.shared.database.models import Product, User
from app.shared.services.inventory_service import InventoryService


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(email="vendedor@test.com", role="vendedor", is_active=True, password="secreto123", name="Usuario Prueba"):
        user = User(
            name=name,
            email=email,
            password_hash=AuthService.get_password_hash(password),
            role=role,
            is_active=is_active
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@test.com", role="admin", name="Admin")


@pytest.fixture
def seller(make_user):
    return make_user(email="vendedor@test.com", role="vendedor", name="Vendedor")


def auth_headers(user):
    token = AuthService.create_access_token({"user_id": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def seller_headers(seller):
    return auth_headers(seller)


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "name": f"Producto {counter['n']}",
            "unit_price": Decimal("500"),
            "box_price": Decimal("4500"),
            "purchase_unit_price": Decimal("300"),
            "purchase_box_price": Decimal("2800"),
            "stock_boxes": 10,
            "units_per_box": 10,
            "stock_loose_units": 0,
            "min_stock": 5,
            "category": "Analgésicos",
            "manufacturer": "Genfar",
            "internal_code": f"COD{counter['n']:03d}",
            "barcode": f"770000000{counter['n']:04d}",
            "sale_mode": "both",
            "is_active": True,
            "version": 1,
        }
        fields.update(overrides)
        product = Product(**fields)
        InventoryService.recompute_total(product)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make
