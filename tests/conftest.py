from datetime import datetime, timezone

import mongomock
import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def db():
    database = mongomock.MongoClient().get_database("marketplace_test")
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    def factory(email="buyer@example.com", password="secret123", addresses=None):
        user_id = db["user"].insert_one(
            {
                "first_name": "Asha",
                "last_name": "Rao",
                "email": email,
                "password_hash": hash_password(password),
                "addresses": addresses or [],
                "is_email_verified": False,
                "created_at": datetime.now(timezone.utc),
            }
        ).inserted_id
        return user_id, bearer(create_token(str(user_id), "user"))

    return factory


@pytest.fixture
def admin_headers(db):
    admin_id = db["admin"].insert_one({"email": "admin@example.com", "password_hash": hash_password("adminpass")}).inserted_id
    return bearer(create_token(str(admin_id), "admin"))


@pytest.fixture
def vendor(db):
    vendor_id = db["vendor"].insert_one(
        {
            "name": "Ravi",
            "email": "vendor@example.com",
            "phone": "9000000001",
            "password_hash": hash_password("vendorpass"),
            "company_name": "Ravi Traders",
            "business_address": {"street": "1 Main Rd", "city": "Pune", "state": "MH", "pincode": "411001", "country": "India"},
            "is_active": True,
            "is_email_verified": True,
        }
    ).inserted_id
    return vendor_id, bearer(create_token(str(vendor_id), "vendor"))


@pytest.fixture
def menu_chain(db):
    section = db["mainmenu"].insert_one({"menu_name": "COMPUTERS", "slug": "computers", "item_index": 0}).inserted_id
    category = db["category"].insert_one(
        {"menu_name": "Laptops", "slug": "laptops", "item_index": 0, "section_id": section}
    ).inserted_id
    subcategory = db["subcategory"].insert_one(
        {"menu_name": "Gaming Laptops", "slug": "gaming-laptops", "item_index": 0, "category_id": category}
    ).inserted_id
    return {"section": section, "category": category, "subcategory": subcategory}


@pytest.fixture
def make_product(db, menu_chain):
    counter = {"n": 0}

    def factory(name=None, selling_price=500.0, actual_price=600.0, subcategory=None, **extra):
        counter["n"] += 1
        doc = {
            "name": name or f"Product {counter['n']}",
            "header_name": "Header",
            "brand": "Acme",
            "vendor_id": ObjectId(),
            "item_code": f"IC-{counter['n']}",
            "section": menu_chain["section"],
            "category": menu_chain["category"],
            "subcategory": subcategory or menu_chain["subcategory"],
            "description": "A sturdy product",
            "images": [f"https://cdn.example.com/{counter['n']}.jpg"],
            "actual_price": actual_price,
            "selling_price": selling_price,
            "stock": 10,
            "specifications": [],
            "sales_count": 0,
            "ratings": 0,
            "is_active": True,
            "is_in_stock": True,
            "created_at": datetime.now(timezone.utc),
        }
        doc.update(extra)
        return db["product"].insert_one(doc).inserted_id

    return factory
