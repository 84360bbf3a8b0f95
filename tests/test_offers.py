from datetime import datetime, timedelta, timezone

import pytest
from bson.objectid import ObjectId
from fastapi import HTTPException

from config import WRITE_ATTEMPTS
from pricing import merge_offer_products
from routers import offers

NOW = datetime.now(timezone.utc)


def window(start_offset=-1, end_offset=1):
    return {
        "start_date": (NOW + timedelta(days=start_offset)).isoformat(),
        "end_date": (NOW + timedelta(days=end_offset)).isoformat(),
    }


def add_offer(client, headers, product_ids, offer_type="festive"):
    payload = {"type": offer_type, "description": "Festive deals", "products": [{"product_id": str(p), **window()} for p in product_ids]}
    return client.post("/offer/add_offers", json=payload, headers=headers)


def test_add_offers_creates_then_skips_known_products(client, admin_headers, make_product):
    product_id = make_product()
    res = add_offer(client, admin_headers, [product_id])
    assert res.status_code == 201
    assert res.json()["message"] == "Offer created successfully"

    res = add_offer(client, admin_headers, [product_id])
    assert res.status_code == 200
    assert res.json()["message"] == "All products already exist in the offer"

    res = add_offer(client, admin_headers, [product_id, make_product()])
    assert res.json()["message"] == "Offer updated with new products"
    assert len(res.json()["data"]["products"]) == 2


def test_add_offers_validates_input(client, admin_headers, make_product):
    product_id = make_product()
    reversed_window = {"type": "festive", "products": [{"product_id": str(product_id), **window(1, -1)}]}
    assert client.post("/offer/add_offers", json=reversed_window, headers=admin_headers).status_code == 400
    assert add_offer(client, admin_headers, ["d" * 24]).status_code == 400


def test_offer_writes_are_admin_only(client, vendor, make_product):
    _, headers = vendor
    assert add_offer(client, headers, [make_product()]).status_code == 403


def test_update_offers_moves_window(client, db, admin_headers, make_product):
    product_id = make_product()
    add_offer(client, admin_headers, [product_id])
    res = client.post("/offer/update_offers/festive", json={"product_id": str(product_id), **window(2, 5)}, headers=admin_headers)
    assert res.json()["message"] == "Product in offer updated successfully"
    stored = db["offer"].find_one({"type": "festive"})["products"][0]
    assert stored["start_date"].date() == (NOW + timedelta(days=2)).date()

    assert client.post("/offer/update_offers/missing", json={"product_id": str(product_id), **window()}, headers=admin_headers).status_code == 404


def test_delete_product_from_offer(client, admin_headers, make_product):
    keep, drop = make_product(), make_product()
    add_offer(client, admin_headers, [keep, drop])
    res = client.post(f"/offer/delete_product_from_offer/festive/{drop}", headers=admin_headers)
    assert [p["product_id"] for p in res.json()["data"]["products"]] == [str(keep)]


def test_get_offers_paginates_entries(client, admin_headers, make_product):
    add_offer(client, admin_headers, [make_product() for _ in range(3)])
    data = client.get("/offer/get_offers/festive", params={"limit": 2}).json()["data"]
    assert len(data["products"]) == 2
    assert data["pagination"]["total_items"] == 3
    assert data["products"][0]["product"]["name"]


def test_dynamic_offers_exclude_builtin_types(client, admin_headers, make_product):
    add_offer(client, admin_headers, [make_product()])
    add_offer(client, admin_headers, [make_product()], offer_type="dailyOffer")
    listed = client.get("/offer/get_dynamic_offers").json()["data"]
    assert [o["type"] for o in listed] == ["festive"]


def test_soft_delete_and_toggle(client, admin_headers, make_product):
    offer_id = add_offer(client, admin_headers, [make_product()]).json()["data"]["id"]

    res = client.delete(f"/offer/{offer_id}", headers=admin_headers)
    assert res.json()["data"]["is_active"] is False

    res = client.post("/offer/delete_dynamic_offer/festive", headers=admin_headers)
    assert res.json()["data"]["is_active"] is True

    res = client.post(f"/offer/{offer_id}", json={"description": "Updated"}, headers=admin_headers)
    assert res.json()["data"]["description"] == "Updated"


def test_banner_requires_a_target(client, admin_headers):
    res = client.post("/offer/add_banner", data={"offer_name": "  "}, headers=admin_headers)
    assert res.status_code == 400


def test_banner_lifecycle(client, db, admin_headers, make_product):
    product_id = make_product(name="Featured")
    res = client.post("/offer/add_banner", data={"product_id": str(product_id)}, headers=admin_headers)
    assert res.status_code == 201
    banner_id = res.json()["data"]["id"]

    banners = client.get("/offer/get_banners").json()["data"]
    assert banners[0]["product"]["name"] == "Featured"

    res = client.post("/offer/edit_banner", json={"banner_id": banner_id, "offer_name": "Diwali", "is_active": False}, headers=admin_headers)
    assert res.json()["data"]["offer_name"] == "Diwali"
    assert res.json()["data"]["is_active"] is False

    assert client.post(f"/offer/delete_banner/{banner_id}", headers=admin_headers).status_code == 200
    assert db["banner"].count_documents({}) == 0
    assert client.post(f"/offer/delete_banner/{banner_id}", headers=admin_headers).status_code == 404


def test_active_window_keeps_only_current_products(db):
    now = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)
    live, expired, upcoming = ObjectId(), ObjectId(), ObjectId()

    def entry(product_id, start_days, end_days):
        return {"product_id": product_id, "start_date": now + timedelta(days=start_days), "end_date": now + timedelta(days=end_days)}

    db["offer"].insert_many(
        [
            {"type": "festive", "is_active": True, "products": [entry(live, -1, 1), entry(expired, -5, -1), entry(upcoming, 1, 5)]},
            {"type": "festive", "is_active": False, "products": [entry(live, -1, 1)]},
            {"type": "monsoon", "is_active": True, "products": [entry(live, -1, 1)]},
            {"type": "festive", "is_active": True, "products": [entry(expired, -5, 0)]},
        ]
    )

    pipeline = offers.active_offer_pipeline("festive", now)
    window_stages = pipeline[:3]
    assert [next(iter(stage)) for stage in window_stages] == ["$match", "$unwind", "$match"]
    rows = list(db["offer"].aggregate(window_stages))
    assert [row["products"]["product_id"] for row in rows] == [live]
    assert pipeline[3]["$lookup"]["localField"] == "products.product_id"


def test_offer_write_gives_up_after_repeated_conflicts(db, monkeypatch):
    db["offer"].insert_one({"type": "festive", "products": [], "version": 0})
    calls = []

    def racing(current, entries):
        calls.append(1)
        db["offer"].update_one({"type": "festive"}, {"$inc": {"version": 1}})
        return merge_offer_products(current, entries)

    monkeypatch.setattr(offers, "merge_offer_products", racing)
    start = datetime.now(timezone.utc)
    with pytest.raises(HTTPException) as excinfo:
        offers.add_to_offer(db, "festive", ObjectId(), start, start + timedelta(days=1))
    assert excinfo.value.status_code == 409
    assert len(calls) == WRITE_ATTEMPTS
    assert db["offer"].find_one({"type": "festive"})["products"] == []
