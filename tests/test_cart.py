import pytest
from fastapi import HTTPException

from routers.cart import write_cart


def add(client, headers, product_id, quantity=1):
    return client.post("/cart/add_to_cart", json={"product_id": str(product_id), "quantity": quantity}, headers=headers)


def test_add_merges_lines_and_keeps_first_price(client, db, make_user, make_product):
    _, headers = make_user()
    product_id = make_product(selling_price=250.0)

    res = add(client, headers, product_id, 2)
    assert res.status_code == 201

    db["product"].update_one({"_id": product_id}, {"$set": {"selling_price": 999.0}})
    cart = add(client, headers, product_id, 1).json()["data"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["items"][0]["price_at_add_time"] == 250.0
    assert cart["total_items"] == 3
    assert cart["total_price"] == 750.0


def test_add_unknown_product(client, make_user):
    _, headers = make_user()
    assert add(client, headers, "a" * 24).status_code == 404


def test_get_cart_populates_products(client, make_user, make_product):
    _, headers = make_user()
    assert client.get("/cart/get_user_cart", headers=headers).status_code == 404

    product_id = make_product(name="Keyboard")
    add(client, headers, product_id)
    cart = client.get("/cart/get_user_cart", headers=headers).json()["data"]
    assert cart["items"][0]["product"]["name"] == "Keyboard"


def test_update_cart_applies_delta(client, make_user, make_product):
    _, headers = make_user()
    product_id = make_product()
    add(client, headers, product_id, 2)

    res = client.post("/cart/update_cart", json={"id": str(product_id), "quantity": 3}, headers=headers)
    assert res.json()["message"] == "Cart updated successfully"
    assert res.json()["data"]["items"][0]["quantity"] == 5

    res = client.post("/cart/update_cart", json={"id": str(product_id), "quantity": -5}, headers=headers)
    assert res.json()["message"] == "Item removed from cart"
    assert res.json()["data"]["items"] == []
    assert res.json()["data"]["total_price"] == 0


def test_update_missing_item(client, make_user, make_product):
    _, headers = make_user()
    add(client, headers, make_product())
    res = client.post("/cart/update_cart", json={"id": "b" * 24, "quantity": 1}, headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Item not found"


def test_remove_item(client, make_user, make_product):
    _, headers = make_user()
    keep, drop = make_product(), make_product()
    add(client, headers, keep)
    add(client, headers, drop)

    cart = client.get(f"/cart/remove_item_from_cart/{drop}", headers=headers).json()["data"]
    assert [i["product"] for i in cart["items"]] == [str(keep)]


def test_write_cart_gives_up_after_repeated_conflicts(db, make_user, make_product):
    user_id, _ = make_user()
    db["cart"].insert_one({"user": user_id, "items": [], "total_items": 0, "total_price": 0, "version": 0})

    def racing(items):
        db["cart"].update_one({"user": user_id}, {"$inc": {"version": 1}})
        return items

    with pytest.raises(HTTPException) as excinfo:
        write_cart(db, user_id, racing)
    assert excinfo.value.status_code == 409


def test_write_cart_without_cart(db, make_user):
    user_id, _ = make_user()
    with pytest.raises(HTTPException) as excinfo:
        write_cart(db, user_id, lambda items: items)
    assert excinfo.value.status_code == 404
