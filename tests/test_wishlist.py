def test_empty_wishlist(client, make_user):
    _, headers = make_user()
    res = client.get("/wishlist/get_user_wishlist", headers=headers)
    assert res.json()["data"] == {"products": []}


def test_add_is_idempotent(client, make_user, make_product):
    _, headers = make_user()
    product_id = make_product(name="Headphones")

    res = client.post(f"/wishlist/add_to_wishlist/{product_id}", headers=headers)
    assert res.json()["message"] == "Product added to wishlist"
    res = client.post(f"/wishlist/add_to_wishlist/{product_id}", headers=headers)
    assert res.json()["message"] == "Product already in wishlist"
    assert [p["name"] for p in res.json()["data"]["products"]] == ["Headphones"]

    assert client.get(f"/wishlist/check/{product_id}", headers=headers).json()["data"]["in_wishlist"] is True


def test_add_validates_product(client, make_user):
    _, headers = make_user()
    assert client.post("/wishlist/add_to_wishlist/not-an-id", headers=headers).status_code == 400
    assert client.post(f"/wishlist/add_to_wishlist/{'e' * 24}", headers=headers).status_code == 404


def test_remove_and_clear(client, make_user, make_product):
    _, headers = make_user()
    first, second = make_product(), make_product()
    assert client.post(f"/wishlist/remove_from_wishlist/{first}", headers=headers).status_code == 404

    client.post(f"/wishlist/add_to_wishlist/{first}", headers=headers)
    client.post(f"/wishlist/add_to_wishlist/{second}", headers=headers)
    res = client.post(f"/wishlist/remove_from_wishlist/{first}", headers=headers)
    assert [p["id"] for p in res.json()["data"]["products"]] == [str(second)]
    assert client.get(f"/wishlist/check/{first}", headers=headers).json()["data"]["in_wishlist"] is False

    assert client.delete("/wishlist/", headers=headers).status_code == 200
    assert client.delete("/wishlist/", headers=headers).status_code == 404
