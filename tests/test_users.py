from auth import verify_password

ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "pincode": "560001",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "address_type": "Home",
}


def test_signup_returns_token_and_hides_password(client, db):
    res = client.post(
        "/user/signup",
        json={"first_name": "Asha", "last_name": "Rao", "email": "asha@example.com", "password": "secret123"},
    )
    assert res.status_code == 201
    body = res.json()
    assert body["status"] is True
    assert body["data"]["token"]
    assert "password_hash" not in body["data"]["user"]

    stored = db["user"].find_one({"email": "asha@example.com"})
    assert stored["password_hash"] != "secret123"
    assert verify_password("secret123", stored["password_hash"])


def test_signup_rejects_duplicate_email(client, make_user):
    make_user(email="dup@example.com")
    res = client.post(
        "/user/signup",
        json={"first_name": "A", "last_name": "B", "email": "dup@example.com", "password": "secret123"},
    )
    assert res.status_code == 400
    assert res.json() == {"status": False, "message": "User already exists", "data": None}


def test_login_distinguishes_unknown_user_and_bad_password(client, make_user):
    make_user(email="login@example.com", password="rightpass")

    assert client.post("/user/login", json={"email": "nobody@example.com", "password": "x"}).status_code == 404
    assert client.post("/user/login", json={"email": "login@example.com", "password": "wrongpass"}).status_code == 400

    res = client.post("/user/login", json={"email": "login@example.com", "password": "rightpass"})
    assert res.status_code == 200
    assert res.json()["data"]["type"] == "user"


def test_profile_requires_token(client):
    res = client.get("/user/get_user")
    assert res.status_code == 401
    assert res.json()["message"] == "No token provided"


def test_addresses_capped_and_single_default(client, make_user):
    _, headers = make_user()
    for index in range(3):
        res = client.post("/user/update_user", json={"addresses": {**ADDRESS, "is_default": index == 2}}, headers=headers)
        assert res.status_code == 200

    addresses = res.json()["data"]["addresses"]
    assert len(addresses) == 3
    assert [a["is_default"] for a in addresses] == [False, False, True]

    res = client.post("/user/update_user", json={"addresses": ADDRESS}, headers=headers)
    assert res.status_code == 400


def test_update_and_delete_address(client, make_user):
    _, headers = make_user()
    res = client.post("/user/update_user", json={"addresses": ADDRESS}, headers=headers)
    address_id = res.json()["data"]["addresses"][0]["id"]

    res = client.post("/user/update_user_address", json={"addresses": {"id": address_id, "city": "Mysuru"}}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["addresses"][0]["city"] == "Mysuru"

    res = client.post(f"/user/delete_user_address/{address_id}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["addresses"] == []

    res = client.post(f"/user/delete_user_address/{address_id}", headers=headers)
    assert res.status_code == 404


def test_change_password_needs_matching_account(client, db, make_user):
    user_id, headers = make_user(email="owner@example.com")
    make_user(email="victim@example.com")

    res = client.post("/user/change_password", json={"email": "victim@example.com", "new_password": "hijacked1"})
    assert res.status_code == 401

    res = client.post("/user/change_password", json={"email": "victim@example.com", "new_password": "hijacked1"}, headers=headers)
    assert res.status_code == 403

    res = client.post("/user/change_password", json={"email": "owner@example.com", "new_password": "newpass123"}, headers=headers)
    assert res.status_code == 200
    assert verify_password("newpass123", db["user"].find_one({"_id": user_id})["password_hash"])


def test_update_password_checks_current_and_hashes(client, db, make_user):
    user_id, headers = make_user(password="oldpass1")
    res = client.post("/user/update_user_password", json={"current_password": "nope", "password": "newpass1"}, headers=headers)
    assert res.status_code == 400

    res = client.post("/user/update_user_password", json={"current_password": "oldpass1", "password": "newpass1"}, headers=headers)
    assert res.status_code == 200
    stored = db["user"].find_one({"_id": user_id})["password_hash"]
    assert stored != "newpass1" and verify_password("newpass1", stored)


def test_user_listing_is_admin_only(client, make_user, admin_headers):
    _, headers = make_user()
    assert client.get("/user/get_users", headers=headers).status_code == 403
    res = client.get("/user/get_users", headers=admin_headers)
    assert res.status_code == 200
    assert all("password_hash" not in u for u in res.json()["data"])
