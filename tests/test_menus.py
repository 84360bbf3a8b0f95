def add_tree(client, headers):
    section = client.post("/menus/add_section", data={"menu_name": "Computers & Laptops", "item_index": "1"}, headers=headers)
    assert section.status_code == 201
    section_id = section.json()["data"]["id"]

    category = client.post("/menus/add_category", data={"menu_name": "Laptops", "section_id": section_id}, headers=headers)
    assert category.status_code == 201
    category_id = category.json()["data"]["id"]

    sub = client.post("/menus/add_subcategory", data={"menu_name": "Gaming", "category_id": category_id}, headers=headers)
    assert sub.status_code == 201
    return section_id, category_id, sub.json()["data"]["id"]


def test_slug_is_generated(client, admin_headers):
    res = client.post("/menus/add_section", data={"menu_name": "Computers & Laptops"}, headers=admin_headers)
    assert res.json()["data"]["slug"] == "computers-laptops"


def test_duplicate_menu_rejected(client, admin_headers):
    add_tree(client, admin_headers)
    res = client.post("/menus/add_section", data={"menu_name": "Computers & Laptops"}, headers=admin_headers)
    assert res.status_code == 400


def test_parent_must_exist(client, admin_headers):
    res = client.post("/menus/add_category", data={"menu_name": "Orphans", "section_id": "0" * 24}, headers=admin_headers)
    assert res.status_code == 404


def test_menu_writes_are_admin_only(client, make_user):
    _, headers = make_user()
    res = client.post("/menus/add_section", data={"menu_name": "Phones"}, headers=headers)
    assert res.status_code == 403


def test_get_menus_builds_tree(client, admin_headers):
    section_id, category_id, sub_id = add_tree(client, admin_headers)
    tree = client.get("/menus/get_menus").json()["data"]
    assert tree[0]["id"] == section_id
    assert tree[0]["menus"][0]["id"] == category_id
    assert tree[0]["menus"][0]["sub_menus"][0]["id"] == sub_id


def test_get_menu_by_id_resolves_each_level(client, admin_headers):
    section_id, category_id, sub_id = add_tree(client, admin_headers)

    data = client.get(f"/menus/get_menu_by_id/{section_id}").json()["data"]
    assert data["menus"][0]["id"] == category_id

    data = client.get(f"/menus/get_menu_by_id/{category_id}").json()["data"]
    assert data["main_menu"]["id"] == section_id
    assert data["sub_menus"][0]["id"] == sub_id

    data = client.get(f"/menus/get_menu_by_id/{sub_id}").json()["data"]
    assert data["menu"]["id"] == category_id
    assert data["main_menu"]["id"] == section_id

    assert client.get(f"/menus/get_menu_by_id/{'f' * 24}").status_code == 404
    assert client.get("/menus/get_menu_by_id/not-an-id").status_code == 400


def test_batch_update_renames_and_reslugs(client, admin_headers):
    section_id, _, _ = add_tree(client, admin_headers)
    res = client.post(
        "/menus/update_section",
        json={"sections": [{"id": section_id, "menu_name": "Home Office", "item_index": 3}]},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"][0]["slug"] == "home-office"

    res = client.post("/menus/update_section", json={"sections": [{"id": section_id, "menu_name": "  "}]}, headers=admin_headers)
    assert res.status_code == 400


def test_batch_rename_rejects_taken_names(client, db, admin_headers):
    alpha = client.post("/menus/add_section", data={"menu_name": "Alpha", "item_index": "0"}, headers=admin_headers).json()["data"]["id"]
    beta = client.post("/menus/add_section", data={"menu_name": "Beta", "item_index": "1"}, headers=admin_headers).json()["data"]["id"]

    res = client.post(
        "/menus/update_section",
        json={"sections": [{"id": alpha, "menu_name": "Alpha", "item_index": 5}, {"id": beta, "menu_name": "alpha!", "item_index": 6}]},
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Menu already exists"
    assert db["mainmenu"].find_one({"menu_name": "Alpha"})["item_index"] == 0

    res = client.post(
        "/menus/update_section",
        json={"sections": [{"id": alpha, "menu_name": "Gamma"}, {"id": beta, "menu_name": "Gamma"}]},
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert db["mainmenu"].count_documents({"menu_name": "Gamma"}) == 0


def test_subcategories_by_category(client, admin_headers):
    section_id, category_id, sub_id = add_tree(client, admin_headers)
    data = client.get(f"/menus/get_subcategories_by_id/{category_id}").json()["data"]
    assert [s["id"] for s in data["subcategories"]] == [sub_id]
    assert data["category"]["section"]["id"] == section_id
