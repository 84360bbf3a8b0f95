from datetime import datetime, timedelta, timezone

import pytest

from pricing import (
    add_line_item,
    apply_quantity_delta,
    cart_totals,
    category_shares,
    discount_percentage,
    is_window_active,
    merge_offer_products,
    order_totals,
    paginate,
    price_bucket,
    push_recent,
    remove_line_item,
    slugify,
)


def test_cart_totals_sum_quantity_and_price():
    items = [
        {"product": "a", "quantity": 3, "price_at_add_time": 19.99},
        {"product": "b", "quantity": 1, "price_at_add_time": 100},
    ]
    assert cart_totals(items) == (4, 159.97)
    assert cart_totals([]) == (0, 0)


def test_add_line_item_merges_and_keeps_first_price():
    items = add_line_item([], "p1", 2, 100.0)
    items = add_line_item(items, "p1", 3, 80.0)
    assert items == [{"product": "p1", "quantity": 5, "price_at_add_time": 100.0}]

    items = add_line_item(items, "p2", 1, 10.0)
    assert [i["product"] for i in items] == ["p1", "p2"]


def test_quantity_delta_removes_line_at_zero():
    items = [{"product": "p1", "quantity": 2, "price_at_add_time": 10}]
    items, removed = apply_quantity_delta(items, "p1", -1)
    assert not removed and items[0]["quantity"] == 1

    items, removed = apply_quantity_delta(items, "p1", -5)
    assert removed and items == []

    with pytest.raises(KeyError):
        apply_quantity_delta(items, "missing", 1)


def test_remove_line_item():
    items = [{"product": "p1", "quantity": 1, "price_at_add_time": 1}, {"product": "p2", "quantity": 1, "price_at_add_time": 1}]
    assert [i["product"] for i in remove_line_item(items, "p1")] == ["p2"]


@pytest.mark.parametrize(
    "items_price, tax, shipping, total",
    [
        (1500, 150.0, 0, 1650.0),
        (500, 50.0, 50, 600.0),
        (1000, 100.0, 50, 1150.0),
    ],
)
def test_order_totals(items_price, tax, shipping, total):
    totals = order_totals(items_price)
    assert totals["tax_price"] == tax
    assert totals["shipping_price"] == shipping
    assert totals["total_price"] == total


def test_discount_percentage():
    assert discount_percentage(2000, 1500) == 25
    assert discount_percentage(0, 100) == 0
    assert discount_percentage(3, 2) == 33


def test_push_recent_moves_to_front_and_caps():
    products = list(range(10))
    assert push_recent(products, 5)[:2] == [5, 0]
    assert push_recent(products, 99) == [99] + list(range(9))
    assert len(push_recent(products, 42, limit=10)) == 10


def test_category_shares_sum_to_hundred():
    amounts = {str(i): (f"Cat {i}", float(i + 1)) for i in range(8)}
    shares = category_shares(amounts)
    assert len(shares) == 7
    assert shares[0]["label"] == "Cat 7"
    assert shares[-1]["label"] == "Others"
    assert sum(s["value"] for s in shares) == pytest.approx(100.0)


def test_category_shares_rounding_goes_to_others():
    shares = category_shares({"a": ("A", 1), "b": ("B", 1), "c": ("C", 1)})
    assert [s["value"] for s in shares] == [33.3, 33.3, 33.3, 0.1]


def test_category_shares_without_sales():
    shares = category_shares({"a": ("A", 0)})
    assert shares == [{"id": 6, "category_id": None, "label": "Others", "amount": 0, "value": 100.0}]


def test_category_shares_never_go_negative():
    amounts = {str(i): (f"Cat {i}", 1666.0) for i in range(6)}
    amounts["tail"] = ("Tail", 4.0)
    shares = category_shares(amounts)
    assert [s["value"] for s in shares] == [16.5, 16.7, 16.7, 16.7, 16.7, 16.7, 0.0]
    assert sum(s["value"] for s in shares) == pytest.approx(100.0)


def test_merge_offer_products_skips_known_products():
    existing = [{"product_id": "p1"}]
    incoming = [{"product_id": "p1"}, {"product_id": "p2"}, {"product_id": "p2"}]
    assert merge_offer_products(existing, incoming) == [{"product_id": "p2"}]
    assert merge_offer_products(existing + [{"product_id": "p2"}], incoming) == []


def test_window_is_half_open():
    now = datetime.now(timezone.utc)
    assert is_window_active(now, now + timedelta(hours=1), now)
    assert not is_window_active(now - timedelta(hours=1), now, now)


def test_slugify():
    assert slugify("COMPUTERS & LAPTOPS") == "computers-laptops"
    assert slugify("  --Hello World--  ") == "hello-world"


def test_price_bucket():
    assert price_bucket(1999) == "< 2000"
    assert price_bucket(2500) == "2000 - 2500"
    assert price_bucket(2500.5) == "> 2500"
    assert price_bucket(None) == "Unknown"


def test_paginate():
    meta = paginate(25, 2, 10)
    assert meta["total_pages"] == 3
    assert meta["has_next_page"] and meta["has_previous_page"]
    assert meta["next_page"] == 3 and meta["previous_page"] == 1

    last = paginate(25, 3, 10)
    assert last["next_page"] is None
