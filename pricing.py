"""
Pure business rules shared by the route handlers.

Nothing in here touches the database, so every cart, order and report
computation can be exercised directly.
"""
import math
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config import FREE_SHIPPING_THRESHOLD, RECENTLY_VIEWED_LIMIT, SHIPPING_FEE, TAX_RATE, TOP_CATEGORY_COUNT


def _same(a: Any, b: Any) -> bool:
    return str(a) == str(b)


def _round(value: float, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


# ----------------------- Cart -----------------------
def cart_totals(items: Iterable[dict]) -> Tuple[int, float]:
    items = list(items)
    total_items = sum(i["quantity"] for i in items)
    total_price = sum(i["quantity"] * i["price_at_add_time"] for i in items)
    return total_items, _round(total_price, 2)


def recompute_cart(cart: dict) -> dict:
    cart["total_items"], cart["total_price"] = cart_totals(cart.get("items", []))
    return cart


def add_line_item(items: List[dict], product_id: Any, quantity: int, price: float) -> List[dict]:
    """Merge-on-add: bump the existing line or append one priced at ``price``.

    The stored price of an existing line is left alone.
    """
    for item in items:
        if _same(item["product"], product_id):
            item["quantity"] += quantity
            return items
    items.append({"product": product_id, "quantity": quantity, "price_at_add_time": price})
    return items


def apply_quantity_delta(items: List[dict], product_id: Any, delta: int) -> Tuple[List[dict], bool]:
    for index, item in enumerate(items):
        if _same(item["product"], product_id):
            new_quantity = item["quantity"] + delta
            if new_quantity <= 0:
                del items[index]
                return items, True
            item["quantity"] = new_quantity
            return items, False
    raise KeyError(str(product_id))


def remove_line_item(items: List[dict], product_id: Any) -> List[dict]:
    return [i for i in items if not _same(i["product"], product_id)]


# ----------------------- Orders -----------------------
def order_totals(items_price: float) -> Dict[str, float]:
    tax_price = _round(items_price * TAX_RATE, 2)
    shipping_price = 0 if items_price > FREE_SHIPPING_THRESHOLD else SHIPPING_FEE
    return {
        "items_price": items_price,
        "tax_price": tax_price,
        "shipping_price": shipping_price,
        "total_price": _round(items_price + tax_price + shipping_price, 2),
    }


def discount_percentage(actual_price: float, selling_price: float) -> int:
    if not actual_price or actual_price <= 0:
        return 0
    return int(_round((actual_price - selling_price) / actual_price * 100, 0))


# ----------------------- Lists -----------------------
def push_recent(products: List[Any], product_id: Any, limit: int = RECENTLY_VIEWED_LIMIT) -> List[Any]:
    rest = [p for p in products if not _same(p, product_id)]
    return [product_id, *rest][:limit]


# ----------------------- Reports -----------------------
def category_shares(amounts: Dict[str, Tuple[str, float]], top: int = TOP_CATEGORY_COUNT) -> List[dict]:
    """Rank categories by sales, keep ``top`` of them and fold the rest into
    "Others".

    ``amounts`` maps a category id to ``(label, amount)``. Percentages are
    rounded to one decimal and "Others" absorbs the rounding error so the
    values add up to exactly 100. When that would push "Others" below zero
    the largest category takes the correction instead.
    """
    ranked = sorted(
        ((cid, label, amount) for cid, (label, amount) in amounts.items() if amount > 0),
        key=lambda row: row[2],
        reverse=True,
    )
    total = sum(row[2] for row in ranked)
    head, tail = ranked[:top], ranked[top:]
    other_amount = sum(row[2] for row in tail)

    def share(amount: float) -> Decimal:
        if total <= 0:
            return Decimal("0.0")
        return Decimal(str(amount / total * 100)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)

    result = [
        {"id": index, "category_id": cid, "label": label, "amount": _round(amount, 2), "value": share(amount)}
        for index, (cid, label, amount) in enumerate(head)
    ]
    result.append({"id": top, "category_id": None, "label": "Others", "amount": _round(other_amount, 2), "value": share(other_amount)})

    head_sum = sum((row["value"] for row in result[:-1]), Decimal("0.0"))
    result[-1]["value"] = (Decimal("100") - head_sum).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if result[-1]["value"] < 0:
        result[0]["value"] += result[-1]["value"]
        result[-1]["value"] = Decimal("0.0")
    for row in result:
        row["value"] = float(row["value"])
    return result


def merge_offer_products(existing: Iterable[dict], incoming: Iterable[dict]) -> List[dict]:
    """Entries of ``incoming`` whose product is not already in the offer."""
    seen = {str(p["product_id"]) for p in existing}
    fresh = []
    for entry in incoming:
        key = str(entry["product_id"])
        if key in seen:
            continue
        seen.add(key)
        fresh.append(entry)
    return fresh


def is_window_active(start: datetime, end: datetime, now: datetime) -> bool:
    return start <= now < end


# ----------------------- Catalog -----------------------
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def price_bucket(price: Optional[float]) -> str:
    if price is None:
        return "Unknown"
    if price < 2000:
        return "< 2000"
    if price <= 2500:
        return "2000 - 2500"
    return "> 2500"


def paginate(total: int, page: int, per_page: int) -> dict:
    total_pages = math.ceil(total / per_page) if per_page else 0
    has_next = page < total_pages
    has_previous = page > 1
    return {
        "current_page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next_page": has_next,
        "has_previous_page": has_previous,
        "next_page": page + 1 if has_next else None,
        "previous_page": page - 1 if has_previous else None,
    }
