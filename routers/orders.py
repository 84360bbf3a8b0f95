import secrets
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from pymongo import UpdateOne
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import Identity, current_admin, current_user, require_roles
from config import BUY_NOW_TTL_SECONDS, WRITE_ATTEMPTS
from database import as_utc, create_document, get_db, now_utc, oid
from pricing import add_line_item, cart_totals, category_shares, discount_percentage, order_totals, paginate
from responses import ok
from schemas import BuyNowItem, BuyNowSession, Order, OrderItem, OrderStatus, ShippingAddress, StatusEntry

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/order", tags=["order"])

user_or_admin = require_roles("user", "admin")

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class CreateOrderBody(BaseModel):
    address_id: str


class BuyNowBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateOrderBody(BaseModel):
    order_status: OrderStatus


# ----------------------- Helpers -----------------------
def new_order_id(db: Database) -> str:
    while True:
        order_id = str(10 ** 9 + secrets.randbelow(9 * 10 ** 9))
        if not db["order"].find_one({"order_id": order_id}, {"_id": 1}):
            return order_id


def load_order(db: Database, order_id: str) -> dict:
    order = db["order"].find_one({"_id": oid(order_id, "order id")})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def record_sales(db: Database, order_items: list) -> None:
    """Bump product sales counters. The order stands even if this fails."""
    updates = [UpdateOne({"_id": item["product"]}, {"$inc": {"sales_count": item["quantity"]}}) for item in order_items]
    if not updates:
        return
    try:
        db["product"].bulk_write(updates, ordered=False)
    except PyMongoError:
        logger.exception("sales_count_update_failed", products=[str(i["product"]) for i in order_items])


def sales_rows(db: Database) -> list:
    """Quantity and revenue per product across all orders, best sellers first."""
    pipeline = [
        {"$unwind": "$order_items"},
        {
            "$group": {
                "_id": "$order_items.product",
                "total_quantity_sold": {"$sum": "$order_items.quantity"},
                "total_revenue": {"$sum": {"$multiply": ["$order_items.quantity", "$order_items.price"]}},
                "order_count": {"$sum": 1},
            }
        },
        {"$sort": {"total_quantity_sold": -1}},
    ]
    rows = list(db["order"].aggregate(pipeline))
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": [r["_id"] for r in rows]}})}
    subcategories = {s["_id"]: s for s in db["subcategory"].find({"_id": {"$in": [p.get("subcategory") for p in products.values()]}})}

    result = []
    for row in rows:
        product = products.get(row["_id"])
        if product is None:
            continue
        subcategory = subcategories.get(product.get("subcategory"))
        result.append(
            {
                "product_id": product["_id"],
                "name": product["name"],
                "image": (product.get("images") or [None])[0],
                "selling_price": product.get("selling_price"),
                "actual_price": product.get("actual_price"),
                "discount": discount_percentage(product.get("actual_price", 0), product.get("selling_price", 0)),
                "subcategory": {"id": subcategory["_id"], "name": subcategory["menu_name"]} if subcategory else None,
                "total_quantity_sold": row["total_quantity_sold"],
                "total_revenue": row["total_revenue"],
                "order_count": row["order_count"],
            }
        )
    return result


def build_order(user_id: ObjectId, order_id: str, address: dict, items: list, products: dict) -> Order:
    order_items = [
        OrderItem(
            product=item["product"],
            name=products[item["product"]]["name"],
            quantity=item["quantity"],
            price=item["price_at_add_time"],
            image=(products[item["product"]].get("images") or [None])[0],
        )
        for item in items
    ]
    _, items_price = cart_totals(items)
    return Order(
        user=user_id,
        order_id=order_id,
        order_items=order_items,
        shipping_address=ShippingAddress(
            full_name=address["full_name"],
            address=address["address"],
            city=address["city"],
            postal_code=address["pincode"],
            state=address["state"],
            phone=address.get("phone"),
        ),
        status=[StatusEntry(order_status="ordered", status_date_time=now_utc())],
        **order_totals(items_price),
    )


def restore_cart(db: Database, cart_id: ObjectId, claimed: list) -> None:
    """Merge claimed lines back into the cart, keeping anything added since."""
    for _ in range(WRITE_ATTEMPTS):
        cart = db["cart"].find_one({"_id": cart_id})
        if cart is None:
            break
        items = cart.get("items", [])
        for line in claimed:
            items = add_line_item(items, line["product"], line["quantity"], line["price_at_add_time"])
        total_items, total_price = cart_totals(items)
        restored = db["cart"].update_one(
            {"_id": cart_id, "version": cart.get("version", 0)},
            {"$set": {"items": items, "total_items": total_items, "total_price": total_price, "updated_at": now_utc()}, "$inc": {"version": 1}},
        )
        if restored.modified_count:
            return
    logger.error("cart_restore_failed", cart_id=str(cart_id), items=len(claimed))


# ----------------------- Checkout -----------------------
@router.post("/create_order", status_code=201)
def create_order(body: CreateOrderBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    user_id = oid(identity.id, "user id")
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    address = next((a for a in user.get("addresses", []) if str(a.get("_id")) == body.address_id), None)

    for _ in range(WRITE_ATTEMPTS):
        cart = db["cart"].find_one({"user": user_id})
        if not cart or not cart.get("items"):
            raise HTTPException(status_code=400, detail="Cart is empty or not found")
        if address is None:
            raise HTTPException(status_code=400, detail="Address not found")

        products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": [i["product"] for i in cart["items"]]}})}
        missing = [str(i["product"]) for i in cart["items"] if i["product"] not in products]
        if missing:
            raise HTTPException(status_code=400, detail=f"Products no longer available: {', '.join(missing)}")

        # Everything the order needs is built before the cart is touched.
        order = build_order(user_id, new_order_id(db), address, cart["items"], products)

        claimed = db["cart"].update_one(
            {"_id": cart["_id"], "version": cart.get("version", 0)},
            {"$set": {"items": [], "total_items": 0, "total_price": 0, "updated_at": now_utc()}, "$inc": {"version": 1}},
        )
        if claimed.modified_count:
            break
        logger.warning("checkout_cart_conflict", user_id=identity.id)
    else:
        raise HTTPException(status_code=409, detail="Cart was modified concurrently, please retry")

    try:
        order_ref = create_document(db, "order", order)
    except Exception:
        logger.exception("order_insert_failed", user_id=identity.id, order_id=order.order_id)
        restore_cart(db, cart["_id"], cart["items"])
        raise

    record_sales(db, [i.model_dump() for i in order.order_items])
    logger.info("order_created", order_id=order.order_id, user_id=identity.id, total_price=order.total_price)
    return ok(db["order"].find_one({"_id": ObjectId(order_ref)}), "Order created successfully")


@router.post("/buy_now")
def buy_now(body: BuyNowBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": oid(body.product_id, "product id")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    session = BuyNowSession(
        session_id=str(ObjectId()),
        user=oid(identity.id, "user id"),
        items=[BuyNowItem(product=product["_id"], quantity=body.quantity, price=product["selling_price"])],
        total_items=body.quantity,
        total_price=round(product["selling_price"] * body.quantity, 2),
        expires_at=now_utc() + timedelta(seconds=BUY_NOW_TTL_SECONDS),
    )
    create_document(db, "buynowsession", session)
    return ok({"session_id": session.session_id})


@router.get("/buy_now/{session_id}")
def get_buy_now(session_id: str, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    session = db["buynowsession"].find_one({"session_id": session_id, "user": oid(identity.id, "user id")})
    # The TTL monitor runs about once a minute, so expiry is checked here too.
    if not session or as_utc(session["expires_at"]) <= now_utc():
        raise HTTPException(status_code=404, detail="Session expired or not found")
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": [i["product"] for i in session["items"]]}})}
    for item in session["items"]:
        item["product"] = products.get(item["product"], item["product"])
    return ok(session)


# ----------------------- Lookup -----------------------
@router.get("/get_order_by_id/{order_id}")
def get_order_by_id(order_id: str, identity: Identity = Depends(user_or_admin), db: Database = Depends(get_db)):
    order = load_order(db, order_id)
    if identity.role == "user" and str(order["user"]) != identity.id:
        raise HTTPException(status_code=404, detail="Order not found")
    user = db["user"].find_one({"_id": order["user"]}, {"first_name": 1, "last_name": 1, "email": 1})
    order["user"] = user or order["user"]
    return ok(order)


@router.get("/user_orders")
def user_orders(identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    orders = db["order"].find({"user": oid(identity.id, "user id")}).sort("created_at", -1)
    return ok(list(orders), "Orders fetched successfully")


@router.get("/get_total_orders")
def get_total_orders(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok(list(db["order"].find().sort("created_at", -1)))


@router.get("/query")
def query_orders(
    user: Optional[str] = Query(None),
    status: Optional[OrderStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: Identity = Depends(current_admin),
    db: Database = Depends(get_db),
):
    query = {}
    if user:
        query["user"] = oid(user, "user id")
    if status:
        query["status.order_status"] = status
    if date_from or date_to:
        query["created_at"] = {}
        if date_from:
            query["created_at"]["$gte"] = as_utc(date_from)
        if date_to:
            query["created_at"]["$lte"] = as_utc(date_to)

    total = db["order"].count_documents(query)
    orders = db["order"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return ok({"orders": list(orders), "pagination": paginate(total, page, limit)})


@router.post("/update_order/{order_id}")
def update_order(order_id: str, body: UpdateOrderBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    order = load_order(db, order_id)
    stamp = now_utc()
    changes = {"updated_at": stamp}
    if body.order_status == "delivered":
        changes.update(is_delivered=True, delivered_at=stamp)
    elif body.order_status == "cancelled":
        changes.update(is_cancelled=True, cancelled_at=stamp)
    entry = StatusEntry(order_status=body.order_status, status_date_time=stamp).model_dump()
    db["order"].update_one({"_id": order["_id"]}, {"$push": {"status": entry}, "$set": changes})
    logger.info("order_status_changed", order_id=order_id, status=body.order_status)
    return ok(load_order(db, order_id), "Order updated successfully")


# ----------------------- Analytics -----------------------
@router.get("/total_revenue")
def total_revenue(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    rows = list(db["order"].aggregate([{"$group": {"_id": None, "total_revenue": {"$sum": "$total_price"}}}]))
    return ok({"total_revenue": rows[0]["total_revenue"] if rows else 0})


@router.get("/get_monthly_orders")
def get_monthly_orders(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    rows = db["order"].aggregate([{"$group": {"_id": {"$month": "$created_at"}, "total_orders": {"$sum": 1}}}, {"$sort": {"_id": 1}}])
    return ok([{"month": r["_id"], "total_orders": r["total_orders"]} for r in rows])


@router.get("/get_yearly_orders")
def get_yearly_orders(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    year = now_utc().year
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    buckets = [{"month": name, "total_orders": 0, "total_amount": 0} for name in MONTHS]
    for order in db["order"].find({"created_at": {"$gte": start, "$lt": end}}, {"created_at": 1, "total_price": 1}):
        bucket = buckets[order["created_at"].month - 1]
        bucket["total_orders"] += 1
        bucket["total_amount"] = round(bucket["total_amount"] + order.get("total_price", 0), 2)
    return ok(buckets, "Yearly orders retrieved successfully")


@router.get("/get_daily_orders")
def get_daily_orders(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    rows = db["order"].aggregate([{"$group": {"_id": {"$dayOfMonth": "$created_at"}, "total_orders": {"$sum": 1}}}, {"$sort": {"_id": 1}}])
    return ok([{"day": r["_id"], "total_orders": r["total_orders"]} for r in rows])


@router.get("/get_order_by_category")
def get_order_by_category(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    labels = {s["_id"]: s["menu_name"] for s in db["subcategory"].find({}, {"menu_name": 1})}
    product_subcategory = {p["_id"]: p.get("subcategory") for p in db["product"].find({}, {"subcategory": 1})}

    amounts = defaultdict(float)
    for order in db["order"].find({}, {"order_items": 1}):
        for item in order.get("order_items", []):
            subcategory = product_subcategory.get(item["product"])
            if subcategory in labels:
                amounts[subcategory] += item["quantity"] * item["price"]

    shares = category_shares({str(k): (labels[k], v) for k, v in amounts.items()})
    return ok(shares, "Sales by category retrieved successfully")


@router.get("/top_selling_products")
def top_selling_products(limit: int = Query(10, ge=1, le=100), _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok(sales_rows(db)[:limit], "Top selling products retrieved successfully")


@router.get("/top_selling_by_subcategory")
def top_selling_by_subcategory(limit: int = Query(5, ge=1, le=100), _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    groups = {}
    for row in sales_rows(db):
        subcategory = row["subcategory"]
        if subcategory is None:
            continue
        group = groups.setdefault(subcategory["id"], {"id": subcategory["id"], "subcategory_name": subcategory["name"], "products": []})
        if len(group["products"]) < limit:
            group["products"].append(row)
    result = sorted(groups.values(), key=lambda g: g["subcategory_name"])
    return ok(result, "Top selling products by subcategory retrieved successfully")
