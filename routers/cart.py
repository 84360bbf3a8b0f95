from copy import deepcopy
from typing import Callable, List

import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import Identity, current_user
from config import WRITE_ATTEMPTS
from database import create_document, get_db, now_utc, oid
from pricing import add_line_item, apply_quantity_delta, cart_totals, recompute_cart, remove_line_item
from responses import ok
from schemas import Cart

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])


class AddToCartBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateCartBody(BaseModel):
    id: str
    quantity: int


def write_cart(db: Database, user: ObjectId, mutate: Callable[[List[dict]], List[dict]], create: bool = False) -> dict:
    """Apply ``mutate`` to the user's cart items and save with a version check.

    A concurrent writer bumps the version first, in which case the cart is
    re-read and ``mutate`` applied again. ``mutate`` may raise HTTPException.
    """
    for _ in range(WRITE_ATTEMPTS):
        cart = db["cart"].find_one({"user": user})
        if cart is None:
            if not create:
                raise HTTPException(status_code=404, detail="Cart not found")
            items = mutate([])
            total_items, total_price = cart_totals(items)
            model = Cart(user=user, items=items, total_items=total_items, total_price=total_price)
            try:
                cart_id = create_document(db, "cart", model)
            except DuplicateKeyError:
                continue
            return db["cart"].find_one({"_id": ObjectId(cart_id)})

        items = mutate(deepcopy(cart.get("items", [])))
        total_items, total_price = cart_totals(items)
        result = db["cart"].update_one(
            {"_id": cart["_id"], "version": cart.get("version", 0)},
            {
                "$set": {"items": items, "total_items": total_items, "total_price": total_price, "updated_at": now_utc()},
                "$inc": {"version": 1},
            },
        )
        if result.modified_count:
            return db["cart"].find_one({"_id": cart["_id"]})
        logger.warning("cart_write_conflict", user_id=str(user))
    raise HTTPException(status_code=409, detail="Cart was modified concurrently, please retry")


@router.post("/add_to_cart", status_code=201)
def add_to_cart(body: AddToCartBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": oid(body.product_id, "product id")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    def mutate(items):
        return add_line_item(items, product["_id"], body.quantity, product["selling_price"])

    cart = write_cart(db, oid(identity.id, "user id"), mutate, create=True)
    logger.info("cart_item_added", user_id=identity.id, product_id=body.product_id, quantity=body.quantity)
    return ok(cart, "Item added to cart")


@router.get("/get_user_cart")
def get_user_cart(identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    cart = db["cart"].find_one({"user": oid(identity.id, "user id")})
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    recompute_cart(cart)
    ids = [item["product"] for item in cart.get("items", [])]
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}})}
    for item in cart["items"]:
        item["product"] = products.get(item["product"], item["product"])
    return ok(cart)


@router.get("/remove_item_from_cart/{product_id}")
def remove_item_from_cart(product_id: str, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    target = oid(product_id, "product id")
    cart = write_cart(db, oid(identity.id, "user id"), lambda items: remove_line_item(items, target))
    return ok(cart, "Item removed from cart")


@router.post("/update_cart")
def update_cart(body: UpdateCartBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    target = oid(body.id, "product id")
    removed = []

    def mutate(items):
        try:
            items, was_removed = apply_quantity_delta(items, target, body.quantity)
        except KeyError:
            raise HTTPException(status_code=404, detail="Item not found")
        removed[:] = [was_removed]
        return items

    cart = write_cart(db, oid(identity.id, "user id"), mutate)
    return ok(cart, "Item removed from cart" if removed and removed[0] else "Cart updated successfully")
