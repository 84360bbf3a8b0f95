import structlog
from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from auth import Identity, current_user
from database import get_db, now_utc, oid
from responses import ok

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


def populated(db: Database, wishlist: dict) -> dict:
    ids = wishlist.get("products", [])
    found = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}}, {"name": 1, "selling_price": 1, "actual_price": 1, "images": 1})}
    wishlist["products"] = [found[pid] for pid in ids if pid in found]
    return wishlist


@router.get("/get_user_wishlist")
def get_user_wishlist(identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    wishlist = db["wishlist"].find_one({"user": oid(identity.id, "user id")})
    if not wishlist:
        return ok({"products": []}, "Wishlist is empty")
    return ok(populated(db, wishlist), "Wishlist retrieved successfully")


@router.post("/add_to_wishlist/{product_id}")
def add_to_wishlist(product_id: str, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    target = oid(product_id, "product id")
    if not db["product"].find_one({"_id": target}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")
    user = oid(identity.id, "user id")
    if db["wishlist"].find_one({"user": user, "products": target}, {"_id": 1}):
        message = "Product already in wishlist"
    else:
        db["wishlist"].update_one(
            {"user": user},
            {"$addToSet": {"products": target}, "$set": {"updated_at": now_utc()}, "$setOnInsert": {"created_at": now_utc()}},
            upsert=True,
        )
        message = "Product added to wishlist"
    return ok(populated(db, db["wishlist"].find_one({"user": user})), message)


@router.post("/remove_from_wishlist/{product_id}")
def remove_from_wishlist(product_id: str, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    target = oid(product_id, "product id")
    user = oid(identity.id, "user id")
    result = db["wishlist"].update_one({"user": user}, {"$pull": {"products": target}, "$set": {"updated_at": now_utc()}})
    if not result.matched_count:
        raise HTTPException(status_code=404, detail="Wishlist not found")
    return ok(populated(db, db["wishlist"].find_one({"user": user})), "Product removed from wishlist")


@router.get("/check/{product_id}")
def check_in_wishlist(product_id: str, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    target = oid(product_id, "product id")
    found = db["wishlist"].find_one({"user": oid(identity.id, "user id"), "products": target}, {"_id": 1})
    message = "Product is in wishlist" if found else "Product is not in wishlist"
    return ok({"in_wishlist": found is not None}, message)


@router.delete("/")
def clear_wishlist(identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    result = db["wishlist"].delete_one({"user": oid(identity.id, "user id")})
    if not result.deleted_count:
        raise HTTPException(status_code=404, detail="Wishlist not found or already empty")
    logger.info("wishlist_cleared", user_id=identity.id)
    return ok({"products": []}, "Wishlist cleared successfully")
