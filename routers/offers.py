from datetime import datetime
from typing import List, Optional, Tuple

import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import Identity, current_admin
from config import BEST_SELLER_TYPE, DAILY_OFFER_TYPE, WRITE_ATTEMPTS
from database import as_utc, create_document, get_db, now_utc, oid, serialize_doc
from pricing import merge_offer_products, paginate
from responses import ok
from schemas import Banner, Offer, OfferProduct
from storage import delete_file, upload_file

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/offer", tags=["offer"])


# ----------------------- Models -----------------------
class OfferEntryBody(BaseModel):
    product_id: str
    start_date: datetime
    end_date: datetime


class NamedOfferEntryBody(BaseModel):
    product_name: str
    start_date: datetime
    end_date: datetime


class AddOffersBody(BaseModel):
    type: str
    description: Optional[str] = None
    products: List[OfferEntryBody]


class ImportOfferBody(BaseModel):
    products: List[NamedOfferEntryBody]


class OfferPatch(BaseModel):
    description: Optional[str] = None
    is_active: Optional[bool] = None


class EditBannerBody(BaseModel):
    banner_id: str
    image: Optional[str] = None
    offer_name: Optional[str] = None
    product_id: Optional[str] = None
    is_active: Optional[bool] = None


# ----------------------- Helpers -----------------------
def checked_window(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    start, end = as_utc(start), as_utc(end)
    if end <= start:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    return start, end


def append_offer_products(db: Database, offer_type: str, entries: List[dict], description: Optional[str] = None) -> Tuple[dict, bool, int]:
    """Add ``entries`` to the offer named ``offer_type``, creating it if needed.

    Products already in the offer are skipped. Returns the offer, whether it
    was created, and how many entries were added.
    """
    for _ in range(WRITE_ATTEMPTS):
        offer = db["offer"].find_one({"type": offer_type})
        if offer is None:
            fresh = merge_offer_products([], entries)
            model = Offer(type=offer_type, description=description, products=[OfferProduct(**e) for e in fresh])
            try:
                offer_id = create_document(db, "offer", model)
            except DuplicateKeyError:
                continue
            return db["offer"].find_one({"_id": ObjectId(offer_id)}), True, len(fresh)

        fresh = merge_offer_products(offer.get("products", []), entries)
        if not fresh:
            return offer, False, 0
        result = db["offer"].update_one(
            {"_id": offer["_id"], "version": offer.get("version", 0)},
            {"$push": {"products": {"$each": fresh}}, "$inc": {"version": 1}, "$set": {"updated_at": now_utc()}},
        )
        if result.modified_count:
            return db["offer"].find_one({"_id": offer["_id"]}), False, len(fresh)
        logger.warning("offer_write_conflict", offer_type=offer_type)
    raise HTTPException(status_code=409, detail="Offer was modified concurrently, please retry")


def add_to_offer(db: Database, offer_type: str, product_id: ObjectId, start: datetime, end: datetime) -> None:
    append_offer_products(db, offer_type, [{"product_id": product_id, "start_date": start, "end_date": end}])


def offer_response(offer: dict, created: bool, added: int):
    if created:
        return JSONResponse(status_code=201, content={"status": True, "message": "Offer created successfully", "data": serialize_doc(offer)})
    if not added:
        return ok(offer, "All products already exist in the offer")
    return ok(offer, "Offer updated with new products")


def with_products(db: Database, offer: dict, limit: Optional[int] = None) -> dict:
    entries = offer.get("products", [])
    if limit is not None:
        entries = entries[:limit]
    found = {p["_id"]: p for p in db["product"].find({"_id": {"$in": [e["product_id"] for e in entries]}})}
    offer["products"] = [{**e, "product": found.get(e["product_id"])} for e in entries]
    return offer


def load_offer(db: Database, offer_id: str) -> dict:
    offer = db["offer"].find_one({"_id": oid(offer_id, "offer id")})
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


# ----------------------- Offers -----------------------
@router.post("/add_offers")
def add_offers(body: AddOffersBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    if not body.type.strip() or not body.products:
        raise HTTPException(status_code=400, detail="Type and at least one product are required")
    ids = [oid(p.product_id, "product id") for p in body.products]
    if db["product"].count_documents({"_id": {"$in": list(set(ids))}}) != len(set(ids)):
        raise HTTPException(status_code=400, detail="One or more products not found")

    entries = []
    for product_id, entry in zip(ids, body.products):
        start, end = checked_window(entry.start_date, entry.end_date)
        entries.append({"product_id": product_id, "start_date": start, "end_date": end})

    offer, created, added = append_offer_products(db, body.type.strip(), entries, body.description)
    logger.info("offer_products_added", offer_type=body.type, added=added, created=created)
    return offer_response(offer, created, added)


@router.post("/import_offer/{offer_type}")
def import_offer(offer_type: str, body: ImportOfferBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    if not body.products:
        raise HTTPException(status_code=400, detail="Type and at least one product are required")
    names = [p.product_name for p in body.products]
    by_name = {p["name"]: p["_id"] for p in db["product"].find({"name": {"$in": names}}, {"name": 1})}
    missing = [n for n in names if n not in by_name]
    if missing:
        raise HTTPException(status_code=400, detail=f"Products not found: {', '.join(missing)}")

    entries = []
    for entry in body.products:
        start, end = checked_window(entry.start_date, entry.end_date)
        entries.append({"product_id": by_name[entry.product_name], "start_date": start, "end_date": end})

    offer, created, added = append_offer_products(db, offer_type, entries)
    return offer_response(offer, created, added)


@router.post("/update_offers/{offer_type}")
def update_offers(offer_type: str, body: OfferEntryBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    start, end = checked_window(body.start_date, body.end_date)
    product_id = oid(body.product_id, "product id")
    if not db["product"].find_one({"_id": product_id}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")
    if not db["offer"].find_one({"type": offer_type}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Offer not found")

    result = db["offer"].update_one(
        {"type": offer_type, "products.product_id": product_id},
        {"$set": {"products.$.start_date": start, "products.$.end_date": end, "updated_at": now_utc()}, "$inc": {"version": 1}},
    )
    if result.matched_count:
        message = "Product in offer updated successfully"
    else:
        append_offer_products(db, offer_type, [{"product_id": product_id, "start_date": start, "end_date": end}])
        message = "Product added to offer successfully"
    return ok(db["offer"].find_one({"type": offer_type}), message)


@router.get("/get_all_offers")
def get_all_offers(limit: int = Query(10, ge=1), db: Database = Depends(get_db)):
    offers = [with_products(db, offer, limit) for offer in db["offer"].find().sort("created_at", -1)]
    return ok(offers, "Offers fetched successfully")


@router.get("/get_offers/{offer_type}")
def get_offers(offer_type: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), db: Database = Depends(get_db)):
    offer = db["offer"].find_one({"type": offer_type})
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    entries = offer.get("products", [])
    window = entries[(page - 1) * limit: page * limit]
    found = {p["_id"]: p for p in db["product"].find({"_id": {"$in": [e["product_id"] for e in window]}})}
    products = [
        {"offer_id": offer["_id"], "product": found.get(e["product_id"]), "start_date": e["start_date"], "end_date": e["end_date"]}
        for e in window
    ]
    return ok({"products": products, "pagination": paginate(len(entries), page, limit)})


@router.get("/get_dynamic_offers")
def get_dynamic_offers(db: Database = Depends(get_db)):
    offers = db["offer"].find({"type": {"$nin": [DAILY_OFFER_TYPE, BEST_SELLER_TYPE]}}).sort("created_at", -1)
    return ok([with_products(db, offer) for offer in offers], "Offers fetched successfully")


def active_offer_pipeline(offer_type: str, now: datetime) -> list:
    """Offers of one type with only the products whose window contains ``now``, each joined to its product."""
    window = {"products.start_date": {"$lte": now}, "products.end_date": {"$gt": now}}
    return [
        {"$match": {"type": offer_type, "is_active": True, **window}},
        {"$unwind": "$products"},
        {"$match": window},
        {"$lookup": {"from": "product", "localField": "products.product_id", "foreignField": "_id", "as": "products.product"}},
        {"$unwind": "$products.product"},
        {
            "$group": {
                "_id": "$_id",
                "type": {"$first": "$type"},
                "description": {"$first": "$description"},
                "products": {"$push": "$products"},
                "created_at": {"$first": "$created_at"},
            }
        },
        {"$sort": {"created_at": -1}},
    ]


@router.get("/active/{offer_type}")
def active_offers(offer_type: str, db: Database = Depends(get_db)):
    return ok(list(db["offer"].aggregate(active_offer_pipeline(offer_type, now_utc()))))


@router.post("/delete_product_from_offer/{offer_type}/{product_id}")
def delete_product_from_offer(offer_type: str, product_id: str, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    result = db["offer"].update_one(
        {"type": offer_type},
        {"$pull": {"products": {"product_id": oid(product_id, "product id")}}, "$inc": {"version": 1}, "$set": {"updated_at": now_utc()}},
    )
    if not result.matched_count:
        raise HTTPException(status_code=404, detail="Offer not found")
    return ok(db["offer"].find_one({"type": offer_type}), "Product deleted successfully from offer")


@router.post("/delete_dynamic_offer/{offer_type}")
def delete_dynamic_offer(offer_type: str, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    offer = db["offer"].find_one({"type": offer_type})
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    db["offer"].update_one({"_id": offer["_id"]}, {"$set": {"is_active": not offer.get("is_active", True), "updated_at": now_utc()}})
    return ok(db["offer"].find_one({"_id": offer["_id"]}), "Offer status updated successfully")


# ----------------------- Banners -----------------------
@router.post("/add_banner", status_code=201)
def add_banner(
    offer_name: Optional[str] = Form(None),
    product_id: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _: Identity = Depends(current_admin),
    db: Database = Depends(get_db),
):
    offer_name = (offer_name or "").strip() or None
    product_id = (product_id or "").strip() or None
    if not offer_name and not product_id:
        raise HTTPException(status_code=400, detail="Either offer name or product id is required")

    url = ""
    if image is not None and image.filename:
        url = upload_file(image.file.read(), image.content_type, "banners")
    banner = Banner(image=url, offer_name=offer_name, product_id=oid(product_id, "product id") if product_id else None)
    banner_id = create_document(db, "banner", banner)
    logger.info("banner_created", banner_id=banner_id)
    return ok(db["banner"].find_one({"_id": ObjectId(banner_id)}), "Banner created successfully")


@router.get("/get_banners")
def get_banners(db: Database = Depends(get_db)):
    banners = list(db["banner"].find().sort("created_at", -1))
    linked = [b["product_id"] for b in banners if b.get("product_id")]
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": linked}})}
    for banner in banners:
        banner["product"] = products.get(banner.get("product_id"))
    return ok(banners, "Banners fetched successfully")


@router.post("/edit_banner")
def edit_banner(body: EditBannerBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    banner_id = oid(body.banner_id, "banner id")
    if not db["banner"].find_one({"_id": banner_id}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Banner not found")
    changes = body.model_dump(exclude_none=True, exclude={"banner_id"})
    if "product_id" in changes:
        changes["product_id"] = oid(changes["product_id"], "product id")
    changes["updated_at"] = now_utc()
    db["banner"].update_one({"_id": banner_id}, {"$set": changes})
    return ok(db["banner"].find_one({"_id": banner_id}), "Banner updated successfully")


@router.post("/delete_banner/{banner_id}")
def delete_banner(banner_id: str, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    target = oid(banner_id, "banner id")
    banner = db["banner"].find_one({"_id": target})
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")
    delete_file(banner.get("image"))
    db["banner"].delete_one({"_id": target})
    logger.info("banner_deleted", banner_id=banner_id)
    return ok(None, "Banner deleted successfully")


# ----------------------- Offer by id -----------------------
@router.post("/{offer_id}")
def update_offer(offer_id: str, body: OfferPatch, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    offer = load_offer(db, offer_id)
    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = now_utc()
    db["offer"].update_one({"_id": offer["_id"]}, {"$set": changes})
    return ok(with_products(db, load_offer(db, offer_id)), "Offer updated successfully")


@router.delete("/{offer_id}")
def delete_offer(offer_id: str, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    offer = load_offer(db, offer_id)
    db["offer"].update_one({"_id": offer["_id"]}, {"$set": {"is_active": False, "updated_at": now_utc()}})
    return ok(load_offer(db, offer_id), "Offer deleted successfully")
