import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import requests
import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pymongo.database import Database

from auth import Identity, admin_or_vendor, current_user
from config import BEST_SELLER_DAYS, BEST_SELLER_TYPE, DAILY_OFFER_HOURS, DAILY_OFFER_TYPE
from database import as_utc, get_db, get_documents, now_utc, oid, serialize_doc
from pricing import discount_percentage, is_window_active, paginate, price_bucket, push_recent
from responses import ok
from routers.offers import add_to_offer
from schemas import Product, SpecSection
from storage import delete_file, upload_file

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

HIDDEN_FIELDS = {"created_at": 0, "updated_at": 0}

SORTS = {
    "price_asc": [("selling_price", 1)],
    "price_desc": [("selling_price", -1)],
    "bestselling": [("sales_count", -1)],
    "rating": [("ratings", -1)],
    "newest": [("created_at", -1)],
}

# (facet key, specification section, specification label)
SPEC_FACETS = [
    ("processor", "Processor And Memory Features", "Processor Name"),
    ("generation", "Processor And Memory Features", "Processor Generation"),
    ("ram", "Processor And Memory Features", "RAM"),
    ("storage_type", "Processor And Memory Features", "Storage Type"),
    ("ssd_capacity", "Processor And Memory Features", "SSD Capacity"),
    ("screen_size", "Display And Audio Features", "Screen Size"),
    ("resolution", "Display And Audio Features", "Screen Resolution"),
    ("os", "Operating System", "Operating System"),
    ("color", "General", "Color"),
    ("graphics", "Processor And Memory Features", "Graphic Processor"),
]

KNOWN_QUERY_KEYS = {"brand", "min_price", "max_price", "search", "sort", "page", "limit"}

IMPORT_REQUIRED = ["name", "brand", "model_number", "section", "category", "subcategory", "description", "actual_price", "selling_price", "plu_code"]


# ----------------------- Models -----------------------
class ProductBody(BaseModel):
    name: str
    header_name: str
    brand: str
    item_code: str
    model_number: Optional[str] = None
    plu_code: Optional[str] = None
    section: str
    category: str
    subcategory: str
    description: str
    images: List[str] = []
    tags: List[str] = []
    actual_price: float = Field(..., gt=0)
    selling_price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    warranty: Optional[str] = None
    manufacturing_date: Optional[datetime] = None
    weight: Optional[str] = None
    size: Optional[str] = None
    specifications: List[SpecSection] = []
    is_active: bool = True
    is_in_stock: bool = True
    vendor_id: Optional[str] = None
    is_best_seller: bool = False
    is_daily_offer: bool = False


class EditProductBody(BaseModel):
    id: str
    name: Optional[str] = None
    header_name: Optional[str] = None
    brand: Optional[str] = None
    item_code: Optional[str] = None
    model_number: Optional[str] = None
    plu_code: Optional[str] = None
    section: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    images: List[str] = []
    tags: Optional[List[str]] = None
    actual_price: Optional[float] = Field(None, gt=0)
    selling_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    warranty: Optional[str] = None
    manufacturing_date: Optional[datetime] = None
    weight: Optional[str] = None
    size: Optional[str] = None
    specifications: Optional[List[SpecSection]] = None
    is_active: Optional[bool] = None
    is_in_stock: Optional[bool] = None
    to_delete_images: List[str] = []


class ImportRow(BaseModel):
    name: Optional[str] = None
    header_name: Optional[str] = None
    brand: Optional[str] = None
    model_number: Optional[str] = None
    item_code: Optional[str] = None
    plu_code: Optional[str] = None
    section: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    image_links: Optional[str] = None
    actual_price: Optional[float] = None
    selling_price: Optional[float] = None
    stock: int = 0
    warranty: Optional[str] = None
    manufacturing_date: Optional[datetime] = None
    weight: Optional[str] = None
    size: Optional[str] = None
    specifications: List[SpecSection] = []


class DuplicateRow(BaseModel):
    name: str
    plu_code: Optional[str] = None
    model_number: Optional[str] = None


class RecentlyViewedBody(BaseModel):
    product_id: str


class ProductQuery:
    """Filter, sort and pagination query parameters shared by product listings."""

    def __init__(
        self,
        category: Optional[str] = Query(None),
        subcategory: Optional[str] = Query(None),
        brand: Optional[str] = Query(None),
        min_price: Optional[float] = Query(None, ge=0),
        max_price: Optional[float] = Query(None, ge=0),
        search: Optional[str] = Query(None),
        sort: str = Query("newest"),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.category = category
        self.subcategory = subcategory
        self.brand = brand
        self.min_price = min_price
        self.max_price = max_price
        self.search = search
        self.sort = sort
        self.page = page
        self.limit = limit


# ----------------------- Query helpers -----------------------
def apply_common_filters(query: dict, brand=None, min_price=None, max_price=None, search=None) -> dict:
    if brand:
        query["brand"] = brand
    if min_price is not None or max_price is not None:
        price = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        query["selling_price"] = price
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"name": pattern},
            {"description": pattern},
            {"model_number": pattern},
            {"specifications.specs.value": pattern},
        ]
    return query


def sort_for(sort: Optional[str]) -> list:
    return SORTS.get(sort or "newest", SORTS["newest"])


def query_products(db: Database, params: ProductQuery, base: Optional[dict] = None) -> dict:
    query = dict(base or {})
    if params.category:
        query["category"] = oid(params.category, "category id")
    if params.subcategory:
        query["subcategory"] = oid(params.subcategory, "subcategory id")
    apply_common_filters(query, params.brand, params.min_price, params.max_price, params.search)

    total = db["product"].count_documents(query)
    cursor = (
        db["product"]
        .find(query, HIDDEN_FIELDS)
        .sort(sort_for(params.sort))
        .skip((params.page - 1) * params.limit)
        .limit(params.limit)
    )
    return {"products": list(cursor), "pagination": paginate(total, params.page, params.limit)}


def spec_value_filters(request: Request) -> Dict[str, Any]:
    """Query keys that are not standard filters match specification values."""
    values: List[str] = []
    for key, value in request.query_params.multi_items():
        if key in KNOWN_QUERY_KEYS or not value:
            continue
        values.append(value)
    if not values:
        return {}
    if len(values) == 1:
        return {"specifications.specs.value": values[0]}
    return {"specifications.specs.value": {"$in": values}}


def load_product(db: Database, product_id: str) -> dict:
    product = db["product"].find_one({"_id": oid(product_id, "product id")}, HIDDEN_FIELDS)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def resolve_menu_chain(db: Database, section: str, category: str, subcategory: str) -> tuple:
    section_doc = db["mainmenu"].find_one({"_id": oid(section, "section id")})
    if not section_doc:
        raise HTTPException(status_code=404, detail="Section not found")
    category_doc = db["category"].find_one({"_id": oid(category, "category id")})
    if not category_doc:
        raise HTTPException(status_code=404, detail="Category not found")
    subcategory_doc = db["subcategory"].find_one({"_id": oid(subcategory, "subcategory id")})
    if not subcategory_doc:
        raise HTTPException(status_code=404, detail="Subcategory not found")
    if category_doc.get("section_id") != section_doc["_id"] or subcategory_doc.get("category_id") != category_doc["_id"]:
        raise HTTPException(status_code=400, detail="Section, category and subcategory do not belong together")
    return section_doc["_id"], category_doc["_id"], subcategory_doc["_id"]


def duplicate_errors(db: Database, name: str, plu_code: Optional[str], model_number: Optional[str], session=None) -> List[str]:
    def exact(value: str) -> dict:
        return {"$regex": f"^{re.escape(value)}$", "$options": "i"}

    conditions = [{"name": exact(name)}]
    if plu_code:
        conditions.append({"plu_code": exact(plu_code)})
    if model_number:
        conditions.append({"model_number": exact(model_number)})

    errors = []
    for existing in db["product"].find({"$or": conditions}, session=session):
        if existing.get("name", "").lower() == name.lower() and "Name already exists" not in errors:
            errors.append("Name already exists")
        if plu_code and (existing.get("plu_code") or "").lower() == plu_code.lower() and "PLU Code already exists" not in errors:
            errors.append("PLU Code already exists")
        if model_number and (existing.get("model_number") or "").lower() == model_number.lower() and "Model Number already exists" not in errors:
            errors.append("Model Number already exists")
    return errors


def fetch_images(image_links: Optional[str]) -> List[str]:
    """Download every linked image and re-upload it to product storage."""
    urls = []
    for link in re.split(r"[\s,]+", image_links or ""):
        if not link:
            continue
        response = requests.get(link, timeout=15, headers={"User-Agent": "Mozilla/5.0"})
        response.raise_for_status()
        mime_type = response.headers.get("Content-Type", "image/jpeg").split(";")[0]
        urls.append(upload_file(response.content, mime_type, "products"))
    return urls


def offer_product_ids(db: Database, offer_type: str) -> List[ObjectId]:
    offer = db["offer"].find_one({"type": offer_type, "is_active": True})
    if not offer:
        return []
    now = now_utc()
    return [p["product_id"] for p in offer.get("products", []) if is_window_active(as_utc(p["start_date"]), as_utc(p["end_date"]), now)]


# ----------------------- Create & edit -----------------------
@router.post("/add_product", status_code=201)
def add_product(body: ProductBody, identity: Identity = Depends(admin_or_vendor), db: Database = Depends(get_db)):
    section, category, subcategory = resolve_menu_chain(db, body.section, body.category, body.subcategory)
    if db["product"].find_one({"name": body.name}):
        raise HTTPException(status_code=400, detail="Product with this name already exists")

    if identity.role == "vendor":
        vendor_id = oid(identity.id, "vendor id")
    else:
        vendor_id = oid(body.vendor_id or identity.id, "vendor id")

    product = Product(
        **body.model_dump(exclude={"section", "category", "subcategory", "vendor_id", "is_best_seller", "is_daily_offer"}),
        section=section,
        category=category,
        subcategory=subcategory,
        vendor_id=vendor_id,
        discount=discount_percentage(body.actual_price, body.selling_price),
    )
    doc = product.model_dump()
    doc["created_at"] = doc["updated_at"] = now_utc()
    product_id = db["product"].insert_one(doc).inserted_id

    now = now_utc()
    if body.is_best_seller:
        add_to_offer(db, BEST_SELLER_TYPE, product_id, now, now + timedelta(days=BEST_SELLER_DAYS))
    if body.is_daily_offer:
        add_to_offer(db, DAILY_OFFER_TYPE, product_id, now, now + timedelta(hours=DAILY_OFFER_HOURS))

    logger.info("product_created", product_id=str(product_id), vendor_id=str(vendor_id))
    return ok(load_product(db, str(product_id)), "Product created successfully")


@router.put("/edit_product")
def edit_product(body: EditProductBody, identity: Identity = Depends(admin_or_vendor), db: Database = Depends(get_db)):
    scope = {"_id": oid(body.id, "product id")}
    if identity.role == "vendor":
        scope["vendor_id"] = oid(identity.id, "vendor id")
    product = db["product"].find_one(scope)
    if not product:
        raise HTTPException(status_code=404, detail="You are not authorized to edit this product")

    changes = body.model_dump(exclude_none=True, exclude={"id", "images", "to_delete_images", "section", "category", "subcategory"})
    if "specifications" in changes:
        changes["specifications"] = [s.model_dump() for s in body.specifications]

    if body.section or body.category or body.subcategory:
        section, category, subcategory = resolve_menu_chain(
            db,
            body.section or str(product["section"]),
            body.category or str(product["category"]),
            body.subcategory or str(product["subcategory"]),
        )
        changes.update(section=section, category=category, subcategory=subcategory)

    if body.actual_price is not None or body.selling_price is not None:
        actual = body.actual_price if body.actual_price is not None else product["actual_price"]
        selling = body.selling_price if body.selling_price is not None else product["selling_price"]
        changes["discount"] = discount_percentage(actual, selling)

    images = list(product.get("images", []))
    for url in body.to_delete_images:
        if url in images:
            delete_file(url)
            images.remove(url)
    changes["images"] = images + [url for url in body.images if url not in images]
    changes["updated_at"] = now_utc()

    db["product"].update_one({"_id": product["_id"]}, {"$set": changes})
    logger.info("product_updated", product_id=body.id, by=identity.role)
    return ok(load_product(db, body.id), "Product updated successfully")


@router.post("/upload_image")
def upload_image(file: UploadFile = File(...), _: Identity = Depends(admin_or_vendor)):
    url = upload_file(file.file.read(), file.content_type, "products")
    return ok({"url": url}, "Image uploaded successfully")


# ----------------------- Listing -----------------------
@router.get("/get_products")
def get_products(db: Database = Depends(get_db)):
    return ok(get_documents(db, "product"))


@router.get("/get_products_by_id/{product_id}")
def get_products_by_id(product_id: str, db: Database = Depends(get_db)):
    product = load_product(db, product_id)
    product["section"] = db["mainmenu"].find_one({"_id": product.get("section")}, HIDDEN_FIELDS)
    product["category"] = db["category"].find_one({"_id": product.get("category")}, HIDDEN_FIELDS)
    product["subcategory"] = db["subcategory"].find_one({"_id": product.get("subcategory")}, HIDDEN_FIELDS)
    return ok(product)


@router.get("/get_products_by_query")
def get_products_by_query(id: Optional[str] = Query(None), params: ProductQuery = Depends(), db: Database = Depends(get_db)):
    if id:
        return ok({"product": load_product(db, id)})
    return ok(query_products(db, params))


def grouped_products(db: Database, request: Request, base: dict, children: List[dict], child_key: str) -> List[dict]:
    params = request.query_params
    min_price = params.get("min_price")
    max_price = params.get("max_price")
    try:
        min_price = float(min_price) if min_price else None
        max_price = float(max_price) if max_price else None
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid price range")

    query = apply_common_filters(dict(base), params.get("brand"), min_price, max_price, params.get("search"))
    query.update(spec_value_filters(request))

    groups = {c["_id"]: {"id": c["_id"], "menu_name": c["menu_name"], "slug": c["slug"], "products": []} for c in children}
    for product in db["product"].find(query, HIDDEN_FIELDS).sort(sort_for(params.get("sort"))):
        group = groups.get(product.get(child_key))
        if group is not None:
            group["products"].append(product)
    return list(groups.values())


@router.get("/by-mainmenu/{section_id}")
def products_by_mainmenu(section_id: str, request: Request, db: Database = Depends(get_db)):
    section = oid(section_id, "section id")
    children = list(db["category"].find({"section_id": section}).sort("item_index", 1))
    return ok(grouped_products(db, request, {"section": section}, children, "category"))


@router.get("/by-category/{category_id}")
def products_by_category(category_id: str, request: Request, db: Database = Depends(get_db)):
    category = oid(category_id, "category id")
    children = list(db["subcategory"].find({"category_id": category}).sort("item_index", 1))
    return ok(grouped_products(db, request, {"category": category}, children, "subcategory"))


@router.get("/get_filters")
def get_filters(
    section: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    db: Database = Depends(get_db),
):
    match = {}
    if section:
        match["section"] = oid(section, "section id")
    if category:
        match["category"] = oid(category, "category id")
    if subcategory:
        match["subcategory"] = oid(subcategory, "subcategory id")

    facets = {"brand": [{"$group": {"_id": "$brand"}}]}
    for key, spec_section, label in SPEC_FACETS:
        facets[key] = [
            {"$unwind": "$specifications"},
            {"$match": {"specifications.section": spec_section}},
            {"$unwind": "$specifications.specs"},
            {"$match": {"specifications.specs.label": label}},
            {"$group": {"_id": "$specifications.specs.value"}},
        ]
    facets["price"] = [{"$group": {"_id": "$selling_price"}}]

    pipeline = ([{"$match": match}] if match else []) + [{"$facet": facets}]
    result = next(db["product"].aggregate(pipeline), {})
    filters = {key: [row["_id"] for row in result.get(key, [])] for key in facets}
    buckets = []
    for price in filters["price"]:
        bucket = price_bucket(price)
        if bucket not in buckets:
            buckets.append(bucket)
    filters["price"] = buckets
    return ok(filters, "Filters generated successfully")


# ----------------------- Status toggles -----------------------
def toggle_flag(db: Database, identity: Identity, product_id: str, field: str) -> bool:
    scope = {"_id": oid(product_id, "product id")}
    if identity.role == "vendor":
        scope["vendor_id"] = oid(identity.id, "vendor id")
    product = db["product"].find_one(scope)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    value = not product.get(field, True)
    db["product"].update_one({"_id": product["_id"]}, {"$set": {field: value, "updated_at": now_utc()}})
    return value


@router.post("/change_status/{product_id}")
def change_status(product_id: str, identity: Identity = Depends(admin_or_vendor), db: Database = Depends(get_db)):
    value = toggle_flag(db, identity, product_id, "is_active")
    return ok({"is_active": value}, f"Product {'activated' if value else 'deactivated'} successfully")


@router.post("/change_stock_status/{product_id}")
def change_stock_status(product_id: str, identity: Identity = Depends(admin_or_vendor), db: Database = Depends(get_db)):
    value = toggle_flag(db, identity, product_id, "is_in_stock")
    return ok({"is_in_stock": value}, f"Product marked {'in stock' if value else 'out of stock'}")


# ----------------------- Promotions -----------------------
@router.get("/best-sellers")
def best_sellers(limit: int = Query(10, ge=1), db: Database = Depends(get_db)):
    ids = offer_product_ids(db, BEST_SELLER_TYPE)
    cursor = db["product"].find({"_id": {"$in": ids}, "is_active": True}, HIDDEN_FIELDS).sort("sales_count", -1).limit(min(limit, 100))
    return ok(list(cursor), "Best selling products retrieved successfully")


@router.get("/daily-offers")
def daily_offers(limit: int = Query(10, ge=1), db: Database = Depends(get_db)):
    ids = offer_product_ids(db, DAILY_OFFER_TYPE)
    cursor = db["product"].find({"_id": {"$in": ids}, "is_active": True}, HIDDEN_FIELDS).sort("discount", -1).limit(min(limit, 100))
    return ok(list(cursor), "Daily offers retrieved successfully")


@router.get("/discounted")
def discounted(min_discount: float = Query(10, ge=0), limit: int = Query(10, ge=1), db: Database = Depends(get_db)):
    pipeline = [
        {"$match": {"is_active": True, "actual_price": {"$gt": 0}}},
        {
            "$addFields": {
                "discount_percentage": {
                    "$multiply": [{"$divide": [{"$subtract": ["$actual_price", "$selling_price"]}, "$actual_price"]}, 100]
                }
            }
        },
        {"$match": {"discount_percentage": {"$gte": min_discount}}},
        {"$sort": {"discount_percentage": -1}},
        {"$limit": min(limit, 100)},
        {"$project": HIDDEN_FIELDS},
    ]
    products = list(db["product"].aggregate(pipeline))
    return ok({"count": len(products), "products": products}, "Discounted products retrieved successfully")


# ----------------------- Bulk import -----------------------
@router.post("/check_duplicate_product")
def check_duplicate_product(rows: List[DuplicateRow], db: Database = Depends(get_db)):
    duplicates = []
    for row in rows:
        errors = duplicate_errors(db, row.name, row.plu_code, row.model_number)
        if errors:
            duplicates.append({"item": row.model_dump(), "errors": errors})
    return {"status": not duplicates, "message": "Duplicate check completed successfully", "data": duplicates}


def import_row(db: Database, row: ImportRow, vendor_id: ObjectId, session) -> dict:
    missing = [f for f in IMPORT_REQUIRED if not getattr(row, f)]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    errors = duplicate_errors(db, row.name, row.plu_code, row.model_number, session=session)
    if errors:
        raise ValueError(f"Duplicate found: {', '.join(errors)}")

    section = db["mainmenu"].find_one({"menu_name": row.section}, session=session)
    if not section:
        raise ValueError(f"Section '{row.section}' not found")
    category = db["category"].find_one({"section_id": section["_id"], "menu_name": row.category}, session=session)
    if not category:
        raise ValueError(f"Category '{row.category}' not found")
    subcategory = db["subcategory"].find_one({"category_id": category["_id"], "menu_name": row.subcategory}, session=session)
    if not subcategory:
        raise ValueError(f"Subcategory '{row.subcategory}' not found")

    product = Product(
        name=row.name,
        header_name=row.header_name or row.name,
        brand=row.brand,
        vendor_id=vendor_id,
        item_code=row.item_code or row.plu_code,
        model_number=row.model_number,
        plu_code=row.plu_code,
        section=section["_id"],
        category=category["_id"],
        subcategory=subcategory["_id"],
        description=row.description,
        images=fetch_images(row.image_links),
        actual_price=row.actual_price,
        selling_price=row.selling_price,
        discount=discount_percentage(row.actual_price, row.selling_price),
        stock=row.stock,
        warranty=row.warranty,
        manufacturing_date=row.manufacturing_date,
        weight=row.weight,
        size=row.size,
        specifications=row.specifications,
    )
    doc = product.model_dump()
    doc["created_at"] = doc["updated_at"] = now_utc()
    return db["product"].insert_one(doc, session=session).inserted_id


@router.post("/import_product")
def import_product(rows: List[ImportRow], identity: Identity = Depends(admin_or_vendor), db: Database = Depends(get_db)):
    if not rows:
        raise HTTPException(status_code=400, detail="Products array is required and cannot be empty")
    vendor_id = oid(identity.id, "vendor id")

    results = []
    with db.client.start_session() as session:
        session.start_transaction()
        for row in rows:
            try:
                product_id = import_row(db, row, vendor_id, session)
                results.append({"success": True, "product_id": str(product_id), "message": "Product created successfully"})
            except (ValueError, requests.RequestException, HTTPException) as exc:
                message = exc.detail if isinstance(exc, HTTPException) else str(exc)
                logger.warning("product_import_row_failed", name=row.name, error=message)
                results.append({"success": False, "product_id": None, "message": message})

        failed = sum(1 for r in results if not r["success"])
        if failed:
            session.abort_transaction()
        else:
            session.commit_transaction()

    logger.info("product_import_finished", total=len(results), failed=failed)
    payload = {
        "status": not failed,
        "message": f"Bulk import completed. Success: {len(results) - failed}, Failed: {failed}",
        "data": serialize_doc(results),
    }
    return JSONResponse(status_code=207 if failed else 200, content=payload)


# ----------------------- Recently viewed -----------------------
@router.post("/save_recently_viewed")
def save_recently_viewed(body: RecentlyViewedBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    product = load_product(db, body.product_id)
    user = oid(identity.id, "user id")
    existing = db["recentlyviewed"].find_one({"user": user})
    products = push_recent(existing["products"] if existing else [], product["_id"])
    db["recentlyviewed"].update_one(
        {"user": user},
        {"$set": {"products": products, "updated_at": now_utc()}, "$setOnInsert": {"created_at": now_utc()}},
        upsert=True,
    )
    return ok(body.product_id, "Recently viewed saved successfully")


@router.get("/get_recently_viewed")
def get_recently_viewed(identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    recent = db["recentlyviewed"].find_one({"user": oid(identity.id, "user id")})
    if not recent:
        raise HTTPException(status_code=404, detail="Recently viewed not found")
    found = {p["_id"]: p for p in db["product"].find({"_id": {"$in": recent["products"]}}, HIDDEN_FIELDS)}
    return ok([found[pid] for pid in recent["products"] if pid in found], "Recently viewed retrieved successfully")
