from typing import List, Optional

import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from pymongo.database import Database

from auth import Identity, current_admin
from database import create_document, get_db, now_utc, oid
from pricing import slugify
from responses import ok
from schemas import Category, Mainmenu, Subcategory
from storage import upload_file

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/menus", tags=["menus"])

MENU_FIELDS = {"created_at": 0, "updated_at": 0}


class MenuOrderEntry(BaseModel):
    id: str
    menu_name: str
    item_index: int = 0


class SectionsBody(BaseModel):
    sections: List[MenuOrderEntry]


class CategoriesBody(BaseModel):
    category: List[MenuOrderEntry]


class SubcategoriesBody(BaseModel):
    sub_categories: List[MenuOrderEntry]


# ----------------------- Helpers -----------------------
def store_icon(icon: Optional[UploadFile]) -> Optional[str]:
    if icon is None or not icon.filename:
        return None
    return upload_file(icon.file.read(), icon.content_type, "categories")


def ensure_unique(db: Database, collection: str, menu_name: str, slug: str) -> None:
    if db[collection].find_one({"$or": [{"menu_name": menu_name}, {"slug": slug}]}):
        raise HTTPException(status_code=400, detail="Menu already exists")


def clean_name(menu_name: str) -> tuple:
    menu_name = (menu_name or "").strip()
    slug = slugify(menu_name)
    if not menu_name or not slug:
        raise HTTPException(status_code=400, detail="Menu name is required")
    return menu_name, slug


def insert_menu(db: Database, collection: str, model) -> dict:
    menu_id = create_document(db, collection, model)
    logger.info("menu_created", level=collection, menu_id=menu_id, slug=model.slug)
    return db[collection].find_one({"_id": ObjectId(menu_id)}, MENU_FIELDS)


def reorder(db: Database, collection: str, entries: List[MenuOrderEntry]) -> List[dict]:
    # Validate the whole batch before touching anything.
    prepared = []
    names, slugs = set(), set()
    for entry in entries:
        menu_name, slug = clean_name(entry.menu_name)
        menu_id = oid(entry.id, "menu id")
        if menu_name in names or slug in slugs:
            raise HTTPException(status_code=400, detail="Menu already exists")
        if db[collection].find_one({"_id": {"$ne": menu_id}, "$or": [{"menu_name": menu_name}, {"slug": slug}]}, {"_id": 1}):
            raise HTTPException(status_code=400, detail="Menu already exists")
        names.add(menu_name)
        slugs.add(slug)
        prepared.append((menu_id, menu_name, slug, entry.item_index))

    for menu_id, menu_name, slug, item_index in prepared:
        db[collection].update_one(
            {"_id": menu_id},
            {"$set": {"menu_name": menu_name, "slug": slug, "item_index": item_index, "updated_at": now_utc()}},
        )
    ids = [p[0] for p in prepared]
    return list(db[collection].find({"_id": {"$in": ids}}, MENU_FIELDS).sort("item_index", 1))


# ----------------------- Create -----------------------
@router.post("/add_section", status_code=201)
def add_section(
    menu_name: str = Form(...),
    item_index: int = Form(0),
    icon: Optional[UploadFile] = File(None),
    _: Identity = Depends(current_admin),
    db: Database = Depends(get_db),
):
    menu_name, slug = clean_name(menu_name)
    ensure_unique(db, "mainmenu", menu_name, slug)
    section = Mainmenu(menu_name=menu_name, slug=slug, item_index=item_index, icon=store_icon(icon))
    return ok(insert_menu(db, "mainmenu", section), "Section created successfully")


@router.post("/add_category", status_code=201)
def add_category(
    menu_name: str = Form(...),
    section_id: str = Form(...),
    item_index: int = Form(0),
    icon: Optional[UploadFile] = File(None),
    _: Identity = Depends(current_admin),
    db: Database = Depends(get_db),
):
    menu_name, slug = clean_name(menu_name)
    parent = db["mainmenu"].find_one({"_id": oid(section_id, "section id")})
    if not parent:
        raise HTTPException(status_code=404, detail="Section not found")
    ensure_unique(db, "category", menu_name, slug)
    category = Category(menu_name=menu_name, slug=slug, item_index=item_index, section_id=parent["_id"], icon=store_icon(icon))
    return ok(insert_menu(db, "category", category), "Category created successfully")


@router.post("/add_subcategory", status_code=201)
def add_subcategory(
    menu_name: str = Form(...),
    category_id: str = Form(...),
    item_index: int = Form(0),
    icon: Optional[UploadFile] = File(None),
    _: Identity = Depends(current_admin),
    db: Database = Depends(get_db),
):
    menu_name, slug = clean_name(menu_name)
    parent = db["category"].find_one({"_id": oid(category_id, "category id")})
    if not parent:
        raise HTTPException(status_code=404, detail="Category not found")
    ensure_unique(db, "subcategory", menu_name, slug)
    subcategory = Subcategory(menu_name=menu_name, slug=slug, item_index=item_index, category_id=parent["_id"], icon=store_icon(icon))
    return ok(insert_menu(db, "subcategory", subcategory), "Subcategory created successfully")


# ----------------------- Read -----------------------
@router.get("/get_menus")
def get_menus(db: Database = Depends(get_db)):
    sections = list(db["mainmenu"].find({}, MENU_FIELDS).sort("item_index", 1))
    categories = list(db["category"].find({}, MENU_FIELDS).sort("item_index", 1))
    subcategories = list(db["subcategory"].find({}, MENU_FIELDS).sort("item_index", 1))

    tree = []
    for section in sections:
        menus = []
        for category in categories:
            if category.get("section_id") != section["_id"]:
                continue
            sub_menus = [s for s in subcategories if s.get("category_id") == category["_id"]]
            menus.append({**category, "sub_menus": sub_menus})
        tree.append({**section, "menus": menus})
    return ok(tree, "Category structure fetched successfully")


@router.get("/get_menu_by_id/{menu_id}")
def get_menu_by_id(menu_id: str, db: Database = Depends(get_db)):
    target = oid(menu_id, "menu id")

    section = db["mainmenu"].find_one({"_id": target}, MENU_FIELDS)
    if section:
        categories = list(db["category"].find({"section_id": target}, MENU_FIELDS).sort("item_index", 1))
        subcategories = list(db["subcategory"].find({"category_id": {"$in": [c["_id"] for c in categories]}}, MENU_FIELDS))
        menus = [{**c, "sub_menus": [s for s in subcategories if s["category_id"] == c["_id"]]} for c in categories]
        return ok({**section, "menus": menus}, "Main menu data fetched successfully")

    category = db["category"].find_one({"_id": target}, MENU_FIELDS)
    if category:
        sub_menus = list(db["subcategory"].find({"category_id": target}, MENU_FIELDS).sort("item_index", 1))
        main_menu = db["mainmenu"].find_one({"_id": category.get("section_id")}, MENU_FIELDS)
        return ok({**category, "sub_menus": sub_menus, "main_menu": main_menu}, "Menu data fetched successfully")

    subcategory = db["subcategory"].find_one({"_id": target}, MENU_FIELDS)
    if subcategory:
        parent = db["category"].find_one({"_id": subcategory.get("category_id")}, MENU_FIELDS)
        main_menu = None
        if parent:
            main_menu = db["mainmenu"].find_one({"_id": parent.get("section_id")}, MENU_FIELDS)
        return ok({**subcategory, "menu": parent, "main_menu": main_menu}, "Submenu data fetched successfully")

    raise HTTPException(status_code=404, detail="No menu, submenu, or main menu found with this id")


@router.get("/get_subcategories_by_id/{category_id}")
def get_subcategories_by_id(category_id: str, db: Database = Depends(get_db)):
    target = oid(category_id, "category id")
    category = db["category"].find_one({"_id": target}, MENU_FIELDS)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    category["section"] = db["mainmenu"].find_one({"_id": category.get("section_id")}, MENU_FIELDS)
    subcategories = list(db["subcategory"].find({"category_id": target}, MENU_FIELDS).sort("item_index", 1))
    return ok({"subcategories": subcategories, "category": category}, "Subcategories fetched successfully")


# ----------------------- Update -----------------------
@router.post("/update_section")
def update_section(body: SectionsBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok(reorder(db, "mainmenu", body.sections), "Sections updated successfully")


@router.post("/update_menus")
def update_menus(body: CategoriesBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok(reorder(db, "category", body.category), "Categories updated successfully")


@router.post("/update_subcategories")
def update_subcategories(body: SubcategoriesBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok(reorder(db, "subcategory", body.sub_categories), "Subcategories updated successfully")
