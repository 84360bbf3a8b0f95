from typing import Optional

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo.database import Database

from auth import Identity, current_user
from database import create_document, get_db, oid
from responses import ok
from schemas import Feedback

router = APIRouter(prefix="/feedback", tags=["feedback"])


class FeedbackBody(BaseModel):
    product_id: str
    message: str = Field(..., min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5)


def with_refs(db: Database, rows: list) -> list:
    users = {u["_id"]: u for u in db["user"].find({"_id": {"$in": [r["user"] for r in rows]}}, {"first_name": 1, "last_name": 1})}
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": [r["product"] for r in rows]}}, {"name": 1, "images": 1})}
    for row in rows:
        row["user"] = users.get(row["user"], row["user"])
        row["product"] = products.get(row["product"], row["product"])
    return rows


@router.post("/add_feedback", status_code=201)
def add_feedback(body: FeedbackBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": oid(body.product_id, "product id")}, {"_id": 1})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    feedback = Feedback(user=oid(identity.id, "user id"), product=product["_id"], message=body.message, rating=body.rating)
    feedback_id = create_document(db, "feedback", feedback)
    return ok(db["feedback"].find_one({"_id": ObjectId(feedback_id)}), "Feedback added successfully")


@router.get("/get_feedback_by_product/{product_id}")
def get_feedback_by_product(product_id: str, db: Database = Depends(get_db)):
    rows = list(db["feedback"].find({"product": oid(product_id, "product id")}).sort("created_at", -1))
    return ok(with_refs(db, rows))


@router.get("/get_feedback_by_user/{user_id}")
def get_feedback_by_user(user_id: str, db: Database = Depends(get_db)):
    rows = list(db["feedback"].find({"user": oid(user_id, "user id")}).sort("created_at", -1))
    return ok(with_refs(db, rows))
