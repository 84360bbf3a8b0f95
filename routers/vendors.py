import secrets
from datetime import timedelta
from typing import Optional

import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from auth import Identity, admin_or_vendor, create_token, current_admin, current_vendor, hash_password, verify_password
from config import OTP_EXPIRE_MINUTES, OTP_LENGTH
from database import as_utc, create_document, get_db, now_utc, oid
from mailer import send_vendor_otp
from responses import ok, public_account
from routers.products import ProductQuery, query_products
from schemas import Admin, BankDetails, BusinessAddress, Vendor

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/vendor", tags=["vendor"])


# ----------------------- Models -----------------------
class VendorSignupBody(BaseModel):
    name: str
    email: EmailStr
    phone: str
    password: str = Field(..., min_length=6)
    company_name: str
    business_address: BusinessAddress
    bank_details: Optional[BankDetails] = None


class EmailBody(BaseModel):
    email: EmailStr


class VerifyOtpBody(BaseModel):
    email: EmailStr
    otp: str


class AdminRegisterBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class BusinessAddressPatch(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None


class VendorProfilePatch(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    company_name: Optional[str] = None
    business_address: Optional[BusinessAddressPatch] = None
    bank_details: Optional[BankDetails] = None
    profile_image: Optional[str] = None


class VendorStatusBody(BaseModel):
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None


# ----------------------- Helpers -----------------------
def generate_otp(length: int = OTP_LENGTH) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def load_vendor(db: Database, vendor_id: str) -> dict:
    vendor = db["vendor"].find_one({"_id": oid(vendor_id, "vendor id")})
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


def issue_otp(db: Database, vendor: dict) -> None:
    otp = generate_otp()
    db["vendor"].update_one(
        {"_id": vendor["_id"]},
        {"$set": {"otp": otp, "otp_expire": now_utc() + timedelta(minutes=OTP_EXPIRE_MINUTES), "updated_at": now_utc()}},
    )
    sent, error = send_vendor_otp(vendor["email"], vendor["name"], otp)
    if not sent:
        logger.error("vendor_otp_not_sent", vendor_id=str(vendor["_id"]), error=error)
        raise HTTPException(status_code=502, detail="Failed to send OTP email")


# ----------------------- Signup & OTP -----------------------
@router.post("/signup", status_code=201)
def signup(body: VendorSignupBody, db: Database = Depends(get_db)):
    if db["vendor"].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="Vendor with this email already exists")
    if db["vendor"].find_one({"phone": body.phone}):
        raise HTTPException(status_code=400, detail="Vendor with this phone already exists")

    vendor = Vendor(
        name=body.name,
        email=body.email,
        phone=body.phone,
        password_hash=hash_password(body.password),
        company_name=body.company_name,
        business_address=body.business_address,
        bank_details=body.bank_details,
    )
    vendor_id = create_document(db, "vendor", vendor)
    logger.info("vendor_signup", vendor_id=vendor_id)
    doc = db["vendor"].find_one({"_id": ObjectId(vendor_id)})
    issue_otp(db, doc)
    return ok({"vendor_id": vendor_id, "email": body.email}, "OTP sent to your email")


@router.post("/resend_otp")
def resend_otp(body: EmailBody, db: Database = Depends(get_db)):
    vendor = db["vendor"].find_one({"email": body.email})
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    if vendor.get("is_email_verified"):
        raise HTTPException(status_code=400, detail="Email already verified")
    issue_otp(db, vendor)
    return ok(None, "OTP resent successfully")


@router.post("/verify_otp")
def verify_otp(body: VerifyOtpBody, db: Database = Depends(get_db)):
    vendor = db["vendor"].find_one({"email": body.email})
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    if vendor.get("is_email_verified"):
        raise HTTPException(status_code=400, detail="Email already verified")
    if not vendor.get("otp") or not secrets.compare_digest(vendor["otp"], body.otp):
        raise HTTPException(status_code=400, detail="Invalid OTP")
    expires = as_utc(vendor.get("otp_expire"))
    if expires is None or expires < now_utc():
        raise HTTPException(status_code=400, detail="OTP has expired")

    db["vendor"].update_one(
        {"_id": vendor["_id"]},
        {
            "$set": {"is_email_verified": True, "is_active": True, "updated_at": now_utc()},
            "$unset": {"otp": "", "otp_expire": ""},
        },
    )
    logger.info("vendor_verified", vendor_id=str(vendor["_id"]))
    fresh = db["vendor"].find_one({"_id": vendor["_id"]})
    return ok({"vendor": public_account(fresh), "token": create_token(str(vendor["_id"]), "vendor")}, "Email verified successfully")


# ----------------------- Admin & login -----------------------
@router.post("/admin_register", status_code=201)
def admin_register(body: AdminRegisterBody, db: Database = Depends(get_db)):
    if db["admin"].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="Admin already exists")
    admin_id = create_document(db, "admin", Admin(email=body.email, password_hash=hash_password(body.password)))
    logger.info("admin_registered", admin_id=admin_id)
    return ok({"id": admin_id, "email": body.email}, "Admin registered successfully")


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    admin = db["admin"].find_one({"email": body.email})
    if admin:
        if not verify_password(body.password, admin.get("password_hash", "")):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        token = create_token(str(admin["_id"]), "admin")
        return ok({"token": token, "user": public_account(admin), "is_admin": True}, "Login successful")

    vendor = db["vendor"].find_one({"email": body.email})
    if not vendor or not verify_password(body.password, vendor.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not vendor.get("is_active"):
        raise HTTPException(status_code=403, detail="Vendor account is not active")

    db["vendor"].update_one({"_id": vendor["_id"]}, {"$set": {"last_login": now_utc()}})
    token = create_token(str(vendor["_id"]), "vendor")
    return ok({"token": token, "user": public_account(vendor), "is_admin": False}, "Login successful")


@router.get("/get_admin")
def get_admin(identity: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    admin = db["admin"].find_one({"_id": oid(identity.id, "admin id")})
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return ok(public_account(admin))


# ----------------------- Profile -----------------------
@router.get("/profile")
def get_profile(identity: Identity = Depends(current_vendor), db: Database = Depends(get_db)):
    return ok(public_account(load_vendor(db, identity.id)))


@router.post("/update_profile")
def update_profile(body: VendorProfilePatch, identity: Identity = Depends(current_vendor), db: Database = Depends(get_db)):
    vendor = load_vendor(db, identity.id)
    changes = body.model_dump(exclude_none=True, exclude={"password", "business_address"})

    if body.phone and body.phone != vendor["phone"] and db["vendor"].find_one({"phone": body.phone}):
        raise HTTPException(status_code=400, detail="Vendor with this phone already exists")

    if body.business_address is not None:
        merged = {**vendor.get("business_address", {}), **body.business_address.model_dump(exclude_none=True)}
        missing = [f for f in ("street", "city", "state", "pincode") if not merged.get(f)]
        if missing:
            raise HTTPException(status_code=400, detail=f"Business address is incomplete: {', '.join(missing)}")
        changes["business_address"] = merged

    if body.password:
        changes["password_hash"] = hash_password(body.password)

    if changes:
        changes["updated_at"] = now_utc()
        db["vendor"].update_one({"_id": vendor["_id"]}, {"$set": changes})
    return ok(public_account(load_vendor(db, identity.id)), "Profile updated successfully")


@router.delete("/profile")
def deactivate_profile(identity: Identity = Depends(current_vendor), db: Database = Depends(get_db)):
    vendor = load_vendor(db, identity.id)
    db["vendor"].update_one({"_id": vendor["_id"]}, {"$set": {"is_active": False, "updated_at": now_utc()}})
    logger.info("vendor_deactivated", vendor_id=identity.id)
    return ok(None, "Vendor account deactivated")


# ----------------------- Admin views -----------------------
@router.get("/get_vendor_list")
def get_vendor_list(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    vendors = db["vendor"].find().sort("created_at", -1)
    return ok([public_account(v) for v in vendors])


@router.get("/vendor_detail/{vendor_id}")
def vendor_detail(vendor_id: str, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    vendor = load_vendor(db, vendor_id)
    product_count = db["product"].count_documents({"vendor_id": vendor["_id"]})
    return ok({**public_account(vendor), "product_count": product_count})


@router.put("/{vendor_id}/status")
def update_vendor_status(vendor_id: str, body: VendorStatusBody, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Provide is_active or is_verified")
    vendor = load_vendor(db, vendor_id)
    changes["updated_at"] = now_utc()
    db["vendor"].update_one({"_id": vendor["_id"]}, {"$set": changes})
    logger.info("vendor_status_changed", vendor_id=vendor_id, **body.model_dump(exclude_none=True))
    return ok(public_account(load_vendor(db, vendor_id)), "Vendor status updated")


# ----------------------- Vendor data -----------------------
@router.get("/vendor_products")
def vendor_products(
    params: ProductQuery = Depends(),
    vendor_id: Optional[str] = Query(None),
    identity: Identity = Depends(admin_or_vendor),
    db: Database = Depends(get_db),
):
    if identity.role == "vendor":
        scope = oid(identity.id, "vendor id")
    elif vendor_id:
        scope = oid(vendor_id, "vendor id")
    else:
        raise HTTPException(status_code=400, detail="vendor_id is required")
    return ok(query_products(db, params, {"vendor_id": scope}))


@router.get("/vendor_orders")
def vendor_orders(identity: Identity = Depends(current_vendor), db: Database = Depends(get_db)):
    vendor_oid = oid(identity.id, "vendor id")
    product_ids = [p["_id"] for p in db["product"].find({"vendor_id": vendor_oid}, {"_id": 1})]
    if not product_ids:
        return ok([])
    owned = set(product_ids)
    orders = []
    for order in db["order"].find({"order_items.product": {"$in": product_ids}}).sort("created_at", -1):
        order["items"] = [item for item in order.get("order_items", []) if item["product"] in owned]
        orders.append(order)
    return ok(orders)
