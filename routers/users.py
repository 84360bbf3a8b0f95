from typing import Optional

import structlog
from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from auth import Identity, create_token, current_admin, current_user, hash_password, verify_password
from config import MAX_ADDRESSES
from database import create_document, get_db, get_documents, now_utc, oid
from responses import ok, public_account
from schemas import Address, User as UserSchema

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


# ----------------------- Models -----------------------
class SignupBody(BaseModel):
    first_name: str
    last_name: str = Field(..., max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class UpdateUserBody(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    addresses: Optional[Address] = None


class AddressPatch(BaseModel):
    id: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    pincode: Optional[str] = None
    address: Optional[str] = None
    landmark: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    address_type: Optional[str] = None
    is_default: Optional[bool] = None


class UpdateAddressBody(BaseModel):
    addresses: AddressPatch


class UpdatePasswordBody(BaseModel):
    current_password: str
    password: str = Field(..., min_length=6)


class ChangePasswordBody(BaseModel):
    email: EmailStr
    new_password: str = Field(..., min_length=6)


# ----------------------- Helpers -----------------------
def load_user(db: Database, user_id: str) -> dict:
    user = db["user"].find_one({"_id": oid(user_id, "user id")})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def with_single_default(addresses: list, default_id: ObjectId) -> list:
    for address in addresses:
        address["is_default"] = address["_id"] == default_id
    return addresses


# ----------------------- Auth -----------------------
@router.post("/signup", status_code=201)
def signup(body: SignupBody, db: Database = Depends(get_db)):
    if db["user"].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="User already exists")
    user = UserSchema(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password_hash=hash_password(body.password),
    )
    user_id = create_document(db, "user", user)
    logger.info("user_signup", user_id=user_id)
    doc = db["user"].find_one({"_id": ObjectId(user_id)})
    return ok({"user": public_account(doc), "token": create_token(user_id, "user")}, "Signup successful")


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": body.email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(body.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid password")
    token = create_token(str(user["_id"]), "user")
    return ok({"user": public_account(user), "token": token, "type": "user"}, "Login successful")


# ----------------------- Profile -----------------------
@router.get("/get_user")
def get_user(identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    return ok(public_account(load_user(db, identity.id)))


@router.post("/update_user")
def update_user(body: UpdateUserBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    user = load_user(db, identity.id)
    updates = {}
    if body.first_name:
        updates["first_name"] = body.first_name
    if body.last_name:
        updates["last_name"] = body.last_name
    if body.email and body.email != user["email"]:
        if db["user"].find_one({"email": body.email}):
            raise HTTPException(status_code=400, detail="Email already in use")
        updates["email"] = body.email

    if body.addresses is not None:
        addresses = list(user.get("addresses", []))
        if len(addresses) >= MAX_ADDRESSES:
            raise HTTPException(status_code=400, detail=f"You can save at most {MAX_ADDRESSES} addresses")
        new_address = {"_id": ObjectId(), **body.addresses.model_dump()}
        addresses.append(new_address)
        if new_address["is_default"] or len(addresses) == 1:
            addresses = with_single_default(addresses, new_address["_id"])
        updates["addresses"] = addresses

    if updates:
        updates["updated_at"] = now_utc()
        db["user"].update_one({"_id": user["_id"]}, {"$set": updates})
    return ok(public_account(load_user(db, identity.id)), "User updated successfully")


@router.post("/update_user_address")
def update_user_address(body: UpdateAddressBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    user = load_user(db, identity.id)
    patch = body.addresses
    address_id = oid(patch.id, "address id")
    addresses = list(user.get("addresses", []))
    index = next((i for i, a in enumerate(addresses) if a["_id"] == address_id), None)
    if index is None:
        raise HTTPException(status_code=404, detail="Address not found")

    changes = patch.model_dump(exclude_none=True, exclude={"id"})
    if "address_type" in changes and changes["address_type"] not in ("Home", "Work", "Other"):
        raise HTTPException(status_code=400, detail="Invalid address type")
    addresses[index] = {**addresses[index], **changes, "_id": address_id}
    if changes.get("is_default"):
        addresses = with_single_default(addresses, address_id)

    db["user"].update_one({"_id": user["_id"]}, {"$set": {"addresses": addresses, "updated_at": now_utc()}})
    return ok(public_account(load_user(db, identity.id)), "Address updated successfully")


@router.post("/delete_user_address/{address_id}")
def delete_user_address(address_id: str, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    user = load_user(db, identity.id)
    target = oid(address_id, "address id")
    addresses = [a for a in user.get("addresses", []) if a["_id"] != target]
    if len(addresses) == len(user.get("addresses", [])):
        raise HTTPException(status_code=404, detail="Address not found")
    if addresses and not any(a.get("is_default") for a in addresses):
        addresses = with_single_default(addresses, addresses[0]["_id"])
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"addresses": addresses, "updated_at": now_utc()}})
    return ok(public_account(load_user(db, identity.id)), "Address removed successfully")


# ----------------------- Passwords -----------------------
@router.post("/update_user_password")
def update_user_password(body: UpdatePasswordBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    user = load_user(db, identity.id)
    if not verify_password(body.current_password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid password")
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"password_hash": hash_password(body.password), "updated_at": now_utc()}})
    return ok(None, "Password updated successfully")


@router.post("/change_password")
def change_password(body: ChangePasswordBody, identity: Identity = Depends(current_user), db: Database = Depends(get_db)):
    # The email must belong to the signed-in account.
    user = load_user(db, identity.id)
    if user["email"] != body.email:
        raise HTTPException(status_code=403, detail="Email does not match the signed-in account")
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"password_hash": hash_password(body.new_password), "updated_at": now_utc()}})
    logger.info("user_password_changed", user_id=identity.id)
    return ok(None, "Password changed successfully")


# ----------------------- Admin -----------------------
@router.get("/get_users")
def get_users(_: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok([public_account(u) for u in get_documents(db, "user")])


@router.get("/get_user_by_id/{user_id}")
def get_user_by_id(user_id: str, _: Identity = Depends(current_admin), db: Database = Depends(get_db)):
    return ok(public_account(load_user(db, user_id)))
