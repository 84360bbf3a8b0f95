from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import JWT_ALGO, JWT_EXPIRE_DAYS, JWT_SECRET

Role = Literal["user", "vendor", "admin"]

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Caller resolved from the bearer token, passed explicitly to handlers."""

    id: str
    role: Role


# ----------------------- Passwords -----------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


# ----------------------- Tokens -----------------------
def create_token(user_id: str, role: Role) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRE_DAYS)
    return jwt.encode({"id": user_id, "role": role, "exp": exp}, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def get_identity(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Identity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No token provided")
    payload = decode_token(credentials.credentials)
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    role = payload.get("role") or "user"
    if role not in ("user", "vendor", "admin"):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return Identity(id=user_id, role=role)


def require_roles(*roles: Role) -> Callable[..., Identity]:
    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied. Insufficient permissions.")
        return identity

    return dependency


current_user = require_roles("user")
current_vendor = require_roles("vendor")
current_admin = require_roles("admin")
admin_or_vendor = require_roles("admin", "vendor")
