from typing import Any

from database import serialize_doc


def ok(data: Any = None, message: str = "") -> dict:
    """Standard response envelope used by every route."""
    return {"status": True, "message": message, "data": serialize_doc(data)}


def failure(message: str, data: Any = None) -> dict:
    return {"status": False, "message": message, "data": serialize_doc(data)}


def public_account(doc: dict) -> dict:
    """Strip credentials and OTP state before a user/vendor/admin leaves the API."""
    if not doc:
        return doc
    return {k: v for k, v in doc.items() if k not in ("password_hash", "otp", "otp_expire")}
