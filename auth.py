from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from bson import ObjectId
from fastapi import Cookie, Depends
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext

import settings
from database import collection
from errors import Forbidden, Unauthorized
from schemas import ADMIN_ROLES

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_access_token(admin: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign a credential for an admin record. It expires independently of the cookie carrying it."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(admin["_id"]),
        "email": admin["email"],
        "role": admin["role"],
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthorized("Session expired. Please log in again.", reason="expired")
    except JWTError:
        raise Unauthorized("Invalid token.", reason="invalid")


def get_current_admin(token: Optional[str] = Cookie(None)) -> Dict[str, Any]:
    if not token:
        raise Unauthorized("Access denied. Missing token.", reason="missing")
    payload = decode_access_token(token)
    if payload.get("role") not in ADMIN_ROLES:
        raise Forbidden("Access denied. Administrator rights required.")

    # The account may have been removed or deactivated after the token was issued.
    admin_id = payload.get("sub")
    admin = None
    if admin_id and ObjectId.is_valid(admin_id):
        admin = collection("admin").find_one({"_id": ObjectId(admin_id)})
    if not admin or not admin.get("is_active", False):
        raise Unauthorized("Administrator account not found or deactivated.", reason="revoked")

    return {"id": str(admin["_id"]), "email": admin["email"], "role": admin["role"]}


def require_role(*roles: str):
    def role_dep(current_admin=Depends(get_current_admin)):
        if current_admin.get("role") not in roles:
            logger.info("role_rejected", admin_id=current_admin["id"], required=roles)
            raise Forbidden("Insufficient permissions")
        return current_admin
    return role_dep


require_admin = require_role(*ADMIN_ROLES)
require_super_admin = require_role("super_admin")
