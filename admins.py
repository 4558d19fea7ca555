from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

import settings
from auth import create_access_token, get_current_admin, hash_password, require_super_admin, verify_password
from database import collection, create_document, to_obj_id, utcnow
from errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from schemas import Admin as AdminSchema
from schemas import Role

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class CreateFirstAdminRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class CreateAdminRequest(CreateFirstAdminRequest):
    role: Role = "admin"


def admin_summary(admin: Dict[str, Any], *fields: str) -> Dict[str, Any]:
    out = {
        "id": str(admin["_id"]),
        "name": admin["name"],
        "email": admin["email"],
        "role": admin["role"],
    }
    for f in fields:
        out[f] = admin.get(f)
    return out


def insert_admin(name: str, email: str, password: str, role: str) -> Dict[str, Any]:
    email = email.strip().lower()
    if collection("admin").find_one({"email": email}):
        raise Conflict("This email is already in use.")
    admin = AdminSchema(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    try:
        return create_document("admin", admin)
    except DuplicateKeyError:
        raise Conflict("This email is already in use.")


@router.post("/login")
def login(payload: LoginRequest, response: Response):
    admin = collection("admin").find_one({"email": payload.email.strip().lower()})
    if not admin or not verify_password(payload.password, admin.get("password_hash", "")):
        logger.info("admin_login_failed", email=payload.email)
        raise Unauthorized("Invalid credentials.")
    if not admin.get("is_active", False):
        raise Forbidden("Account deactivated.")

    token = create_access_token(admin)
    collection("admin").update_one({"_id": admin["_id"]}, {"$set": {"last_login": utcnow()}})

    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        max_age=settings.COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.IS_PRODUCTION,
        samesite="lax",
    )
    logger.info("admin_login", admin_id=str(admin["_id"]))
    return {"success": True, "message": "Login successful", "admin": admin_summary(admin)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(
        key=settings.COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.IS_PRODUCTION,
        samesite="lax",
    )
    return {"success": True, "message": "Logout successful"}


@router.get("/me")
def me(current_admin=Depends(get_current_admin)):
    admin = collection("admin").find_one({"_id": to_obj_id(current_admin["id"])})
    if not admin:
        raise NotFound("Administrator not found.")
    return {"success": True, "admin": admin_summary(admin, "last_login")}


@router.post("/create-first", status_code=201)
def create_first_admin(payload: CreateFirstAdminRequest):
    """One-time bootstrap: only allowed while the admin collection is empty."""
    if collection("admin").count_documents({}) > 0:
        raise ValidationError("An administrator already exists.")
    admin = insert_admin(payload.name, payload.email, payload.password, "super_admin")
    logger.info("first_admin_created", admin_id=str(admin["_id"]))
    return {"success": True, "message": "First administrator created", "admin": admin_summary(admin)}


@router.post("/create", status_code=201)
def create_admin(payload: CreateAdminRequest, current_admin=Depends(require_super_admin)):
    admin = insert_admin(payload.name, payload.email, payload.password, payload.role)
    logger.info("admin_created", admin_id=str(admin["_id"]), by=current_admin["id"])
    return {"success": True, "message": "Administrator created", "admin": admin_summary(admin)}


@router.get("/list")
def list_admins(current_admin=Depends(require_super_admin)):
    admins = [
        admin_summary(a, "is_active", "last_login", "created_at")
        for a in collection("admin").find({}).sort("created_at", -1)
    ]
    return {"success": True, "count": len(admins), "admins": admins}


@router.put("/{admin_id}/toggle-status")
def toggle_admin_status(admin_id: str, current_admin=Depends(require_super_admin)):
    oid = to_obj_id(admin_id)
    if oid == to_obj_id(current_admin["id"]):
        raise ValidationError("You cannot change your own status.")
    admin = collection("admin").find_one({"_id": oid})
    if not admin:
        raise NotFound("Administrator not found.")
    is_active = not admin.get("is_active", False)
    collection("admin").update_one({"_id": oid}, {"$set": {"is_active": is_active, "updated_at": utcnow()}})
    admin["is_active"] = is_active
    logger.info("admin_status_toggled", admin_id=admin_id, is_active=is_active, by=current_admin["id"])
    return {
        "success": True,
        "message": f"Administrator {'activated' if is_active else 'deactivated'}",
        "admin": admin_summary(admin, "is_active"),
    }


@router.delete("/{admin_id}")
def delete_admin(admin_id: str, current_admin=Depends(require_super_admin)):
    oid = to_obj_id(admin_id)
    if oid == to_obj_id(current_admin["id"]):
        raise ValidationError("You cannot delete your own account.")
    res = collection("admin").delete_one({"_id": oid})
    if res.deleted_count == 0:
        raise NotFound("Administrator not found.")
    logger.info("admin_deleted", admin_id=admin_id, by=current_admin["id"])
    return {"success": True, "message": "Administrator deleted"}
