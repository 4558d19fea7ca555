"""
Promotions.

Whether a promotion is running is never stored: it is the persisted
``is_active`` flag combined with the start/end window, evaluated against
the current time on every read. Listings push the window into the query
(inclusive on both ends); payloads carry ``is_active_now`` and
``remaining_time`` computed the same way.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import require_admin
from database import collection, create_document, sanitize, to_naive_utc, to_obj_id, update_document, utcnow
from errors import NotFound, ValidationError
from schemas import Promotion as PromotionSchema
from schemas import PromotionType

logger = structlog.get_logger(__name__)

admin_router = APIRouter(prefix="/api/admin/promotions", tags=["admin-promotions"])
public_router = APIRouter(prefix="/api/promotions", tags=["promotions"])

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


def is_active_now(promotion: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return bool(promotion.get("is_active")) and promotion["start_date"] <= now <= promotion["end_date"]


def remaining_time(end: datetime, now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
    """Countdown to ``end`` in whole days/hours/minutes/seconds, or None once it has passed."""
    now = now or utcnow()
    delta_ms = (end - now) // timedelta(milliseconds=1)
    if delta_ms <= 0:
        return None
    return {
        "days": delta_ms // MS_PER_DAY,
        "hours": delta_ms % MS_PER_DAY // MS_PER_HOUR,
        "minutes": delta_ms % MS_PER_HOUR // MS_PER_MINUTE,
        "seconds": delta_ms % MS_PER_MINUTE // MS_PER_SECOND,
    }


def active_window_filter(now: datetime, **extra: Any) -> Dict[str, Any]:
    return {
        "is_active": True,
        "start_date": {"$lte": now},
        "end_date": {"$gte": now},
        **extra,
    }


def find_active_promotions(now: Optional[datetime] = None, **extra: Any) -> List[Dict[str, Any]]:
    now = now or utcnow()
    cursor = collection("promotion").find(active_window_filter(now, **extra)).sort("created_at", -1)
    return list(cursor)


def category_refs(promotions: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    ids = {p["category_id"] for p in promotions if p.get("category_id")}
    if not ids:
        return {}
    cursor = collection("category").find({"_id": {"$in": [to_obj_id(i) for i in ids]}})
    return {str(c["_id"]): {"id": str(c["_id"]), "name": c["name"], "slug": c["slug"]} for c in cursor}


def serialize_promotion(doc: Dict[str, Any], categories=None, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    promotion = sanitize(doc)
    if categories is not None and doc.get("category_id"):
        promotion["category"] = categories.get(doc["category_id"])
    promotion["is_active_now"] = is_active_now(doc, now)
    promotion["remaining_time"] = remaining_time(doc["end_date"], now)
    return promotion


def serialize_promotions(docs: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    categories = category_refs(docs)
    return [serialize_promotion(d, categories, now) for d in docs]


def find_promotion(promotion_id: str) -> Dict[str, Any]:
    promotion = collection("promotion").find_one({"_id": to_obj_id(promotion_id)})
    if not promotion:
        raise NotFound("Promotion not found.")
    return promotion


# Request models

class PromotionCreateRequest(BaseModel):
    type: PromotionType
    name: str = Field(..., min_length=1)
    start_date: datetime
    end_date: datetime
    category_id: Optional[str] = None
    gains: Optional[List[str]] = None
    display_duration: int = Field(10, ge=1)


class PromotionUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    gains: Optional[List[str]] = None
    display_duration: Optional[int] = Field(None, ge=1)


def clean_gains(gains: Optional[List[str]]) -> List[str]:
    return [g.strip() for g in gains or [] if g and g.strip()]


def build_promotion(payload: PromotionCreateRequest) -> PromotionSchema:
    """Validate the type-specific fields and drop the ones that do not apply to the type."""
    start, end = to_naive_utc(payload.start_date), to_naive_utc(payload.end_date)
    if end < start:
        raise ValidationError("End date must be after start date.")

    category_id = None
    gains = None
    if payload.type == "stock-limite":
        if not payload.category_id:
            raise ValidationError("A category is required for a stock-limite promotion.")
        category = collection("category").find_one({"_id": to_obj_id(payload.category_id)})
        if not category:
            raise NotFound("Category not found.")
        category_id = str(category["_id"])
    else:
        gains = clean_gains(payload.gains)
        if not gains:
            raise ValidationError("At least one prize is required for a tombola promotion.")

    return PromotionSchema(
        type=payload.type,
        name=payload.name.strip(),
        start_date=start,
        end_date=end,
        category_id=category_id,
        gains=gains,
        display_duration=payload.display_duration,
    )


def promotion_changes(promotion: Dict[str, Any], payload: PromotionUpdateRequest) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    # Gains only mean something for a tombola; ignore them otherwise.
    if "gains" in changes:
        if promotion["type"] != "tombola":
            changes.pop("gains")
        else:
            changes["gains"] = clean_gains(changes["gains"])
            if not changes["gains"]:
                raise ValidationError("At least one prize is required for a tombola promotion.")
    for key in ("start_date", "end_date"):
        if key in changes:
            changes[key] = to_naive_utc(changes[key])
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    start = changes.get("start_date", promotion["start_date"])
    end = changes.get("end_date", promotion["end_date"])
    if end < start:
        raise ValidationError("End date must be after start date.")
    return changes


# Admin

@admin_router.get("")
def admin_list_promotions(admin=Depends(require_admin)):
    docs = list(collection("promotion").find({}).sort("created_at", -1))
    promotions = serialize_promotions(docs)
    return {"success": True, "count": len(promotions), "promotions": promotions}


@admin_router.get("/{promotion_id}")
def admin_get_promotion(promotion_id: str, admin=Depends(require_admin)):
    doc = find_promotion(promotion_id)
    return {"success": True, "promotion": serialize_promotions([doc])[0]}


@admin_router.post("", status_code=201)
def admin_create_promotion(payload: PromotionCreateRequest, admin=Depends(require_admin)):
    doc = create_document("promotion", build_promotion(payload))
    logger.info("promotion_created", promotion_id=str(doc["_id"]), type=doc["type"])
    return {"success": True, "message": "Promotion created", "promotion": serialize_promotions([doc])[0]}


@admin_router.put("/{promotion_id}")
def admin_update_promotion(promotion_id: str, payload: PromotionUpdateRequest, admin=Depends(require_admin)):
    promotion = find_promotion(promotion_id)
    doc = update_document("promotion", promotion["_id"], promotion_changes(promotion, payload))
    return {"success": True, "message": "Promotion updated", "promotion": serialize_promotions([doc])[0]}


@admin_router.delete("/{promotion_id}")
def admin_delete_promotion(promotion_id: str, admin=Depends(require_admin)):
    res = collection("promotion").delete_one({"_id": to_obj_id(promotion_id)})
    if res.deleted_count == 0:
        raise NotFound("Promotion not found.")
    logger.info("promotion_deleted", promotion_id=promotion_id)
    return {"success": True, "message": "Promotion deleted"}


@admin_router.patch("/{promotion_id}/toggle")
def admin_toggle_promotion(promotion_id: str, admin=Depends(require_admin)):
    promotion = find_promotion(promotion_id)
    is_active = not promotion.get("is_active", False)
    doc = update_document("promotion", promotion["_id"], {"is_active": is_active})
    return {
        "success": True,
        "message": f"Promotion {'activated' if is_active else 'deactivated'}",
        "promotion": serialize_promotions([doc])[0],
    }


# Public

@public_router.get("/active")
def list_active_promotions():
    now = utcnow()
    promotions = serialize_promotions(find_active_promotions(now), now)
    return {"success": True, "count": len(promotions), "promotions": promotions}


@public_router.get("/tombola")
def list_tombola_promotions():
    now = utcnow()
    promotions = serialize_promotions(find_active_promotions(now, type="tombola"), now)
    return {"success": True, "count": len(promotions), "promotions": promotions}


@public_router.get("/category/{category_id}")
def get_category_promotion(category_id: str):
    now = utcnow()
    running = find_active_promotions(now, type="stock-limite", category_id=category_id)
    if not running:
        return {"success": True, "promotion": None}
    return {"success": True, "promotion": serialize_promotion(running[0], now=now)}
