"""
Visitor reviews.

There are no visitor accounts: the opaque ``visitor_id`` the browser
generated when the review was written is the only proof of authorship,
so edit and delete compare it against the stored one.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import structlog
from bson import ObjectId
from fastapi import APIRouter, Query
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

import settings
from database import collection, create_document, sanitize, to_obj_id, update_document, utcnow
from errors import Forbidden, NotFound, RateLimited
from schemas import Review as ReviewSchema

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewCreateRequest(BaseModel):
    visitor_id: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    photo: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=1000)


class ReviewUpdateRequest(BaseModel):
    visitor_id: str = Field(..., min_length=1)
    message: Optional[str] = Field(None, max_length=1000)
    photo: Optional[str] = None


class VisitorRequest(BaseModel):
    visitor_id: str = Field(..., min_length=1)


def toggle_like(review_id: ObjectId, visitor_id: str) -> Tuple[bool, Dict[str, Any]]:
    """Flip ``visitor_id``'s like on a review. Returns (liked, updated review).

    Every branch is a single filtered update, so likes from different visitors
    landing at the same time are all kept.
    """
    reviews = collection("review")
    stamp = {"updated_at": utcnow()}
    after = ReturnDocument.AFTER

    doc = reviews.find_one_and_update(
        {"_id": review_id, "liked_by": visitor_id, "likes": {"$gt": 0}},
        {"$pull": {"liked_by": visitor_id}, "$inc": {"likes": -1}, "$set": stamp},
        return_document=after,
    )
    if doc is None:
        # counter already at zero: drop the id, keep the floor
        doc = reviews.find_one_and_update(
            {"_id": review_id, "liked_by": visitor_id},
            {"$pull": {"liked_by": visitor_id}, "$set": {**stamp, "likes": 0}},
            return_document=after,
        )
    if doc is not None:
        return False, doc

    doc = reviews.find_one_and_update(
        {"_id": review_id, "liked_by": {"$ne": visitor_id}},
        {"$addToSet": {"liked_by": visitor_id}, "$inc": {"likes": 1}, "$set": stamp},
        return_document=after,
    )
    if doc is not None:
        return True, doc

    # same visitor toggled in between; report the state it left behind
    doc = reviews.find_one({"_id": review_id})
    if not doc:
        raise NotFound("Review not found.")
    return visitor_id in (doc.get("liked_by") or []), doc



def has_recent_review(visitor_id: str, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    since = now - timedelta(seconds=settings.REVIEW_COOLDOWN_SECONDS)
    return collection("review").find_one({"visitor_id": visitor_id, "created_at": {"$gte": since}}) is not None


def serialize_review(doc: Dict[str, Any], viewer_id: Optional[str] = None) -> Dict[str, Any]:
    review = sanitize(doc)
    owner_id = review.pop("visitor_id", None)
    liked_by = review.pop("liked_by", None) or []
    review["is_owner"] = bool(viewer_id) and viewer_id == owner_id
    review["liked"] = bool(viewer_id) and viewer_id in liked_by
    return review


def find_owned_review(review_id: str, visitor_id: str, action: str) -> Dict[str, Any]:
    review = collection("review").find_one({"_id": to_obj_id(review_id)})
    if not review:
        raise NotFound("Review not found.")
    if review["visitor_id"] != visitor_id:
        raise Forbidden(f"You are not allowed to {action} this review.")
    return review


@router.get("")
def list_reviews(visitor_id: Optional[str] = Query(None)):
    cursor = (
        collection("review")
        .find({"status": "approved"})
        .sort("created_at", -1)
        .limit(settings.PUBLIC_REVIEWS_LIMIT)
    )
    reviews = [serialize_review(r, visitor_id) for r in cursor]
    return {"success": True, "count": len(reviews), "reviews": reviews}


@router.post("", status_code=201)
def create_review(payload: ReviewCreateRequest):
    # Not transactional: two simultaneous submissions can both pass this check.
    if has_recent_review(payload.visitor_id):
        raise RateLimited("Please wait before posting another review.")
    review = ReviewSchema(
        visitor_id=payload.visitor_id,
        last_name=payload.last_name.strip(),
        first_name=payload.first_name.strip(),
        photo=payload.photo,
        message=payload.message.strip(),
    )
    doc = create_document("review", review)
    logger.info("review_created", review_id=str(doc["_id"]))
    return {"success": True, "message": "Review created", "review": serialize_review(doc, payload.visitor_id)}


@router.put("/{review_id}")
def update_review(review_id: str, payload: ReviewUpdateRequest):
    review = find_owned_review(review_id, payload.visitor_id, "edit")
    changes = {}
    if payload.message and payload.message.strip():
        changes["message"] = payload.message.strip()
    if payload.photo:
        changes["photo"] = payload.photo
    doc = update_document("review", review["_id"], changes)
    return {"success": True, "message": "Review updated", "review": serialize_review(doc, payload.visitor_id)}


@router.delete("/{review_id}")
def delete_review(review_id: str, payload: VisitorRequest):
    review = find_owned_review(review_id, payload.visitor_id, "delete")
    collection("review").delete_one({"_id": review["_id"]})
    logger.info("review_deleted", review_id=review_id)
    return {"success": True, "message": "Review deleted"}


@router.post("/{review_id}/like")
def like_review(review_id: str, payload: VisitorRequest):
    liked, doc = toggle_like(to_obj_id(review_id), payload.visitor_id)
    return {
        "success": True,
        "message": "Review liked" if liked else "Like removed",
        "liked": liked,
        "review": serialize_review(doc, payload.visitor_id),
    }
