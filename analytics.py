"""
Daily analytics buckets.

One document per calendar day (UTC midnight) holds the visit and order
counters plus per-product and per-category order tallies. Product and
category names are copied in at order time so the dashboard keeps its
labels after the catalog entry is deleted.

Every write is a single-document atomic update, so concurrent calls for
the same day never lose an increment.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import settings
from auth import require_admin
from database import collection, utcnow

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin/analytics", tags=["analytics"])

NO_TOP_PRODUCT = "None"
NO_TOP_CATEGORY = "None"


def day_bucket(now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _upsert_bucket(day: datetime, inc: Dict[str, int]) -> Dict[str, Any]:
    defaults = {"visits": 0, "orders": 0, "products": [], "categories": []}
    on_insert = {k: v for k, v in defaults.items() if k not in inc}
    update = {"$inc": inc, "$setOnInsert": on_insert}
    try:
        return collection("analytics").find_one_and_update(
            {"date": day}, update, upsert=True, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        # Lost the insert race for the day; the document exists now.
        return collection("analytics").find_one_and_update(
            {"date": day}, update, return_document=ReturnDocument.AFTER
        )


def record_visit(now: Optional[datetime] = None) -> Dict[str, Any]:
    return _upsert_bucket(day_bucket(now), {"visits": 1})


def _bump_entry(day: datetime, field: str, key: str, entry_id: str, name: str) -> None:
    analytics = collection("analytics")
    match = {"date": day, f"{field}.{key}": entry_id}
    inc = {"$inc": {f"{field}.$.orders": 1}}
    if analytics.update_one(match, inc).modified_count:
        return
    pushed = analytics.update_one(
        {"date": day, f"{field}.{key}": {"$ne": entry_id}},
        {"$push": {field: {key: entry_id, "name": name, "orders": 1}}},
    )
    if not pushed.modified_count:
        # Someone appended the entry between the two updates.
        analytics.update_one(match, inc)


def record_order(product_id: str, product_name: str, category_id: str, category_name: str,
                 now: Optional[datetime] = None) -> Dict[str, Any]:
    day = day_bucket(now)
    _upsert_bucket(day, {"orders": 1})
    _bump_entry(day, "products", "product_id", product_id, product_name)
    _bump_entry(day, "categories", "category_id", category_id, category_name)
    return collection("analytics").find_one({"date": day})


def _top_entry(buckets: Iterable[Dict[str, Any]], field: str, key: str, placeholder: str) -> Dict[str, Any]:
    totals: Dict[str, Dict[str, Any]] = {}
    for bucket in buckets:
        for entry in bucket.get(field) or []:
            current = totals.setdefault(str(entry.get(key)), {"name": entry.get("name", ""), "total": 0})
            current["total"] += entry.get("orders", 0)
    if not totals:
        return {"name": placeholder, "total": 0}
    # max() keeps the first maximal entry, i.e. the earliest seen in the day-ascending scan
    return max(totals.values(), key=lambda t: t["total"])


def build_dashboard(buckets: List[Dict[str, Any]], today: datetime) -> Dict[str, Any]:
    """Shape stored buckets into a fixed calendar-aligned series plus totals.

    ``buckets`` must be sorted by date ascending. Days without a bucket are
    reported as zero; the series always has ``DASHBOARD_DAYS`` points ending
    on ``today``.
    """
    by_day = {b["date"].date(): b for b in buckets}
    today = day_bucket(today)
    chart_data = []
    for offset in range(settings.DASHBOARD_DAYS - 1, -1, -1):
        day = (today - timedelta(days=offset)).date()
        bucket = by_day.get(day) or {}
        chart_data.append({
            "date": day.isoformat(),
            "visits": bucket.get("visits", 0),
            "orders": bucket.get("orders", 0),
        })

    return {
        "chart_data": chart_data,
        "stats": {
            "total_visits": sum(b.get("visits", 0) for b in buckets),
            "total_orders": sum(b.get("orders", 0) for b in buckets),
            "top_product": _top_entry(buckets, "products", "product_id", NO_TOP_PRODUCT),
            "top_category": _top_entry(buckets, "categories", "category_id", NO_TOP_CATEGORY),
        },
    }


def dashboard(now: Optional[datetime] = None) -> Dict[str, Any]:
    today = day_bucket(now)
    since = today - timedelta(days=settings.DASHBOARD_DAYS - 1)
    buckets = list(collection("analytics").find({"date": {"$gte": since}}).sort("date", 1))
    return build_dashboard(buckets, today)


class OrderRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    product_name: str = ""
    category_id: str = Field(..., min_length=1)
    category_name: str = ""


@router.get("/dashboard")
def get_dashboard(admin=Depends(require_admin)):
    return {"success": True, **dashboard()}


@router.post("/visite")
def post_visit():
    record_visit()
    return {"success": True}


@router.post("/commande")
def post_order(payload: OrderRequest):
    record_order(payload.product_id, payload.product_name, payload.category_id, payload.category_name)
    logger.info("order_recorded", product_id=payload.product_id, category_id=payload.category_id)
    return {"success": True}
