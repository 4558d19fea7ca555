import re
import unicodedata
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError

import settings
from auth import require_admin
from database import collection, create_document, sanitize, to_obj_id, update_document
from errors import Conflict, NotFound, ValidationError
from schemas import Category as CategorySchema
from schemas import Currency, Dimensions
from schemas import Image as ImageSchema

logger = structlog.get_logger(__name__)

admin_router = APIRouter(prefix="/api/admin/categories", tags=["admin-catalog"])
public_router = APIRouter(prefix="/api/categories", tags=["catalog"])

PUBLIC_IMAGE_FIELDS = (
    "url", "name", "price", "currency", "description", "in_stock",
    "quantity", "dimensions", "material", "order",
)


def slugify(name: str) -> str:
    """Lowercase, strip accents, collapse anything outside [a-z0-9] to single hyphens."""
    ascii_name = (
        unicodedata.normalize("NFKD", name.lower())
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    return re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")


def format_price(price: Optional[float], currency: Optional[str]) -> str:
    if not price:
        return "Price on request"
    price = round(float(price), 2)
    if price.is_integer():
        number = f"{int(price):,}"
    else:
        number = f"{price:,.2f}".rstrip("0")
    # fr-FR grouping: space for thousands, comma for decimals
    number = number.replace(",", " ").replace(".", ",")
    return f"{number} {currency or 'FCFA'}"


def format_dimensions(dimensions: Optional[Dict[str, Any]]) -> Optional[str]:
    if not dimensions:
        return None
    parts = []
    for prefix, key in (("L", "length"), ("l", "width"), ("H", "height")):
        value = dimensions.get(key)
        if value:
            parts.append(f"{prefix}{value:g}")
    if not parts:
        return None
    return " x ".join(parts) + " cm"


def serialize_image(doc: Dict[str, Any], fields=None) -> Dict[str, Any]:
    image = sanitize(doc)
    if fields:
        image = {k: v for k, v in image.items() if k in fields or k == "id"}
    image["price_display"] = format_price(doc.get("price"), doc.get("currency"))
    image["dimensions_display"] = format_dimensions(doc.get("dimensions"))
    return image


def find_category(category_id: str) -> Dict[str, Any]:
    category = collection("category").find_one({"_id": to_obj_id(category_id)})
    if not category:
        raise NotFound("Category not found.")
    return category


def ensure_unique_name(name: str, exclude_id=None) -> None:
    query: Dict[str, Any] = {
        "$or": [
            {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}},
            {"slug": slugify(name)},
        ]
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if collection("category").find_one(query):
        raise Conflict("This category already exists.")


def category_images(category_id: str, active_only: bool = False, limit: int = 0) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"category_id": category_id}
    if active_only:
        query["is_active"] = True
    cursor = collection("image").find(query).sort([("order", 1), ("created_at", -1)])
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


# Request models

class CategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    order: int = 0


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class ImageCreateRequest(BaseModel):
    url: str = Field(..., min_length=1)
    public_id: str = Field(..., min_length=1)
    name: str = ""
    price: float = Field(0, ge=0)
    currency: Currency = "FCFA"
    description: str = ""
    in_stock: bool = True
    quantity: int = Field(1, ge=0)
    dimensions: Dimensions = Field(default_factory=Dimensions)
    material: str = ""
    order: int = 0


class ImageUpdateRequest(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    description: Optional[str] = None
    in_stock: Optional[bool] = None
    quantity: Optional[int] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    material: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class ReorderRequest(BaseModel):
    image_ids: List[str]


# Admin: categories

@admin_router.get("")
def admin_list_categories(admin=Depends(require_admin)):
    categories = []
    for cat in collection("category").find({}).sort([("order", 1), ("created_at", -1)]):
        c = sanitize(cat)
        c["image_count"] = collection("image").count_documents({"category_id": c["id"]})
        categories.append(c)
    return {"success": True, "count": len(categories), "categories": categories}


@admin_router.get("/{category_id}")
def admin_get_category(category_id: str, admin=Depends(require_admin)):
    category = sanitize(find_category(category_id))
    category["image_count"] = collection("image").count_documents({"category_id": category["id"]})
    return {"success": True, "category": category}


@admin_router.post("", status_code=201)
def admin_create_category(payload: CategoryCreateRequest, admin=Depends(require_admin)):
    name = payload.name.strip()
    if not name or not slugify(name):
        raise ValidationError("Category name is required.")
    ensure_unique_name(name)
    category = CategorySchema(
        name=name,
        slug=slugify(name),
        description=payload.description.strip(),
        order=payload.order,
    )
    try:
        doc = create_document("category", category)
    except DuplicateKeyError:
        raise Conflict("This category already exists.")
    logger.info("category_created", category_id=str(doc["_id"]), slug=doc["slug"])
    return {"success": True, "message": "Category created", "category": sanitize(doc)}


@admin_router.put("/{category_id}")
def admin_update_category(category_id: str, payload: CategoryUpdateRequest, admin=Depends(require_admin)):
    category = find_category(category_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        name = changes["name"].strip()
        if not name or not slugify(name):
            changes.pop("name")
        else:
            if name != category["name"]:
                ensure_unique_name(name, exclude_id=category["_id"])
            changes["name"] = name
            changes["slug"] = slugify(name)
    if "description" in changes:
        changes["description"] = changes["description"].strip()
    try:
        doc = update_document("category", category["_id"], changes)
    except DuplicateKeyError:
        raise Conflict("This category already exists.")
    return {"success": True, "message": "Category updated", "category": sanitize(doc)}


@admin_router.delete("/{category_id}")
def admin_delete_category(category_id: str, admin=Depends(require_admin)):
    category = find_category(category_id)
    image_count = collection("image").count_documents({"category_id": str(category["_id"])})
    if image_count > 0:
        raise Conflict(
            f"Cannot delete. This category contains {image_count} image(s).",
            image_count=image_count,
        )
    collection("category").delete_one({"_id": category["_id"]})
    logger.info("category_deleted", category_id=category_id)
    return {"success": True, "message": "Category deleted"}


# Admin: images

@admin_router.get("/{category_id}/images")
def admin_list_images(category_id: str, admin=Depends(require_admin)):
    category = find_category(category_id)
    images = [serialize_image(i) for i in category_images(str(category["_id"]))]
    return {
        "success": True,
        "count": len(images),
        "images": images,
        "category": {
            "id": str(category["_id"]),
            "name": category["name"],
            "slug": category["slug"],
            "description": category.get("description", ""),
        },
    }


@admin_router.post("/{category_id}/images", status_code=201)
def admin_create_image(category_id: str, payload: ImageCreateRequest, admin=Depends(require_admin)):
    category = find_category(category_id)
    image = ImageSchema(category_id=str(category["_id"]), **payload.model_dump())
    doc = create_document("image", image)
    logger.info("image_created", image_id=str(doc["_id"]), category_id=category_id)
    return {"success": True, "message": "Image added", "image": serialize_image(doc)}


@admin_router.put("/{category_id}/images/reorder")
def admin_reorder_images(category_id: str, payload: ReorderRequest, admin=Depends(require_admin)):
    category = find_category(category_id)
    oids = [to_obj_id(i) for i in payload.image_ids]
    for index, oid in enumerate(oids):
        collection("image").update_one(
            {"_id": oid, "category_id": str(category["_id"])},
            {"$set": {"order": index}},
        )
    return {"success": True, "message": "Image order updated"}


@admin_router.put("/images/{image_id}")
def admin_update_image(image_id: str, payload: ImageUpdateRequest, admin=Depends(require_admin)):
    oid = to_obj_id(image_id)
    if not collection("image").find_one({"_id": oid}):
        raise NotFound("Image not found.")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    doc = update_document("image", oid, changes)
    return {"success": True, "message": "Image updated", "image": serialize_image(doc)}


@admin_router.delete("/images/{image_id}")
def admin_delete_image(image_id: str, admin=Depends(require_admin)):
    image = collection("image").find_one_and_delete({"_id": to_obj_id(image_id)})
    if not image:
        raise NotFound("Image not found.")
    logger.info("image_deleted", image_id=image_id, public_id=image["public_id"])
    return {"success": True, "message": "Image deleted", "public_id": image["public_id"]}


# Public

@public_router.get("")
def list_categories():
    categories = []
    for cat in collection("category").find({"is_active": True}).sort([("order", 1), ("name", 1)]):
        images = [
            serialize_image(i, PUBLIC_IMAGE_FIELDS)
            for i in category_images(str(cat["_id"]), active_only=True, limit=settings.PUBLIC_IMAGES_PER_CATEGORY)
        ]
        if not images:
            continue
        categories.append({
            "id": str(cat["_id"]),
            "name": cat["name"],
            "slug": cat["slug"],
            "order": cat.get("order", 0),
            "images": images,
            "image_count": len(images),
        })
    return {"success": True, "count": len(categories), "categories": categories}


@public_router.get("/{slug}")
def get_category(slug: str):
    category = collection("category").find_one({"slug": slug, "is_active": True})
    if not category:
        raise NotFound("Category not found.")
    images = [
        serialize_image(i, PUBLIC_IMAGE_FIELDS)
        for i in category_images(str(category["_id"]), active_only=True)
    ]
    return {
        "success": True,
        "category": {
            "id": str(category["_id"]),
            "name": category["name"],
            "slug": category["slug"],
            "images": images,
            "image_count": len(images),
        },
    }
