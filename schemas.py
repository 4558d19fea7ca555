"""
Database Schemas for the salon catalog

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (Admin -> "admin").

We will use these collections:
- admin: back-office accounts (admin, super_admin)
- category: product categories shown on the storefront
- image: products (one picture each) filed under a category
- promotion: time-bounded stock-limite / tombola promotions
- review: visitor reviews
- analytics: one bucket per calendar day of visit/order counters
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["admin", "super_admin"]
Currency = Literal["FCFA", "EUR", "USD"]
PromotionType = Literal["stock-limite", "tombola"]
ReviewStatus = Literal["pending", "approved", "rejected"]

ADMIN_ROLES = ("admin", "super_admin")


class Admin(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of password")
    role: Role = Field("admin")
    is_active: bool = Field(True)
    last_login: Optional[datetime] = None


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., description="Derived from name, see catalog.slugify")
    description: str = Field("")
    order: int = Field(0)
    is_active: bool = Field(True)


class Dimensions(BaseModel):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


class Image(BaseModel):
    url: str = Field(..., min_length=1)
    public_id: str = Field(..., min_length=1, description="External asset id")
    category_id: str = Field(..., description="Reference to category _id")
    name: str = Field("")
    price: float = Field(0, ge=0)
    currency: Currency = Field("FCFA")
    description: str = Field("")
    in_stock: bool = Field(True)
    quantity: int = Field(1, ge=0)
    dimensions: Dimensions = Field(default_factory=Dimensions)
    material: str = Field("")
    order: int = Field(0)
    is_active: bool = Field(True)


class Promotion(BaseModel):
    type: PromotionType
    name: str = Field(..., min_length=1)
    is_active: bool = Field(True)
    start_date: datetime
    end_date: datetime
    category_id: Optional[str] = Field(None, description="Only for stock-limite")
    gains: Optional[List[str]] = Field(None, description="Only for tombola")
    display_duration: int = Field(10, ge=1, description="Seconds per prize")


class Review(BaseModel):
    visitor_id: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    photo: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=1000)
    status: ReviewStatus = Field("approved")
    likes: int = Field(0, ge=0)
    liked_by: List[str] = Field(default_factory=list)


class ProductOrders(BaseModel):
    product_id: str
    name: str = ""
    orders: int = 0


class CategoryOrders(BaseModel):
    category_id: str
    name: str = ""
    orders: int = 0


class Analytics(BaseModel):
    date: datetime
    visits: int = 0
    orders: int = 0
    products: List[ProductOrders] = Field(default_factory=list)
    categories: List[CategoryOrders] = Field(default_factory=list)
