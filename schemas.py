"""
Database Schemas

MongoDB collection schemas as Pydantic models.
- User -> "users" collection
- Collection -> "collections" collection

The *Create/*Update models validate incoming payloads before anything is
written or uploaded.
"""

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator


class Category(str, Enum):
    BOOK = "book"
    MANGA = "manga"
    COMIC = "comic"
    FIGURE = "figure"


class Status(str, Enum):
    OWNED = "owned"
    WISHLIST = "wishlist"
    PREORDER = "preorder"
    DEPOSIT = "deposit"


class Currency(str, Enum):
    USD = "USD"
    ARS = "ARS"
    JPY = "JPY"


class User(BaseModel):
    """Users collection schema (collection name: users)"""
    username: str = Field(..., description="Unique username")
    email: EmailStr = Field(..., description="User email (unique)")
    password_hash: str = Field(..., description="BCrypt hashed password")
    profile_picture: str = Field("", description="Avatar URL")


class Collection(BaseModel):
    """Collections collection schema (collection name: collections)"""
    model_config = ConfigDict(use_enum_values=True)

    title: str
    caption: str
    brand: str
    author: str
    price: float = Field(..., ge=0)
    currency: Currency = Currency.ARS
    category: Category = Category.BOOK
    status: Status = Status.OWNED
    release_date: datetime
    shopping_link: str = ""
    # Legacy single-image fields, mirror images[0] / image_public_ids[0]
    image: str
    image_public_id: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    image_public_ids: List[str] = Field(default_factory=list)
    user: str = Field(..., description="Owner user id")


_MONTH_YEAR = re.compile(r"^(\d{1,2})-(\d{4})$")


def parse_release_date(value):
    """Accept "MM-YYYY" (first day of that month) or anything pydantic parses as a datetime."""
    if isinstance(value, str):
        value = value.strip()
        match = _MONTH_YEAR.match(value)
        if match:
            month, year = int(match.group(1)), int(match.group(2))
            if not 1 <= month <= 12:
                raise ValueError("release_date month must be between 1 and 12")
            return datetime(year, month, 1)
    return value


class CollectionFields(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    @field_validator("title", "caption", "brand", "author", "shopping_link", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("release_date", mode="before", check_fields=False)
    @classmethod
    def month_year_release_date(cls, value):
        return parse_release_date(value)


class CollectionCreate(CollectionFields):
    title: str = Field(..., min_length=1)
    caption: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    currency: Currency
    category: Category
    status: Status
    release_date: datetime
    shopping_link: str = ""


class CollectionUpdate(CollectionFields):
    title: Optional[str] = Field(None, min_length=1)
    caption: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    category: Optional[Category] = None
    status: Optional[Status] = None
    release_date: Optional[datetime] = None
    shopping_link: Optional[str] = None
