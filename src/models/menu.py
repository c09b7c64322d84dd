"""Internal document models for restaurants, categories, dishes and users.

Field aliases are the names stored in the document store (camelCase, shared
with the mobile client). Dish models describe the *normalized* options shape;
the flat legacy shape only exists at the storage boundary, see
``src.catalog.normalizer``.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

MAX_DISH_IMAGES = 6
PRICE_DECIMALS = 3


def format_price(price: float | None) -> str:
    """Format a price with the menu's 3-decimal currency precision."""
    return f"{(price or 0):.{PRICE_DECIMALS}f}"


class Allergen(BaseModel):
    """Allergen attached to a dish."""

    id: str = ""
    name: str = ""
    name_ar: str | None = Field(default=None, alias="nameAr")

    class Config:
        populate_by_name = True


class DishOption(BaseModel):
    """Selectable option item; price is added to the dish base price."""

    id: str | None = None
    name: str = ""
    name_ar: str | None = Field(default=None, alias="nameAr")
    price: float = 0.0

    class Config:
        populate_by_name = True


class DishOptions(BaseModel):
    """Normalized options group of a dish."""

    header: str = ""
    header_ar: str | None = Field(default=None, alias="headerAr")
    required: bool = False
    max_selection: int | None = Field(default=None, alias="maxSelection")
    items: list[DishOption] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class Dish(BaseModel):
    """Dish as seen by business logic (normalized options)."""

    id: str
    name: str = ""
    name_ar: str | None = Field(default=None, alias="nameAr")
    description: str | None = None
    description_ar: str | None = Field(default=None, alias="descriptionAr")
    price: float | None = None
    is_active: bool = Field(default=True, alias="isActive")
    image_paths: list[str] = Field(default_factory=list, alias="imagePaths")
    options: DishOptions | None = None
    allergens: list[Allergen] = Field(default_factory=list)
    created_at: datetime | Any | None = Field(default=None, alias="createdAt")
    updated_at: datetime | Any | None = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True

    @property
    def display_price(self) -> str:
        return format_price(self.price)


class Category(BaseModel):
    """Menu category owned by a restaurant."""

    id: str
    name: str = ""
    name_ar: str | None = Field(default=None, alias="nameAr")
    order: int = 0
    is_active: bool = Field(default=True, alias="isActive")
    availability_start: str | None = Field(default=None, alias="availabilityStart")
    availability_end: str | None = Field(default=None, alias="availabilityEnd")
    image_path: str | None = Field(default=None, alias="imagePath")
    created_at: datetime | Any | None = Field(default=None, alias="createdAt")
    updated_at: datetime | Any | None = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True


class Restaurant(BaseModel):
    """Restaurant with its presentation settings."""

    id: str
    name: str = ""
    name_ar: str | None = Field(default=None, alias="nameAr")
    theme_color_hex: str = Field(default="#00ffff", alias="themeColorHex")
    layout: Literal["list", "grid"] = "list"
    dish_columns: int = Field(default=2, alias="dishColumns")
    menu_font: str = Field(default="system", alias="menuFont")
    logo_path: str | None = Field(default=None, alias="logoPath")
    background_image_path: str | None = Field(default=None, alias="backgroundImagePath")
    # Older documents keep the logo here
    image_path: str | None = Field(default=None, alias="imagePath")
    created_at: datetime | Any | None = Field(default=None, alias="createdAt")
    updated_at: datetime | Any | None = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True


class User(BaseModel):
    """CMS user. Managers see every restaurant, viewers only their list."""

    id: str
    name: str = ""
    email: str = ""
    role: Literal["manager", "viewer"] = "viewer"
    restaurant_ids: list[str] = Field(default_factory=list, alias="restaurantIds")
    background_image_path: str | None = Field(default=None, alias="backgroundImagePath")
    created_at: datetime | Any | None = Field(default=None, alias="createdAt")
    updated_at: datetime | Any | None = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True

    def can_access(self, restaurant_id: str) -> bool:
        """Check whether this user may see a restaurant."""
        return self.role == "manager" or restaurant_id in self.restaurant_ids
