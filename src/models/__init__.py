"""Data models for the menu CMS."""

from src.models.menu import (
    MAX_DISH_IMAGES,
    Allergen,
    Category,
    Dish,
    DishOption,
    DishOptions,
    Restaurant,
    User,
    format_price,
)
from src.models.imports import (
    ImportCategory,
    ImportDish,
    ImportDishOption,
    ImportMenu,
)
from src.models.api import (
    DeleteReportResponse,
    DeleteResultItem,
    DishImagesResponse,
    ImageRemovalResponse,
    ImageUploadResponse,
    ImportPreviewResponse,
    ImportResponse,
    UserCreateRequest,
    UserUpdateRequest,
)

__all__ = [
    # Menu models
    "MAX_DISH_IMAGES",
    "Allergen",
    "Category",
    "Dish",
    "DishOption",
    "DishOptions",
    "Restaurant",
    "User",
    "format_price",
    # Import models
    "ImportCategory",
    "ImportDish",
    "ImportDishOption",
    "ImportMenu",
    # API models
    "DeleteReportResponse",
    "DeleteResultItem",
    "DishImagesResponse",
    "ImageRemovalResponse",
    "ImageUploadResponse",
    "ImportPreviewResponse",
    "ImportResponse",
    "UserCreateRequest",
    "UserUpdateRequest",
]
