"""Menu catalog: dish normalization, images, CRUD and cascade deletes."""

from src.catalog.cascade import CascadeDeleter, DeleteReport, DeleteResult, ImageRemoval
from src.catalog.images import (
    IMAGE_PRESETS,
    MAX_IMAGE_BYTES,
    ImageLimitError,
    ImagePreset,
    ImageTooLargeError,
    ImageUploader,
    UploadedImage,
    process_image,
)
from src.catalog.normalizer import (
    UNSET,
    allergen_id,
    clean_data,
    denormalize_dish,
    generate_id,
    normalize_dish,
)
from src.catalog.public_menu import PublicMenu, build_public_menu
from src.catalog.repository import DishSaveResult, MenuRepository

__all__ = [
    "IMAGE_PRESETS",
    "MAX_IMAGE_BYTES",
    "UNSET",
    "CascadeDeleter",
    "DeleteReport",
    "DeleteResult",
    "DishSaveResult",
    "ImageLimitError",
    "ImageRemoval",
    "ImagePreset",
    "ImageTooLargeError",
    "ImageUploader",
    "MenuRepository",
    "PublicMenu",
    "UploadedImage",
    "allergen_id",
    "build_public_menu",
    "clean_data",
    "denormalize_dish",
    "generate_id",
    "normalize_dish",
    "process_image",
]
