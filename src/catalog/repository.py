"""CRUD access to restaurants, categories, dishes and users.

Dish reads are normalized and dish writes denormalized here, so callers only
ever see the nested options shape.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

import structlog

from src.catalog.images import ImageUploader, ProgressCallback, check_dish_image_count
from src.catalog.normalizer import clean_data, denormalize_dish, normalize_dish
from src.models.menu import Category, Dish, Restaurant, User
from src.store import paths
from src.store.documents import SERVER_TIMESTAMP, DocumentNotFoundError, DocumentStore

logger = structlog.get_logger()


def _created_key(document: dict[str, Any]) -> float:
    created = document.get("createdAt")
    if isinstance(created, datetime):
        return created.timestamp()
    return 0.0


def _newest_first(documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(documents, key=_created_key, reverse=True)


def _fields(data: dict[str, Any]) -> dict[str, Any]:
    """Strip the id key; ids live in the path, not the document."""
    return {key: value for key, value in clean_data(data).items() if key != "id"}


@dataclass
class DishSaveResult:
    """Outcome of saving a dish together with newly selected images."""

    dish_id: str
    image_paths: list[str] = field(default_factory=list)
    image_upload_failed: bool = False
    image_error: str | None = None


class MenuRepository:
    """Thin CRUD layer over the document store."""

    def __init__(self, documents: DocumentStore):
        self.documents = documents

    # ---------- Restaurants ----------

    async def list_restaurants(self) -> list[Restaurant]:
        documents = await self.documents.list_collection(paths.RESTAURANTS)
        return [Restaurant.model_validate(d) for d in _newest_first(documents)]

    async def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        data = await self.documents.get(paths.restaurant(restaurant_id))
        return Restaurant.model_validate(data) if data else None

    async def create_restaurant(self, data: dict[str, Any]) -> str:
        record = {
            "name": "New Restaurant",
            "nameAr": "",
            "layout": "list",
            "menuFont": "system",
            "themeColorHex": "#00ffff",
            **_fields(data),
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        restaurant_id = await self.documents.add(paths.RESTAURANTS, record)
        logger.info("restaurant_created", restaurant_id=restaurant_id)
        return restaurant_id

    async def update_restaurant(self, restaurant_id: str, data: dict[str, Any]) -> None:
        await self.documents.update(
            paths.restaurant(restaurant_id),
            {**_fields(data), "updatedAt": SERVER_TIMESTAMP},
        )

    # ---------- Categories ----------

    async def list_categories(self, restaurant_id: str) -> list[Category]:
        documents = await self.documents.list_collection(paths.categories(restaurant_id))
        # Stable sort: equal orders keep insertion order
        documents.sort(key=lambda d: d.get("order") or 0)
        return [Category.model_validate(d) for d in documents]

    async def get_category(self, restaurant_id: str, category_id: str) -> Category | None:
        data = await self.documents.get(paths.category(restaurant_id, category_id))
        return Category.model_validate(data) if data else None

    async def create_category(self, restaurant_id: str, data: dict[str, Any]) -> str:
        record = {
            "order": 0,
            "isActive": True,
            "availabilityStart": None,
            "availabilityEnd": None,
            **_fields(data),
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        category_id = await self.documents.add(paths.categories(restaurant_id), record)
        logger.info("category_created", restaurant_id=restaurant_id, category_id=category_id)
        return category_id

    async def update_category(
        self,
        restaurant_id: str,
        category_id: str,
        data: dict[str, Any],
    ) -> None:
        await self.documents.update(
            paths.category(restaurant_id, category_id),
            {**_fields(data), "updatedAt": SERVER_TIMESTAMP},
        )

    # ---------- Dishes ----------

    async def list_dishes(self, restaurant_id: str, category_id: str) -> list[Dish]:
        documents = await self.documents.list_collection(paths.dishes(restaurant_id, category_id))
        return [Dish.model_validate(normalize_dish(d)) for d in _newest_first(documents)]

    async def list_all_dishes(self, restaurant_id: str) -> list[tuple[Category, Dish]]:
        """Every dish of a restaurant paired with its category."""
        result = []
        for category in await self.list_categories(restaurant_id):
            for dish in await self.list_dishes(restaurant_id, category.id):
                result.append((category, dish))
        return result

    async def get_dish(self, restaurant_id: str, category_id: str, dish_id: str) -> Dish | None:
        data = await self.documents.get(paths.dish(restaurant_id, category_id, dish_id))
        return Dish.model_validate(normalize_dish(data)) if data else None

    async def create_dish(self, restaurant_id: str, category_id: str, data: dict[str, Any]) -> str:
        stored = denormalize_dish(_fields(data))
        record = {
            "price": None,
            "imagePaths": [],
            **stored,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        dish_id = await self.documents.add(paths.dishes(restaurant_id, category_id), record)
        logger.info(
            "dish_created",
            restaurant_id=restaurant_id,
            category_id=category_id,
            dish_id=dish_id,
        )
        return dish_id

    async def update_dish(
        self,
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        data: dict[str, Any],
    ) -> None:
        """Merge fields into a dish. Options and allergens are only rewritten
        when present in ``data``."""
        stored = denormalize_dish(_fields(data), partial=True)
        await self.documents.update(
            paths.dish(restaurant_id, category_id, dish_id),
            {**stored, "updatedAt": SERVER_TIMESTAMP},
        )

    async def save_dish_with_images(
        self,
        uploader: ImageUploader,
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        data: dict[str, Any],
        existing_paths: Sequence[str],
        new_files: Sequence[bytes],
        on_progress: ProgressCallback | None = None,
    ) -> DishSaveResult:
        """Save dish edits and upload newly selected photos.

        A failed upload does not lose the other edits: the dish is saved with
        the paths known so far and the failure is reported in the result.
        """
        check_dish_image_count(len(existing_paths), len(new_files))
        result = DishSaveResult(dish_id=dish_id, image_paths=list(existing_paths))

        if new_files:
            try:
                uploaded = await uploader.upload_dish_images(
                    new_files, restaurant_id, category_id, dish_id, on_progress
                )
                result.image_paths.extend(image.path for image in uploaded)
            except Exception as e:
                result.image_upload_failed = True
                result.image_error = str(e)
                logger.warning(
                    "dish_image_upload_failed",
                    restaurant_id=restaurant_id,
                    category_id=category_id,
                    dish_id=dish_id,
                    error=str(e),
                )

        await self.update_dish(
            restaurant_id,
            category_id,
            dish_id,
            {**data, "imagePaths": result.image_paths},
        )
        return result

    # ---------- Users ----------

    async def list_users(self) -> list[User]:
        documents = await self.documents.list_collection(paths.USERS)
        return [User.model_validate(d) for d in _newest_first(documents)]

    async def get_user(self, user_id: str) -> User | None:
        data = await self.documents.get(paths.user(user_id))
        return User.model_validate(data) if data else None

    async def create_user(self, user_id: str, data: dict[str, Any]) -> None:
        """Create a profile for an account created by the auth provider."""
        await self.documents.set(
            paths.user(user_id),
            {
                "restaurantIds": [],
                **_fields(data),
                "createdAt": SERVER_TIMESTAMP,
                "updatedAt": SERVER_TIMESTAMP,
            },
        )
        logger.info("user_created", user_id=user_id)

    async def update_user(self, user_id: str, data: dict[str, Any]) -> None:
        """Merge profile fields. The email cannot change after creation."""
        fields = _fields(data)
        if "email" in fields:
            current = await self.documents.get(paths.user(user_id))
            if current is None:
                raise DocumentNotFoundError(paths.user(user_id))
            if fields["email"] != current.get("email"):
                raise ValueError("User email cannot be changed")
        await self.documents.update(
            paths.user(user_id),
            {**fields, "updatedAt": SERVER_TIMESTAMP},
        )
