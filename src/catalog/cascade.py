"""Cascade deletion of restaurants, categories, dishes and users.

The document store has no referential integrity, so owned documents and
their blobs are removed here, in this order for every entity:

1. read the document and capture its blob paths
2. delete owned children (best effort, one at a time)
3. delete the document itself
4. delete the captured blobs (best effort, never fails the operation)

Each step reports per-child results instead of raising on the first failure.

Single images (a logo, an icon, one dish photo) are removed the same way:
the reference is cleared on the document first, then the blob is deleted.
"""

from dataclasses import dataclass, field
from typing import Iterable, Literal

import structlog

from src.metrics import BLOB_CLEANUP_FAILURES_TOTAL, record_cascade_delete
from src.store import paths
from src.store.blobs import BlobNotFoundError, BlobStore, is_storage_path
from src.store.documents import SERVER_TIMESTAMP, DocumentNotFoundError, DocumentStore

logger = structlog.get_logger()


@dataclass
class DeleteResult:
    """Outcome of deleting one child entity."""

    path: str
    ok: bool
    error: str | None = None


@dataclass
class DeleteReport:
    """Outcome of deleting an entity and everything it owns."""

    path: str
    deleted: bool = False
    children: list[DeleteResult] = field(default_factory=list)
    blob_failures: list[str] = field(default_factory=list)

    @property
    def failed_children(self) -> list[DeleteResult]:
        return [child for child in self.children if not child.ok]

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "deleted": self.deleted,
            "children": [vars(child) for child in self.children],
            "blob_failures": list(self.blob_failures),
        }


@dataclass
class ImageRemoval:
    """Outcome of removing images referenced by one document."""

    path: str
    removed: list[str] = field(default_factory=list)
    blob_failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "removed": list(self.removed),
            "blob_failures": list(self.blob_failures),
        }


class CascadeDeleter:
    """Delete entities together with their descendants and blobs."""

    def __init__(self, documents: DocumentStore, blobs: BlobStore):
        self.documents = documents
        self.blobs = blobs

    async def delete_storage_paths(self, blob_paths: Iterable[str | None]) -> list[str]:
        """Delete blobs, skipping non-paths and swallowing every failure.

        Returns:
            Paths whose deletion failed or found nothing
        """
        failures = []
        for path in blob_paths:
            if not is_storage_path(path):
                continue
            try:
                await self.blobs.delete(path)
            except BlobNotFoundError:
                BLOB_CLEANUP_FAILURES_TOTAL.labels(reason="not_found").inc()
                logger.debug("blob_delete_not_found", path=path)
                failures.append(path)
            except Exception as e:
                BLOB_CLEANUP_FAILURES_TOTAL.labels(reason="error").inc()
                logger.warning("blob_delete_failed", path=path, error=str(e))
                failures.append(path)
        return failures

    async def delete_dish(self, restaurant_id: str, category_id: str, dish_id: str) -> DeleteReport:
        """Delete a dish document, then its images."""
        path = paths.dish(restaurant_id, category_id, dish_id)
        report = DeleteReport(path=path)

        data = await self.documents.get(path)
        image_paths = list((data or {}).get("imagePaths") or [])

        await self.documents.delete(path)
        report.deleted = True
        record_cascade_delete("dish", True)

        report.blob_failures = await self.delete_storage_paths(image_paths)
        logger.info("dish_deleted", path=path, image_count=len(image_paths))
        return report

    async def delete_category(self, restaurant_id: str, category_id: str) -> DeleteReport:
        """Delete every dish of a category, the category, then its icon."""
        path = paths.category(restaurant_id, category_id)
        report = DeleteReport(path=path)

        data = await self.documents.get(path)
        icon_path = (data or {}).get("imagePath")

        try:
            dishes = await self.documents.list_collection(paths.dishes(restaurant_id, category_id))
        except Exception as e:
            logger.warning("dish_listing_failed", path=path, error=str(e))
            dishes = []

        for dish in dishes:
            child_path = paths.dish(restaurant_id, category_id, dish["id"])
            try:
                child = await self.delete_dish(restaurant_id, category_id, dish["id"])
                report.children.append(DeleteResult(child_path, True))
                report.blob_failures.extend(child.blob_failures)
            except Exception as e:
                record_cascade_delete("dish", False)
                logger.warning("dish_delete_failed", path=child_path, error=str(e))
                report.children.append(DeleteResult(child_path, False, str(e)))

        await self.documents.delete(path)
        report.deleted = True
        record_cascade_delete("category", True)

        report.blob_failures.extend(await self.delete_storage_paths([icon_path]))
        logger.info(
            "category_deleted",
            path=path,
            dish_count=len(dishes),
            failed_dishes=len(report.failed_children),
        )
        return report

    async def delete_restaurant(self, restaurant_id: str) -> DeleteReport:
        """Delete every category of a restaurant, the restaurant, then its images."""
        path = paths.restaurant(restaurant_id)
        report = DeleteReport(path=path)

        data = await self.documents.get(path) or {}
        logo_path = data.get("logoPath") or data.get("imagePath")
        background_path = data.get("backgroundImagePath")

        categories = await self.documents.list_collection(paths.categories(restaurant_id))
        for category in categories:
            child_path = paths.category(restaurant_id, category["id"])
            try:
                child = await self.delete_category(restaurant_id, category["id"])
                report.children.append(DeleteResult(child_path, True))
                report.children.extend(child.failed_children)
                report.blob_failures.extend(child.blob_failures)
            except Exception as e:
                record_cascade_delete("category", False)
                logger.warning("category_delete_failed", path=child_path, error=str(e))
                report.children.append(DeleteResult(child_path, False, str(e)))

        await self.documents.delete(path)
        report.deleted = True
        record_cascade_delete("restaurant", True)

        report.blob_failures.extend(
            await self.delete_storage_paths([logo_path, background_path])
        )
        logger.info(
            "restaurant_deleted",
            restaurant_id=restaurant_id,
            category_count=len(categories),
            failed_children=len(report.failed_children),
        )
        return report

    async def delete_user(self, user_id: str) -> DeleteReport:
        """Delete a user profile, then its background image."""
        path = paths.user(user_id)
        report = DeleteReport(path=path)

        data = await self.documents.get(path)
        background_path = (data or {}).get("backgroundImagePath")

        await self.documents.delete(path)
        report.deleted = True
        record_cascade_delete("user", True)

        report.blob_failures = await self.delete_storage_paths([background_path])
        logger.info("user_deleted", user_id=user_id)
        return report

    # ---------- Single images ----------

    async def delete_replaced(self, previous: Iterable[str | None], current: str) -> list[str]:
        """Delete blobs an upload has just replaced."""
        return await self.delete_storage_paths(path for path in previous if path != current)

    async def _clear_image_fields(self, path: str, fields: tuple[str, ...]) -> ImageRemoval:
        data = await self.documents.get(path)
        if data is None:
            raise DocumentNotFoundError(path)

        captured = [data.get(name) for name in fields]
        await self.documents.update(
            path,
            {**{name: None for name in fields}, "updatedAt": SERVER_TIMESTAMP},
        )

        removal = ImageRemoval(path=path, removed=[p for p in captured if is_storage_path(p)])
        removal.blob_failures = await self.delete_storage_paths(captured)
        logger.info("images_removed", path=path, count=len(removal.removed))
        return removal

    async def remove_restaurant_image(
        self,
        restaurant_id: str,
        kind: Literal["logo", "background"],
    ) -> ImageRemoval:
        """Clear a restaurant logo (including the legacy field) or background."""
        fields = ("logoPath", "imagePath") if kind == "logo" else ("backgroundImagePath",)
        return await self._clear_image_fields(paths.restaurant(restaurant_id), fields)

    async def remove_category_icon(self, restaurant_id: str, category_id: str) -> ImageRemoval:
        return await self._clear_image_fields(
            paths.category(restaurant_id, category_id), ("imagePath",)
        )

    async def remove_user_background(self, user_id: str) -> ImageRemoval:
        return await self._clear_image_fields(paths.user(user_id), ("backgroundImagePath",))

    async def remove_dish_image(
        self,
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        image_path: str,
    ) -> ImageRemoval:
        """Drop one photo from a dish, keeping the order of the rest.

        Raises:
            DocumentNotFoundError: If the dish does not exist
            ValueError: If the dish does not reference ``image_path``
        """
        path = paths.dish(restaurant_id, category_id, dish_id)
        data = await self.documents.get(path)
        if data is None:
            raise DocumentNotFoundError(path)

        image_paths = list(data.get("imagePaths") or [])
        if image_path not in image_paths:
            raise ValueError(f"Dish {dish_id} has no image {image_path!r}")

        await self.documents.update(
            path,
            {
                "imagePaths": [p for p in image_paths if p != image_path],
                "updatedAt": SERVER_TIMESTAMP,
            },
        )

        removal = ImageRemoval(path=path, removed=[image_path])
        removal.blob_failures = await self.delete_storage_paths([image_path])
        logger.info("dish_image_removed", path=path, image_path=image_path)
        return removal
