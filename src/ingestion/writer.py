"""Batched import of a parsed menu into the document store."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import structlog

from src.catalog.normalizer import UNSET, allergen_id, clean_data, generate_id
from src.metrics import IMPORT_BATCHES_TOTAL, IMPORT_BATCH_FAILURES_TOTAL, record_import_run
from src.models.imports import ImportCategory, ImportDish, ImportMenu
from src.store import paths
from src.store.documents import SERVER_TIMESTAMP, ArrayUnion, DocumentStore

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, str], None]


class ImportFailurePolicy(str, Enum):
    """What to do when a category batch fails to commit."""

    ABORT = "abort"
    CONTINUE = "continue"


class CancellationToken:
    """Caller-held flag checked by the importer between batches."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ImportResult:
    """Counts of an import run.

    ``category_count`` and ``dish_count`` describe the imported menu;
    ``committed_*`` count what actually reached the store.
    """

    restaurant_id: str
    category_count: int
    dish_count: int
    committed_categories: int = 0
    committed_dishes: int = 0
    cancelled: bool = False
    failed_categories: list[str] = field(default_factory=list)


class ImportWriteError(RuntimeError):
    """A batch commit failed. Earlier batches stay committed.

    ``category_id`` is None when the restaurant batch failed.
    """

    def __init__(self, message: str, category_id: str | None, result: ImportResult):
        super().__init__(message)
        self.category_id = category_id
        self.result = result


def build_dish_fields(dish: ImportDish) -> dict[str, Any]:
    """Build stored dish fields from an import dish.

    Arabic fields are left out when missing rather than falling back to
    English. Allergens pair English and Arabic names by position.
    """
    fields: dict[str, Any] = {
        "name": dish.name_en,
        "nameAr": dish.name_ar or UNSET,
        "price": dish.price if dish.price is not None else 0,
        "description": dish.description_en if dish.description_en is not None else "",
        "descriptionAr": dish.description_ar or UNSET,
        "isActive": dish.is_active if dish.is_active is not None else True,
        "allergens": [],
        "options": None,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }

    arabic_allergens = dish.allergens_ar or []
    for index, name in enumerate(dish.allergens_en or []):
        allergen = {"id": allergen_id(name), "name": name}
        if index < len(arabic_allergens):
            allergen["nameAr"] = arabic_allergens[index]
        fields["allergens"].append(allergen)

    # The four metadata fields are only written alongside a non-empty option
    # list. Dishes are merged, so a re-import without options clears the list
    # but keeps any header fields already stored.
    if dish.options:
        fields["options"] = [
            {
                "id": generate_id(),
                "name": option.name_en,
                "nameAr": option.name_ar or UNSET,
                "price": option.price if option.price is not None else 0,
            }
            for option in dish.options
        ]
        fields["optionsHeader"] = dish.options_header_en or UNSET
        fields["optionsHeaderAr"] = dish.options_header_ar or UNSET
        fields["areOptionsRequired"] = (
            dish.are_options_required if dish.are_options_required is not None else UNSET
        )
        fields["maxOptionsSelection"] = (
            dish.max_options_selection if dish.max_options_selection is not None else UNSET
        )

    return clean_data(fields)


def build_category_fields(category: ImportCategory, order: int) -> dict[str, Any]:
    return {
        "name": category.name_en,
        "nameAr": category.name_ar or category.name_en,
        "order": order,
        "isActive": True,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }


def build_restaurant_fields(menu: ImportMenu) -> dict[str, Any]:
    return {
        "name": menu.name_en,
        "nameAr": menu.name_ar or menu.name_en,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }


class MenuImporter:
    """Write an import menu to the store, one batch per logical unit.

    Steps:
    1. Restaurant document (merged at the menu id) plus the acting user's
       restaurant list, in one batch
    2. One batch per category: the category document and all its dishes

    Every write is a merge keyed by the ids in the file, so re-running an
    import updates documents instead of duplicating them.
    """

    def __init__(
        self,
        documents: DocumentStore,
        failure_policy: ImportFailurePolicy = ImportFailurePolicy.ABORT,
    ):
        self.documents = documents
        self.failure_policy = ImportFailurePolicy(failure_policy)

    async def import_menu(
        self,
        menu: ImportMenu,
        user_id: str,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ImportResult:
        """Import a parsed menu.

        Args:
            menu: Parsed import menu
            user_id: Acting user; the restaurant is added to their list
            on_progress: Called with (completed_steps, total_steps, status)
            cancel_token: Checked before every step

        Returns:
            Import counts

        Raises:
            ImportWriteError: The restaurant batch failed, or a category batch
                failed under the ABORT policy
        """
        started = time.monotonic()
        restaurant_id = menu.id
        total_steps = 1 + len(menu.categories)
        completed = 0
        result = ImportResult(
            restaurant_id=restaurant_id,
            category_count=len(menu.categories),
            dish_count=menu.dish_count,
        )

        def progress(status: str) -> None:
            if on_progress:
                on_progress(completed, total_steps, status)

        def is_cancelled() -> bool:
            if cancel_token is not None and cancel_token.cancelled:
                result.cancelled = True
                logger.info(
                    "import_cancelled",
                    restaurant_id=restaurant_id,
                    completed_steps=completed,
                    total_steps=total_steps,
                )
                record_import_run("cancelled", time.monotonic() - started)
                return True
            return False

        logger.info(
            "import_starting",
            restaurant_id=restaurant_id,
            user_id=user_id,
            category_count=result.category_count,
            dish_count=result.dish_count,
            failure_policy=self.failure_policy.value,
        )

        if is_cancelled():
            return result

        # Step 1: restaurant + user link
        progress("Creating restaurant...")
        batch = self.documents.batch()
        batch.set(paths.restaurant(restaurant_id), build_restaurant_fields(menu), merge=True)
        batch.update(paths.user(user_id), {"restaurantIds": ArrayUnion(restaurant_id)})
        try:
            await batch.commit()
        except Exception as e:
            IMPORT_BATCH_FAILURES_TOTAL.labels(kind="restaurant").inc()
            record_import_run("failed", time.monotonic() - started)
            logger.error("import_restaurant_failed", restaurant_id=restaurant_id, error=str(e))
            raise ImportWriteError(
                f"Failed to create restaurant '{restaurant_id}': {e}", None, result
            ) from e

        IMPORT_BATCHES_TOTAL.labels(kind="restaurant").inc()
        completed += 1
        progress("Restaurant created")

        # Step 2: one batch per category, in file order
        for order, category in enumerate(menu.categories):
            if is_cancelled():
                return result

            progress(f"Importing {category.name_en}...")
            batch = self.documents.batch()
            batch.set(
                paths.category(restaurant_id, category.id),
                build_category_fields(category, order),
                merge=True,
            )
            for dish in category.dishes:
                batch.set(
                    paths.dish(restaurant_id, category.id, dish.id),
                    build_dish_fields(dish),
                    merge=True,
                )

            try:
                await batch.commit()
            except Exception as e:
                IMPORT_BATCH_FAILURES_TOTAL.labels(kind="category").inc()
                logger.error(
                    "import_category_failed",
                    restaurant_id=restaurant_id,
                    category_id=category.id,
                    error=str(e),
                )
                result.failed_categories.append(category.id)
                if self.failure_policy == ImportFailurePolicy.ABORT:
                    record_import_run("failed", time.monotonic() - started)
                    raise ImportWriteError(
                        f"Failed to import category '{category.id}' ({category.name_en}): {e}",
                        category.id,
                        result,
                    ) from e
                completed += 1
                progress(f"Failed to import {category.name_en}")
                continue

            IMPORT_BATCHES_TOTAL.labels(kind="category").inc()
            result.committed_categories += 1
            result.committed_dishes += len(category.dishes)
            completed += 1
            progress(f"Imported {category.name_en}")

        outcome = "partial" if result.failed_categories else "ok"
        record_import_run(outcome, time.monotonic() - started)
        logger.info(
            "import_complete",
            restaurant_id=restaurant_id,
            committed_categories=result.committed_categories,
            committed_dishes=result.committed_dishes,
            failed_categories=result.failed_categories,
        )
        return result
