"""Parse and validate menu import files."""

import json
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from src.models.imports import ImportMenu

logger = structlog.get_logger()


class ImportParseError(ValueError):
    """Raised when import text is not a usable menu. Blocks the import."""

    def __init__(self, message: str, keys_found: list[str] | None = None):
        super().__init__(message)
        self.keys_found = keys_found or []


def _is_menu(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    return bool(data.get("id")) and bool(data.get("name_en")) and data.get("categories") is not None


def parse_import_json(text: str) -> ImportMenu:
    """Parse import JSON into a menu tree.

    Accepts ``{"menu": {...}}`` or the bare menu object. Either must carry
    ``id``, ``name_en`` and ``categories``. Optional nested values of the
    wrong type are dropped; :func:`validate_import_menu` reports them.

    Raises:
        ImportParseError: Malformed JSON, missing top-level fields, or a
            broken tree structure; the message lists the keys that were found.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportParseError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e

    if isinstance(data, dict) and _is_menu(data.get("menu")):
        raw_menu = data["menu"]
    elif _is_menu(data):
        raw_menu = data
    else:
        keys = sorted(data) if isinstance(data, dict) else []
        raise ImportParseError(
            f"Invalid JSON structure. Keys found: [{', '.join(keys)}]. "
            "Expected 'menu' wrapper or object with 'id', 'name_en', 'categories'.",
            keys_found=keys,
        )

    try:
        menu = ImportMenu.model_validate(raw_menu, context={"ignored": []})
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ImportParseError(
            f"Invalid menu data at '{location}': {first['msg']} ({e.error_count()} error(s))",
            keys_found=sorted(raw_menu),
        ) from e

    logger.info(
        "import_parsed",
        restaurant_id=menu.id,
        category_count=len(menu.categories),
        dish_count=menu.dish_count,
    )
    return menu


def validate_import_menu(menu: ImportMenu) -> list[str]:
    """Collect advisory warnings for a parsed menu. Never raises."""
    warnings: list[str] = []

    if not menu.categories:
        warnings.append("No categories found - menu will be empty.")

    category_ids: set[str] = set()
    for category in menu.categories:
        if category.id in category_ids:
            warnings.append(f"Duplicate category ID '{category.id}' - later entry overwrites.")
        category_ids.add(category.id)

        if not category.name_en.strip():
            warnings.append(f"Category '{category.id}' has an empty name.")
        if not category.dishes:
            warnings.append(f"Category '{category.name_en}' has no dishes.")

        dish_ids: set[str] = set()
        for dish in category.dishes:
            if dish.id in dish_ids:
                warnings.append(f"Duplicate dish ID '{dish.id}' in '{category.name_en}'.")
            dish_ids.add(dish.id)

            if dish.price is not None and dish.price < 0:
                warnings.append(f"'{dish.name_en}' has a negative price.")

    warnings.extend(menu.ignored_values)

    if warnings:
        logger.info("import_validation_warnings", restaurant_id=menu.id, count=len(warnings))
    return warnings


@dataclass
class ImportSummary:
    """Parsed menu plus what the confirmation step shows."""

    menu: ImportMenu
    category_count: int
    dish_count: int
    warnings: list[str] = field(default_factory=list)


def summarize_import(text: str) -> ImportSummary:
    """Parse and validate in one step."""
    menu = parse_import_json(text)
    return ImportSummary(
        menu=menu,
        category_count=len(menu.categories),
        dish_count=menu.dish_count,
        warnings=validate_import_menu(menu),
    )
