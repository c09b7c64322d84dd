"""Translation between stored dish records and the normalized dish shape.

The store is shared with a mobile client that writes dish options flat::

    optionsHeader, optionsHeaderAr, areOptionsRequired, maxOptionsSelection,
    options: [{id, name, nameAr, price}, ...]

Business logic works with a nested group instead::

    options: {header, headerAr, required, maxSelection, items: [...]}

``normalize_dish`` runs on every read and ``denormalize_dish`` on every write.
Both are pure, tolerate missing optional fields, and never mutate their input.
"""

import re
from typing import Any
from uuid import uuid4

FLAT_OPTION_FIELDS = (
    "optionsHeader",
    "optionsHeaderAr",
    "areOptionsRequired",
    "maxOptionsSelection",
)


class _Unset:
    """Marker for a field that must not be written at all."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


def clean_data(data: Any) -> Any:
    """Recursively drop every ``UNSET`` value.

    The store has no notion of "undefined": a key is either written with a
    value (None included) or left out entirely.
    """
    if isinstance(data, dict):
        return {
            key: clean_data(value)
            for key, value in data.items()
            if value is not UNSET
        }
    if isinstance(data, list):
        return [clean_data(item) for item in data if item is not UNSET]
    return data


def generate_id() -> str:
    """Uppercase UUID string, the format the mobile client uses for ids."""
    return str(uuid4()).upper()


def allergen_id(name: str | None) -> str:
    """Stable allergen id derived from its English name."""
    slug = re.sub(r"\s+", "_", (name or "").strip().lower())
    return slug or generate_id()


def _has_flat_options(raw: dict[str, Any]) -> bool:
    return (
        "optionsHeader" in raw
        or "areOptionsRequired" in raw
        or isinstance(raw.get("options"), list)
    )


def _option_item(item: Any) -> dict[str, Any]:
    item = item if isinstance(item, dict) else {}
    price = item.get("price")
    return {
        "id": item.get("id"),
        "name": item.get("name") or "",
        "nameAr": item.get("nameAr") or "",
        "price": price if price is not None else 0,
    }


def normalize_dish(raw: dict[str, Any]) -> dict[str, Any]:
    """Convert a stored dish record to the normalized shape.

    Records already in the normalized shape pass through unchanged apart from
    allergen defaults, so the function is idempotent.
    """
    dish = dict(raw)

    if _has_flat_options(raw):
        source = raw.get("options")
        items = [_option_item(item) for item in source] if isinstance(source, list) else []
        header = raw.get("optionsHeader") or ""

        if items or header:
            max_selection = raw.get("maxOptionsSelection")
            if max_selection is None:
                max_selection = raw.get("maxSelection")
            dish["options"] = {
                "header": header,
                "headerAr": raw.get("optionsHeaderAr") or "",
                "required": bool(raw.get("areOptionsRequired") or False),
                "maxSelection": max_selection,
                "items": items,
            }
        else:
            dish.pop("options", None)
    elif dish.get("options") is None:
        dish.pop("options", None)

    for field in FLAT_OPTION_FIELDS:
        dish.pop(field, None)

    if isinstance(dish.get("allergens"), list):
        dish["allergens"] = [
            {
                "id": (a.get("id") if isinstance(a, dict) else None) or "",
                "name": (a.get("name") if isinstance(a, dict) else None) or "",
                "nameAr": (a.get("nameAr") if isinstance(a, dict) else None) or "",
            }
            for a in dish["allergens"]
        ]

    return dish


def _clear_options(record: dict[str, Any]) -> None:
    record["options"] = None
    record["optionsHeader"] = None
    record["optionsHeaderAr"] = None
    record["areOptionsRequired"] = None
    record["maxOptionsSelection"] = None


def denormalize_dish(dish: dict[str, Any], partial: bool = False) -> dict[str, Any]:
    """Convert a normalized dish to the flat storage record.

    Option items without an id get a fresh one. A group with no items and an
    absent group both clear all five option fields. Allergens with a blank
    name are dropped, the rest always get an id.

    With ``partial`` (field-level updates), options and allergens are only
    rewritten when the input carries them.
    """
    record = dict(dish)
    options = record.get("options", UNSET)

    if isinstance(options, dict):
        items = options.get("items")
        flat_items = [
            {**_option_item(item), "id": (item or {}).get("id") or generate_id()}
            for item in (items if isinstance(items, list) else [])
            if isinstance(item, dict) and (item.get("name") or "").strip()
        ]
        if flat_items:
            record["options"] = flat_items
            record["optionsHeader"] = options.get("header") or None
            record["optionsHeaderAr"] = options.get("headerAr") or None
            record["areOptionsRequired"] = bool(options.get("required") or False)
            record["maxOptionsSelection"] = options.get("maxSelection")
        else:
            _clear_options(record)
    elif isinstance(options, list):
        # Already flat: make sure every item carries an id
        flat_items = [
            {**_option_item(item), "id": item.get("id") or generate_id()}
            for item in options
            if isinstance(item, dict)
        ]
        if flat_items:
            record["options"] = flat_items
        else:
            _clear_options(record)
    elif options is None or (options is UNSET and not partial):
        _clear_options(record)

    allergens = record.get("allergens", UNSET)
    if isinstance(allergens, list):
        record["allergens"] = [
            {
                "id": a.get("id") or allergen_id(a.get("name")),
                "name": a.get("name") or "",
                "nameAr": a.get("nameAr") or "",
            }
            for a in allergens
            if isinstance(a, dict) and (a.get("name") or "").strip()
        ]
    elif not (allergens is UNSET and partial):
        record["allergens"] = []

    return clean_data(record)
