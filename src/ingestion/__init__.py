"""Menu import pipeline."""

from src.ingestion.parser import (
    ImportParseError,
    ImportSummary,
    parse_import_json,
    summarize_import,
    validate_import_menu,
)
from src.ingestion.writer import (
    CancellationToken,
    ImportFailurePolicy,
    ImportResult,
    ImportWriteError,
    MenuImporter,
    build_dish_fields,
)

__all__ = [
    "CancellationToken",
    "ImportFailurePolicy",
    "ImportParseError",
    "ImportResult",
    "ImportSummary",
    "ImportWriteError",
    "MenuImporter",
    "build_dish_fields",
    "parse_import_json",
    "summarize_import",
    "validate_import_menu",
]
