#!/usr/bin/env python3
"""Script to import a menu JSON file into the document store."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.catalog.repository import MenuRepository
from src.config import configure_logging, get_settings
from src.ingestion import (
    CancellationToken,
    ImportFailurePolicy,
    ImportParseError,
    ImportWriteError,
    MenuImporter,
    summarize_import,
)
from src.store import create_document_store


def print_progress(completed: int, total: int, status: str) -> None:
    print(f"[{completed}/{total}] {status}")


async def main():
    parser = argparse.ArgumentParser(
        description="Import a restaurant menu JSON file"
    )
    parser.add_argument(
        "source",
        help="Path to the menu JSON file",
    )
    parser.add_argument(
        "--user",
        required=True,
        help="Id of the user the restaurant is linked to",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep importing the remaining categories when one fails",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and validate only; write nothing",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()
    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else "WARNING")

    source_path = Path(args.source)
    if not source_path.is_file():
        print(f"Error: Source file does not exist: {source_path}")
        sys.exit(1)

    try:
        summary = summarize_import(source_path.read_text(encoding="utf-8"))
    except ImportParseError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Restaurant: {summary.menu.name_en} ({summary.menu.id})")
    print(f"  - Categories: {summary.category_count}")
    print(f"  - Dishes: {summary.dish_count}")
    if summary.warnings:
        print("Warnings:")
        for warning in summary.warnings:
            print(f"  - {warning}")
    print()

    if args.dry_run:
        print("Dry run: nothing written")
        return

    if settings.document_backend == "memory":
        print("Error: the memory document backend does not persist an import.")
        print("Set DOCUMENT_BACKEND=redis, or use --dry-run to only check the file.")
        sys.exit(1)

    policy = (
        ImportFailurePolicy.CONTINUE
        if args.continue_on_error
        else ImportFailurePolicy(settings.import_failure_policy)
    )
    documents = create_document_store()
    importer = MenuImporter(documents, policy)

    # Ctrl-C stops between batches instead of mid-commit
    loop = asyncio.get_running_loop()
    token = CancellationToken()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        pass

    try:
        if await MenuRepository(documents).get_user(args.user) is None:
            print(f"Error: user '{args.user}' does not exist. Create the user first (POST /users).")
            sys.exit(1)

        result = await importer.import_menu(
            summary.menu,
            args.user,
            on_progress=print_progress,
            cancel_token=token,
        )
    except ImportWriteError as e:
        print(f"\nError during import: {e}")
        print(f"Categories committed before the failure: {e.result.committed_categories}")
        sys.exit(1)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        await documents.close()

    print("\n" + "=" * 50)
    print("IMPORT CANCELLED" if result.cancelled else "IMPORT COMPLETE")
    print("=" * 50)
    print(f"Categories committed: {result.committed_categories}/{result.category_count}")
    print(f"Dishes committed: {result.committed_dishes}/{result.dish_count}")
    if result.failed_categories:
        print(f"Failed categories: {', '.join(result.failed_categories)}")
        sys.exit(2)


if __name__ == "__main__":
    asyncio.run(main())
