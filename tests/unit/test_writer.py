"""Tests for the batched menu import writer."""

import pytest
import pytest_asyncio

from src.ingestion.parser import parse_import_json, validate_import_menu
from src.ingestion.writer import (
    CancellationToken,
    ImportFailurePolicy,
    ImportWriteError,
    MenuImporter,
    build_dish_fields,
)
from src.models.imports import ImportDish, ImportMenu
from src.store import paths
from src.store.memory import MemoryDocumentStore

CAFE_JSON = (
    '{"menu":{"id":"r1","name_en":"Cafe","categories":[{"id":"c1","name_en":"Drinks",'
    '"dishes":[{"id":"d1","name_en":"Latte","price":1.5}]}]}}'
)


def three_category_menu() -> ImportMenu:
    return ImportMenu.model_validate({
        "id": "r1",
        "name_en": "Cafe",
        "categories": [
            {"id": "c1", "name_en": "Hot", "dishes": [{"id": "d1", "name_en": "Tea"}]},
            {"id": "c2", "name_en": "Cold", "dishes": [{"id": "d2", "name_en": "Iced Tea"}]},
            {"id": "c3", "name_en": "Food", "dishes": [{"id": "d3", "name_en": "Toast"}]},
        ],
    })


class TestBuildDishFields:
    """Tests for build_dish_fields."""

    def test_minimal_dish(self):
        fields = build_dish_fields(ImportDish(id="d1", name_en="Latte", price=1.5))

        assert fields["name"] == "Latte"
        assert fields["price"] == 1.5
        assert fields["description"] == ""
        assert fields["isActive"] is True
        assert fields["allergens"] == []
        assert fields["options"] is None
        assert "nameAr" not in fields
        assert "descriptionAr" not in fields
        assert "optionsHeader" not in fields
        assert "imagePaths" not in fields

    def test_missing_price_defaults_to_zero(self):
        assert build_dish_fields(ImportDish(id="d1", name_en="Water"))["price"] == 0

    def test_allergens_paired_by_position(self):
        dish = ImportDish(
            id="d1",
            name_en="Cake",
            allergens_en=["Egg", "Tree Nuts", "Gluten"],
            allergens_ar=["بيض", "مكسرات"],
        )

        allergens = build_dish_fields(dish)["allergens"]

        assert allergens == [
            {"id": "egg", "name": "Egg", "nameAr": "بيض"},
            {"id": "tree_nuts", "name": "Tree Nuts", "nameAr": "مكسرات"},
            {"id": "gluten", "name": "Gluten"},
        ]

    def test_extra_arabic_allergens_ignored(self):
        dish = ImportDish(id="d1", name_en="Cake", allergens_en=["Egg"], allergens_ar=["بيض", "حليب"])

        assert len(build_dish_fields(dish)["allergens"]) == 1

    def test_options_get_fresh_ids_and_metadata(self):
        dish = ImportDish.model_validate({
            "id": "d1",
            "name_en": "Latte",
            "options": [{"name_en": "Oat", "price": 0.25}, {"name_en": "Soy", "name_ar": "صويا"}],
            "options_header_en": "Milk",
            "are_options_required": True,
            "max_options_selection": 1,
        })

        fields = build_dish_fields(dish)

        ids = [option["id"] for option in fields["options"]]
        assert len(set(ids)) == 2
        assert fields["options"][0] == {"id": ids[0], "name": "Oat", "price": 0.25}
        assert fields["options"][1]["nameAr"] == "صويا"
        assert fields["options"][1]["price"] == 0
        assert fields["optionsHeader"] == "Milk"
        assert "optionsHeaderAr" not in fields
        assert fields["areOptionsRequired"] is True
        assert fields["maxOptionsSelection"] == 1

    def test_empty_options_write_no_metadata(self):
        dish = ImportDish(id="d1", name_en="Tea", options=[], options_header_en="Size")

        fields = build_dish_fields(dish)

        assert fields["options"] is None
        assert "optionsHeader" not in fields


class TestMenuImporter:
    """Tests for MenuImporter."""

    @pytest.fixture
    def store(self):
        return MemoryDocumentStore()

    @pytest_asyncio.fixture
    async def seeded_store(self, store):
        await store.set(paths.user("u1"), {"name": "Admin", "restaurantIds": []})
        return store

    @pytest.mark.asyncio
    async def test_end_to_end_cafe(self, seeded_store):
        """A one-dish menu imports into restaurant, category and dish documents."""
        menu = parse_import_json(CAFE_JSON)
        assert validate_import_menu(menu) == []

        result = await MenuImporter(seeded_store).import_menu(menu, "u1")

        assert result.category_count == 1
        assert result.dish_count == 1

        restaurant = await seeded_store.get(paths.restaurant("r1"))
        assert restaurant["id"] == "r1"
        assert restaurant["name"] == "Cafe"
        assert restaurant["nameAr"] == "Cafe"

        category = await seeded_store.get(paths.category("r1", "c1"))
        assert category["id"] == "c1"
        assert category["name"] == "Drinks"
        assert category["nameAr"] == "Drinks"

        dish = await seeded_store.get(paths.dish("r1", "c1", "d1"))
        assert dish["id"] == "d1"
        assert dish["name"] == "Latte"
        assert dish["price"] == 1.5
        assert dish["allergens"] == []
        assert dish["options"] is None

    @pytest.mark.asyncio
    async def test_dish_arabic_name_not_defaulted(self, seeded_store):
        menu = parse_import_json(CAFE_JSON)

        await MenuImporter(seeded_store).import_menu(menu, "u1")

        dish = await seeded_store.get(paths.dish("r1", "c1", "d1"))
        assert "nameAr" not in dish
        category = await seeded_store.get(paths.category("r1", "c1"))
        assert category["nameAr"] == "Drinks"

    @pytest.mark.asyncio
    async def test_user_gets_restaurant_once(self, seeded_store):
        menu = parse_import_json(CAFE_JSON)
        importer = MenuImporter(seeded_store)

        await importer.import_menu(menu, "u1")
        await importer.import_menu(menu, "u1")

        user = await seeded_store.get(paths.user("u1"))
        assert user["restaurantIds"] == ["r1"]

    @pytest.mark.asyncio
    async def test_reimport_does_not_duplicate(self, seeded_store):
        menu = parse_import_json(CAFE_JSON)
        importer = MenuImporter(seeded_store)

        await importer.import_menu(menu, "u1")
        paths_after_first = sorted(seeded_store.all_paths())
        await importer.import_menu(menu, "u1")

        assert sorted(seeded_store.all_paths()) == paths_after_first
        assert len(await seeded_store.list_collection(paths.RESTAURANTS)) == 1
        assert len(await seeded_store.list_collection(paths.categories("r1"))) == 1
        assert len(await seeded_store.list_collection(paths.dishes("r1", "c1"))) == 1

    @pytest.mark.asyncio
    async def test_reimport_keeps_images(self, seeded_store):
        menu = parse_import_json(CAFE_JSON)
        importer = MenuImporter(seeded_store)
        await importer.import_menu(menu, "u1")
        await seeded_store.update(paths.dish("r1", "c1", "d1"), {"imagePaths": ["dishes/x.jpg"]})

        await importer.import_menu(menu, "u1")

        dish = await seeded_store.get(paths.dish("r1", "c1", "d1"))
        assert dish["imagePaths"] == ["dishes/x.jpg"]

    @pytest.mark.asyncio
    async def test_reimport_without_options_keeps_option_metadata(self, seeded_store):
        """Only the option list is cleared; header fields from an earlier
        write stay until something rewrites them."""
        menu = parse_import_json(CAFE_JSON)
        await seeded_store.set(paths.dish("r1", "c1", "d1"), {
            "name": "Latte",
            "options": [{"id": "O1", "name": "Oat", "price": 0.3}],
            "optionsHeader": "Milk",
            "areOptionsRequired": True,
        })

        await MenuImporter(seeded_store).import_menu(menu, "u1")

        dish = await seeded_store.get(paths.dish("r1", "c1", "d1"))
        assert dish["options"] is None
        assert dish["optionsHeader"] == "Milk"
        assert dish["areOptionsRequired"] is True

    @pytest.mark.asyncio
    async def test_category_order_follows_file(self, seeded_store):
        await MenuImporter(seeded_store).import_menu(three_category_menu(), "u1")

        categories = await seeded_store.list_collection(paths.categories("r1"))
        assert [(c["id"], c["order"]) for c in categories] == [("c1", 0), ("c2", 1), ("c3", 2)]

    @pytest.mark.asyncio
    async def test_one_batch_per_step(self, seeded_store):
        commits_before = seeded_store.commit_count

        await MenuImporter(seeded_store).import_menu(three_category_menu(), "u1")

        assert seeded_store.commit_count - commits_before == 4

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_complete(self, seeded_store):
        calls = []

        await MenuImporter(seeded_store).import_menu(
            three_category_menu(), "u1", on_progress=lambda *args: calls.append(args)
        )

        assert calls[0] == (0, 4, "Creating restaurant...")
        assert calls[1] == (1, 4, "Restaurant created")
        assert calls[2] == (1, 4, "Importing Hot...")
        assert calls[3] == (2, 4, "Imported Hot")
        assert calls[-1] == (4, 4, "Imported Food")
        completed = [c[0] for c in calls]
        assert completed == sorted(completed)
        assert all(total == 4 for _, total, _ in calls)

    @pytest.mark.asyncio
    async def test_restaurant_failure_writes_nothing_else(self):
        store = MemoryDocumentStore(fail_paths={paths.restaurant("r1")})
        await store.set(paths.user("u1"), {"restaurantIds": []})

        with pytest.raises(ImportWriteError) as exc_info:
            await MenuImporter(store).import_menu(three_category_menu(), "u1")

        assert exc_info.value.category_id is None
        assert store.all_paths() == [paths.user("u1")]
        assert (await store.get(paths.user("u1")))["restaurantIds"] == []

    @pytest.mark.asyncio
    async def test_missing_user_fails_restaurant_batch(self, store):
        with pytest.raises(ImportWriteError):
            await MenuImporter(store).import_menu(three_category_menu(), "nobody")

        assert await store.get(paths.restaurant("r1")) is None

    @pytest.mark.asyncio
    async def test_abort_policy_stops_at_failed_category(self):
        store = MemoryDocumentStore(fail_paths={paths.category("r1", "c2")})
        await store.set(paths.user("u1"), {"restaurantIds": []})

        with pytest.raises(ImportWriteError) as exc_info:
            await MenuImporter(store).import_menu(three_category_menu(), "u1")

        error = exc_info.value
        assert error.category_id == "c2"
        assert error.result.committed_categories == 1
        assert await store.get(paths.category("r1", "c1")) is not None
        assert await store.get(paths.dish("r1", "c2", "d2")) is None
        assert await store.get(paths.category("r1", "c3")) is None

    @pytest.mark.asyncio
    async def test_continue_policy_skips_failed_category(self):
        store = MemoryDocumentStore(fail_paths={paths.dish("r1", "c2", "d2")})
        await store.set(paths.user("u1"), {"restaurantIds": []})
        calls = []

        result = await MenuImporter(store, ImportFailurePolicy.CONTINUE).import_menu(
            three_category_menu(), "u1", on_progress=lambda *args: calls.append(args)
        )

        assert result.failed_categories == ["c2"]
        assert result.committed_categories == 2
        assert result.committed_dishes == 2
        # Batch is atomic: the category of the failed dish is not written either
        assert await store.get(paths.category("r1", "c2")) is None
        assert await store.get(paths.category("r1", "c3")) is not None
        assert (3, 4, "Failed to import Cold") in calls
        assert calls[-1] == (4, 4, "Imported Food")

    def test_policy_accepts_string(self, store):
        assert MenuImporter(store, "continue").failure_policy is ImportFailurePolicy.CONTINUE

    @pytest.mark.asyncio
    async def test_cancel_between_categories(self, seeded_store):
        token = CancellationToken()

        def on_progress(completed, total, status):
            if status == "Imported Hot":
                token.cancel()

        result = await MenuImporter(seeded_store).import_menu(
            three_category_menu(), "u1", on_progress=on_progress, cancel_token=token
        )

        assert result.cancelled is True
        assert result.committed_categories == 1
        assert await seeded_store.get(paths.category("r1", "c1")) is not None
        assert await seeded_store.get(paths.category("r1", "c2")) is None

    @pytest.mark.asyncio
    async def test_cancel_before_start_writes_nothing(self, seeded_store):
        token = CancellationToken()
        token.cancel()

        result = await MenuImporter(seeded_store).import_menu(
            three_category_menu(), "u1", cancel_token=token
        )

        assert result.cancelled is True
        assert await seeded_store.get(paths.restaurant("r1")) is None
