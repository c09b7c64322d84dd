"""Tests for the public menu view."""

from datetime import datetime

import pytest

from src.catalog.public_menu import build_public_menu, is_available, parse_hhmm
from src.catalog.repository import MenuRepository
from src.models.menu import Category
from src.store import paths
from src.store.memory import MemoryDocumentStore


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 5, 1, hour, minute)


class TestAvailability:
    """Tests for availability windows."""

    def test_parse_hhmm(self):
        assert parse_hhmm("07:30").hour == 7
        assert parse_hhmm("") is None
        assert parse_hhmm("7am") is None

    def test_no_window_always_open(self):
        assert is_available(Category(id="c1"), at(3))

    def test_half_window_always_open(self):
        assert is_available(Category(id="c1", availabilityStart="08:00"), at(3))

    def test_daytime_window(self):
        breakfast = Category(id="c1", availabilityStart="07:00", availabilityEnd="11:30")

        assert is_available(breakfast, at(7))
        assert is_available(breakfast, at(11, 30))
        assert not is_available(breakfast, at(11, 31))
        assert not is_available(breakfast, at(6, 59))

    def test_window_wrapping_midnight(self):
        late = Category(id="c1", availabilityStart="22:00", availabilityEnd="02:00")

        assert is_available(late, at(23))
        assert is_available(late, at(1, 59))
        assert not is_available(late, at(12))


class TestBuildPublicMenu:
    """Tests for build_public_menu."""

    @pytest.fixture
    def store(self):
        return MemoryDocumentStore()

    @pytest.mark.asyncio
    async def test_filters_inactive_and_unavailable(self, store):
        await store.set(paths.restaurant("r1"), {"name": "Cafe"})
        await store.set(paths.category("r1", "breakfast"), {
            "name": "Breakfast", "order": 1, "availabilityStart": "07:00", "availabilityEnd": "11:00",
        })
        await store.set(paths.category("r1", "drinks"), {"name": "Drinks", "order": 0})
        await store.set(paths.category("r1", "hidden"), {"name": "Hidden", "order": 2, "isActive": False})
        await store.set(paths.dish("r1", "drinks", "d1"), {"name": "Tea"})
        await store.set(paths.dish("r1", "drinks", "d2"), {"name": "Old Tea", "isActive": False})
        await store.set(paths.dish("r1", "breakfast", "d3"), {"name": "Eggs"})

        morning = await build_public_menu(MenuRepository(store), "r1", now=at(8))
        evening = await build_public_menu(MenuRepository(store), "r1", now=at(20))

        assert [c.category.id for c in morning.categories] == ["drinks", "breakfast"]
        assert [d.name for d in morning.categories[0].dishes] == ["Tea"]
        assert [c.category.id for c in evening.categories] == ["drinks"]
        assert morning.restaurant.name == "Cafe"

    @pytest.mark.asyncio
    async def test_missing_restaurant(self, store):
        assert await build_public_menu(MenuRepository(store), "nope") is None
