"""Read-only public view of a restaurant menu."""

from datetime import datetime, time

from pydantic import BaseModel, Field

from src.catalog.repository import MenuRepository
from src.models.menu import Category, Dish, Restaurant


class PublicCategory(BaseModel):
    category: Category
    dishes: list[Dish] = Field(default_factory=list)


class PublicMenu(BaseModel):
    restaurant: Restaurant
    categories: list[PublicCategory] = Field(default_factory=list)


def parse_hhmm(value: str | None) -> time | None:
    """Parse an ``HH:MM`` string; blank or malformed values give None."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        return None


def is_available(category: Category, now: datetime) -> bool:
    """Check a category's availability window against a local time.

    A window with a missing bound is always open. ``start > end`` wraps
    past midnight (e.g. 22:00-02:00).
    """
    start = parse_hhmm(category.availability_start)
    end = parse_hhmm(category.availability_end)
    if start is None or end is None:
        return True

    current = now.time().replace(second=0, microsecond=0)
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


async def build_public_menu(
    repo: MenuRepository,
    restaurant_id: str,
    now: datetime | None = None,
) -> PublicMenu | None:
    """Active categories (in order) with their active dishes.

    Returns None when the restaurant does not exist.
    """
    restaurant = await repo.get_restaurant(restaurant_id)
    if restaurant is None:
        return None

    now = now or datetime.now()
    menu = PublicMenu(restaurant=restaurant)
    for category in await repo.list_categories(restaurant_id):
        if not category.is_active or not is_available(category, now):
            continue
        dishes = [
            dish
            for dish in await repo.list_dishes(restaurant_id, category.id)
            if dish.is_active
        ]
        menu.categories.append(PublicCategory(category=category, dishes=dishes))
    return menu
