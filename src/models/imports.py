"""Import file models matching the external menu JSON format.

This tree is transient: it only lives between parsing an import file and
committing it, and is converted into internal documents by the writer.

Optional fields are lenient: a value of the wrong type is dropped (treated as
absent) instead of failing the whole file. When validated with a context dict,
each dropped value is recorded under ``context["ignored"]`` and ends up in
:attr:`ImportMenu.ignored_values`.
"""

from typing import Any

from pydantic import (
    BaseModel,
    Field,
    PrivateAttr,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)


def _drop_invalid(
    value: Any,
    handler: ValidatorFunctionWrapHandler,
    info: ValidationInfo,
    owner: str,
) -> Any:
    try:
        return handler(value)
    except ValidationError:
        if info.context is not None:
            info.context.setdefault("ignored", []).append(
                f"{owner}: ignored invalid {info.field_name} {value!r}."
            )
        return None


class ImportDishOption(BaseModel):
    """Option item in the import format."""

    name_en: str = ""
    name_ar: str | None = None
    price: float | None = None

    @field_validator("name_ar", "price", mode="wrap")
    @classmethod
    def _lenient(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(value, handler, info, f"Option '{info.data.get('name_en', '')}'")


class ImportDish(BaseModel):
    """Dish in the import format."""

    class Config:
        coerce_numbers_to_str = True

    id: str
    name_en: str = ""
    name_ar: str | None = None
    description_en: str | None = None
    description_ar: str | None = None
    price: float | None = None
    allergens_en: list[str] | None = None
    allergens_ar: list[str] | None = None
    options: list[ImportDishOption] | None = None
    options_header_en: str | None = None
    options_header_ar: str | None = None
    are_options_required: bool | None = None
    max_options_selection: int | None = None
    is_active: bool | None = None

    @field_validator(
        "name_ar",
        "description_en",
        "description_ar",
        "price",
        "allergens_en",
        "allergens_ar",
        "options",
        "options_header_en",
        "options_header_ar",
        "are_options_required",
        "max_options_selection",
        "is_active",
        mode="wrap",
    )
    @classmethod
    def _lenient(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(value, handler, info, f"Dish '{info.data.get('id', '?')}'")


class ImportCategory(BaseModel):
    """Category in the import format."""

    class Config:
        coerce_numbers_to_str = True

    id: str
    name_en: str = ""
    name_ar: str | None = None
    dishes: list[ImportDish] = Field(default_factory=list)

    @field_validator("name_ar", mode="wrap")
    @classmethod
    def _lenient(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(value, handler, info, f"Category '{info.data.get('id', '?')}'")


class ImportMenu(BaseModel):
    """Root of an import file: one restaurant menu."""

    class Config:
        coerce_numbers_to_str = True

    id: str
    name_en: str
    name_ar: str | None = None
    categories: list[ImportCategory] = Field(default_factory=list)

    _ignored_values: list[str] = PrivateAttr(default_factory=list)

    @field_validator("name_ar", mode="wrap")
    @classmethod
    def _lenient(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(value, handler, info, f"Menu '{info.data.get('id', '?')}'")

    @model_validator(mode="after")
    def _collect_ignored(self, info: ValidationInfo) -> "ImportMenu":
        if info.context:
            self._ignored_values = list(info.context.get("ignored", []))
        return self

    @property
    def ignored_values(self) -> list[str]:
        """Values dropped during validation because of their type."""
        return list(self._ignored_values)

    @property
    def dish_count(self) -> int:
        return sum(len(category.dishes) for category in self.categories)
