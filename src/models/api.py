"""API request and response models."""

from typing import Literal

from pydantic import BaseModel, Field


class ImportPreviewResponse(BaseModel):
    """Parsed import file summary shown before the user confirms."""

    restaurant_id: str
    restaurant_name: str
    category_count: int
    dish_count: int
    warnings: list[str] = Field(default_factory=list)


class ImportResponse(BaseModel):
    """Outcome of a committed import."""

    restaurant_id: str
    category_count: int
    dish_count: int
    committed_categories: int
    cancelled: bool = False
    failed_categories: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DeleteResultItem(BaseModel):
    """One child deletion inside a cascade."""

    path: str
    ok: bool
    error: str | None = None


class DeleteReportResponse(BaseModel):
    """Cascade delete report."""

    path: str
    deleted: bool
    children: list[DeleteResultItem] = Field(default_factory=list)
    blob_failures: list[str] = Field(default_factory=list)


class ImageUploadResponse(BaseModel):
    """Stored image location."""

    path: str
    url: str | None = None


class DishImagesResponse(BaseModel):
    """Dish photos after an upload. The dish is saved even when the upload
    failed; ``image_error`` then says why."""

    dish_id: str
    image_paths: list[str] = Field(default_factory=list)
    image_upload_failed: bool = False
    image_error: str | None = None


class ImageRemovalResponse(BaseModel):
    """Images cleared from a document and blobs that could not be deleted."""

    path: str
    removed: list[str] = Field(default_factory=list)
    blob_failures: list[str] = Field(default_factory=list)


class UserCreateRequest(BaseModel):
    """Profile for a new CMS user. ``id`` is the auth account id when one
    exists; otherwise an id is generated."""

    id: str | None = Field(default=None, min_length=1)
    name: str = ""
    email: str = Field(..., min_length=3)
    role: Literal["manager", "viewer"] = "viewer"
    restaurant_ids: list[str] = Field(default_factory=list, alias="restaurantIds")

    class Config:
        populate_by_name = True


class UserUpdateRequest(BaseModel):
    """Profile fields to merge into a user. Omitted fields are untouched."""

    name: str | None = None
    email: str | None = None
    role: Literal["manager", "viewer"] | None = None
    restaurant_ids: list[str] | None = Field(default=None, alias="restaurantIds")

    class Config:
        populate_by_name = True
