"""Image processing and upload presets for menu assets.

Every upload surface goes through a fixed preset so that images look the same
no matter where they were uploaded from:

    Asset               Max dim  Quality  Format  Path
    restaurant logo     1024     0.8      PNG     restaurants/{rid}/logo_{uuid}.png
    restaurant bg       2048     0.6      JPEG    restaurants/{rid}/background_{uuid}.jpg
    category icon       1024     0.8      JPEG    restaurants/{rid}/categories/{cid}/icon.jpg
    dish photo          2048     0.6      JPEG    dishes/{rid}/{cid}/{did}/{batch_id}_{index}.jpg
    user background     2048     0.6      JPEG    users/{uid}/background_{uuid}.jpg

Files over 10 MB are rejected before decoding. A dish holds at most 6 photos.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Callable, Literal, Sequence

import structlog
from PIL import Image, ImageOps

from src.catalog.normalizer import generate_id
from src.metrics import IMAGE_UPLOAD_BYTES, IMAGE_UPLOADS_TOTAL
from src.models.menu import MAX_DISH_IMAGES
from src.store.blobs import BlobStore, BlobUrlResolver

logger = structlog.get_logger()

MAX_IMAGE_BYTES = 10 * 1024 * 1024

ProgressCallback = Callable[[int, int, str], None]


class ImageTooLargeError(ValueError):
    """Raised for files over the 10 MB ceiling."""

    def __init__(self, size: int):
        self.size = size
        super().__init__(
            f"Image is too large ({size / 1024 / 1024:.1f} MB). Maximum size is 10 MB."
        )


class ImageLimitError(ValueError):
    """Raised when a dish would end up with more than 6 photos."""


@dataclass(frozen=True)
class ImagePreset:
    """Fixed processing and storage settings for one asset type."""

    asset: str
    max_dimension: int
    quality: float
    image_format: Literal["JPEG", "PNG"]
    content_type: str
    path_template: str

    def path(self, **params: str | int) -> str:
        return self.path_template.format(**params)


RESTAURANT_LOGO = ImagePreset(
    "restaurant_logo", 1024, 0.8, "PNG", "image/png",
    "restaurants/{rid}/logo_{uuid}.png",
)
RESTAURANT_BACKGROUND = ImagePreset(
    "restaurant_background", 2048, 0.6, "JPEG", "image/jpeg",
    "restaurants/{rid}/background_{uuid}.jpg",
)
CATEGORY_ICON = ImagePreset(
    "category_icon", 1024, 0.8, "JPEG", "image/jpeg",
    "restaurants/{rid}/categories/{cid}/icon.jpg",
)
DISH_PHOTO = ImagePreset(
    "dish_photo", 2048, 0.6, "JPEG", "image/jpeg",
    "dishes/{rid}/{cid}/{did}/{batch_id}_{index}.jpg",
)
USER_BACKGROUND = ImagePreset(
    "user_background", 2048, 0.6, "JPEG", "image/jpeg",
    "users/{uid}/background_{uuid}.jpg",
)

IMAGE_PRESETS: dict[str, ImagePreset] = {
    preset.asset: preset
    for preset in (
        RESTAURANT_LOGO,
        RESTAURANT_BACKGROUND,
        CATEGORY_ICON,
        DISH_PHOTO,
        USER_BACKGROUND,
    )
}


def check_image_size(data: bytes) -> None:
    if len(data) > MAX_IMAGE_BYTES:
        raise ImageTooLargeError(len(data))


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Shrink so the longer side equals max_dimension; never upscale."""
    if width > height:
        if width > max_dimension:
            return max_dimension, max(1, round(height * max_dimension / width))
    elif height > max_dimension:
        return max(1, round(width * max_dimension / height)), max_dimension
    return width, height


def process_image(
    data: bytes,
    max_dimension: int,
    quality: float,
    image_format: Literal["JPEG", "PNG"] = "JPEG",
) -> bytes:
    """Resize and re-encode an image.

    Args:
        data: Raw image file bytes
        max_dimension: Cap for the longer side, in pixels
        quality: Compression quality between 0 and 1 (JPEG only)
        image_format: Output format

    Returns:
        Encoded image bytes

    Raises:
        ImageTooLargeError: If the file is over 10 MB
    """
    check_image_size(data)

    with Image.open(io.BytesIO(data)) as source:
        image = ImageOps.exif_transpose(source)
        width, height = scaled_size(image.width, image.height, max_dimension)
        if (width, height) != image.size:
            image = image.resize((width, height), Image.LANCZOS)

        out = io.BytesIO()
        if image_format == "JPEG":
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            jpeg_quality = max(1, min(100, round(quality * 100)))
            image.save(out, format="JPEG", quality=jpeg_quality)
        else:
            image.save(out, format="PNG", optimize=True)

    return out.getvalue()


@dataclass
class UploadedImage:
    """Where an uploaded image ended up."""

    path: str
    url: str | None


class ImageUploader:
    """Process images with their preset and store them as blobs."""

    def __init__(self, blobs: BlobStore, resolver: BlobUrlResolver | None = None):
        self.blobs = blobs
        self.resolver = resolver or BlobUrlResolver(blobs)

    async def upload(self, data: bytes, preset: ImagePreset, path: str) -> UploadedImage:
        """Process one image and store it at path."""
        check_image_size(data)

        try:
            processed = await asyncio.to_thread(
                process_image,
                data,
                preset.max_dimension,
                preset.quality,
                preset.image_format,
            )
            await self.blobs.upload(path, processed, preset.content_type)
        except Exception as e:
            IMAGE_UPLOADS_TOTAL.labels(asset=preset.asset, outcome="failed").inc()
            logger.error("image_upload_failed", asset=preset.asset, path=path, error=str(e))
            raise

        IMAGE_UPLOADS_TOTAL.labels(asset=preset.asset, outcome="ok").inc()
        IMAGE_UPLOAD_BYTES.labels(asset=preset.asset).observe(len(processed))
        logger.info("image_uploaded", asset=preset.asset, path=path, size=len(processed))

        url = await self.resolver.resolve(path)
        return UploadedImage(path=path, url=url)

    async def upload_restaurant_image(
        self,
        data: bytes,
        restaurant_id: str,
        kind: Literal["logo", "background"],
    ) -> UploadedImage:
        preset = RESTAURANT_LOGO if kind == "logo" else RESTAURANT_BACKGROUND
        path = preset.path(rid=restaurant_id, uuid=generate_id())
        return await self.upload(data, preset, path)

    async def upload_category_icon(
        self,
        data: bytes,
        restaurant_id: str,
        category_id: str,
    ) -> UploadedImage:
        path = CATEGORY_ICON.path(rid=restaurant_id, cid=category_id)
        return await self.upload(data, CATEGORY_ICON, path)

    async def upload_user_background(self, data: bytes, user_id: str) -> UploadedImage:
        path = USER_BACKGROUND.path(uid=user_id, uuid=generate_id())
        return await self.upload(data, USER_BACKGROUND, path)

    async def upload_dish_images(
        self,
        files: Sequence[bytes],
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[UploadedImage]:
        """Upload dish photos one at a time under a shared batch id.

        Files are uploaded sequentially so progress is reported in order.
        Capping the photo count is up to the caller, see
        :func:`check_dish_image_count`.
        """
        batch_id = generate_id()
        total = len(files)
        results: list[UploadedImage] = []

        for index, data in enumerate(files):
            if on_progress:
                on_progress(index, total, f"Uploading image {index + 1} of {total}")
            path = DISH_PHOTO.path(
                rid=restaurant_id,
                cid=category_id,
                did=dish_id,
                batch_id=batch_id,
                index=index,
            )
            results.append(await self.upload(data, DISH_PHOTO, path))
            if on_progress:
                on_progress(index + 1, total, f"Uploaded image {index + 1} of {total}")

        return results


def check_dish_image_count(existing: int, new: int) -> None:
    """Reject a selection that would exceed the per-dish photo limit."""
    if existing + new > MAX_DISH_IMAGES:
        raise ImageLimitError(
            f"A dish can have at most {MAX_DISH_IMAGES} images "
            f"({existing} existing, {new} selected)."
        )
