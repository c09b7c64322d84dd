"""Tests for the image pipeline."""

import io
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from src.catalog.images import (
    CATEGORY_ICON,
    DISH_PHOTO,
    IMAGE_PRESETS,
    MAX_IMAGE_BYTES,
    RESTAURANT_LOGO,
    ImageLimitError,
    ImageTooLargeError,
    ImageUploader,
    check_dish_image_count,
    process_image,
    scaled_size,
)
from src.store.blobs import BlobUrlResolver, DownloadUrlCache, MemoryBlobStore


def make_image(width: int, height: int, image_format: str = "PNG", mode: str = "RGB") -> bytes:
    out = io.BytesIO()
    Image.new(mode, (width, height), color=(200, 120, 40, 255)[: len(mode)]).save(out, format=image_format)
    return out.getvalue()


def open_image(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestScaledSize:
    """Tests for scaled_size."""

    def test_landscape_shrinks_to_width(self):
        assert scaled_size(4000, 3000, 2048) == (2048, 1536)

    def test_portrait_shrinks_to_height(self):
        assert scaled_size(1000, 4000, 1024) == (256, 1024)

    def test_small_image_not_upscaled(self):
        assert scaled_size(300, 200, 1024) == (300, 200)

    def test_square_at_limit_unchanged(self):
        assert scaled_size(1024, 1024, 1024) == (1024, 1024)


class TestProcessImage:
    """Tests for process_image."""

    def test_resizes_and_encodes_jpeg(self):
        result = process_image(make_image(3000, 1500), 2048, 0.6)

        image = open_image(result)
        assert image.format == "JPEG"
        assert image.size == (2048, 1024)

    def test_png_output_keeps_alpha(self):
        result = process_image(make_image(100, 50, mode="RGBA"), 1024, 0.8, "PNG")

        image = open_image(result)
        assert image.format == "PNG"
        assert image.mode == "RGBA"
        assert image.size == (100, 50)

    def test_rgba_flattened_for_jpeg(self):
        result = process_image(make_image(100, 50, mode="RGBA"), 1024, 0.8, "JPEG")

        assert open_image(result).mode == "RGB"

    def test_deterministic(self):
        data = make_image(800, 600)

        assert process_image(data, 512, 0.6) == process_image(data, 512, 0.6)

    def test_oversized_rejected_before_decoding(self):
        with pytest.raises(ImageTooLargeError, match="10 MB"):
            process_image(b"\x00" * (MAX_IMAGE_BYTES + 1), 1024, 0.8)


class TestPresets:
    """Tests for the fixed upload presets."""

    def test_all_assets_present(self):
        assert set(IMAGE_PRESETS) == {
            "restaurant_logo",
            "restaurant_background",
            "category_icon",
            "dish_photo",
            "user_background",
        }

    def test_logo_is_png(self):
        assert RESTAURANT_LOGO.image_format == "PNG"
        assert RESTAURANT_LOGO.content_type == "image/png"
        assert RESTAURANT_LOGO.max_dimension == 1024

    def test_path_templates(self):
        assert CATEGORY_ICON.path(rid="r1", cid="c1") == "restaurants/r1/categories/c1/icon.jpg"
        assert DISH_PHOTO.path(rid="r1", cid="c1", did="d1", batch_id="B", index=2) == "dishes/r1/c1/d1/B_2.jpg"


class TestImageUploader:
    """Tests for ImageUploader."""

    @pytest.fixture
    def blobs(self):
        return MemoryBlobStore()

    @pytest.fixture
    def uploader(self, blobs):
        return ImageUploader(blobs, BlobUrlResolver(blobs, DownloadUrlCache()))

    @pytest.mark.asyncio
    async def test_eleven_megabytes_fails_before_upload(self, uploader, blobs):
        data = b"\x00" * (11 * 1024 * 1024)

        with pytest.raises(ImageTooLargeError) as exc_info:
            await uploader.upload_restaurant_image(data, "r1", "background")

        assert "10 MB" in str(exc_info.value)
        assert "11.0 MB" in str(exc_info.value)
        assert blobs.upload_calls == 0

    @pytest.mark.asyncio
    async def test_logo_upload(self, uploader, blobs):
        image = await uploader.upload_restaurant_image(make_image(2000, 1000), "r1", "logo")

        assert image.path.startswith("restaurants/r1/logo_")
        assert image.path.endswith(".png")
        assert image.url == f"memory://blobs/{image.path}"
        data, content_type = blobs.blobs[image.path]
        assert content_type == "image/png"
        assert open_image(data).size == (1024, 512)

    @pytest.mark.asyncio
    async def test_background_paths_are_unique(self, uploader):
        first = await uploader.upload_restaurant_image(make_image(10, 10), "r1", "background")
        second = await uploader.upload_restaurant_image(make_image(10, 10), "r1", "background")

        assert first.path != second.path

    @pytest.mark.asyncio
    async def test_category_icon_and_user_background(self, uploader, blobs):
        icon = await uploader.upload_category_icon(make_image(10, 10), "r1", "c1")
        background = await uploader.upload_user_background(make_image(10, 10), "u1")

        assert icon.path == "restaurants/r1/categories/c1/icon.jpg"
        assert background.path.startswith("users/u1/background_")
        assert blobs.blobs[icon.path][1] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_dish_images_sequential_with_shared_batch(self, uploader):
        progress = []

        images = await uploader.upload_dish_images(
            [make_image(10, 10), make_image(20, 20), make_image(30, 30)],
            "r1", "c1", "d1",
            on_progress=lambda *args: progress.append(args),
        )

        batch_ids = {image.path.rsplit("/", 1)[1].split("_")[0] for image in images}
        assert len(batch_ids) == 1
        assert [image.path.rsplit("_", 1)[1] for image in images] == ["0.jpg", "1.jpg", "2.jpg"]
        assert [p[0] for p in progress] == [0, 1, 1, 2, 2, 3]
        assert progress[0] == (0, 3, "Uploading image 1 of 3")
        assert progress[-1] == (3, 3, "Uploaded image 3 of 3")

    @pytest.mark.asyncio
    async def test_failed_store_upload_propagates(self, blobs):
        blobs.upload = AsyncMock(side_effect=RuntimeError("bucket offline"))
        uploader = ImageUploader(blobs, BlobUrlResolver(blobs, DownloadUrlCache()))

        with pytest.raises(RuntimeError, match="bucket offline"):
            await uploader.upload_category_icon(make_image(10, 10), "r1", "c1")


class TestDishImageCount:
    """Tests for the per-dish photo cap."""

    def test_within_limit(self):
        check_dish_image_count(4, 2)

    def test_over_limit(self):
        with pytest.raises(ImageLimitError, match="at most 6"):
            check_dish_image_count(5, 2)
