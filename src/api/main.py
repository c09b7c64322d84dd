"""FastAPI application entry point."""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal

import structlog
from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from PIL import UnidentifiedImageError

from src.catalog.cascade import CascadeDeleter, DeleteReport, ImageRemoval
from src.catalog.images import (
    ImageLimitError,
    ImageTooLargeError,
    ImageUploader,
    check_image_size,
)
from src.catalog.public_menu import PublicMenu, build_public_menu
from src.catalog.repository import MenuRepository
from src.config import configure_logging, get_settings
from src.ingestion import (
    ImportFailurePolicy,
    ImportParseError,
    ImportWriteError,
    MenuImporter,
    summarize_import,
)
from src.models.api import (
    DeleteReportResponse,
    DishImagesResponse,
    ImageRemovalResponse,
    ImageUploadResponse,
    ImportPreviewResponse,
    ImportResponse,
    UserCreateRequest,
    UserUpdateRequest,
)
from src.models.menu import Dish, User
from src.monitoring.middleware import ErrorTrackingMiddleware, MetricsMiddleware, metrics_endpoint
from src.store import (
    BlobStore,
    DocumentNotFoundError,
    DocumentStore,
    create_blob_store,
    create_document_store,
)

logger = structlog.get_logger()
settings = get_settings()

# Global instances
documents: DocumentStore | None = None
blobs: BlobStore | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global documents, blobs

    configure_logging(settings.log_level, json_output=settings.app_env == "production")
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        document_backend=settings.document_backend,
        blob_backend=settings.blob_backend,
    )

    documents = create_document_store()
    blobs = create_blob_store()

    yield

    logger.info("application_shutting_down")
    if documents:
        await documents.close()


def _repository() -> MenuRepository:
    return MenuRepository(documents)


def _deleter() -> CascadeDeleter:
    return CascadeDeleter(documents, blobs)


def _uploader() -> ImageUploader:
    return ImageUploader(blobs)


def _report_response(report: DeleteReport) -> DeleteReportResponse:
    return DeleteReportResponse(**report.to_dict())


def _removal_response(removal: ImageRemoval) -> ImageRemovalResponse:
    return ImageRemovalResponse(**removal.to_dict())


async def _read_text(request: Request) -> str:
    try:
        return (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Import file must be UTF-8 text")


async def _read_image(request: Request) -> bytes:
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty image body")
    try:
        check_image_size(data)
    except ImageTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    return data


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Menu CMS API",
        description="Restaurant menu management: import, images and cascade deletes",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add monitoring middleware
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(ErrorTrackingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000
        logger.info(
            "request_completed",
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            process_time_ms=round(process_time, 2),
        )

        return response

    # Health check
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "0.1.0",
            "document_backend": settings.document_backend,
        }

    # Metrics endpoint
    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return metrics_endpoint()

    # ---------- Import ----------

    @app.post("/import/preview", response_model=ImportPreviewResponse)
    async def preview_import(request: Request):
        """Parse and validate an import file without writing anything.

        The body is the raw JSON text of the file.
        """
        text = await _read_text(request)
        try:
            summary = summarize_import(text)
        except ImportParseError as e:
            raise HTTPException(
                status_code=400,
                detail={"message": str(e), "keys_found": e.keys_found},
            )

        return ImportPreviewResponse(
            restaurant_id=summary.menu.id,
            restaurant_name=summary.menu.name_en,
            category_count=summary.category_count,
            dish_count=summary.dish_count,
            warnings=summary.warnings,
        )

    @app.post("/import", response_model=ImportResponse)
    async def run_import(request: Request, user_id: str = Query(..., min_length=1)):
        """Import a menu file and link the restaurant to the acting user."""
        text = await _read_text(request)
        try:
            summary = summarize_import(text)
        except ImportParseError as e:
            raise HTTPException(
                status_code=400,
                detail={"message": str(e), "keys_found": e.keys_found},
            )

        importer = MenuImporter(documents, ImportFailurePolicy(settings.import_failure_policy))
        try:
            result = await importer.import_menu(summary.menu, user_id)
        except ImportWriteError as e:
            raise HTTPException(
                status_code=502,
                detail={
                    "message": str(e),
                    "category_id": e.category_id,
                    "committed_categories": e.result.committed_categories,
                },
            )

        return ImportResponse(
            restaurant_id=result.restaurant_id,
            category_count=result.category_count,
            dish_count=result.dish_count,
            committed_categories=result.committed_categories,
            cancelled=result.cancelled,
            failed_categories=result.failed_categories,
            warnings=summary.warnings,
        )

    # ---------- Menu ----------

    @app.get("/restaurants/{restaurant_id}/menu", response_model=PublicMenu)
    async def public_menu(restaurant_id: str):
        """Active categories and dishes of a restaurant, as guests see them."""
        menu = await build_public_menu(_repository(), restaurant_id)
        if menu is None:
            raise HTTPException(status_code=404, detail="Restaurant not found")
        return menu

    @app.get(
        "/restaurants/{restaurant_id}/categories/{category_id}/dishes/{dish_id}",
        response_model=Dish,
    )
    async def get_dish(restaurant_id: str, category_id: str, dish_id: str):
        dish = await _repository().get_dish(restaurant_id, category_id, dish_id)
        if dish is None:
            raise HTTPException(status_code=404, detail="Dish not found")
        return dish

    @app.put(
        "/restaurants/{restaurant_id}/categories/{category_id}/dishes/{dish_id}",
        response_model=Dish,
    )
    async def update_dish(
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        payload: dict[str, Any] = Body(...),
    ):
        """Merge fields into a dish. Accepts the nested options shape."""
        repo = _repository()
        try:
            await repo.update_dish(restaurant_id, category_id, dish_id, payload)
        except DocumentNotFoundError:
            raise HTTPException(status_code=404, detail="Dish not found")
        return await repo.get_dish(restaurant_id, category_id, dish_id)

    # ---------- Users ----------

    @app.get("/users", response_model=list[User])
    async def list_users():
        return await _repository().list_users()

    @app.post("/users", response_model=User, status_code=201)
    async def create_user(payload: UserCreateRequest):
        """Create a user profile. Imports link restaurants to existing users only."""
        repo = _repository()
        user_id = payload.id or documents.new_id()
        if await repo.get_user(user_id) is not None:
            raise HTTPException(status_code=409, detail="User already exists")

        await repo.create_user(user_id, payload.model_dump(by_alias=True, exclude={"id"}))
        return await repo.get_user(user_id)

    @app.get("/users/{user_id}", response_model=User)
    async def get_user(user_id: str):
        user = await _repository().get_user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @app.put("/users/{user_id}", response_model=User)
    async def update_user(user_id: str, payload: UserUpdateRequest):
        repo = _repository()
        try:
            await repo.update_user(user_id, payload.model_dump(by_alias=True, exclude_unset=True))
        except DocumentNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return await repo.get_user(user_id)

    # ---------- Deletes ----------

    @app.delete("/restaurants/{restaurant_id}", response_model=DeleteReportResponse)
    async def delete_restaurant(restaurant_id: str):
        return _report_response(await _deleter().delete_restaurant(restaurant_id))

    @app.delete(
        "/restaurants/{restaurant_id}/categories/{category_id}",
        response_model=DeleteReportResponse,
    )
    async def delete_category(restaurant_id: str, category_id: str):
        return _report_response(await _deleter().delete_category(restaurant_id, category_id))

    @app.delete(
        "/restaurants/{restaurant_id}/categories/{category_id}/dishes/{dish_id}",
        response_model=DeleteReportResponse,
    )
    async def delete_dish(restaurant_id: str, category_id: str, dish_id: str):
        report = await _deleter().delete_dish(restaurant_id, category_id, dish_id)
        return _report_response(report)

    @app.delete("/users/{user_id}", response_model=DeleteReportResponse)
    async def delete_user(user_id: str):
        return _report_response(await _deleter().delete_user(user_id))

    # ---------- Images ----------
    # Bodies are the raw image bytes

    @app.post(
        "/restaurants/{restaurant_id}/images/{kind}",
        response_model=ImageUploadResponse,
    )
    async def upload_restaurant_image(
        restaurant_id: str,
        kind: Literal["logo", "background"],
        request: Request,
    ):
        """Upload a restaurant logo or background and store its path."""
        data = await _read_image(request)
        repo = _repository()
        restaurant = await repo.get_restaurant(restaurant_id)
        if restaurant is None:
            raise HTTPException(status_code=404, detail="Restaurant not found")

        try:
            image = await _uploader().upload_restaurant_image(data, restaurant_id, kind)
        except UnidentifiedImageError:
            raise HTTPException(status_code=400, detail="Unreadable image")

        if kind == "logo":
            previous = [restaurant.logo_path, restaurant.image_path]
            fields = {"logoPath": image.path, "imagePath": None}
        else:
            previous = [restaurant.background_image_path]
            fields = {"backgroundImagePath": image.path}
        await repo.update_restaurant(restaurant_id, fields)
        await _deleter().delete_replaced(previous, image.path)
        return ImageUploadResponse(path=image.path, url=image.url)

    @app.delete(
        "/restaurants/{restaurant_id}/images/{kind}",
        response_model=ImageRemovalResponse,
    )
    async def remove_restaurant_image(restaurant_id: str, kind: Literal["logo", "background"]):
        try:
            removal = await _deleter().remove_restaurant_image(restaurant_id, kind)
        except DocumentNotFoundError:
            raise HTTPException(status_code=404, detail="Restaurant not found")
        return _removal_response(removal)

    @app.post(
        "/restaurants/{restaurant_id}/categories/{category_id}/icon",
        response_model=ImageUploadResponse,
    )
    async def upload_category_icon(restaurant_id: str, category_id: str, request: Request):
        data = await _read_image(request)
        repo = _repository()
        category = await repo.get_category(restaurant_id, category_id)
        if category is None:
            raise HTTPException(status_code=404, detail="Category not found")

        try:
            image = await _uploader().upload_category_icon(data, restaurant_id, category_id)
        except UnidentifiedImageError:
            raise HTTPException(status_code=400, detail="Unreadable image")

        await repo.update_category(restaurant_id, category_id, {"imagePath": image.path})
        await _deleter().delete_replaced([category.image_path], image.path)
        return ImageUploadResponse(path=image.path, url=image.url)

    @app.delete(
        "/restaurants/{restaurant_id}/categories/{category_id}/icon",
        response_model=ImageRemovalResponse,
    )
    async def remove_category_icon(restaurant_id: str, category_id: str):
        try:
            removal = await _deleter().remove_category_icon(restaurant_id, category_id)
        except DocumentNotFoundError:
            raise HTTPException(status_code=404, detail="Category not found")
        return _removal_response(removal)

    @app.post(
        "/restaurants/{restaurant_id}/categories/{category_id}/dishes/{dish_id}/images",
        response_model=DishImagesResponse,
    )
    async def upload_dish_image(
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        request: Request,
    ):
        """Append one photo to a dish (at most 6 per dish)."""
        data = await _read_image(request)
        repo = _repository()
        dish = await repo.get_dish(restaurant_id, category_id, dish_id)
        if dish is None:
            raise HTTPException(status_code=404, detail="Dish not found")

        try:
            result = await repo.save_dish_with_images(
                _uploader(),
                restaurant_id,
                category_id,
                dish_id,
                {},
                dish.image_paths,
                [data],
            )
        except ImageLimitError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return DishImagesResponse(
            dish_id=result.dish_id,
            image_paths=result.image_paths,
            image_upload_failed=result.image_upload_failed,
            image_error=result.image_error,
        )

    @app.delete(
        "/restaurants/{restaurant_id}/categories/{category_id}/dishes/{dish_id}/images",
        response_model=ImageRemovalResponse,
    )
    async def remove_dish_image(
        restaurant_id: str,
        category_id: str,
        dish_id: str,
        path: str = Query(..., min_length=1),
    ):
        """Permanently delete one photo of a dish."""
        try:
            removal = await _deleter().remove_dish_image(restaurant_id, category_id, dish_id, path)
        except DocumentNotFoundError:
            raise HTTPException(status_code=404, detail="Dish not found")
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _removal_response(removal)

    @app.post("/users/{user_id}/background", response_model=ImageUploadResponse)
    async def upload_user_background(user_id: str, request: Request):
        data = await _read_image(request)
        repo = _repository()
        user = await repo.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")

        try:
            image = await _uploader().upload_user_background(data, user_id)
        except UnidentifiedImageError:
            raise HTTPException(status_code=400, detail="Unreadable image")

        await repo.update_user(user_id, {"backgroundImagePath": image.path})
        await _deleter().delete_replaced([user.background_image_path], image.path)
        return ImageUploadResponse(path=image.path, url=image.url)

    @app.delete("/users/{user_id}/background", response_model=ImageRemovalResponse)
    async def remove_user_background(user_id: str):
        try:
            removal = await _deleter().remove_user_background(user_id)
        except DocumentNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        return _removal_response(removal)

    return app


# Create app instance
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
