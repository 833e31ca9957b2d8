"""FastAPI application for mini-cloudinary.

Run with:
    uvicorn mini_cloudinary.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mini_cloudinary.core.config import Settings, get_settings
from mini_cloudinary.core.errors import AppError
from mini_cloudinary.routers import assets, auth, folders
from mini_cloudinary.services.assets import AssetService
from mini_cloudinary.services.catalog import CatalogStore
from mini_cloudinary.services.folders import FolderService
from mini_cloudinary.services.ingest import IngestionPipeline
from mini_cloudinary.services.transform import TransformStage
from mini_cloudinary.storage.base import RemoteStore
from mini_cloudinary.storage.factory import create_store

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Settings | None = None, store: RemoteStore | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        remote = store or create_store(settings)
        catalog = CatalogStore(settings.catalog_path)
        bootstrap = []
        if settings.bootstrap_username and settings.bootstrap_password:
            bootstrap.append({
                "username": settings.bootstrap_username,
                "password": settings.bootstrap_password,
                "api_key": settings.bootstrap_api_key,
            })
        await catalog.load(bootstrap)

        app.state.settings = settings
        app.state.catalog = catalog
        app.state.store = remote
        app.state.pipeline = IngestionPipeline(
            store=remote,
            catalog=catalog,
            transform=TransformStage(
                max_width=settings.optimize_max_width,
                quality=settings.optimize_quality,
                prefix=settings.optimize_prefix,
            ),
            temp_dir=settings.temp_dir,
            max_file_size=settings.max_file_size,
            max_bulk_files=settings.max_bulk_files,
            chunk_size=settings.upload_chunk_size,
        )
        app.state.assets = AssetService(remote, catalog, settings.temp_dir)
        app.state.folders = FolderService(catalog)
        logger.info("Storage backend: %s, catalog: %s", settings.storage_backend, settings.catalog_path)
        try:
            yield
        finally:
            await remote.aclose()

    app = FastAPI(title="mini-cloudinary", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error."})

    # include our routers
    app.include_router(auth.router)
    app.include_router(assets.router)
    app.include_router(folders.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


configure_logging(get_settings().log_level)
app = create_app()
