from fastapi import Depends, Request

from mini_cloudinary.core.errors import AuthError
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.assets import AssetService
from mini_cloudinary.services.catalog import CatalogStore
from mini_cloudinary.services.folders import FolderService
from mini_cloudinary.services.ingest import IngestionPipeline


def get_catalog(request: Request) -> CatalogStore:
    return request.app.state.catalog


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def get_asset_service(request: Request) -> AssetService:
    return request.app.state.assets


def get_folder_service(request: Request) -> FolderService:
    return request.app.state.folders


def _presented_api_key(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.headers.get("X-API-Key") or None


# --- current user from the bearer API key ---
def get_current_user(request: Request, catalog: CatalogStore = Depends(get_catalog)) -> CurrentUser:
    api_key = _presented_api_key(request)
    if not api_key:
        raise AuthError("Missing API key.")
    user = catalog.user_by_api_key(api_key)
    if user is None:
        raise AuthError("Invalid API key.")
    return CurrentUser(id=user.id, username=user.username)
