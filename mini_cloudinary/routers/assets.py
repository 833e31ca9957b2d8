from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from mini_cloudinary.core.errors import ValidationError
from mini_cloudinary.dependencies import (
    get_asset_service,
    get_current_user,
    get_folder_service,
    get_pipeline,
)
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.assets import AssetService
from mini_cloudinary.services.folders import FolderService
from mini_cloudinary.services.ingest import IngestionPipeline

router = APIRouter(tags=["assets"])


class RenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_name: str = Field(alias="newName")


def parse_folder_id(raw: str | None) -> int | None:
    """Form and query values arrive as strings; blank or "root" means root."""
    if raw is None or raw.strip().lower() in ("", "null", "root"):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("folderId must be an integer.")


# --- upload a single file ---
@router.post("/upload")
async def upload_file(
    file: UploadFile | None = File(None),
    folder_id: str | None = Form(None, alias="folderId"),
    optimize: bool = Form(False),
    user: CurrentUser = Depends(get_current_user),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    target = parse_folder_id(folder_id)
    staged = await pipeline.stage(file)
    asset = await pipeline.ingest(staged, user, folder_id=target, optimize=optimize)
    return {
        "message": "Upload successful!",
        "fileName": asset.file_name,
        "url": asset.url,
        "asset": asset.to_document(),
    }


# --- upload up to max_bulk_files at once ---
@router.post("/upload-bulk")
async def upload_bulk(
    files: list[UploadFile] | None = File(None),
    folder_id: str | None = Form(None, alias="folderId"),
    optimize: bool = Form(False),
    user: CurrentUser = Depends(get_current_user),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    target = parse_folder_id(folder_id)
    staged = await pipeline.stage_many(files or [])
    results = await pipeline.ingest_bulk(staged, user, folder_id=target, optimize=optimize)

    items = []
    for result in results:
        if result.ok:
            items.append({
                "originalName": result.original_name,
                "id": result.asset.id,
                "fileName": result.asset.file_name,
                "url": result.asset.url,
                "mimeType": result.asset.mime_type,
            })
        else:
            items.append({
                "originalName": result.original_name,
                "url": None,
                "error": result.error,
            })
    return {"message": f"Upload of {len(items)} files finished", "files": items}


# --- list the user's folders and assets under one parent ---
@router.get("/assets")
def list_assets(
    folder_id: str | None = Query(None, alias="folderId"),
    user: CurrentUser = Depends(get_current_user),
    folders: FolderService = Depends(get_folder_service),
):
    listing = folders.list_children(user, parse_folder_id(folder_id))
    return {
        "folders": [f.to_document() for f in listing.folders],
        "assets": [a.to_document() for a in listing.assets],
        "currentFolder": listing.current_folder.to_document() if listing.current_folder else None,
    }


@router.get("/assets/{asset_id}")
def get_asset(
    asset_id: int,
    user: CurrentUser = Depends(get_current_user),
    assets: AssetService = Depends(get_asset_service),
):
    return assets.get_owned(asset_id, user).to_document()


# --- rename a file (re-upload under the new key) ---
@router.put("/assets/{asset_id}")
async def rename_asset(
    asset_id: int,
    body: RenameRequest,
    user: CurrentUser = Depends(get_current_user),
    assets: AssetService = Depends(get_asset_service),
):
    asset = await assets.rename(asset_id, user, body.new_name)
    return {"message": "Asset renamed", "asset": asset.to_document()}


# --- delete a file ---
@router.delete("/assets/{asset_id}")
async def delete_asset(
    asset_id: int,
    user: CurrentUser = Depends(get_current_user),
    assets: AssetService = Depends(get_asset_service),
):
    asset = await assets.delete_asset(asset_id, user)
    return {"message": "Asset deleted", "id": asset.id}
