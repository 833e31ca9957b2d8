from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from mini_cloudinary.dependencies import get_current_user, get_folder_service
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.folders import FolderService

router = APIRouter(prefix="/folders", tags=["folders"])


class CreateFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    parent_id: int | None = Field(default=None, alias="parentId")


@router.post("")
async def create_folder(
    body: CreateFolderRequest,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderService = Depends(get_folder_service),
):
    folder = await folders.create_folder(user, body.name, body.parent_id)
    return {"message": "Folder created", "folder": folder.to_document()}


# --- delete a folder, its assets go back to root ---
@router.delete("/{folder_id}")
async def delete_folder(
    folder_id: int,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderService = Depends(get_folder_service),
):
    moved = await folders.delete_folder(folder_id, user)
    return {"message": "Folder deleted", "id": folder_id, "movedAssets": moved}
