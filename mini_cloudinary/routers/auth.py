from fastapi import APIRouter, Depends, Form

from mini_cloudinary.core.errors import AuthError
from mini_cloudinary.core.security import verify_password
from mini_cloudinary.dependencies import get_catalog, get_current_user
from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.catalog import CatalogStore

router = APIRouter(tags=["auth"])


@router.post("/login")
def login(
    username: str = Form(...),
    password: str = Form(...),
    catalog: CatalogStore = Depends(get_catalog),
):
    user = catalog.user_by_username(username)

    if not user or not verify_password(user.password_hash, password):
        raise AuthError("Invalid credentials.")

    # login success → hand back the API key for bearer auth
    return {"apiKey": user.api_key, "user": {"id": user.id, "username": user.username}}


@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user)):
    return user.to_document()
