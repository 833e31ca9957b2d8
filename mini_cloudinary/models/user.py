# mini_cloudinary/models/user.py
from mini_cloudinary.models.base import CatalogModel


class User(CatalogModel):
    id: int
    username: str
    password_hash: str   # werkzeug salted hash, never the plain password
    api_key: str         # bearer token, unique across users


class CurrentUser(CatalogModel):
    """What the auth layer hands to the pipeline for a request."""

    id: int
    username: str
