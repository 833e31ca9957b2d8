"""
Pytest configuration and fixtures for mini-cloudinary tests.

The remote blob store is replaced by ``FakeStore`` (tests/helpers.py) so
pipeline tests never touch a network.
"""
import pytest

from mini_cloudinary.models.user import CurrentUser
from mini_cloudinary.services.assets import AssetService
from mini_cloudinary.services.catalog import CatalogStore
from mini_cloudinary.services.folders import FolderService
from mini_cloudinary.services.ingest import IngestionPipeline
from mini_cloudinary.services.transform import TransformStage
from tests.helpers import FakeStore, make_snapshot


@pytest.fixture
def alice():
    return CurrentUser(id=1, username="alice")


@pytest.fixture
def bob():
    return CurrentUser(id=2, username="Bob Builder")


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def catalog(tmp_path):
    return CatalogStore(tmp_path / "data" / "db.json", snapshot=make_snapshot())


@pytest.fixture
def temp_dir(tmp_path):
    path = tmp_path / "temp_uploads"
    path.mkdir()
    return path


@pytest.fixture
def pipeline(store, catalog, temp_dir):
    return IngestionPipeline(
        store=store,
        catalog=catalog,
        transform=TransformStage(max_width=1000, quality=80, prefix="opt-"),
        temp_dir=temp_dir,
        max_file_size=5 * 1024 * 1024,
        max_bulk_files=20,
    )


@pytest.fixture
def asset_service(store, catalog, temp_dir):
    return AssetService(store, catalog, temp_dir)


@pytest.fixture
def folder_service(catalog):
    return FolderService(catalog)
