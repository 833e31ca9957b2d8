"""Tests for mini_cloudinary.services.assets (delete and rename sagas)."""

from unittest.mock import patch

import pytest

from mini_cloudinary.core.errors import (
    AuthorizationError,
    NotFoundError,
    RemoteDeleteFailed,
    RemoteReadNotFound,
    RemoteWriteFailed,
    ValidationError,
)


async def _seed(catalog, store, owner_id=1, namespace="alice", name="cat.png", data=b"cat-bytes"):
    key = f"{namespace}/{name}"
    store.objects[key] = data
    return await catalog.add_asset(
        owner_id=owner_id,
        file_name=name,
        original_name=name,
        namespace=namespace,
        url=store.public_url(key),
        mime_type="image/png",
        size=len(data),
    )


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_remote_object_and_row(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)

        await asset_service.delete_asset(asset.id, alice)

        assert "alice/cat.png" not in store.objects
        assert catalog.get_asset(asset.id) is None

    @pytest.mark.asyncio
    async def test_already_absent_remote_object_still_removes_row(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        del store.objects["alice/cat.png"]

        await asset_service.delete_asset(asset.id, alice)

        assert catalog.get_asset(asset.id) is None

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_row(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        store.fail_delete.add("alice/cat.png")

        with pytest.raises(RemoteDeleteFailed):
            await asset_service.delete_asset(asset.id, alice)

        assert catalog.get_asset(asset.id) == asset
        assert "alice/cat.png" in store.objects

    @pytest.mark.asyncio
    async def test_unknown_id(self, asset_service, alice):
        with pytest.raises(NotFoundError):
            await asset_service.delete_asset(123, alice)

    @pytest.mark.asyncio
    async def test_other_owner_is_forbidden_and_nothing_changes(self, asset_service, catalog, store, bob):
        asset = await _seed(catalog, store)
        store.calls.clear()

        with pytest.raises(AuthorizationError):
            await asset_service.delete_asset(asset.id, bob)

        assert store.calls == []
        assert catalog.get_asset(asset.id) == asset


class TestRename:
    @pytest.mark.asyncio
    async def test_moves_object_to_new_key(self, asset_service, catalog, store, alice, temp_dir):
        asset = await _seed(catalog, store)

        renamed = await asset_service.rename(asset.id, alice, "Fluffy Cat.png")

        assert renamed.file_name == "Fluffy-Cat.png"
        assert renamed.url == "https://cdn.test/alice/Fluffy-Cat.png"
        assert store.objects["alice/Fluffy-Cat.png"] == b"cat-bytes"
        assert "alice/cat.png" not in store.objects
        assert catalog.get_asset(asset.id).url == renamed.url
        assert [op for op, _ in store.calls] == ["get", "put", "delete"]
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_extension_keeps_current_one(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)

        renamed = await asset_service.rename(asset.id, alice, "kitty")

        assert renamed.file_name == "kitty.png"

    @pytest.mark.asyncio
    async def test_extension_change_rejected(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        store.calls.clear()

        with pytest.raises(ValidationError):
            await asset_service.rename(asset.id, alice, "cat.jpg")

        assert store.calls == []
        assert catalog.get_asset(asset.id) == asset

    @pytest.mark.asyncio
    async def test_extension_case_is_normalized(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)

        renamed = await asset_service.rename(asset.id, alice, "Dog.PNG")

        assert renamed.file_name == "Dog.png"
        assert renamed.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_same_name_is_a_no_op(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        store.calls.clear()

        renamed = await asset_service.rename(asset.id, alice, "cat.png")

        assert renamed == asset
        assert store.calls == []
        assert store.objects["alice/cat.png"] == b"cat-bytes"

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)

        with pytest.raises(ValidationError):
            await asset_service.rename(asset.id, alice, "   ")

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_old_key(self, asset_service, catalog, store, alice, temp_dir):
        asset = await _seed(catalog, store)
        del store.objects["alice/cat.png"]

        with pytest.raises(RemoteReadNotFound):
            await asset_service.rename(asset.id, alice, "dog.png")

        assert catalog.get_asset(asset.id).file_name == "cat.png"
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_original_servable(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        store.fail_put.add("alice/dog.png")

        with pytest.raises(RemoteWriteFailed):
            await asset_service.rename(asset.id, alice, "dog.png")

        assert catalog.get_asset(asset.id).url == asset.url
        assert store.objects["alice/cat.png"] == b"cat-bytes"
        assert "alice/dog.png" not in store.objects

    @pytest.mark.asyncio
    async def test_old_key_delete_failure_rolls_back_new_key(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        store.fail_delete.add("alice/cat.png")

        with pytest.raises(RemoteDeleteFailed):
            await asset_service.rename(asset.id, alice, "dog.png")

        assert catalog.get_asset(asset.id).file_name == "cat.png"
        assert "alice/cat.png" in store.objects
        assert "alice/dog.png" not in store.objects

    @pytest.mark.asyncio
    async def test_rollback_failure_leaves_both_keys(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)
        store.fail_delete.update({"alice/cat.png", "alice/dog.png"})

        with pytest.raises(RemoteDeleteFailed):
            await asset_service.rename(asset.id, alice, "dog.png")

        assert catalog.get_asset(asset.id).file_name == "cat.png"
        assert {"alice/cat.png", "alice/dog.png"} <= set(store.objects)

    @pytest.mark.asyncio
    async def test_asset_deleted_mid_rename_compensates(self, asset_service, catalog, store, alice):
        asset = await _seed(catalog, store)

        with patch.object(catalog, "update_asset", side_effect=KeyError(asset.id)):
            with pytest.raises(NotFoundError):
                await asset_service.rename(asset.id, alice, "dog.png")

        assert "alice/dog.png" not in store.objects

    @pytest.mark.asyncio
    async def test_other_owner_is_forbidden(self, asset_service, catalog, store, bob):
        asset = await _seed(catalog, store)
        store.calls.clear()

        with pytest.raises(AuthorizationError):
            await asset_service.rename(asset.id, bob, "mine.png")

        assert store.calls == []
        assert catalog.get_asset(asset.id).file_name == "cat.png"
