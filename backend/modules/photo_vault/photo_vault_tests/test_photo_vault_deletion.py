"""
照片库删除协调器测试
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationException, NotFoundException
from core.events import event_bus, Events
from modules.photo_vault.photo_vault_coordinators import UploadCoordinator, DeletionCoordinator
from modules.photo_vault.photo_vault_models import Album, Photo
from modules.photo_vault.photo_vault_queries import QueryEngine, PhotoQuery
from modules.photo_vault.photo_vault_schemas import AlbumCreate
from modules.photo_vault.photo_vault_services import AlbumService, PhotoService
from modules.photo_vault.photo_vault_tests.photo_vault_conftest import make_items


class TestDeletionCoordinator:
    """删除协调器测试"""

    @pytest.mark.asyncio
    async def test_delete_one(self, db: AsyncSession, blob_store, default_album):
        result = await UploadCoordinator(db, blob_store).upload(make_items(2))
        photo = result.succeeded[0]
        photo_id, blob_id = photo.id, photo.blob_id

        deleted = await DeletionCoordinator(db, blob_store).delete_one(photo_id)

        assert deleted.blob_deleted is True
        assert deleted.blob_id == blob_id
        assert blob_id not in blob_store.blobs
        assert await PhotoService.get_photo(db, photo_id) is None

        await db.refresh(default_album)
        assert default_album.photo_count == 1

    @pytest.mark.asyncio
    async def test_delete_one_unknown(self, db: AsyncSession, blob_store, default_album):
        with pytest.raises(NotFoundException):
            await DeletionCoordinator(db, blob_store).delete_one(9999)
        assert blob_store.delete_calls == []

    @pytest.mark.asyncio
    async def test_delete_one_blob_failure_is_not_raised(self, db: AsyncSession, blob_store, default_album):
        """文件删除失败只记录，元数据仍然删除"""
        result = await UploadCoordinator(db, blob_store).upload(make_items(1))
        photo_id, blob_id = result.succeeded[0].id, result.succeeded[0].blob_id
        blob_store.fail_deletes = {blob_id}

        deleted = await DeletionCoordinator(db, blob_store).delete_one(photo_id)

        assert deleted.blob_deleted is False
        assert await PhotoService.get_photo(db, photo_id) is None
        page = await QueryEngine.list_photos(db, PhotoQuery())
        assert page.items == []

    @pytest.mark.asyncio
    async def test_delete_cover_clears_reference(self, db: AsyncSession, blob_store, default_album):
        """删除封面照片：相册封面置空，相册保留"""
        trip = await AlbumService.create_album(db, AlbumCreate(name="Trip"))
        result = await UploadCoordinator(db, blob_store).upload(make_items(3), trip.id)
        cover = result.succeeded[0]
        await AlbumService.set_cover(db, trip.id, cover.id)
        await db.commit()

        await DeletionCoordinator(db, blob_store).delete_one(cover.id)

        album = await db.get(Album, trip.id, populate_existing=True)
        assert album is not None
        assert album.cover_photo_id is None
        assert album.photo_count == 2

    @pytest.mark.asyncio
    async def test_bulk_delete_with_blob_failure(self, db: AsyncSession, blob_store, default_album):
        trip = await AlbumService.create_album(db, AlbumCreate(name="Trip"))
        result = await UploadCoordinator(db, blob_store).upload(make_items(2), trip.id)
        ids = [p.id for p in result.succeeded]
        failing_blob = result.succeeded[1].blob_id
        blob_store.fail_deletes = {failing_blob}

        outcome = await DeletionCoordinator(db, blob_store).delete_many(ids)

        assert outcome.deleted_count == 2
        assert len(outcome.blob_failures) == 1
        assert outcome.blob_failures[0].blob_id == failing_blob
        assert outcome.not_found_ids == []

        album = await db.get(Album, trip.id, populate_existing=True)
        assert album.photo_count == 0
        count = (await db.execute(select(func.count(Photo.id)).where(Photo.album_id == trip.id))).scalar()
        assert count == 0

    @pytest.mark.asyncio
    async def test_bulk_delete_across_albums(self, db: AsyncSession, blob_store, default_album):
        trip = await AlbumService.create_album(db, AlbumCreate(name="Trip"))
        in_trip = await UploadCoordinator(db, blob_store).upload(make_items(2), trip.id)
        in_default = await UploadCoordinator(db, blob_store).upload(make_items(3, prefix="misc"))
        await AlbumService.set_cover(db, trip.id, in_trip.succeeded[0].id)
        await db.commit()

        ids = [in_trip.succeeded[0].id, in_default.succeeded[0].id, in_default.succeeded[1].id, 9999]
        outcome = await DeletionCoordinator(db, blob_store).delete_many(ids + [ids[0]])

        assert outcome.deleted_count == 3
        assert outcome.not_found_ids == [9999]
        assert outcome.blob_failures == []

        trip_row = await db.get(Album, trip.id, populate_existing=True)
        default_row = await db.get(Album, default_album.id, populate_existing=True)
        assert trip_row.photo_count == 1
        assert trip_row.cover_photo_id is None
        assert default_row.photo_count == 1

    @pytest.mark.asyncio
    async def test_bulk_delete_nothing_found(self, db: AsyncSession, blob_store, default_album):
        outcome = await DeletionCoordinator(db, blob_store).delete_many([9998, 9999])

        assert outcome.deleted_count == 0
        assert outcome.not_found_ids == [9998, 9999]
        assert blob_store.delete_calls == []

    @pytest.mark.asyncio
    async def test_bulk_delete_requires_ids(self, db: AsyncSession, blob_store, default_album):
        with pytest.raises(ValidationException):
            await DeletionCoordinator(db, blob_store).delete_many([])

    @pytest.mark.asyncio
    async def test_metadata_deleted_before_blob(self, db: AsyncSession, blob_store, default_album):
        """文件删除开始时，元数据已不可见"""
        result = await UploadCoordinator(db, blob_store).upload(make_items(1))
        photo_id = result.succeeded[0].id
        seen = []

        original_delete = blob_store.delete

        async def observing_delete(blob_id):
            page = await QueryEngine.list_photos(db, PhotoQuery())
            seen.append([item["id"] for item in page.items])
            await original_delete(blob_id)

        blob_store.delete = observing_delete
        await DeletionCoordinator(db, blob_store).delete_one(photo_id)

        assert seen == [[]]

    @pytest.mark.asyncio
    async def test_delete_publishes_event(self, db: AsyncSession, blob_store, default_album):
        received = []
        event_bus.subscribe(Events.PHOTOS_DELETED, lambda e: received.append(e))
        result = await UploadCoordinator(db, blob_store).upload(make_items(2))

        await DeletionCoordinator(db, blob_store).delete_many([p.id for p in result.succeeded])

        assert len(received) == 1
        assert sorted(received[0].data["photo_ids"]) == sorted(p.id for p in result.succeeded)
