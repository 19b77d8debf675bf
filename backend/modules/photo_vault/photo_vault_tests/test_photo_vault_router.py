"""
照片库路由测试
"""

import pytest
from httpx import AsyncClient

BASE = "/api/v1/photo-vault"


def jpeg_files(count: int, prefix: str = "photo"):
    return [
        ("files", (f"{prefix}-{i}.jpg", b"\xff\xd8" + b"x" * 256, "image/jpeg"))
        for i in range(count)
    ]


async def create_album(client: AsyncClient, name: str) -> dict:
    response = await client.post(f"{BASE}/albums", json={"name": name})
    assert response.status_code == 200
    return response.json()["data"]


async def upload(client: AsyncClient, count: int, album_id=None, prefix: str = "photo") -> dict:
    data = {"album_id": str(album_id)} if album_id is not None else {}
    response = await client.post(f"{BASE}/photos/upload", files=jpeg_files(count, prefix), data=data)
    assert response.status_code == 200
    return response.json()["data"]


async def get_album(client: AsyncClient, album_id: int) -> dict:
    response = await client.get(f"{BASE}/albums")
    return next((a for a in response.json()["data"] if a["id"] == album_id), None)


@pytest.mark.asyncio
class TestPhotoVaultAuth:
    """权限测试"""

    async def test_requires_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/albums")
        assert response.status_code in (401, 403)

    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/albums", headers={"Authorization": "Bearer invalid"})
        assert response.status_code == 401


@pytest.mark.asyncio
class TestAlbumRoutes:
    """相册接口测试"""

    async def test_album_lifecycle(self, vault_client: AsyncClient):
        album = await create_album(vault_client, "Trip")
        assert album["photo_count"] == 0

        response = await vault_client.put(f"{BASE}/albums/{album['id']}", json={"description": "Japan"})
        assert response.status_code == 200
        assert response.json()["data"]["description"] == "Japan"

        response = await vault_client.get(f"{BASE}/albums")
        names = [a["name"] for a in response.json()["data"]]
        assert names == ["Trip", "Uncategorized"]

        response = await vault_client.delete(f"{BASE}/albums/{album['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["moved_photos"] == 0

    async def test_create_album_empty_name(self, vault_client: AsyncClient):
        response = await vault_client.post(f"{BASE}/albums", json={"name": "  "})
        assert response.status_code == 400
        assert response.json()["code"] == 3001

    async def test_delete_default_album_forbidden(self, vault_client: AsyncClient, default_album):
        response = await vault_client.delete(f"{BASE}/albums/{default_album.id}")
        assert response.status_code == 403

    async def test_update_unknown_album(self, vault_client: AsyncClient):
        response = await vault_client.put(f"{BASE}/albums/9999", json={"name": "X"})
        assert response.status_code == 404
        assert response.json()["code"] == 3002


@pytest.mark.asyncio
class TestPhotoRoutes:
    """照片接口测试"""

    async def test_trip_end_to_end(self, vault_client: AsyncClient, blob_store, default_album):
        """Trip 相册完整流程：上传、设封面、单删、批删（一个文件删除失败）、删相册"""
        trip = await create_album(vault_client, "Trip")
        uploaded = await upload(vault_client, 3, trip["id"])
        assert uploaded["success_count"] == 3
        assert (await get_album(vault_client, trip["id"]))["photo_count"] == 3

        response = await vault_client.get(f"{BASE}/photos", params={"album_id": trip["id"]})
        items = response.json()["data"]["items"]
        assert len(items) == 3

        cover_id = items[0]["id"]
        response = await vault_client.put(f"{BASE}/albums/{trip['id']}", json={"cover_photo_id": cover_id})
        assert response.json()["data"]["cover_photo_id"] == cover_id

        response = await vault_client.delete(f"{BASE}/photos/{cover_id}")
        assert response.status_code == 200
        album = await get_album(vault_client, trip["id"])
        assert album["cover_photo_id"] is None
        assert album["photo_count"] == 2

        remaining = [i for i in items if i["id"] != cover_id]
        blob_store.fail_deletes = {remaining[0]["blob_id"]}
        response = await vault_client.post(
            f"{BASE}/photos/bulk-delete", json={"ids": [i["id"] for i in remaining]}
        )
        data = response.json()["data"]
        assert data["deleted_count"] == 2
        assert len(data["blob_failures"]) == 1
        assert (await get_album(vault_client, trip["id"]))["photo_count"] == 0

        await upload(vault_client, 2, trip["id"], prefix="again")
        response = await vault_client.delete(f"{BASE}/albums/{trip['id']}")
        assert response.json()["data"]["moved_photos"] == 2
        assert await get_album(vault_client, trip["id"]) is None
        assert (await get_album(vault_client, default_album.id))["photo_count"] == 2

    async def test_upload_partial_failure(self, vault_client: AsyncClient, blob_store):
        blob_store.fail_uploads = {"photo-1.jpg"}
        files = jpeg_files(2) + [("files", ("notes.txt", b"hello", "text/plain"))]

        response = await vault_client.post(f"{BASE}/photos/upload", files=files)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success_count"] == 1
        assert data["fail_count"] == 2
        assert data["uploaded"][0]["album_name"] == "Uncategorized"
        assert sorted(f["filename"] for f in data["failed"]) == ["notes.txt", "photo-1.jpg"]

    async def test_upload_unknown_album(self, vault_client: AsyncClient, blob_store):
        response = await vault_client.post(
            f"{BASE}/photos/upload", files=jpeg_files(1), data={"album_id": "9999"}
        )
        assert response.status_code == 404
        assert blob_store.upload_calls == []

    async def test_upload_orphans_then_register(self, vault_client: AsyncClient, blob_store):
        """元数据写入失败返回孤儿文件，登记接口可重试"""
        blob_store.fixed_blob_id = "portfolio/photos/dup"
        await upload(vault_client, 1)

        response = await vault_client.post(f"{BASE}/photos/upload", files=jpeg_files(1, "again"))
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == 4201
        orphan = body["data"]["blobs"][0]
        assert orphan["blob_id"] == "portfolio/photos/dup"

        # 换一个 blob_id 模拟清理冲突后重新登记
        orphan["blob_id"] = "portfolio/photos/recovered"
        response = await vault_client.post(
            f"{BASE}/photos/register", json={"blobs": [orphan], "album_id": body["data"]["album_id"]}
        )
        assert response.status_code == 200
        assert response.json()["data"][0]["blob_id"] == "portfolio/photos/recovered"

    async def test_register_empty(self, vault_client: AsyncClient):
        response = await vault_client.post(f"{BASE}/photos/register", json={"blobs": []})
        assert response.status_code == 400

    async def test_list_filters(self, vault_client: AsyncClient):
        data = await upload(vault_client, 3)
        ids = [p["id"] for p in data["uploaded"]]

        response = await vault_client.put(f"{BASE}/photos/{ids[0]}/favorite")
        assert response.json()["data"]["is_favorite"] is True
        await vault_client.put(f"{BASE}/photos/{ids[1]}", json={"title": "Mount Fuji", "tags": ["Japan"]})

        response = await vault_client.get(f"{BASE}/photos", params={"favorites_only": "true"})
        assert [i["id"] for i in response.json()["data"]["items"]] == [ids[0]]

        response = await vault_client.get(f"{BASE}/photos", params={"search": "japan"})
        assert [i["id"] for i in response.json()["data"]["items"]] == [ids[1]]

        response = await vault_client.get(f"{BASE}/photos", params={"page": 1, "page_size": 2})
        payload = response.json()["data"]
        assert len(payload["items"]) == 2
        assert payload["pagination"]["has_more"] is True
        assert payload["pagination"]["total"] == 3

    async def test_list_invalid_album_filter(self, vault_client: AsyncClient):
        response = await vault_client.get(f"{BASE}/photos", params={"album_id": "trip"})
        assert response.status_code == 400

    async def test_toggle_unknown_photo(self, vault_client: AsyncClient):
        response = await vault_client.put(f"{BASE}/photos/9999/favorite")
        assert response.status_code == 404

    async def test_delete_unknown_photo(self, vault_client: AsyncClient):
        response = await vault_client.delete(f"{BASE}/photos/9999")
        assert response.status_code == 404

    async def test_bulk_delete_empty(self, vault_client: AsyncClient):
        response = await vault_client.post(f"{BASE}/photos/bulk-delete", json={"ids": []})
        assert response.status_code == 400

    async def test_stats(self, vault_client: AsyncClient):
        data = await upload(vault_client, 2)
        await vault_client.put(f"{BASE}/photos/{data['uploaded'][0]['id']}/favorite")

        response = await vault_client.get(f"{BASE}/stats")
        stats = response.json()["data"]
        assert stats["total_photos"] == 2
        assert stats["total_albums"] == 1
        assert stats["favorites"] == 1
        assert stats["total_storage_bytes"] == 2 * 258
