"""
文件存储工具测试
"""

import pytest

from utils.storage import StorageManager


@pytest.fixture
def storage(tmp_path):
    return StorageManager(str(tmp_path))


class TestStorageManager:

    def test_generate_path(self, storage, tmp_path):
        relative, full = storage.generate_path("/portfolio/photos/Trip/", "jpg")

        assert relative.startswith("portfolio/photos/Trip/")
        assert relative.endswith(".jpg")
        assert full == tmp_path.resolve() / relative

    def test_generate_path_without_folder(self, storage):
        relative, _ = storage.generate_path("", "")
        assert "/" not in relative
        assert "." not in relative

    def test_write_read_delete(self, storage, tmp_path):
        storage.write_file("portfolio/photos/a.jpg", b"data")

        path = storage.get_file_path("portfolio/photos/a.jpg")
        assert path.read_bytes() == b"data"

        assert storage.delete_file("portfolio/photos/a.jpg") is True
        assert storage.get_file_path("portfolio/photos/a.jpg") is None
        # 空目录随之清理
        assert not (tmp_path / "portfolio" / "photos").exists()

    def test_delete_missing(self, storage):
        assert storage.delete_file("portfolio/photos/none.jpg") is False

    def test_path_traversal_blocked(self, storage):
        with pytest.raises(ValueError):
            storage.write_file("../outside.jpg", b"data")
        assert storage.get_file_path("/etc/passwd") is None
        assert storage.delete_file("a/../../outside.jpg") is False
