"""
Tests for image storage
"""

import pytest

from vellume.services.image_storage import ImageStorage


@pytest.fixture
def storage(tmp_path):
    return ImageStorage(str(tmp_path), "https://images.vellume.app/")


class TestImageStorage:
    def test_put_writes_file_and_returns_public_url(self, storage, tmp_path):
        url = storage.put("user_1/j1-cloud.png", b"png-bytes")

        assert url == "https://images.vellume.app/user_1/j1-cloud.png"
        assert (tmp_path / "user_1" / "j1-cloud.png").read_bytes() == b"png-bytes"

    def test_put_overwrites_existing_key(self, storage, tmp_path):
        storage.put("user_1/j1-cloud.png", b"first")
        storage.put("user_1/j1-cloud.png", b"second")

        assert (tmp_path / "user_1" / "j1-cloud.png").read_bytes() == b"second"

    @pytest.mark.parametrize("key", [
        "../outside.png",
        "user_1/../../etc/passwd",
        "user_1/./x.png",
        "user_1//x.png",
        "user 1/x.png",
        "",
    ])
    def test_invalid_keys_are_rejected(self, storage, key):
        with pytest.raises(ValueError):
            storage.put(key, b"data")

    def test_valid_key(self):
        ImageStorage.validate_key("0b1c-user/3f2a.jpeg")
