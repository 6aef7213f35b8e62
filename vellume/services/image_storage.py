import logging
import re
from pathlib import Path

from vellume.core.config import settings

logger = logging.getLogger(__name__)

_KEY_PART = re.compile(r"^[A-Za-z0-9._-]+$")


class ImageStorage:
    """Stores image objects under <root>/<key> and serves them from public_base_url/<key>."""

    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def validate_key(key: str):
        parts = key.split("/")
        if not all(_KEY_PART.match(part) and part not in (".", "..") for part in parts):
            raise ValueError(f"Invalid image key: {key!r}")

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def put(self, key: str, data: bytes, content_type: str = "image/png") -> str:
        """Write the object and return its public URL. Overwrites an existing key."""
        self.logger.info(f"put: Entry - {key} ({content_type}, {len(data)} bytes)")
        self.validate_key(key)

        try:
            path = self.root / key
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            self.logger.info(f"put: Success - {key}")
            return self.public_url(key)
        except OSError as e:
            self.logger.error(f"put: Failure - {e}")
            raise


def get_image_storage() -> ImageStorage:
    """Dependency to get image storage"""
    return ImageStorage(settings.images_dir, settings.images_public_base_url)
