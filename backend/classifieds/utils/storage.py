import time
from typing import Callable, Optional

from classifieds.backends.base import MarketplaceBackend
from classifieds.models.listing import ImageFile

MAX_IMAGE_BYTES = 5 * 1024 * 1024
STORAGE_PREFIX = "images/listings"


def build_storage_path(user_id: str, filename: str, timestamp_ms: int) -> str:
    """
    Path for an uploaded image: images/listings/{user}_{epoch ms}_{filename}
    """
    return f"{STORAGE_PREFIX}/{user_id}_{timestamp_ms}_{filename}"


def image_too_large(image: Optional[ImageFile]) -> bool:
    return image is not None and image.size > MAX_IMAGE_BYTES


class ImageUploader:
    def __init__(self, backend: MarketplaceBackend, clock: Callable[[], float] = time.time):
        self.backend = backend
        self.clock = clock

    async def upload(self, image: ImageFile, user_id: str) -> str:
        """
        Upload an image to the backend's object storage and return its public URL.
        Size limits are the caller's job; storage errors are not caught here.
        """
        path = build_storage_path(user_id, image.filename, int(self.clock() * 1000))
        await self.backend.upload_file(path, image.data, image.content_type)
        url = await self.backend.public_url(path)
        print(f"[upload] Stored {image.filename} ({image.size} bytes) at {path}")
        return url
