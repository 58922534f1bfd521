from abc import ABC, abstractmethod
from typing import Optional

from shotcache.models import ImageStream, RenderedImage


class StoreError(Exception):
    """
    Transport/permission failure talking to the object store.
    Never raised for a plain miss.
    """
    pass


class BlobStore(ABC):
    """
    Abstract interface over content-addressed object storage.
    Contract:
    - get() returns None on a miss and an ImageStream on a hit.
    - Anything else that goes wrong surfaces as StoreError.
    - No local state is retained between calls.
    """
    @abstractmethod
    async def get(self, key: str) -> Optional[ImageStream]:
        """Open the object stored under key, or None if there is none."""
        pass

    @abstractmethod
    async def put(self, key: str, image: RenderedImage) -> None:
        """Persist a rendered image under key. Raises StoreError on failure."""
        pass
