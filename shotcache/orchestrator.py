import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Mapping, Optional, Protocol

from shotcache.config import STORE_WRITE_WORKERS
from shotcache.logger import setup_logger
from shotcache.models import ImageStream, RenderRequest, RenderedImage
from shotcache.params import parse_render_request
from shotcache.rendering.engine import RenderError
from shotcache.storage.storage import BlobStore, StoreError
from shotcache.url_utils import build_cache_key

logger = setup_logger("shotcache.orchestrator")


class Renderer(Protocol):
    async def render(self, request: RenderRequest) -> RenderedImage:
        ...


class ScreenshotOrchestrator:
    """
    Per-request pipeline:
    Validating -> CacheLookup -> (HitServe | MissRender -> StoreResult) -> Respond.
    Invariants:
    - An invalid request never reaches the cache or the renderer.
    - Store errors degrade to a miss (read) or a log line (write), never a failure.
    - The cache write is scheduled only after the response stream is prepared
      and the request never waits for it.
    """

    def __init__(self, store: BlobStore, renderer: Renderer,
                 write_workers: int = STORE_WRITE_WORKERS):
        self._store = store
        self._renderer = renderer
        self._writer = ThreadPoolExecutor(max_workers=write_workers, thread_name_prefix="StoreWriter")
        self._pending = set()
        self._pending_lock = threading.Lock()

    async def handle(self, params: Mapping[str, str]) -> ImageStream:
        """
        Serve one screenshot request.
        Raises InvalidInput (client error) or RenderError (render failed).
        """
        request = parse_render_request(params)
        key = build_cache_key(request.url, request.width, request.height, request.quality)
        logger.debug(f"[CACHE] {request.url} -> {key}")

        cached = await self._lookup(key)
        if cached is not None:
            logger.info(f"[CACHE] Hit {key}")
            return cached

        image = await self._render(request)
        stream = ImageStream.from_image(image)
        self._schedule_store(key, image)
        return stream

    async def _lookup(self, key: str) -> Optional[ImageStream]:
        try:
            cached = await self._store.get(key)
        except StoreError as e:
            logger.error(f"[STORE] Lookup failed for {key}, rendering instead: {e}")
            return None
        if cached is None:
            logger.debug(f"[CACHE] Miss {key}")
        return cached

    async def _render(self, request: RenderRequest) -> RenderedImage:
        try:
            image = await self._renderer.render(request)
        except RenderError as e:
            logger.error(f"[RENDER] {request.url} failed: {e} (cause: {e.cause!r})")
            raise
        logger.info(
            f"[RENDER] {request.url} {request.width}x{request.height} q{request.quality} "
            f"-> {image.content_length} bytes"
        )
        return image

    # ------------------------------------------------------------
    # Best-effort cache writes
    # ------------------------------------------------------------
    def _schedule_store(self, key: str, image: RenderedImage) -> None:
        future = self._writer.submit(self._persist, key, image)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        error = None if future.cancelled() else future.exception()
        if error is not None:
            logger.error(f"[STORE] Unexpected write error: {error!r}")

    def _persist(self, key: str, image: RenderedImage) -> bool:
        try:
            asyncio.run(self._store.put(key, image))
        except StoreError as e:
            logger.error(f"[STORE] Write failed for {key}: {e}")
            return False
        logger.debug(f"[STORE] Stored {key}")
        return True

    def flush_writes(self, timeout: Optional[float] = None) -> None:
        """Block until every scheduled cache write has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        self.flush_writes(timeout)
        self._writer.shutdown(wait=True)
