"""
Bounded pool of renderer engines.
Uses a DEDICATED THREAD running its own event loop for all browser
operations. Browser objects are bound to the loop that created them, while
request handlers may run on any loop, so every session is submitted to the
pool's loop and awaited from the caller's loop.
"""

import asyncio
import threading
from contextlib import asynccontextmanager

from shotcache.config import RENDER_POOL_SIZE, LAUNCH_TIMEOUT
from shotcache.logger import setup_logger
from shotcache.models import RenderRequest, RenderedImage
from shotcache.rendering.engine import (
    RenderingBackend,
    RenderError,
    RenderTimeoutError,
    RenderExecutionError,
)

logger = setup_logger("shotcache.rendering")


class RendererPool:
    """
    FLOW: start() spins up the render loop -> render() checks out an engine
    (idle one if healthy, otherwise a fresh launch) -> backend captures ->
    the engine is checked back in if the session succeeded, closed otherwise.
    Invariants:
    - At most `size` engines are checked out at once.
    - Every checkout is matched by exactly one release, on every exit path.
    - The whole session is bounded by launch_timeout.
    """

    def __init__(self, backend: RenderingBackend, size: int = RENDER_POOL_SIZE,
                 launch_timeout: float = LAUNCH_TIMEOUT):
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._backend = backend
        self._size = size
        self._launch_timeout = launch_timeout

        self._lock = threading.Lock()
        self._loop = None
        self._thread = None
        self._slots = None
        self._idle = []
        self._running = False

        self.acquired = 0
        self.released = 0

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._run_loop, daemon=True, name="RendererPool")
            self._thread.start()
            future = asyncio.run_coroutine_threadsafe(self._startup(), self._loop)
            try:
                future.result()
            except Exception:
                self._stop_loop()
                raise
            self._running = True
        logger.info(f"[RENDER] Renderer pool started (size={self._size})")

    def shutdown(self, timeout: float = 30) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            future = asyncio.run_coroutine_threadsafe(self._teardown(), self._loop)
            try:
                future.result(timeout)
            finally:
                self._stop_loop(timeout)
        logger.info("[RENDER] Renderer pool stopped.")

    @property
    def running(self) -> bool:
        return self._running

    def stats(self) -> dict:
        return {
            "size": self._size,
            "idle": len(self._idle),
            "acquired": self.acquired,
            "released": self.released,
        }

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _stop_loop(self, timeout: float = 30):
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._loop.close()

    async def _startup(self):
        self._slots = asyncio.Semaphore(self._size)
        await self._backend.start()

    async def _teardown(self):
        idle, self._idle = self._idle, []
        for engine in idle:
            await self._discard(engine)
        await self._backend.stop()

    # ------------------------------------------------------------
    # Public API (awaitable from any event loop)
    # ------------------------------------------------------------
    async def render(self, request: RenderRequest) -> RenderedImage:
        if not self._running:
            raise RenderExecutionError("renderer pool is not running")
        future = asyncio.run_coroutine_threadsafe(self._render(request), self._loop)
        return await asyncio.wrap_future(future)

    # ------------------------------------------------------------
    # Render loop side
    # ------------------------------------------------------------
    async def _render(self, request: RenderRequest) -> RenderedImage:
        try:
            return await asyncio.wait_for(self._session(request), timeout=self._launch_timeout)
        except asyncio.TimeoutError as e:
            raise RenderTimeoutError(
                f"render of {request.url} exceeded {self._launch_timeout}s", cause=e
            ) from e

    async def _session(self, request: RenderRequest) -> RenderedImage:
        try:
            async with self.session() as engine:
                data = await self._backend.capture(engine, request)
        except RenderError:
            raise
        except Exception as e:
            raise RenderExecutionError(f"render of {request.url} failed: {e}", cause=e) from e
        return RenderedImage(data)

    @asynccontextmanager
    async def session(self):
        """
        Scoped checkout of one engine. Must run on the pool's loop.
        The engine goes back to the idle set only if the body completed.
        """
        async with self._slots:
            engine = await self._checkout()
            self.acquired += 1
            completed = False
            try:
                yield engine
                completed = True
            finally:
                self.released += 1
                await self._checkin(engine, completed)

    async def _checkout(self):
        while self._idle:
            engine = self._idle.pop()
            if self._backend.is_healthy(engine):
                return engine
            await self._discard(engine)
        logger.debug("[RENDER] Launching renderer engine.")
        return await self._backend.launch()

    async def _checkin(self, engine, completed: bool):
        if completed and self._running and self._backend.is_healthy(engine):
            self._idle.append(engine)
        else:
            await self._discard(engine)

    async def _discard(self, engine):
        try:
            await self._backend.close(engine)
        except Exception as e:
            logger.warning(f"[RENDER] Engine close failed: {e}")
