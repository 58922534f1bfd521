from abc import ABC, abstractmethod
from typing import Any

from playwright.async_api import async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from shotcache.config import RENDER_HEADLESS, NAVIGATION_TIMEOUT, LAUNCH_TIMEOUT
from shotcache.models import RenderRequest


class RenderError(Exception):
    """Base rendering exception. Fatal to the request, never retried here."""

    def __init__(self, message: str, cause: BaseException = None):
        super().__init__(message)
        self.cause = cause


class RenderTimeoutError(RenderError):
    """Raised when navigation or the whole session exceeds its time limit."""
    pass


class RenderExecutionError(RenderError):
    """Raised on engine launch, navigation or capture failures."""
    pass


class RenderingBackend(ABC):
    """
    Abstraction for the underlying browser driver.
    Contractual Requirements for Implementers:
    - launch() returns an engine handle the pool may reuse across sessions.
    - capture() MUST use a fresh page context and MUST release it on every path.
    - capture() MUST enforce the navigation timeout itself.
    - close() releases the engine handle for good.
    """

    async def start(self) -> None:
        """Called once on the pool's loop before the first launch."""
        pass

    async def stop(self) -> None:
        """Called once on the pool's loop after every engine is closed."""
        pass

    @abstractmethod
    async def launch(self) -> Any:
        pass

    @abstractmethod
    async def capture(self, engine: Any, request: RenderRequest) -> bytes:
        """Load request.url in a viewport of request.width x request.height and return JPEG bytes."""
        pass

    @abstractmethod
    async def close(self, engine: Any) -> None:
        pass

    def is_healthy(self, engine: Any) -> bool:
        return True


# Server profile: no sandbox, no GPU, single process, no zygote
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-features=site-per-process",
    "--single-process",
    "--no-zygote",
]

# Pixel-stable frame: no scrollbars, no outer scrolling
HIDE_SCROLLBARS_CSS = """
::-webkit-scrollbar { display: none !important; }
html, body { overflow: hidden !important; }
"""


class PlaywrightBackend(RenderingBackend):
    """Headless Chromium through Playwright's async API."""

    def __init__(self, headless: bool = RENDER_HEADLESS,
                 navigation_timeout: int = NAVIGATION_TIMEOUT,
                 launch_timeout: int = LAUNCH_TIMEOUT):
        self._headless = headless
        self._navigation_timeout = navigation_timeout
        self._launch_timeout = launch_timeout
        self._playwright = None

    async def start(self) -> None:
        self._playwright = await async_playwright().start()

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def launch(self):
        if self._playwright is None:
            raise RenderExecutionError("Playwright backend is not started")
        try:
            return await self._playwright.chromium.launch(
                headless=self._headless,
                args=LAUNCH_ARGS,
                timeout=self._launch_timeout * 1000,
            )
        except PlaywrightTimeoutError as e:
            raise RenderTimeoutError(
                f"engine launch timed out after {self._launch_timeout}s", cause=e
            ) from e

    async def capture(self, engine, request: RenderRequest) -> bytes:
        # Fresh context per session: no cookies, storage or cache carried over
        context = await engine.new_context(
            viewport={"width": request.width, "height": request.height}
        )
        try:
            page = await context.new_page()
            try:
                await page.goto(
                    request.url,
                    wait_until="networkidle",
                    timeout=self._navigation_timeout * 1000,
                )
            except PlaywrightTimeoutError as e:
                raise RenderTimeoutError(
                    f"navigation to {request.url} timed out after {self._navigation_timeout}s",
                    cause=e,
                ) from e

            await page.add_style_tag(content=HIDE_SCROLLBARS_CSS)
            return await page.screenshot(type="jpeg", quality=request.quality)
        finally:
            await context.close()

    async def close(self, engine) -> None:
        await engine.close()

    def is_healthy(self, engine) -> bool:
        return engine.is_connected()
