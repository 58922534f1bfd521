import unittest
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from shotcache.models import RenderRequest
from shotcache.rendering.engine import (
    PlaywrightBackend,
    RenderExecutionError,
    RenderTimeoutError,
    LAUNCH_ARGS,
)

REQUEST = RenderRequest(url="https://example.com", width=800, height=600, quality=70)


class TestPlaywrightBackend(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.page = AsyncMock()
        self.page.screenshot.return_value = b"jpeg"
        self.context = AsyncMock()
        self.context.new_page.return_value = self.page
        self.browser = AsyncMock()
        self.browser.new_context.return_value = self.context
        self.backend = PlaywrightBackend(headless=True, navigation_timeout=30, launch_timeout=60)

    async def test_capture_sequence(self):
        data = await self.backend.capture(self.browser, REQUEST)

        self.assertEqual(data, b"jpeg")
        self.browser.new_context.assert_awaited_once_with(viewport={"width": 800, "height": 600})
        self.page.goto.assert_awaited_once_with("https://example.com", wait_until="networkidle", timeout=30000)
        style = self.page.add_style_tag.await_args.kwargs["content"]
        self.assertIn("::-webkit-scrollbar", style)
        self.assertIn("overflow: hidden", style)
        self.page.screenshot.assert_awaited_once_with(type="jpeg", quality=70)
        self.context.close.assert_awaited_once()

    async def test_navigation_timeout_closes_context(self):
        self.page.goto.side_effect = PlaywrightTimeoutError("Timeout 30000ms exceeded")

        with self.assertRaises(RenderTimeoutError) as cm:
            await self.backend.capture(self.browser, REQUEST)

        self.assertIsInstance(cm.exception.cause, PlaywrightTimeoutError)
        self.page.screenshot.assert_not_awaited()
        self.context.close.assert_awaited_once()

    async def test_capture_failure_closes_context(self):
        self.page.screenshot.side_effect = RuntimeError("Target closed")

        with self.assertRaises(RuntimeError):
            await self.backend.capture(self.browser, REQUEST)
        self.context.close.assert_awaited_once()

    async def test_launch_uses_server_profile(self):
        playwright = MagicMock()
        playwright.chromium.launch = AsyncMock(return_value=self.browser)
        self.backend._playwright = playwright

        engine = await self.backend.launch()

        self.assertIs(engine, self.browser)
        kwargs = playwright.chromium.launch.await_args.kwargs
        self.assertTrue(kwargs["headless"])
        self.assertEqual(kwargs["timeout"], 60000)
        for flag in ["--no-sandbox", "--disable-gpu", "--single-process"]:
            self.assertIn(flag, kwargs["args"])
        self.assertEqual(kwargs["args"], LAUNCH_ARGS)

    async def test_launch_timeout_is_render_timeout(self):
        playwright = MagicMock()
        playwright.chromium.launch = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 60000ms exceeded"))
        self.backend._playwright = playwright

        with self.assertRaises(RenderTimeoutError) as cm:
            await self.backend.launch()
        self.assertIsInstance(cm.exception.cause, PlaywrightTimeoutError)

    async def test_launch_before_start_fails(self):
        with self.assertRaises(RenderExecutionError):
            await self.backend.launch()

    def test_health_follows_connection(self):
        engine = MagicMock()
        engine.is_connected.return_value = False
        self.assertFalse(self.backend.is_healthy(engine))


if __name__ == "__main__":
    unittest.main()
