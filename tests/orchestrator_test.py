"""
Verification scenarios for the request pipeline:
validation gate, cache hit/miss, degraded store, render failure, idempotence.
"""

import asyncio
import unittest

from shotcache.orchestrator import ScreenshotOrchestrator
from shotcache.params import InvalidInput
from shotcache.rendering.engine import RenderExecutionError, RenderTimeoutError
from tests.doubles import InMemoryBlobStore, CountingRenderer, JPEG_BYTES

DEFAULT_KEY = "screenshots/example.com_1280x720_q85.jpg"


class TestScreenshotOrchestrator(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = InMemoryBlobStore()
        self.renderer = CountingRenderer()
        self.orchestrator = ScreenshotOrchestrator(self.store, self.renderer, write_workers=2)

    def tearDown(self):
        self.orchestrator.close(timeout=5)

    async def test_miss_renders_and_stores(self):
        stream = await self.orchestrator.handle({"url": "https://example.com"})
        self.assertEqual(stream.read(), JPEG_BYTES)
        self.assertEqual(stream.content_length, len(JPEG_BYTES))
        self.assertEqual(self.renderer.calls, 1)

        self.orchestrator.flush_writes(timeout=5)
        self.assertEqual(self.store.objects, {DEFAULT_KEY: JPEG_BYTES})

    async def test_defaults_reach_renderer(self):
        await self.orchestrator.handle({"url": "https://example.com"})
        req = self.renderer.requests[0]
        self.assertEqual((req.url, req.width, req.height, req.quality), ("https://example.com", 1280, 720, 85))

    async def test_hit_skips_renderer(self):
        self.store.objects[DEFAULT_KEY] = b"cached-bytes"
        stream = await self.orchestrator.handle({"url": "https://example.com"})
        self.assertEqual(stream.read(), b"cached-bytes")
        self.assertEqual(self.renderer.calls, 0)
        self.assertEqual(self.store.put_calls, 0)

    async def test_second_identical_request_hits_cache(self):
        """Scenario: render once, then the same key is served without rendering."""
        first = await self.orchestrator.handle({"url": "https://example.com", "size": "640x480"})
        first.read()
        self.orchestrator.flush_writes(timeout=5)

        second = await self.orchestrator.handle({"url": "https://EXAMPLE.com/", "width": "640", "height": "480"})
        self.assertEqual(second.read(), JPEG_BYTES)
        self.assertEqual(self.renderer.calls, 1)

    async def test_invalid_input_touches_nothing(self):
        for params in [{"url": "https://example.com", "width": "50"},
                       {"url": "https://example.com", "quality": "101"},
                       {"url": "https://example.com", "height": "5000"},
                       {"url": "https://exa mple.com"},
                       {"width": "800"}]:
            with self.assertRaises(InvalidInput, msg=str(params)):
                await self.orchestrator.handle(params)
        self.assertEqual(self.store.get_calls, 0)
        self.assertEqual(self.store.put_calls, 0)
        self.assertEqual(self.renderer.calls, 0)

    async def test_store_read_failure_falls_through_to_render(self):
        self.store.fail_get = True
        stream = await self.orchestrator.handle({"url": "https://example.com"})
        self.assertEqual(stream.read(), JPEG_BYTES)
        self.assertEqual(self.renderer.calls, 1)

    async def test_store_write_failure_still_returns_image(self):
        self.store.fail_put = True
        stream = await self.orchestrator.handle({"url": "https://example.com"})
        self.assertEqual(stream.read(), JPEG_BYTES)
        self.orchestrator.flush_writes(timeout=5)
        self.assertEqual(self.store.put_calls, 1)
        self.assertEqual(self.store.objects, {})

    async def test_render_error_propagates_without_store_write(self):
        for error in [RenderExecutionError("boom", cause=RuntimeError("crash")),
                      RenderTimeoutError("slow")]:
            self.renderer.error = error
            with self.assertRaises(type(error)):
                await self.orchestrator.handle({"url": "https://example.com"})
        self.orchestrator.flush_writes(timeout=5)
        self.assertEqual(self.store.put_calls, 0)

    async def test_concurrent_misses_for_same_key(self):
        """Scenario: both may render and both may write; the final object is a valid rendering."""
        self.renderer.delay = 0.05
        results = await asyncio.gather(
            self.orchestrator.handle({"url": "https://example.com"}),
            self.orchestrator.handle({"url": "https://example.com"}),
        )
        self.assertEqual([r.read() for r in results], [JPEG_BYTES, JPEG_BYTES])
        self.orchestrator.flush_writes(timeout=5)
        self.assertEqual(self.renderer.calls, 2)
        self.assertEqual(self.store.put_calls, 2)
        self.assertEqual(self.store.objects[DEFAULT_KEY], JPEG_BYTES)


if __name__ == "__main__":
    unittest.main()
