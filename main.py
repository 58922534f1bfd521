import sys

from shotcache.app import create_app
from shotcache.config import HOST, PORT, RATE_LIMIT_ENABLED, S3_BUCKET_NAME
from shotcache.logger import logger
from shotcache.orchestrator import ScreenshotOrchestrator
from shotcache.rendering import PlaywrightBackend, RendererPool
from shotcache.storage import S3BlobStore, create_s3_client
from shotcache.throttle import RateLimiter


def main():
    """
    Startup sequence: store -> renderer pool -> orchestrator -> HTTP.
    The pool lives for the whole process and is torn down on exit.
    """
    if not S3_BUCKET_NAME:
        logger.critical("S3_BUCKET_NAME is not set.")
        sys.exit(1)

    store = S3BlobStore(create_s3_client(), S3_BUCKET_NAME)
    pool = RendererPool(PlaywrightBackend())
    orchestrator = ScreenshotOrchestrator(store, pool)
    limiter = RateLimiter.from_url() if RATE_LIMIT_ENABLED else None

    app = create_app(orchestrator, limiter)

    pool.start()
    try:
        logger.info(f"Server running on port {PORT}")
        app.run(host=HOST, port=PORT, threaded=True)
    finally:
        pool.shutdown()
        orchestrator.close(timeout=30)


if __name__ == "__main__":
    main()
