import os
from dotenv import load_dotenv

# Configuration for the screenshot service.
# Everything deployment-specific comes from the environment (or a .env file).
# Request bounds and defaults are fixed here and are not overridable.

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_levels(name):
    levels = {}
    for item in os.getenv(name, "").split(","):
        component, sep, level = item.partition("=")
        if sep and component.strip():
            levels[component.strip()] = level.strip().upper()
    return levels


# HTTP server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

# Object storage (any S3-compatible endpoint)
S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME", "")
S3_REGION = os.getenv("S3_REGION", "auto")
S3_ENDPOINT = os.getenv("S3_ENDPOINT") or None
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY", "")
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY", "")

# Rate limiting (per client IP, fixed window)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 5 * 60))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", 25))

# Renderer engine
RENDER_POOL_SIZE = int(os.getenv("RENDER_POOL_SIZE", 2))
RENDER_HEADLESS = _env_bool("RENDER_HEADLESS", True)
NAVIGATION_TIMEOUT = int(os.getenv("NAVIGATION_TIMEOUT", 30))  # seconds
LAUNCH_TIMEOUT = int(os.getenv("LAUNCH_TIMEOUT", 60))  # seconds, whole session

# Background cache writes
STORE_WRITE_WORKERS = int(os.getenv("STORE_WRITE_WORKERS", 4))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# Per-component overrides, e.g. LOG_LEVELS="rendering=DEBUG,throttle=WARNING"
LOG_LEVELS = _env_levels("LOG_LEVELS")
LOG_FILE = os.getenv("LOG_FILE") or None

# Request defaults and bounds
DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720
DEFAULT_QUALITY = 85

MIN_DIMENSION = 100
MAX_DIMENSION = 4096
MIN_QUALITY = 1
MAX_QUALITY = 100

SIZE_PATTERN = r"^(\d+)x(\d+)$"

# Cache layout and response headers
KEY_PREFIX = "screenshots"
CONTENT_TYPE = "image/jpeg"
CACHE_CONTROL = "public, max-age=86400"
