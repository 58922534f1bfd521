from shotcache.models import RenderRequest, RenderedImage, ImageStream
from shotcache.params import InvalidInput, parse_render_request
from shotcache.url_utils import normalize_url, build_cache_key
from shotcache.orchestrator import ScreenshotOrchestrator
