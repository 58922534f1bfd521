from shotcache.rendering.engine import (
    RenderingBackend,
    PlaywrightBackend,
    RenderError,
    RenderTimeoutError,
    RenderExecutionError,
)
from shotcache.rendering.pool import RendererPool
