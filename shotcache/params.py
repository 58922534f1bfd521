"""
Request validation.
Turns raw query parameters into a RenderRequest or raises InvalidInput.
Nothing here suspends and nothing here touches the cache or the renderer.
"""

import re
from typing import Mapping, Optional

from shotcache.config import (
    DEFAULT_WIDTH,
    DEFAULT_HEIGHT,
    DEFAULT_QUALITY,
    MIN_DIMENSION,
    MAX_DIMENSION,
    MIN_QUALITY,
    MAX_QUALITY,
    SIZE_PATTERN,
)
from shotcache.models import RenderRequest
from shotcache.url_utils import normalize_url

_SIZE_RE = re.compile(SIZE_PATTERN)
_INT_RE = re.compile(r"^\d+$")


class InvalidInput(ValueError):
    """Client error. Maps to 400, never retried."""
    pass


def _parse_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw == "":
        return default
    raw = raw.strip()
    if not _INT_RE.fullmatch(raw):
        raise InvalidInput(f"Invalid parameters: {name} must be an integer")
    return int(raw)


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if value < low or value > high:
        raise InvalidInput(f"Invalid parameters: {name} must be between {low} and {high}")


def parse_render_request(params: Mapping[str, str]) -> RenderRequest:
    """
    Validating state.
    - url is mandatory and must be an absolute http(s) URL
    - width/height/quality fall back to 1280/720/85
    - a well-formed size=WxH overrides width/height; a malformed one is ignored
    """
    url_param = params.get("url")
    if not url_param:
        raise InvalidInput("Missing url parameter")

    try:
        normalized_url = normalize_url(url_param)
    except ValueError as e:
        raise InvalidInput(f"Invalid url parameter: {e}") from e

    # A matching size wins; width/height are then not parsed at all
    size_match = _SIZE_RE.fullmatch(params.get("size") or "")
    if size_match:
        width = int(size_match.group(1))
        height = int(size_match.group(2))
    else:
        width = _parse_int("width", params.get("width"), DEFAULT_WIDTH)
        height = _parse_int("height", params.get("height"), DEFAULT_HEIGHT)
    quality = _parse_int("quality", params.get("quality"), DEFAULT_QUALITY)

    _check_range("width", width, MIN_DIMENSION, MAX_DIMENSION)
    _check_range("height", height, MIN_DIMENSION, MAX_DIMENSION)
    _check_range("quality", quality, MIN_QUALITY, MAX_QUALITY)

    return RenderRequest(url=normalized_url, width=width, height=height, quality=quality)
