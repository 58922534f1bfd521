from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional


@dataclass(frozen=True)
class RenderRequest:
    """
    Validated input for one screenshot.
    INVARIANT: width/height/quality are already within bounds and url is a
    normalized absolute http(s) URL. Only params.parse_render_request builds these.
    """
    url: str
    width: int
    height: int
    quality: int


@dataclass(frozen=True)
class RenderedImage:
    """JPEG bytes produced by a fresh render. Write-once, read-many."""
    data: bytes

    @property
    def content_length(self) -> int:
        return len(self.data)


class ImageStream:
    """
    Single-pass byte stream over a JPEG body.
    Both the cache-hit path and the render path hand one of these to the
    HTTP layer, so nothing downstream inspects what produced the bytes.
    """

    def __init__(self, chunks: Iterable[bytes], content_length: Optional[int] = None,
                 on_close: Optional[Callable[[], None]] = None):
        self._chunks = chunks
        self.content_length = content_length
        self._on_close = on_close
        self._closed = False

    @classmethod
    def from_image(cls, image: RenderedImage) -> "ImageStream":
        return cls([image.data], content_length=image.content_length)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._chunks)

    def read(self) -> bytes:
        """Drain the remaining chunks and close."""
        try:
            return b"".join(self)
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close:
            self._on_close()
