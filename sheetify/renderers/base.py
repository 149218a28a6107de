"""Base interfaces for page renderers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ImageRef:
    """Handle to a rendered page image.

    Either ``uri`` (a remote or data URI produced by an upload) or ``data``
    (inline bytes) is set. A reference is consumed by the extraction of the
    page it was rendered from.
    """

    uri: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: str = "image/png"

    def __post_init__(self) -> None:
        if self.uri is None and self.data is None:
            raise ValueError("ImageRef needs either a uri or inline data")


class Renderer(Protocol):
    """Protocol for page renderers.

    Pages are numbered from 1.
    """

    @property
    def page_count(self) -> int:
        """Number of pages in the loaded document."""
        ...

    async def render(self, page_number: int) -> bytes:
        """Rasterize a page and return PNG bytes.

        Raises RenderError when the page is out of bounds or rasterization
        fails.
        """
        ...
