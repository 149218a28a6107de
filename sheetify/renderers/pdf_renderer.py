"""PDF page renderer implementation."""

from __future__ import annotations

import asyncio
import io
import logging

from pdf2image import convert_from_bytes
from pypdf import PdfReader

from ..exceptions import DocumentError, RenderError

logger = logging.getLogger(__name__)

BASE_DPI = 72
BASE_WIDTH = 600
BASE_HEIGHT = 800


class PDFRenderer:
    """Rasterize pages of an in-memory PDF to PNG images."""

    def __init__(self, data: bytes, scale: float = 1.0) -> None:
        self.data = data
        self.scale = scale
        try:
            reader = PdfReader(io.BytesIO(data))
            self._page_count = len(reader.pages)
        except Exception as e:
            raise DocumentError(f"Failed to read PDF document: {e}")

        if self._page_count == 0:
            raise DocumentError("PDF document has no pages")

    @property
    def page_count(self) -> int:
        return self._page_count

    async def render(self, page_number: int) -> bytes:
        if page_number < 1 or page_number > self._page_count:
            raise RenderError(
                f"Invalid page number: {page_number}. "
                f"The document has {self._page_count} pages.",
                page_number,
            )

        # pdf2image shells out to poppler; keep the event loop free
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._render_sync, page_number)

    def _render_sync(self, page_number: int) -> bytes:
        try:
            images = convert_from_bytes(
                self.data,
                dpi=int(BASE_DPI * self.scale),
                first_page=page_number,
                last_page=page_number,
                size=(int(BASE_WIDTH * self.scale), int(BASE_HEIGHT * self.scale)),
                fmt="png",
            )
        except Exception as e:
            raise RenderError(f"Failed to render page {page_number}: {e}", page_number)

        if not images:
            raise RenderError(
                f"Failed to render page {page_number} to image", page_number
            )

        buffer = io.BytesIO()
        images[0].save(buffer, format="PNG")
        logger.debug(
            "Rendered page %s: %s bytes", page_number, buffer.getbuffer().nbytes
        )
        return buffer.getvalue()
