"""Renderer interfaces and the PDF renderer."""

from .base import ImageRef, Renderer
from .pdf_renderer import PDFRenderer

__all__ = [
    "ImageRef",
    "Renderer",
    "PDFRenderer",
]
