"""
PDF Processing Service
Opens source PDFs from memory, renders pages for OCR and assembles the
searchable output document
"""

import fitz  # PyMuPDF
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
from PIL import Image

from .exceptions import DocumentLoadError, DocumentSaveError, PageRenderError

logger = logging.getLogger(__name__)

# Metadata keys carried over to the output document
COPIED_METADATA_KEYS = ("title", "author", "subject")


@dataclass
class RasterPage:
    """A page rendered to pixels at a known scale"""
    page_number: int  # 0-indexed
    image: np.ndarray  # RGB, shape (height, width, 3)
    width: int
    height: int
    scale: float
    page_width: float  # points
    page_height: float  # points


class PDFProcessor:
    """Read-only access to a source PDF held in memory"""

    def __init__(self, data: bytes, filename: str = "document.pdf"):
        self.data = data
        self.filename = filename
        self.doc: Optional[fitz.Document] = None

    def open(self):
        """
        Open the PDF document.

        Raises:
            DocumentLoadError: If the bytes are not a usable PDF
        """
        if not self.data:
            raise DocumentLoadError(f"load failed: {self.filename} is empty")

        try:
            self.doc = fitz.open(stream=self.data, filetype="pdf")
        except Exception as e:
            logger.error(f"Failed to open PDF {self.filename}: {e}")
            raise DocumentLoadError(
                f"load failed: {self.filename} may be corrupted ({e})", e
            ) from e

        if self.doc.needs_pass:
            self.close()
            raise DocumentLoadError(f"load failed: {self.filename} is password-protected")

        if self.doc.page_count == 0:
            self.close()
            raise DocumentLoadError(f"load failed: {self.filename} contains no pages")

        logger.info(f"Opened PDF: {self.filename}, Pages: {self.doc.page_count}")

    def close(self):
        """Close the PDF document"""
        if self.doc:
            self.doc.close()
            self.doc = None

    def get_page_count(self) -> int:
        """Get total number of pages"""
        if not self.doc:
            raise ValueError("Document not opened")
        return self.doc.page_count

    def get_metadata(self) -> Dict[str, str]:
        """Get document metadata (may be empty)"""
        if not self.doc:
            raise ValueError("Document not opened")
        return dict(self.doc.metadata or {})

    def render_page(self, page_num: int, scale: float) -> RasterPage:
        """
        Render a page to an RGB image.

        Args:
            page_num: Page number (0-indexed)
            scale: Zoom factor relative to 72 DPI

        Returns:
            RasterPage with pixel and point dimensions

        Raises:
            PageRenderError: If rendering fails
        """
        if not self.doc:
            raise ValueError("Document not opened")

        try:
            page = self.doc[page_num]
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            image = np.array(Image.frombytes("RGB", (pix.width, pix.height), pix.samples))
            raster = RasterPage(
                page_number=page_num,
                image=image,
                width=pix.width,
                height=pix.height,
                scale=scale,
                page_width=page.rect.width,
                page_height=page.rect.height,
            )
            del pix
        except Exception as e:
            raise PageRenderError(f"Failed to render page {page_num + 1}: {e}", e) from e

        logger.debug(
            f"Rendered page {page_num + 1} at {scale}x: {raster.width}x{raster.height}px"
        )
        return raster

    def __enter__(self):
        """Context manager entry"""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()
        return False


class OutputDocument:
    """The searchable PDF being assembled"""

    def __init__(self):
        self.doc: Optional[fitz.Document] = fitz.open()

    def copy_page(self, source: PDFProcessor, page_num: int) -> fitz.Page:
        """
        Append an unmodified copy of a source page.

        Returns:
            The copied page in the output document
        """
        self.doc.insert_pdf(source.doc, from_page=page_num, to_page=page_num)
        return self.doc[self.doc.page_count - 1]

    def copy_metadata(self, metadata: Dict[str, str]) -> None:
        """Copy title/author/subject if present"""
        values = {
            key: metadata[key]
            for key in COPIED_METADATA_KEYS
            if metadata.get(key)
        }
        if values:
            self.doc.set_metadata(values)
            logger.debug(f"Copied metadata: {sorted(values)}")

    def get_page_count(self) -> int:
        return self.doc.page_count

    def to_bytes(self, compress: bool = True) -> bytes:
        """
        Serialize the document.

        Raises:
            DocumentSaveError: If serialization fails
        """
        try:
            if compress:
                return self.doc.tobytes(garbage=4, deflate=True)
            return self.doc.tobytes()
        except Exception as e:
            logger.error(f"Failed to serialize output PDF: {e}")
            raise DocumentSaveError(f"save failed: {e}", e) from e

    def close(self):
        if self.doc:
            self.doc.close()
            self.doc = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
