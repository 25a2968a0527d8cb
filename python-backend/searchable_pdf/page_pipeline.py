"""
Page Pipeline

Runs one page through copy -> render -> recognize -> normalize -> composite.
The source page is copied into the output first, so a page whose OCR fails
still appears in the output, just without a text layer.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .config import SearchableConfig
from .coordinate_mapper import to_page_point
from .exceptions import PageRecognitionError, PageRenderError
from .ocr.base import OCRResult
from .ocr.manager import OCREngineHandle
from .ocr.normalizer import FragmentPrecursor, normalize
from .pdf_processor import OutputDocument, PDFProcessor, RasterPage
from .text_layer import PositionedFragment, composite

logger = logging.getLogger(__name__)

# Float slack when checking anchors against page bounds
BOUNDS_TOLERANCE = 0.5


class PageStage(Enum):
    PENDING = "pending"
    COPIED = "copied"
    RENDERED = "rendered"
    RECOGNIZED = "recognized"
    NORMALIZED = "normalized"
    COMPOSITED = "composited"


@dataclass
class PageResult:
    """Outcome of one page. Never raised, always returned."""
    page_number: int  # 1-indexed
    stage: PageStage = PageStage.PENDING
    fragments_embedded: int = 0
    fragments_dropped: int = 0
    error: Optional[str] = None

    @property
    def has_text_layer(self) -> bool:
        return self.fragments_embedded > 0


def place_fragments(
    precursors: List[FragmentPrecursor],
    raster: RasterPage
) -> List[PositionedFragment]:
    """
    Map raster precursors into page space, dropping anything off the page.
    """
    fragments = []
    for precursor in precursors:
        x0, _, _, y1 = precursor.bbox
        x, y, font_size = to_page_point(
            x0, y1, precursor.pixel_height,
            raster.width, raster.height,
            raster.page_width, raster.page_height
        )

        in_bounds = (
            -BOUNDS_TOLERANCE <= x <= raster.page_width + BOUNDS_TOLERANCE
            and -BOUNDS_TOLERANCE <= y <= raster.page_height + BOUNDS_TOLERANCE
        )
        if not in_bounds or font_size <= 0:
            logger.debug(f"Dropping out-of-page fragment {precursor.text!r} at ({x:.1f}, {y:.1f})")
            continue

        x = min(max(x, 0.0), raster.page_width)
        y = min(max(y, 0.0), raster.page_height)
        fragments.append(PositionedFragment(text=precursor.text, x=x, y=y, font_size=font_size))

    return fragments


class PagePipeline:
    """Adds an OCR text layer to single pages using a shared engine handle"""

    def __init__(self, engine: OCREngineHandle, config: Optional[SearchableConfig] = None):
        self.engine = engine
        self.config = config or SearchableConfig()

    def _recognize(self, raster: RasterPage) -> OCRResult:
        try:
            result = self.engine.recognize(raster.image)
        except Exception as e:
            raise PageRecognitionError(
                f"OCR failed on page {raster.page_number + 1}: {e}", e
            ) from e

        if result.error:
            raise PageRecognitionError(
                f"OCR failed on page {raster.page_number + 1}: {result.error}"
            )
        return result

    def process(
        self,
        source: PDFProcessor,
        output: OutputDocument,
        page_num: int
    ) -> PageResult:
        """
        Copy a page into the output and add its OCR text layer.

        Args:
            source: Opened source document
            output: Output document being assembled
            page_num: Page number (0-indexed)

        Returns:
            PageResult describing how far the page got
        """
        result = PageResult(page_number=page_num + 1)

        # Copy failures are not recoverable at page level
        target_page = output.copy_page(source, page_num)
        result.stage = PageStage.COPIED

        try:
            raster = source.render_page(page_num, self.config.render_scale)
            result.stage = PageStage.RENDERED

            ocr_result = self._recognize(raster)
            result.stage = PageStage.RECOGNIZED

        except (PageRenderError, PageRecognitionError) as e:
            logger.warning(f"Page {page_num + 1}: {e.message}, keeping page without text layer")
            result.error = e.message
            return result

        precursors = normalize(
            ocr_result,
            raster_scale=raster.width / raster.page_width,
            fallback_margin=self.config.fallback_margin,
            fallback_font_size=self.config.fallback_font_size,
            fallback_line_spacing=self.config.fallback_line_spacing,
        )
        fragments = place_fragments(precursors, raster)
        result.fragments_dropped = len(precursors) - len(fragments)
        result.stage = PageStage.NORMALIZED

        # Raster is no longer needed; keep at most one page image alive
        del raster

        result.fragments_embedded = composite(
            target_page,
            fragments,
            opacity=self.config.text_opacity,
            fontname=self.config.font_name,
            render_mode=self.config.text_render_mode,
            min_font_size=self.config.min_font_size,
        )
        result.stage = PageStage.COMPOSITED

        logger.debug(
            f"Page {page_num + 1}: {result.fragments_embedded} fragments embedded, "
            f"{result.fragments_dropped} dropped"
        )
        return result
