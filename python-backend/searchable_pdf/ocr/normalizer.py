"""
OCR Result Normalizer

Turns engine output into a uniform list of text fragments with raster
bounding boxes. Word boxes are used when the engine provides them;
otherwise whole-page text is laid out line by line near the left margin.
"""

import logging
import math
from dataclasses import dataclass
from typing import List

from .base import OCRResult, PixelBBox

logger = logging.getLogger(__name__)

# Fallback layout in page points (scaled to raster units at call time)
DEFAULT_FALLBACK_MARGIN = 50.0
DEFAULT_FALLBACK_FONT_SIZE = 12.0
DEFAULT_FALLBACK_LINE_SPACING = 1.5


@dataclass(frozen=True)
class FragmentPrecursor:
    """Text with a raster bounding box, not yet mapped to page space"""
    text: str
    bbox: PixelBBox

    @property
    def pixel_height(self) -> float:
        return self.bbox[3] - self.bbox[1]


def _is_valid_bbox(bbox) -> bool:
    try:
        x0, y0, x1, y1 = (float(v) for v in bbox)
    except (TypeError, ValueError):
        return False
    if not all(math.isfinite(v) for v in (x0, y0, x1, y1)):
        return False
    return x1 > x0 and y1 > y0


def _from_words(ocr_result: OCRResult) -> List[FragmentPrecursor]:
    precursors = []
    skipped = 0

    for word in ocr_result.words:
        text = word.text.strip() if isinstance(word.text, str) else ""
        if not text:
            continue
        if not _is_valid_bbox(word.bbox):
            skipped += 1
            logger.debug(f"Skipping word {text!r} with malformed bbox {word.bbox}")
            continue
        precursors.append(
            FragmentPrecursor(text=text, bbox=tuple(float(v) for v in word.bbox))
        )

    if skipped:
        logger.debug(f"Skipped {skipped} words with malformed bounding boxes")
    return precursors


def _from_text(
    text: str,
    raster_scale: float,
    margin: float,
    font_size: float,
    line_spacing: float
) -> List[FragmentPrecursor]:
    lines = [line.strip() for line in text.split('\n')]
    lines = [line for line in lines if line]

    x0 = margin * raster_scale
    height = font_size * raster_scale
    step = font_size * line_spacing * raster_scale
    # Rough advance width for Helvetica; only used to give the box some extent
    char_width = font_size * 0.5 * raster_scale

    precursors = []
    for index, line in enumerate(lines):
        bottom = margin * raster_scale + index * step
        bbox = (x0, bottom - height, x0 + len(line) * char_width, bottom)
        precursors.append(FragmentPrecursor(text=line, bbox=bbox))

    return precursors


def normalize(
    ocr_result: OCRResult,
    raster_scale: float = 1.0,
    fallback_margin: float = DEFAULT_FALLBACK_MARGIN,
    fallback_font_size: float = DEFAULT_FALLBACK_FONT_SIZE,
    fallback_line_spacing: float = DEFAULT_FALLBACK_LINE_SPACING
) -> List[FragmentPrecursor]:
    """
    Normalize an OCR result into fragment precursors.

    Args:
        ocr_result: Engine output
        raster_scale: Pixels per point of the rendered page; converts the
            fallback layout constants into raster units
        fallback_margin: Left and top margin for fallback lines, in points
        fallback_font_size: Nominal fallback font size, in points
        fallback_line_spacing: Line step as a multiple of the font size

    Returns:
        Precursors in reading order. Empty when nothing was recognized.
    """
    if ocr_result.words:
        return _from_words(ocr_result)

    if ocr_result.text and ocr_result.text.strip():
        logger.debug("No word geometry available, using line fallback")
        return _from_text(
            ocr_result.text,
            raster_scale,
            fallback_margin,
            fallback_font_size,
            fallback_line_spacing,
        )

    return []
