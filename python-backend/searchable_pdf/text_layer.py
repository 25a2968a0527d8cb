"""
Text-Layer Compositor

Draws positioned fragments onto a PDF page as near-invisible text so the
page becomes searchable and selectable without changing how it looks.
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import Iterable

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

TEXT_COLOR = (0, 0, 0)
DEFAULT_OPACITY = 0.01


@dataclass(frozen=True)
class PositionedFragment:
    """Text anchored in page points (bottom-left origin)"""
    text: str
    x: float
    y: float
    font_size: float


def clean_text_for_pdf(text: str) -> str:
    """
    Remove problematic characters from text for PDF insertion.

    Args:
        text: Text to clean

    Returns:
        Cleaned text safe for PDF insertion
    """
    # Remove control characters except newline/tab
    text = ''.join(ch for ch in text if ch in '\n\t' or not unicodedata.category(ch).startswith('C'))
    return unicodedata.normalize('NFKC', text)


def composite(
    page: fitz.Page,
    fragments: Iterable[PositionedFragment],
    opacity: float = DEFAULT_OPACITY,
    fontname: str = "helv",
    render_mode: int = 0,
    min_font_size: float = 1.0
) -> int:
    """
    Add an invisible text layer to a page.

    Existing page content is not touched. A fragment that cannot be drawn
    is skipped.

    Args:
        page: Target PyMuPDF page
        fragments: Fragments in page points, bottom-left origin
        opacity: Fill opacity of the text
        fontname: Base-14 font name
        render_mode: PDF text render mode (0 fill, 3 invisible)
        min_font_size: Smallest font size used

    Returns:
        Number of fragments drawn
    """
    page_rect = page.rect
    drawn = 0
    failed = 0

    for fragment in fragments:
        try:
            text = clean_text_for_pdf(fragment.text.strip())
            if not text:
                continue

            # PyMuPDF uses a top-left origin
            point = fitz.Point(
                page_rect.x0 + fragment.x,
                page_rect.y0 + page_rect.height - fragment.y
            )

            page.insert_text(
                point,
                text,
                fontsize=max(min_font_size, fragment.font_size),
                fontname=fontname,
                color=TEXT_COLOR,
                fill_opacity=opacity,
                render_mode=render_mode,
                overlay=True
            )
            drawn += 1

        except Exception as e:
            failed += 1
            logger.debug(f"Skipping fragment {fragment!r}: {e}")

    if failed:
        logger.warning(f"Page {page.number + 1}: {failed} text fragments could not be placed")

    return drawn
