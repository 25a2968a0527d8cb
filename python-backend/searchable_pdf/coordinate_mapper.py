"""
Coordinate Mapper

Converts between raster space (pixels, top-left origin, y grows downward)
and PDF page space (points, bottom-left origin, y grows upward).

Horizontal and vertical scales are computed independently, so a raster
whose aspect ratio drifted from the page's still maps correctly.
"""

from dataclasses import dataclass
from typing import Tuple

from .ocr.base import PixelBBox


@dataclass(frozen=True)
class PageBox:
    """Rectangle in page points, bottom-left origin (y0 is the bottom edge)"""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0


def _scales(
    raster_width: float,
    raster_height: float,
    page_width: float,
    page_height: float
) -> Tuple[float, float]:
    if raster_width <= 0 or raster_height <= 0:
        raise ValueError(f"Invalid raster size: {raster_width}x{raster_height}")
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f"Invalid page size: {page_width}x{page_height}")
    return page_width / raster_width, page_height / raster_height


def to_page_point(
    pixel_x: float,
    pixel_y: float,
    pixel_bbox_height: float,
    raster_width: float,
    raster_height: float,
    page_width: float,
    page_height: float
) -> Tuple[float, float, float]:
    """
    Map a raster anchor to a page-space text anchor.

    Args:
        pixel_x: Left edge of the box in pixels
        pixel_y: Bottom edge of the box in pixels (max y, since pixel y grows down)
        pixel_bbox_height: Box height in pixels
        raster_width: Rendered image width in pixels
        raster_height: Rendered image height in pixels
        page_width: Page width in points
        page_height: Page height in points

    Returns:
        (point_x, point_y, font_size) with point_y measured from the page bottom
    """
    scale_x, scale_y = _scales(raster_width, raster_height, page_width, page_height)

    point_x = pixel_x * scale_x
    point_y = page_height - (pixel_y * scale_y)
    font_size = pixel_bbox_height * scale_y

    return point_x, point_y, font_size


def map_bbox(
    bbox: PixelBBox,
    raster_width: float,
    raster_height: float,
    page_width: float,
    page_height: float
) -> PageBox:
    """Map a raster bounding box to a page-space box"""
    scale_x, scale_y = _scales(raster_width, raster_height, page_width, page_height)
    x0, y0, x1, y1 = bbox

    return PageBox(
        x0=x0 * scale_x,
        y0=page_height - y1 * scale_y,
        x1=x1 * scale_x,
        y1=page_height - y0 * scale_y,
    )


def to_raster_bbox(
    box: PageBox,
    raster_width: float,
    raster_height: float,
    page_width: float,
    page_height: float
) -> PixelBBox:
    """Inverse of map_bbox"""
    scale_x, scale_y = _scales(raster_width, raster_height, page_width, page_height)

    return (
        box.x0 / scale_x,
        (page_height - box.y1) / scale_y,
        box.x1 / scale_x,
        (page_height - box.y0) / scale_y,
    )
