"""
Test helpers: scanned-looking PDFs built with PyMuPDF + Pillow and a
scripted fake OCR engine that counts its lifecycle calls.
"""

import io
from typing import Callable, List, Optional

import fitz  # PyMuPDF
import numpy as np
from PIL import Image, ImageDraw

from searchable_pdf.ocr.base import OCREngine, OCRConfig, OCRResult, RecognizedWord

PAGE_WIDTH = 612
PAGE_HEIGHT = 792


def build_scanned_pdf(
    page_count: int = 3,
    title: Optional[str] = None,
    author: Optional[str] = None,
    subject: Optional[str] = None,
    rotation: int = 0
) -> bytes:
    """Create a PDF whose pages are images only (no text layer)"""
    doc = fitz.open()

    for i in range(page_count):
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)

        img = Image.new('RGB', (PAGE_WIDTH, PAGE_HEIGHT), color='white')
        draw = ImageDraw.Draw(img)
        draw.text((72, 72), f"Scanned Page {i + 1}", fill='black')

        img_buffer = io.BytesIO()
        img.save(img_buffer, format='PNG')
        page.insert_image(fitz.Rect(0, 0, PAGE_WIDTH, PAGE_HEIGHT), stream=img_buffer.getvalue())

        if rotation:
            page.set_rotation(rotation)

    metadata = {k: v for k, v in (("title", title), ("author", author), ("subject", subject)) if v}
    if metadata:
        doc.set_metadata(metadata)

    data = doc.tobytes()
    doc.close()
    return data


def words_result(texts: List[str], image: np.ndarray) -> OCRResult:
    """OCR result with one word per row, boxes inside the image"""
    height, width = image.shape[:2]
    words = []
    for i, text in enumerate(texts):
        top = 100 + i * 60
        words.append(RecognizedWord(text=text, bbox=(100, top, 300, top + 40), confidence=0.9))
    return OCRResult(
        text="\n".join(texts),
        confidence=0.9 if texts else 0.0,
        words=words,
        image_width=width,
        image_height=height,
    )


class FakeEngine(OCREngine):
    """
    Scripted OCR engine.

    ``script`` is called with (call_index, image) and returns an OCRResult
    or raises.
    """

    def __init__(self, config: OCRConfig, script: Callable[[int, np.ndarray], OCRResult],
                 fail_init: bool = False, cleanup_error: Optional[Exception] = None):
        super().__init__(config)
        self.script = script
        self.fail_init = fail_init
        self.cleanup_error = cleanup_error
        self.calls = 0
        self.initialize_count = 0
        self.cleanup_count = 0
        self.images: List[tuple] = []

    def initialize(self) -> None:
        self.initialize_count += 1
        if self.fail_init:
            raise RuntimeError("engine binary missing")
        self._initialized = True

    def process_image(self, image: np.ndarray) -> OCRResult:
        self.images.append(image.shape)
        index = self.calls
        self.calls += 1
        return self.script(index, image)

    def cleanup(self) -> None:
        self.cleanup_count += 1
        self._initialized = False
        if self.cleanup_error is not None:
            raise self.cleanup_error

    def get_memory_usage(self) -> int:
        return 0


class EngineRecorder:
    """Engine factory that remembers every engine it created"""

    def __init__(self, script: Callable[[int, np.ndarray], OCRResult],
                 failing_engines: tuple = (), cleanup_error: Optional[Exception] = None):
        self.script = script
        self.failing_engines = failing_engines
        self.cleanup_error = cleanup_error
        self.engines: List[FakeEngine] = []
        self.names: List[str] = []

    def __call__(self, engine_name: str, config: OCRConfig) -> FakeEngine:
        engine = FakeEngine(config, self.script, fail_init=engine_name in self.failing_engines,
                            cleanup_error=self.cleanup_error)
        self.engines.append(engine)
        self.names.append(engine_name)
        return engine

    @property
    def initialize_count(self) -> int:
        return sum(e.initialize_count for e in self.engines)

    @property
    def cleanup_count(self) -> int:
        return sum(e.cleanup_count for e in self.engines)
