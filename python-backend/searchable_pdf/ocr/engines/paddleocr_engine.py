"""
PaddleOCR Engine Implementation
High-accuracy OCR with optional GPU support. Recognizes text lines;
each line polygon is reduced to an axis-aligned box.
"""

import gc
import logging
import os
import time
from typing import Any, List, Optional, Tuple

import numpy as np
import psutil

from ..base import OCREngine, OCRResult, OCRConfig, RecognizedWord

logger = logging.getLogger(__name__)

# Tesseract language codes -> PaddleOCR language codes
PADDLE_LANGUAGES = {
    'eng': 'en',
    'deu': 'german',
    'fra': 'french',
    'spa': 'es',
    'ita': 'it',
    'por': 'pt',
    'chi_sim': 'ch',
    'jpn': 'japan',
    'kor': 'korean',
}


def polygon_to_bbox(poly: Any) -> Optional[Tuple[float, float, float, float]]:
    """Reduce a detection polygon [[x, y], ...] to (x0, y0, x1, y1)"""
    if hasattr(poly, 'tolist'):
        poly = poly.tolist()
    try:
        xs = [float(p[0]) for p in poly]
        ys = [float(p[1]) for p in poly]
    except (TypeError, ValueError, IndexError):
        return None
    if not xs or not ys:
        return None
    return min(xs), min(ys), max(xs), max(ys)


class PaddleOCREngine(OCREngine):
    """PaddleOCR 3.x implementation"""

    def __init__(self, config: OCRConfig):
        super().__init__(config)
        self.ocr = None
        self._gpu_available = False

    def _check_gpu_available(self) -> bool:
        """Check if GPU is available for PaddlePaddle"""
        try:
            import paddle
            return paddle.device.is_compiled_with_cuda() and paddle.device.cuda.device_count() > 0
        except Exception:
            return False

    def initialize(self) -> None:
        """Initialize PaddleOCR engine"""
        if self._initialized:
            logger.warning("PaddleOCR already initialized")
            return

        try:
            from paddleocr import PaddleOCR
        except ImportError as e:
            logger.error(f"PaddleOCR not installed: {e}")
            raise RuntimeError(
                "PaddleOCR is not installed. "
                "Install with: pip install paddleocr paddlepaddle"
            ) from e

        use_gpu = self.config.use_gpu and self._check_gpu_available()
        if self.config.use_gpu and not use_gpu:
            logger.warning("GPU requested but not available, using CPU")

        lang = self.config.languages[0] if self.config.languages else 'eng'
        ocr_kwargs = {
            'lang': PADDLE_LANGUAGES.get(lang, lang),
            'use_textline_orientation': self.config.enable_angle_classification,
            'device': f'gpu:{self.config.gpu_id}' if use_gpu else 'cpu',
        }
        ocr_kwargs.update(self.config.engine_settings)

        logger.info(f"Creating PaddleOCR instance with kwargs: {ocr_kwargs}")
        self.ocr = PaddleOCR(**ocr_kwargs)
        self._gpu_available = use_gpu
        self._initialized = True
        logger.info(f"PaddleOCR initialized successfully (GPU: {use_gpu})")

    def _parse_result(self, result: Any) -> Tuple[List[RecognizedWord], List[str]]:
        words: List[RecognizedWord] = []
        lines: List[str] = []

        if not result:
            return words, lines

        # Paddle 3.x returns a list with one dict per image
        ocr_data = result[0]
        texts = ocr_data.get('rec_texts', [])
        scores = ocr_data.get('rec_scores', [])
        polys = ocr_data.get('rec_polys', [])

        for text, score, poly in zip(texts, scores, polys):
            if not text or not text.strip():
                continue
            if float(score) < self.config.confidence_threshold:
                continue
            lines.append(text.strip())
            bbox = polygon_to_bbox(poly)
            if bbox is not None:
                words.append(RecognizedWord(text=text.strip(), bbox=bbox, confidence=float(score)))

        return words, lines

    def process_image(self, image: np.ndarray) -> OCRResult:
        """
        Process a single image with PaddleOCR.

        Args:
            image: Image as numpy array (RGB)

        Returns:
            OCRResult with line boxes and whole-page text
        """
        if not self._initialized:
            raise RuntimeError("OCR engine not initialized")

        start_time = time.time()
        height, width = image.shape[:2]

        try:
            result = self.ocr.predict(image)
            words, lines = self._parse_result(result)
            avg_confidence = (
                sum(w.confidence for w in words) / len(words) if words else 0.0
            )

            return OCRResult(
                text='\n'.join(lines),
                confidence=avg_confidence,
                words=words,
                image_width=width,
                image_height=height,
                raw_result=result,
                processing_time=time.time() - start_time
            )

        except Exception as e:
            logger.error(f"OCR processing failed: {e}", exc_info=True)
            return OCRResult(
                text="",
                confidence=0.0,
                image_width=width,
                image_height=height,
                error=str(e),
                processing_time=time.time() - start_time
            )

    def cleanup(self) -> None:
        """Release PaddleOCR resources"""
        if self.ocr is not None:
            del self.ocr
            self.ocr = None

        gc.collect()
        self._initialized = False
        logger.info("PaddleOCR engine cleaned up")

    def get_memory_usage(self) -> int:
        """Get estimated memory usage in bytes"""
        return psutil.Process(os.getpid()).memory_info().rss

    def supports_gpu(self) -> bool:
        """Check if GPU is supported and available"""
        return self._gpu_available
