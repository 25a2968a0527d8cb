"""
Tesseract OCR Engine Implementation
Lightweight CPU-only OCR engine with word-level bounding boxes
"""

import logging
import os
import time
from typing import Dict, List, Tuple

import numpy as np
import psutil
import pytesseract
from PIL import Image

from ..base import OCREngine, OCRResult, OCRConfig, RecognizedWord
from ...resource_path import setup_tesseract_environment, verify_tesseract_setup

logger = logging.getLogger(__name__)

# Tokens Tesseract commonly hallucinates from rules, borders and speckles
GARBAGE_TOKENS = {'|', '||', '|||', '#', '##', '###', '...', '---', ']', '[', '}{', '()'}


class TesseractEngine(OCREngine):
    """Tesseract OCR implementation (CPU-only, lightweight)"""

    def initialize(self) -> None:
        """Initialize Tesseract OCR engine with bundled or system executable"""
        if self._initialized:
            logger.warning("Tesseract already initialized")
            return

        tesseract_config = setup_tesseract_environment()
        if tesseract_config['tesseract_cmd']:
            pytesseract.pytesseract.tesseract_cmd = tesseract_config['tesseract_cmd']
            logger.info(f"Using bundled Tesseract: {tesseract_config['tesseract_cmd']}")

        success, message = verify_tesseract_setup(tesseract_config)
        if not success:
            logger.error(f"Tesseract setup verification failed: {message}")
            raise RuntimeError(f"Tesseract configuration error: {message}")

        try:
            version = pytesseract.get_tesseract_version()
        except Exception as e:
            logger.error(f"Tesseract executable test failed: {e}")
            raise RuntimeError(f"Tesseract executable not working: {e}") from e

        self._initialized = True
        logger.info(f"Tesseract {version} initialized (mode: {tesseract_config['mode']})")

    @staticmethod
    def _is_valid_text(text: str) -> bool:
        """
        Reject OCR garbage such as stray rules and punctuation runs.

        Args:
            text: Word text (already stripped)

        Returns:
            True if text appears valid
        """
        if not text or text in GARBAGE_TOKENS:
            return False
        # At least one letter or digit
        return any(c.isalnum() for c in text)

    def _parse_data(self, data: Dict[str, list]) -> Tuple[List[RecognizedWord], str]:
        """
        Build word boxes and line-joined text from image_to_data output.
        """
        min_conf = self.config.confidence_threshold * 100
        words: List[RecognizedWord] = []
        lines: Dict[Tuple[int, int, int], List[str]] = {}

        for i, raw_text in enumerate(data['text']):
            text = (raw_text or '').strip()
            try:
                conf = float(data['conf'][i])
            except (TypeError, ValueError):
                continue

            # conf == -1 marks block/paragraph/line rows, not words
            if conf < 0 or not text:
                continue
            if conf < min_conf or not self._is_valid_text(text):
                continue

            left, top = data['left'][i], data['top'][i]
            width, height = data['width'][i], data['height'][i]
            words.append(
                RecognizedWord(
                    text=text,
                    bbox=(left, top, left + width, top + height),
                    confidence=conf / 100.0,
                )
            )

            line_key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(line_key, []).append(text)

        full_text = '\n'.join(' '.join(parts) for parts in lines.values())
        return words, full_text

    def process_image(self, image: np.ndarray) -> OCRResult:
        """
        Process a single image with Tesseract.

        Args:
            image: Image as numpy array (RGB or grayscale)

        Returns:
            OCRResult with word boxes and whole-page text
        """
        if not self._initialized:
            raise RuntimeError("OCR engine not initialized")

        start_time = time.time()
        height, width = image.shape[:2]

        try:
            pil_image = Image.fromarray(image)
            lang = '+'.join(self.config.languages) if self.config.languages else 'eng'
            custom_config = f'--oem 3 --psm {self.config.psm}'

            data = pytesseract.image_to_data(
                pil_image,
                lang=lang,
                config=custom_config,
                output_type=pytesseract.Output.DICT
            )

            words, full_text = self._parse_data(data)
            avg_confidence = (
                sum(w.confidence for w in words) / len(words) if words else 0.0
            )

            logger.debug(
                f"Tesseract recognized {len(words)} words "
                f"(avg confidence {avg_confidence:.2f})"
            )

            return OCRResult(
                text=full_text,
                confidence=avg_confidence,
                words=words,
                image_width=width,
                image_height=height,
                raw_result=data,
                processing_time=time.time() - start_time
            )

        except Exception as e:
            logger.error(f"Tesseract OCR processing failed: {e}", exc_info=True)
            return OCRResult(
                text="",
                confidence=0.0,
                image_width=width,
                image_height=height,
                error=str(e),
                processing_time=time.time() - start_time
            )

    def cleanup(self) -> None:
        """Release Tesseract resources"""
        self._initialized = False
        logger.info("Tesseract engine cleaned up")

    def get_memory_usage(self) -> int:
        """Get estimated memory usage in bytes"""
        return psutil.Process(os.getpid()).memory_info().rss
