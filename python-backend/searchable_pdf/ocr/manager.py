"""
OCR Engine Handle
Single-owner lifecycle for one OCR engine, with engine fallback
"""

import logging
from typing import Callable, Optional

import numpy as np

from .base import OCREngine, OCRConfig, OCRResult
from ..exceptions import EngineUnavailableError

logger = logging.getLogger(__name__)

EngineFactory = Callable[[str, OCRConfig], OCREngine]


def create_engine(engine_name: str, config: OCRConfig) -> OCREngine:
    """
    Factory method to create OCR engine.

    Args:
        engine_name: "paddleocr" or "tesseract"
        config: Engine configuration

    Returns:
        Uninitialized OCREngine instance

    Raises:
        ValueError: If engine name is unknown
    """
    if engine_name == "paddleocr":
        from .engines.paddleocr_engine import PaddleOCREngine
        return PaddleOCREngine(config)
    elif engine_name == "tesseract":
        from .engines.tesseract_engine import TesseractEngine
        return TesseractEngine(config)
    else:
        raise ValueError(f"Unknown OCR engine: {engine_name}")


class OCREngineHandle:
    """
    Exclusive ownership of one running OCR engine.

    The handle is acquired once and released exactly once; release is
    idempotent so it can sit in a ``finally`` or ``__exit__`` safely.

    Example:
        >>> with OCREngineHandle(config) as engine:
        ...     result = engine.recognize(image)
    """

    def __init__(
        self,
        config: Optional[OCRConfig] = None,
        fallback_enabled: bool = True,
        engine_factory: Optional[EngineFactory] = None
    ):
        self.config = config or OCRConfig()
        self.fallback_enabled = fallback_enabled
        self.engine_factory = engine_factory or create_engine
        self.engine: Optional[OCREngine] = None
        self._engine_name: Optional[str] = None
        self._released = False

    def _start(self, engine_name: str) -> OCREngine:
        engine = self.engine_factory(engine_name, self.config)
        try:
            engine.initialize()
        except Exception:
            # Free whatever a half-initialized engine allocated
            try:
                engine.cleanup()
            except Exception as cleanup_error:
                logger.debug(f"Cleanup after failed init also failed: {cleanup_error}")
            raise
        return engine

    def acquire(self) -> 'OCREngineHandle':
        """
        Create and initialize the engine.

        Raises:
            EngineUnavailableError: If no engine could be initialized
        """
        if self.engine is not None:
            logger.warning("OCR engine already acquired")
            return self
        if self._released:
            raise EngineUnavailableError("OCR engine handle was already released")

        engine_name = self.config.engine
        if engine_name == "auto":
            # Prefer PaddleOCR, Tesseract is the fallback
            engine_name = "paddleocr"

        try:
            self.engine = self._start(engine_name)
            self._engine_name = engine_name
            logger.info(f"OCR engine '{engine_name}' initialized successfully")
            return self

        except Exception as e:
            logger.error(f"Failed to initialize {engine_name}: {e}")
            if not self.fallback_enabled or engine_name == "tesseract":
                raise EngineUnavailableError(
                    f"Failed to initialize OCR engine '{engine_name}': {e}", e
                ) from e
            primary_error = e

        logger.info("Attempting fallback to Tesseract...")
        try:
            self.engine = self._start("tesseract")
            self._engine_name = "tesseract"
            logger.info("Fallback to Tesseract successful")
            return self
        except Exception as fallback_error:
            logger.error(f"Fallback also failed: {fallback_error}")
            raise EngineUnavailableError(
                f"Failed to initialize any OCR engine. "
                f"Primary error: {primary_error}, Fallback error: {fallback_error}",
                fallback_error
            ) from fallback_error

    def recognize(self, image: np.ndarray) -> OCRResult:
        """
        Run OCR on a rendered page.

        Raises:
            RuntimeError: If the handle holds no engine
        """
        if self.engine is None:
            raise RuntimeError("OCR engine not acquired. Call acquire() first.")
        return self.engine.process_image(image)

    def release(self) -> None:
        """Clean up the engine. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        if self.engine is not None:
            try:
                self.engine.cleanup()
                logger.info(f"OCR engine '{self._engine_name}' released")
            except Exception as e:
                # Work done with the engine stays valid
                logger.error(f"OCR engine '{self._engine_name}' cleanup failed: {e}", exc_info=True)
            finally:
                self.engine = None

    @property
    def engine_name(self) -> Optional[str]:
        """Name of the active engine"""
        return self._engine_name

    @property
    def is_acquired(self) -> bool:
        return self.engine is not None

    def get_engine_info(self) -> dict:
        """Summary of the active engine"""
        memory = self.engine.get_memory_usage() if self.engine is not None else 0
        return {
            'engine': self._engine_name,
            'gpu_enabled': self.engine.supports_gpu() if self.engine is not None else False,
            'memory_usage_mb': memory / (1024 * 1024),
            'languages': list(self.config.languages),
        }

    def __enter__(self):
        """Context manager support"""
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager cleanup"""
        self.release()
        return False
