"""
Base OCR Engine Abstract Interface
Defines the contract that all OCR engines must implement
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Literal, Dict, Any, Tuple
import numpy as np


# (x0, y0, x1, y1) in raster pixels, top-left origin
PixelBBox = Tuple[float, float, float, float]


@dataclass
class RecognizedWord:
    """A single recognized text unit with its raster bounding box"""
    text: str
    bbox: PixelBBox
    confidence: float = 0.0


@dataclass
class OCRResult:
    """Result from OCR processing"""
    text: str  # Whole-page text, lines separated by '\n'
    confidence: float
    words: List[RecognizedWord] = field(default_factory=list)
    image_width: int = 0
    image_height: int = 0
    raw_result: Optional[Any] = None  # Engine-specific raw result
    error: Optional[str] = None
    processing_time: float = 0.0  # Processing time in seconds

    @property
    def has_words(self) -> bool:
        return bool(self.words)


@dataclass
class OCRConfig:
    """Configuration for OCR processing"""
    # Engine selection
    engine: Literal["paddleocr", "tesseract", "auto"] = "tesseract"

    # Hardware settings
    use_gpu: bool = False
    gpu_id: int = 0

    # Language settings (Tesseract codes, e.g. "eng", "deu")
    languages: List[str] = field(default_factory=lambda: ["eng"])

    # Minimum word confidence (0-1) for a word to be kept
    confidence_threshold: float = 0.3

    # Tesseract page segmentation mode
    psm: int = 3

    # Detect and correct text rotation (PaddleOCR)
    enable_angle_classification: bool = True

    # Engine-specific settings
    engine_settings: Dict[str, Any] = field(default_factory=dict)


class OCREngine(ABC):
    """Abstract base class for OCR engines"""

    def __init__(self, config: OCRConfig):
        self.config = config
        self._initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the OCR engine, load models, etc.
        Should be called before first use.
        """
        pass

    @abstractmethod
    def process_image(self, image: np.ndarray) -> OCRResult:
        """
        Process a single image and return OCR result.

        Blank or near-blank images must produce an empty result,
        not an exception.

        Args:
            image: Image as numpy array (RGB or grayscale)

        Returns:
            OCRResult with word boxes and whole-page text
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """
        Release resources, unload models, free memory.
        Should be called when OCR engine is no longer needed.
        """
        pass

    @abstractmethod
    def get_memory_usage(self) -> int:
        """
        Get current memory usage in bytes.

        Returns:
            Memory usage in bytes
        """
        pass

    def supports_gpu(self) -> bool:
        """Check if this engine is running with GPU acceleration"""
        return False

    @property
    def is_initialized(self) -> bool:
        """Check if engine has been initialized"""
        return self._initialized

    def __enter__(self):
        """Context manager support"""
        if not self._initialized:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager cleanup"""
        self.cleanup()
        return False
