"""
Searchable PDF Configuration

User-facing settings for rendering, OCR and the invisible text layer.
Settings can come from defaults, a frontend dictionary or a JSON file.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Any, List, Optional

from .ocr.base import OCRConfig

logger = logging.getLogger(__name__)

VALID_ENGINES = ("tesseract", "paddleocr", "auto")


@dataclass
class SearchableConfig:
    """Configuration for the searchable PDF pipeline"""

    # OCR engine
    engine: str = "tesseract"  # "tesseract", "paddleocr", "auto"
    fallback_enabled: bool = True  # Fall back to Tesseract if PaddleOCR fails
    use_gpu: bool = False
    languages: List[str] = field(default_factory=lambda: ["eng"])
    min_word_confidence: float = 0.3  # 0-1, words below are not embedded
    tesseract_psm: int = 3  # Automatic page segmentation

    # Rendering (upscale relative to 72 DPI, must be > 1)
    render_scale: float = 2.0

    # Text layer
    text_opacity: float = 0.01  # Nearly invisible but searchable
    text_render_mode: int = 0  # 0 = fill, 3 = invisible
    font_name: str = "helv"
    min_font_size: float = 1.0

    # Fallback line placement (page points, used when OCR has no word boxes)
    fallback_margin: float = 50.0
    fallback_font_size: float = 12.0
    fallback_line_spacing: float = 1.5

    # Output
    copy_metadata: bool = True
    compress_output: bool = True
    output_suffix: str = "-searchable"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SearchableConfig':
        """
        Create from dictionary (e.g. frontend options).

        Unknown keys are ignored so older frontends keep working.
        """
        if not data:
            return cls()

        valid_keys = set(cls.__dataclass_fields__.keys())
        unknown = [k for k in data if k not in valid_keys]
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {unknown}")

        filtered_data = {k: v for k, v in data.items() if k in valid_keys}
        if isinstance(filtered_data.get("languages"), str):
            filtered_data["languages"] = [filtered_data["languages"]]

        config = cls(**filtered_data)
        config.validate()
        return config

    def validate(self) -> None:
        """
        Validate settings.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.engine not in VALID_ENGINES:
            raise ValueError(f"Unknown OCR engine: {self.engine}")
        if self.render_scale <= 1.0:
            raise ValueError(f"render_scale must be greater than 1, got {self.render_scale}")
        if not 0.0 < self.text_opacity <= 1.0:
            raise ValueError(f"text_opacity must be in (0, 1], got {self.text_opacity}")
        if self.text_render_mode not in range(8):
            raise ValueError(f"text_render_mode must be 0-7, got {self.text_render_mode}")
        if not 0.0 <= self.min_word_confidence <= 1.0:
            raise ValueError(
                f"min_word_confidence must be in [0, 1], got {self.min_word_confidence}"
            )
        if self.min_font_size <= 0:
            raise ValueError(f"min_font_size must be positive, got {self.min_font_size}")
        if self.fallback_font_size <= 0 or self.fallback_line_spacing <= 0:
            raise ValueError("fallback_font_size and fallback_line_spacing must be positive")
        if not self.languages:
            raise ValueError("At least one OCR language is required")

    def to_ocr_config(self) -> OCRConfig:
        """Build the engine-level configuration"""
        return OCRConfig(
            engine=self.engine,
            use_gpu=self.use_gpu,
            languages=list(self.languages),
            confidence_threshold=self.min_word_confidence,
            psm=self.tesseract_psm,
        )


def load_config(path: Optional[Path] = None) -> SearchableConfig:
    """
    Load configuration from a JSON file.

    Args:
        path: Path to JSON settings file. Missing file means defaults.

    Returns:
        Validated configuration
    """
    if path is None or not Path(path).exists():
        logger.info(f"No config file at {path}, using defaults")
        return SearchableConfig()

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    logger.info(f"Loaded configuration from {path}")
    return SearchableConfig.from_dict(data)
