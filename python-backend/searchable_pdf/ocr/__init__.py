"""
OCR Package
Engine abstraction, engine lifecycle and result normalization
"""

from .base import OCREngine, OCRResult, OCRConfig, RecognizedWord
from .normalizer import FragmentPrecursor, normalize

__all__ = [
    'OCREngine',
    'OCRResult',
    'OCRConfig',
    'RecognizedWord',
    'FragmentPrecursor',
    'normalize',
    'OCREngineHandle',
    'create_engine',
]


# Lazy imports keep `from searchable_pdf.ocr import OCRResult` free of
# engine-related imports
def __getattr__(name):
    if name == "OCREngineHandle":
        from .manager import OCREngineHandle
        return OCREngineHandle
    if name == "create_engine":
        from .manager import create_engine
        return create_engine
    raise AttributeError(f"module 'searchable_pdf.ocr' has no attribute '{name}'")
