"""Searchable PDF backend: adds invisible OCR text layers to scanned PDFs"""

from .config import SearchableConfig, load_config
from .exceptions import (
    SearchablePDFError,
    EngineUnavailableError,
    DocumentLoadError,
    DocumentSaveError,
    PageRenderError,
    PageRecognitionError,
)

__version__ = "0.1.0"

__all__ = [
    'SearchableConfig',
    'load_config',
    'SearchablePDFError',
    'EngineUnavailableError',
    'DocumentLoadError',
    'DocumentSaveError',
    'PageRenderError',
    'PageRecognitionError',
    'SearchableBatchService',
    'BatchProgress',
    'DocumentOutcome',
    'InputDocument',
    'process_batch',
]


# Lazy import so config/exceptions can be used without loading PyMuPDF
def __getattr__(name):
    if name in ("SearchableBatchService", "BatchProgress", "DocumentOutcome",
                "InputDocument", "process_batch"):
        from . import batch_service
        return getattr(batch_service, name)
    raise AttributeError(f"module 'searchable_pdf' has no attribute '{name}'")
