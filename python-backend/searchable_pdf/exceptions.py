"""
Error types for the searchable PDF pipeline

Page-level errors are recovered inside the page pipeline, document-level
errors are recorded per document by the batch service, and engine errors
abort the whole batch.
"""

from typing import Optional


class SearchablePDFError(Exception):
    """Base class for all pipeline errors"""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class EngineUnavailableError(SearchablePDFError):
    """OCR engine could not be created or initialized"""


class DocumentLoadError(SearchablePDFError):
    """Source document could not be opened"""


class DocumentSaveError(SearchablePDFError):
    """Output document could not be serialized"""


class PageRenderError(SearchablePDFError):
    """A page could not be rasterized for OCR"""


class PageRecognitionError(SearchablePDFError):
    """The OCR engine failed on a rendered page"""
