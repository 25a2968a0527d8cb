"""
Searchable PDF Batch Service

Processes a batch of PDFs one after another with a single OCR engine:
- One engine per batch, released exactly once on every exit path
- Per-document failure isolation (one bad file never fails the batch)
- Progress reporting per document and per page
- Cancellation between documents
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .config import SearchableConfig
from .document_pipeline import DocumentPipeline, output_filename
from .exceptions import SearchablePDFError
from .ocr.manager import EngineFactory, OCREngineHandle
from .page_pipeline import PagePipeline

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"


@dataclass
class InputDocument:
    """A PDF to make searchable"""
    data: bytes
    filename: str


@dataclass
class BatchProgress:
    """Batch position, updated as documents and pages complete"""
    current_document: int = 0  # 1-indexed, 0 before the first document
    total_documents: int = 0
    current_page: int = 0
    total_pages: int = 0
    filename: Optional[str] = None

    @property
    def percent(self) -> float:
        """Overall completion estimate, counting pages of the current document"""
        if self.total_documents == 0:
            return 0.0
        done = max(self.current_document - 1, 0)
        if self.total_pages > 0:
            done += self.current_page / self.total_pages
        return min(done / self.total_documents * 100, 100.0)


@dataclass
class DocumentOutcome:
    """Per-document batch result: output bytes or an error reason"""
    filename: str
    output_filename: Optional[str] = None
    output_bytes: Optional[bytes] = None
    error: Optional[str] = None
    pages_processed: int = 0
    pages_with_text: int = 0

    @property
    def success(self) -> bool:
        return self.error is None and self.output_bytes is not None

    @property
    def cancelled(self) -> bool:
        return self.error == CANCELLED_REASON

    def to_dict(self, include_bytes: bool = False) -> Dict[str, Any]:
        data = {
            'filename': self.filename,
            'output_filename': self.output_filename,
            'success': self.success,
            'error': self.error,
            'pages_processed': self.pages_processed,
            'pages_with_text': self.pages_with_text,
        }
        if include_bytes:
            data['output_bytes'] = self.output_bytes
        return data


@dataclass
class ProcessingStats:
    """Statistics for batch processing"""
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    cancelled_files: int = 0
    total_pages_processed: int = 0
    total_pages_ocr: int = 0
    start_time: float = 0.0
    end_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary"""
        duration = self.end_time - self.start_time if self.end_time > 0 else 0
        return {
            'total_files': self.total_files,
            'successful_files': self.successful_files,
            'failed_files': self.failed_files,
            'cancelled_files': self.cancelled_files,
            'total_pages_processed': self.total_pages_processed,
            'total_pages_ocr': self.total_pages_ocr,
            'duration_seconds': round(duration, 2),
            'pages_per_second': round(self.total_pages_processed / duration, 2) if duration > 0 else 0
        }


DocumentLike = Union[InputDocument, Tuple[bytes, str], Dict[str, Any]]
ProgressSink = Callable[[BatchProgress], None]


def to_input_document(item: DocumentLike) -> InputDocument:
    """Accept InputDocument, (bytes, filename) or {"bytes"/"data", "filename"}"""
    if isinstance(item, InputDocument):
        return item
    if isinstance(item, dict):
        data = item.get('bytes', item.get('data'))
        return InputDocument(data=data or b"", filename=item.get('filename') or "document.pdf")
    data, filename = item
    return InputDocument(data=data, filename=filename)


class SearchableBatchService:
    """
    Makes batches of scanned PDFs searchable.

    Documents are processed strictly in order by a single worker. The OCR
    engine is the only expensive resource; the service creates it at the
    start of each batch and releases it before process_batch returns.
    """

    def __init__(
        self,
        config: Optional[SearchableConfig] = None,
        progress_callback: Optional[ProgressSink] = None,
        cancellation_flag: Optional[threading.Event] = None,
        engine_factory: Optional[EngineFactory] = None
    ):
        """
        Initialize batch service.

        Args:
            config: Pipeline configuration (defaults if not provided)
            progress_callback: Called with a BatchProgress snapshot when a
                document starts and after every page
            cancellation_flag: threading.Event checked between documents
            engine_factory: Override for engine construction (engine_name, OCRConfig)
        """
        self.config = config or SearchableConfig()
        self.config.validate()
        self.progress_callback = progress_callback
        self.cancellation_flag = cancellation_flag
        self.engine_factory = engine_factory
        self.stats = ProcessingStats()
        self.engine_info: Dict[str, Any] = {}

    def _is_cancelled(self) -> bool:
        """Check if processing has been cancelled"""
        if self.cancellation_flag is None:
            return False
        return self.cancellation_flag.is_set()

    def _report_progress(self, progress: BatchProgress) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(replace(progress))
        except Exception as e:
            logger.error(f"Progress callback failed: {e}")

    def _create_engine_handle(self) -> OCREngineHandle:
        return OCREngineHandle(
            config=self.config.to_ocr_config(),
            fallback_enabled=self.config.fallback_enabled,
            engine_factory=self.engine_factory,
        )

    def _new_outcome(self, document: InputDocument) -> DocumentOutcome:
        return DocumentOutcome(
            filename=document.filename,
            output_filename=output_filename(document.filename, self.config.output_suffix),
        )

    def _process_document(
        self,
        pipeline: DocumentPipeline,
        document: InputDocument,
        progress: BatchProgress
    ) -> DocumentOutcome:
        outcome = self._new_outcome(document)

        def page_progress(page_index: int, page_total: int) -> None:
            progress.current_page = page_index
            progress.total_pages = page_total
            self._report_progress(progress)

        try:
            result = pipeline.process(document.data, document.filename, progress=page_progress)
        except SearchablePDFError as e:
            logger.error(f"Failed to process {document.filename}: {e.message}")
            outcome.error = e.message
            return outcome
        except Exception as e:
            logger.error(f"Unexpected error processing {document.filename}: {e}", exc_info=True)
            outcome.error = f"unexpected error: {e}"
            return outcome

        outcome.output_filename = result.filename
        outcome.output_bytes = result.output_bytes
        outcome.pages_processed = result.page_count
        outcome.pages_with_text = result.pages_with_text
        return outcome

    def process_batch(self, documents: Iterable[DocumentLike]) -> List[DocumentOutcome]:
        """
        Make every document searchable.

        Args:
            documents: PDFs with their filenames, processed in order

        Returns:
            One DocumentOutcome per input document, in input order

        Raises:
            EngineUnavailableError: If no OCR engine could be started; raised
                before any document is touched
        """
        inputs = [to_input_document(item) for item in documents]
        self.stats = ProcessingStats(total_files=len(inputs), start_time=time.time())
        progress = BatchProgress(total_documents=len(inputs))
        outcomes: List[DocumentOutcome] = []

        logger.info(f"Starting batch processing: {len(inputs)} files")

        with self._create_engine_handle() as engine:
            self.engine_info = engine.get_engine_info()
            pipeline = DocumentPipeline(PagePipeline(engine, self.config), self.config)

            for index, document in enumerate(inputs, start=1):
                if self._is_cancelled():
                    logger.info(f"Batch processing cancelled before file {index}/{len(inputs)}")
                    break

                progress.current_document = index
                progress.current_page = 0
                progress.total_pages = 0
                progress.filename = document.filename
                self._report_progress(progress)

                logger.info(f"Processing file {index}/{len(inputs)}: {document.filename}")
                outcome = self._process_document(pipeline, document, progress)
                outcomes.append(outcome)

                self.stats.total_pages_processed += outcome.pages_processed
                self.stats.total_pages_ocr += outcome.pages_with_text
                if outcome.success:
                    self.stats.successful_files += 1
                else:
                    self.stats.failed_files += 1

        for document in inputs[len(outcomes):]:
            outcome = self._new_outcome(document)
            outcome.error = CANCELLED_REASON
            outcomes.append(outcome)
            self.stats.cancelled_files += 1

        self.stats.end_time = time.time()
        duration = self.stats.end_time - self.stats.start_time
        logger.info(
            f"Batch processing complete: "
            f"{self.stats.successful_files} successful, "
            f"{self.stats.failed_files} failed, "
            f"{self.stats.cancelled_files} cancelled, "
            f"{self.stats.total_pages_processed} pages processed "
            f"({self.stats.total_pages_ocr} with text layer) "
            f"in {duration:.1f}s"
        )
        return outcomes


def process_batch(
    documents: Iterable[DocumentLike],
    progress_sink: Optional[ProgressSink] = None,
    config: Optional[SearchableConfig] = None,
    cancellation_flag: Optional[threading.Event] = None,
    engine_factory: Optional[EngineFactory] = None
) -> List[DocumentOutcome]:
    """
    Convenience wrapper around SearchableBatchService.

    Example:
        >>> outcomes = process_batch([(pdf_bytes, "scan.pdf")])
        >>> outcomes[0].output_filename
        'scan-searchable.pdf'
    """
    service = SearchableBatchService(
        config=config,
        progress_callback=progress_sink,
        cancellation_flag=cancellation_flag,
        engine_factory=engine_factory,
    )
    return service.process_batch(documents)
