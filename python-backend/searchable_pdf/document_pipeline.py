"""
Document Pipeline

Loads one PDF from memory, runs every page through the page pipeline in
order and serializes the searchable result.
"""

import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Callable, List, Optional

from .config import SearchableConfig
from .page_pipeline import PagePipeline, PageResult
from .pdf_processor import OutputDocument, PDFProcessor

logger = logging.getLogger(__name__)

PageProgress = Callable[[int, int], None]


@dataclass
class DocumentResult:
    """Serialized searchable PDF and per-page outcomes"""
    filename: str
    output_bytes: bytes
    page_results: List[PageResult] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.page_results)

    @property
    def pages_with_text(self) -> int:
        return sum(1 for page in self.page_results if page.has_text_layer)


def output_filename(filename: str, suffix: str = "-searchable") -> str:
    """
    Derive the output filename: "scan.pdf" -> "scan-searchable.pdf".

    Inputs without an extension get ".pdf".
    """
    name = PurePath(filename or "document").name
    path = PurePath(name)
    extension = path.suffix or ".pdf"
    stem = path.stem if path.suffix else name
    return f"{stem}{suffix}{extension}"


class DocumentPipeline:
    """Makes a single PDF searchable"""

    def __init__(self, page_pipeline: PagePipeline, config: Optional[SearchableConfig] = None):
        self.page_pipeline = page_pipeline
        self.config = config or SearchableConfig()

    def _copy_metadata(self, source: PDFProcessor, output: OutputDocument) -> None:
        try:
            output.copy_metadata(source.get_metadata())
        except Exception as e:
            logger.warning(f"Could not copy PDF metadata: {e}")

    def process(
        self,
        data: bytes,
        filename: str,
        progress: Optional[PageProgress] = None
    ) -> DocumentResult:
        """
        Make one document searchable.

        Args:
            data: Source PDF bytes
            filename: Source filename, used for the output name and logs
            progress: Called with (page_index, page_total) after each page,
                page_index being 1-based

        Returns:
            DocumentResult with the output bytes

        Raises:
            DocumentLoadError: If the source cannot be opened
            DocumentSaveError: If the output cannot be serialized
        """
        with PDFProcessor(data, filename) as source, OutputDocument() as output:
            if self.config.copy_metadata:
                self._copy_metadata(source, output)

            total_pages = source.get_page_count()
            page_results = []

            for page_num in range(total_pages):
                page_results.append(self.page_pipeline.process(source, output, page_num))
                if progress is not None:
                    progress(page_num + 1, total_pages)

            output_bytes = output.to_bytes(compress=self.config.compress_output)

        result = DocumentResult(
            filename=output_filename(filename, self.config.output_suffix),
            output_bytes=output_bytes,
            page_results=page_results,
        )
        logger.info(
            f"{filename}: {result.page_count} pages, "
            f"{result.pages_with_text} with text layer, {len(output_bytes)} bytes"
        )
        return result
