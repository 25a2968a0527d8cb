"""
Tests for the batch orchestrator: isolation, engine lifecycle, progress
and cancellation
"""

import threading

import fitz  # PyMuPDF
import pytest

from searchable_pdf.batch_service import (
    BatchProgress,
    DocumentOutcome,
    InputDocument,
    SearchableBatchService,
    process_batch,
)
from searchable_pdf.config import SearchableConfig
from searchable_pdf.exceptions import EngineUnavailableError
from searchable_pdf.ocr.base import OCRResult

from helpers import EngineRecorder, build_scanned_pdf, words_result


def page_texts(outcome):
    with fitz.open(stream=outcome.output_bytes, filetype="pdf") as doc:
        return [doc[i].get_text("words") for i in range(doc.page_count)]


class TestScenarios:

    def test_three_pages_with_blank_middle_page(self):
        def script(index, image):
            if index == 1:
                return OCRResult(text="", confidence=0.0)
            return words_result([f"p{index + 1}w{n}" for n in range(5)], image)

        recorder = EngineRecorder(script)

        outcomes = process_batch([(build_scanned_pdf(page_count=3), "scan.pdf")],
                                 engine_factory=recorder)

        assert len(outcomes) == 1
        assert outcomes[0].success
        assert outcomes[0].output_filename == "scan-searchable.pdf"
        pages = page_texts(outcomes[0])
        assert [len(words) for words in pages] == [5, 0, 5]
        assert pages[0][0][4] == "p1w0"
        assert pages[2][0][4] == "p3w0"

    def test_valid_then_corrupt_document(self, recorder):
        outcomes = process_batch(
            [
                {"bytes": build_scanned_pdf(page_count=1), "filename": "good.pdf"},
                {"bytes": b"%PDF-1.7\n" + b"\x00" * 128, "filename": "truncated.pdf"},
            ],
            engine_factory=recorder,
        )

        assert len(outcomes) == 2
        assert outcomes[0].success and outcomes[0].output_bytes
        assert not outcomes[1].success
        assert outcomes[1].output_bytes is None
        assert "load failed" in outcomes[1].error


class TestIsolation:

    @pytest.mark.parametrize("count, bad_index", [(3, 1), (5, 2), (6, 4)])
    def test_one_malformed_document(self, recorder, count, bad_index):
        documents = [
            InputDocument(build_scanned_pdf(page_count=1), f"doc{i}.pdf")
            for i in range(count)
        ]
        documents[bad_index] = InputDocument(b"garbage bytes, not a PDF", "bad.pdf")

        outcomes = process_batch(documents, engine_factory=recorder)

        assert len(outcomes) == count
        errors = [i for i, outcome in enumerate(outcomes) if outcome.error]
        assert errors == [bad_index]
        assert sum(outcome.success for outcome in outcomes) == count - 1
        assert [o.filename for o in outcomes] == [d.filename for d in documents]

    def test_unexpected_error_is_recorded_per_document(self, recorder, monkeypatch):
        from searchable_pdf import document_pipeline

        original = document_pipeline.DocumentPipeline.process

        def sometimes_broken(self, data, filename, progress=None):
            if filename == "boom.pdf":
                raise MemoryError("out of memory")
            return original(self, data, filename, progress)

        monkeypatch.setattr(document_pipeline.DocumentPipeline, "process", sometimes_broken)

        outcomes = process_batch(
            [(build_scanned_pdf(1), "a.pdf"), (build_scanned_pdf(1), "boom.pdf"),
             (build_scanned_pdf(1), "c.pdf")],
            engine_factory=recorder,
        )

        assert [o.success for o in outcomes] == [True, False, True]
        assert outcomes[1].error.startswith("unexpected error")


class TestEngineLifecycle:

    def test_all_succeed(self, recorder):
        process_batch([(build_scanned_pdf(2), "a.pdf"), (build_scanned_pdf(1), "b.pdf")],
                      engine_factory=recorder)

        assert (recorder.initialize_count, recorder.cleanup_count) == (1, 1)
        assert len(recorder.engines) == 1

    def test_all_fail(self, recorder):
        process_batch([(b"x", "a.pdf"), (b"", "b.pdf")], engine_factory=recorder)

        assert (recorder.initialize_count, recorder.cleanup_count) == (1, 1)

    def test_mixed(self, recorder):
        process_batch([(build_scanned_pdf(1), "a.pdf"), (b"junk", "b.pdf")],
                      engine_factory=recorder)

        assert (recorder.initialize_count, recorder.cleanup_count) == (1, 1)

    def test_released_when_batch_body_raises(self, recorder):
        def bad_sink(progress):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            process_batch([(build_scanned_pdf(1), "a.pdf")], progress_sink=bad_sink,
                          engine_factory=recorder)

        assert (recorder.initialize_count, recorder.cleanup_count) == (1, 1)

    def test_failing_engine_cleanup_keeps_outcomes(self):
        recorder = EngineRecorder(lambda i, img: words_result(["kept"], img),
                                  cleanup_error=RuntimeError("driver reset"))

        outcomes = process_batch([(build_scanned_pdf(1), "a.pdf"), (build_scanned_pdf(2), "b.pdf")],
                                 engine_factory=recorder)

        assert [o.success for o in outcomes] == [True, True]
        assert (recorder.initialize_count, recorder.cleanup_count) == (1, 1)
        assert page_texts(outcomes[1])[1][0][4] == "kept"

    def test_engine_unavailable_aborts_before_documents(self):
        recorder = EngineRecorder(lambda i, img: words_result([], img),
                                  failing_engines=("tesseract",))
        progress = []

        with pytest.raises(EngineUnavailableError):
            process_batch([(build_scanned_pdf(1), "a.pdf")], progress_sink=progress.append,
                          engine_factory=recorder)

        assert progress == []
        assert all(engine.calls == 0 for engine in recorder.engines)

    def test_auto_falls_back_to_tesseract(self):
        recorder = EngineRecorder(lambda i, img: words_result(["hi"], img),
                                  failing_engines=("paddleocr",))
        service = SearchableBatchService(config=SearchableConfig(engine="auto"),
                                         engine_factory=recorder)

        outcomes = service.process_batch([(build_scanned_pdf(1), "a.pdf")])

        assert outcomes[0].success
        assert recorder.names == ["paddleocr", "tesseract"]
        assert service.engine_info["engine"] == "tesseract"
        # The working engine is initialized and released once
        assert (recorder.engines[1].initialize_count, recorder.engines[1].cleanup_count) == (1, 1)


class TestProgress:

    def test_progress_snapshots(self, recorder):
        snapshots = []

        process_batch([(build_scanned_pdf(2), "a.pdf"), (build_scanned_pdf(1), "b.pdf")],
                      progress_sink=snapshots.append, engine_factory=recorder)

        positions = [(p.current_document, p.current_page, p.total_pages) for p in snapshots]
        assert positions == [(1, 0, 0), (1, 1, 2), (1, 2, 2), (2, 0, 0), (2, 1, 1)]
        assert all(p.total_documents == 2 for p in snapshots)
        assert snapshots[-1].filename == "b.pdf"
        assert snapshots[-1].percent == pytest.approx(100.0)

    def test_failing_sink_does_not_stop_batch(self, recorder):
        def sink(progress):
            raise ValueError("UI went away")

        outcomes = process_batch([(build_scanned_pdf(1), "a.pdf")], progress_sink=sink,
                                 engine_factory=recorder)

        assert outcomes[0].success

    def test_percent(self):
        progress = BatchProgress(current_document=2, total_documents=4,
                                 current_page=1, total_pages=2)
        assert progress.percent == pytest.approx(37.5)
        assert BatchProgress().percent == 0.0


class TestCancellation:

    def test_cancel_between_documents(self, recorder):
        cancel = threading.Event()

        def sink(progress):
            if progress.current_document == 2 and progress.current_page == 1:
                cancel.set()

        outcomes = process_batch(
            [(build_scanned_pdf(1), f"doc{i}.pdf") for i in range(4)],
            progress_sink=sink, cancellation_flag=cancel, engine_factory=recorder,
        )

        assert len(outcomes) == 4
        assert [o.success for o in outcomes] == [True, True, False, False]
        assert [o.error for o in outcomes[2:]] == ["cancelled", "cancelled"]
        assert (recorder.initialize_count, recorder.cleanup_count) == (1, 1)

    def test_cancelled_before_start(self, recorder):
        cancel = threading.Event()
        cancel.set()

        outcomes = process_batch([(build_scanned_pdf(1), "a.pdf")],
                                 cancellation_flag=cancel, engine_factory=recorder)

        assert outcomes[0].error == "cancelled"
        assert recorder.engines[0].calls == 0

    def test_cancelled_documents_counted_separately(self, recorder):
        cancel = threading.Event()

        def sink(progress):
            if progress.current_document == 2:
                cancel.set()

        service = SearchableBatchService(progress_callback=sink, cancellation_flag=cancel,
                                         engine_factory=recorder)
        outcomes = service.process_batch([(build_scanned_pdf(1), "a.pdf"), (b"bad", "b.pdf"),
                                          (build_scanned_pdf(1), "c.pdf")])

        stats = service.stats.to_dict()
        assert (stats["successful_files"], stats["failed_files"], stats["cancelled_files"]) == (1, 1, 1)
        assert [o.cancelled for o in outcomes] == [False, False, True]
        assert [o.output_filename for o in outcomes] == [
            "a-searchable.pdf", "b-searchable.pdf", "c-searchable.pdf"
        ]


class TestStats:

    def test_stats_and_outcome_dict(self, recorder):
        service = SearchableBatchService(engine_factory=recorder)

        outcomes = service.process_batch([(build_scanned_pdf(2), "a.pdf"), (b"bad", "b.pdf")])

        stats = service.stats.to_dict()
        assert stats["total_files"] == 2
        assert stats["successful_files"] == 1
        assert stats["failed_files"] == 1
        assert stats["total_pages_processed"] == 2
        assert stats["total_pages_ocr"] == 2

        as_dict = outcomes[0].to_dict()
        assert as_dict["success"] is True
        assert "output_bytes" not in as_dict
        assert outcomes[0].to_dict(include_bytes=True)["output_bytes"] == outcomes[0].output_bytes

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            SearchableBatchService(config=SearchableConfig(render_scale=1.0))

    def test_outcome_success_requires_bytes(self):
        assert not DocumentOutcome(filename="a.pdf").success
