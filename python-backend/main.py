"""
Searchable PDF - Python Backend
Main entry point for OCR text-layer processing via stdin/stdout IPC
"""

import sys
import os
import json
import logging
import threading
from typing import Dict, Any, Optional
from pathlib import Path

# Configure logging to stderr (stdout is used for IPC)
logging.basicConfig(
    level=os.environ.get("SEARCHABLE_PDF_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def unique_output_name(filename: str, used_names: set) -> str:
    """Return filename, or filename with -2, -3, ... if already used in this batch"""
    path = Path(filename)
    candidate = filename
    counter = 2
    while candidate.lower() in used_names:
        candidate = f"{path.stem}-{counter}{path.suffix}"
        counter += 1
    used_names.add(candidate.lower())
    return candidate


class IPCHandler:
    """Handles JSON-based IPC communication via stdin/stdout"""

    def __init__(self, output_stream=None):
        self.running = True
        self.current_request_id = None
        self.cancel_event = threading.Event()
        self.worker: Optional[threading.Thread] = None
        self.output_stream = output_stream or sys.stdout
        self._send_lock = threading.Lock()
        self.active_service = None

    def send_event(self, event_type: str, data: Any, request_id: str = None):
        """Send an event to the frontend via stdout"""
        event = {
            "type": event_type,
            "data": data
        }
        if request_id:
            event["request_id"] = request_id
        with self._send_lock:
            print(json.dumps(event), file=self.output_stream, flush=True)

    def send_progress(self, current: int, total: int, message: str, percent: float = None,
                      request_id: str = None):
        """Send progress update"""
        if percent is None:
            percent = (current / total * 100) if total > 0 else 0

        self.send_event("progress", {
            "current": current,
            "total": total,
            "message": message,
            "percent": percent
        }, request_id=request_id)

    def send_result(self, result: Any, request_id: str = None):
        """Send processing result"""
        self.send_event("result", result, request_id=request_id or self.current_request_id)

    def send_error(self, error_message: str, request_id: str = None):
        """Send error message"""
        self.send_event("error", {"message": error_message},
                        request_id=request_id or self.current_request_id)

    def handle_command(self, command: Dict[str, Any]):
        """Process incoming command"""
        cmd_type = command.get("command")
        self.current_request_id = command.get("request_id")
        logger.debug(f"Handling command '{cmd_type}' with request_id: {self.current_request_id}")

        if cmd_type == "make_searchable":
            self.handle_make_searchable(command)
        elif cmd_type == "get_engine_info":
            self.handle_get_engine_info(command)
        elif cmd_type == "cancel":
            self.handle_cancel()
        elif cmd_type == "shutdown":
            self.running = False
        else:
            self.send_error(f"Unknown command: {cmd_type}")

    def is_busy(self) -> bool:
        return self.worker is not None and self.worker.is_alive()

    def handle_make_searchable(self, command: Dict[str, Any]):
        """
        Start a searchable-PDF batch on a worker thread.

        Command format:
        {
            "command": "make_searchable",
            "options": {
                "files": ["path/to/scan1.pdf", "path/to/scan2.pdf"],
                "output_dir": "path/to/output",
                "config": {"render_scale": 2.0, "languages": ["eng"]}
            }
        }

        Emits progress events while running, then one result event:
        {"successful": [...], "failed": [...], "cancelled": [...], "statistics": {...}}

        Outputs that would share a name get a numeric suffix
        (scan-searchable.pdf, scan-searchable-2.pdf).
        """
        if self.is_busy():
            self.send_error("A batch is already running")
            return

        options = command.get('options', {})
        files = options.get('files', [])
        output_dir = options.get('output_dir')

        if not files:
            self.send_error("No files provided for processing")
            return
        if not output_dir:
            self.send_error("No output directory provided")
            return

        self.cancel_event.clear()
        self.worker = threading.Thread(
            target=self._run_batch,
            args=(files, Path(output_dir), options.get('config'), self.current_request_id),
            name="searchable-batch",
            daemon=True
        )
        self.worker.start()

    def _run_batch(self, files, output_dir: Path, config_data, request_id):
        from searchable_pdf.batch_service import SearchableBatchService, InputDocument
        from searchable_pdf.config import SearchableConfig

        try:
            config = SearchableConfig.from_dict(config_data)
            output_dir.mkdir(parents=True, exist_ok=True)

            documents = []
            for file_path in files:
                path = Path(file_path)
                try:
                    data = path.read_bytes()
                except OSError as e:
                    # Empty bytes fail at load and are reported per file
                    logger.error(f"Cannot read {path}: {e}")
                    data = b""
                documents.append(InputDocument(data=data, filename=path.name))

            def progress_callback(progress):
                self.send_progress(
                    progress.current_document,
                    progress.total_documents,
                    f"File {progress.current_document}/{progress.total_documents}: "
                    f"{progress.filename} - page {progress.current_page}/{progress.total_pages}",
                    progress.percent,
                    request_id=request_id
                )

            service = SearchableBatchService(
                config=config,
                progress_callback=progress_callback,
                cancellation_flag=self.cancel_event
            )
            self.active_service = service
            outcomes = service.process_batch(documents)

            successful, failed, cancelled = [], [], []
            used_names = set()
            for file_path, outcome in zip(files, outcomes):
                if outcome.success:
                    output_path = output_dir / unique_output_name(outcome.output_filename, used_names)
                    output_path.write_bytes(outcome.output_bytes)
                    entry = outcome.to_dict()
                    entry.update({
                        'file': file_path,
                        'output_filename': output_path.name,
                        'output_path': str(output_path),
                    })
                    successful.append(entry)
                elif outcome.cancelled:
                    cancelled.append({'file': file_path})
                else:
                    failed.append({'file': file_path, 'error': outcome.error})

            self.send_result({
                'successful': successful,
                'failed': failed,
                'cancelled': cancelled,
                'engine': service.engine_info,
                'statistics': service.stats.to_dict()
            }, request_id=request_id)

            logger.info(f"Batch complete: {len(successful)} successful, {len(failed)} failed")

        except Exception as e:
            error_msg = f"Searchable PDF batch failed: {e}"
            logger.error(error_msg, exc_info=True)
            self.send_error(error_msg, request_id=request_id)
        finally:
            self.active_service = None

    def handle_get_engine_info(self, command: Dict[str, Any]):
        """Start an engine once to report what would be used"""
        from searchable_pdf.config import SearchableConfig
        from searchable_pdf.ocr.manager import OCREngineHandle

        if self.is_busy():
            # Only one engine may exist; report the batch's engine instead
            service = self.active_service
            if service is not None and service.engine_info:
                self.send_result(service.engine_info)
            else:
                self.send_error("A batch is already running")
            return

        try:
            config = SearchableConfig.from_dict(command.get('options', {}).get('config'))
            with OCREngineHandle(config.to_ocr_config(), config.fallback_enabled) as engine:
                self.send_result(engine.get_engine_info())
        except Exception as e:
            logger.error(f"Engine check failed: {e}", exc_info=True)
            self.send_error(f"OCR engine unavailable: {e}")

    def handle_cancel(self):
        """Cancel the running batch before its next document"""
        logger.info("Cancellation requested")
        self.cancel_event.set()
        self.send_event("cancelled", {"message": "Cancellation requested"},
                        request_id=self.current_request_id)

    def run(self):
        """Main event loop - read commands from stdin"""
        logger.info("Python backend started, waiting for commands...")

        try:
            for line in sys.stdin:
                line = line.strip()
                if not line:
                    continue

                try:
                    command = json.loads(line)
                    self.handle_command(command)
                except json.JSONDecodeError as e:
                    logger.error(f"Invalid JSON: {e}")
                    self.send_error(f"Invalid JSON: {str(e)}")
                except Exception as e:
                    logger.error(f"Command handling error: {e}", exc_info=True)
                    self.send_error(str(e))

                if not self.running:
                    break

        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self.cancel_event.set()
            if self.worker is not None:
                self.worker.join()
            logger.info("Python backend shutting down")


if __name__ == "__main__":
    handler = IPCHandler()
    handler.run()
