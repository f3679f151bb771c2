"""
Folder inbox for filing drafts and supporting documents.

Each JSON file dropped into the inbox is read as one filing draft; spreadsheets,
CSVs and PDFs are picked up as supporting documents. Handled files are
archived; files that cannot be read or are rejected go to the error folder
with a ``.error.txt`` report beside them.
"""
import json
import logging
import shutil
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from config.filing_config import DOCUMENT_CONFIG, INBOX_CONFIG

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIXES = ('.pdf', '.csv', '.xlsx', '.xls')


class InboxConfig:
    """Configuration for the inbox watcher."""

    def __init__(
        self,
        input_dir=INBOX_CONFIG['input_dir'],
        archive_dir=INBOX_CONFIG['archive_dir'],
        error_dir=INBOX_CONFIG['error_dir'],
        process_existing: bool = INBOX_CONFIG['process_existing'],
        batch_size: int = INBOX_CONFIG['batch_size'],
        polling_interval: float = INBOX_CONFIG['polling_interval'],
        settle_seconds: float = 0.5,
    ):
        self.input_dir = Path(input_dir)
        self.archive_dir = Path(archive_dir)
        self.error_dir = Path(error_dir)
        self.process_existing = process_existing
        self.batch_size = batch_size
        self.polling_interval = polling_interval
        self.settle_seconds = settle_seconds

        self.input_dir.mkdir(parents=True, exist_ok=True)
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        self.error_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class InboxItem:
    """A draft or document read from the inbox."""
    kind: str                      # 'draft' or 'document'
    source: Path
    payload: Any = None            # draft dict, or file bytes for documents
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def filing_type(self) -> Optional[str]:
        if self.kind != 'draft':
            return None
        return self.payload.get('filing_type') or self.payload.get('filingType')

    @property
    def form(self) -> Dict:
        if self.kind != 'draft':
            return {}
        return self.payload.get('form') or {}


def is_inbox_file(path: Path) -> bool:
    suffix = path.suffix.lower()
    return suffix == '.json' or suffix in DOCUMENT_SUFFIXES


def document_type_for(path: Path) -> str:
    """
    Pick the upload document type for an inbox file.

    A document type named in the file name wins (``bank_statement_march.pdf``).
    Otherwise spreadsheets and CSVs are trial balances and anything else is
    an accounting export.
    """
    name = path.stem.lower().replace('-', '_').replace(' ', '_')
    for document_type in DOCUMENT_CONFIG['document_types']:
        if document_type in name:
            return document_type
    if path.suffix.lower() in DOCUMENT_CONFIG['trial_balance_extensions']:
        return 'trial_balance'
    return 'accounting_export'


class InboxEventHandler(FileSystemEventHandler):
    """Queues new files as they land in the inbox."""

    def __init__(self, watcher: 'InboxWatcher'):
        self.watcher = watcher

    def on_created(self, event):
        if not event.is_directory and is_inbox_file(Path(event.src_path)):
            logger.info(f"New inbox file detected: {event.src_path}")
            self.watcher.add_file_to_queue(Path(event.src_path))

    def on_moved(self, event):
        if not event.is_directory and is_inbox_file(Path(event.dest_path)):
            logger.info(f"File moved into inbox: {event.dest_path}")
            self.watcher.add_file_to_queue(Path(event.dest_path))


class InboxWatcher:
    """
    Watches the inbox folder and hands out queued drafts and documents.
    """

    def __init__(self, config: Optional[InboxConfig] = None):
        self.config = config or InboxConfig()
        self.file_queue: List[Path] = []
        self.observer = None
        self.is_connected = False
        self._lock = threading.Lock()
        logger.info(f"Inbox watcher initialized for directory: {self.config.input_dir}")

    def connect(self) -> bool:
        """
        Start watching the inbox directory.

        Returns:
            bool: True if watching started successfully
        """
        if self.is_connected:
            logger.warning("Inbox watcher is already connected")
            return True

        if self.config.process_existing:
            self._scan_existing_files()

        try:
            self.observer = Observer()
            self.observer.schedule(InboxEventHandler(self), str(self.config.input_dir), recursive=False)
            self.observer.start()
        except OSError as e:
            logger.error(f"Failed to start inbox watcher: {str(e)}")
            return False

        self.is_connected = True
        logger.info(f"Inbox watcher started for directory: {self.config.input_dir}")
        return True

    def _scan_existing_files(self):
        """Queue files already sitting in the inbox, oldest first."""
        files = [p for p in self.config.input_dir.iterdir() if p.is_file() and is_inbox_file(p)]
        files.sort(key=lambda p: p.stat().st_mtime)
        for file_path in files:
            self.add_file_to_queue(file_path)
        if files:
            logger.info(f"Found {len(files)} existing inbox files to process")

    def _is_file_ready(self, file_path: Path) -> bool:
        """A file is ready when its size is non-zero and stable."""
        try:
            initial_size = file_path.stat().st_size
            if self.config.settle_seconds:
                time.sleep(self.config.settle_seconds)
            if not file_path.exists():
                return False
            final_size = file_path.stat().st_size
        except OSError as e:
            logger.error(f"Error checking file readiness {file_path}: {str(e)}")
            return False
        return initial_size == final_size and final_size > 0

    def add_file_to_queue(self, file_path: Path):
        with self._lock:
            if file_path.exists() and file_path not in self.file_queue:
                self.file_queue.append(file_path)
                logger.debug(f"Added file to queue: {file_path}")

    def _next_file(self) -> Optional[Path]:
        with self._lock:
            return self.file_queue.pop(0) if self.file_queue else None

    def consume_items(self, max_items: int = 100) -> Generator[InboxItem, None, None]:
        """
        Yield queued drafts and documents.

        Each yielded item must be settled with ``acknowledge`` or ``reject``.
        Unreadable files are moved to the error folder straight away.
        """
        count = 0
        while count < max_items:
            file_path = self._next_file()
            if file_path is None:
                break
            if not file_path.exists():
                logger.warning(f"File no longer exists: {file_path}")
                continue
            if not self._is_file_ready(file_path):
                logger.debug(f"File not ready, requeueing: {file_path}")
                self.add_file_to_queue(file_path)
                break

            if file_path.suffix.lower() != '.json':
                metadata = {'filename': file_path.name, 'document_type': document_type_for(file_path)}
                yield InboxItem('document', file_path, file_path.read_bytes(), metadata)
                count += 1
                continue

            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON in file {file_path}: {str(e)}")
                self._move_file_to_error(file_path, f"JSON decode error: {str(e)}")
                continue

            # Drafts are settled by moving their file, so a file holds one draft
            if isinstance(data, list):
                if len(data) != 1:
                    self._move_file_to_error(file_path, f"Inbox files must hold exactly one draft, found {len(data)}")
                    continue
                data = data[0]
            if not isinstance(data, dict):
                self._move_file_to_error(file_path, 'Draft must be a JSON object')
                continue
            yield InboxItem('draft', file_path, data, dict(data.get('metadata') or {}))
            count += 1

    def consume_batch(self, batch_size: Optional[int] = None, timeout_seconds: float = 0) -> List[InboxItem]:
        """
        Collect up to ``batch_size`` items, waiting up to ``timeout_seconds`` for more files.
        """
        batch_size = batch_size or self.config.batch_size
        items = list(self.consume_items(batch_size))
        deadline = time.monotonic() + timeout_seconds
        while len(items) < batch_size and time.monotonic() < deadline:
            if not self.file_queue:
                time.sleep(self.config.polling_interval)
                continue
            items.extend(self.consume_items(batch_size - len(items)))

        logger.info(f"Consumed batch of {len(items)} inbox items")
        return items

    def acknowledge(self, item: InboxItem):
        """Archive the item's source file once it has been handled."""
        if item.source.exists():
            self._archive_file(item.source)

    def reject(self, item: InboxItem, reason: str):
        """Move the item's source file to the error folder with a report."""
        if item.source.exists():
            self._move_file_to_error(item.source, reason)
        else:
            self._write_error_report(self.config.error_dir / item.source.name, item.source.name, reason)

    @staticmethod
    def _timestamped(name: str) -> str:
        return f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{name}"

    def _archive_file(self, file_path: Path):
        archive_path = self.config.archive_dir / self._timestamped(file_path.name)
        shutil.move(str(file_path), str(archive_path))
        logger.debug(f"Archived file: {file_path} -> {archive_path}")

    def _move_file_to_error(self, file_path: Path, error_message: str):
        error_path = self.config.error_dir / self._timestamped(file_path.name)
        shutil.move(str(file_path), str(error_path))
        self._write_error_report(error_path, file_path.name, error_message)
        logger.error(f"Moved problematic file to error directory: {error_path}")

    @staticmethod
    def _write_error_report(error_path: Path, original_name: str, error_message: str):
        report_path = error_path.with_suffix('.error.txt')
        with open(report_path, 'a') as f:
            f.write(f"Error processing file: {original_name}\n")
            f.write(f"Timestamp: {datetime.now().isoformat()}\n")
            f.write(f"Error: {error_message}\n")

    def get_queue_size(self) -> int:
        return len(self.file_queue)

    def get_statistics(self) -> Dict:
        """Get inbox statistics."""
        def count(directory: Path) -> int:
            return len([p for p in directory.iterdir() if p.is_file() and not p.name.endswith('.error.txt')])

        return {
            'is_connected': self.is_connected,
            'queue_size': self.get_queue_size(),
            'input_files_pending': count(self.config.input_dir),
            'archived_files': count(self.config.archive_dir),
            'error_files': count(self.config.error_dir),
            'input_directory': str(self.config.input_dir),
            'archive_directory': str(self.config.archive_dir),
            'error_directory': str(self.config.error_dir),
        }

    def close(self):
        """Stop the watcher."""
        if self.observer and self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
        self.is_connected = False
        logger.info("Inbox watcher stopped")
