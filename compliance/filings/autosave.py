"""
Autosave for wizard drafts.

Changes are detected by comparing the JSON serialisation of the form with
the last saved snapshot. Timing runs on an injectable clock so the owner
decides when to ``tick``.
"""
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from config.filing_config import AUTOSAVE_CONFIG

from ..monitoring.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class AutoSaver:
    """
    Debounced and periodic saving of a form's data.
    """

    def __init__(
        self,
        on_save: Callable[[Any], Any],
        notifications: Optional[NotificationCenter] = None,
        interval: float = AUTOSAVE_CONFIG['interval_seconds'],
        debounce_delay: float = AUTOSAVE_CONFIG['debounce_seconds'],
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        recovery_file: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the autosaver.

        Args:
            on_save: Called with the data to persist; any exception is a failed save
            notifications: Where the failure toast is raised
            interval: Seconds between periodic saves while there are unsaved changes
            debounce_delay: Seconds of quiet after a change before saving
            enabled: When False nothing is tracked or saved
            clock: Monotonic time source in seconds
            recovery_file: JSON file used for crash recovery
        """
        self.on_save = on_save
        self.notifications = notifications or NotificationCenter()
        self.interval = interval
        self.debounce_delay = debounce_delay
        self.enabled = enabled
        self.clock = clock
        self.recovery_file = Path(recovery_file or AUTOSAVE_CONFIG['recovery_file'])

        self.data: Any = None
        self.is_saving = False
        self.has_unsaved_changes = False
        self.last_saved: Optional[datetime] = None

        self._initialized = False
        self._current_hash: Optional[str] = None
        self._saved_hash: Optional[str] = None
        self._debounce_deadline: Optional[float] = None
        self._next_interval_save: Optional[float] = None

    @staticmethod
    def _hash(data: Any) -> str:
        return json.dumps(data, sort_keys=True, default=str)

    def update(self, data: Any):
        """Record the latest form data and schedule a save if it changed."""
        if not self.enabled:
            return
        self.data = data
        try:
            current = self._hash(data)
        except (TypeError, ValueError):
            logger.warning('Autosave: unable to serialise data for change detection')
            return
        self._current_hash = current

        # A pristine first snapshot counts as saved
        if not self._initialized:
            self._saved_hash = current
            self._initialized = True
            return

        now = self.clock()
        if current != self._saved_hash:
            if not self.has_unsaved_changes:
                self._next_interval_save = now + self.interval
            self.has_unsaved_changes = True
            self._debounce_deadline = now + self.debounce_delay
        else:
            self.has_unsaved_changes = False
            self._debounce_deadline = None
            self._next_interval_save = None

    def tick(self) -> bool:
        """
        Save if the debounce delay or the periodic interval has elapsed.

        Returns:
            bool: True when a save was attempted
        """
        if not self.enabled or not self.has_unsaved_changes or self.is_saving:
            return False

        now = self.clock()
        if self._debounce_deadline is not None and now >= self._debounce_deadline:
            self._debounce_deadline = None
            self.save_now()
            return True
        if self._next_interval_save is not None and now >= self._next_interval_save:
            self._next_interval_save = now + self.interval
            self.save_now()
            return True
        return False

    def save_now(self) -> bool:
        """
        Save immediately.

        Returns:
            bool: True on success; a failure raises a destructive toast and
            leaves the changes marked unsaved
        """
        if not self.enabled or self.is_saving:
            return False

        self.is_saving = True
        try:
            self.on_save(self.data)
        except Exception as e:
            logger.error(f"Auto-save failed: {e}")
            self.notifications.error(
                'Auto-save failed',
                "Your changes weren't saved automatically. Please save manually.",
                component='autosave',
            )
            return False
        finally:
            self.is_saving = False

        self.last_saved = datetime.now(timezone.utc)
        self.has_unsaved_changes = False
        self._saved_hash = self._current_hash
        self._debounce_deadline = None
        self._next_interval_save = None
        return True

    def reset_save_state(self):
        self.has_unsaved_changes = False
        self.last_saved = None

    # Crash recovery

    def write_recovery(self) -> bool:
        """Write the current data to the recovery file if it changed since the last write."""
        if not self.enabled or self._current_hash is None:
            return False

        existing = self._read_recovery_file()
        if existing and existing.get('hash') == self._current_hash:
            return False

        record = {
            'data': self.data,
            'hash': self._current_hash,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.recovery_file.parent.mkdir(parents=True, exist_ok=True)
            self.recovery_file.write_text(json.dumps(record, default=str))
        except OSError as e:
            logger.warning(f"Could not write autosave recovery file {self.recovery_file}: {e}")
            return False
        return True

    def load_recovery(self) -> Optional[Any]:
        """Data from the recovery file, or None when there is none."""
        record = self._read_recovery_file()
        return record.get('data') if record else None

    def clear_recovery(self):
        self.recovery_file.unlink(missing_ok=True)

    def _read_recovery_file(self) -> Optional[Dict]:
        if not self.recovery_file.exists():
            return None
        try:
            return json.loads(self.recovery_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable recovery file {self.recovery_file}: {e}")
            return None
