"""
User notifications (toasts) and submission metrics for the filing flows.
"""
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.filing_config import MONITORING_CONFIG

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ToastVariant(Enum):
    """Toast styles."""
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class MetricType(Enum):
    """Types of metrics to track."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


@dataclass
class Toast:
    """A transient notification shown to the user."""
    title: str
    description: str = ''
    variant: ToastVariant = ToastVariant.DEFAULT
    component: str = 'app'
    timestamp: datetime = field(default_factory=_now)

    @property
    def is_error(self) -> bool:
        return self.variant is ToastVariant.DESTRUCTIVE


@dataclass
class FilingMetric:
    """A single recorded metric value."""
    name: str
    type: MetricType
    value: float
    timestamp: datetime
    tags: Dict[str, str]


class SubmissionMetrics:
    """
    Counters, gauges and timers for filing activity.
    """

    def __init__(self):
        self._metrics: List[FilingMetric] = []
        self._counters: Dict[str, float] = {}
        self._gauges: Dict[str, float] = {}
        self._timers: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def _record(self, name: str, metric_type: MetricType, value: float, tags: Optional[Dict[str, str]]):
        self._metrics.append(FilingMetric(name, metric_type, value, _now(), tags or {}))

    def increment_counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value
            self._record(name, MetricType.COUNTER, self._counters[name], tags)

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Set a gauge metric."""
        with self._lock:
            self._gauges[name] = value
            self._record(name, MetricType.GAUGE, value, tags)

    def record_timer(self, name: str, duration: float, tags: Optional[Dict[str, str]] = None):
        """Record a timer metric."""
        with self._lock:
            self._timers.setdefault(name, []).append(duration)
            self._record(name, MetricType.TIMER, duration, tags)

    def get_counter(self, name: str) -> float:
        return self._counters.get(name, 0.0)

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    def get_timer_stats(self, name: str) -> Dict[str, float]:
        """Get timer statistics."""
        values = self._timers.get(name)
        if not values:
            return {}
        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }

    def get_recent_metrics(self, minutes: int = 60) -> List[FilingMetric]:
        cutoff = _now() - timedelta(minutes=minutes)
        return [m for m in self._metrics if m.timestamp >= cutoff]

    def export_metrics(self) -> Dict[str, Any]:
        """Export all metrics as plain data."""
        with self._lock:
            return {
                'counters': self._counters.copy(),
                'gauges': self._gauges.copy(),
                'timer_stats': {name: self.get_timer_stats(name) for name in self._timers},
                'export_timestamp': _now().isoformat(),
            }


class NotificationCenter:
    """
    Collects toasts raised by the wizards and flows.

    Toasts are kept in a bounded list and echoed to the log, destructive
    ones at error level.
    """

    def __init__(self, max_notifications: Optional[int] = None):
        self._toasts: List[Toast] = []
        self._max_notifications = max_notifications or MONITORING_CONFIG['max_notifications']
        self._lock = threading.Lock()

    def toast(
        self,
        title: str,
        description: str = '',
        variant: ToastVariant = ToastVariant.DEFAULT,
        component: str = 'app',
    ) -> Toast:
        """
        Raise a toast.

        Args:
            title: Short heading, e.g. "Tax Computed"
            description: Body text
            variant: DEFAULT or DESTRUCTIVE
            component: Which flow raised it

        Returns:
            Toast: The recorded notification
        """
        toast = Toast(title=title, description=description, variant=variant, component=component)
        with self._lock:
            self._toasts.append(toast)
            if len(self._toasts) > self._max_notifications:
                self._toasts = self._toasts[-self._max_notifications:]

        if toast.is_error:
            logger.error(f"[{component}] {title}: {description}")
        else:
            logger.info(f"[{component}] {title}: {description}")
        return toast

    def error(self, title: str, description: str = '', component: str = 'app') -> Toast:
        return self.toast(title, description, ToastVariant.DESTRUCTIVE, component)

    @property
    def latest(self) -> Optional[Toast]:
        return self._toasts[-1] if self._toasts else None

    def get_recent(self, variant: Optional[ToastVariant] = None, hours: int = 24) -> List[Toast]:
        """Toasts from the last N hours, optionally filtered by variant."""
        cutoff = _now() - timedelta(hours=hours)
        toasts = [t for t in self._toasts if t.timestamp >= cutoff]
        if variant:
            toasts = [t for t in toasts if t.variant == variant]
        return toasts

    def get_summary(self) -> Dict[str, int]:
        summary = {variant.value: 0 for variant in ToastVariant}
        for toast in self._toasts:
            summary[toast.variant.value] += 1
        return summary

    def clear(self):
        with self._lock:
            self._toasts = []


class FilingHealthChecker:
    """
    Judges batch health from submission metrics.
    """

    def __init__(self, metrics: SubmissionMetrics, notifications: NotificationCenter):
        self.metrics = metrics
        self.notifications = notifications
        self.health_thresholds = {
            'healthy_success_rate': MONITORING_CONFIG['healthy_success_rate'],
            'warning_success_rate': MONITORING_CONFIG['warning_success_rate'],
            'processing_time_seconds': 600,
        }

    def check_success_rate(self, attempted: int, succeeded: int) -> bool:
        """Flag a batch whose submission success rate falls below the healthy level."""
        if attempted == 0:
            return True

        rate = succeeded / attempted * 100
        self.metrics.set_gauge('submission_success_rate', rate)
        if rate < self.health_thresholds['healthy_success_rate']:
            self.notifications.error(
                'Submissions Failing',
                f'Only {succeeded} of {attempted} filings were submitted ({rate:.1f}%)',
                component='health_checker',
            )
            return False
        return True

    def check_processing_time(self, batch_size: int, duration: float) -> bool:
        per_filing = duration / batch_size if batch_size > 0 else 0
        self.metrics.set_gauge('processing_time_per_filing', per_filing)
        if duration > self.health_thresholds['processing_time_seconds']:
            self.notifications.toast(
                'Slow Batch',
                f'Processing {batch_size} filings took {duration:.1f}s',
                component='health_checker',
            )
            return False
        return True

    def get_overall_health_status(self) -> Dict[str, Any]:
        """Get overall health status."""
        rate = self.metrics.get_gauge('submission_success_rate') if \
            self.metrics.get_counter('submissions_attempted_total') else 100.0
        if rate >= self.health_thresholds['healthy_success_rate']:
            status = 'healthy'
        elif rate >= self.health_thresholds['warning_success_rate']:
            status = 'warning'
        else:
            status = 'error'

        recent_errors = self.notifications.get_recent(ToastVariant.DESTRUCTIVE, hours=1)
        return {
            'status': status,
            'timestamp': _now().isoformat(),
            'recent_errors': len(recent_errors),
            'key_metrics': {
                'submission_success_rate': rate,
                'validation_success_rate': self.metrics.get_gauge('validation_success_rate'),
                'processing_time_per_filing': self.metrics.get_gauge('processing_time_per_filing'),
            },
        }


class FilingMonitor:
    """
    Tracks wizard and batch activity: validations, submissions, review packs.
    """

    def __init__(self, notifications: Optional[NotificationCenter] = None):
        self.metrics = SubmissionMetrics()
        self.notifications = notifications or NotificationCenter()
        self.health_checker = FilingHealthChecker(self.metrics, self.notifications)
        self.start_time = _now()

    def track_validation(self, filing_type: str, total: int, valid: int, duration: float = 0.0):
        """Track validation outcomes for a set of forms."""
        tags = {'filing_type': filing_type}
        self.metrics.increment_counter('forms_validated_total', total, tags)
        self.metrics.increment_counter('forms_valid_total', valid, tags)
        self.metrics.increment_counter('forms_invalid_total', total - valid, tags)
        self.metrics.record_timer('validation_duration', duration, tags)

        rate = (valid / total * 100) if total > 0 else 0
        self.metrics.set_gauge('validation_success_rate', rate)
        if total - valid > 0:
            logger.warning(f"{total - valid} of {total} {filing_type} forms failed validation")

    def track_submission(self, filing_type: str, success: bool, duration: float = 0.0):
        """Track one submission attempt."""
        tags = {'filing_type': filing_type}
        self.metrics.increment_counter('submissions_attempted_total', 1, tags)
        self.metrics.record_timer('submission_duration', duration, tags)
        if success:
            self.metrics.increment_counter('submissions_successful_total', 1, tags)
        else:
            self.metrics.increment_counter('submissions_failed_total', 1, tags)

        attempted = self.metrics.get_counter('submissions_attempted_total')
        succeeded = self.metrics.get_counter('submissions_successful_total')
        self.metrics.set_gauge('submission_success_rate', succeeded / attempted * 100)

    def track_pdf_generation(self, total: int, successful: int, duration: float, total_size: int):
        """Track review pack rendering."""
        self.metrics.increment_counter('review_packs_total', total)
        self.metrics.increment_counter('review_packs_failed_total', total - successful)
        self.metrics.record_timer('review_pack_duration', duration)
        self.metrics.set_gauge('review_pack_total_size_bytes', total_size)

        if total - successful > 0:
            self.notifications.error(
                'Review Pack Failed',
                f'{total - successful} of {total} review packs could not be rendered',
                component='pdf_generation',
            )

    def track_batch_run(self, run_id: str, duration: float, success: bool, summary: Dict):
        """Track a complete batch run."""
        self.metrics.increment_counter('batch_runs_total')
        self.metrics.record_timer('batch_run_duration', duration)

        if success:
            self.metrics.increment_counter('batch_runs_successful')
            self.notifications.toast('Batch Complete', f'Filing batch {run_id} completed', component='batch')
        else:
            self.metrics.increment_counter('batch_runs_failed')
            self.notifications.error('Batch Failed', f'Filing batch {run_id} failed', component='batch')
        logger.info(f"Batch {run_id} summary: {summary}")

    def get_dashboard_data(self) -> Dict[str, Any]:
        """Get data for a monitoring dashboard."""
        uptime = (_now() - self.start_time).total_seconds()
        return {
            'monitor_info': {
                'uptime_seconds': uptime,
                'start_time': self.start_time.isoformat(),
                'current_time': _now().isoformat(),
            },
            'health_status': self.health_checker.get_overall_health_status(),
            'metrics_summary': self.metrics.export_metrics(),
            'recent_notifications': [
                {
                    'timestamp': toast.timestamp.isoformat(),
                    'variant': toast.variant.value,
                    'component': toast.component,
                    'title': toast.title,
                    'description': toast.description,
                }
                for toast in self.notifications.get_recent(hours=24)
            ],
        }

    def export_monitoring_data(self, output_path: Path) -> bool:
        """Export monitoring data to a JSON file."""
        try:
            with open(output_path, 'w') as f:
                json.dump(self.get_dashboard_data(), f, indent=2, default=str)
            logger.info(f"Monitoring data exported to {output_path}")
            return True
        except OSError as e:
            logger.error(f"Error exporting monitoring data: {str(e)}")
            return False
