"""
Notifications and metrics for the filing flows.
"""
from .notifications import (
    FilingHealthChecker,
    FilingMonitor,
    MetricType,
    NotificationCenter,
    SubmissionMetrics,
    Toast,
    ToastVariant,
)

__all__ = [
    'FilingHealthChecker',
    'FilingMonitor',
    'MetricType',
    'NotificationCenter',
    'SubmissionMetrics',
    'Toast',
    'ToastVariant',
]
