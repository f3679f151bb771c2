"""
Admin analytics frames and charts.
"""
from .dashboard import (
    AdminAnalytics,
    SEVERITY_COLORS,
    humanize_label,
    status_code_split,
    errors_by_severity,
    filing_progress,
    slowest_endpoints,
)
from .charts import AnalyticsReport, bar_chart, line_chart, pie_chart

__all__ = [
    'AdminAnalytics',
    'SEVERITY_COLORS',
    'humanize_label',
    'status_code_split',
    'errors_by_severity',
    'filing_progress',
    'slowest_endpoints',
    'AnalyticsReport',
    'bar_chart',
    'line_chart',
    'pie_chart',
]
