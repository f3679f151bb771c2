"""
Admin analytics: turns the analytics API reports into pandas frames.
"""
import logging
from typing import Dict, List, Optional

import pandas as pd

from ..api.client import ApiError, FilingApiClient

logger = logging.getLogger(__name__)

PIE_COLORS = ["#0088FE", "#00C49F", "#FFBB28", "#FF8042", "#8884d8"]

SEVERITY_COLORS = {
    'critical': '#EF4444',
    'high': '#F97316',
    'medium': '#FBBF24',
    'low': '#10B981',
}
DEFAULT_SEVERITY_COLOR = '#8884d8'

STATUS_CODE_SLICES = [
    ('success', 'Success (2xx)', '#10B981'),
    ('clientError', 'Client Error (4xx)', '#F97316'),
    ('serverError', 'Server Error (5xx)', '#EF4444'),
]

TIME_RANGES = {7: 'Last 7 days', 30: 'Last 30 days', 90: 'Last 90 days', 365: 'Last year'}


def humanize_label(name: str) -> str:
    """'in_progress' -> 'In progress'"""
    text = str(name).replace('_', ' ')
    return text[:1].upper() + text[1:]


def counts_frame(counts: Optional[Dict[str, float]], label: str = 'name', value: str = 'value') -> pd.DataFrame:
    """Turn a {key: count} mapping into a two-column frame with humanised labels."""
    if not counts:
        return pd.DataFrame(columns=[label, value])
    return pd.DataFrame(
        [(humanize_label(k), v) for k, v in counts.items()],
        columns=[label, value],
    )


def by_date_frame(by_date: Optional[Dict[str, float]], value: str) -> pd.DataFrame:
    """Turn a {iso date: value} mapping into a date-sorted frame."""
    if not by_date:
        return pd.DataFrame(columns=['date', value])
    frame = pd.DataFrame(list(by_date.items()), columns=['date', value])
    frame['date'] = pd.to_datetime(frame['date'])
    return frame.sort_values('date').reset_index(drop=True)


def with_palette(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.copy()
    frame['color'] = [PIE_COLORS[i % len(PIE_COLORS)] for i in range(len(frame))]
    return frame


def users_by_role(dashboard: Optional[Dict]) -> pd.DataFrame:
    return with_palette(counts_frame(((dashboard or {}).get('users') or {}).get('byRole')))


def filings_by_status(dashboard: Optional[Dict]) -> pd.DataFrame:
    return with_palette(counts_frame(((dashboard or {}).get('filings') or {}).get('byStatus')))


def filings_by_type(dashboard: Optional[Dict]) -> pd.DataFrame:
    return with_palette(counts_frame(((dashboard or {}).get('filings') or {}).get('byType')))


def revenue_by_date(revenue: Optional[Dict]) -> pd.DataFrame:
    return by_date_frame((revenue or {}).get('revenueByDate'), 'revenue')


def activity_by_date(user_activity: Optional[Dict]) -> pd.DataFrame:
    return by_date_frame((user_activity or {}).get('activityByDate'), 'users')


def errors_by_date(errors: Optional[Dict]) -> pd.DataFrame:
    return by_date_frame((errors or {}).get('errorsByDate'), 'errors')


def errors_by_severity(errors: Optional[Dict]) -> pd.DataFrame:
    """Error counts per severity, each row carrying its severity colour."""
    frame = counts_frame((errors or {}).get('bySeverity'), label='severity', value='count')
    frame['color'] = [
        SEVERITY_COLORS.get(s.lower(), DEFAULT_SEVERITY_COLOR) for s in frame['severity']
    ]
    return frame


def api_calls_by_date(performance: Optional[Dict]) -> pd.DataFrame:
    return by_date_frame((performance or {}).get('callsByDate'), 'calls')


def status_code_split(performance: Optional[Dict]) -> pd.DataFrame:
    """2xx/4xx/5xx slices for the status-code pie. Empty slices are dropped."""
    by_status = (performance or {}).get('byStatusCode')
    rows = []
    if by_status:
        for key, name, color in STATUS_CODE_SLICES:
            value = by_status.get(key) or 0
            if value > 0:
                rows.append((name, value, color))
    return pd.DataFrame(rows, columns=['name', 'value', 'color'])


def top_errors(errors: Optional[Dict]) -> pd.DataFrame:
    items = (errors or {}).get('topErrors') or []
    return pd.DataFrame(items, columns=['message', 'count'])


def slowest_endpoints(performance: Optional[Dict]) -> pd.DataFrame:
    """Endpoints ordered slowest first, flagged when average response exceeds one second."""
    items = (performance or {}).get('slowestEndpoints') or []
    frame = pd.DataFrame(items, columns=['endpoint', 'avgResponseTime', 'calls', 'errorRate'])
    frame = frame.rename(columns={
        'avgResponseTime': 'avg_response_ms',
        'errorRate': 'error_rate',
    })
    frame = frame.sort_values('avg_response_ms', ascending=False).reset_index(drop=True)
    frame['is_slow'] = frame['avg_response_ms'] > 1000
    return frame


def filing_progress(progress: Optional[Dict]) -> pd.DataFrame:
    """Per-step reach and drop-off rate for each filing type."""
    rows = []
    for entry in (progress or {}).get('dropOffAnalysis') or []:
        for step in entry.get('steps') or []:
            rows.append({
                'filing_type': entry.get('filingType', 'unknown'),
                'step': step.get('step', 0),
                'count': step.get('count', 0),
                'drop_off_rate': step.get('dropOffRate', 0.0),
            })
    frame = pd.DataFrame(rows, columns=['filing_type', 'step', 'count', 'drop_off_rate'])
    return frame.sort_values(['filing_type', 'step']).reset_index(drop=True)


class AdminAnalytics:
    """
    Loads the admin and production analytics reports for a time range.

    Reports that fail to load are left as None and their frames come out
    empty, so one broken endpoint does not blank the whole dashboard.
    """

    def __init__(self, api_client: FilingApiClient, days: int = 30):
        self.api_client = api_client
        self.days = days
        self.reports: Dict[str, Optional[Dict]] = {}
        self.failures: Dict[str, str] = {}

    def set_time_range(self, days: int):
        if days not in TIME_RANGES:
            raise ValueError(f"Unsupported time range: {days}")
        self.days = days
        self.reports.clear()
        self.failures.clear()

    def _fetch(self, key: str, loader) -> Optional[Dict]:
        try:
            report = loader()
        except ApiError as e:
            logger.error(f"Failed to load analytics report {key}: {e.message}")
            self.failures[key] = e.message
            report = None
        self.reports[key] = report
        return report

    def load(self) -> Dict[str, Optional[Dict]]:
        """Fetch every report for the current time range."""
        client = self.api_client
        # The dashboard overview is not time-ranged
        self._fetch('dashboard', lambda: client.get('/api/admin/analytics/dashboard'))
        for report in ('user-activity', 'revenue', 'filings'):
            self._fetch(report, lambda r=report: client.get_admin_analytics(r, self.days))
        for report in ('errors', 'api-performance', 'user-activity', 'filing-progress'):
            self._fetch(f"production/{report}",
                        lambda r=report: client.get_production_analytics(r, self.days))
        logger.info(f"Loaded analytics for {self.days} days with {len(self.failures)} failures")
        return self.reports

    def _report(self, key: str) -> Optional[Dict]:
        if key not in self.reports:
            self.load()
        return self.reports.get(key)

    def summary(self) -> Dict:
        """Headline figures shown above the charts."""
        filings = self._report('filings') or {}
        revenue = self._report('revenue') or {}
        activity = self._report('user-activity') or {}
        errors = self._report('production/errors') or {}
        performance = self._report('production/api-performance') or {}
        production_activity = self._report('production/user-activity') or {}
        return {
            'submission_rate': round(filings.get('submissionRate') or 0, 1),
            'average_order_value': round(revenue.get('averageOrderValue') or 0, 2),
            'new_users': activity.get('newUsers') or 0,
            'total_errors': errors.get('total') or 0,
            'total_api_calls': performance.get('totalCalls') or 0,
            'avg_response_ms': performance.get('avgResponseTime') or 0,
            'active_users': production_activity.get('activeUsers') or 0,
        }

    def frames(self) -> Dict[str, pd.DataFrame]:
        """Every chart and table as a DataFrame, keyed by name."""
        dashboard = self._report('dashboard')
        errors = self._report('production/errors')
        performance = self._report('production/api-performance')
        return {
            'users_by_role': users_by_role(dashboard),
            'filings_by_status': filings_by_status(dashboard),
            'filings_by_type': filings_by_type(dashboard),
            'revenue_by_date': revenue_by_date(self._report('revenue')),
            'activity_by_date': activity_by_date(self._report('user-activity')),
            'errors_by_date': errors_by_date(errors),
            'errors_by_severity': errors_by_severity(errors),
            'api_calls_by_date': api_calls_by_date(performance),
            'status_codes': status_code_split(performance),
            'top_errors': top_errors(errors),
            'slowest_endpoints': slowest_endpoints(performance),
            'filing_progress': filing_progress(self._report('production/filing-progress')),
        }
