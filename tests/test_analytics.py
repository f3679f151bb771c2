"""
Tests for the admin analytics frames, charts and PDF report.
"""
import pytest
from reportlab.graphics.shapes import Drawing

from compliance.analytics import (
    AdminAnalytics,
    AnalyticsReport,
    bar_chart,
    errors_by_severity,
    filing_progress,
    humanize_label,
    pie_chart,
    slowest_endpoints,
    status_code_split,
)
from compliance.analytics.charts import build_charts
from compliance.analytics.dashboard import counts_frame, revenue_by_date
from compliance.api.client import ApiError

DASHBOARD = {
    'users': {'total': 40, 'byRole': {'admin': 2, 'accountant': 30, 'client': 8}},
    'filings': {'total': 25, 'byStatus': {'draft': 10, 'in_progress': 5, 'submitted': 10},
                'byType': {'annual_accounts': 12, 'corporation_tax': 8, 'confirmation_statement': 5}},
}

ADMIN_REPORTS = {
    'user-activity': {'newUsers': 6, 'activityByDate': {'2024-06-02': 14, '2024-06-01': 9}},
    'revenue': {'averageOrderValue': 123.456, 'revenueByDate': {'2024-06-01': 300.0, '2024-06-02': 450.5}},
    'filings': {'submissionRate': 66.666},
}

PRODUCTION_REPORTS = {
    'errors': {
        'total': 12,
        'errorsByDate': {'2024-06-01': 5, '2024-06-02': 7},
        'bySeverity': {'critical': 1, 'high': 3, 'low': 8, 'unknown': 0},
        'topErrors': [{'message': 'HMRC gateway timeout', 'count': 4}],
    },
    'api-performance': {
        'totalCalls': 2400,
        'avgResponseTime': 180,
        'callsByDate': {'2024-06-01': 1100, '2024-06-02': 1300},
        'byStatusCode': {'success': 2300, 'clientError': 100, 'serverError': 0},
        'slowestEndpoints': [
            {'endpoint': '/api/documents', 'avgResponseTime': 240, 'calls': 300, 'errorRate': 0.5},
            {'endpoint': '/api/ct600/compute', 'avgResponseTime': 1450, 'calls': 80, 'errorRate': 2.5},
        ],
    },
    'user-activity': {'activeUsers': 21},
    'filing-progress': {
        'dropOffAnalysis': [
            {'filingType': 'corporation_tax', 'steps': [
                {'step': 2, 'count': 60, 'dropOffRate': 40.0},
                {'step': 1, 'count': 100, 'dropOffRate': 0.0},
            ]},
        ],
    },
}


@pytest.fixture
def analytics_client(mock_api_client):
    mock_api_client.get.return_value = DASHBOARD
    mock_api_client.get_admin_analytics.side_effect = lambda report, days: ADMIN_REPORTS[report]
    mock_api_client.get_production_analytics.side_effect = lambda report, days: PRODUCTION_REPORTS[report]
    return mock_api_client


class TestFrameHelpers:
    """Test cases for the report to DataFrame helpers."""

    def test_humanize_label(self):
        assert humanize_label('in_progress') == 'In progress'
        assert humanize_label('annual_accounts') == 'Annual accounts'
        assert humanize_label('') == ''

    def test_counts_frame(self):
        frame = counts_frame({'in_progress': 5, 'submitted': 10})

        assert list(frame.columns) == ['name', 'value']
        assert list(frame['name']) == ['In progress', 'Submitted']

    def test_counts_frame_empty(self):
        assert counts_frame(None).empty

    def test_revenue_sorted_by_date(self):
        frame = revenue_by_date({'revenueByDate': {'2024-06-02': 2.0, '2024-06-01': 1.0}})

        assert list(frame['revenue']) == [1.0, 2.0]

    def test_errors_by_severity_colours(self):
        frame = errors_by_severity(PRODUCTION_REPORTS['errors'])

        colours = dict(zip(frame['severity'], frame['color']))
        assert colours['Critical'] == '#EF4444'
        assert colours['Low'] == '#10B981'
        assert colours['Unknown'] == '#8884d8'

    def test_status_code_split_drops_empty_slices(self):
        frame = status_code_split(PRODUCTION_REPORTS['api-performance'])

        assert list(frame['name']) == ['Success (2xx)', 'Client Error (4xx)']
        assert list(frame['color']) == ['#10B981', '#F97316']

    def test_slowest_endpoints(self):
        frame = slowest_endpoints(PRODUCTION_REPORTS['api-performance'])

        assert list(frame['endpoint']) == ['/api/ct600/compute', '/api/documents']
        assert list(frame['is_slow']) == [True, False]
        assert 'avg_response_ms' in frame.columns

    def test_filing_progress(self):
        frame = filing_progress(PRODUCTION_REPORTS['filing-progress'])

        assert list(frame['step']) == [1, 2]
        assert frame.loc[1, 'drop_off_rate'] == 40.0

    def test_missing_reports_give_empty_frames(self):
        assert status_code_split(None).empty
        assert slowest_endpoints(None).empty
        assert filing_progress(None).empty
        assert errors_by_severity(None).empty


class TestAdminAnalytics:
    """Test cases for AdminAnalytics."""

    def test_load_requests_every_report(self, analytics_client):
        analytics = AdminAnalytics(analytics_client, days=90)

        reports = analytics.load()

        analytics_client.get.assert_called_once_with('/api/admin/analytics/dashboard')
        analytics_client.get_admin_analytics.assert_any_call('revenue', 90)
        analytics_client.get_production_analytics.assert_any_call('filing-progress', 90)
        assert set(reports) == {
            'dashboard', 'user-activity', 'revenue', 'filings',
            'production/errors', 'production/api-performance', 'production/user-activity',
            'production/filing-progress',
        }

    def test_summary(self, analytics_client):
        summary = AdminAnalytics(analytics_client).summary()

        assert summary == {
            'submission_rate': 66.7,
            'average_order_value': 123.46,
            'new_users': 6,
            'total_errors': 12,
            'total_api_calls': 2400,
            'avg_response_ms': 180,
            'active_users': 21,
        }

    def test_failed_report_does_not_blank_dashboard(self, analytics_client):
        def production(report, days):
            if report == 'errors':
                raise ApiError(500, 'Analytics store offline')
            return PRODUCTION_REPORTS[report]

        analytics_client.get_production_analytics.side_effect = production
        analytics = AdminAnalytics(analytics_client)

        frames = analytics.frames()

        assert analytics.failures == {'production/errors': 'Analytics store offline'}
        assert frames['errors_by_date'].empty
        assert not frames['status_codes'].empty
        assert len(frames) == 12

    def test_time_range(self, analytics_client):
        analytics = AdminAnalytics(analytics_client)
        analytics.load()

        analytics.set_time_range(7)

        assert analytics.days == 7
        assert analytics.reports == {}
        with pytest.raises(ValueError, match='Unsupported time range'):
            analytics.set_time_range(14)


class TestCharts:
    """Test cases for the ReportLab charts and PDF report."""

    def test_empty_frame_gives_placeholder(self):
        drawing = bar_chart(counts_frame(None), 'name', 'value', 'User Activity')

        assert isinstance(drawing, Drawing)
        assert drawing.height == 40

    def test_pie_chart(self):
        frame = status_code_split(PRODUCTION_REPORTS['api-performance'])

        drawing = pie_chart(frame, 'Status Codes')

        assert drawing.height > 40

    def test_build_charts(self, analytics_client):
        charts = build_charts(AdminAnalytics(analytics_client).frames())

        assert len(charts) == 9
        assert all(isinstance(chart, Drawing) for chart in charts)

    def test_write_report(self, analytics_client, temp_output_dir):
        report = AnalyticsReport(AdminAnalytics(analytics_client), output_dir=temp_output_dir)

        output_path = report.write('analytics.pdf')

        assert output_path == temp_output_dir / 'analytics.pdf'
        assert output_path.read_bytes().startswith(b'%PDF')
