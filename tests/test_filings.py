"""
Tests for deadlines, the filing board and autosave.
"""
import json
import pytest
from datetime import date, datetime, timezone

from compliance.api.client import ApiError
from compliance.filings import (
    AutoSaver,
    FilingBoard,
    FilingDeadline,
    annual_accounts_due,
    confirmation_statement_due,
    ct600_filing_due,
    ct600_payment_due,
    days_until,
    format_days_remaining,
    relative_time_string,
    urgency,
)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestDeadlines:
    """Test cases for statutory deadline arithmetic."""

    def test_annual_accounts_due(self):
        assert annual_accounts_due('2024-03-31') == date(2024, 12, 31)

    def test_first_accounts_due(self):
        assert annual_accounts_due('2024-03-31', incorporation_date='2023-02-15') == date(2024, 11, 15)

    def test_month_end_is_clipped(self):
        assert annual_accounts_due(date(2023, 5, 31)) == date(2024, 2, 29)

    def test_confirmation_statement_due(self):
        assert confirmation_statement_due('2024-06-01') == date(2024, 6, 15)

    def test_ct600_dates(self):
        assert ct600_payment_due('2024-03-31') == date(2025, 1, 1)
        assert ct600_filing_due('2024-03-31') == date(2025, 3, 31)

    def test_days_until(self):
        assert days_until('2024-07-10', today=date(2024, 7, 1)) == 9
        assert days_until(date(2024, 6, 30), today=date(2024, 7, 1)) == -1

    @pytest.mark.parametrize('days,band', [
        (None, 'none'), (-5, 'critical'), (30, 'critical'), (31, 'warning'), (60, 'warning'), (61, 'normal'),
    ])
    def test_urgency(self, days, band):
        assert urgency(days) == band

    @pytest.mark.parametrize('days,text', [
        (-1, 'Overdue by 1 day'),
        (-3, 'Overdue by 3 days'),
        (0, 'Due today'),
        (1, 'Due tomorrow'),
        (12, '12 days remaining'),
    ])
    def test_format_days_remaining(self, days, text):
        assert format_days_remaining(days) == text

    def test_filing_deadline(self):
        deadline = FilingDeadline('confirmation_statement', date(2024, 6, 15))

        assert deadline.is_overdue(today=date(2024, 6, 20))
        assert deadline.urgency(today=date(2024, 4, 1)) == 'normal'


class TestRelativeTime:
    """Test cases for last-updated text."""

    NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize('moment,text', [
        (datetime(2024, 6, 30, 9, 0, tzinfo=timezone.utc), 'Today'),
        (datetime(2024, 6, 29, 9, 0, tzinfo=timezone.utc), 'Yesterday'),
        (datetime(2024, 6, 26, 12, 0, tzinfo=timezone.utc), '4 days ago'),
        (datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc), '2 weeks ago'),
        (datetime(2024, 3, 30, 12, 0, tzinfo=timezone.utc), '3 months ago'),
    ])
    def test_relative_time_string(self, moment, text):
        assert relative_time_string(moment, self.NOW) == text


@pytest.fixture
def sample_filings():
    return [
        {'id': 1, 'type': 'annual_accounts', 'status': 'draft', 'companyName': 'Acme Widgets Ltd',
         'dueDate': '2024-07-20T00:00:00Z', 'updatedAt': '2024-06-29T10:00:00Z', 'progress': 40},
        {'id': 2, 'type': 'confirmation_statement', 'status': 'submitted', 'companyName': 'Acme Widgets Ltd',
         'dueDate': '2024-07-01T00:00:00Z', 'updatedAt': '2024-06-01T10:00:00Z'},
        {'id': 3, 'type': 'corporation_tax', 'status': 'in_progress', 'companyName': None,
         'dueDate': '2024-08-15T00:00:00Z', 'updatedAt': '2024-06-30T08:00:00Z'},
        {'id': 4, 'type': 'annual_accounts', 'status': 'awaiting_approval', 'companyName': 'Beta Ltd',
         'dueDate': '2024-07-05T00:00:00Z', 'updatedAt': '2024-06-20T10:00:00Z'},
        {'id': 5, 'type': 'corporation_tax', 'status': 'draft', 'companyName': 'Gamma Ltd',
         'updatedAt': '2024-05-01T10:00:00Z'},
    ]


@pytest.fixture
def board(mock_api_client, notifications, sample_filings):
    mock_api_client.list_filings.return_value = sample_filings
    board = FilingBoard(
        mock_api_client,
        notifications,
        clock=lambda: datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc),
    )
    board.refresh()
    return board


class TestFilingBoard:
    """Test cases for FilingBoard."""

    def test_upcoming_filings(self, board):
        upcoming = board.upcoming_filings

        assert [f['id'] for f in upcoming] == [4, 1, 3]
        assert upcoming[2]['company'] == 'Unknown Company'

    def test_draft_filings(self, board):
        drafts = board.draft_filings

        assert [d.id for d in drafts] == [1, 3, 5]
        assert drafts[0].title == 'annual accounts - Acme Widgets Ltd'
        assert drafts[0].last_updated == 'Yesterday'
        assert drafts[0].progress == 40
        assert drafts[1].title == 'corporation tax - Unknown Company'
        assert drafts[2].last_updated == '2 months ago'

    def test_deadline_warnings(self, board):
        warnings = board.deadline_warnings(today=date(2024, 6, 30))

        assert [f['id'] for f in warnings['critical']] == [4, 1]
        assert [f['id'] for f in warnings['warning']] == [3]
        assert warnings['critical'][0]['days_remaining'] == 5

    def test_create_filing(self, board, mock_api_client, notifications):
        mock_api_client.create_filing.return_value = {'id': 6}

        assert board.create_filing({'type': 'annual_accounts', 'companyId': 17}) == {'id': 6}
        assert notifications.latest.title == 'Filing created'
        assert mock_api_client.list_filings.call_count == 2

    def test_update_unknown_status(self, board, mock_api_client):
        with pytest.raises(ValueError, match='Unknown filing status'):
            board.update_filing(1, {'status': 'lost'})
        mock_api_client.update_filing.assert_not_called()

    def test_failed_mutation_toasts_and_raises(self, board, mock_api_client, notifications):
        mock_api_client.submit_filing.side_effect = ApiError(409, 'Filing already submitted')

        with pytest.raises(ApiError):
            board.submit_filing(2)

        assert notifications.latest.title == 'Error submitting filing'
        assert notifications.latest.description == 'Filing already submitted'

    def test_delete_filing(self, board, mock_api_client, notifications):
        board.delete_filing(5)

        mock_api_client.delete_filing.assert_called_once_with(5)
        assert notifications.latest.title == 'Filing deleted'


class TestAutoSaver:
    """Test cases for AutoSaver."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def saved(self):
        return []

    @pytest.fixture
    def saver(self, clock, saved, notifications, temp_output_dir):
        return AutoSaver(
            saved.append,
            notifications,
            interval=30,
            debounce_delay=1,
            clock=clock,
            recovery_file=temp_output_dir / 'recovery.json',
        )

    def test_first_snapshot_is_pristine(self, saver):
        saver.update({'company_name': 'Acme'})

        assert not saver.has_unsaved_changes
        assert not saver.tick()

    def test_debounced_save(self, saver, clock, saved):
        saver.update({'company_name': 'Acme'})
        saver.update({'company_name': 'Acme Widgets'})
        assert saver.has_unsaved_changes

        clock.advance(0.5)
        assert not saver.tick()

        clock.advance(0.6)
        assert saver.tick()
        assert saved == [{'company_name': 'Acme Widgets'}]
        assert not saver.has_unsaved_changes
        assert saver.last_saved is not None

    def test_reverting_clears_unsaved(self, saver):
        saver.update({'turnover': 1})
        saver.update({'turnover': 2})
        saver.update({'turnover': 1})

        assert not saver.has_unsaved_changes

    def test_interval_save_during_continuous_typing(self, saver, clock, saved):
        saver.update({'notes': ''})
        for index in range(31):
            saver.update({'notes': 'x' * (index + 1)})
            clock.advance(0.99)
            saver.tick()

        assert len(saved) == 1

    def test_failed_save(self, clock, notifications, temp_output_dir):
        def failing_save(data):
            raise ConnectionError('offline')

        saver = AutoSaver(failing_save, notifications, clock=clock,
                          recovery_file=temp_output_dir / 'recovery.json')
        saver.update({'a': 1})
        saver.update({'a': 2})

        assert not saver.save_now()
        assert saver.has_unsaved_changes
        assert notifications.latest.title == 'Auto-save failed'

    def test_disabled(self, saved, clock):
        saver = AutoSaver(saved.append, enabled=False, clock=clock)
        saver.update({'a': 1})
        saver.update({'a': 2})

        assert not saver.has_unsaved_changes
        assert not saver.save_now()

    def test_reset_save_state(self, saver, clock):
        saver.update({'a': 1})
        saver.update({'a': 2})
        clock.advance(2)
        saver.tick()

        saver.reset_save_state()

        assert saver.last_saved is None
        assert not saver.has_unsaved_changes

    def test_recovery_file(self, saver, temp_output_dir):
        saver.update({'company_name': 'Acme'})

        assert saver.write_recovery()
        assert not saver.write_recovery()
        assert saver.load_recovery() == {'company_name': 'Acme'}
        assert json.loads((temp_output_dir / 'recovery.json').read_text())['data'] == {'company_name': 'Acme'}

        saver.clear_recovery()
        assert saver.load_recovery() is None
