"""
Dashboard view over the account's filings: upcoming deadlines and drafts.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional

from dateutil import parser as date_parser

from ..api.client import ApiError, FilingApiClient
from ..monitoring.notifications import NotificationCenter
from .deadlines import days_until, urgency

logger = logging.getLogger(__name__)

FILING_STATUSES = ('draft', 'in_progress', 'awaiting_approval', 'approved', 'submitted', 'rejected')
DRAFT_STATUSES = ('draft', 'in_progress')
UNKNOWN_COMPANY = 'Unknown Company'


@dataclass
class DraftFiling:
    id: int
    title: str
    last_updated: str
    progress: int = 0


def relative_time_string(moment: datetime, now: datetime) -> str:
    """Rough "last updated" text: Today, Yesterday, N days/weeks/months ago."""
    diff_days = int(abs((now - moment).total_seconds()) // 86400)
    if diff_days == 0:
        return 'Today'
    if diff_days == 1:
        return 'Yesterday'
    if diff_days < 7:
        return f"{diff_days} days ago"
    if diff_days < 30:
        return f"{diff_days // 7} weeks ago"
    return f"{diff_days // 30} months ago"


def _parse_timestamp(value: str) -> datetime:
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FilingBoard:
    """
    Upcoming and draft filings, plus the create/update/delete/submit actions.
    """

    def __init__(
        self,
        api_client: FilingApiClient,
        notifications: Optional[NotificationCenter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.api_client = api_client
        self.notifications = notifications or NotificationCenter()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.filings: List[Dict] = []

    def refresh(self) -> List[Dict]:
        """Reload the filing list from the server."""
        self.filings = self.api_client.list_filings()
        logger.debug(f"Loaded {len(self.filings)} filings")
        return self.filings

    @property
    def upcoming_filings(self) -> List[Dict]:
        """Unsubmitted filings with a due date, soonest first."""
        upcoming = [
            {**filing, 'company': filing.get('companyName') or UNKNOWN_COMPANY}
            for filing in self.filings
            if filing.get('status') != 'submitted' and filing.get('dueDate')
        ]
        return sorted(upcoming, key=lambda f: _parse_timestamp(f['dueDate']))

    @property
    def draft_filings(self) -> List[DraftFiling]:
        now = self.clock()
        drafts = []
        for filing in self.filings:
            if filing.get('status') not in DRAFT_STATUSES:
                continue
            company = filing.get('companyName') or UNKNOWN_COMPANY
            drafts.append(DraftFiling(
                id=filing['id'],
                title=f"{filing['type'].replace('_', ' ', 1)} - {company}",
                last_updated=relative_time_string(_parse_timestamp(filing['updatedAt']), now),
                progress=filing.get('progress') or 0,
            ))
        return drafts

    def deadline_warnings(self, today: Optional[date] = None) -> Dict[str, List[Dict]]:
        """Up to three critical and two warning filings for the dashboard banner."""
        today = today or self.clock().date()
        banded = {'critical': [], 'warning': []}
        for filing in self.upcoming_filings:
            remaining = days_until(filing['dueDate'][:10], today)
            band = urgency(remaining)
            if band in banded:
                banded[band].append({**filing, 'urgency': band, 'days_remaining': remaining})
        return {'critical': banded['critical'][:3], 'warning': banded['warning'][:2]}

    def _mutate(self, action, success_title: str, success_description: str, error_title: str):
        try:
            result = action()
        except ApiError as e:
            self.notifications.error(error_title, e.message or 'An unexpected error occurred.', component='filings')
            raise
        self.notifications.toast(success_title, success_description, component='filings')
        self.refresh()
        return result

    def create_filing(self, filing: Dict) -> Dict:
        return self._mutate(
            lambda: self.api_client.create_filing(filing),
            'Filing created', 'Your filing has been created successfully.', 'Error creating filing',
        )

    def update_filing(self, filing_id: int, changes: Dict) -> Dict:
        if 'status' in changes and changes['status'] not in FILING_STATUSES:
            raise ValueError(f"Unknown filing status: {changes['status']}")
        return self._mutate(
            lambda: self.api_client.update_filing(filing_id, changes),
            'Filing updated', 'Your filing has been updated successfully.', 'Error updating filing',
        )

    def delete_filing(self, filing_id: int) -> None:
        self._mutate(
            lambda: self.api_client.delete_filing(filing_id),
            'Filing deleted', 'Your filing has been deleted successfully.', 'Error deleting filing',
        )

    def submit_filing(self, filing_id: int) -> Dict:
        return self._mutate(
            lambda: self.api_client.submit_filing(filing_id),
            'Filing submitted', 'Your filing has been submitted successfully.', 'Error submitting filing',
        )
