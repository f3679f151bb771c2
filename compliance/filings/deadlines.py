"""
Statutory filing deadlines for UK companies.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

CRITICAL_DAYS = 30
WARNING_DAYS = 60


def _to_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    return date_parser.isoparse(value).date()


def annual_accounts_due(
    year_end: Union[date, str],
    incorporation_date: Optional[Union[date, str]] = None,
) -> date:
    """
    Companies House deadline for a private company's accounts.

    Args:
        year_end: Accounting reference date
        incorporation_date: Set for a company's first accounts, which are due
            21 months after incorporation instead

    Returns:
        date: Nine months after the year end, or the first-accounts deadline
    """
    if incorporation_date is not None:
        return _to_date(incorporation_date) + relativedelta(months=21)
    return _to_date(year_end) + relativedelta(months=9)


def confirmation_statement_due(made_up_to: Union[date, str]) -> date:
    """CS01 must be delivered within 14 days of the made-up-to date."""
    return _to_date(made_up_to) + timedelta(days=14)


def ct600_payment_due(period_end: Union[date, str]) -> date:
    """Corporation Tax payment is due nine months and one day after the period end."""
    return _to_date(period_end) + relativedelta(months=9) + timedelta(days=1)


def ct600_filing_due(period_end: Union[date, str]) -> date:
    """The CT600 return is due twelve months after the period end."""
    return _to_date(period_end) + relativedelta(years=1)


def days_until(due: Union[date, str], today: Optional[date] = None) -> int:
    return (_to_date(due) - (today or date.today())).days


def urgency(days_remaining: Optional[int]) -> str:
    """
    Band a deadline for the dashboard warnings.

    Returns:
        str: critical (overdue or within 30 days), warning (within 60),
        normal, or none when there is no due date
    """
    if days_remaining is None:
        return 'none'
    if days_remaining <= CRITICAL_DAYS:
        return 'critical'
    if days_remaining <= WARNING_DAYS:
        return 'warning'
    return 'normal'


def format_days_remaining(days: int) -> str:
    if days < 0:
        overdue = abs(days)
        return f"Overdue by {overdue} day{'' if overdue == 1 else 's'}"
    if days == 0:
        return 'Due today'
    if days == 1:
        return 'Due tomorrow'
    return f"{days} days remaining"


@dataclass
class FilingDeadline:
    """A deadline attached to a filing."""
    filing_type: str
    due_date: date
    description: str = ''

    def days_remaining(self, today: Optional[date] = None) -> int:
        return days_until(self.due_date, today)

    def is_overdue(self, today: Optional[date] = None) -> bool:
        return self.days_remaining(today) < 0

    def urgency(self, today: Optional[date] = None) -> str:
        return urgency(self.days_remaining(today))
