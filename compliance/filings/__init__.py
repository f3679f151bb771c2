"""
Filing deadlines, the filing board and draft autosave.
"""
from .deadlines import (
    FilingDeadline,
    annual_accounts_due,
    confirmation_statement_due,
    ct600_filing_due,
    ct600_payment_due,
    days_until,
    format_days_remaining,
    urgency,
)
from .filing_board import DraftFiling, FilingBoard, relative_time_string
from .autosave import AutoSaver

__all__ = [
    'FilingDeadline',
    'annual_accounts_due',
    'confirmation_statement_due',
    'ct600_filing_due',
    'ct600_payment_due',
    'days_until',
    'format_days_remaining',
    'urgency',
    'DraftFiling',
    'FilingBoard',
    'relative_time_string',
    'AutoSaver',
]
