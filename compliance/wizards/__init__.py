"""
Step machines for the filing wizards.
"""
from .wizard import FilingWizard, SubmissionWarning, WizardStep
from .annual_accounts import AnnualAccountsWizard
from .confirmation_statement import ConfirmationStatementWizard
from .corporation_tax import CT600Wizard

__all__ = [
    'FilingWizard',
    'SubmissionWarning',
    'WizardStep',
    'AnnualAccountsWizard',
    'ConfirmationStatementWizard',
    'CT600Wizard',
]
