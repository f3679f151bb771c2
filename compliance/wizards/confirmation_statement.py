"""
Confirmation Statement (CS01) wizard.
"""
import logging
from typing import Dict, Optional

from ..validation.form_schemas import FilingType
from .wizard import FilingWizard, WizardStep

logger = logging.getLogger(__name__)


class ConfirmationStatementWizard(FilingWizard):
    """Four-step CS01 filing: company details, PSCs and directors, share capital, done."""

    FILING_TYPE = FilingType.CONFIRMATION_STATEMENT
    FILING_NAME = 'Confirmation Statement'
    AUTHORITY = 'Companies House'
    STEPS = (
        WizardStep('Company Details', fields=(
            'company_name', 'company_number', 'registered_office', 'sic_codes',
            'trading_status', 'statement_date', 'made_up_to_date',
        )),
        WizardStep('PSC & Directors', fields=('directors', 'pscs')),
        WizardStep('Share Capital', fields=('share_capital_changed', 'share_classes', 'shareholders'),
                   advanced_by_action=True),
        WizardStep('Submit'),
    )

    def add_psc(self, **psc):
        self.form_data.setdefault('pscs', []).append(psc)

    def add_share_class(self, **share_class):
        self.form_data.setdefault('share_classes', []).append(share_class)

    def add_shareholder(self, **shareholder):
        self.form_data.setdefault('shareholders', []).append(shareholder)

    def statement_of_capital(self):
        """Per-class totals for the share capital step, or [] when the form is incomplete."""
        result = self.validator.validate(self.FILING_TYPE, self.form_data)
        return result.model.statement_of_capital() if result.is_valid else []

    def submit(self) -> Optional[Dict]:
        """Validate the full statement and file it."""
        model = self.validate_form()
        if model is None or not self._ensure_credits():
            return None

        return self._run_action(
            lambda: self.api_client.submit_confirmation_statement(model.to_api_payload()),
            lambda response: ('Submitted Successfully', 'Confirmation Statement has been submitted to Companies House'),
            'Submission Failed',
            'Failed to submit to Companies House',
            next_step=4,
            track_submission=True,
        )
