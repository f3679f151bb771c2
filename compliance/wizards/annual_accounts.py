"""
Annual Accounts wizard: company info, balance sheet, P&L, documents,
review of the generated iXBRL, then submission to Companies House.
"""
import logging
from typing import Dict, List, Optional, Union

from dateutil import parser as date_parser

from ..api.client import ApiError
from ..billing.filing_costs import get_annual_accounts_cost
from ..validation.form_schemas import FilingType
from ..validation.form_validator import detect_entity_size
from .wizard import FilingWizard, WizardStep

logger = logging.getLogger(__name__)

_BALANCE_SHEET_FIELDS = (
    'intangible_assets', 'tangible_assets', 'investments', 'stocks', 'debtors', 'cash_at_bank',
    'creditors_due_within_year', 'creditors_due_after_year', 'called_up_share_capital',
    'profit_and_loss_account',
)
_PROFIT_AND_LOSS_FIELDS = (
    'turnover', 'cost_of_sales', 'gross_profit', 'administrative_expenses', 'operating_profit',
)
_CASH_FLOW_FIELDS = (
    'profit_before_tax', 'depreciation', 'increase_decrease_in_stocks', 'increase_decrease_in_debtors',
    'increase_decrease_in_creditors', 'tax_paid', 'purchase_of_tangible_assets', 'new_loans_received',
    'repayment_of_borrowings', 'opening_cash', 'closing_cash',
)

PRIOR_YEAR_METADATA_KEYS = ('yearEnding', 'sourceType')


class AnnualAccountsWizard(FilingWizard):
    """Six-step Annual Accounts filing."""

    FILING_TYPE = FilingType.ANNUAL_ACCOUNTS
    FILING_NAME = 'Annual Accounts'
    AUTHORITY = 'Companies House'
    STEPS = (
        WizardStep('Company Info', 5, (
            'company_name', 'company_number', 'registered_office',
            'financial_year_start', 'financial_year_end', 'entity_size', 'director_names',
        )),
        WizardStep('Balance Sheet', 10, _BALANCE_SHEET_FIELDS
                   + tuple(f"{name}_prior" for name in _BALANCE_SHEET_FIELDS)),
        WizardStep('P&L Account', 10, _PROFIT_AND_LOSS_FIELDS
                   + tuple(f"{name}_prior" for name in _PROFIT_AND_LOSS_FIELDS)
                   + _CASH_FLOW_FIELDS
                   + ('accounting_policies', 'audit_exempt', 'business_model', 'principal_risks',
                      'key_performance_indicators')),
        WizardStep('Documents', 5, advanced_by_action=True),
        WizardStep('Review', 3, advanced_by_action=True),
        WizardStep('Submit', 2),
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.prior_year_loaded = False
        self.ixbrl_preview: Optional[Dict] = None
        self.selected_document_ids: List[int] = []

    def load_prior_year(self, company_id: Union[int, str]) -> bool:
        """
        Fill the comparative figures from last year's filing, once.

        Returns:
            bool: True when comparatives were loaded by this call
        """
        if self.prior_year_loaded:
            return False
        try:
            response = self.api_client.get_prior_year_accounts(company_id)
        except ApiError as e:
            logger.warning(f"Prior year data unavailable for company {company_id}: {e}")
            return False

        if not response or not response.get('success') or not response.get('data'):
            return False

        data = response['data']
        self.prefill(data, skip=PRIOR_YEAR_METADATA_KEYS)
        self.prior_year_loaded = True

        year_ending = data.get('yearEnding')
        if year_ending:
            year_ending = date_parser.isoparse(year_ending).strftime('%d/%m/%Y')
        self.notifications.toast(
            'Prior Year Data Loaded',
            f"Comparative figures loaded from {year_ending} ({data.get('sourceType')})",
            component=self.FILING_TYPE.value,
        )
        return True

    def total_assets(self) -> float:
        names = ('intangible_assets', 'tangible_assets', 'investments', 'stocks', 'debtors', 'cash_at_bank')
        return sum(float(self.form_data.get(name) or 0) for name in names)

    def auto_detect_entity_size(self) -> str:
        """Set ``entity_size`` from turnover and total assets."""
        size = detect_entity_size(float(self.form_data.get('turnover') or 0), self.total_assets())
        self.form_data['entity_size'] = size
        return size

    def required_credits(self) -> int:
        return get_annual_accounts_cost(self.form_data.get('entity_size') or 'small')

    def select_document(self, document_id: int):
        if document_id not in self.selected_document_ids:
            self.selected_document_ids.append(document_id)

    def deselect_document(self, document_id: int):
        if document_id in self.selected_document_ids:
            self.selected_document_ids.remove(document_id)

    def generate_ixbrl(self) -> Optional[Dict]:
        """
        Detect the entity size, validate the whole form and generate the iXBRL preview.

        Returns:
            The preview returned by the server, or None
        """
        self.auto_detect_entity_size()
        model = self.validate_form()
        if model is None:
            return None

        def on_success(preview):
            self.ixbrl_preview = preview
            return 'iXBRL Generated', 'Annual accounts have been generated in iXBRL format'

        return self._run_action(
            lambda: self.api_client.generate_ixbrl(model.to_api_payload()),
            on_success,
            'Generation Failed',
            'Failed to generate iXBRL accounts',
            next_step=5,
        )

    def confirm_submission(self) -> Optional[Dict]:
        """Close the warning and submit to Companies House."""
        if not self.confirmation_pending:
            raise ValueError('Submission has not been requested')
        self.confirmation_pending = False
        return self._submit()

    def _submit(self) -> Optional[Dict]:
        model = self.validate_form()
        if model is None or not self._ensure_credits():
            return None

        payload = {
            **model.to_api_payload(),
            'ixbrlData': self.ixbrl_preview,
            'documentIds': list(self.selected_document_ids),
        }
        return self._run_action(
            lambda: self.api_client.submit_annual_accounts(payload),
            lambda response: ('Submitted Successfully', 'Annual Accounts have been submitted to Companies House'),
            'Submission Failed',
            'Failed to submit to Companies House',
            next_step=6,
            track_submission=True,
        )
