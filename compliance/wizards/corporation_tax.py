"""
Corporation Tax (CT600) wizard.
"""
import logging
from typing import Dict, List, Optional

from ..api.client import ApiError
from ..billing.filing_costs import detect_ct600_complexity, get_ct600_cost
from ..ct600.box_mapping import required_supplementary_pages as supplementary_pages_for
from ..ct600.ct600_validator import (
    CT600Computation,
    CT600ValidationResult,
    estimate_ct600_tax,
    generate_box_breakdown,
    validate_ct600,
)
from ..validation.form_schemas import FilingType
from .wizard import FilingWizard, WizardStep

logger = logging.getLogger(__name__)


class CT600Wizard(FilingWizard):
    """Four-step CT600 return: company and period, income, review computation, done."""

    FILING_TYPE = FilingType.CORPORATION_TAX
    FILING_NAME = 'Corporation Tax Return (CT600)'
    AUTHORITY = 'HMRC'
    STEPS = (
        WizardStep('Company & Period', fields=(
            'company_name', 'company_number', 'utr', 'number_of_associated_companies',
            'accounting_period_start', 'accounting_period_end',
        )),
        WizardStep('Income & Adjustments', fields=(
            'turnover', 'cost_of_sales', 'operating_expenses', 'interest_received', 'dividends_received',
            'property_income', 'depreciation_add_back', 'capital_allowances', 'entertainment_expenses',
            'losses_brought_forward', 'rd_relief_claim', 'charitable_donations',
        ), advanced_by_action=True),
        WizardStep('Review Computation', advanced_by_action=True),
        WizardStep('Submitted'),
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.computation: Optional[Dict] = None
        self.review: Optional[CT600ValidationResult] = None
        self.estimate: Optional[CT600Computation] = None

    def load_current(self) -> bool:
        """Resume a saved CT600 draft, if the server has one."""
        try:
            current = self.api_client.get_current_ct600()
        except ApiError as e:
            logger.warning(f"Could not load current CT600: {e}")
            return False
        if not current:
            return False
        self.prefill(current.get('formData') or current, skip=('id', 'status', 'computation'))
        return True

    @property
    def required_supplementary_pages(self) -> List[str]:
        return [page.display_name for page in supplementary_pages_for(self.form_data)]

    def required_credits(self) -> int:
        return get_ct600_cost(detect_ct600_complexity(self.required_supplementary_pages))

    def compute(self) -> Optional[Dict]:
        """
        Validate the return and ask the server for the tax computation.

        The client-side review (warnings, supplementary pages, preview) is
        refreshed at the same time.
        """
        model = self.validate_form()
        if model is None:
            return None

        self.review = validate_ct600(model)
        self.estimate = estimate_ct600_tax(model)

        def on_success(computation):
            self.computation = computation
            tax_due = float((computation or {}).get('corporationTaxDue') or 0)
            return 'Tax Computed', f"Corporation Tax: £{tax_due:.2f}"

        return self._run_action(
            lambda: self.api_client.compute_ct600(model.to_api_payload()),
            on_success,
            'Computation Failed',
            'Failed to compute corporation tax',
            next_step=3,
            use_server_message=False,
        )

    def box_breakdown(self) -> Dict[str, List[Dict]]:
        """Box-by-box view of the return using the client-side preview."""
        model = self.build_model()
        return generate_box_breakdown(model, self.estimate or estimate_ct600_tax(model))

    def submit(self) -> Optional[Dict]:
        """File the computed return with HMRC."""
        if self.computation is None:
            raise ValueError('Compute the return before submitting')
        model = self.validate_form()
        if model is None or not self._ensure_credits():
            return None

        payload = {**model.to_api_payload(), 'computation': self.computation}
        return self._run_action(
            lambda: self.api_client.submit_ct600(payload),
            lambda response: ('Submitted Successfully', 'CT600 has been submitted to HMRC'),
            'Submission Failed',
            'Failed to submit to HMRC',
            next_step=4,
            track_submission=True,
        )
