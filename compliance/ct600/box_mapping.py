"""
HMRC CT600 box reference.

Maps CT600 form fields to the box numbers on the printed return, lists the
supplementary pages and the activity flag that makes each one mandatory,
and holds the box-level rules and prior-year comparison thresholds.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from ..validation.form_schemas import parse_iso_date


@dataclass(frozen=True)
class BoxValidation:
    """Constraints printed against a box."""
    min: Optional[float] = None
    max: Optional[float] = None
    required: bool = False
    must_be_integer: bool = False


@dataclass(frozen=True)
class CT600Box:
    """A single box on the main CT600 return."""
    box_number: str
    label: str
    description: str
    validation: BoxValidation = field(default_factory=BoxValidation)
    conditional_on: Optional[str] = None
    help_text: Optional[str] = None


@dataclass(frozen=True)
class SupplementaryPage:
    """A CT600 supplementary page and the activity flag that triggers it."""
    code: str
    name: str
    trigger_field: str
    description: str
    required_fields: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.code}: {self.name}"


@dataclass(frozen=True)
class BoxRule:
    """
    A box-level rule.

    ``check`` returns True when the value passes, False for an error
    (reported with ``message``), or a string which is raised as a warning.
    """
    field: str
    check: Callable[[object, Dict], Union[bool, str]]
    message: str


@dataclass(frozen=True)
class ComparisonAlert:
    """Prior-year change threshold for one amount field."""
    field: str
    threshold: float
    message: str


_required = BoxValidation(required=True)
_non_negative = BoxValidation(min=0)

CT600_BOXES: Dict[str, CT600Box] = {
    # Company identification
    'company_name': CT600Box('1', 'Company Name', 'Full legal name as registered with Companies House', _required),
    'company_number': CT600Box('2', 'Company Registration Number', '8-character Companies House number', _required),
    'utr': CT600Box('3', 'Company UTR', '10-digit Unique Taxpayer Reference', _required),
    'accounting_period_start': CT600Box('30', 'Period Start Date', 'First day of accounting period', _required),
    'accounting_period_end': CT600Box(
        '35', 'Period End Date', 'Last day of accounting period (max 12 months from start)', _required,
    ),

    # Trading income
    'turnover': CT600Box(
        '40', 'Turnover', 'Total trading income excluding VAT',
        BoxValidation(required=True, min=0),
        help_text='Include all revenue from trading activities. Exclude: VAT, capital receipts, non-trading income',
    ),
    'cost_of_sales': CT600Box(
        '41', 'Cost of Sales', 'Direct costs of goods/services sold', _non_negative,
        help_text='Include: raw materials, direct labour, manufacturing costs. Exclude: depreciation, admin costs',
    ),
    'gross_profit': CT600Box('42', 'Gross Profit', 'Turnover minus Cost of Sales (Box 40 - Box 41)', _non_negative),
    'operating_expenses': CT600Box(
        '43', 'Operating Expenses', 'Administration and selling expenses', _non_negative,
        help_text='Include all business expenses. WARNING: Some items must be added back (depreciation, entertainment)',
    ),
    'trading_profit': CT600Box(
        '44', 'Trading Profit/Loss', 'Gross profit minus operating expenses (Box 42 - Box 43)',
    ),

    # Non-trading income
    'interest_received': CT600Box(
        '50', 'Interest Received', 'Bank interest and loan interest received', _non_negative,
        help_text='Include all interest from: bank accounts, loans to third parties, government securities',
    ),
    'dividends_received': CT600Box(
        '51', 'Dividends Received (UK)', 'Dividends from UK companies', _non_negative,
        help_text='Usually exempt from Corporation Tax but must be declared',
    ),
    'property_income': CT600Box(
        '52', 'Property Income', 'Net profit from UK property rental', _non_negative,
        conditional_on='has_property_income',
        help_text='If >£0, you must complete form CT600C (Property Income)',
    ),

    # Adjustments to profit
    'depreciation_add_back': CT600Box(
        '70', 'Depreciation Add-back', 'Depreciation charged in accounts (must be added back)', _non_negative,
        help_text='Depreciation is NOT tax-deductible. Add back 100% and claim capital allowances instead',
    ),
    'capital_allowances': CT600Box(
        '71', 'Capital Allowances', 'Tax relief on capital expenditure (deduct)', _non_negative,
        help_text=(
            'Annual Investment Allowance (AIA): 100% relief up to £1m. '
            'Writing Down Allowance: 18% (main pool), 6% (special rate)'
        ),
    ),
    'entertainment_expenses': CT600Box(
        '72', 'Entertainment Expenses', 'Non-deductible entertainment (add back)', _non_negative,
        help_text='Client entertainment: 100% disallowed. Staff entertainment: generally allowed if reasonable',
    ),

    # Losses and reliefs
    'losses_brought_forward': CT600Box(
        '100', 'Losses Brought Forward', 'Trading losses from previous periods', _non_negative,
        help_text='Can offset against total profits. Post-April 2017 rules: max 50% of profits over £5m can be relieved',
    ),
    'rd_relief_claim': CT600Box(
        '101', 'R&D Tax Relief', 'Research & Development enhanced expenditure deduction', _non_negative,
        help_text='SME scheme: 186% deduction (86% enhancement). RDEC scheme: 20% above-the-line credit',
    ),
    'charitable_donations': CT600Box(
        '102', 'Charitable Donations', 'Qualifying charitable donations (deductible)', _non_negative,
        help_text=(
            'Donations to UK registered charities are fully deductible. '
            'Exclude: donations with quid-pro-quo benefits'
        ),
    ),

    # Profits chargeable
    'profits_before_reliefs': CT600Box(
        '120', 'Profits Before Deductions', 'Adjusted trading profit plus non-trading income', _non_negative,
    ),
    'total_profits_chargeable': CT600Box(
        '125', 'Total Profits Chargeable', 'Profits after all adjustments and reliefs', _non_negative,
    ),

    # Tax computation
    'number_of_associated_companies': CT600Box(
        '140', 'Number of Associated Companies', 'Companies under common control (affects profit thresholds)',
        BoxValidation(min=0, must_be_integer=True),
        help_text='Include companies with >50% common ownership. Thresholds divided by (1 + number of associates)',
    ),
    'corporation_tax_before_marginal_relief': CT600Box(
        '145', 'Corporation Tax Liability', 'Tax due at applicable rate', _non_negative,
        help_text='Rate: 19% (profits ≤£50k), 25% (profits ≥£250k), marginal relief 19-25% (profits £50k-£250k)',
    ),
    'marginal_relief': CT600Box(
        '150', 'Marginal Relief', 'Relief for profits between £50k-£250k', _non_negative,
        help_text='Formula: (Upper Limit - Profits) × Basic Profits ÷ Profits × Marginal Relief Fraction',
    ),
    'corporation_tax_due': CT600Box('155', 'Tax Payable After Reliefs', 'Final Corporation Tax due', _non_negative),
}

SUPPLEMENTARY_PAGES: List[SupplementaryPage] = [
    SupplementaryPage(
        'CT600A', 'Loans to Participators', 'is_close_company',
        'Required if your company is a close company and made loans to shareholders/directors',
        ['loan_amount', 'interest_charged', 's455_tax_due'],
    ),
    SupplementaryPage(
        'CT600C', 'Profits from UK Land and Buildings', 'has_property_income',
        'Required if your company has property rental income',
        ['property_income', 'property_expenses', 'property_profit'],
    ),
    SupplementaryPage(
        'CT600D', 'Insurance Companies', 'is_insurance_company',
        'Required for insurance companies',
    ),
    SupplementaryPage(
        'CT600E', 'Charities and Community Amateur Sports Clubs', 'is_charity',
        'Required for charities and CASCs',
    ),
    SupplementaryPage(
        'CT600F', 'Overseas Matters', 'has_overseas_income',
        'Required if company has foreign income, assets, or operates overseas',
        ['overseas_income', 'overseas_tax_paid'],
    ),
    SupplementaryPage(
        'CT600G', 'Group and Consortium Relief', 'has_group_relief',
        'Required if claiming group relief or consortium relief',
        ['relief_claimed_from', 'relief_amount'],
    ),
    SupplementaryPage(
        'CT600I', 'Controlled Foreign Companies', 'has_controlled_foreign_companies',
        'Required if company controls foreign subsidiaries',
        ['cfc_name', 'cfc_country', 'cfc_profits'],
    ),
    SupplementaryPage(
        'CT600J', 'Supplementary Charge', 'is_oil_gas_company',
        'Required for oil and gas companies subject to supplementary charge',
    ),
]

UTR_PATTERN = re.compile(r'^\d{10}$')
COMPANY_NUMBER_PATTERN = re.compile(r'^[A-Z0-9]{8}$')

LOSS_RESTRICTION_THRESHOLD = 5_000_000
LOSS_RESTRICTION_WARNING = 'Loss relief may be restricted to 50% of profits over £5m'


def _month_difference(start: str, end: str) -> int:
    start_date = parse_iso_date(start)
    end_date = parse_iso_date(end)
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)


def _period_within_twelve_months(end, data: Dict) -> bool:
    start = data.get('accounting_period_start')
    if not start or not end:
        return True
    try:
        return _month_difference(start, end) <= 12
    except ValueError:
        # Malformed dates are reported by the form validator
        return True


def _loss_relief_within_limits(losses, data: Dict) -> Union[bool, str]:
    profits = (data.get('turnover') or 0) - (data.get('cost_of_sales') or 0) - (data.get('operating_expenses') or 0)
    if profits > LOSS_RESTRICTION_THRESHOLD and (losses or 0) > profits * 0.5:
        return LOSS_RESTRICTION_WARNING
    return True


CT600_VALIDATION_RULES: List[BoxRule] = [
    BoxRule(
        'utr',
        lambda value, data: bool(UTR_PATTERN.match(str(value or ''))),
        'UTR must be exactly 10 digits',
    ),
    BoxRule(
        'company_number',
        lambda value, data: bool(COMPANY_NUMBER_PATTERN.match(str(value or '').upper())),
        'Company number must be 8 characters',
    ),
    BoxRule(
        'accounting_period_end',
        _period_within_twelve_months,
        'Accounting period cannot exceed 12 months',
    ),
    BoxRule(
        'losses_brought_forward',
        _loss_relief_within_limits,
        'Loss relief appears to exceed allowable limits',
    ),
]

PRIOR_YEAR_COMPARISON_ALERTS: List[ComparisonAlert] = [
    ComparisonAlert(
        'turnover', 30,
        'Turnover has changed by more than 30% from prior year. HMRC may request explanation.',
    ),
    ComparisonAlert(
        'operating_expenses', 40,
        'Operating expenses have changed significantly. Ensure all adjustments are correctly classified.',
    ),
    ComparisonAlert(
        'capital_allowances', 100,
        'Capital allowances have changed substantially. Ensure capital additions are properly documented.',
    ),
]


def find_box_number(field_name: str) -> Optional[str]:
    """Box number for a form field, if the field appears on the main return."""
    box = CT600_BOXES.get(field_name)
    return box.box_number if box else None


def get_box(box_number: str) -> Optional[CT600Box]:
    """Look up a box by its printed number."""
    for box in CT600_BOXES.values():
        if box.box_number == box_number:
            return box
    return None


def required_supplementary_pages(data: Dict) -> List[SupplementaryPage]:
    """Supplementary pages whose trigger flag is set."""
    return [page for page in SUPPLEMENTARY_PAGES if data.get(page.trigger_field) is True]
