"""
CT600 checks and the client-side Corporation Tax preview.

The preview mirrors the published rates so the review step can flag odd
figures before the return is sent for the authoritative computation.
"""
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import timedelta
from typing import Dict, List, Literal, Optional, Union

from dateutil.relativedelta import relativedelta
from pydantic.alias_generators import to_snake

from ..validation.form_schemas import CT600Form, parse_iso_date
from .box_mapping import (
    CT600_VALIDATION_RULES,
    PRIOR_YEAR_COMPARISON_ALERTS,
    find_box_number,
    required_supplementary_pages,
)

logger = logging.getLogger(__name__)

SMALL_PROFITS_RATE = 19
MAIN_RATE = 25
LOWER_LIMIT = 50_000
UPPER_LIMIT = 250_000
MARGINAL_RELIEF_FRACTION = 3 / 200

Severity = Literal['low', 'medium', 'high']

_DATE_FIELDS = ('payment_due_date', 'filing_due_date')


@dataclass
class CT600Error:
    field: str
    message: str
    box_number: Optional[str] = None


@dataclass
class CT600Warning:
    field: str
    message: str
    severity: Severity = 'medium'


@dataclass
class CT600ValidationResult:
    """Outcome of the CT600 box rules and review checks."""
    is_valid: bool
    errors: List[CT600Error] = field(default_factory=list)
    warnings: List[CT600Warning] = field(default_factory=list)
    required_supplementary_pages: List[str] = field(default_factory=list)


@dataclass
class CT600Computation:
    """Client-side Corporation Tax estimate."""
    gross_profit: float                              # box 42
    trading_profit: float                            # box 44
    total_trading_income: float
    total_non_trading_income: float
    total_income: float
    total_add_backs: float
    total_deductions: float
    adjusted_trading_profit: float
    profits_before_reliefs: float                    # box 120
    total_profits_chargeable: float                  # box 125
    applicable_rate: float
    corporation_tax_before_marginal_relief: float    # box 145
    marginal_relief: float                           # box 150
    corporation_tax_due: float                       # box 155
    lower_threshold: float
    upper_threshold: float
    effective_rate: float
    payment_due_date: str = ''
    filing_due_date: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)


def _as_dict(data: Union[CT600Form, Dict]) -> Dict:
    if isinstance(data, CT600Form):
        return data.model_dump()
    return data


def _amount(data: Dict, name: str) -> float:
    return data.get(name) or 0


def estimate_ct600_tax(data: Union[CT600Form, Dict]) -> CT600Computation:
    """
    Estimate Corporation Tax for a CT600 form.

    Args:
        data: CT600 form model or snake_case dict

    Returns:
        CT600Computation: Profit build-up, rate, marginal relief and due dates
    """
    data = _as_dict(data)

    gross_profit = _amount(data, 'turnover') - _amount(data, 'cost_of_sales')
    trading_profit = gross_profit - _amount(data, 'operating_expenses')

    # UK dividends are usually exempt so stay out of taxable profits
    non_trading_income = _amount(data, 'interest_received') + _amount(data, 'property_income')

    add_backs = _amount(data, 'depreciation_add_back') + _amount(data, 'entertainment_expenses')
    deductions = _amount(data, 'capital_allowances')
    adjusted_trading_profit = trading_profit + add_backs - deductions

    profits_before_reliefs = adjusted_trading_profit + non_trading_income
    reliefs = (
        _amount(data, 'losses_brought_forward')
        + _amount(data, 'rd_relief_claim')
        + _amount(data, 'charitable_donations')
    )
    chargeable = max(0, profits_before_reliefs - reliefs)

    associates = 1 + (data.get('number_of_associated_companies') or 0)
    lower_threshold = LOWER_LIMIT / associates
    upper_threshold = UPPER_LIMIT / associates

    marginal_relief = 0
    if chargeable <= lower_threshold:
        rate = SMALL_PROFITS_RATE
    elif chargeable >= upper_threshold:
        rate = MAIN_RATE
    else:
        rate = MAIN_RATE
        marginal_relief = (upper_threshold - chargeable) * MARGINAL_RELIEF_FRACTION
    tax_before_relief = chargeable * rate / 100

    tax_due = max(0, tax_before_relief - marginal_relief)
    effective_rate = (tax_due / chargeable) * 100 if chargeable > 0 else 0

    payment_due, filing_due = '', ''
    if data.get('accounting_period_end'):
        try:
            period_end = parse_iso_date(data['accounting_period_end'])
        except ValueError:
            logger.warning(f"Unparseable accounting period end: {data['accounting_period_end']}")
        else:
            payment_due = (period_end + relativedelta(months=9) + timedelta(days=1)).isoformat()
            filing_due = (period_end + relativedelta(years=1)).isoformat()

    return CT600Computation(
        gross_profit=gross_profit,
        trading_profit=trading_profit,
        total_trading_income=_amount(data, 'turnover'),
        total_non_trading_income=non_trading_income,
        total_income=_amount(data, 'turnover') + non_trading_income,
        total_add_backs=add_backs,
        total_deductions=deductions,
        adjusted_trading_profit=adjusted_trading_profit,
        profits_before_reliefs=profits_before_reliefs,
        total_profits_chargeable=chargeable,
        applicable_rate=rate,
        corporation_tax_before_marginal_relief=tax_before_relief,
        marginal_relief=marginal_relief,
        corporation_tax_due=tax_due,
        lower_threshold=lower_threshold,
        upper_threshold=upper_threshold,
        effective_rate=effective_rate,
        payment_due_date=payment_due,
        filing_due_date=filing_due,
    )


def computation_from_response(data: Union[CT600Form, Dict], response: Optional[Dict]) -> CT600Computation:
    """
    Read the server's CT600 computation into a ``CT600Computation``.

    The server's camelCase figures replace the local estimate. Figures it
    leaves out, or sends unreadable, keep their estimated values.
    """
    computation = estimate_ct600_tax(data)
    if not response:
        return computation

    names = {f.name for f in fields(CT600Computation)}
    overrides = {}
    for key, value in response.items():
        name = to_snake(key)
        if name not in names or value is None:
            continue
        if name in _DATE_FIELDS:
            overrides[name] = str(value)[:10]
            continue
        try:
            overrides[name] = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unreadable {key} in CT600 computation: {value!r}")
    return replace(computation, **overrides)


def validate_ct600(data: Union[CT600Form, Dict]) -> CT600ValidationResult:
    """
    Run the CT600 box rules, supplementary page detection and review warnings.

    Args:
        data: CT600 form model or snake_case dict

    Returns:
        CT600ValidationResult: Errors with box numbers, warnings and pages
    """
    data = _as_dict(data)
    errors: List[CT600Error] = []
    warnings: List[CT600Warning] = []

    for rule in CT600_VALIDATION_RULES:
        outcome = rule.check(data.get(rule.field), data)
        if outcome is False:
            errors.append(CT600Error(rule.field, rule.message, find_box_number(rule.field)))
        elif isinstance(outcome, str):
            warnings.append(CT600Warning(rule.field, outcome, 'medium'))

    pages = [page.display_name for page in required_supplementary_pages(data)]

    if data.get('turnover_prior'):
        warnings.extend(_prior_year_warnings(data))

    computation = estimate_ct600_tax(data)
    if computation.total_profits_chargeable > 0:
        if computation.effective_rate < SMALL_PROFITS_RATE or computation.effective_rate > MAIN_RATE:
            warnings.append(CT600Warning(
                'corporation_tax_due',
                f"Effective tax rate of {computation.effective_rate:.2f}% is outside normal range (19-25%). "
                f"Please review.",
                'high',
            ))

    if _amount(data, 'depreciation_add_back') > 0 and not data.get('capital_allowances'):
        warnings.append(CT600Warning(
            'capital_allowances',
            'You added back depreciation but claimed no capital allowances. Most businesses can claim '
            'capital allowances - are you sure this is correct?',
            'medium',
        ))

    logger.debug(
        f"CT600 checks for {data.get('company_number')}: {len(errors)} error(s), "
        f"{len(warnings)} warning(s), {len(pages)} supplementary page(s)"
    )
    return CT600ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        required_supplementary_pages=pages,
    )


def _prior_year_warnings(data: Dict) -> List[CT600Warning]:
    warnings = []
    for alert in PRIOR_YEAR_COMPARISON_ALERTS:
        current = _amount(data, alert.field)
        prior = _amount(data, f"{alert.field}_prior")
        if prior <= 0:
            continue
        change = abs((current - prior) / prior * 100)
        if change > alert.threshold:
            warnings.append(CT600Warning(
                alert.field,
                f"{alert.message} (Change: {change:.1f}%)",
                'high' if change > 50 else 'medium',
            ))
    return warnings


def generate_box_breakdown(data: Union[CT600Form, Dict], computation: CT600Computation) -> Dict[str, List[Dict]]:
    """
    Lay the return out box by box for the review step.

    Returns:
        Dict of section name to rows of ``box``, ``label``, ``value`` plus
        ``currency``/``calculated``/``highlight`` flags where they apply
    """
    data = _as_dict(data)

    def money(box, label, value, calculated=False, highlight=False):
        row = {'box': box, 'label': label, 'value': value, 'currency': True}
        if calculated:
            row['calculated'] = True
        if highlight:
            row['highlight'] = True
        return row

    return {
        'company_info': [
            {'box': '1', 'label': 'Company Name', 'value': data.get('company_name')},
            {'box': '2', 'label': 'Company Number', 'value': data.get('company_number')},
            {'box': '3', 'label': 'UTR', 'value': data.get('utr')},
            {'box': '30', 'label': 'Period Start', 'value': data.get('accounting_period_start')},
            {'box': '35', 'label': 'Period End', 'value': data.get('accounting_period_end')},
        ],
        'trading_income': [
            money('40', 'Turnover', data.get('turnover')),
            money('41', 'Cost of Sales', data.get('cost_of_sales')),
            money('42', 'Gross Profit', computation.gross_profit, calculated=True),
            money('43', 'Operating Expenses', data.get('operating_expenses')),
            money('44', 'Trading Profit', computation.trading_profit, calculated=True),
        ],
        'non_trading_income': [
            money('50', 'Interest Received', data.get('interest_received')),
            money('51', 'Dividends Received (UK)', data.get('dividends_received')),
            money('52', 'Property Income', data.get('property_income')),
        ],
        'adjustments': [
            money('70', 'Depreciation Add-back', data.get('depreciation_add_back')),
            money('71', 'Capital Allowances', data.get('capital_allowances')),
            money('72', 'Entertainment Expenses', data.get('entertainment_expenses')),
        ],
        'reliefs': [
            money('100', 'Losses Brought Forward', data.get('losses_brought_forward')),
            money('101', 'R&D Tax Relief', data.get('rd_relief_claim')),
            money('102', 'Charitable Donations', data.get('charitable_donations')),
        ],
        'tax_computation': [
            money('120', 'Profits Before Reliefs', computation.profits_before_reliefs, calculated=True),
            money('125', 'Total Profits Chargeable', computation.total_profits_chargeable, calculated=True),
            {'box': '140', 'label': 'Associated Companies', 'value': data.get('number_of_associated_companies')},
            money('145', 'CT Liability (Before Relief)', computation.corporation_tax_before_marginal_relief,
                  calculated=True),
            money('150', 'Marginal Relief', computation.marginal_relief, calculated=True),
            money('155', 'Tax Payable', computation.corporation_tax_due, calculated=True, highlight=True),
        ],
    }
