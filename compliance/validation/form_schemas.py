"""
Pydantic models for the filing wizard forms.

Field names are snake_case on the Python side and serialise to the camelCase
keys the filing API expects (``model_dump(by_alias=True)``).
"""
import re
from datetime import date
from enum import Enum
from typing import ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class FilingType(str, Enum):
    """Filing types handled by the wizards."""
    ANNUAL_ACCOUNTS = "annual_accounts"
    CONFIRMATION_STATEMENT = "confirmation_statement"
    CORPORATION_TAX = "corporation_tax"


EntitySize = Literal['micro', 'small', 'medium', 'large']

NATURE_OF_CONTROL_OPTIONS = {
    'shares_over_25': 'Owns more than 25% of shares',
    'voting_over_25': 'Holds more than 25% of voting rights',
    'appoint_directors': 'Right to appoint or remove directors',
    'significant_influence': 'Right to exercise significant influence or control',
}

SIC_CODE_PATTERN = re.compile(r'^\d{5}$')
MAX_SIC_CODES = 4


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD (or full ISO timestamp) string into a date."""
    return date.fromisoformat(value[:10])


def split_names(value: str) -> List[str]:
    """Split a comma-separated list of names, dropping blanks."""
    return [name.strip() for name in value.split(',') if name.strip()]


class FormModel(BaseModel):
    """Base for all wizard forms."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        loc_by_alias=False,
        str_strip_whitespace=True,
    )

    # Inline messages keyed by field name; anything missing gets a generic message
    FIELD_MESSAGES: ClassVar[Dict[str, str]] = {}

    @model_validator(mode='before')
    @classmethod
    def drop_blank_values(cls, data):
        # Blank inputs fall back to the field default, like an untouched form control
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None and v != ''}
        return data

    def to_api_payload(self) -> Dict:
        """Serialise for the filing API."""
        return self.model_dump(by_alias=True, mode='json')


def _check_iso_date(value: str, label: str) -> str:
    try:
        parse_iso_date(value)
    except ValueError:
        raise ValueError(f'{label} must be a valid date (YYYY-MM-DD)')
    return value


class AnnualAccountsForm(FormModel):
    """Annual accounts wizard form (balance sheet, P&L, cash flow, strategic report)."""

    FIELD_MESSAGES = {
        'company_name': 'Company name is required',
        'company_number': 'Company number must be at least 8 characters',
        'registered_office': 'Registered office is required',
        'financial_year_start': 'Financial year start is required',
        'financial_year_end': 'Financial year end is required',
        'director_names': 'At least one director required',
    }

    # Company information
    company_name: str = Field(..., min_length=1)
    company_number: str = Field(..., min_length=8)
    registered_office: str = Field(..., min_length=1)
    financial_year_start: str = Field(..., min_length=1)
    financial_year_end: str = Field(..., min_length=1)
    entity_size: EntitySize = 'small'

    # Balance sheet: fixed assets
    intangible_assets: float = Field(default=0, ge=0)
    tangible_assets: float = Field(default=0, ge=0)
    investments: float = Field(default=0, ge=0)

    # Balance sheet: current assets
    stocks: float = Field(default=0, ge=0)
    debtors: float = Field(default=0, ge=0)
    cash_at_bank: float = Field(default=0, ge=0)

    # Balance sheet: creditors
    creditors_due_within_year: float = Field(default=0, ge=0)
    creditors_due_after_year: float = Field(default=0, ge=0)

    # Capital and reserves
    called_up_share_capital: float = Field(default=0, ge=0)
    profit_and_loss_account: float = 0

    # Profit and loss
    turnover: float = Field(default=0, ge=0)
    cost_of_sales: float = Field(default=0, ge=0)
    gross_profit: float = 0
    administrative_expenses: float = Field(default=0, ge=0)
    operating_profit: float = 0

    # Prior year comparatives
    intangible_assets_prior: Optional[float] = Field(default=0, ge=0)
    tangible_assets_prior: Optional[float] = Field(default=0, ge=0)
    investments_prior: Optional[float] = Field(default=0, ge=0)
    stocks_prior: Optional[float] = Field(default=0, ge=0)
    debtors_prior: Optional[float] = Field(default=0, ge=0)
    cash_at_bank_prior: Optional[float] = Field(default=0, ge=0)
    creditors_due_within_year_prior: Optional[float] = Field(default=0, ge=0)
    creditors_due_after_year_prior: Optional[float] = Field(default=0, ge=0)
    called_up_share_capital_prior: Optional[float] = Field(default=0, ge=0)
    profit_and_loss_account_prior: Optional[float] = 0
    turnover_prior: Optional[float] = Field(default=0, ge=0)
    cost_of_sales_prior: Optional[float] = Field(default=0, ge=0)
    gross_profit_prior: Optional[float] = 0
    administrative_expenses_prior: Optional[float] = Field(default=0, ge=0)
    operating_profit_prior: Optional[float] = 0

    # Other
    director_names: str = Field(..., min_length=1)
    audit_exempt: bool = True
    accounting_policies: Optional[str] = None

    # Cash flow statement
    profit_before_tax: Optional[float] = 0
    depreciation: Optional[float] = Field(default=0, ge=0)
    increase_decrease_in_stocks: Optional[float] = 0
    increase_decrease_in_debtors: Optional[float] = 0
    increase_decrease_in_creditors: Optional[float] = 0
    tax_paid: Optional[float] = Field(default=0, ge=0)
    purchase_of_tangible_assets: Optional[float] = Field(default=0, ge=0)
    new_loans_received: Optional[float] = Field(default=0, ge=0)
    repayment_of_borrowings: Optional[float] = Field(default=0, ge=0)
    opening_cash: Optional[float] = 0
    closing_cash: Optional[float] = 0

    # Strategic report
    business_model: Optional[str] = None
    principal_risks: Optional[str] = None
    key_performance_indicators: Optional[str] = None

    @field_validator('financial_year_start', 'financial_year_end')
    @classmethod
    def validate_year_dates(cls, v, info):
        return _check_iso_date(v, info.field_name.replace('_', ' ').capitalize())

    @property
    def directors(self) -> List[str]:
        return split_names(self.director_names)

    @property
    def fixed_assets(self) -> float:
        return self.intangible_assets + self.tangible_assets + self.investments

    @property
    def current_assets(self) -> float:
        return self.stocks + self.debtors + self.cash_at_bank

    @property
    def total_assets(self) -> float:
        return self.fixed_assets + self.current_assets

    @property
    def net_current_assets(self) -> float:
        return self.current_assets - self.creditors_due_within_year

    @property
    def net_assets(self) -> float:
        return self.fixed_assets + self.net_current_assets - self.creditors_due_after_year


class PersonWithSignificantControl(FormModel):
    """A PSC record for the confirmation statement."""

    FIELD_MESSAGES = {
        'name': 'PSC name is required',
        'nationality': 'PSC nationality is required',
        'date_of_birth': 'PSC date of birth is required',
        'service_address': 'PSC service address is required',
        'nature_of_control': 'Select at least one nature of control',
    }

    name: str = Field(..., min_length=1)
    nationality: str = Field(default='British', min_length=1)
    date_of_birth: str = Field(..., min_length=1)
    service_address: str = Field(..., min_length=1)
    nature_of_control: List[str] = Field(..., min_length=1)

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, v):
        return _check_iso_date(v, 'PSC date of birth')

    @field_validator('nature_of_control')
    @classmethod
    def validate_nature_of_control(cls, v):
        unknown = [tag for tag in v if tag not in NATURE_OF_CONTROL_OPTIONS]
        if unknown:
            raise ValueError(f"Unknown nature of control: {', '.join(unknown)}")
        return v


class ShareClass(FormModel):
    """One class of issued shares in the statement of capital."""

    FIELD_MESSAGES = {
        'class_name': 'Share class name is required',
        'number_of_shares': 'At least one share must be issued',
    }

    class_name: str = Field(default='Ordinary', min_length=1)
    number_of_shares: int = Field(..., ge=1)
    nominal_value: float = Field(default=1.0, ge=0)
    currency: Literal['GBP', 'USD', 'EUR'] = 'GBP'
    amount_paid_up: float = Field(default=0, ge=0)
    amount_unpaid: float = Field(default=0, ge=0)

    @property
    def aggregate_nominal_value(self) -> float:
        return round(self.number_of_shares * self.nominal_value, 2)


class Shareholder(FormModel):
    """A shareholding in a given share class."""

    FIELD_MESSAGES = {
        'name': 'Shareholder name is required',
    }

    name: str = Field(..., min_length=1)
    share_class: str = Field(default='Ordinary', min_length=1)
    number_of_shares: int = Field(default=0, ge=0)


class ConfirmationStatementForm(FormModel):
    """CS01 confirmation statement wizard form."""

    FIELD_MESSAGES = {
        'company_name': 'Company name is required',
        'company_number': 'Company number must be at least 8 characters',
        'registered_office': 'Registered office is required',
        'sic_codes': 'At least one SIC code is required',
        'directors': 'At least one director is required',
        'pscs': 'At least one person with significant control is required',
        'statement_date': 'Statement date is required',
        'made_up_to_date': 'Made up to date is required',
    }

    company_name: str = Field(..., min_length=1)
    company_number: str = Field(..., min_length=8)
    registered_office: str = Field(..., min_length=1)
    sic_codes: str = Field(..., min_length=1)
    trading_status: Literal['trading', 'dormant'] = 'trading'
    directors: str = Field(..., min_length=1)
    pscs: List[PersonWithSignificantControl] = Field(..., min_length=1)
    share_capital_changed: bool = False
    share_classes: List[ShareClass] = Field(default_factory=list)
    shareholders: List[Shareholder] = Field(default_factory=list)
    statement_date: str = Field(..., min_length=1)
    made_up_to_date: str = Field(..., min_length=1)

    @field_validator('sic_codes')
    @classmethod
    def validate_sic_codes(cls, v):
        codes = split_names(v)
        if not codes:
            raise ValueError('At least one SIC code is required')
        if len(codes) > MAX_SIC_CODES:
            raise ValueError(f'No more than {MAX_SIC_CODES} SIC codes can be given')
        bad = [code for code in codes if not SIC_CODE_PATTERN.match(code)]
        if bad:
            raise ValueError(f"SIC codes must be 5 digits: {', '.join(bad)}")
        return v

    @field_validator('statement_date', 'made_up_to_date')
    @classmethod
    def validate_statement_dates(cls, v, info):
        return _check_iso_date(v, info.field_name.replace('_', ' ').capitalize())

    @property
    def sic_code_list(self) -> List[str]:
        return split_names(self.sic_codes)

    @property
    def director_list(self) -> List[str]:
        return split_names(self.directors)

    def statement_of_capital(self) -> List[Dict]:
        """Aggregate figures per share class."""
        return [
            {
                'class_name': share_class.class_name,
                'number_of_shares': share_class.number_of_shares,
                'currency': share_class.currency,
                'aggregate_nominal_value': share_class.aggregate_nominal_value,
                'amount_paid_up': share_class.amount_paid_up,
                'amount_unpaid': share_class.amount_unpaid,
            }
            for share_class in self.share_classes
        ]


class CT600Form(FormModel):
    """Corporation Tax return (CT600) wizard form."""

    FIELD_MESSAGES = {
        'company_name': 'Company name is required',
        'company_number': 'Company number must be at least 8 characters',
        'utr': 'UTR must be at least 10 characters',
        'accounting_period_start': 'Start date is required',
        'accounting_period_end': 'End date is required',
        'number_of_associated_companies': 'Number of associated companies must be a whole number, 0 or more',
    }

    # Company info
    company_name: str = Field(..., min_length=1)
    company_number: str = Field(..., min_length=8)
    utr: str = Field(..., min_length=10)

    # Accounting period
    accounting_period_start: str = Field(..., min_length=1)
    accounting_period_end: str = Field(..., min_length=1)

    # Activity detection
    has_property_income: bool = False
    is_close_company: bool = False
    has_overseas_income: bool = False
    has_controlled_foreign_companies: bool = False
    has_group_relief: bool = False
    paid_dividends: bool = False
    has_transfer_pricing: bool = False
    is_insurance_company: bool = False
    is_charity: bool = False
    is_oil_gas_company: bool = False

    # Trading income
    turnover: float = Field(..., ge=0)
    cost_of_sales: float = Field(default=0, ge=0)
    operating_expenses: float = Field(default=0, ge=0)

    # Non-trading income
    interest_received: float = Field(default=0, ge=0)
    dividends_received: float = Field(default=0, ge=0)
    property_income: float = Field(default=0, ge=0)

    # Adjustments
    depreciation_add_back: float = Field(default=0, ge=0)
    capital_allowances: float = Field(default=0, ge=0)
    entertainment_expenses: float = Field(default=0, ge=0)

    # Reliefs
    losses_brought_forward: float = Field(default=0, ge=0)
    rd_relief_claim: float = Field(default=0, ge=0)
    charitable_donations: float = Field(default=0, ge=0)

    number_of_associated_companies: int = Field(default=0, ge=0)

    # Prior year comparatives
    turnover_prior: Optional[float] = Field(default=None, ge=0)
    cost_of_sales_prior: Optional[float] = Field(default=None, ge=0)
    operating_expenses_prior: Optional[float] = Field(default=None, ge=0)
    interest_received_prior: Optional[float] = Field(default=None, ge=0)
    dividends_received_prior: Optional[float] = Field(default=None, ge=0)
    property_income_prior: Optional[float] = Field(default=None, ge=0)
    depreciation_add_back_prior: Optional[float] = Field(default=None, ge=0)
    capital_allowances_prior: Optional[float] = Field(default=None, ge=0)
    losses_brought_forward_prior: Optional[float] = Field(default=None, ge=0)
    rd_relief_claim_prior: Optional[float] = Field(default=None, ge=0)
    charitable_donations_prior: Optional[float] = Field(default=None, ge=0)

    @field_validator('accounting_period_start', 'accounting_period_end')
    @classmethod
    def validate_period_dates(cls, v, info):
        return _check_iso_date(v, info.field_name.replace('_', ' ').capitalize())


FORM_MODELS = {
    FilingType.ANNUAL_ACCOUNTS: AnnualAccountsForm,
    FilingType.CONFIRMATION_STATEMENT: ConfirmationStatementForm,
    FilingType.CORPORATION_TAX: CT600Form,
}
