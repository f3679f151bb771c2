"""
Validation of wizard form payloads.

Payloads are checked against a JSON schema first, then built into the
pydantic form models, then run through cross-field business rules. Every
problem found is reported against its field so it can be shown inline.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from dateutil.relativedelta import relativedelta
from jsonschema import Draft7Validator
from pydantic import BaseModel, ValidationError

from .form_schemas import (
    FORM_MODELS,
    AnnualAccountsForm,
    ConfirmationStatementForm,
    FilingType,
    parse_iso_date,
)

logger = logging.getLogger(__name__)

# Companies Act size thresholds (turnover, total assets)
ENTITY_SIZE_THRESHOLDS = [
    ('micro', 632_000, 316_000),
    ('small', 10_200_000, 5_100_000),
    ('medium', 36_000_000, 18_000_000),
]

# Error types that get the model's own inline message for the field
_MESSAGE_OVERRIDE_TYPES = {
    'missing', 'string_too_short', 'too_short', 'greater_than_equal', 'int_parsing',
}


@dataclass
class FieldError:
    """A validation problem attached to one form field."""
    field: str
    message: str


@dataclass
class FormValidationResult:
    """Outcome of validating one form payload."""
    is_valid: bool
    errors: List[FieldError] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None
    model: Optional[BaseModel] = None

    def errors_for(self, field_name: str) -> List[str]:
        """Messages for a field and any of its nested items."""
        return [
            e.message for e in self.errors
            if e.field == field_name or e.field.startswith(f"{field_name}.")
        ]

    def as_dict(self) -> Dict[str, str]:
        """First message per field, for inline display."""
        result: Dict[str, str] = {}
        for error in self.errors:
            result.setdefault(error.field, error.message)
        return result


def detect_entity_size(turnover: float, total_assets: float) -> str:
    """
    Classify a company by turnover and balance sheet total.

    Args:
        turnover: Annual turnover in GBP
        total_assets: Gross assets in GBP

    Returns:
        str: One of micro, small, medium, large
    """
    for size, turnover_limit, assets_limit in ENTITY_SIZE_THRESHOLDS:
        if turnover <= turnover_limit and total_assets <= assets_limit:
            return size
    return 'large'


_NUMBER = {"type": ["number", "string", "null"]}
_NON_NEGATIVE = {"type": ["number", "string", "null"], "minimum": 0}
_TEXT = {"type": ["string", "null"]}


def _amount_properties(names: Iterable[str], non_negative: bool = True) -> Dict[str, Dict]:
    return {name: dict(_NON_NEGATIVE if non_negative else _NUMBER) for name in names}


class FormValidator:
    """
    Validator for the three filing wizard forms.
    """

    def __init__(self):
        """Initialize the validator with schema definitions."""
        self.schemas = self._load_json_schemas()
        self._validators = {
            filing_type: Draft7Validator(schema)
            for filing_type, schema in self.schemas.items()
        }

    def _load_json_schemas(self) -> Dict[FilingType, Dict]:
        """Load JSON schemas for payload shape checks."""
        annual_amounts = [
            'intangible_assets', 'tangible_assets', 'investments', 'stocks', 'debtors',
            'cash_at_bank', 'creditors_due_within_year', 'creditors_due_after_year',
            'called_up_share_capital', 'turnover', 'cost_of_sales', 'administrative_expenses',
        ]
        ct600_amounts = [
            'turnover', 'cost_of_sales', 'operating_expenses', 'interest_received',
            'dividends_received', 'property_income', 'depreciation_add_back',
            'capital_allowances', 'entertainment_expenses', 'losses_brought_forward',
            'rd_relief_claim', 'charitable_donations',
        ]

        return {
            FilingType.ANNUAL_ACCOUNTS: {
                "type": "object",
                "required": [
                    "company_name", "company_number", "registered_office",
                    "financial_year_start", "financial_year_end", "director_names",
                ],
                "properties": {
                    "company_name": _TEXT,
                    "company_number": _TEXT,
                    "registered_office": _TEXT,
                    "financial_year_start": _TEXT,
                    "financial_year_end": _TEXT,
                    "entity_size": {"enum": ["micro", "small", "medium", "large", None]},
                    "director_names": _TEXT,
                    "audit_exempt": {"type": ["boolean", "null"]},
                    "profit_and_loss_account": _NUMBER,
                    **_amount_properties(annual_amounts),
                    **_amount_properties(f"{name}_prior" for name in annual_amounts),
                },
            },
            FilingType.CONFIRMATION_STATEMENT: {
                "type": "object",
                "required": [
                    "company_name", "company_number", "registered_office", "sic_codes",
                    "directors", "pscs", "statement_date", "made_up_to_date",
                ],
                "properties": {
                    "company_name": _TEXT,
                    "company_number": _TEXT,
                    "registered_office": _TEXT,
                    "sic_codes": _TEXT,
                    "trading_status": {"enum": ["trading", "dormant", None]},
                    "directors": _TEXT,
                    "pscs": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["name", "date_of_birth", "service_address", "nature_of_control"],
                            "properties": {
                                "name": _TEXT,
                                "nationality": _TEXT,
                                "date_of_birth": _TEXT,
                                "service_address": _TEXT,
                                "nature_of_control": {"type": "array", "items": {"type": "string"}},
                            },
                        },
                    },
                    "share_capital_changed": {"type": ["boolean", "null"]},
                    "share_classes": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["number_of_shares"],
                            "properties": {
                                "class_name": _TEXT,
                                "number_of_shares": {"type": ["integer", "string"]},
                                "nominal_value": _NON_NEGATIVE,
                                "currency": {"enum": ["GBP", "USD", "EUR", None]},
                                "amount_paid_up": _NON_NEGATIVE,
                                "amount_unpaid": _NON_NEGATIVE,
                            },
                        },
                    },
                    "shareholders": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["name"],
                            "properties": {
                                "name": _TEXT,
                                "share_class": _TEXT,
                                "number_of_shares": {"type": ["integer", "string"]},
                            },
                        },
                    },
                    "statement_date": _TEXT,
                    "made_up_to_date": _TEXT,
                },
            },
            FilingType.CORPORATION_TAX: {
                "type": "object",
                "required": [
                    "company_name", "company_number", "utr",
                    "accounting_period_start", "accounting_period_end", "turnover",
                ],
                "properties": {
                    "company_name": _TEXT,
                    "company_number": _TEXT,
                    "utr": _TEXT,
                    "accounting_period_start": _TEXT,
                    "accounting_period_end": _TEXT,
                    "number_of_associated_companies": {"type": ["integer", "string", "null"], "minimum": 0},
                    **_amount_properties(ct600_amounts),
                    **_amount_properties(f"{name}_prior" for name in ct600_amounts),
                },
            },
        }

    def validate(self, filing_type: Union[FilingType, str], payload: Dict) -> FormValidationResult:
        """
        Validate a complete form payload.

        Args:
            filing_type: Which wizard form the payload belongs to
            payload: Raw form values keyed by snake_case field name

        Returns:
            FormValidationResult: Field errors, or the normalised data
        """
        filing_type = FilingType(filing_type)
        model_cls = FORM_MODELS[filing_type]

        if not isinstance(payload, dict):
            return FormValidationResult(is_valid=False, errors=[FieldError('__root__', 'Form data must be an object')])

        errors: List[FieldError] = []
        self._collect_schema_errors(filing_type, payload, errors)

        model = None
        try:
            model = model_cls.model_validate(payload)
        except ValidationError as e:
            self._collect_model_errors(model_cls, e, errors)

        # Date order only depends on the two dates, not on the rest of the form
        errors.extend(self._apply_date_rules(filing_type, payload, errors))
        if model is not None and not errors:
            errors.extend(self._apply_business_rules(model))

        errors = self._dedupe(errors)
        if errors:
            logger.debug(f"{filing_type.value} form failed validation on {len(errors)} field(s)")
            return FormValidationResult(is_valid=False, errors=errors)

        logger.debug(f"{filing_type.value} form validated for {getattr(model, 'company_number', '')}")
        return FormValidationResult(is_valid=True, data=model.model_dump(), model=model)

    def validate_fields(
        self,
        filing_type: Union[FilingType, str],
        payload: Dict,
        fields: Sequence[str],
    ) -> FormValidationResult:
        """
        Validate only the named fields of a form (one wizard step).

        Args:
            filing_type: Which wizard form the payload belongs to
            payload: Raw form values
            fields: Field names owned by the step

        Returns:
            FormValidationResult: Errors restricted to the named fields
        """
        result = self.validate(filing_type, payload)
        if result.is_valid:
            return result

        wanted = set(fields)
        step_errors = [
            e for e in result.errors
            if e.field.split('.')[0] in wanted
        ]
        return FormValidationResult(is_valid=not step_errors, errors=step_errors)

    def _collect_schema_errors(self, filing_type: FilingType, payload: Any, errors: List[FieldError]):
        validator = self._validators[filing_type]
        for error in validator.iter_errors(payload):
            if error.validator == 'required':
                # "'company_name' is a required property"
                field_name = error.message.split("'")[1]
                path = list(error.absolute_path) + [field_name]
            else:
                path = list(error.absolute_path)
            field_name = '.'.join(str(p) for p in path) or '__root__'
            errors.append(FieldError(field_name, self._schema_message(filing_type, field_name, error)))

    def _schema_message(self, filing_type: FilingType, field_name: str, error) -> str:
        loc = field_name.split('.')
        owner = _message_owner(FORM_MODELS[filing_type], loc)
        if error.validator == 'minimum' and error.validator_value == 0:
            return f"{_label(field_name)} cannot be negative"
        if error.validator in ('required', 'minimum') and loc[-1] in owner.FIELD_MESSAGES:
            return owner.FIELD_MESSAGES[loc[-1]]
        if error.validator == 'minimum':
            return f"{_label(field_name)} must be at least {error.validator_value}"
        if error.validator == 'required':
            return f"{_label(field_name)} is required"
        return f"{_label(field_name)}: {error.message}"

    def _collect_model_errors(self, model_cls, exc: ValidationError, errors: List[FieldError]):
        for err in exc.errors():
            loc = [str(p) for p in err['loc']]
            field_name = '.'.join(loc) or '__root__'
            errors.append(FieldError(field_name, self._model_message(model_cls, loc, err)))

    def _model_message(self, model_cls, loc: List[str], err: Dict) -> str:
        owner = _message_owner(model_cls, loc)
        leaf = loc[-1] if loc else ''
        if err['type'] == 'greater_than_equal' and err.get('ctx', {}).get('ge') == 0:
            return f"{_label(leaf)} cannot be negative"
        if err['type'] in _MESSAGE_OVERRIDE_TYPES and leaf in owner.FIELD_MESSAGES:
            return owner.FIELD_MESSAGES[leaf]
        if err['type'] == 'missing':
            return f"{_label(leaf)} is required"
        message = err['msg']
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        return message

    def _apply_date_rules(
        self,
        filing_type: FilingType,
        payload: Dict,
        errors: List[FieldError],
    ) -> List[FieldError]:
        """
        Compare the form's paired dates using the raw payload values.

        The rule is skipped when either date is missing or already has an
        error of its own.
        """
        date_fields, rule = DATE_RULES[filing_type]
        failed = {e.field.split('.')[0] for e in errors}
        if any(name in failed or not payload.get(name) for name in date_fields):
            return []
        dates = {name: parse_iso_date(str(payload[name]).strip()) for name in date_fields}
        return rule(dates)

    def _apply_business_rules(self, model: BaseModel) -> List[FieldError]:
        """Cross-field rules the schema cannot express."""
        if isinstance(model, AnnualAccountsForm):
            return self._annual_accounts_rules(model)
        if isinstance(model, ConfirmationStatementForm):
            return self._confirmation_statement_rules(model)
        return []

    @staticmethod
    def _annual_accounts_rules(form: AnnualAccountsForm) -> List[FieldError]:
        if not form.directors:
            return [FieldError('director_names', 'At least one director required')]
        return []

    @staticmethod
    def _confirmation_statement_rules(form: ConfirmationStatementForm) -> List[FieldError]:
        errors = []
        if not form.director_list:
            errors.append(FieldError('directors', 'At least one director is required'))

        issued = {sc.class_name: sc.number_of_shares for sc in form.share_classes}
        held: Dict[str, int] = {}
        for index, holder in enumerate(form.shareholders):
            if issued and holder.share_class not in issued:
                errors.append(FieldError(
                    f'shareholders.{index}.share_class',
                    f"Unknown share class '{holder.share_class}'",
                ))
                continue
            held[holder.share_class] = held.get(holder.share_class, 0) + holder.number_of_shares

        for class_name, total_held in held.items():
            if class_name in issued and total_held > issued[class_name]:
                errors.append(FieldError(
                    'shareholders',
                    f"Shareholders hold {total_held} {class_name} shares but only {issued[class_name]} are issued",
                ))
        return errors

    @staticmethod
    def _dedupe(errors: List[FieldError]) -> List[FieldError]:
        seen = set()
        unique = []
        for error in errors:
            if error.field in seen:
                continue
            seen.add(error.field)
            unique.append(error)
        return unique


def _financial_year_rule(dates: Dict[str, date]) -> List[FieldError]:
    start, end = dates['financial_year_start'], dates['financial_year_end']
    if end <= start:
        return [FieldError('financial_year_end', 'Financial year end must be after the start')]
    if end > start + relativedelta(months=18):
        return [FieldError('financial_year_end', 'Accounting reference period cannot exceed 18 months')]
    return []


def _made_up_to_rule(dates: Dict[str, date]) -> List[FieldError]:
    if dates['made_up_to_date'] > dates['statement_date']:
        return [FieldError('made_up_to_date', 'Made up to date cannot be after the statement date')]
    return []


def _accounting_period_rule(dates: Dict[str, date]) -> List[FieldError]:
    if dates['accounting_period_end'] <= dates['accounting_period_start']:
        return [FieldError('accounting_period_end', 'Accounting period end date must be after start date')]
    return []


# The two date fields each form compares, and the rule comparing them
DATE_RULES: Dict[FilingType, Tuple[Tuple[str, str], Callable[[Dict[str, date]], List[FieldError]]]] = {
    FilingType.ANNUAL_ACCOUNTS: (('financial_year_start', 'financial_year_end'), _financial_year_rule),
    FilingType.CONFIRMATION_STATEMENT: (('statement_date', 'made_up_to_date'), _made_up_to_rule),
    FilingType.CORPORATION_TAX: (('accounting_period_start', 'accounting_period_end'), _accounting_period_rule),
}


def _message_owner(model_cls, loc: List[str]):
    # Nested errors (pscs.0.name) take the nested model's messages
    if len(loc) >= 3 and loc[0] in ('pscs', 'share_classes', 'shareholders'):
        return model_cls.model_fields[loc[0]].annotation.__args__[0]
    return model_cls


def _label(field_name: str) -> str:
    leaf = field_name.split('.')[-1]
    return leaf.replace('_', ' ').capitalize()
