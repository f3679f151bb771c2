"""
Validation utilities for filing wizard forms.
"""
from .form_schemas import (
    FilingType,
    AnnualAccountsForm,
    ConfirmationStatementForm,
    CT600Form,
    PersonWithSignificantControl,
    ShareClass,
    Shareholder,
    FORM_MODELS,
)
from .form_validator import FormValidator, FormValidationResult, FieldError, detect_entity_size

__all__ = [
    'FilingType',
    'AnnualAccountsForm',
    'ConfirmationStatementForm',
    'CT600Form',
    'PersonWithSignificantControl',
    'ShareClass',
    'Shareholder',
    'FORM_MODELS',
    'FormValidator',
    'FormValidationResult',
    'FieldError',
    'detect_entity_size',
]
