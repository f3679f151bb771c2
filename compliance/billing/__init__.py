"""
Filing credit costs and the credit gate.
"""
from .filing_costs import (
    ANNUAL_ACCOUNTS_TIERS,
    CT600_TIERS,
    COMPANIES_HOUSE_FEES,
    FILING_COSTS,
    detect_ct600_complexity,
    format_filing_cost,
    get_annual_accounts_cost,
    get_ct600_complexity_description,
    get_ct600_cost,
    get_entity_size_description,
    get_companies_house_fee,
    get_filing_cost,
)
from .credit_check import CreditCheckResult, CreditGate

__all__ = [
    'ANNUAL_ACCOUNTS_TIERS',
    'CT600_TIERS',
    'COMPANIES_HOUSE_FEES',
    'FILING_COSTS',
    'detect_ct600_complexity',
    'format_filing_cost',
    'get_annual_accounts_cost',
    'get_ct600_complexity_description',
    'get_ct600_cost',
    'get_entity_size_description',
    'get_companies_house_fee',
    'get_filing_cost',
    'CreditCheckResult',
    'CreditGate',
]
