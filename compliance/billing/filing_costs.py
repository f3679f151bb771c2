"""
Credit costs for each filing.

Annual accounts are priced by entity size and CT600 returns by complexity,
which is judged from the number of supplementary pages the return needs.
The confirmation statement is a flat rate.
"""
from typing import Dict, Sequence, Union

from ..validation.form_schemas import FilingType

FILING_COSTS: Dict[FilingType, int] = {
    FilingType.CONFIRMATION_STATEMENT: 100,
    FilingType.ANNUAL_ACCOUNTS: 200,   # small company default
    FilingType.CORPORATION_TAX: 150,   # simple CT600 default
}

ANNUAL_ACCOUNTS_TIERS: Dict[str, int] = {
    'micro': 150,
    'small': 200,
    'medium': 300,
    'large': 400,
}

CT600_TIERS: Dict[str, int] = {
    'simple': 150,
    'standard': 200,
    'complex': 300,
    'group': 400,
}

ENTITY_SIZE_DESCRIPTIONS = {
    'micro': 'Micro-entity accounts (simplified, no Cash Flow)',
    'small': 'Small company accounts (standard)',
    'medium': 'Medium company accounts (includes Cash Flow Statement)',
    'large': 'Large company accounts (includes Cash Flow + Strategic Report)',
}

CT600_COMPLEXITY_DESCRIPTIONS = {
    'simple': 'Simple trading company (no supplementary pages)',
    'standard': 'Standard company (some supplementary pages)',
    'complex': 'Complex company (multiple supplementary pages)',
    'group': 'Group companies (consolidated returns)',
}


def _lookup(table: Dict[str, object], key: str, kind: str):
    try:
        return table[key]
    except KeyError:
        raise ValueError(f"Unknown {kind}: {key}")


def get_filing_cost(filing_type: Union[FilingType, str]) -> int:
    """Flat credit cost for a filing type."""
    return FILING_COSTS[FilingType(filing_type)]


def get_annual_accounts_cost(entity_size: str) -> int:
    """Credit cost for annual accounts of the given entity size."""
    return _lookup(ANNUAL_ACCOUNTS_TIERS, entity_size, 'entity size')


def get_ct600_cost(complexity: str) -> int:
    """Credit cost for a CT600 of the given complexity."""
    return _lookup(CT600_TIERS, complexity, 'CT600 complexity')


def format_filing_cost(filing_type: Union[FilingType, str]) -> str:
    return f"{get_filing_cost(filing_type)} credits"


def get_entity_size_description(entity_size: str) -> str:
    return _lookup(ENTITY_SIZE_DESCRIPTIONS, entity_size, 'entity size')


def get_ct600_complexity_description(complexity: str) -> str:
    return _lookup(CT600_COMPLEXITY_DESCRIPTIONS, complexity, 'CT600 complexity')


def detect_ct600_complexity(supplementary_pages: Sequence[str]) -> str:
    """
    Judge CT600 complexity from the supplementary pages required.

    Args:
        supplementary_pages: Page labels, e.g. ["CT600A: Loans to Participators"]

    Returns:
        str: simple, standard, complex or group
    """
    count = len(supplementary_pages)
    if count == 0:
        return 'simple'
    if count <= 2:
        return 'standard'
    if count <= 5:
        return 'complex'
    return 'group'


# Statutory fees in pounds, charged by Companies House on top of credits
COMPANIES_HOUSE_FEES: Dict[str, int] = {
    'accounts_micro': 12,
    'accounts_small': 12,
    'accounts_medium': 40,
    'accounts_large': 40,
    'confirmation_statement': 13,
}


def get_companies_house_fee(filing_type: Union[FilingType, str], entity_size: str = 'small') -> int:
    """
    Companies House fee in pounds for a filing. HMRC charges nothing for a CT600.

    Args:
        filing_type: The filing being made
        entity_size: Entity size, used for annual accounts only

    Returns:
        int: Fee in whole pounds
    """
    filing_type = FilingType(filing_type)
    if filing_type == FilingType.CORPORATION_TAX:
        return 0
    if filing_type == FilingType.CONFIRMATION_STATEMENT:
        return COMPANIES_HOUSE_FEES['confirmation_statement']
    return _lookup(COMPANIES_HOUSE_FEES, f"accounts_{entity_size}", 'entity size')
