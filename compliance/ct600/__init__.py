"""
CT600 box reference, box rules and the client-side tax preview.
"""
from .box_mapping import (
    CT600_BOXES,
    SUPPLEMENTARY_PAGES,
    CT600Box,
    SupplementaryPage,
    find_box_number,
    get_box,
    required_supplementary_pages,
)
from .ct600_validator import (
    CT600Computation,
    CT600Error,
    CT600ValidationResult,
    CT600Warning,
    computation_from_response,
    estimate_ct600_tax,
    generate_box_breakdown,
    validate_ct600,
)

__all__ = [
    'CT600_BOXES',
    'SUPPLEMENTARY_PAGES',
    'CT600Box',
    'SupplementaryPage',
    'find_box_number',
    'get_box',
    'required_supplementary_pages',
    'CT600Computation',
    'CT600Error',
    'CT600ValidationResult',
    'CT600Warning',
    'computation_from_response',
    'estimate_ct600_tax',
    'generate_box_breakdown',
    'validate_ct600',
]
