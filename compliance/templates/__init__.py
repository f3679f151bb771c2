"""
Review-pack templates.
"""
from .template_manager import (
    TemplateManager,
    TemplateVersion,
    gbp_filter,
    mask_utr_filter,
    percentage_filter,
    uk_date_filter,
)

__all__ = [
    'TemplateManager',
    'TemplateVersion',
    'gbp_filter',
    'mask_utr_filter',
    'percentage_filter',
    'uk_date_filter',
]
