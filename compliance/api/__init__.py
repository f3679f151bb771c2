"""
REST client for the filing service.
"""
from .client import ApiError, FilingApiClient

__all__ = ['ApiError', 'FilingApiClient']
