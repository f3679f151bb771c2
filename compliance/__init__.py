"""
Client-side toolkit for UK Companies House and HMRC filings.
"""

__version__ = "1.0.0"
