"""
Review-pack PDF generation.
"""
from .pdf_generator import ReviewPackGenerator

__all__ = ['ReviewPackGenerator']
