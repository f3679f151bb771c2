"""
Configuration package for the filing compliance client.
"""
