"""
Ratekeeper - user and server reviews with cached rating aggregates.
"""
__version__ = "0.1.0"
