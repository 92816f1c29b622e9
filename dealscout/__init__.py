# dealscout/__init__.py
"""Commercial-property discovery pipeline with watchlist monitoring."""

__version__ = "0.1.0"
