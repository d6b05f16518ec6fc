"""Multi-platform sync pipeline feeding the sales dashboard tables."""

__version__ = "0.1.0"
