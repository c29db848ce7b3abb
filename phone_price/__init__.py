"""Phone price lookup service backed by a Google Sheets price table."""

__version__ = "0.1.0"
