"""Schema-driven spreadsheet mapping, validation and correction for personnel imports."""

__version__ = "0.1.0"
