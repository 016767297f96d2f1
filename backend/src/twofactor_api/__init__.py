"""ERP two-factor authentication API."""

__version__ = "0.1.0"
