"""Mask e-mail addresses and phone numbers in SQL dumps, line by line."""

__version__ = "0.1.0"
__all__ = ["__version__"]