"""Lint decorator-declared business entities in Python source."""
__version__ = "0.1.0"
