"""Delimited text import engine for Dolibarr-style PostgreSQL databases."""

__version__ = "0.1.0"
