# backend/folio/__init__.py
"""Folio Ledger: append-only position ledgers with weighted-average-cost valuation."""

__version__ = "0.1.0"
