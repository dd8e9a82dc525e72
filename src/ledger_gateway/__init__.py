"""Ledger gateway: contract writes with durable audit and composite health."""

__version__ = "0.1.0"
