"""Ledger package: balance and lock box lifecycle operations."""

from timelock.ledger.service import LedgerService, to_amount

__all__ = ["LedgerService", "to_amount"]
