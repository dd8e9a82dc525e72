"""Ledger node access: JSON-RPC transport, call codec, signing, and submission."""

from ledger_gateway.ledger.client import LedgerClient
from ledger_gateway.ledger.signer import Signer
from ledger_gateway.ledger.submitter import TransactionSubmitter

__all__ = ["LedgerClient", "Signer", "TransactionSubmitter"]
