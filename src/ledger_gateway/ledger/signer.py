"""Custody of the gateway's single signing key."""

from __future__ import annotations

import logging
import threading
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ledger_gateway.config import SignerSettings
from ledger_gateway.errors import ConfigurationError, KeyUnavailableError

logger = logging.getLogger(__name__)


def _normalize_key(raw: str) -> str:
    key = raw.strip()
    if key.startswith(("0x", "0X")):
        key = key[2:]
    return "0x" + key


class Signer:
    """Scoped handle around one private key.

    The key is loaded once at startup and released by ``close()``. Only the
    derived address and produced signatures leave this object.
    """

    def __init__(self, account: LocalAccount) -> None:
        self._account: LocalAccount | None = account
        self._address = account.address
        self._lock = threading.Lock()

    @classmethod
    def from_private_key(cls, private_key: str) -> "Signer":
        try:
            account = Account.from_key(_normalize_key(private_key))
        except Exception:
            # eth-keys raises its own error types; the text can echo key material.
            raise ConfigurationError("Signing key is not a valid secp256k1 private key") from None
        return cls(account)

    @classmethod
    def from_settings(cls, settings: SignerSettings) -> "Signer":
        if settings.private_key is None or not settings.private_key.get_secret_value().strip():
            raise ConfigurationError("SIGNER_PRIVATE_KEY is required to start the gateway")
        signer = cls.from_private_key(settings.private_key.get_secret_value())
        logger.info("Signing key loaded for account %s", signer.address)
        return signer

    @property
    def address(self) -> str:
        return self._address

    @property
    def available(self) -> bool:
        return self._account is not None

    def sign(self, unsigned_tx: dict[str, Any]) -> bytes:
        """Sign ``unsigned_tx`` and return the raw transaction bytes."""
        with self._lock:
            account = self._account
        if account is None:
            raise KeyUnavailableError("Signing key is not loaded")
        signed = account.sign_transaction(unsigned_tx)
        raw_tx = getattr(signed, "raw_transaction", None)
        if raw_tx is None:
            raw_tx = getattr(signed, "rawTransaction", None)
        return bytes(raw_tx)

    def close(self) -> None:
        with self._lock:
            if self._account is None:
                return
            self._account = None
        logger.info("Signing key released for account %s", self._address)

    def __repr__(self) -> str:
        return f"Signer(address={self._address}, available={self.available})"
