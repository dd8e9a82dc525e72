"""Typed error taxonomy mapped onto HTTP responses."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for failures surfaced to callers of the gateway.

    ``category`` is the user-facing error label and ``status_code`` the HTTP
    status the transport layer maps it to.
    """

    category = "Internal server error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(GatewayError):
    """Required configuration is missing or invalid."""

    category = "Configuration error"


class ValidationError(GatewayError):
    """Malformed caller input."""

    category = "Validation error"
    status_code = 400


class EstimationError(GatewayError):
    """The node rejected gas estimation, usually because the call would revert."""

    category = "Transaction would revert"
    status_code = 400


class RevertedError(GatewayError):
    """The transaction was mined but its on-chain status reports failure."""

    category = "Transaction reverted"
    status_code = 400

    def __init__(self, message: str, transaction_hash: str, block_number: int | None) -> None:
        super().__init__(message)
        self.transaction_hash = transaction_hash
        self.block_number = block_number


class SubmissionRejectedError(GatewayError):
    """The node refused the signed transaction for a reason other than sequencing."""

    category = "Transaction rejected"
    status_code = 400


class SequenceError(GatewayError):
    """The node rejected the account nonce (collision with another submission)."""

    category = "Transaction sequence conflict"
    status_code = 409


class NetworkError(GatewayError):
    """The ledger node or the store could not be reached."""

    category = "Service unavailable"
    status_code = 503


class LedgerTimeoutError(GatewayError, TimeoutError):
    """A remote call or the receipt wait exceeded its deadline."""

    category = "Ledger timeout"
    status_code = 504


class LedgerRpcError(GatewayError):
    """The node answered with a JSON-RPC error object."""

    category = "Ledger RPC error"
    status_code = 502

    def __init__(self, message: str, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class StoreError(GatewayError):
    """The audit store rejected a write or lost its connection."""

    category = "Audit store error"


class KeyUnavailableError(GatewayError):
    """The signing key was never loaded or has already been released."""

    category = "Signing key unavailable"
