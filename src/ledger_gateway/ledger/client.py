"""JSON-RPC transport to a remote ledger node."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx
from eth_utils import add_0x_prefix, remove_0x_prefix

from ledger_gateway.errors import LedgerRpcError, LedgerTimeoutError, NetworkError

logger = logging.getLogger(__name__)

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def hex_to_int(value: str | int | None) -> int:
    """Decode a JSON-RPC quantity (``"0x1a"``) into an int."""
    if value is None:
        raise ValueError("Expected a hex quantity, got None")
    if isinstance(value, int):
        return value
    stripped = remove_0x_prefix(value)
    return int(stripped, 16) if stripped else 0


def int_to_hex(value: int) -> str:
    return hex(value)


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(remove_0x_prefix(value))


class LedgerClient:
    """Thin async JSON-RPC client.

    Every call is bounded by ``timeout_seconds``. Transport failures surface as
    ``NetworkError``, deadline overruns as ``LedgerTimeoutError`` and JSON-RPC
    error objects as ``LedgerRpcError``. Nothing is retried here.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers=_JSON_HEADERS,
            transport=transport,
        )
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as exc:
            raise LedgerTimeoutError(f"{method} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Cannot reach ledger node at {self.rpc_url}: {exc}") from exc

        if response.status_code >= 400:
            raise NetworkError(
                f"Ledger node returned HTTP {response.status_code} for {method}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError(f"Ledger node returned a non-JSON body for {method}") from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            data = error.get("data") if isinstance(error, dict) else None
            logger.debug("RPC %s failed: code=%s message=%s", method, code, message)
            raise LedgerRpcError(message, code=code, data=data)

        if not isinstance(body, dict) or "result" not in body:
            raise NetworkError(f"Malformed JSON-RPC response for {method}")
        return body["result"]

    async def block_number(self) -> int:
        return hex_to_int(await self.request("eth_blockNumber"))

    async def peer_count(self) -> int:
        return hex_to_int(await self.request("net_peerCount"))

    async def chain_id(self) -> int:
        return hex_to_int(await self.request("eth_chainId"))

    async def gas_price(self) -> int:
        return hex_to_int(await self.request("eth_gasPrice"))

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return hex_to_int(await self.request("eth_getBalance", [address, block]))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return hex_to_int(await self.request("eth_getTransactionCount", [address, block]))

    async def call(self, tx: dict[str, str], block: str = "latest") -> bytes:
        return hex_to_bytes(await self.request("eth_call", [tx, block]))

    async def estimate_gas(self, tx: dict[str, str]) -> int:
        return hex_to_int(await self.request("eth_estimateGas", [tx]))

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        return await self.request("eth_sendRawTransaction", [add_0x_prefix(raw_transaction.hex())])

    async def get_transaction_receipt(self, transaction_hash: str) -> dict[str, Any] | None:
        return await self.request("eth_getTransactionReceipt", [transaction_hash])

    async def get_block(self, number: int, full_transactions: bool = True) -> dict[str, Any] | None:
        return await self.request(
            "eth_getBlockByNumber", [int_to_hex(number), full_transactions]
        )
