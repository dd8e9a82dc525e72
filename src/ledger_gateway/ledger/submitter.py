"""Single-write submission pipeline: encode, estimate, price, sign, broadcast, await."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from eth_utils import to_checksum_address

from ledger_gateway.domain.models import STATUS_FAILED, STATUS_SUCCESS, SubmissionOutcome
from ledger_gateway.errors import (
    ConfigurationError,
    EstimationError,
    LedgerRpcError,
    LedgerTimeoutError,
    RevertedError,
    SequenceError,
    SubmissionRejectedError,
    ValidationError,
)
from ledger_gateway.ledger.client import LedgerClient, hex_to_int
from ledger_gateway.ledger.contract import encode_call
from ledger_gateway.ledger.signer import Signer

logger = logging.getLogger(__name__)

# Lower-cased fragments of node rejections caused by account sequencing.
_SEQUENCE_ERROR_MARKERS = (
    "nonce too low",
    "nonce too high",
    "replacement transaction underpriced",
    "known transaction",
    "already known",
    "incorrect nonce",
)


def _is_sequence_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _SEQUENCE_ERROR_MARKERS)


def outcome_from_receipt(tx_hash: str, receipt: dict[str, Any]) -> SubmissionOutcome:
    raw_status = receipt.get("status")
    # Receipts without a status field predate status codes.
    succeeded = raw_status is None or hex_to_int(raw_status) == 1
    return SubmissionOutcome(
        transaction_hash=receipt.get("transactionHash") or tx_hash,
        block_number=hex_to_int(receipt.get("blockNumber")),
        gas_used=hex_to_int(receipt.get("gasUsed")),
        status=STATUS_SUCCESS if succeeded else STATUS_FAILED,
    )


class TransactionSubmitter:
    """Executes one contract write end to end.

    Submissions from the signing account are serialized: the lock is held from
    nonce lookup until the receipt is observed, so at most one transaction per
    account is in flight. Failures are raised immediately and never retried.
    """

    def __init__(
        self,
        client: LedgerClient,
        signer: Signer,
        contract_address: str | None,
        receipt_timeout_seconds: float = 60.0,
        receipt_poll_interval_seconds: float = 1.0,
    ) -> None:
        self._client = client
        self._signer = signer
        self._contract_address = (
            to_checksum_address(contract_address) if contract_address else None
        )
        self._receipt_timeout_seconds = receipt_timeout_seconds
        self._receipt_poll_interval_seconds = receipt_poll_interval_seconds
        self._chain_id: int | None = None
        self._lock = asyncio.Lock()

    @property
    def contract_address(self) -> str | None:
        return self._contract_address

    async def submit(self, method: str, value: int) -> SubmissionOutcome:
        if self._contract_address is None:
            raise ConfigurationError("Contract address not configured")
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"value must be a non-negative integer, got {value!r}")

        data = "0x" + encode_call(method, value).hex()
        sender = self._signer.address

        async with self._lock:
            gas = await self._estimate_gas(sender, data)
            gas_price = await self._client.gas_price()
            nonce = await self._client.get_transaction_count(sender, "pending")
            chain_id = await self._get_chain_id()

            unsigned_tx: dict[str, Any] = {
                "to": self._contract_address,
                "data": data,
                "gas": gas,
                "gasPrice": gas_price,
                "from": sender,
                "nonce": nonce,
                "chainId": chain_id,
                "value": 0,
            }
            raw_tx = self._signer.sign(unsigned_tx)
            tx_hash = await self._broadcast(raw_tx, nonce)
            logger.info(
                "Broadcast %s(%d) tx=%s nonce=%d gas=%d", method, value, tx_hash, nonce, gas
            )
            receipt = await self._wait_for_receipt(tx_hash)

        outcome = outcome_from_receipt(tx_hash, receipt)
        if not outcome.succeeded:
            logger.warning(
                "Transaction %s reverted in block %d", tx_hash, outcome.block_number
            )
            raise RevertedError(
                f"Transaction {tx_hash} reverted in block {outcome.block_number}",
                transaction_hash=tx_hash,
                block_number=outcome.block_number,
            )
        logger.info(
            "Transaction %s mined in block %d (gas used %d)",
            tx_hash,
            outcome.block_number,
            outcome.gas_used,
        )
        return outcome

    async def _estimate_gas(self, sender: str, data: str) -> int:
        call = {"from": sender, "to": self._contract_address, "data": data}
        try:
            return await self._client.estimate_gas(call)
        except LedgerRpcError as exc:
            raise EstimationError(f"Gas estimation failed: {exc.message}") from exc

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self._client.chain_id()
        return self._chain_id

    async def _broadcast(self, raw_tx: bytes, nonce: int) -> str:
        try:
            return await self._client.send_raw_transaction(raw_tx)
        except LedgerRpcError as exc:
            if _is_sequence_error(exc.message):
                raise SequenceError(
                    f"Nonce {nonce} rejected by the node: {exc.message}"
                ) from exc
            raise SubmissionRejectedError(f"Transaction rejected: {exc.message}") from exc

    async def _wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._receipt_timeout_seconds
        while True:
            receipt = await self._client.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise LedgerTimeoutError(
                    f"No receipt for {tx_hash} within {self._receipt_timeout_seconds:g}s"
                )
            await asyncio.sleep(min(self._receipt_poll_interval_seconds, remaining))
