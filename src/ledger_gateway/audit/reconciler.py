"""Backfills audit records for mined writes the request path failed to record."""

from __future__ import annotations

import asyncio
import logging

from ledger_gateway.audit.recorder import AuditRecorder
from ledger_gateway.domain.models import CallRequest
from ledger_gateway.errors import GatewayError
from ledger_gateway.ledger.client import LedgerClient, hex_to_bytes, hex_to_int
from ledger_gateway.ledger.contract import WRITE_METHOD, decode_write_input
from ledger_gateway.ledger.submitter import outcome_from_receipt
from ledger_gateway.utils.time import unix_to_iso

logger = logging.getLogger(__name__)


def _same_address(left: str | None, right: str) -> bool:
    return bool(left) and left.lower() == right.lower()


class Reconciler:
    """Scans blocks for writes sent by the gateway account to the contract.

    Any successful write whose hash has no audit record is recorded with the
    block timestamp. Reverted writes are skipped.
    """

    def __init__(
        self,
        client: LedgerClient,
        recorder: AuditRecorder,
        sender_address: str,
        contract_address: str,
    ) -> None:
        self._client = client
        self._recorder = recorder
        self._sender = sender_address
        self._contract = contract_address

    async def reconcile(self, from_block: int, to_block: int) -> int:
        """Reconcile blocks ``from_block..to_block`` inclusive; return records added."""
        backfilled = 0
        for number in range(from_block, to_block + 1):
            block = await self._client.get_block(number, full_transactions=True)
            if not block:
                continue
            timestamp = unix_to_iso(hex_to_int(block.get("timestamp", "0x0")))
            for tx in block.get("transactions") or []:
                if isinstance(tx, dict) and await self._backfill(tx, timestamp):
                    backfilled += 1
        if backfilled:
            logger.warning(
                "Backfilled %d unrecorded transaction(s) in blocks %d-%d",
                backfilled,
                from_block,
                to_block,
            )
        return backfilled

    async def _backfill(self, tx: dict, timestamp: str) -> bool:
        if not _same_address(tx.get("from"), self._sender):
            return False
        if not _same_address(tx.get("to"), self._contract):
            return False
        value = decode_write_input(hex_to_bytes(tx.get("input") or "0x"))
        if value is None:
            return False

        tx_hash = tx["hash"]
        if await self._recorder.has_record(tx_hash):
            return False
        receipt = await self._client.get_transaction_receipt(tx_hash)
        if receipt is None:
            return False
        outcome = outcome_from_receipt(tx_hash, receipt)
        if not outcome.succeeded:
            return False

        await self._recorder.record(
            outcome, CallRequest(method=WRITE_METHOD, value=value), timestamp=timestamp
        )
        return True

    async def reconcile_recent(self, lookback_blocks: int) -> int:
        head = await self._client.block_number()
        return await self.reconcile(max(0, head - lookback_blocks + 1), head)

    async def run_forever(self, interval_seconds: float, lookback_blocks: int) -> None:
        logger.info(
            "Reconciler started (interval=%ss, lookback=%d blocks)",
            interval_seconds,
            lookback_blocks,
        )
        while True:
            try:
                await self.reconcile_recent(lookback_blocks)
            except GatewayError as exc:
                logger.warning("Reconciliation cycle failed: %s", exc)
            except Exception:
                # Malformed node answers must not end the loop.
                logger.exception("Reconciliation cycle failed unexpectedly")
            await asyncio.sleep(interval_seconds)
