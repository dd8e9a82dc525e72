"""Maps mined submission outcomes into durable audit records."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Callable, TypeVar

from ledger_gateway.audit.db import SqliteStore
from ledger_gateway.audit.models import AuditRecord, DeploymentRecord
from ledger_gateway.domain.models import CallRequest, SubmissionOutcome
from ledger_gateway.errors import ConfigurationError, StoreError, ValidationError
from ledger_gateway.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10
MAX_HISTORY_LIMIT = 100

_T = TypeVar("_T")


class AuditRecorder:
    """Async facade over the audit store.

    Store calls run in a worker thread. Any ``sqlite3.Error`` surfaces as
    ``StoreError``; a failed write never affects the already-mined transaction.
    """

    def __init__(self, store: SqliteStore, contract_address: str | None) -> None:
        self._store = store
        self._contract_address = contract_address

    async def _run(self, func: Callable[..., _T], *args: object) -> _T:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            raise StoreError(f"Audit store operation failed: {exc}") from exc

    async def record(
        self,
        outcome: SubmissionOutcome,
        request: CallRequest,
        timestamp: str | None = None,
    ) -> int:
        """Persist ``outcome`` and return the record id.

        Recording is idempotent on the transaction hash, so a reconciliation
        pass may safely re-record an outcome the request path already stored.
        """
        if not outcome.succeeded:
            raise ValueError(
                f"Refusing to record transaction {outcome.transaction_hash} "
                f"with status {outcome.status!r}"
            )
        if self._contract_address is None:
            raise ConfigurationError("Contract address not configured")

        record = AuditRecord(
            tx_hash=outcome.transaction_hash,
            contract_address=self._contract_address,
            method_name=request.method,
            input_data=request.input_data,
            block_number=outcome.block_number,
            gas_used=outcome.gas_used,
            status=outcome.status,
            timestamp=timestamp or utc_now_iso(),
        )
        record_id, created = await self._run(self._store.insert_transaction, record)
        if created:
            logger.info("Recorded %s tx=%s as #%d", request.method, outcome.transaction_hash, record_id)
        else:
            logger.info("Transaction %s already recorded as #%d", outcome.transaction_hash, record_id)
        return record_id

    async def history(
        self,
        contract_address: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> list[AuditRecord]:
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")
        if offset < 0:
            raise ValidationError("offset must be non-negative")
        return await self._run(self._store.list_transactions, contract_address, limit, offset)

    async def count(self, contract_address: str) -> int:
        return await self._run(self._store.count_transactions, contract_address)

    async def latest(self, contract_address: str) -> AuditRecord | None:
        return await self._run(self._store.latest_transaction, contract_address)

    async def has_record(self, tx_hash: str) -> bool:
        return await self._run(self._store.has_transaction, tx_hash)

    async def record_deployment(self, record: DeploymentRecord) -> int:
        record_id = await self._run(self._store.insert_deployment, record)
        logger.info(
            "Recorded deployment of %s at %s as #%d",
            record.contract_name,
            record.contract_address,
            record_id,
        )
        return record_id

    async def deployments_of(self, status: str = "active") -> list[DeploymentRecord]:
        return await self._run(self._store.list_deployments, status)
