"""Application context assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from eth_utils import to_checksum_address

from ledger_gateway.audit.db import SqliteStore
from ledger_gateway.audit.reconciler import Reconciler
from ledger_gateway.audit.recorder import AuditRecorder
from ledger_gateway.config import Settings
from ledger_gateway.health import HealthAggregator
from ledger_gateway.ledger.client import LedgerClient
from ledger_gateway.ledger.signer import Signer
from ledger_gateway.ledger.submitter import TransactionSubmitter
from ledger_gateway.service import GatewayService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application-wide dependency container.

    Built once at startup and handed to the transport layer explicitly; there
    is no process-global instance. ``aclose`` releases the signing key and
    closes the ledger and store connections.
    """

    settings: Settings
    client: LedgerClient
    signer: Signer
    store: SqliteStore
    submitter: TransactionSubmitter
    recorder: AuditRecorder
    health: HealthAggregator
    service: GatewayService
    reconciler: Reconciler | None

    async def aclose(self) -> None:
        self.signer.close()
        await self.client.aclose()
        self.store.close()


def build_app_context(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    """Create every gateway dependency from ``settings``.

    A missing or invalid signing key raises ``ConfigurationError``; the gateway
    refuses to start without one. ``transport`` replaces the HTTP transport of
    the ledger client (used by tests).
    """
    signer = Signer.from_settings(settings.signer)
    contract_address = (
        to_checksum_address(settings.ledger.contract_address)
        if settings.ledger.contract_address
        else None
    )
    if contract_address is None:
        logger.warning("CONTRACT_ADDRESS is not set; contract reads and writes are disabled")

    client = LedgerClient(
        settings.ledger.rpc_url,
        timeout_seconds=settings.ledger.rpc_timeout_seconds,
        transport=transport,
    )
    store = SqliteStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
    submitter = TransactionSubmitter(
        client,
        signer,
        contract_address,
        receipt_timeout_seconds=settings.ledger.receipt_timeout_seconds,
        receipt_poll_interval_seconds=settings.ledger.receipt_poll_interval_seconds,
    )
    recorder = AuditRecorder(store, contract_address)
    health = HealthAggregator(
        client,
        store,
        contract_address,
        network_id=settings.ledger.network_id,
        probe_timeout_seconds=settings.health.probe_timeout_seconds,
    )
    service = GatewayService(
        client=client,
        signer=signer,
        submitter=submitter,
        recorder=recorder,
        health=health,
        contract_address=contract_address,
        network_id=settings.ledger.network_id,
    )
    reconciler = (
        Reconciler(client, recorder, signer.address, contract_address)
        if contract_address
        else None
    )

    return AppContext(
        settings=settings,
        client=client,
        signer=signer,
        store=store,
        submitter=submitter,
        recorder=recorder,
        health=health,
        service=service,
        reconciler=reconciler,
    )
