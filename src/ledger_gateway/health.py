"""Composite health of the ledger node and the audit store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from ledger_gateway.audit.db import SqliteStore
from ledger_gateway.errors import GatewayError
from ledger_gateway.ledger.client import LedgerClient
from ledger_gateway.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"


class ProbeState(str, Enum):
    NOT_RUN = "not_run"
    RUNNING = "running"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    NOT_CONFIGURED = "not_configured"


@dataclass
class ProbeResult:
    name: str
    state: ProbeState = ProbeState.NOT_RUN
    detail: dict[str, object] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.state is ProbeState.HEALTHY

    def to_dict(self) -> dict[str, object]:
        return dict(self.detail)


@dataclass
class HealthReport:
    status: str
    timestamp: str
    services: dict[str, ProbeResult]

    @property
    def http_status(self) -> int:
        return 200 if self.status == STATUS_OK else 503

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "services": {name: probe.to_dict() for name, probe in self.services.items()},
        }


class HealthAggregator:
    """Runs every probe concurrently and merges the results.

    Each probe is bounded by ``probe_timeout_seconds`` and isolated: whatever it
    raises becomes an unhealthy result, never an exception for the caller.
    ``status`` is ``ok`` only when the ledger and store probes are healthy;
    the contract configuration probe is informational.
    """

    def __init__(
        self,
        client: LedgerClient,
        store: SqliteStore,
        contract_address: str | None,
        network_id: int,
        probe_timeout_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._store = store
        self._contract_address = contract_address
        self._network_id = network_id
        self._probe_timeout_seconds = probe_timeout_seconds

    async def check(self) -> HealthReport:
        ledger, store = await asyncio.gather(
            self._run_probe(ProbeResult("ledger"), self._probe_ledger),
            self._run_probe(ProbeResult("store"), self._probe_store),
        )
        contract = self._probe_contract()
        overall = STATUS_OK if ledger.healthy and store.healthy else STATUS_DEGRADED
        if overall == STATUS_DEGRADED:
            logger.warning(
                "Health degraded: ledger=%s store=%s", ledger.state.value, store.state.value
            )
        return HealthReport(
            status=overall,
            timestamp=utc_now_iso(),
            services={"ledger": ledger, "store": store, "contract": contract},
        )

    async def _run_probe(
        self,
        result: ProbeResult,
        probe: Callable[[], Awaitable[dict[str, object]]],
    ) -> ProbeResult:
        result.state = ProbeState.RUNNING
        try:
            detail = await asyncio.wait_for(probe(), timeout=self._probe_timeout_seconds)
        except GatewayError as exc:
            return self._unhealthy(result, exc.message)
        except asyncio.TimeoutError:
            return self._unhealthy(
                result, f"timed out after {self._probe_timeout_seconds:g}s"
            )
        except Exception as exc:
            return self._unhealthy(result, str(exc) or type(exc).__name__)
        result.state = ProbeState.HEALTHY
        result.detail = {"status": "connected", **detail}
        return result

    @staticmethod
    def _unhealthy(result: ProbeResult, message: str) -> ProbeResult:
        logger.debug("Probe %s failed: %s", result.name, message)
        result.state = ProbeState.UNHEALTHY
        result.detail = {"status": "error", "error": message}
        return result

    async def _probe_ledger(self) -> dict[str, object]:
        block_number, peer_count = await asyncio.gather(
            self._client.block_number(),
            self._client.peer_count(),
        )
        return {
            "blockNumber": str(block_number),
            "peerCount": str(peer_count),
            "networkId": str(self._network_id),
        }

    async def _probe_store(self) -> dict[str, object]:
        now = await asyncio.to_thread(self._store.ping)
        return {"timestamp": now}

    def _probe_contract(self) -> ProbeResult:
        if self._contract_address:
            return ProbeResult(
                "contract",
                state=ProbeState.HEALTHY,
                detail={"status": "configured", "address": self._contract_address},
            )
        return ProbeResult(
            "contract",
            state=ProbeState.NOT_CONFIGURED,
            detail={
                "status": "not_configured",
                "message": "Contract address not set in configuration",
            },
        )
