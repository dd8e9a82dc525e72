from __future__ import annotations

import asyncio
import contextlib
import os

import pytest
import pytest_asyncio

from fake_node import CONTRACT_ADDRESS, RPC_URL, TEST_PRIVATE_KEY, FakeLedgerNode
from ledger_gateway.audit.db import SqliteStore
from ledger_gateway.audit.recorder import AuditRecorder
from ledger_gateway.config import (
    HealthSettings,
    LedgerSettings,
    Settings,
    SignerSettings,
    StorageSettings,
)
from ledger_gateway.ledger.client import LedgerClient
from ledger_gateway.ledger.signer import Signer
from ledger_gateway.ledger.submitter import TransactionSubmitter


def pytest_sessionstart(session: pytest.Session) -> None:
    # Keep a developer's local key out of unit test runs.
    os.environ.pop("SIGNER_PRIVATE_KEY", None)


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


def make_settings(tmp_path, contract_address: str | None = CONTRACT_ADDRESS) -> Settings:
    return Settings(
        ledger=LedgerSettings(
            rpc_url=RPC_URL,
            contract_address=contract_address,
            rpc_timeout_seconds=1.0,
            receipt_timeout_seconds=2.0,
            receipt_poll_interval_seconds=0.01,
        ),
        signer=SignerSettings(private_key=TEST_PRIVATE_KEY),
        storage=StorageSettings(sqlite_path=str(tmp_path / "gateway.sqlite"), sqlite_wal=False),
        health=HealthSettings(probe_timeout_seconds=1.0),
    )


@pytest.fixture
def node() -> FakeLedgerNode:
    return FakeLedgerNode()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def store(tmp_path):
    sqlite_store = SqliteStore(str(tmp_path / "audit.sqlite"), wal=False)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def recorder(store) -> AuditRecorder:
    return AuditRecorder(store, CONTRACT_ADDRESS)


@pytest.fixture
def signer() -> Signer:
    return Signer.from_private_key(TEST_PRIVATE_KEY)


@pytest_asyncio.fixture
async def client(node):
    ledger_client = LedgerClient(RPC_URL, timeout_seconds=1.0, transport=node.transport())
    yield ledger_client
    await ledger_client.aclose()


@pytest.fixture
def submitter(client, signer) -> TransactionSubmitter:
    return TransactionSubmitter(
        client,
        signer,
        CONTRACT_ADDRESS,
        receipt_timeout_seconds=2.0,
        receipt_poll_interval_seconds=0.01,
    )
