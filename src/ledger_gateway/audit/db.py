"""SQLite access layer for contract transaction and deployment records."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Mapping, Sequence

from ledger_gateway.audit.models import AuditRecord, DeploymentRecord
from ledger_gateway.utils.serialization import json_default
from ledger_gateway.utils.time import utc_now_iso

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]


class SqliteStore:
    """Append-only audit store.

    Transaction records are keyed by ``tx_hash``; inserting a hash that is
    already present is a no-op that returns the existing row id.
    """

    def __init__(self, path: str, wal: bool = True) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS contract_transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tx_hash TEXT NOT NULL UNIQUE,
                contract_address TEXT NOT NULL,
                method_name TEXT NOT NULL,
                input_data TEXT NOT NULL,
                block_number INTEGER NOT NULL,
                gas_used INTEGER NOT NULL,
                status TEXT NOT NULL,
                timestamp TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS deployed_contracts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                contract_name TEXT NOT NULL,
                contract_address TEXT NOT NULL UNIQUE,
                deployer_address TEXT NOT NULL,
                deployment_tx_hash TEXT NOT NULL,
                deployment_block_number INTEGER NOT NULL,
                abi TEXT NOT NULL,
                bytecode TEXT NOT NULL,
                network_id INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                deployment_timestamp TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_contract_tx_address_timestamp
                ON contract_transactions(contract_address, timestamp);
            CREATE INDEX IF NOT EXISTS idx_deployed_status_timestamp
                ON deployed_contracts(status, deployment_timestamp);
            """
        )
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def fetch_one(
        self,
        query: str,
        params: _SqlParams,
    ) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def fetch_all(
        self,
        query: str,
        params: _SqlParams,
    ) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchall()

    def ping(self) -> str:
        """Liveness query; returns the store's current UTC time."""
        row = self.fetch_one("SELECT strftime('%Y-%m-%dT%H:%M:%SZ', 'now') AS now", ())
        return row["now"]

    def insert_transaction(self, record: AuditRecord) -> tuple[int, bool]:
        """Insert ``record`` unless its hash exists. Returns ``(id, created)``."""
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO contract_transactions (
                    tx_hash, contract_address, method_name, input_data,
                    block_number, gas_used, status, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(tx_hash) DO NOTHING
                """,
                (
                    record.tx_hash,
                    record.contract_address,
                    record.method_name,
                    json.dumps(record.input_data, default=json_default),
                    record.block_number,
                    record.gas_used,
                    record.status,
                    record.timestamp,
                ),
            )
            self._conn.commit()
            if cursor.rowcount == 1:
                return int(cursor.lastrowid), True
            row = self._conn.execute(
                "SELECT id FROM contract_transactions WHERE tx_hash = ?",
                (record.tx_hash,),
            ).fetchone()
            return int(row["id"]), False

    def has_transaction(self, tx_hash: str) -> bool:
        row = self.fetch_one(
            "SELECT 1 FROM contract_transactions WHERE tx_hash = ?", (tx_hash,)
        )
        return row is not None

    def list_transactions(
        self, contract_address: str, limit: int, offset: int
    ) -> list[AuditRecord]:
        rows = self.fetch_all(
            """
            SELECT * FROM contract_transactions
            WHERE contract_address = ?
            ORDER BY timestamp DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (contract_address, limit, offset),
        )
        return [_row_to_audit_record(row) for row in rows]

    def latest_transaction(self, contract_address: str) -> AuditRecord | None:
        records = self.list_transactions(contract_address, limit=1, offset=0)
        return records[0] if records else None

    def count_transactions(self, contract_address: str) -> int:
        row = self.fetch_one(
            "SELECT COUNT(*) AS total FROM contract_transactions WHERE contract_address = ?",
            (contract_address,),
        )
        return int(row["total"])

    def insert_deployment(self, record: DeploymentRecord) -> int:
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO deployed_contracts (
                    contract_name, contract_address, deployer_address,
                    deployment_tx_hash, deployment_block_number, abi, bytecode,
                    network_id, status, deployment_timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.contract_name,
                    record.contract_address,
                    record.deployer_address,
                    record.deployment_tx_hash,
                    record.deployment_block_number,
                    json.dumps(record.abi, default=json_default),
                    record.bytecode,
                    record.network_id,
                    record.status,
                    record.deployment_timestamp or utc_now_iso(),
                ),
            )
            self._conn.commit()
            return int(cursor.lastrowid)

    def list_deployments(self, status: str = "active") -> list[DeploymentRecord]:
        rows = self.fetch_all(
            """
            SELECT * FROM deployed_contracts
            WHERE status = ?
            ORDER BY deployment_timestamp DESC, id DESC
            """,
            (status,),
        )
        return [_row_to_deployment_record(row) for row in rows]


def _row_to_audit_record(row: sqlite3.Row) -> AuditRecord:
    data = dict(row)
    data["input_data"] = json.loads(data["input_data"])
    return AuditRecord(**data)


def _row_to_deployment_record(row: sqlite3.Row) -> DeploymentRecord:
    data = dict(row)
    data["abi"] = json.loads(data["abi"])
    return DeploymentRecord(**data)
