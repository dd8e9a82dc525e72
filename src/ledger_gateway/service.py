"""Gateway operations behind the HTTP surface."""

from __future__ import annotations

import logging

from eth_abi.exceptions import DecodingError
from eth_utils import from_wei

from ledger_gateway.audit.recorder import (
    DEFAULT_HISTORY_LIMIT,
    AuditRecorder,
)
from ledger_gateway.audit.models import AuditRecord
from ledger_gateway.domain.models import CallRequest
from ledger_gateway.errors import (
    ConfigurationError,
    GatewayError,
    LedgerRpcError,
    StoreError,
)
from ledger_gateway.health import HealthAggregator, HealthReport
from ledger_gateway.ledger.client import LedgerClient
from ledger_gateway.ledger.contract import (
    READ_METHOD,
    WRITE_METHOD,
    decode_output,
    encode_call,
)
from ledger_gateway.ledger.signer import Signer
from ledger_gateway.ledger.submitter import TransactionSubmitter
from ledger_gateway.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


def _render_record(record: AuditRecord) -> dict[str, object]:
    # Chain quantities leave the gateway as decimal strings.
    data = record.to_dict()
    data["input_data"] = {key: str(value) for key, value in record.input_data.items()}
    return data


class GatewayService:
    def __init__(
        self,
        client: LedgerClient,
        signer: Signer,
        submitter: TransactionSubmitter,
        recorder: AuditRecorder,
        health: HealthAggregator,
        contract_address: str | None,
        network_id: int,
    ) -> None:
        self._client = client
        self._signer = signer
        self._submitter = submitter
        self._recorder = recorder
        self._health = health
        self._contract_address = contract_address
        self._network_id = network_id

    def _require_contract(self) -> str:
        if not self._contract_address:
            raise ConfigurationError("Contract address not configured")
        return self._contract_address

    async def _call_get(self, contract_address: str) -> int:
        data = "0x" + encode_call(READ_METHOD).hex()
        result = await self._client.call({"to": contract_address, "data": data})
        try:
            (value,) = decode_output(READ_METHOD, result)
        except DecodingError as exc:
            raise LedgerRpcError(
                f"Contract at {contract_address} returned no usable data; is it deployed?"
            ) from exc
        return int(value)

    async def read_value(self) -> dict[str, object]:
        contract_address = self._require_contract()
        value = await self._call_get(contract_address)
        return {"value": str(value), "timestamp": utc_now_iso()}

    async def write_value(self, value: int) -> dict[str, object]:
        self._require_contract()
        request = CallRequest(method=WRITE_METHOD, value=value)
        outcome = await self._submitter.submit(request.method, request.value)
        try:
            await self._recorder.record(outcome, request)
        except StoreError as exc:
            # The chain write stands; the reconciler backfills the missing record.
            logger.error(
                "Transaction %s mined in block %d but was not recorded: %s",
                outcome.transaction_hash,
                outcome.block_number,
                exc,
            )
            raise StoreError(
                f"Transaction {outcome.transaction_hash} was mined but could not be recorded: "
                f"{exc.message}"
            ) from exc
        return {
            "transactionHash": outcome.transaction_hash,
            "blockNumber": str(outcome.block_number),
            "gasUsed": str(outcome.gas_used),
            "value": str(value),
        }

    async def history(
        self, limit: int = DEFAULT_HISTORY_LIMIT, offset: int = 0
    ) -> dict[str, object]:
        contract_address = self._require_contract()
        records = await self._recorder.history(contract_address, limit=limit, offset=offset)
        total = await self._recorder.count(contract_address)
        return {
            "records": [_render_record(record) for record in records],
            "pagination": {"limit": limit, "offset": offset, "total": total},
        }

    async def info(self) -> dict[str, object]:
        contract_address = self._require_contract()
        info: dict[str, object] = {
            "address": contract_address,
            "network": {"id": str(self._network_id), "rpcUrl": self._client.rpc_url},
        }
        account: dict[str, object] = {"address": self._signer.address, "balance": None}
        try:
            balance_wei = await self._client.get_balance(self._signer.address)
            account["balance"] = str(from_wei(balance_wei, "ether"))
        except GatewayError as exc:
            logger.warning("Failed to fetch balance for %s: %s", self._signer.address, exc)
            account["balance"] = "Error fetching balance"
        info["account"] = account

        try:
            info["currentValue"] = str(await self._call_get(contract_address))
        except GatewayError as exc:
            logger.warning("Failed to fetch current value: %s", exc)
            info["currentValue"] = "Error fetching value"
        return info

    async def check(self) -> dict[str, object]:
        """Compare the newest recorded value with the value on chain."""
        contract_address = self._require_contract()
        chain_value = str(await self._call_get(contract_address))
        latest = await self._recorder.latest(contract_address)
        recorded_value = str(latest.input_data.get("value")) if latest else None
        return {
            "databaseValue": recorded_value,
            "blockchainValue": chain_value,
            "inSync": recorded_value == chain_value,
            "lastRecordedAt": latest.timestamp if latest else None,
        }

    async def deployments(self, status: str = "active") -> list[dict[str, object]]:
        records = await self._recorder.deployments_of(status)
        return [record.to_dict() for record in records]

    async def health(self) -> HealthReport:
        return await self._health.check()
