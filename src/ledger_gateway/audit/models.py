"""Data models for audit and deployment records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass
class AuditRecord:
    tx_hash: str
    contract_address: str
    method_name: str
    input_data: dict[str, object]
    block_number: int
    gas_used: int
    status: str
    timestamp: str
    id: int | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class DeploymentRecord:
    contract_name: str
    contract_address: str
    deployer_address: str
    deployment_tx_hash: str
    deployment_block_number: int
    network_id: int
    abi: list[dict[str, object]] = field(default_factory=list)
    bytecode: str = ""
    status: str = "active"
    deployment_timestamp: str | None = None
    id: int | None = None

    def to_dict(self, include_artifacts: bool = False) -> dict[str, object]:
        data = asdict(self)
        if not include_artifacts:
            data.pop("abi")
            data.pop("bytecode")
        return data
