"""Domain objects for contract calls and their mined outcomes."""

from __future__ import annotations

from dataclasses import dataclass

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class CallRequest:
    method: str
    value: int

    @property
    def input_data(self) -> dict[str, object]:
        return {"value": self.value}


@dataclass(frozen=True)
class SubmissionOutcome:
    transaction_hash: str
    block_number: int
    gas_used: int
    status: str

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS
