"""Call codec for the fixed SimpleStorage method surface."""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector

from ledger_gateway.errors import ValidationError

CONTRACT_NAME = "SimpleStorage"

SIMPLE_STORAGE_ABI: list[dict[str, object]] = [
    {
        "inputs": [],
        "name": "get",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "x", "type": "uint256"}],
        "name": "set",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

UINT256_MAX = 2**256 - 1


@dataclass(frozen=True)
class ContractMethod:
    name: str
    input_types: tuple[str, ...]
    output_types: tuple[str, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)


METHODS: dict[str, ContractMethod] = {
    "get": ContractMethod(name="get", input_types=(), output_types=("uint256",)),
    "set": ContractMethod(name="set", input_types=("uint256",), output_types=()),
}

READ_METHOD = "get"
WRITE_METHOD = "set"


def _method(name: str) -> ContractMethod:
    method = METHODS.get(name)
    if method is None:
        raise ValidationError(f"Unsupported contract method: {name!r}")
    return method


def encode_call(method_name: str, *args: int) -> bytes:
    """Return selector-prefixed call data for ``method_name``."""
    method = _method(method_name)
    if len(args) != len(method.input_types):
        raise ValidationError(
            f"{method.signature} expects {len(method.input_types)} argument(s), got {len(args)}"
        )
    for arg in args:
        if isinstance(arg, bool) or not isinstance(arg, int):
            raise ValidationError(f"uint256 argument must be an integer, got {arg!r}")
        if arg < 0 or arg > UINT256_MAX:
            raise ValidationError(f"uint256 argument out of range: {arg}")
    return method.selector + encode(list(method.input_types), list(args))


def decode_output(method_name: str, data: bytes) -> tuple[object, ...]:
    method = _method(method_name)
    return tuple(decode(list(method.output_types), data))


def decode_write_input(data: bytes) -> int | None:
    """Return the ``set`` argument encoded in ``data``, or None for other calls."""
    method = METHODS[WRITE_METHOD]
    if len(data) < 4 or data[:4] != method.selector:
        return None
    try:
        (value,) = decode(list(method.input_types), data[4:])
    except DecodingError:
        return None
    return int(value)
