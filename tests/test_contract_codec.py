from __future__ import annotations

import pytest
from eth_abi.exceptions import DecodingError

from ledger_gateway.errors import ValidationError
from ledger_gateway.ledger.contract import (
    METHODS,
    UINT256_MAX,
    decode_output,
    decode_write_input,
    encode_call,
)

SET_SELECTOR = bytes.fromhex("60fe47b1")
GET_SELECTOR = bytes.fromhex("6d4ce63c")


def test_method_selectors() -> None:
    assert METHODS["set"].signature == "set(uint256)"
    assert METHODS["set"].selector == SET_SELECTOR
    assert METHODS["get"].selector == GET_SELECTOR


def test_encode_set_call() -> None:
    assert encode_call("set", 42) == SET_SELECTOR + (42).to_bytes(32, "big")


def test_encode_get_call_has_no_arguments() -> None:
    assert encode_call("get") == GET_SELECTOR


def test_encode_accepts_uint256_bounds() -> None:
    assert encode_call("set", 0)[4:] == bytes(32)
    assert encode_call("set", UINT256_MAX)[4:] == b"\xff" * 32


@pytest.mark.parametrize(
    ("method", "args"),
    [
        ("set", (-1,)),
        ("set", (UINT256_MAX + 1,)),
        ("set", (True,)),
        ("set", ("42",)),
        ("set", ()),
        ("get", (1,)),
        ("transfer", (1,)),
    ],
)
def test_encode_rejects_invalid_calls(method: str, args: tuple) -> None:
    with pytest.raises(ValidationError):
        encode_call(method, *args)


def test_decode_get_output() -> None:
    assert decode_output("get", (7).to_bytes(32, "big")) == (7,)


def test_decode_empty_output_fails() -> None:
    # A call to an address without code answers with empty data.
    with pytest.raises(DecodingError):
        decode_output("get", b"")


def test_decode_write_input() -> None:
    assert decode_write_input(encode_call("set", 1234)) == 1234


@pytest.mark.parametrize(
    "data",
    [
        b"",
        GET_SELECTOR,
        SET_SELECTOR,
        SET_SELECTOR + b"\x01",
    ],
)
def test_decode_write_input_ignores_other_data(data: bytes) -> None:
    assert decode_write_input(data) is None
