import pytest

from ledger_gateway import errors


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (errors.ConfigurationError("x"), 500),
        (errors.ValidationError("x"), 400),
        (errors.EstimationError("x"), 400),
        (errors.RevertedError("x", transaction_hash="0x1", block_number=3), 400),
        (errors.SubmissionRejectedError("x"), 400),
        (errors.SequenceError("x"), 409),
        (errors.NetworkError("x"), 503),
        (errors.LedgerTimeoutError("x"), 504),
        (errors.LedgerRpcError("x", code=-32000), 502),
        (errors.StoreError("x"), 500),
        (errors.KeyUnavailableError("x"), 500),
    ],
)
def test_status_codes(error, status_code):
    assert isinstance(error, errors.GatewayError)
    assert error.status_code == status_code
    assert error.message == "x"
    assert error.category


def test_ledger_timeout_is_a_timeout():
    assert issubclass(errors.LedgerTimeoutError, TimeoutError)
