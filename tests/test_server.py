import sys
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from ledger_gateway.server import run_entrypoint


@patch("ledger_gateway.server.load_settings")
@patch("ledger_gateway.server.configure_logging")
@patch("ledger_gateway.transport.http_server.create_http_app")
def test_run_entrypoint_serves_app(mock_create_http_app, mock_log, mock_settings):
    settings = MagicMock()
    settings.server.host = "127.0.0.1"
    settings.server.port = 8000
    mock_settings.return_value = settings

    uvicorn_run = MagicMock()
    with patch.dict(sys.modules, {"uvicorn": SimpleNamespace(run=uvicorn_run)}):
        run_entrypoint()

    mock_log.assert_called_once()
    mock_create_http_app.assert_called_once_with(settings)
    uvicorn_run.assert_called_once_with(
        mock_create_http_app.return_value,
        host="127.0.0.1",
        port=8000,
        ws="none",
        log_config=None,
    )
