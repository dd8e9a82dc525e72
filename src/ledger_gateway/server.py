"""Entrypoint for the ledger gateway HTTP server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from ledger_gateway import __version__
from ledger_gateway.config import load_settings
from ledger_gateway.logging_utils import configure_logging


def run_entrypoint() -> None:
    """Build the application and serve it with uvicorn."""
    settings = load_settings()
    configure_logging()
    from ledger_gateway.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to run the HTTP server") from exc

    logging.info("Initializing ledger gateway v%s", __version__)
    logging.info("Ledger RPC endpoint: %s", settings.ledger.rpc_url)
    app = create_http_app(settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
