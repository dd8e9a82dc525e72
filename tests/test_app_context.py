import logging
import sqlite3

import pytest

from fake_node import CONTRACT_ADDRESS, TEST_ADDRESS
from ledger_gateway.app import build_app_context
from ledger_gateway.config import SignerSettings
from ledger_gateway.errors import ConfigurationError


def test_missing_signing_key_refuses_to_start(settings, node):
    settings = settings.model_copy(update={"signer": SignerSettings()})

    with pytest.raises(ConfigurationError, match="SIGNER_PRIVATE_KEY"):
        build_app_context(settings, transport=node.transport())


def test_context_wires_dependencies(settings, node):
    context = build_app_context(settings, transport=node.transport())
    try:
        assert context.signer.address == TEST_ADDRESS
        assert context.submitter.contract_address == CONTRACT_ADDRESS
        assert context.reconciler is not None
        assert context.client.rpc_url == settings.ledger.rpc_url
    finally:
        context.store.close()


def test_lowercase_contract_address_is_checksummed(settings, node):
    settings = settings.model_copy(
        update={
            "ledger": settings.ledger.model_copy(
                update={"contract_address": CONTRACT_ADDRESS.lower()}
            )
        }
    )
    context = build_app_context(settings, transport=node.transport())
    try:
        assert context.submitter.contract_address == CONTRACT_ADDRESS
    finally:
        context.store.close()


def test_missing_contract_address_warns(settings, node, caplog):
    settings = settings.model_copy(
        update={"ledger": settings.ledger.model_copy(update={"contract_address": None})}
    )

    with caplog.at_level(logging.WARNING, logger="ledger_gateway.app"):
        context = build_app_context(settings, transport=node.transport())
    try:
        assert context.reconciler is None
        assert "CONTRACT_ADDRESS is not set" in caplog.text
    finally:
        context.store.close()


@pytest.mark.asyncio
async def test_aclose_releases_resources(settings, node):
    context = build_app_context(settings, transport=node.transport())

    await context.aclose()

    assert context.signer.available is False
    with pytest.raises(sqlite3.ProgrammingError):
        context.store.ping()
