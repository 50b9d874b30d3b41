"""Shared fixtures and helpers for the LND client tests."""

from unittest.mock import AsyncMock

import httpx
import pytest

from lnd_rest.client import LndClient

HOST = "localhost:8080"
BASE_URL = "https://localhost:8080/v1/"
MACAROON_HEX = "0201036C6E64"


def make_test_client(lnd_client: LndClient) -> LndClient:
    """Inject a test-friendly httpx.AsyncClient that skips TLS verification.

    The real _ensure_client() builds an SSL context from the loaded
    certificate, which needs a real PEM file. Tests use respx mocking, so the
    injected client keeps the trace hooks but not the verification.
    """
    lnd_client._client = httpx.AsyncClient(
        verify=False,
        event_hooks=lnd_client._event_hooks(),
    )
    lnd_client._client_tls = lnd_client._tls_key()
    return lnd_client


def new_client() -> LndClient:
    client = LndClient(HOST)
    client.load_macaroon_from_data(MACAROON_HEX)
    return make_test_client(client)


@pytest.fixture
def mock_lnd_client():
    """LndClient with execute() replaced by AsyncMock."""
    client = LndClient(HOST)
    client.execute = AsyncMock()
    return client
