"""Fixtures for HTTP-level tests: a running app wired to the RPC stub."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def client(app_config, install_stub) -> Iterator:
    """A TestClient whose lifespan has run and whose engine talks to the stub."""
    from fastapi.testclient import TestClient

    from btc_portal.api.app import create_app

    with TestClient(create_app(config=app_config)) as test_client:
        test_client.portal.call(install_stub, test_client.app.state.engine)
        yield test_client
