"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _block_provider_http(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail loudly if any integration test reaches the real provider HTTP layer."""

    def _no_network(url: str, **kwargs: object) -> None:
        """Raise instead of sending a request."""

        raise AssertionError(f"unexpected provider request to {url}")

    monkeypatch.setattr("dadeumi.llm.http_base.requests.post", _no_network)
