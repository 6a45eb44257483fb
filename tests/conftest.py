"""Shared pytest fixtures for bookmark library tests."""

from __future__ import annotations

import pytest
from fakes import API_KEY, BASE_URL, FakeSession

from bookmark_library.client import KarakeepClient


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(fake_session: FakeSession) -> KarakeepClient:
    """Client wired to the fake session (no network)."""
    return KarakeepClient(BASE_URL, API_KEY, timeout=5.0, session=fake_session)  # type: ignore[arg-type]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host ``KARAKEEP_*`` variables out of the tests."""
    for name in (
        "KARAKEEP_API_URL",
        "KARAKEEP_API_KEY",
        "KARAKEEP_TIMEOUT",
        "BOOKMARK_BULK_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
