"""Shared fixtures for kubebridge tests."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import asyncssh
import pytest
from fakes import FakeCluster

from kubebridge.config import SessionConfig
from kubebridge.session.state import SessionIdentity

_TEST_KEY = asyncssh.generate_private_key("ssh-rsa", key_size=1024)


@pytest.fixture(autouse=True)
def fast_client_keys() -> Iterator[None]:
    """Reuse one pre-generated client key instead of generating one per session."""
    with patch(
        "kubebridge.session.state.asyncssh.generate_private_key",
        return_value=_TEST_KEY,
    ):
        yield


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def logger() -> MagicMock:
    return MagicMock()


@pytest.fixture
def identity() -> SessionIdentity:
    return SessionIdentity(SessionConfig())
