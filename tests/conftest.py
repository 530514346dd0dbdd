"""Shared fixtures for the IndexBridge test suite."""

from __future__ import annotations

import logging

import pytest

from IndexBridge.net import ClientContext, RemoteClient
from IndexBridge.testing import MockRemote
from remote_fixtures import API_KEY, ORG, SOURCE, SleepRecorder


@pytest.fixture
def remote() -> MockRemote:
    return MockRemote()


@pytest.fixture
def context() -> ClientContext:
    return ClientContext(ORG, SOURCE, API_KEY)


@pytest.fixture
def client(remote: MockRemote, context: ClientContext) -> RemoteClient:
    with remote.remote_client(context) as remote_client:
        yield remote_client


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo ``setup_logging`` so caplog keeps seeing IndexBridge records."""
    logger = logging.getLogger("IndexBridge")
    yield
    for handler in list(logger.handlers):
        if getattr(handler, "_indexbridge_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
