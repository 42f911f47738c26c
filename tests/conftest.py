"""Shared test fixtures for the codeact test suite."""

import logging

import pytest

from codeact.context import CodeContext
from codeact.executor.bridges import InMemoryState
from codeact.executor.sandbox import SandboxConfig
from codeact.tools.registry import ToolRegistry


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def log_records():
    """Collect records emitted on the "codeact" logger tree.

    The codeact logger does not propagate, so caplog cannot see it.
    """
    handler = _ListHandler()
    logger = logging.getLogger("codeact")
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler.records
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


@pytest.fixture
def context():
    return CodeContext()


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def state():
    return InMemoryState()


@pytest.fixture
def fast_timeout():
    return SandboxConfig(timeout_seconds=0.5, interrupt_grace_seconds=1.0)
