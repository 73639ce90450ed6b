"""
Shared test fixtures and configuration.

Test doubles themselves live in ``devboot.adapters.mock``; the fixtures
here only hand out fresh instances and undo global state.
"""

import logging
import os
import pwd

import pytest

from devboot.adapters.mock import MockHttpClient


@pytest.fixture
def http_client() -> MockHttpClient:
    return MockHttpClient()


@pytest.fixture
def current_user() -> str:
    return pwd.getpwuid(os.getuid()).pw_name


@pytest.fixture
def restore_logging():
    """Undo ``setup_logging`` changes to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
