"""
Pytest configuration for dmandate tests.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

from dmandate_core.config import load_settings  # noqa: E402

from ledger_fakes import FakeLedgerGateway, make_mandate  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep DMANDATE_* variables and the settings cache out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("DMANDATE_"):
            monkeypatch.delenv(name, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def mandate():
    """An active mandate due at 1_700_000_000."""
    return make_mandate(1)


@pytest.fixture
def gateway():
    return FakeLedgerGateway()
