# tests/unit/conftest.py

from __future__ import annotations
import os
import sys
from pathlib import Path
import pytest

# Give Rich a fixed, wide terminal so table cells are not truncated by the
# runner's default 80-column width (read when the module console is created).
os.environ["COLUMNS"] = "120"

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chat_bridge.config import PROVIDER_ENV

_BRIDGE_VARS = ("BRIDGE_PROVIDER_A", "BRIDGE_PROVIDER_B", "BRIDGE_LOG_LEVEL", "BRIDGE_LOG_FILE")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep a developer's real keys and .env out of the tests."""
    for names in PROVIDER_ENV.values():
        for var in (names.api_key, names.base_url, names.model):
            if var:
                monkeypatch.delenv(var, raising=False)
    for var in _BRIDGE_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
