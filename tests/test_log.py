"""
Logging tests

Tests verbosity gating of LOG() and the debug-mode fallback when no
state is connected.
"""

from types import SimpleNamespace

import pytest
from loguru import logger

from chemdown.config import appsettings
from chemdown.lib import log
from chemdown.lib.log import LOG, state_connectToLogger


@pytest.fixture
def records():
    """Capture emitted records, restoring the logging context afterwards"""
    captured = []
    sink = logger.add(lambda message: captured.append(message.record), level="TRACE")
    token = log._program_state.set(None)
    yield captured
    log._program_state.reset(token)
    logger.remove(sink)


class TestVerbosity:
    """Test level gating against the connected state"""

    def test_levels_below_verbosity_are_emitted(self, records):
        state_connectToLogger(SimpleNamespace(verbosity=2))
        LOG("normal", level=1)
        LOG("verbose", level=2)
        LOG("trace", level=3)

        assert [r["message"] for r in records] == ["normal", "verbose"]
        assert [r["level"].name for r in records] == ["INFO", "DEBUG"]

    def test_braces_are_not_formatted(self, records):
        state_connectToLogger(SimpleNamespace(verbosity=1))
        LOG("Placeholder miss: {{TABLE7}}")
        assert records[0]["message"] == "Placeholder miss: {{TABLE7}}"

    def test_silent_without_state(self, records, monkeypatch):
        monkeypatch.setattr(appsettings, "debug_mode", False)
        LOG("nobody listening", level=1)
        assert records == []

    def test_debug_mode_without_state(self, records, monkeypatch):
        monkeypatch.setattr(appsettings, "debug_mode", True)
        LOG("library trace", level=3)
        assert [r["level"].name for r in records] == ["TRACE"]
