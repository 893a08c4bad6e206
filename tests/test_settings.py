"""
Settings tests

Tests placeholder helpers and environment overrides of AppSettings.
"""

import re

import pytest

from chemdown.config import AppSettings


class TestPlaceholders:
    """Test placeholder generation and parsing"""

    def test_make(self):
        assert AppSettings().placeHolder_make("TABLE", 3) == "{{TABLE3}}"

    def test_parse(self):
        settings = AppSettings()
        assert settings.placeHolder_parse("{{CODEBLOCK12}}") == ("CODEBLOCK", 12)
        assert settings.placeHolder_parse("{{table1}}") is None
        assert settings.placeHolder_parse("TABLE1") is None

    def test_pattern_excludes_kinds(self):
        pattern = re.compile(AppSettings().placeHolder_pattern(exclude=["INLINEMATH"]))
        assert pattern.fullmatch("{{MATH0}}")
        assert pattern.fullmatch("{{INLINEMATH0}}") is None

    def test_neutralize(self):
        settings = AppSettings()
        neutral = settings.placeHolder_neutralize("a {{TABLE0}} b {{lower1}}")
        assert neutral == "a &#123;&#123;TABLE0&#125;&#125; b {{lower1}}"
        assert re.search(settings.placeHolder_pattern(), neutral) is None

    def test_literal_undoes_neutralize(self):
        settings = AppSettings()
        assert settings.placeHolder_literal(settings.placeHolder_neutralize("x {{MATH3}}")) == "x {{MATH3}}"

    def test_custom_delimiters(self):
        settings = AppSettings(placeholder_prefix="<<", placeholder_suffix=">>")
        token = settings.placeHolder_make("TABLE", 0)
        assert token == "<<TABLE0>>"
        assert settings.placeHolder_parse(token) == ("TABLE", 0)


class TestEnvironment:
    """Test CHEMDOWN_ environment overrides"""

    def test_defaults(self, monkeypatch):
        for name in ["CHEMDOWN_BATCH_WINDOW_MS", "CHEMDOWN_CHEMISTRY_CACHE_SIZE", "CHEMDOWN_DEFAULT_THEME"]:
            monkeypatch.delenv(name, raising=False)
        settings = AppSettings(_env_file=None)
        assert settings.batch_window_ms == 50
        assert settings.chemistry_cache_size is None
        assert settings.default_theme == "vs"
        assert settings.sanitize_default is True

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CHEMDOWN_BATCH_WINDOW_MS", "25")
        monkeypatch.setenv("CHEMDOWN_CHEMISTRY_CACHE_SIZE", "128")
        settings = AppSettings(_env_file=None)
        assert settings.batch_window_ms == 25
        assert settings.chemistry_cache_size == 128
