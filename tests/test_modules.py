"""Tests for module fingerprinting and user-agent enrichment."""

import pytest

from wikisentry.event.enricher import browser_context, os_context
from wikisentry.event.modules import collect_modules, read_info_file

CHROME_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@pytest.fixture
def wiki(tmp_path):
    plugins = tmp_path / "lib" / "plugins"
    (plugins / "sentry").mkdir(parents=True)
    (plugins / "sentry" / "plugin.info.txt").write_text(
        "base   sentry\nauthor Jane Doe\ndate   2024-01-15\nname   Sentry Plugin\n"
    )
    (plugins / "broken").mkdir()

    templates = tmp_path / "lib" / "tpl"
    (templates / "dokuwiki").mkdir(parents=True)
    (templates / "dokuwiki" / "template.info.txt").write_text("# comment\n\ndate 2023-04-04\n")
    return tmp_path


class TestInfoFiles:
    """Test cases for read_info_file."""

    def test_read_info_file(self, wiki):
        """Test parsing key/value lines."""
        info = read_info_file(wiki / "lib" / "plugins" / "sentry" / "plugin.info.txt")

        assert info["date"] == "2024-01-15"
        assert info["name"] == "Sentry Plugin"

    def test_missing_file(self, tmp_path):
        """Test that a missing file is not an error."""
        assert read_info_file(tmp_path / "nope.txt") is None


class TestCollectModules:
    """Test cases for collect_modules."""

    def test_collect_modules(self, wiki):
        """Test plugins and the active template."""
        modules = collect_modules(
            plugin_dir=wiki / "lib" / "plugins",
            template_dir=wiki / "lib" / "tpl",
            template="dokuwiki",
        )

        assert modules == {
            "plugin.broken": "plugin.info.txt unreadable",
            "plugin.sentry": "2024-01-15",
            "template.dokuwiki": "2023-04-04",
        }

    def test_enabled_plugins_only(self, wiki):
        """Test restricting to the given plugin names."""
        modules = collect_modules(plugin_dir=wiki / "lib" / "plugins", plugins=["sentry"])
        assert modules == {"plugin.sentry": "2024-01-15"}

    def test_nothing_configured(self):
        """Test that no directories means no modules."""
        assert collect_modules() == {}


class TestUserAgent:
    """Test cases for the browser and os contexts."""

    def test_browser_context(self):
        """Test parsing a desktop Chrome user agent."""
        context = browser_context(CHROME_UA)

        assert context["ua"] == CHROME_UA
        assert context["name"] == "Chrome"
        assert context["version"].startswith("120")

    def test_os_context(self):
        """Test the platform name."""
        assert os_context(CHROME_UA) == {"name": "Mac OS X"}

    def test_unknown_agent(self):
        """Test that an unrecognized agent keeps only the raw string."""
        assert browser_context("???") == {"ua": "???"}
        assert os_context("???") == {}

    def test_no_agent(self):
        """Test a missing header."""
        assert browser_context(None) == {}
        assert os_context("") == {}
