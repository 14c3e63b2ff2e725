"""
Property-based tests for configuration and target loading.

**Feature: forum-crawler, Property 5: Configuration reload consistency**
"""

import json

import pytest
from hypothesis import given, strategies as st

from config import ConfigManager, SystemConfig, load_targets
from forum_crawler.utils.errors import ConfigurationError


name_alphabet = st.characters(whitelist_categories=('Lu', 'Ll', 'Nd'), whitelist_characters='_-')


@st.composite
def concurrency_config_strategy(draw):
    """Generate valid worker pool settings."""
    return {
        "max_workers": draw(st.integers(min_value=1, max_value=50)),
        "fanout_limit": draw(st.integers(min_value=1, max_value=20)),
        "page_timeout_ms": draw(st.integers(min_value=1000, max_value=300000)),
        "thread_timeout_ms": draw(st.integers(min_value=1000, max_value=300000)),
        "max_pages": draw(st.integers(min_value=0, max_value=1000)),
    }


@st.composite
def system_config_strategy(draw):
    """Generate valid system configuration."""
    return {
        "database": {
            "db_type": "sqlite",
            "sqlite_path": draw(st.text(min_size=1, max_size=30, alphabet=name_alphabet)) + ".db",
        },
        "crawler": {
            "backend": draw(st.sampled_from(["playwright", "http"])),
            "headless": draw(st.booleans()),
        },
        "concurrency": draw(concurrency_config_strategy()),
        "dashboard": {
            "enabled": draw(st.booleans()),
            "refresh_interval_ms": draw(st.integers(min_value=10, max_value=10000)),
        },
        "log_level": draw(st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])),
    }


def target_entry(**overrides):
    entry = {
        "sourceName": "Car Forum",
        "startUrl": "https://forum.test/board",
        "threadLinkSelector": "a.thread",
        "nextPageSelector": "a.next",
        "postContentSelectors": [".post", "article"],
        "keywords": ["turbo", "boost"],
    }
    entry.update(overrides)
    return entry


@pytest.fixture
def clear_db_env(monkeypatch):
    for name in ("DB_TYPE", "DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD", "SQLITE_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestConfigProperties:

    @given(config_data=system_config_strategy())
    def test_valid_config_loads_consistently(self, config_data, tmp_path_factory):
        """Test any schema-valid configuration loads into matching dataclasses."""
        config_file = tmp_path_factory.mktemp("cfg") / "config.json"
        config_file.write_text(json.dumps(config_data), encoding="utf-8")

        first = ConfigManager(str(config_file)).load_config()
        second = ConfigManager(str(config_file)).load_config()

        assert first == second
        assert first.database.sqlite_path == config_data["database"]["sqlite_path"]
        assert first.crawler.backend == config_data["crawler"]["backend"]
        assert first.concurrency.max_workers == config_data["concurrency"]["max_workers"]
        assert first.concurrency.max_pages == config_data["concurrency"]["max_pages"]
        assert first.log_level == config_data["log_level"]

        concurrent = first.to_concurrent_config()
        assert concurrent.fanout_limit == config_data["concurrency"]["fanout_limit"]
        assert concurrent.refresh_interval == config_data["dashboard"]["refresh_interval_ms"] / 1000.0

    @given(workers=st.one_of(st.integers(max_value=0), st.integers(min_value=51)))
    def test_out_of_range_workers_rejected(self, workers):
        """Test worker counts outside the allowed range are rejected."""
        with pytest.raises(ConfigurationError):
            ConfigManager().validate_config({"concurrency": {"max_workers": workers}})


@pytest.mark.usefixtures("clear_db_env")
class TestConfigManager:

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing config file falls back to defaults."""
        config = ConfigManager(str(tmp_path / "absent.json")).load_config()

        assert config == SystemConfig()
        assert config.concurrency.max_workers == 4
        assert config.concurrency.fanout_limit == 3

    def test_invalid_json_is_a_configuration_error(self, tmp_path):
        """Test malformed JSON raises ConfigurationError."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(config_file)).load_config()

    def test_unknown_keys_rejected(self):
        """Test unknown configuration keys are rejected."""
        with pytest.raises(ConfigurationError):
            ConfigManager().validate_config({"crawler": {"stealth": True}})

    def test_environment_overrides_database(self, tmp_path, monkeypatch):
        """Test database settings are overridden from the environment."""
        monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("DB_PORT", "6543")

        config = ConfigManager(str(tmp_path / "absent.json")).load_config()

        assert config.database.sqlite_path == str(tmp_path / "env.db")
        assert config.database.port == 6543

    def test_bad_environment_value_rejected(self, tmp_path, monkeypatch):
        """Test a non-numeric DB_PORT raises ConfigurationError."""
        monkeypatch.setenv("DB_PORT", "not-a-port")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path / "absent.json")).load_config()

    def test_unsupported_db_type_from_environment(self, tmp_path, monkeypatch):
        """Test an unknown DB_TYPE from the environment is rejected."""
        monkeypatch.setenv("DB_TYPE", "mysql")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path / "absent.json")).load_config()

    def test_save_then_reload(self, tmp_path):
        """Test a saved configuration reloads unchanged."""
        manager = ConfigManager(str(tmp_path / "absent.json"))
        config = manager.load_config()
        config.concurrency.max_workers = 7
        saved = tmp_path / "saved.json"

        manager.save_config(str(saved))

        assert ConfigManager(str(saved)).load_config().concurrency.max_workers == 7

    def test_session_options_follow_backend(self):
        """Test session options depend on the selected backend."""
        config = SystemConfig()
        assert config.crawler.session_options() == {"headless": True, "wait_until": "networkidle"}

        config.crawler.backend = "http"
        assert config.crawler.session_options() == {"retry_attempts": 2, "backoff_factor": 0.5}


class TestLoadTargets:

    def write(self, tmp_path, data):
        path = tmp_path / "targets.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    def test_targets_load_in_file_order(self, tmp_path):
        """Test targets are returned in file order."""
        path = self.write(tmp_path, [target_entry(sourceName="A"), target_entry(sourceName="B")])

        targets = load_targets(path)

        assert [t.source_name for t in targets] == ["A", "B"]
        assert targets[0].post_content_selectors == (".post", "article")
        assert targets[0].keywords == ("turbo", "boost")

    def test_single_content_selector_accepted(self, tmp_path):
        """Test a single postContentSelector is accepted."""
        entry = target_entry()
        del entry["postContentSelectors"]
        entry["postContentSelector"] = "div.message"

        targets = load_targets(self.write(tmp_path, [entry]))

        assert targets[0].post_content_selectors == ("div.message",)

    def test_missing_next_selector_means_single_page(self, tmp_path):
        """Test a missing nextPageSelector becomes an empty selector."""
        entry = target_entry()
        del entry["nextPageSelector"]

        assert load_targets(self.write(tmp_path, [entry]))[0].next_page_selector == ""

    def test_missing_file(self, tmp_path):
        """Test a missing targets file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_targets(str(tmp_path / "targets.json"))

    def test_empty_list(self, tmp_path):
        """Test an empty targets list raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="No targets"):
            load_targets(self.write(tmp_path, []))

    def test_invalid_json(self, tmp_path):
        """Test a malformed targets file raises ConfigurationError."""
        path = tmp_path / "targets.json"
        path.write_text("[{", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_targets(str(path))

    @pytest.mark.parametrize("missing", ["sourceName", "startUrl", "threadLinkSelector", "keywords"])
    def test_missing_required_field(self, tmp_path, missing):
        """Test each required target field is enforced."""
        entry = target_entry()
        del entry[missing]

        with pytest.raises(ConfigurationError, match="targets"):
            load_targets(self.write(tmp_path, [entry]))

    def test_missing_content_selectors(self, tmp_path):
        """Test a target without content selectors is rejected."""
        entry = target_entry()
        del entry["postContentSelectors"]

        with pytest.raises(ConfigurationError):
            load_targets(self.write(tmp_path, [entry]))

    def test_empty_keywords_rejected(self, tmp_path):
        """Test a target with no keywords is rejected."""
        with pytest.raises(ConfigurationError):
            load_targets(self.write(tmp_path, [target_entry(keywords=[])]))
