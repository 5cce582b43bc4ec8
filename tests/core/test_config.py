"""
Unit tests for configuration loading and saving.
"""

import json

import pytest
import yaml

from phpvm.core.config import DEFAULT_PROVIDER_URL, Config
from phpvm.core.exceptions import ConfigError


class TestConfigLoad:
    """Test Config.load."""

    def test_first_run_writes_defaults(self, tmp_path):
        """Test a missing config file is created with defaults."""
        config = Config.load(tmp_path)

        assert config.install_dir == tmp_path / "versions"
        assert config.download_cache == tmp_path / "cache"
        assert config.active_version is None
        assert config.providers[0].url == DEFAULT_PROVIDER_URL
        assert (tmp_path / "config.json").exists()

    def test_load_json(self, tmp_path):
        (tmp_path / "config.json").write_text(
            json.dumps(
                {
                    "installDir": str(tmp_path / "php"),
                    "activeVersion": "8.2.0",
                    "downloadCache": str(tmp_path / "dl"),
                    "providers": [
                        {"name": "mirror", "url": "https://mirror.test/", "verifyChecksum": False}
                    ],
                }
            )
        )

        config = Config.load(tmp_path)

        assert config.install_dir == tmp_path / "php"
        assert config.active_version == "8.2.0"
        assert config.providers[0].name == "mirror"
        assert config.providers[0].verify_checksum is False

    def test_missing_keys_use_defaults(self, tmp_path):
        (tmp_path / "config.json").write_text('{"activeVersion": "8.3.0"}')

        config = Config.load(tmp_path)

        assert config.install_dir == tmp_path / "versions"
        assert config.providers[0].name == "official"

    def test_load_yaml(self, tmp_path):
        """Test a hand-written config.yaml is accepted."""
        (tmp_path / "config.yaml").write_text(
            "installDir: /opt/php\nactiveVersion: '8.1.27'\n"
        )

        config = Config.load(tmp_path)

        assert str(config.install_dir) == "/opt/php"
        assert config.active_version == "8.1.27"
        assert config.path == tmp_path / "config.yaml"

    def test_yaml_saved_back_as_yaml(self, tmp_path):
        (tmp_path / "config.yaml").write_text("activeVersion: '8.1.27'\n")
        config = Config.load(tmp_path)

        config.active_version = "8.2.0"
        config.save()

        assert yaml.safe_load((tmp_path / "config.yaml").read_text())["activeVersion"] == "8.2.0"
        assert not (tmp_path / "config.json").exists()

    @pytest.mark.parametrize(
        "content, message",
        [
            ("{broken", "Invalid JSON"),
            ("[]", "mapping"),
            ("null", "empty"),
            ('{"activeVersion": 8}', "activeVersion"),
            ('{"providers": {}}', "list"),
            ('{"providers": [{"name": "x"}]}', "url"),
        ],
    )
    def test_invalid_config(self, tmp_path, content, message):
        (tmp_path / "config.json").write_text(content)

        with pytest.raises(ConfigError, match=message):
            Config.load(tmp_path)


class TestConfigSave:
    """Test Config.save."""

    def test_round_trip(self, tmp_path):
        config = Config.default(tmp_path)
        config.active_version = "8.3.0"
        config.save()

        loaded = Config.load(tmp_path)

        assert loaded.active_version == "8.3.0"
        assert loaded.install_dir == config.install_dir

    def test_file_uses_camel_case(self, tmp_path):
        Config.default(tmp_path).save()

        data = json.loads((tmp_path / "config.json").read_text())

        assert set(data) == {"installDir", "activeVersion", "downloadCache", "providers"}
        assert data["providers"][0]["verifyChecksum"] is True
