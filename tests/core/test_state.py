"""
Unit tests for persistent state.
"""

import json

import pytest

from phpvm.core.exceptions import StateError
from phpvm.core.state import InstallMetadata, PhpState, StateStore


def _metadata(key: str) -> InstallMetadata:
    return InstallMetadata(
        version=key,
        install_path=f"/versions/php-{key}",
        installed_at="1700000000",
        checksum="ab" * 32,
        source=f"https://example.com/php-{key}.zip",
    )


class TestInstallMetadata:
    """Test InstallMetadata serialization."""

    def test_to_dict_uses_camel_case(self):
        data = _metadata("8.2.0-nts").to_dict()

        assert data["installPath"] == "/versions/php-8.2.0-nts"
        assert data["installedAt"] == "1700000000"
        assert set(data) == {"version", "installPath", "installedAt", "checksum", "source"}

    def test_from_dict_round_trip(self):
        original = _metadata("8.2.0-nts")

        assert InstallMetadata.from_dict(original.to_dict()) == original

    def test_now_records_timestamp(self, tmp_path):
        """Test now() stores seconds since the epoch as a string."""
        metadata = InstallMetadata.now("8.2.0-ts", tmp_path, None, "https://x.test/a.zip")

        assert metadata.installed_at.isdigit()
        assert metadata.install_path == str(tmp_path)


class TestPhpState:
    """Test pure state transitions."""

    def test_add_version_is_idempotent(self):
        """Test adding twice lists the key once and replaces its record."""
        state = PhpState()
        state.add_version("8.2.0-nts", _metadata("8.2.0-nts"))
        replacement = _metadata("8.2.0-nts")
        replacement.checksum = "cd" * 32
        state.add_version("8.2.0-nts", replacement)

        assert state.installed_versions == ["8.2.0-nts"]
        assert state.get_metadata("8.2.0-nts").checksum == "cd" * 32

    def test_set_active_demotes_previous(self):
        """Test the previous active key becomes last-known-good."""
        state = PhpState()
        state.set_active("8.2.0-nts")
        state.set_active("8.3.0-nts")

        assert state.active_version == "8.3.0-nts"
        assert state.last_known_good == "8.2.0-nts"

    def test_first_set_active_leaves_lkg_empty(self):
        state = PhpState()
        state.set_active("8.2.0-nts")

        assert state.last_known_good is None

    def test_remove_active_falls_back_to_lkg(self):
        """Test removing the active key promotes last-known-good."""
        state = PhpState()
        for key in ("8.2.0-nts", "8.3.0-nts"):
            state.add_version(key, _metadata(key))
        state.set_active("8.2.0-nts")
        state.set_active("8.3.0-nts")

        state.remove_version("8.3.0-nts")

        assert state.active_version == "8.2.0-nts"
        assert "8.3.0-nts" not in state.install_metadata

    def test_remove_inactive_keeps_active(self):
        state = PhpState()
        for key in ("8.2.0-nts", "8.3.0-nts"):
            state.add_version(key, _metadata(key))
        state.set_active("8.3.0-nts")

        state.remove_version("8.2.0-nts")

        assert state.active_version == "8.3.0-nts"
        assert state.installed_versions == ["8.3.0-nts"]

    def test_from_dict_dedups(self):
        """Test duplicate keys in a hand-edited file collapse to one."""
        state = PhpState.from_dict(
            {"installedVersions": ["8.2.0-nts", "8.2.0-nts", "8.3.0-ts"]}
        )

        assert state.installed_versions == ["8.2.0-nts", "8.3.0-ts"]

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"installedVersions": "8.2.0-nts"},
            {"installMetadata": []},
            {"installMetadata": {"8.2.0-nts": {"version": "8.2.0-nts"}}},
        ],
    )
    def test_from_dict_rejects_bad_shape(self, data):
        with pytest.raises(StateError):
            PhpState.from_dict(data)


class TestStateStore:
    """Test StateStore persistence."""

    def test_load_missing_file(self, tmp_path):
        """Test a missing state file yields an empty state."""
        state = StateStore(tmp_path / "state.json").load()

        assert state == PhpState()

    def test_save_and_load(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        store.add_version("8.2.0-nts", _metadata("8.2.0-nts"))
        store.set_active("8.2.0-nts")

        state = store.load()

        assert state.installed_versions == ["8.2.0-nts"]
        assert state.active_version == "8.2.0-nts"
        assert state.get_metadata("8.2.0-nts") == _metadata("8.2.0-nts")

    def test_file_format(self, tmp_path):
        """Test the document uses the camelCase keys."""
        path = tmp_path / "state.json"
        store = StateStore(path)
        store.add_version("8.2.0-nts", _metadata("8.2.0-nts"))

        data = json.loads(path.read_text())

        assert data["installedVersions"] == ["8.2.0-nts"]
        assert data["activeVersion"] is None
        assert data["lastKnownGood"] is None
        assert "8.2.0-nts" in data["installMetadata"]

    def test_corrupt_file(self, tmp_path):
        """Test invalid JSON raises StateError instead of resetting state."""
        path = tmp_path / "state.json"
        path.write_text("{not json")

        with pytest.raises(StateError, match="Invalid state file"):
            StateStore(path).load()

        assert path.read_text() == "{not json"

    def test_save_creates_parent(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        StateStore(path).save(PhpState(installed_versions=["8.2.0-ts"]))

        assert path.exists()

    def test_save_leaves_no_temp_files(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        store.save(PhpState())
        store.save(PhpState(active_version="8.2.0-nts"))

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]
