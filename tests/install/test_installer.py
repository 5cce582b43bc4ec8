"""
Tests for the install/remove state machine.

Archives are served by ``responses`` from StaticProvider URLs; installs use
the POSIX executable marker (``bin/php``).
"""

from unittest.mock import patch

import pytest
import responses

from phpvm.core.download import ContentCache, ProgressChannel
from phpvm.core.exceptions import (
    ActiveVersionInUseError,
    AlreadyInstalledError,
    ChecksumMismatchError,
    ExtractionIncompleteError,
    NetworkError,
    NotInstalledError,
)
from phpvm.core.filesystem import compute_directory_checksum, extract_archive
from phpvm.core.version import InstallKey, PhpVersion, Variant
from phpvm.install.installer import Installer
from tests.fixtures.archives import (
    make_php_zip,
    make_zip_without_executable,
    sha256,
    truncate,
)
from tests.fixtures.fakes import MIRROR_URL

V820 = PhpVersion.parse("8.2.0")
URL_NTS = f"{MIRROR_URL}php-8.2.0-nts.zip"
URL_TS = f"{MIRROR_URL}php-8.2.0-ts.zip"


@pytest.fixture
def installer(phpvm_config, state_store, posix_ops, static_provider):
    cache = ContentCache(phpvm_config.download_cache)
    return Installer(phpvm_config, cache, state_store, posix_ops, static_provider)


def _serve(url, body):
    responses.add(responses.GET, url, body=body, status=200)


class TestInstall:
    """Test Installer.install."""

    @responses.activate
    def test_install_success(self, installer, state_store):
        """Test a successful install leaves a complete directory and a state record."""
        _serve(URL_NTS, make_php_zip())

        path = installer.install(V820, Variant.NTS)

        assert path == installer.install_dir / "php-8.2.0-nts"
        assert (path / "bin" / "php").is_file()
        state = state_store.load()
        assert state.installed_versions == ["8.2.0-nts"]
        metadata = state.get_metadata("8.2.0-nts")
        assert metadata.source == URL_NTS
        assert metadata.checksum == compute_directory_checksum(path)
        assert metadata.install_path == str(path)

    @responses.activate
    def test_install_closes_progress(self, installer):
        _serve(URL_NTS, make_php_zip())
        channel = ProgressChannel()

        installer.install(V820, Variant.NTS, progress=channel)

        assert channel.closed
        assert list(channel.events(timeout=1))

    @responses.activate
    def test_source_url_override(self, installer, static_provider):
        """Test an explicit URL bypasses the provider."""
        custom = "https://downloads.test/custom-build.zip"
        _serve(custom, make_php_zip())

        installer.install(V820, Variant.TS, source_url=custom)

        assert static_provider.resolved == []
        assert installer.state_store.get_metadata("8.2.0-ts").source == custom

    @responses.activate
    def test_wrapper_directory_hoisted(self, installer):
        """Test an archive nested in one top-level directory is flattened."""
        _serve(URL_NTS, make_php_zip(wrapper="php-8.2.0"))

        path = installer.install(V820, Variant.NTS)

        assert (path / "bin" / "php").is_file()
        assert not (path / "php-8.2.0").exists()
        assert not [p for p in path.iterdir() if p.name.startswith(".unwrap-")]

    @responses.activate
    def test_expected_checksum(self, installer):
        archive = make_php_zip()
        _serve(URL_NTS, archive)

        installer.install(V820, Variant.NTS, expected_checksum=sha256(archive))

        assert installer.is_complete(installer.install_dir / "php-8.2.0-nts")

    def test_variant_required(self, installer):
        """Test a variant must be a Variant, never a default or string."""
        with pytest.raises(TypeError):
            installer.install(V820, "nts")


class TestInstallIdempotence:
    """Test reinstall and partial-install handling."""

    @responses.activate
    def test_already_installed(self, installer):
        _serve(URL_NTS, make_php_zip())
        installer.install(V820, Variant.NTS)
        channel = ProgressChannel()

        with pytest.raises(AlreadyInstalledError) as exc_info:
            installer.install(V820, Variant.NTS, progress=channel)

        assert exc_info.value.key == "8.2.0-nts"
        assert channel.closed

    @responses.activate
    def test_partial_install_replaced(self, installer):
        """Test a directory without the executable is removed and reinstalled."""
        partial = installer.install_dir / "php-8.2.0-nts"
        partial.mkdir(parents=True)
        (partial / "leftover.txt").write_text("interrupted")
        _serve(URL_NTS, make_php_zip())

        path = installer.install(V820, Variant.NTS)

        assert (path / "bin" / "php").is_file()
        assert not (path / "leftover.txt").exists()

    @responses.activate
    def test_reinstall_after_remove_uses_cache(self, installer):
        """Test install, remove, install hits the download cache."""
        _serve(URL_NTS, make_php_zip())

        installer.install(V820, Variant.NTS)
        installer.remove(InstallKey(V820, Variant.NTS))
        installer.install(V820, Variant.NTS)

        assert len(responses.calls) == 1
        assert installer.list_installed() == ["8.2.0-nts"]


class TestInstallFailures:
    """Test that failed installs leave no trace."""

    @responses.activate
    def test_truncated_archive(self, installer, state_store):
        """Test an interrupted download leaves no directory and no state."""
        _serve(URL_NTS, truncate(make_php_zip()))

        with pytest.raises(ExtractionIncompleteError):
            installer.install(V820, Variant.NTS)

        assert not (installer.install_dir / "php-8.2.0-nts").exists()
        assert not state_store.state_file.exists()

    @responses.activate
    def test_archive_without_executable(self, installer, state_store):
        _serve(URL_NTS, make_zip_without_executable())

        with pytest.raises(ExtractionIncompleteError, match="executable not found"):
            installer.install(V820, Variant.NTS)

        assert not (installer.install_dir / "php-8.2.0-nts").exists()
        assert state_store.load().installed_versions == []

    @responses.activate
    def test_checksum_mismatch(self, installer):
        _serve(URL_NTS, make_php_zip())

        with pytest.raises(ChecksumMismatchError):
            installer.install(V820, Variant.NTS, expected_checksum="0" * 64)

        assert not (installer.install_dir / "php-8.2.0-nts").exists()

    @responses.activate
    def test_network_error(self, installer):
        responses.add(responses.GET, URL_NTS, status=404)

        with pytest.raises(NetworkError):
            installer.install(V820, Variant.NTS)

        assert not (installer.install_dir / "php-8.2.0-nts").exists()

    @responses.activate
    def test_failure_keeps_other_installs(self, installer, state_store):
        """Test a failed install does not disturb an existing one."""
        _serve(URL_TS, make_php_zip())
        installer.install(V820, Variant.TS)
        before = state_store.state_file.read_bytes()
        _serve(URL_NTS, truncate(make_php_zip()))

        with pytest.raises(ExtractionIncompleteError):
            installer.install(V820, Variant.NTS)

        assert state_store.state_file.read_bytes() == before
        assert installer.list_installed() == ["8.2.0-ts"]


class TestVariantsCoexist:
    """Test ts and nts builds of one version are independent."""

    @responses.activate
    def test_install_both_and_remove_one(self, installer, state_store):
        _serve(URL_NTS, make_php_zip())
        _serve(URL_TS, make_php_zip())

        installer.install(V820, Variant.NTS)
        installer.install(V820, Variant.TS)

        assert installer.list_installed() == ["8.2.0-nts", "8.2.0-ts"]

        installer.remove(InstallKey(V820, Variant.NTS))

        assert installer.list_installed() == ["8.2.0-ts"]
        assert state_store.load().installed_versions == ["8.2.0-ts"]
        assert (installer.install_dir / "php-8.2.0-ts" / "bin" / "php").is_file()


class TestRemove:
    """Test Installer.remove."""

    @responses.activate
    def test_remove_active_refused(self, installer, state_store):
        """Test the active build cannot be removed and nothing changes."""
        _serve(URL_NTS, make_php_zip())
        installer.install(V820, Variant.NTS)
        state_store.set_active("8.2.0-nts")
        before = state_store.state_file.read_bytes()

        with pytest.raises(ActiveVersionInUseError):
            installer.remove(InstallKey(V820, Variant.NTS))

        assert state_store.state_file.read_bytes() == before
        assert (installer.install_dir / "php-8.2.0-nts").is_dir()

    def test_remove_not_installed(self, installer):
        with pytest.raises(NotInstalledError):
            installer.remove(InstallKey(V820, Variant.NTS))

    @responses.activate
    def test_remove_bare_version_prefers_ts(self, installer):
        """Test a bare version resolves to ts before nts."""
        _serve(URL_NTS, make_php_zip())
        _serve(URL_TS, make_php_zip())
        installer.install(V820, Variant.NTS)
        installer.install(V820, Variant.TS)

        installer.remove(V820)

        assert installer.list_installed() == ["8.2.0-nts"]

    def test_remove_legacy_directory(self, installer):
        """Test unqualified directories from older layouts can be removed."""
        legacy = installer.install_dir / "php-7.4.33"
        (legacy / "bin").mkdir(parents=True)
        (legacy / "bin" / "php").write_text("php")

        installer.remove(PhpVersion.parse("7.4.33"))

        assert not legacy.exists()


class TestListInstalled:
    """Test Installer.list_installed."""

    def test_empty(self, installer):
        assert installer.list_installed() == []

    def test_partial_directories_skipped(self, installer):
        """Test directories without the executable are neither listed nor removed."""
        partial = installer.install_dir / "php-8.1.0-nts"
        partial.mkdir(parents=True)
        (partial / "README.md").write_text("extracting")

        assert installer.list_installed() == []
        assert (partial / "README.md").exists()

    @responses.activate
    def test_listing_during_extraction_leaves_install_alone(self, installer):
        """Test a listing that runs mid-extraction does not break the install."""
        _serve(URL_NTS, make_php_zip("8.2.0"))
        seen = []

        def extract_then_list(archive_path, destination):
            destination.mkdir(parents=True, exist_ok=True)
            (destination / "README.md").write_text("first entry")
            seen.append(installer.list_installed())
            extract_archive(archive_path, destination)

        with patch(
            "phpvm.install.installer.extract_archive", side_effect=extract_then_list
        ):
            path = installer.install(V820, Variant.NTS)

        assert seen == [[]]
        assert (path / "bin" / "php").is_file()
        assert installer.list_installed() == ["8.2.0-nts"]

    def test_numeric_version_order(self, installer):
        """Test keys sort by version number, not as strings."""
        for key in ("10.0.0-nts", "8.2.0-ts", "8.10.1-nts", "8.2.0-nts", "7.4.33"):
            install_dir = installer.install_dir / f"php-{key}"
            (install_dir / "bin").mkdir(parents=True)
            (install_dir / "bin" / "php").write_text("php")

        assert installer.list_installed() == [
            "7.4.33",
            "8.2.0-nts",
            "8.2.0-ts",
            "8.10.1-nts",
            "10.0.0-nts",
        ]

    def test_disk_only_install_listed(self, installer):
        """Test complete directories are listed even without a state record."""
        manual = installer.install_dir / "php-8.3.0-ts"
        (manual / "bin").mkdir(parents=True)
        (manual / "bin" / "php").write_text("php")

        assert installer.list_installed() == ["8.3.0-ts"]

    def test_state_only_entry_skipped(self, installer, state_store):
        """Test a state record whose directory is gone is not listed."""
        from phpvm.core.state import InstallMetadata

        state_store.add_version(
            "8.0.30-nts", InstallMetadata("8.0.30-nts", "/gone", "1700000000")
        )

        assert installer.list_installed() == []

    def test_non_php_entries_ignored(self, installer):
        installer.install_dir.mkdir(parents=True)
        (installer.install_dir / "notes.txt").write_text("x")
        (installer.install_dir / "other").mkdir()

        assert installer.list_installed() == []
