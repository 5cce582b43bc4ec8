"""
Unit tests for version parsing, ordering and install keys.
"""

import pytest

from phpvm.core.exceptions import VersionParseError
from phpvm.core.version import InstallKey, PhpVersion, Variant, split_key


class TestPhpVersionParse:
    """Test PhpVersion.parse."""

    def test_parse_plain_version(self):
        """Test three numeric components."""
        version = PhpVersion.parse("8.2.15")

        assert (version.major, version.minor, version.patch) == (8, 2, 15)
        assert version.suffix is None

    def test_parse_suffix(self):
        """Test suffix is carried on the patch component."""
        version = PhpVersion.parse("8.2.0-rc1")

        assert version.patch == 0
        assert version.suffix == "rc1"
        assert version.render() == "8.2.0-rc1"

    def test_parse_ignores_extra_components(self):
        """Test components past the third are ignored."""
        assert PhpVersion.parse("8.2.0.1").render() == "8.2.0"

    @pytest.mark.parametrize("text", ["8.2", "8", "", "8..0", "a.b.c", "8.2.x"])
    def test_parse_rejects_malformed(self, text):
        """Test malformed strings raise VersionParseError."""
        with pytest.raises(VersionParseError):
            PhpVersion.parse(text)

    def test_parse_rejects_component_over_255(self):
        """Test each component is limited to 0-255."""
        with pytest.raises(VersionParseError, match="exceeds 255"):
            PhpVersion.parse("8.256.0")

    def test_parse_error_is_value_error(self):
        """Test callers catching ValueError also catch parse errors."""
        with pytest.raises(ValueError):
            PhpVersion.parse("not-a-version")


class TestPhpVersionOrdering:
    """Test ordering ignores the suffix."""

    def test_numeric_ordering(self):
        """Test versions compare by numeric triple."""
        assert PhpVersion.parse("8.2.10") > PhpVersion.parse("8.2.9")
        assert PhpVersion.parse("7.4.33") < PhpVersion.parse("8.0.0")

    def test_suffix_does_not_affect_ordering(self):
        """Test 8.2.0-rc1 and 8.2.0 are equal for ordering."""
        assert PhpVersion.parse("8.2.0-rc1") == PhpVersion.parse("8.2.0")
        assert not PhpVersion.parse("8.2.0-rc1") < PhpVersion.parse("8.2.0")

    def test_suffix_kept_in_identity(self):
        """Test the suffix still shows up in rendering and directory names."""
        version = PhpVersion.parse("8.2.0-rc1")

        assert version.directory_name(Variant.NTS) == "php-8.2.0-rc1-nts"
        assert version.directory_name() == "php-8.2.0-rc1"

    def test_sorted_numerically(self):
        """Test sorting compares numbers, not strings."""
        versions = [PhpVersion.parse(v) for v in ["10.0.0", "8.10.0", "8.3.1", "8.2.9"]]

        assert [v.render() for v in sorted(versions)] == [
            "8.2.9",
            "8.3.1",
            "8.10.0",
            "10.0.0",
        ]


class TestVariant:
    """Test Variant parsing."""

    def test_parse_case_insensitive(self):
        """Test variant names are case-insensitive."""
        assert Variant.parse("NTS") is Variant.NTS
        assert Variant.parse("ts") is Variant.TS

    def test_parse_invalid(self):
        """Test unknown variant raises VersionParseError."""
        with pytest.raises(VersionParseError, match="expected 'ts' or 'nts'"):
            Variant.parse("zts")

    def test_thread_safe(self):
        assert Variant.TS.thread_safe
        assert not Variant.NTS.thread_safe


class TestInstallKey:
    """Test InstallKey rendering and parsing."""

    def test_render(self):
        """Test key renders as version-variant."""
        key = InstallKey(PhpVersion.parse("8.2.0"), Variant.NTS)

        assert str(key) == "8.2.0-nts"
        assert key.directory_name() == "php-8.2.0-nts"

    def test_parse_with_suffix(self):
        """Test a suffixed version survives a key round trip."""
        key = InstallKey.parse("8.2.0-rc1-ts")

        assert key.version.suffix == "rc1"
        assert key.variant is Variant.TS

    def test_parse_requires_variant(self):
        """Test a bare version is not an install key."""
        with pytest.raises(VersionParseError):
            InstallKey.parse("8.2.0")

    def test_variants_are_distinct_keys(self):
        """Test ts and nts builds of one version are independent."""
        version = PhpVersion.parse("8.2.0")

        assert InstallKey(version, Variant.TS) != InstallKey(version, Variant.NTS)

    def test_equality_respects_suffix(self):
        """Test keys compare by rendered string."""
        assert InstallKey.parse("8.2.0-rc1-nts") != InstallKey.parse("8.2.0-nts")


class TestSplitKey:
    """Test split_key."""

    def test_split_qualified(self):
        version, variant = split_key("8.3.0-nts")

        assert version.render() == "8.3.0"
        assert variant is Variant.NTS

    def test_split_bare(self):
        """Test a bare version has no variant."""
        version, variant = split_key("8.3.0")

        assert version.render() == "8.3.0"
        assert variant is None

    def test_split_suffixed_bare(self):
        """Test a suffix is not mistaken for a variant."""
        version, variant = split_key("8.3.0-rc1")

        assert version.suffix == "rc1"
        assert variant is None
