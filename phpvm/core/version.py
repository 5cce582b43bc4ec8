"""
PHP version identifiers, build variants and install keys.

A version is ``major.minor.patch`` with an optional ``-suffix`` carried on the
patch component (``8.2.0-rc1``). The suffix is part of a version's identity
(it appears in install keys and directory names) but never takes part in
ordering: ``8.2.0-rc1`` and ``8.2.0`` sort as equal.

Example:
    >>> from phpvm.core.version import PhpVersion, Variant, InstallKey
    >>> v = PhpVersion.parse("8.2.0-rc1")
    >>> v.suffix
    'rc1'
    >>> str(InstallKey(v, Variant.NTS))
    '8.2.0-rc1-nts'
"""

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from phpvm.core.exceptions import VersionParseError

_COMPONENT_MAX = 255


def _parse_component(text: str, name: str, source: str) -> int:
    """Parse one numeric version component (uint8)."""
    if not (text.isascii() and text.isdigit()):
        raise VersionParseError(
            f"Invalid version format: {source!r} ({name} {text!r} is not a number)"
        )
    value = int(text)
    if value > _COMPONENT_MAX:
        raise VersionParseError(
            f"Invalid version format: {source!r} ({name} {value} exceeds {_COMPONENT_MAX})"
        )
    return value


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class PhpVersion:
    """
    A PHP version number.

    Attributes:
        major: Major version (0-255)
        minor: Minor version (0-255)
        patch: Patch version (0-255)
        suffix: Optional pre-release/build tag (e.g. 'rc1'), excluded from ordering
    """

    major: int
    minor: int
    patch: int
    suffix: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "PhpVersion":
        """
        Parse a version string.

        Args:
            text: Version string such as '8.2.0' or '8.2.0-rc1'

        Returns:
            Parsed PhpVersion

        Raises:
            VersionParseError: If fewer than three components are present or
                any numeric component is invalid
        """
        if not isinstance(text, str):
            raise VersionParseError(f"Invalid version format: {text!r}")

        parts = text.strip().split(".")
        if len(parts) < 3:
            raise VersionParseError(f"Invalid version format: {text!r}")

        major = _parse_component(parts[0], "major", text)
        minor = _parse_component(parts[1], "minor", text)

        patch_text, _, suffix = parts[2].partition("-")
        patch = _parse_component(patch_text, "patch", text)

        return cls(major, minor, patch, suffix or None)

    def numeric(self) -> tuple:
        """Return the (major, minor, patch) triple used for ordering."""
        return (self.major, self.minor, self.patch)

    def render(self) -> str:
        """Render as ``major.minor.patch[-suffix]``."""
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.suffix}" if self.suffix else base

    def directory_name(self, variant: Optional["Variant"] = None) -> str:
        """
        Installation directory name for this version.

        Args:
            variant: Build variant; omitted only for the legacy unqualified layout

        Returns:
            'php-8.2.0-nts' (or legacy 'php-8.2.0')
        """
        name = f"php-{self.render()}"
        if variant is not None:
            name = f"{name}-{variant.value}"
        return name

    def __eq__(self, other):
        if not isinstance(other, PhpVersion):
            return NotImplemented
        return self.numeric() == other.numeric()

    def __lt__(self, other):
        if not isinstance(other, PhpVersion):
            return NotImplemented
        return self.numeric() < other.numeric()

    def __hash__(self):
        return hash(self.numeric())

    def __str__(self) -> str:
        return self.render()


class Variant(Enum):
    """Thread-safety build flavor of a PHP build."""

    TS = "ts"
    NTS = "nts"

    @classmethod
    def parse(cls, text: str) -> "Variant":
        """
        Parse 'ts' or 'nts' (case-insensitive).

        Raises:
            VersionParseError: For any other value
        """
        try:
            return cls(str(text).strip().lower())
        except ValueError:
            raise VersionParseError(
                f"Invalid variant: {text!r} (expected 'ts' or 'nts')"
            ) from None

    @property
    def thread_safe(self) -> bool:
        return self is Variant.TS

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, eq=False)
class InstallKey:
    """
    Identity of an installed build: version plus variant.

    Rendered as ``"{version}-{variant}"``. Two variants of the same version are
    independent keys. Equality compares the rendered string, so suffixes matter.
    """

    version: PhpVersion
    variant: Variant

    @classmethod
    def parse(cls, text: str) -> "InstallKey":
        """
        Parse an install key such as '8.2.0-nts' or '8.2.0-rc1-ts'.

        Raises:
            VersionParseError: If the variant segment is missing or invalid
        """
        base, sep, variant_text = str(text).strip().rpartition("-")
        if not sep:
            raise VersionParseError(
                f"Invalid install key: {text!r} (expected '<version>-ts' or '<version>-nts')"
            )
        return cls(PhpVersion.parse(base), Variant.parse(variant_text))

    def directory_name(self) -> str:
        return self.version.directory_name(self.variant)

    def __eq__(self, other):
        if not isinstance(other, InstallKey):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self):
        return hash(str(self))

    def __str__(self) -> str:
        return f"{self.version.render()}-{self.variant.value}"


def split_key(text: str) -> tuple:
    """
    Split user input into a version and an optional variant.

    Accepts both '8.2.0-nts' and bare '8.2.0'.

    Returns:
        (PhpVersion, Optional[Variant])

    Raises:
        VersionParseError: If the version part is malformed
    """
    text = str(text).strip()
    base, sep, tail = text.rpartition("-")
    if sep and tail.lower() in ("ts", "nts"):
        return PhpVersion.parse(base), Variant.parse(tail)
    return PhpVersion.parse(text), None
