"""
Cross-platform file system utilities for phpvm.

This module provides:
- Archive extraction (zip, tar.gz, tar.xz, tar.bz2) with traversal checks
- Safe file operations (atomic writes, guarded recursive deletion)
- Checksums of installed directory trees

Archives in the download cache are named by URL fingerprint and carry no
extension, so the archive format is detected from file content.
"""

import hashlib
import logging
import os
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether ``path`` is located under ``parent``.

    Args:
        path: Path to check
        parent: Candidate ancestor

    Returns:
        True if path equals parent or is inside it
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()
    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def detect_archive_format(archive_path: Path) -> str:
    """
    Detect the archive format of a file from its content.

    Args:
        archive_path: Path to the archive

    Returns:
        'zip' or 'tar'

    Raises:
        UnsupportedArchiveFormat: If the content is neither zip nor tar
    """
    if zipfile.is_zipfile(archive_path):
        return "zip"
    try:
        if tarfile.is_tarfile(archive_path):
            return "tar"
    except (OSError, EOFError, tarfile.TarError):
        pass
    raise UnsupportedArchiveFormat(
        f"Unsupported or corrupted archive: {archive_path}. "
        "Supported: .zip, .tar.gz, .tar.xz, .tar.bz2"
    )


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
) -> None:
    """
    Extract an archive to a destination directory.

    Validates all member paths before writing anything.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to (created if missing)

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths

    Example:
        >>> extract_archive(cache / "3f2a9c0d1e4b5a67", versions / "php-8.2.0-nts")
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")
    if archive_path.stat().st_size == 0:
        raise ArchiveExtractionError(f"Archive file is empty: {archive_path}")

    archive_format = detect_archive_format(archive_path)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if archive_format == "zip":
            _extract_zip(archive_path, destination)
        else:
            _extract_tar(archive_path, destination)
    except (InsecureArchiveError, UnsupportedArchiveFormat):
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract a ZIP archive."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.namelist()
        total = len(members)

        for member in members:
            _validate_archive_path(member, destination)

        for member in members:
            zf.extract(member, destination)

    logger.debug(f"Extracted {total} entries from {archive_path}")


def _validate_tar_link(member: tarfile.TarInfo, destination: Path) -> None:
    """
    Validate that a symlink or hard link member points inside ``destination``.

    Symlink targets are relative to the member's own directory; hard link
    targets are relative to the archive root.

    Raises:
        InsecureArchiveError: If the link target escapes the destination
    """
    if member.issym():
        target = str(Path(member.name).parent / member.linkname)
    elif member.islnk():
        target = member.linkname
    else:
        return

    try:
        _validate_archive_path(target, destination)
    except InsecureArchiveError:
        raise InsecureArchiveError(
            f"Archive member '{member.name}' links to '{member.linkname}' "
            "outside the extraction directory. Extraction has been blocked."
        ) from None


def _extract_tar(archive_path: Path, destination: Path) -> None:
    """Extract a tar archive (compression auto-detected)."""
    with tarfile.open(archive_path, "r:*") as tar:
        members = tar.getmembers()
        total = len(members)

        # Link targets must stay inside destination as well as member names
        for member in members:
            _validate_archive_path(member.name, destination)
            _validate_tar_link(member, destination)

        # Python 3.12+ filter; older versions rely on the validation above
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)

    logger.debug(f"Extracted {total} entries from {archive_path}")


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree(versions / 'php-8.2.0-nts', require_prefix=versions)
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    def handle_remove_readonly(func, failed_path, exc_info):
        """Clear the read-only bit (common on Windows) and retry once."""
        if not os.access(failed_path, os.W_OK):
            os.chmod(failed_path, stat.S_IWRITE | stat.S_IREAD)
            func(failed_path)
        else:
            raise exc_info[1]

    try:
        if IS_WINDOWS:
            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)
    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


# ============================================================================
# Hashing
# ============================================================================


def compute_directory_checksum(directory: Union[str, Path], chunk_size: int = 8192) -> str:
    """
    Compute a SHA-256 over the regular files directly inside ``directory``.

    Files are hashed in sorted name order so the result is stable across
    filesystems. Subdirectories are not descended into.

    Args:
        directory: Installed version directory

    Returns:
        Lowercase hex digest
    """
    directory = Path(directory)
    hasher = hashlib.sha256()

    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if not entry.is_file():
            continue
        with open(entry, "rb") as f:
            while chunk := f.read(chunk_size):
                hasher.update(chunk)

    return hasher.hexdigest()


__all__ = [
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "is_relative_to",
    "detect_archive_format",
    "extract_archive",
    "atomic_write",
    "safe_rmtree",
    "compute_directory_checksum",
]
