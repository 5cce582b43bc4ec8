"""
Download cache with checksum verification and progress reporting.

Downloaded archives are stored in a flat cache directory, one file per source
URL, named by a 64-bit FNV-1a fingerprint of the URL. The cache is keyed by
URL, not by content:

- a cached entry fetched with an expected checksum is re-verified on every
  hit and re-downloaded on mismatch;
- a cached entry requested without a checksum is trusted as-is.

Progress is reported as DownloadProgress events pushed into a ProgressChannel.
The producer never blocks on the channel, so a consumer that stops reading
does not abort the download.

Example:
    >>> cache = ContentCache(Path("~/.local/share/phpvm/cache").expanduser())
    >>> channel = ProgressChannel()
    >>> path = cache.fetch(url, expected_checksum=None, progress=channel)
    >>> for event in channel.events():
    ...     print(format_progress(event))
"""

import hashlib
import logging
import queue
import tempfile
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

import requests
from requests.exceptions import RequestException

from phpvm.core.exceptions import (
    CacheIOError,
    ChecksumMismatchError,
    NetworkError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "phpvm/0.1.0"
PROGRESS_INTERVAL = 0.1  # seconds between progress events
SPEED_WINDOW = 10  # samples in the moving-average throughput window
CHUNK_SIZE = 64 * 1024
TEMP_SUFFIX = ".part"  # in-progress downloads, never served as entries

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_FNV64_MASK = 0xFFFFFFFFFFFFFFFF


def cache_key(url: str) -> str:
    """
    Fingerprint a URL for use as a cache file name.

    Uses 64-bit FNV-1a over the UTF-8 bytes of the URL. Not a content hash:
    identical content at two URLs gets two entries.

    Args:
        url: Source URL

    Returns:
        16 lowercase hex characters
    """
    value = _FNV64_OFFSET
    for byte in url.encode("utf-8"):
        value ^= byte
        value = (value * _FNV64_PRIME) & _FNV64_MASK
    return f"{value:016x}"


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int  # 0 when unknown
    speed_mbps: float  # recent throughput in MiB/s
    cached: bool = False

    @property
    def percentage(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self.bytes_downloaded / self.total_bytes * 100

    @property
    def complete(self) -> bool:
        return self.total_bytes > 0 and self.bytes_downloaded >= self.total_bytes

    def __str__(self) -> str:
        return format_progress(self)


class ProgressChannel:
    """
    One-way channel of DownloadProgress events.

    The producer calls emit() and finally close(); the consumer iterates
    events(), which ends once the channel is closed and drained. The queue is
    unbounded, so emit() never blocks.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: "queue.Queue" = queue.Queue()
        self._closed = False

    def emit(self, event: DownloadProgress) -> None:
        if self._closed:
            return
        self._queue.put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def events(self, timeout: Optional[float] = None) -> Iterator[DownloadProgress]:
        """
        Yield events until the channel is closed.

        Args:
            timeout: Maximum seconds to wait for each event (None waits forever)

        Raises:
            queue.Empty: If no event arrives within timeout
        """
        while True:
            item = self._queue.get(timeout=timeout)
            if item is self._CLOSED:
                return
            yield item

    def drain(self) -> List[DownloadProgress]:
        """Return every event currently queued without blocking."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is self._CLOSED:
                # Keep the sentinel for any later events() call
                self._queue.put(item)
                return items
            items.append(item)


class _ThroughputMeter:
    """Moving average of throughput over the last few samples."""

    def __init__(self, window: int = SPEED_WINDOW):
        self._samples: deque = deque(maxlen=window)

    def add(self, nbytes: int, seconds: float) -> None:
        if seconds > 0:
            self._samples.append((nbytes, seconds))

    def mbps(self) -> float:
        total_seconds = sum(s for _, s in self._samples)
        if total_seconds <= 0:
            return 0.0
        total_bytes = sum(b for b, _ in self._samples)
        return total_bytes / total_seconds / (1024 * 1024)


@dataclass
class CacheEntry:
    """A blob in the download cache."""

    key: str
    path: Path
    size: int
    modified: datetime


class ContentCache:
    """
    URL-keyed download cache.

    Attributes:
        cache_dir: Flat directory holding cached archives
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        cache_dir: Path,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def cache_path(self, url: str) -> Path:
        return self.cache_dir / cache_key(url)

    def fetch(
        self,
        url: str,
        expected_checksum: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> Path:
        """
        Return a local path holding the content of ``url``.

        Args:
            url: Source URL
            expected_checksum: Expected SHA-256 (hex); verified on hits and after download
            progress: Channel receiving DownloadProgress events; closed on return

        Returns:
            Path to the cached file

        Raises:
            NetworkError: Connection failure, timeout, or non-2xx response
            ChecksumMismatchError: Downloaded content does not match expected_checksum
            CacheIOError: Writing to the cache failed
        """
        if not url:
            raise ValueError("URL cannot be empty")

        try:
            return self._fetch(url, expected_checksum, progress)
        finally:
            if progress is not None:
                progress.close()

    def _fetch(
        self,
        url: str,
        expected_checksum: Optional[str],
        progress: Optional[ProgressChannel],
    ) -> Path:
        path = self.cache_path(url)

        if path.exists():
            if expected_checksum is None:
                logger.debug(f"Cache hit (unverified): {url} -> {path.name}")
                self._emit_cached(path, progress)
                return path

            actual = compute_sha256(path)
            if _checksums_equal(actual, expected_checksum):
                logger.info(f"Cache hit, checksum verified: {path.name}")
                self._emit_cached(path, progress)
                return path

            logger.warning(
                f"Cached file {path.name} failed checksum verification, re-downloading"
            )
            self._discard(path)

        self._download(url, path, progress)

        if expected_checksum is not None:
            actual = compute_sha256(path)
            if not _checksums_equal(actual, expected_checksum):
                self._discard(path)
                raise ChecksumMismatchError(path, expected_checksum, actual)
            logger.info("Checksum verified successfully")

        return path

    def _download(
        self, url: str, path: Path, progress: Optional[ProgressChannel]
    ) -> None:
        logger.info(f"Downloading from: {url}")

        try:
            response = self.session.get(
                url, stream=True, timeout=self.timeout, allow_redirects=True
            )
        except RequestException as e:
            raise NetworkError(url, str(e)) from e

        with response:
            if not 200 <= response.status_code < 300:
                raise NetworkError(url, f"HTTP error {response.status_code}")

            content_length = response.headers.get("content-length")
            total = int(content_length) if content_length else 0
            logger.info(f"Download size: {total} bytes")

            downloaded = 0
            meter = _ThroughputMeter()
            last_emit = time.monotonic()
            last_emit_bytes = 0

            # The cache key only ever names a complete download
            try:
                temp_fd, temp_path_str = tempfile.mkstemp(
                    dir=self.cache_dir, prefix=f".{path.name}.", suffix=TEMP_SUFFIX
                )
            except OSError as e:
                raise CacheIOError(f"Failed to create cache file in {self.cache_dir}: {e}") from e
            temp_path = Path(temp_path_str)

            try:
                with open(temp_fd, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if not chunk:
                            continue
                        f.write(chunk)
                        downloaded += len(chunk)

                        now = time.monotonic()
                        if progress is not None and (
                            now - last_emit >= PROGRESS_INTERVAL or downloaded == total
                        ):
                            meter.add(downloaded - last_emit_bytes, now - last_emit)
                            progress.emit(
                                DownloadProgress(downloaded, total, meter.mbps())
                            )
                            last_emit = now
                            last_emit_bytes = downloaded

                # Final event when the length is unknown
                if progress is not None and last_emit_bytes != downloaded:
                    meter.add(downloaded - last_emit_bytes, time.monotonic() - last_emit)
                    progress.emit(DownloadProgress(downloaded, total, meter.mbps()))

                temp_path.replace(path)
            except RequestException as e:
                self._discard(temp_path)
                raise NetworkError(url, str(e)) from e
            except OSError as e:
                self._discard(temp_path)
                raise CacheIOError(f"Failed to write cache file {path}: {e}") from e
            except BaseException:
                # Interrupted: drop the partial file, keep the original error
                try:
                    temp_path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning(f"Could not remove partial download {temp_path}: {e}")
                raise

        logger.info(f"Download completed: {downloaded} bytes saved to {path}")

    def _emit_cached(self, path: Path, progress: Optional[ProgressChannel]) -> None:
        if progress is None:
            return
        size = path.stat().st_size
        progress.emit(DownloadProgress(size, size, 0.0, cached=True))

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to remove cache file {path}: {e}") from e

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def list_entries(self) -> List[CacheEntry]:
        """List cached blobs, newest first."""
        entries = []
        for path in self.cache_dir.iterdir():
            if not path.is_file() or path.name.endswith(TEMP_SUFFIX):
                continue
            st = path.stat()
            entries.append(
                CacheEntry(
                    key=path.name,
                    path=path,
                    size=st.st_size,
                    modified=datetime.fromtimestamp(st.st_mtime),
                )
            )
        entries.sort(key=lambda e: e.modified, reverse=True)
        return entries

    def remove_entry(self, key: str) -> None:
        """
        Delete one cached blob.

        Raises:
            CacheIOError: If the entry does not exist or cannot be removed
        """
        path = self.cache_dir / key
        if path.parent != self.cache_dir or not path.is_file():
            raise CacheIOError(f"Cached file not found: {key}")
        self._discard(path)
        logger.info(f"Removed cached file: {key}")

    def clear(self) -> int:
        """
        Delete every cached blob and any leftover partial download.

        Returns:
            Number of cached blobs removed
        """
        removed = 0
        for path in self.cache_dir.iterdir():
            if not path.is_file():
                continue
            self._discard(path)
            if not path.name.endswith(TEMP_SUFFIX):
                removed += 1
        logger.info(f"Cleared {removed} cached file(s)")
        return removed


def compute_sha256(file_path: Path) -> str:
    """SHA-256 hex digest of a file."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()


def _checksums_equal(actual: str, expected: str) -> bool:
    return actual.lower() == expected.strip().lower()


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> format_progress(DownloadProgress(52428800, 104857600, 1.0))
        '50.0/100.0 MB (50.0%) at 1.0 MB/s'
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024

    if progress.cached:
        return f"{mb_total:.1f} MB (cached)"
    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {progress.speed_mbps:.1f} MB/s"
        )
    return f"{mb_downloaded:.1f} MB at {progress.speed_mbps:.1f} MB/s"
