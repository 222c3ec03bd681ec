"""Locate, read and parse stub directories (``rubystubsXY``)."""
import gzip
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from rbstubs.utils.constants import (
    COMPRESSED_STUB_SUFFIX, COMPRESSION_THRESHOLD, GZIP_MAGIC, STUB_SUFFIX,
)
from rbstubs.utils.exceptions import LoaderError, StubSyntaxError, StubsNotFoundError
from rbstubs.utils.version import DEFAULT_RUBY_VERSION, MinorVersion
from .model import StubFile


logger = logging.getLogger(__name__)


# ============================================================================
# Compression
# ============================================================================

def is_gzip_compressed(data: bytes) -> bool:
    return len(data) >= 2 and data[:2] == GZIP_MAGIC


def compress_stub_text(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


def decompress_stub_data(data: bytes) -> str:
    try:
        return gzip.decompress(data).decode("utf-8")
    except (OSError, EOFError) as e:
        raise LoaderError(f"Failed to decompress stub data: {e}") from e


def estimate_compression_ratio(text: str) -> float:
    if not text:
        return 1.0
    return len(compress_stub_text(text)) / len(text.encode("utf-8"))


def compress_if_beneficial(text: str, threshold: float = COMPRESSION_THRESHOLD) -> Tuple[bytes, bool]:
    """Return ``(data, compressed)``; compress only when the ratio beats ``threshold``."""
    if estimate_compression_ratio(text) < threshold:
        return compress_stub_text(text), True
    return text.encode("utf-8"), False


def read_stub_text(path: str) -> str:
    """Read a stub file as UTF-8, decompressing gzip data when present."""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise LoaderError(f"Cannot read {path}: {e}") from e
    if is_gzip_compressed(data):
        return decompress_stub_data(data)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise LoaderError(f"{path} is not valid UTF-8: {e}") from e


def write_stub_bytes(path: str, data: bytes):
    """Write ``data`` through a ``.tmp`` sibling so a failed write leaves ``path`` untouched.

    Raises:
        LoaderError: If the file cannot be written.
    """
    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise LoaderError(f"Cannot write {path}: {e}") from e


# ============================================================================
# Discovery
# ============================================================================

def _candidates(root: str, version: MinorVersion) -> List[str]:
    name = version.directory_name
    return [os.path.join(root, name), os.path.join(root, "stubs", name)]


def _existing(root: str, version: MinorVersion) -> Optional[str]:
    for candidate in _candidates(root, version):
        if os.path.isdir(candidate):
            return candidate
    return None


def find_stubs_directory(root: str, version: MinorVersion) -> str:
    """Find the stub directory for ``version`` under ``root``.

    Falls back to lower versions present on disk, then to the default version.

    Raises:
        StubsNotFoundError: If no usable directory exists.
    """
    found = _existing(root, version)
    if found:
        logger.debug("Found stubs directory: %s", found)
        return found

    lower = [v for v in available_versions(root) if v < version]
    if lower:
        fallback = max(lower)
        logger.info("Stubs for Ruby %s not found, using Ruby %s", version, fallback)
        return _existing(root, fallback)

    if version != DEFAULT_RUBY_VERSION:
        found = _existing(root, DEFAULT_RUBY_VERSION)
        if found:
            logger.info("Stubs for Ruby %s not found, using Ruby %s", version, DEFAULT_RUBY_VERSION)
            return found

    raise StubsNotFoundError(f"No stubs for Ruby {version} under {root}")


def available_versions(root: str) -> List[MinorVersion]:
    """Versions that have a stub directory under ``root`` (or ``root/stubs``), ascending."""
    versions = set()
    for base in (root, os.path.join(root, "stubs")):
        if not os.path.isdir(base):
            continue
        for entry in os.listdir(base):
            version = MinorVersion.from_directory_name(entry)
            if version and os.path.isdir(os.path.join(base, entry)):
                versions.add(version)
    return sorted(versions)


def stub_files(directory: str) -> List[str]:
    """``*.rb`` and ``*.rb.gz`` files directly inside ``directory``, sorted by name."""
    if not os.path.isdir(directory):
        raise StubsNotFoundError(f"Not a directory: {directory}")
    out = []
    for entry in sorted(os.listdir(directory)):
        path = os.path.join(directory, entry)
        if os.path.isfile(path) and (entry.endswith(STUB_SUFFIX) or entry.endswith(COMPRESSED_STUB_SUFFIX)):
            out.append(path)
    return out


# ============================================================================
# Loading
# ============================================================================

@dataclass
class StubSet:
    """All stub files parsed from one directory."""
    directory: str
    version: Optional[MinorVersion] = None
    files: List[StubFile] = field(default_factory=list)
    errors: List[StubSyntaxError] = field(default_factory=list)


class StubLoader:
    def __init__(self, directory: str):
        self.directory = directory

    @classmethod
    def for_version(cls, root: str, version: MinorVersion) -> "StubLoader":
        return cls(find_stubs_directory(root, version))

    def load(self, strict: bool = False) -> StubSet:
        """Parse every stub file in the directory.

        Parse errors are collected on the result; with ``strict`` the first
        one is raised instead.
        """
        from .parser import parse_file

        version = MinorVersion.from_directory_name(os.path.basename(os.path.normpath(self.directory)))
        result = StubSet(directory=self.directory, version=version)
        for path in stub_files(self.directory):
            try:
                result.files.append(parse_file(path))
            except StubSyntaxError as e:
                if strict:
                    raise
                logger.warning("Skipping %s", e)
                result.errors.append(e)
            except LoaderError as e:
                if strict:
                    raise
                logger.warning("Skipping %s: %s", path, e.message)
                result.errors.append(StubSyntaxError(e.message, path))
        logger.debug("Loaded %d stub files from %s", len(result.files), self.directory)
        return result
