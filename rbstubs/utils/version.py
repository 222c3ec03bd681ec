import re
from functools import total_ordering
from typing import Optional

from .constants import STUB_DIR_PREFIX
from .exceptions import VersionParseError


_VERSION_PREFIX = re.compile(r'^\s*(?:ruby[-\s]?)?v?', re.IGNORECASE)
_DIRECTORY_NAME = re.compile(rf'^{STUB_DIR_PREFIX}(\d)(\d+)$')


@total_ordering
class MinorVersion:
    """A Ruby minor version (e.g. 2.7, 3.3). Patch levels are ignored."""

    __slots__ = ("major", "minor")

    def __init__(self, major: int, minor: int):
        self.major = int(major)
        self.minor = int(minor)

    @classmethod
    def parse(cls, text: str) -> "MinorVersion":
        """Parse "2.7.6", "3.0", "ruby-3.1.2" or "3.3.0-preview1".

        Raises:
            VersionParseError: If the text has no numeric major and minor part.
        """
        if text is None:
            raise VersionParseError("Invalid version format: None")
        raw = _VERSION_PREFIX.sub("", str(text).strip())
        # Drop pre-release/platform suffixes ("3.3.0-preview1", "3.2.2p53")
        raw = re.split(r'[-+\s]', raw, maxsplit=1)[0]
        parts = raw.split(".")
        if len(parts) < 2:
            raise VersionParseError(f"Invalid version format: {text}")

        major_raw, minor_raw = parts[0], re.match(r'\d*', parts[1]).group(0)
        if not major_raw.isdigit():
            raise VersionParseError(f"Invalid major version: {parts[0]}")
        if not minor_raw:
            raise VersionParseError(f"Invalid minor version: {parts[1]}")
        return cls(int(major_raw), int(minor_raw))

    @classmethod
    def try_parse(cls, text: str) -> Optional["MinorVersion"]:
        try:
            return cls.parse(text)
        except VersionParseError:
            return None

    @classmethod
    def from_directory_name(cls, name: str) -> Optional["MinorVersion"]:
        match = _DIRECTORY_NAME.match(name)
        if not match:
            return None
        return cls(int(match.group(1)), int(match.group(2)))

    @property
    def directory_name(self) -> str:
        return f"{STUB_DIR_PREFIX}{self.major}{self.minor}"

    def is_supported(self) -> bool:
        return self in SUPPORTED_RUBY_VERSIONS

    def closest_supported(self) -> Optional["MinorVersion"]:
        """Exact match if supported, else the highest supported version below this one."""
        if self.is_supported():
            return self
        lower = [v for v in SUPPORTED_RUBY_VERSIONS if v < self]
        return max(lower) if lower else None

    def as_tuple(self) -> tuple:
        return (self.major, self.minor)

    def __eq__(self, other):
        if not isinstance(other, MinorVersion):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __lt__(self, other):
        if not isinstance(other, MinorVersion):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __hash__(self):
        return hash(self.as_tuple())

    def __str__(self):
        return f"{self.major}.{self.minor}"

    def __repr__(self):
        return f"MinorVersion({self.major}, {self.minor})"


SUPPORTED_RUBY_VERSIONS = tuple(
    MinorVersion(major, minor) for major, minor in (
        (1, 8), (1, 9),
        (2, 0), (2, 1), (2, 2), (2, 3), (2, 4), (2, 5), (2, 6), (2, 7),
        (3, 0), (3, 1), (3, 2), (3, 3), (3, 4),
    )
)

DEFAULT_RUBY_VERSION = MinorVersion(3, 0)
