"""Detect the Ruby version a workspace targets."""
import logging
import os
import re
from typing import Optional

from .version import MinorVersion


logger = logging.getLogger(__name__)


def _read_text(path: str) -> Optional[str]:
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None


def from_ruby_version_file(workspace: str) -> Optional[MinorVersion]:
    content = _read_text(os.path.join(workspace, ".ruby-version"))
    if not content or not content.strip():
        return None
    return MinorVersion.try_parse(content.strip().splitlines()[0])


def from_tool_versions(workspace: str) -> Optional[MinorVersion]:
    content = _read_text(os.path.join(workspace, ".tool-versions"))
    if not content:
        return None
    for line in content.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "ruby":
            return MinorVersion.try_parse(parts[1])
    return None


def from_gemfile(workspace: str) -> Optional[MinorVersion]:
    content = _read_text(os.path.join(workspace, "Gemfile"))
    if not content:
        return None
    # ruby "3.0.0" / ruby '2.7.4' / ruby "~> 3.0"
    for line in content.splitlines():
        match = re.match(r'''^\s*ruby\s+["']([^"']+)["']''', line)
        if match:
            version = MinorVersion.try_parse(match.group(1).lstrip("~>=< "))
            if version:
                return version
    return None


def from_rbenv_version(workspace: str) -> Optional[MinorVersion]:
    content = _read_text(os.path.join(workspace, ".rbenv-version"))
    if not content or not content.strip():
        return None
    return MinorVersion.try_parse(content.strip().split()[0])


def from_rvmrc(workspace: str) -> Optional[MinorVersion]:
    content = _read_text(os.path.join(workspace, ".rvmrc"))
    if not content:
        return None
    for line in content.splitlines():
        if "ruby-" in line:
            candidate = line.split("ruby-", 1)[1].split()
            if candidate:
                version = MinorVersion.try_parse(candidate[0].split("@", 1)[0])
                if version:
                    return version
    return None


DETECTION_METHODS = (
    (".ruby-version", from_ruby_version_file),
    (".tool-versions", from_tool_versions),
    ("Gemfile", from_gemfile),
    (".rbenv-version", from_rbenv_version),
    (".rvmrc", from_rvmrc),
)


def detect_ruby_version(workspace: str = None) -> Optional[MinorVersion]:
    """Return the first version found in the workspace's version files."""
    workspace = workspace or os.getcwd()
    for source, detect in DETECTION_METHODS:
        version = detect(workspace)
        if version:
            logger.info("Detected Ruby %s from %s", version, source)
            return version
        logger.debug("No Ruby version found in %s", source)

    logger.warning("Could not detect Ruby version in %s", workspace)
    return None
