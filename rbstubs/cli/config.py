"""
Configuration management for rbstubs CLI.

Handles:
- .rbstubs INI file reading/writing
- Stubs directory and Ruby version resolution
  (global option -> environment -> .rbstubs -> workspace detection -> default)
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Optional, Dict, Any, Tuple

from rbstubs.utils.constants import CONFIG_FILE_NAME, ENV_STUBS_DIR, ENV_RUBY_VERSION
from rbstubs.utils.detector import detect_ruby_version
from rbstubs.utils.version import DEFAULT_RUBY_VERSION, MinorVersion
from .helpers.store import StoreManager


logger = logging.getLogger(__name__)


# ============================================================================
# Runtime State
# ============================================================================

@dataclass
class RuntimeState:
    """Settings resolved for the current invocation, plus the loaded stub set and index."""
    stubs_root: str = ""
    stubs_root_source: str = ""
    ruby_version: Optional[MinorVersion] = None
    ruby_version_source: str = ""
    config_path: Optional[str] = None
    resolved: bool = False
    stub_set: Any = None
    index: Any = None

    def reset(self):
        for field in fields(self):
            setattr(self, field.name, field.default)


STATE = RuntimeState()


# ============================================================================
# Global Options (set by CLI callback)
# ============================================================================

class GlobalOptions:
    """Values of --stubs-dir, --ruby and --verbose for this process."""

    _instance = None
    _FIELDS = ('stubs_dir', 'ruby_version', 'verbose')

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.clear()
        return cls._instance

    @property
    def stubs_dir(self) -> Optional[str]:
        return self._values['stubs_dir']

    @property
    def ruby_version(self) -> Optional[str]:
        return self._values['ruby_version']

    @property
    def verbose(self) -> bool:
        return self._values['verbose']

    def set(self, stubs_dir: str = None, ruby_version: str = None, verbose: bool = False):
        self._values = dict(zip(self._FIELDS, (stubs_dir, ruby_version, verbose)))

    def get(self) -> Dict[str, Any]:
        return dict(self._values)

    def clear(self):
        self.set()


GLOBAL_OPTIONS = GlobalOptions()


# ============================================================================
# Config File Management
# ============================================================================

class ConfigManager:
    """
    Manages .rbstubs configuration file (INI format).

    File format:
        [DEFAULT]
        STUBS_DIR=/opt/rubystubs
        RUBY_VERSION=3.3
    """

    KEYS = ('STUBS_DIR', 'RUBY_VERSION')

    @staticmethod
    def find_config_file(start: str = None) -> Optional[str]:
        """Find .rbstubs file by searching up from ``start`` (default: current directory).

        Symlinked directories are resolved before walking up.
        """
        current = os.path.realpath(start or os.getcwd())

        visited = set()
        while current not in visited:
            visited.add(current)
            config_path = os.path.join(current, CONFIG_FILE_NAME)
            if os.path.isfile(config_path):
                return config_path
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent
        return None

    @staticmethod
    def read(config_path: str) -> dict:
        """
        Read INI-style .rbstubs file.

        Returns:
            dict with lower-case keys, e.g. ``{'stubs_dir': '...', 'ruby_version': '3.3'}``.
            A relative STUBS_DIR is resolved against the file's directory.
        """
        result = {}

        if not config_path or not os.path.exists(config_path):
            return result

        with open(config_path, 'r', encoding='utf-8') as f:
            content = f.read()

        current_section = None
        for line in content.splitlines():
            line = line.strip()

            # blank lines, ; and # comments
            if not line or line.startswith(('#', ';')):
                continue

            if line.startswith('[') and line.endswith(']'):
                current_section = line[1:-1].strip().upper()
                continue

            if '=' in line and current_section == 'DEFAULT':
                key, value = line.split('=', 1)
                key = key.strip().upper()
                value = value.strip()
                if key in ConfigManager.KEYS and value:
                    result[key.lower()] = value
                else:
                    logger.debug("Ignoring %s in %s", key, config_path)

        stubs_dir = result.get('stubs_dir')
        if stubs_dir:
            stubs_dir = os.path.expanduser(stubs_dir)
            if not os.path.isabs(stubs_dir):
                stubs_dir = os.path.join(os.path.dirname(os.path.abspath(config_path)), stubs_dir)
            result['stubs_dir'] = os.path.normpath(stubs_dir)
        return result

    @staticmethod
    def write(config_path: str, stubs_dir: str = None, ruby_version: str = None):
        """Write INI-style .rbstubs file."""
        lines = ['[DEFAULT]']
        if stubs_dir:
            lines.append(f'STUBS_DIR={stubs_dir}')
        if ruby_version:
            lines.append(f'RUBY_VERSION={ruby_version}')
        lines.append('')

        with open(config_path, 'w', encoding='utf-8') as f:
            f.write('\n'.join(lines))


# ============================================================================
# Settings Resolution
# ============================================================================

class SettingsResolver:
    """
    Resolves the stubs root and Ruby version based on priority:
    1. Global option (--stubs-dir / --ruby)
    2. Environment (RBSTUBS_STUBS_DIR / RBSTUBS_RUBY_VERSION)
    3. .rbstubs file
    4. Workspace detection (Ruby version only) or the home store
    5. Default
    """

    @staticmethod
    def resolve_stubs_root(global_dir: str = None, config: dict = None) -> Tuple[str, str]:
        if global_dir:
            return os.path.abspath(os.path.expanduser(global_dir)), 'global'
        env_dir = os.environ.get(ENV_STUBS_DIR)
        if env_dir:
            return os.path.abspath(os.path.expanduser(env_dir)), 'environment'
        if config and config.get('stubs_dir'):
            return config['stubs_dir'], 'config'
        return StoreManager.stubs_root(), 'default'

    @staticmethod
    def resolve_ruby_version(global_version: str = None, config: dict = None,
                             workspace: str = None) -> Tuple[MinorVersion, str]:
        """
        Raises:
            VersionParseError: If an explicitly configured version is malformed.
        """
        if global_version:
            return MinorVersion.parse(global_version), 'global'
        env_version = os.environ.get(ENV_RUBY_VERSION)
        if env_version:
            return MinorVersion.parse(env_version), 'environment'
        if config and config.get('ruby_version'):
            return MinorVersion.parse(config['ruby_version']), 'config'
        detected = detect_ruby_version(workspace or os.getcwd())
        if detected:
            return detected, 'detected'
        return DEFAULT_RUBY_VERSION, 'default'

    @staticmethod
    def resolve(state: RuntimeState = None) -> RuntimeState:
        state = state or STATE
        options = GLOBAL_OPTIONS.get()

        state.config_path = ConfigManager.find_config_file()
        config = ConfigManager.read(state.config_path) if state.config_path else {}
        workspace = os.path.dirname(state.config_path) if state.config_path else None

        state.stubs_root, state.stubs_root_source = SettingsResolver.resolve_stubs_root(
            options['stubs_dir'], config)
        state.ruby_version, state.ruby_version_source = SettingsResolver.resolve_ruby_version(
            options['ruby_version'], config, workspace)
        state.resolved = True

        logger.debug("Stubs root %s (%s), Ruby %s (%s)",
                     state.stubs_root, state.stubs_root_source,
                     state.ruby_version, state.ruby_version_source)
        return state


# ============================================================================
# Entry points used by the commands
# ============================================================================

def _resolve_settings() -> RuntimeState:
    """Resolve STATE on first use within an invocation."""
    if not STATE.resolved:
        SettingsResolver.resolve(STATE)
    return STATE


def _set_global_options(stubs_dir: str = None, ruby_version: str = None, verbose: bool = False):
    GLOBAL_OPTIONS.set(stubs_dir, ruby_version, verbose)
