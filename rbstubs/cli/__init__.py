from .config import (
    RuntimeState, STATE, GLOBAL_OPTIONS,
    ConfigManager, SettingsResolver,
)
from .app import app, main

__all__ = [
    'RuntimeState', 'STATE', 'GLOBAL_OPTIONS',
    'ConfigManager', 'SettingsResolver',
    'app', 'main'
]
