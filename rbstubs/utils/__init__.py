from .version import MinorVersion, SUPPORTED_RUBY_VERSIONS, DEFAULT_RUBY_VERSION
from .detector import detect_ruby_version

__all__ = [
    'MinorVersion', 'SUPPORTED_RUBY_VERSIONS', 'DEFAULT_RUBY_VERSION',
    'detect_ruby_version',
]
