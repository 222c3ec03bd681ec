STUB_DIR_PREFIX = "rubystubs"
STUB_SUFFIX = ".rb"
COMPRESSED_STUB_SUFFIX = ".rb.gz"
GZIP_MAGIC = b"\x1f\x8b"

# Ratio below which compressing a stub is worth it
COMPRESSION_THRESHOLD = 0.9

CONFIG_FILE_NAME = ".rbstubs"
ENV_STUBS_DIR = "RBSTUBS_STUBS_DIR"
ENV_RUBY_VERSION = "RBSTUBS_RUBY_VERSION"
ENV_DEBUG = "RBSTUBS_DEBUG"
ENV_PANEL_BOX = "RBSTUBS_PANEL_BOX"

PLACEHOLDER_VALUE = "_"
DEFAULT_INDENT = "  "

GENERATOR_NAME = "rbstubs"
