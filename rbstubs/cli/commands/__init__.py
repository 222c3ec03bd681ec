from . import inspect
from . import query
from . import utility

from ..workspace import _load_stub_set, _load_index, _stubs_directory, _fail
from ..helpers import OutputHelper, CONSOLE_WIDTH

__all__ = [
    '_load_stub_set',
    '_load_index',
    '_stubs_directory',
    '_fail',
    'OutputHelper',
    'CONSOLE_WIDTH',
]
