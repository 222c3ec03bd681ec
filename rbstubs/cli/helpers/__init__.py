"""
Console helpers shared by the rbstubs commands.
"""
import os

from rich import box

from rbstubs.utils.constants import ENV_PANEL_BOX

CONSOLE_WIDTH = 100

# RBSTUBS_PANEL_BOX=horizontals draws panels with top and bottom rules only
_PANEL_BOXES = {
    "rounded": box.ROUNDED,
    "horizontals": box.HORIZONTALS,
    "ascii": box.ASCII,
}


def get_panel_box():
    name = os.environ.get(ENV_PANEL_BOX, "rounded").strip().lower()
    return _PANEL_BOXES.get(name, box.ROUNDED)


from .output import OutputHelper
from .store import StoreManager

__all__ = [
    'CONSOLE_WIDTH', 'get_panel_box',
    'OutputHelper',
    'StoreManager',
]
