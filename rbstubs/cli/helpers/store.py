import os
from pathlib import Path


class StoreManager:
    HOME_STORE = Path.home() / ".rbstubs.d"

    @staticmethod
    def stubs_root() -> str:
        """Fallback stubs root: ``~/.rbstubs.d`` (holding ``rubystubsXY`` or ``stubs/rubystubsXY``)."""
        return str(StoreManager.HOME_STORE)

    @staticmethod
    def export_path(version) -> str:
        """Default export file name for ``version`` in the current directory."""
        return os.path.join(os.getcwd(), f"{version.directory_name}.json")
