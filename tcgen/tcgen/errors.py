"""
Exceptions raised by tcgen itself.

Errors raised by intercepted code are never wrapped in these: they reach
the caller unchanged.
"""

from pathlib import Path
from typing import Optional


class TcgenError(Exception):
    """Base class for tcgen errors."""


class ConfigError(TcgenError):
    """Raised when the tcgen configuration is missing or invalid."""


class ModuleLoadError(TcgenError):
    """Raised when a discovered source file cannot be imported.

    Attributes:
        path: The source file that failed to load.
        module_name: The dotted name it was imported as.
    """

    def __init__(self, path: Path, module_name: str, cause: Optional[BaseException] = None):
        self.path = path
        self.module_name = module_name
        msg = f"Cannot load {module_name} from {path}"
        if cause is not None:
            msg += f": {type(cause).__name__}: {cause}"
        super().__init__(msg)


class SnapshotError(TcgenError):
    """Raised internally when a value cannot be copied into a snapshot."""
