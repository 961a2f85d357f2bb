"""
Module loading - import a discovered source file by its dotted name.
"""

import importlib
import logging
import sys
import types
from pathlib import Path
from typing import Union

from .errors import ModuleLoadError

logger = logging.getLogger(__name__)


def module_name_for(path: Union[str, Path], srcdir: Union[str, Path]) -> str:
    """
    Dotted module name of ``path`` relative to ``srcdir``.

    ``pkg/sub/mod.py`` becomes ``pkg.sub.mod`` and ``pkg/__init__.py``
    becomes ``pkg``.
    """
    rel = Path(path).resolve().relative_to(Path(srcdir).resolve())
    parts = list(rel.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if not parts:
        raise ValueError(f"{path} does not name a module below {srcdir}")
    return ".".join(parts)


def load_module(path: Union[str, Path], srcdir: Union[str, Path]) -> types.ModuleType:
    """
    Import the module at ``path`` with ``srcdir`` as its import root.

    ``srcdir`` is put at the front of ``sys.path`` when missing so that the
    module's own absolute imports resolve. Already imported modules are
    returned from ``sys.modules``.

    Raises:
        ModuleLoadError: If the import fails for any reason.
    """
    root = str(Path(srcdir).resolve())
    try:
        name = module_name_for(path, root)
    except ValueError as e:
        raise ModuleLoadError(Path(path), "", e) from e

    if root not in sys.path:
        sys.path.insert(0, root)

    try:
        module = importlib.import_module(name)
    except Exception as e:
        raise ModuleLoadError(Path(path), name, e) from e

    logger.debug(f"Loaded {name} from {path}")
    return module
