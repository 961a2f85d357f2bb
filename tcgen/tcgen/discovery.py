"""
Source discovery - list the files to instrument below a source root.
"""

import os
from pathlib import Path
from typing import Iterable, List, Union

SKIPPED_DIRS = {"__pycache__", "node_modules", "site-packages"}


def walk_sources(
    srcdir: Union[str, Path],
    ext: str = ".py",
    exclude: Iterable[str] = (),
) -> List[Path]:
    """
    Walk ``srcdir`` depth-first and collect files ending with ``ext``.

    Entries are visited in sorted order so the list is stable across runs.
    Hidden directories, ``__pycache__`` and directories named in ``exclude``
    are skipped.

    Args:
        srcdir: Root directory to walk
        ext: File suffix to collect
        exclude: Directory or file names to skip

    Returns:
        Absolute paths of the matching files
    """
    root = Path(srcdir).resolve()
    skipped = SKIPPED_DIRS | set(exclude)
    files: List[Path] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in skipped
        )
        for filename in sorted(filenames):
            if filename.endswith(ext) and filename not in skipped:
                files.append(Path(dirpath) / filename)

    return files
