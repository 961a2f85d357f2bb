"""
Tcgen session - discover, load and instrument every module of a source
tree so that its calls are recorded as fixtures.

Usage::

    from tcgen import Tcgen

    tcgen = Tcgen.main("/path/to/project/src")
    ...  # exercise the code
    tcgen.stop()
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .clock import FixtureClock
from .config import TcgenConfig, load_config
from .context import RecordContext, RecordMode, get_context, set_context, set_default_mode
from .discovery import walk_sources
from .errors import ConfigError, ModuleLoadError
from .instrument import Instrumenter
from .loader import load_module

logger = logging.getLogger(__name__)


class Tcgen:
    """
    One instrumentation session over a source tree.

    Args:
        config: Resolved configuration; ``srcdir`` is required.
        clock: Clock for fixture rotation (defaults to the global one).

    Raises:
        ConfigError: If ``srcdir`` is missing or not a directory.
    """

    def __init__(self, config: TcgenConfig, clock: Optional[FixtureClock] = None):
        if config.srcdir is None:
            raise ConfigError("srcdir MUST_BE_SET")
        if not config.srcdir.is_dir():
            raise ConfigError(f"srcdir is not a directory: {config.srcdir}")

        self.config = config
        self.srcdir = config.srcdir.resolve()
        self.destdir = config.resolved_destdir()
        self.destdir.mkdir(parents=True, exist_ok=True)
        self.filelist: List[Path] = walk_sources(self.srcdir, exclude=config.exclude)
        self.instrumenter = Instrumenter(
            self.srcdir,
            self.destdir,
            call_style=config.call_style,
            clock=clock,
        )
        self.instrumented: Dict[str, List[str]] = {}
        self.failed: Dict[str, str] = {}
        self._previous_mode: Optional[RecordMode] = None
        self._started = False

    @classmethod
    def main(
        cls,
        srcdir: Union[str, Path],
        conf: Optional[Union[TcgenConfig, Dict[str, Any]]] = None,
    ) -> "Tcgen":
        """
        Build and start a session for ``srcdir``.

        When ``conf`` is omitted the configuration is looked up from
        ``srcdir`` upwards (tcgen.yaml or ``[tool.tcgen]``).
        """
        if conf is None:
            conf = load_config(start=srcdir)
        elif isinstance(conf, dict):
            conf = TcgenConfig(conf)
        config = conf.with_overrides(srcdir=str(Path(srcdir).resolve()))
        return cls(config).start()

    def start(self) -> "Tcgen":
        """Load and instrument every discovered module.

        The configured mode becomes the default of every thread and task
        that has no context yet, until ``stop()``.
        """
        self._previous_mode = set_default_mode(self.config.mode)
        self._started = True
        ctx = get_context()
        if ctx.mode != self.config.mode:
            set_context(RecordContext(mode=self.config.mode, run_id=ctx.run_id))

        for path in self.filelist:
            try:
                module = load_module(path, self.srcdir)
            except ModuleLoadError as e:
                logger.warning(f"Skipping {path}: {e}")
                self.failed[str(path)] = str(e)
                continue
            self.instrumented.update(self.instrumenter.instrument_module(path, module))

        logger.info(
            f"Instrumented {len(self.instrumented)} units from {len(self.filelist)} files "
            f"under {self.srcdir}; fixtures in {self.destdir}"
        )
        return self

    def stop(self) -> None:
        """Close every fixture file."""
        self.instrumenter.stop()
        if self._started:
            set_default_mode(self._previous_mode)
            self._started = False

    def __enter__(self) -> "Tcgen":
        return self

    def __exit__(self, *args) -> None:
        self.stop()
