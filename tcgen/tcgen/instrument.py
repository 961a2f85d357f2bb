"""
Unit instrumentation - wrap every callable member of a unit with a
recording interceptor.

Each source file gets exactly one recorder for the lifetime of the
instrumenter, shared by every unit defined in that file. Instrumentation is
not idempotent: instrumenting a unit twice wraps its members twice.
"""

import logging
import types
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .clock import FixtureClock
from .executor import CallStyle
from .interceptor import intercept
from .recorder import FixtureRecorder, RecordSink
from .units import as_unit, classes_defined_in

logger = logging.getLogger(__name__)

RecorderFactory = Callable[..., RecordSink]


class Instrumenter:
    """
    Replaces the members of loaded units with recording wrappers.

    Args:
        srcdir: Source root; recorders are keyed by paths relative to it.
        destdir: Root directory for fixture files.
        recorder_factory: Builds a recorder as
            ``factory(logdir, source_path, base_name, clock=...)``.
        call_style: Calling convention used for every wrapped member.
        clock: Clock handed to the recorders (defaults to the global one).
    """

    def __init__(
        self,
        srcdir: Union[str, Path],
        destdir: Union[str, Path],
        recorder_factory: RecorderFactory = FixtureRecorder,
        call_style: CallStyle = CallStyle.AUTO,
        clock: Optional[FixtureClock] = None,
    ):
        self.srcdir = Path(srcdir).resolve()
        self.destdir = Path(destdir)
        self.recorder_factory = recorder_factory
        self.call_style = call_style
        self.clock = clock
        self._recorders: Dict[str, RecordSink] = {}

    @property
    def recorders(self) -> Dict[str, RecordSink]:
        """Recorders by relative source path."""
        return dict(self._recorders)

    def relative_path(self, source_path: Union[str, Path]) -> Path:
        path = Path(source_path).resolve()
        try:
            return path.relative_to(self.srcdir)
        except ValueError:
            return Path(path.name)

    def recorder_for(self, source_path: Union[str, Path]) -> RecordSink:
        """Return the recorder of ``source_path``, creating it on first use."""
        rel = self.relative_path(source_path)
        key = rel.as_posix()
        recorder = self._recorders.get(key)
        if recorder is None:
            label = "_".join(part for part in (rel.parent.name, rel.stem) if part)
            kwargs: Dict[str, Any] = {}
            if self.clock is not None:
                kwargs["clock"] = self.clock
            recorder = self.recorder_factory(self.destdir / rel.parent, key, label, **kwargs)
            self._recorders[key] = recorder
        return recorder

    def instrument(self, source_path: Union[str, Path], unit: Any) -> List[str]:
        """
        Wrap the static and instance members of ``unit``.

        Args:
            source_path: File the unit was loaded from.
            unit: A class, module, namespace or ``{name: callable}`` manifest.

        Returns:
            Names of the wrapped members, static members first. Empty when
            ``unit`` has nothing to intercept.
        """
        view = as_unit(unit)
        if view is None:
            logger.debug(f"Skipping {type(unit).__name__} from {source_path}: not a unit")
            return []

        recorder = self.recorder_for(source_path)
        wrapped: List[str] = []

        for name in view.list_static_members():
            original = view.get_member(name, static=True)
            view.replace_member(name, intercept(
                recorder,
                original,
                name,
                receiver=view.identity,
                bound=view.binds_receiver(name, static=True),
                call_style=self.call_style,
            ), static=True)
            wrapped.append(name)

        for name in view.list_instance_members():
            construct = name == view.constructor_name
            original = view.get_member(name, static=False)
            view.replace_member(name, intercept(
                recorder,
                original,
                name,
                receiver=view.identity if construct else None,
                construct=construct,
                bound=True,
                call_style=self.call_style,
            ), static=False)
            wrapped.append(name)

        logger.debug(f"Instrumented {view!r}: {', '.join(wrapped) or 'no members'}")
        return wrapped

    def instrument_module(self, source_path: Union[str, Path], module: types.ModuleType) -> Dict[str, List[str]]:
        """Instrument a module's own functions and every class defined in it."""
        result: Dict[str, List[str]] = {}
        members = self.instrument(source_path, module)
        if members:
            result[module.__name__] = members
        for name, cls in classes_defined_in(module).items():
            members = self.instrument(source_path, cls)
            if members:
                result[f"{module.__name__}.{name}"] = members
        return result

    def stop(self) -> None:
        """Close every recorder, terminating their fixture files."""
        for recorder in self._recorders.values():
            recorder.close()
