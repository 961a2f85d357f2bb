"""
tcgen - record real calls as regression test fixtures

This package instruments the classes and functions of a source tree so that:
- Every call is recorded with its receiver, arguments and outcome
- Sync, callback-last and awaitable calling conventions are recorded alike
- Fixtures are appended to one JSON file per source file and day
- The instrumented program observes exactly what it would without tcgen
"""

from tcgen.context import (
    RecordContext,
    RecordMode,
    get_context,
    set_context,
    clear_context,
    recording_suspended,
    set_default_mode,
)
from tcgen.clock import FixtureClock, fixture_clock
from tcgen.errors import TcgenError, ConfigError, ModuleLoadError, SnapshotError
from tcgen.snapshot import Snapshot, snapshot, try_snapshot
from tcgen.executor import CallStyle, Executor
from tcgen.recorder import RecordSink, FixtureRecorder
from tcgen.interceptor import intercept, is_intercepted
from tcgen.units import CallableUnit, ClassUnit, NamespaceUnit, MappingUnit, as_unit
from tcgen.instrument import Instrumenter
from tcgen.discovery import walk_sources
from tcgen.loader import load_module, module_name_for
from tcgen.config import TcgenConfig, load_config
from tcgen.session import Tcgen

__version__ = "0.1.0"

__all__ = [
    # Context
    "RecordContext",
    "RecordMode",
    "get_context",
    "set_context",
    "clear_context",
    "recording_suspended",
    "set_default_mode",
    # Clock
    "FixtureClock",
    "fixture_clock",
    # Errors
    "TcgenError",
    "ConfigError",
    "ModuleLoadError",
    "SnapshotError",
    # Snapshot
    "Snapshot",
    "snapshot",
    "try_snapshot",
    # Executor
    "CallStyle",
    "Executor",
    # Recorder
    "RecordSink",
    "FixtureRecorder",
    # Interception
    "intercept",
    "is_intercepted",
    "CallableUnit",
    "ClassUnit",
    "NamespaceUnit",
    "MappingUnit",
    "as_unit",
    "Instrumenter",
    # Discovery / loading
    "walk_sources",
    "load_module",
    "module_name_for",
    # Config / session
    "TcgenConfig",
    "load_config",
    "Tcgen",
]
