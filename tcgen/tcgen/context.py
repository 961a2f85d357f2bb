"""
Record context management - contextvars-based storage for recording state.

Uses Python's contextvars.ContextVar so that the state is both thread-safe
and async-safe. Each thread and each asyncio Task gets its own context.

Environment Variables:
    TCGEN_MODE: Operating mode (off, record). Defaults to record.
    TCGEN_RUN_ID: Identifier for this recording run
"""

import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional


class RecordMode(Enum):
    """Recording operating modes."""
    OFF = "off"
    RECORD = "record"


@dataclass
class RecordContext:
    """
    Recording state for the current thread/task.

    Attributes:
        mode: Current mode (off, record)
        run_id: Identifier for this recording run
    """
    mode: RecordMode = RecordMode.RECORD
    run_id: str = ""

    @property
    def writing(self) -> int:
        """Nesting depth of fixture captures in the current thread/task."""
        return _writing_var.get()

    @property
    def is_recording(self) -> bool:
        """True when intercepted calls should produce fixtures."""
        return self.mode == RecordMode.RECORD and _writing_var.get() == 0


_context_var: ContextVar[Optional[RecordContext]] = ContextVar(
    "tcgen_context", default=None,
)

# Capture depth of the current thread/task. Copied contexts share the
# RecordContext object, so the depth cannot live on it.
_writing_var: ContextVar[int] = ContextVar("tcgen_writing", default=0)

# Mode for contexts created after a session starts, in any thread.
_default_mode: Optional[RecordMode] = None


def get_context() -> RecordContext:
    """
    Get the current record context.

    If no context has been set for the current thread/task, creates one
    from the default mode of a running session, else from environment
    variables (TCGEN_MODE, TCGEN_RUN_ID).
    """
    ctx = _context_var.get()
    if ctx is None:
        ctx = _create_context_from_env()
        _context_var.set(ctx)
    return ctx


def set_context(context: RecordContext) -> None:
    """Set the record context for the current thread/task."""
    _context_var.set(context)


def clear_context() -> None:
    """Clear the record context for the current thread/task."""
    _context_var.set(None)


def set_default_mode(mode: Optional[RecordMode]) -> Optional[RecordMode]:
    """
    Set the process-wide mode used when a thread or task has no context yet.

    Takes precedence over TCGEN_MODE. Pass None to fall back to the
    environment again. Returns the previous default.
    """
    global _default_mode
    previous = _default_mode
    _default_mode = mode
    return previous


@contextmanager
def recording_suspended() -> Iterator[RecordContext]:
    """Suspend recording in the current thread/task for the duration of the block."""
    ctx = get_context()
    token = _writing_var.set(_writing_var.get() + 1)
    try:
        yield ctx
    finally:
        _writing_var.reset(token)


def _create_context_from_env() -> RecordContext:
    """Create a RecordContext from environment variables."""
    if _default_mode is not None:
        mode = _default_mode
    else:
        mode_str = os.environ.get("TCGEN_MODE", "record").lower()
        try:
            mode = RecordMode(mode_str)
        except ValueError:
            mode = RecordMode.RECORD

    run_id = os.environ.get("TCGEN_RUN_ID", str(uuid.uuid4())[:8])
    return RecordContext(mode=mode, run_id=run_id)
