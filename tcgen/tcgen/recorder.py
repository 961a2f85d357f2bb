"""
FixtureRecorder - append-only, day-rotating fixture files.

One recorder serves one source file. Every settled invocation becomes one
record in the file of the current calendar day:

    {"type":"unit","require":"models/user.py","label":"models_user","tests":[
    {
      "require": {...receiver...},
      "request": {"payload": [...], "construct": false, "method": "add"},
      "output": {"output": 5}
    },
    ...
    ]}

The footer is written when the day changes or the recorder is closed, so a
closed file always parses as a single JSON document. A file left open by a
killed process lacks the footer.

Recording is best effort: I/O and serialization errors are logged and the
record is dropped, they never reach the instrumented program.
"""

import atexit
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Dict, IO, List, Optional, Union

from .clock import FixtureClock, fixture_clock

logger = logging.getLogger(__name__)

FOOTER = "\n]}\n"


class RecordSink(ABC):
    """
    Abstract base class for invocation sinks.

    A sink receives one call per settled invocation and persists it.
    """

    @abstractmethod
    def log(
        self,
        method: str,
        construct: bool,
        receiver: Any,
        payload: List[Any],
        output: Dict[str, Any],
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record one invocation.

        Args:
            method: Name of the intercepted member
            construct: Whether the call constructed an instance
            receiver: Snapshot of the receiver (or unit identity)
            payload: Snapshots of the positional arguments
            output: ``{"output": ...}`` or ``{"error": ...}``
            kwargs: Snapshots of the keyword arguments, if any
        """
        pass

    @abstractmethod
    def flush(self) -> None:
        """Force buffered data to the backing store."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Terminate the open stream and release resources."""
        pass

    def __enter__(self) -> "RecordSink":
        return self

    def __exit__(self, *args) -> None:
        self.close()


class FixtureRecorder(RecordSink):
    """
    Writes the fixtures of one source file, rotating daily.

    Args:
        logdir: Directory holding this source file's fixture files
        source_path: Source path relative to the source root (header ``require``)
        base_name: Base of the file names, followed by the date
        clock: Clock used to detect day changes (defaults to ``fixture_clock``)
    """

    def __init__(
        self,
        logdir: Union[str, Path],
        source_path: str = "",
        base_name: str = "",
        clock: Optional[FixtureClock] = None,
    ):
        self.logdir = Path(logdir)
        self.source_path = source_path
        self.base_name = base_name
        self.clock = clock or fixture_clock
        self._lock = threading.RLock()
        self._stream: Optional[IO[str]] = None
        self._day: Optional[date] = None
        self._path: Optional[Path] = None
        self._records_in_stream = 0
        self.records_written = 0
        self.records_dropped = 0

        try:
            self.logdir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create fixture directory {self.logdir}: {e}")

        atexit.register(self.close)

    # -- naming -------------------------------------------------------------

    def file_name_for(self, day: date, sequence: int = 0) -> str:
        """File name for ``day``; ``sequence`` > 0 numbers same-day siblings."""
        stamp = day.strftime("%b_%d_%Y")
        stem = f"{self.base_name}_{stamp}" if self.base_name else stamp
        if sequence:
            stem = f"{stem}.{sequence}"
        return f"{stem}.json"

    @property
    def current_path(self) -> Optional[Path]:
        """Path of the open stream, if any."""
        return self._path

    # -- stream lifecycle ---------------------------------------------------

    def ensure_current(self) -> Path:
        """
        Make sure the open stream belongs to today.

        Closes the previous day's stream (writing the footer) and opens a new
        one (writing the header) when the day has changed or nothing is open.
        """
        with self._lock:
            day = self.clock.today()
            if self._stream is None or day != self._day:
                self._close_stream()
                self._open_stream(day)
            return self._path

    def _open_stream(self, day: date) -> None:
        sequence = 0
        path = self.logdir / self.file_name_for(day)
        while path.exists() and path.stat().st_size > 0:
            sequence += 1
            path = self.logdir / self.file_name_for(day, sequence)

        stream = open(path, "a", encoding="utf-8")
        header = (
            '{"type":"unit","require":%s,"label":%s,"tests":['
            % (json.dumps(self.source_path), json.dumps(self.base_name))
        )
        stream.write(header)
        stream.flush()

        self._stream = stream
        self._day = day
        self._path = path
        self._records_in_stream = 0
        logger.debug(f"Opened fixture stream {path}")

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.write(FOOTER)
        finally:
            stream.close()
        logger.debug(f"Closed fixture stream {self._path} ({self._records_in_stream} records)")

    # -- RecordSink ---------------------------------------------------------

    def log(
        self,
        method: str,
        construct: bool,
        receiver: Any,
        payload: List[Any],
        output: Dict[str, Any],
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        request: Dict[str, Any] = {
            "payload": payload,
            "construct": construct,
            "method": method,
        }
        if kwargs:
            request["kwargs"] = kwargs
        record = {"require": receiver, "request": request, "output": output}

        try:
            text = json.dumps(record, indent=2, default=str, allow_nan=False)
        except (TypeError, ValueError) as e:
            self.records_dropped += 1
            logger.warning(f"Dropped fixture for {self.source_path}:{method}: {e}")
            return

        with self._lock:
            try:
                self.ensure_current()
                separator = "," if self._records_in_stream else ""
                self._stream.write(f"{separator}\n{text}")
                self._stream.flush()
            except OSError as e:
                self.records_dropped += 1
                logger.error(f"Failed to write fixture for {self.source_path}:{method}: {e}")
                return
            self._records_in_stream += 1
            self.records_written += 1

    def flush(self) -> None:
        with self._lock:
            if self._stream is not None:
                self._stream.flush()

    def close(self) -> None:
        """Write the footer and close the stream. Safe to call repeatedly."""
        with self._lock:
            try:
                self._close_stream()
            except OSError as e:
                logger.error(f"Failed to close fixture stream {self._path}: {e}")

    stop = close
