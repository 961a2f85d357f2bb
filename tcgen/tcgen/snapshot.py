"""
Value snapshots - best-effort structural copies of call inputs and outputs.

A snapshot is a JSON-compatible copy of a value taken before the call can
mutate it. Copying is fallible: ``try_snapshot`` reports failure explicitly
and ``snapshot`` substitutes a sentinel (``None`` by default).

Copying never runs user code other than ``str()`` on exceptions: instances
are read through ``vars()``/``__slots__``, never through properties,
``__repr__`` or ``to_dict``.
"""

import enum
import inspect
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from .errors import SnapshotError

MAX_DEPTH = 64

_SKIP = object()


@dataclass(frozen=True)
class Snapshot:
    """Outcome of a copy attempt: ``ok`` with ``value``, or ``error``."""
    ok: bool
    value: Any = None
    error: Optional[SnapshotError] = None


def try_snapshot(value: Any) -> Snapshot:
    """Copy ``value``; never raises."""
    try:
        return Snapshot(ok=True, value=_copy(value, 0, set(), top=True))
    except SnapshotError as e:
        return Snapshot(ok=False, error=e)
    except Exception as e:
        return Snapshot(ok=False, error=SnapshotError(f"{type(e).__name__}: {e}"))


def snapshot(value: Any, default: Any = None) -> Any:
    """Copy ``value``, or return ``default`` when it cannot be copied."""
    result = try_snapshot(value)
    return result.value if result.ok else default


def snapshot_exception(exc: BaseException) -> Dict[str, Any]:
    """Describe an exception as ``{"type", "message", "args"}``."""
    return {
        "type": type(exc).__name__,
        "message": str(exc),
        "args": [snapshot(arg) for arg in exc.args],
    }


def _is_opaque(value: Any) -> bool:
    """Functions, methods, classes and modules are dropped the way JSON drops functions.

    Instances of classes that define ``__call__`` are data and are copied.
    """
    return inspect.isroutine(value) or inspect.isclass(value) or inspect.ismodule(value)


def _copy(value: Any, depth: int, seen: Set[int], top: bool = False) -> Any:
    if depth > MAX_DEPTH:
        raise SnapshotError(f"structure deeper than {MAX_DEPTH} levels")

    if value is None or isinstance(value, (bool, int, str)):
        if isinstance(value, enum.Enum):
            return _copy(value.value, depth + 1, seen)
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, enum.Enum):
        return _copy(value.value, depth + 1, seen)
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, BaseException):
        return snapshot_exception(value)

    if top and _is_opaque(value):
        raise SnapshotError(f"{type(value).__name__} is not copyable")

    marker = id(value)
    if marker in seen:
        raise SnapshotError("circular reference")
    seen.add(marker)
    try:
        if isinstance(value, dict):
            return _copy_mapping(value, depth, seen)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [_copy_item(item, depth, seen) for item in value]
        return _copy_mapping(_instance_fields(value), depth, seen, public_only=True)
    finally:
        seen.discard(marker)


def _copy_mapping(
    mapping: Dict[Any, Any], depth: int, seen: Set[int], public_only: bool = False,
) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, item in mapping.items():
        name = key if isinstance(key, str) else str(key)
        if public_only and name.startswith("_"):
            continue
        if _is_opaque(item):
            continue
        result[name] = _copy(item, depth + 1, seen)
    return result


def _copy_item(item: Any, depth: int, seen: Set[int]) -> Any:
    if _is_opaque(item):
        return None
    return _copy(item, depth + 1, seen)


def _instance_fields(value: Any) -> Dict[str, Any]:
    """Own attributes of an arbitrary instance."""
    fields: Dict[str, Any] = {}
    try:
        fields.update(vars(value))
    except TypeError:
        pass

    slots: List[str] = []
    for klass in type(value).__mro__:
        declared = klass.__dict__.get("__slots__", ())
        if isinstance(declared, str):
            declared = (declared,)
        slots.extend(declared)
    for name in slots:
        if name in ("__dict__", "__weakref__") or name in fields:
            continue
        try:
            fields[name] = object.__getattribute__(value, name)
        except AttributeError:
            continue

    if not fields and not hasattr(value, "__dict__") and not slots:
        raise SnapshotError(f"{type(value).__name__} is not copyable")
    return fields
