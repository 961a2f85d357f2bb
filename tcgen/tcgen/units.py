"""
Callable units - the members of a class, module or manifest that can be
intercepted.

A unit lists its static members (callables reached through the unit
itself) and its instance members (functions reached through instances),
and knows how to put a replacement back in place.
"""

import inspect
import types
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, MutableMapping, Optional

# Implicit static/class methods that belong to the type machinery.
IGNORED_STATIC_MEMBERS = (
    "__new__",
    "__init_subclass__",
    "__subclasshook__",
    "__class_getitem__",
)

CONSTRUCTOR_NAME = "__init__"

# Dunders worth recording on instances; other dunders are protocol plumbing.
INSTANCE_DUNDERS = (CONSTRUCTOR_NAME, "__call__")


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


class CallableUnit(ABC):
    """A unit whose callable members can be listed and replaced."""

    constructor_name: Optional[str] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name of the unit."""

    @property
    @abstractmethod
    def identity(self) -> str:
        """Stable identity recorded as the receiver of static calls."""

    @abstractmethod
    def list_static_members(self) -> List[str]:
        pass

    @abstractmethod
    def list_instance_members(self) -> List[str]:
        pass

    @abstractmethod
    def get_member(self, name: str, static: bool) -> Callable[..., Any]:
        """Return the plain function behind a member."""

    @abstractmethod
    def replace_member(self, name: str, replacement: Callable[..., Any], static: bool) -> None:
        pass

    def binds_receiver(self, name: str, static: bool) -> bool:
        """True when the member receives the instance or class as first argument."""
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.identity}>"


class ClassUnit(CallableUnit):
    """A class: static/class methods are static members, functions are instance members."""

    constructor_name = CONSTRUCTOR_NAME

    def __init__(self, cls: type):
        self.cls = cls

    @property
    def name(self) -> str:
        return self.cls.__name__

    @property
    def identity(self) -> str:
        return f"{self.cls.__module__}:{self.cls.__qualname__}"

    def list_static_members(self) -> List[str]:
        return [
            name for name, raw in vars(self.cls).items()
            if isinstance(raw, (staticmethod, classmethod))
            and name not in IGNORED_STATIC_MEMBERS
            and callable(raw.__func__)
        ]

    def list_instance_members(self) -> List[str]:
        return [
            name for name, raw in vars(self.cls).items()
            if inspect.isfunction(raw)
            and (not _is_dunder(name) or name in INSTANCE_DUNDERS)
        ]

    def get_member(self, name: str, static: bool) -> Callable[..., Any]:
        raw = vars(self.cls)[name]
        if isinstance(raw, (staticmethod, classmethod)):
            return raw.__func__
        return raw

    def replace_member(self, name: str, replacement: Callable[..., Any], static: bool) -> None:
        raw = vars(self.cls)[name]
        if isinstance(raw, staticmethod):
            replacement = staticmethod(replacement)
        elif isinstance(raw, classmethod):
            replacement = classmethod(replacement)
        setattr(self.cls, name, replacement)

    def binds_receiver(self, name: str, static: bool) -> bool:
        return not isinstance(vars(self.cls)[name], staticmethod)


class NamespaceUnit(CallableUnit):
    """A module or attribute namespace: its own functions are static members."""

    def __init__(self, namespace: Any):
        self.namespace = namespace

    @property
    def name(self) -> str:
        return getattr(self.namespace, "__name__", type(self.namespace).__name__)

    @property
    def identity(self) -> str:
        return self.name

    def _owns(self, value: Any) -> bool:
        if not isinstance(self.namespace, types.ModuleType):
            return True
        return getattr(value, "__module__", None) == self.namespace.__name__

    def list_static_members(self) -> List[str]:
        return [
            name for name, value in vars(self.namespace).items()
            if inspect.isfunction(value) and not _is_dunder(name) and self._owns(value)
        ]

    def list_instance_members(self) -> List[str]:
        return []

    def get_member(self, name: str, static: bool) -> Callable[..., Any]:
        return getattr(self.namespace, name)

    def replace_member(self, name: str, replacement: Callable[..., Any], static: bool) -> None:
        setattr(self.namespace, name, replacement)


class MappingUnit(CallableUnit):
    """An explicit manifest ``{name: callable}``, such as a handler registry."""

    def __init__(self, mapping: MutableMapping[str, Any], name: str = "manifest"):
        self.mapping = mapping
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def identity(self) -> str:
        return self._name

    def list_static_members(self) -> List[str]:
        return [
            key for key, value in self.mapping.items()
            if isinstance(key, str) and callable(value) and not inspect.isclass(value)
        ]

    def list_instance_members(self) -> List[str]:
        return []

    def get_member(self, name: str, static: bool) -> Callable[..., Any]:
        return self.mapping[name]

    def replace_member(self, name: str, replacement: Callable[..., Any], static: bool) -> None:
        self.mapping[name] = replacement


def as_unit(value: Any, name: Optional[str] = None) -> Optional[CallableUnit]:
    """Return the unit view of ``value``, or None when it has no members to intercept."""
    if isinstance(value, CallableUnit):
        return value
    if inspect.isclass(value):
        return ClassUnit(value)
    if isinstance(value, (types.ModuleType, types.SimpleNamespace)):
        return NamespaceUnit(value)
    if isinstance(value, dict):
        return MappingUnit(value, name or "manifest")
    return None


def classes_defined_in(module: types.ModuleType) -> Dict[str, type]:
    """Classes whose home is ``module`` (imports excluded), in definition order."""
    return {
        name: value for name, value in vars(module).items()
        if inspect.isclass(value) and value.__module__ == module.__name__
    }
