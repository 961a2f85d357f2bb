"""
Configuration loader for tcgen.yaml files and ``[tool.tcgen]`` tables.
"""

import json
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .context import RecordMode
from .errors import ConfigError
from .executor import CallStyle

CONFIG_FILENAMES = ("tcgen.yaml", "tcgen.yml")
PACKAGE_NAME = "tcgen"


class TcgenConfig:
    """Configuration loaded from tcgen.yaml or pyproject.toml.

    Relative paths are resolved against ``base_dir``, the directory of the
    file the configuration came from.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, base_dir: Optional[Path] = None):
        self._config = dict(config_dict or {})
        self.base_dir = base_dir

    def _path(self, key: str) -> Optional[Path]:
        value = self._config.get(key)
        if not value:
            return None
        path = Path(os.path.expanduser(str(value)))
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    @property
    def srcdir(self) -> Optional[Path]:
        """The root directory to instrument."""
        return self._path("srcdir")

    @property
    def destdir(self) -> Optional[Path]:
        """The directory fixtures are written to, if configured."""
        return self._path("destdir")

    def resolved_destdir(self) -> Path:
        """``destdir``, or ``<tempdir>/tcgen/<project name>`` by default."""
        if self.destdir is not None:
            return self.destdir
        srcdir = self.srcdir
        if srcdir is None:
            raise ConfigError("srcdir is not configured")
        resolved = srcdir.resolve()
        project = resolved.parent.name or resolved.name
        return Path(tempfile.gettempdir()) / PACKAGE_NAME / project

    @property
    def exclude(self) -> List[str]:
        """Directory or file names left out of discovery."""
        value = self._config.get("exclude", [])
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    @property
    def call_style(self) -> CallStyle:
        value = str(self._config.get("call_style", CallStyle.AUTO.value)).lower()
        try:
            return CallStyle(value)
        except ValueError:
            choices = ", ".join(style.value for style in CallStyle)
            raise ConfigError(f"Invalid call_style {value!r} (expected one of: {choices})")

    @property
    def mode(self) -> RecordMode:
        raw = self._config.get("mode", RecordMode.RECORD.value)
        # YAML 1.1 reads a bare `off` as False
        if raw is False:
            return RecordMode.OFF
        value = str(raw).lower()
        try:
            return RecordMode(value)
        except ValueError:
            raise ConfigError(f"Invalid mode {value!r} (expected off or record)")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key"""
        return self._config.get(key, default)

    def with_overrides(self, **overrides: Any) -> "TcgenConfig":
        """Copy of this config with the non-None ``overrides`` applied."""
        merged = dict(self._config)
        merged.update({key: value for key, value in overrides.items() if value is not None})
        return TcgenConfig(merged, self.base_dir)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    start: Optional[Union[str, Path]] = None,
) -> TcgenConfig:
    """
    Load the tcgen configuration.

    Search order:
    1. Provided config_path
    2. TCGEN_CONFIG environment variable
    3. tcgen.yaml, then a ``[tool.tcgen]`` table in pyproject.toml, in
       ``start`` (default: current directory) and each parent directory

    Args:
        config_path: Optional explicit path to a config file
        start: Directory to start the upward search from

    Returns:
        TcgenConfig instance (empty when nothing was found)

    Raises:
        ConfigError: If a config file exists but cannot be parsed
    """
    if config_path:
        return _load_from_path(Path(config_path))

    env_path = os.environ.get("TCGEN_CONFIG")
    if env_path:
        return _load_from_path(Path(env_path))

    current = Path(start).resolve() if start else Path.cwd()
    while True:
        for filename in CONFIG_FILENAMES:
            config_file = current / filename
            if config_file.exists():
                return _load_from_path(config_file)

        pyproject = current / "pyproject.toml"
        if pyproject.exists():
            table = _read_pyproject(pyproject)
            if table is not None:
                return TcgenConfig(table, pyproject.parent)

        # Stop at filesystem root
        if current == current.parent:
            break
        current = current.parent

    return TcgenConfig({})


def _load_from_path(path: Path) -> TcgenConfig:
    """Load config from a specific path"""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    if path.suffix == ".toml":
        config_dict = _read_pyproject(path) or {}
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix == ".json":
                    config_dict = json.load(f)
                else:
                    config_dict = yaml.safe_load(f) or {}
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot parse {path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(config_dict).__name__}")
    return TcgenConfig(config_dict, path.parent.resolve())


def _read_pyproject(path: Path) -> Optional[Dict[str, Any]]:
    """Return the ``[tool.tcgen]`` table of a pyproject.toml, if any."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e
    table = data.get("tool", {}).get(PACKAGE_NAME)
    if table is not None and not isinstance(table, dict):
        raise ConfigError(f"[tool.{PACKAGE_NAME}] in {path} must be a table")
    return table
