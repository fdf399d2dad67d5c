"""
Configuration loader for cmt.

Settings are merged from three layers, later ones winning:

1. built-in defaults (:data:`DEFAULTS`),
2. the global file ``~/.config/cmt/config.json``,
3. the nearest project file ``.cmt.json`` found by walking up from the
   working directory.

Both files are optional JSON objects. Unknown keys and values of the wrong
type raise a :class:`ConfigError`. Command line options are applied on
top of the result by the CLI.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from cmt.llm.ollama_client import REASONING_DEPTHS


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


PROJECT_CONFIG_FILENAME = ".cmt.json"
GLOBAL_CONFIG_FILENAME = "config.json"

DEFAULTS: Dict[str, Any] = {
    "context_lines": 20,
    "max_lines_per_file": 2000,
    "max_line_width": 500,
    "include_recent_commits": True,
    "recent_commits_count": 10,
    "hint": None,
    "template": "conventional",
    "base_url": "http://localhost",
    "port": 11434,
    "model": "llama3.1",
    "temperature": 0.3,
    "request_timeout": 120.0,
    "max_tokens": None,
    "reasoning_depth": None,
}

# key -> (accepted types, may be null)
_SCHEMA: Dict[str, Tuple[Tuple[type, ...], bool]] = {
    "context_lines": ((int,), False),
    "max_lines_per_file": ((int,), False),
    "max_line_width": ((int,), False),
    "include_recent_commits": ((bool,), False),
    "recent_commits_count": ((int,), False),
    "hint": ((str,), True),
    "template": ((str,), False),
    "base_url": ((str,), False),
    "port": ((int,), False),
    "model": ((str,), False),
    "temperature": ((int, float), False),
    "request_timeout": ((int, float), False),
    "max_tokens": ((int,), True),
    "reasoning_depth": ((str,), True),
}

_POSITIVE_KEYS = ("context_lines", "max_lines_per_file", "max_line_width", "port", "request_timeout")


class ConfigError(Exception):
    """Raised when a configuration file or value is invalid."""

    pass


def _get_config_directory() -> Path:
    """Return the directory holding the global configuration and templates."""
    return Path.home() / ".config" / "cmt"


def global_config_path() -> Path:
    return _get_config_directory() / GLOBAL_CONFIG_FILENAME


def template_directory() -> Path:
    """Return the directory holding user commit templates."""
    return _get_config_directory() / "templates"


def find_project_config(start: Path) -> Optional[Path]:
    """Return the nearest ``.cmt.json`` at or above ``start``, if any."""
    current = start.resolve()
    while True:
        candidate = current / PROJECT_CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def validate_config(data: Dict[str, Any], source: str = "configuration") -> Dict[str, Any]:
    """Check keys and value types of a (partial) configuration mapping.

    Raises
    ------
    ConfigError
        If a key is unknown or a value has the wrong type or range.
    """
    unknown = sorted(set(data) - set(_SCHEMA))
    if unknown:
        raise ConfigError(f"Unknown configuration keys in {source}: {', '.join(unknown)}")
    for key, value in data.items():
        types, nullable = _SCHEMA[key]
        if value is None:
            if not nullable:
                raise ConfigError(f"'{key}' in {source} must not be null")
            continue
        # bool is a subclass of int but never a valid number here
        if isinstance(value, bool) and bool not in types:
            raise ConfigError(f"'{key}' in {source} must be of type {types[0].__name__}")
        if not isinstance(value, types):
            raise ConfigError(f"'{key}' in {source} must be of type {types[0].__name__}")
    for key in _POSITIVE_KEYS:
        if key in data and data[key] <= 0:
            raise ConfigError(f"'{key}' in {source} must be positive")
    if data.get("recent_commits_count") is not None and data["recent_commits_count"] < 0:
        raise ConfigError(f"'recent_commits_count' in {source} must not be negative")
    if data.get("temperature") is not None and not 0 <= data["temperature"] <= 2:
        raise ConfigError(f"'temperature' in {source} must be between 0 and 2")
    depth = data.get("reasoning_depth")
    if depth is not None and depth not in REASONING_DEPTHS:
        raise ConfigError(
            f"'reasoning_depth' in {source} must be one of: {', '.join(REASONING_DEPTHS)}"
        )
    return data


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return validate_config(data, str(path))


def load_config(
    start_dir: Optional[Path] = None,
    global_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """Load and merge the configuration layers.

    Parameters
    ----------
    start_dir : Path, optional
        Directory where the search for ``.cmt.json`` starts. Defaults to
        the current working directory.
    global_path : Path, optional
        Location of the global file. Defaults to ``~/.config/cmt/config.json``.
    config_path : Path, optional
        Project file to use instead of searching for ``.cmt.json``. It must
        exist.

    Returns
    -------
    Dict[str, Any]
        Every key of :data:`DEFAULTS` with its resolved value.

    Raises
    ------
    ConfigError
        If ``config_path`` does not exist or a file is malformed or invalid.
    """
    config = dict(DEFAULTS)
    global_file = global_path if global_path is not None else global_config_path()
    if global_file.is_file():
        config.update(_read_config_file(global_file))
        logger.debug("Loaded global configuration from: %s", global_file)
    if config_path is not None:
        if not config_path.is_file():
            logger.error("Configuration file '%s' does not exist", config_path)
            raise ConfigError(f"Configuration file not found: {config_path}")
        project_file: Optional[Path] = config_path
    else:
        project_file = find_project_config(start_dir or Path.cwd())
    if project_file is not None:
        config.update(_read_config_file(project_file))
        logger.debug("Loaded project configuration from: %s", project_file)
    return config


def example_config() -> str:
    """Return the JSON written by :func:`init_config`."""
    data = {key: value for key, value in DEFAULTS.items() if value is not None}
    return json.dumps(data, indent=2) + "\n"


def init_config(path: Path, force: bool = False) -> Path:
    """Write an example configuration file to ``path``.

    Raises
    ------
    ConfigError
        If the file exists and ``force`` is False, or it cannot be written.
    """
    if path.exists() and not force:
        raise ConfigError(f"Configuration file already exists: {path}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(example_config(), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to write {path}: {exc}") from exc
    logger.debug("Wrote example configuration to: %s", path)
    return path
