"""Project-wide configuration constants and config-file loading.

Central place for tuneable parameters shared across modules.
Import individual names where needed.

Example:
    >>> from jbdbms.config import load_config, TIMEOUT_MS
    >>> cfg = load_config("jbdbms.toml")
    >>> cfg["direction"]
    'rts'
"""

import os
import tomllib

# Serial read timeout in milliseconds.
TIMEOUT_MS = 500

# Defaults for optional keys.
DEFAULT_BAUDRATE = 9600
DEFAULT_INTERVAL = 10
DEFAULT_COMMAND_DELAY_MS = 0

DIRECTIONS = ("auto", "rts")

DEFAULT_CONFIG = "jbdbms.toml"
# Searched after the current directory.
CONFIG_DIRS = ("/etc/jbdbms",)


def load_config(path: str) -> dict:
    """Read a TOML config file and validate its keys.

    Required: ``port`` (str).
    Optional: ``baudrate`` (int), ``timeout_ms`` (int),
    ``command_delay_ms`` (int), ``direction`` (str, "auto" or "rts"),
    ``rts_active_high`` (bool), ``swap_temperatures`` (bool),
    ``interval`` (int, seconds between monitor polls).

    Raises:
        ValueError: If a key is missing or has the wrong type or range.

    Example:
        >>> cfg = load_config("jbdbms.toml")
        >>> cfg["baudrate"]
        9600
    """
    with open(path, "rb") as f:
        raw = tomllib.load(f)

    _require_str(raw, "port")

    direction = raw.get("direction", "auto")
    if not isinstance(direction, str):
        raise ValueError("direction must be str, got %s" % type(direction).__name__)
    if direction not in DIRECTIONS:
        raise ValueError("direction must be 'auto' or 'rts', got '%s'" % direction)

    result = {
        "port": raw["port"],
        "direction": direction,
        "baudrate": _optional_int(raw, "baudrate", DEFAULT_BAUDRATE, 1),
        "timeout_ms": _optional_int(raw, "timeout_ms", TIMEOUT_MS, 1),
        "command_delay_ms": _optional_int(
            raw, "command_delay_ms", DEFAULT_COMMAND_DELAY_MS, 0
        ),
        "interval": _optional_int(raw, "interval", DEFAULT_INTERVAL, 0),
        "rts_active_high": _optional_bool(raw, "rts_active_high", True),
        "swap_temperatures": _optional_bool(raw, "swap_temperatures", False),
    }
    return result


def _require_str(raw: dict[str, object], key: str) -> None:
    """Validate that *key* exists in *raw* and is a str."""
    if key not in raw:
        raise ValueError("missing required key: %s" % key)
    if not isinstance(raw[key], str):
        raise ValueError("%s must be str, got %s" % (key, type(raw[key]).__name__))


def _optional_int(raw: dict[str, object], key: str, default: int,
                  minimum: int) -> int:
    """Return int *key* from *raw*, or *default* if absent."""
    if key not in raw:
        return default
    value = raw[key]
    # bool is an int subclass; reject it explicitly.
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError("%s must be int, got %s" % (key, type(value).__name__))
    if value < minimum:
        raise ValueError("%s must be >= %d, got %d" % (key, minimum, value))
    return value


def _optional_bool(raw: dict[str, object], key: str, default: bool) -> bool:
    """Return bool *key* from *raw*, or *default* if absent."""
    if key not in raw:
        return default
    if not isinstance(raw[key], bool):
        raise ValueError("%s must be bool, got %s" % (key, type(raw[key]).__name__))
    return raw[key]


def resolve_config(name: str = DEFAULT_CONFIG) -> str:
    """Find the config file *name* and return its absolute path.

    A name containing ``/`` is taken as a path.  A bare filename is
    looked up in the current directory, then in CONFIG_DIRS.

    Raises:
        FileNotFoundError: If no candidate exists.
    """
    if "/" in name:
        candidates = [name]
    else:
        candidates = [name] + [os.path.join(d, name) for d in CONFIG_DIRS]

    for candidate in candidates:
        if os.path.isfile(candidate):
            return os.path.abspath(candidate)

    raise FileNotFoundError(
        "config file '%s' not found (searched %s)" % (name, ", ".join(candidates))
    )
