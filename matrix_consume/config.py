"""
Configuration loading for matrix-consume.

The configuration file is a plain list of ``key=value`` lines::

    # ~/.config/matrix-consume/config
    token=syt_abc123
    server=matrix.example.org
    room_id='!AbCdEf:example.org'
    dir=~/Pictures/outbox
    timeout=5m
    watch=true
    cwebp_convert=false
    move_to=~/Pictures/sent
    cwebp_args=(-q 80 -mt)

The file is parsed as data only, never executed.  Keys are matched
case-insensitively and unknown keys are ignored.  Array values are written
in parentheses and split with shell quoting rules.

``timeout``, ``watch`` and ``one_shot`` may be overridden from the command
line; every other field comes from the file alone.
"""

import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .errors import ConfigInvalid, ConfigUnreadable
from .matrix import session_options

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR: str = "MATRIX_CONSUME_CONFIG"
DEFAULT_TIMEOUT: float = 3.0

ROOM_ID_RE = re.compile(r"^![A-Za-z0-9]+:[^:]+$")
TOKEN_RE = re.compile(r"^[A-Za-z0-9_]+$")
TIMEOUT_RE = re.compile(r"^(\d+(?:\.\d+)?)([smhd]?)$")

TIMEOUT_UNITS: Dict[str, int] = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}

REQUIRED_KEYS = ("token", "server", "room_id", "dir")
SCALAR_KEYS = REQUIRED_KEYS + ("timeout", "watch", "one_shot", "cwebp_convert", "move_to")
ARRAY_KEYS = ("curl_args", "cwebp_args")

Value = Union[str, List[str]]


@dataclass(frozen=True)
class Config:
    room_id: str
    server: str
    token: str
    directory: Path
    timeout: float = DEFAULT_TIMEOUT
    watch: bool = False
    one_shot: bool = False
    convert: bool = False
    move_to: Optional[Path] = None
    http_args: Tuple[str, ...] = ()
    cwebp_args: Tuple[str, ...] = ()
    source: Optional[Path] = field(default=None, compare=False)

    def __repr__(self) -> str:
        # keep the token out of logs and tracebacks
        return (
            f"Config(room_id={self.room_id!r}, server={self.server!r}, "
            f"directory={str(self.directory)!r}, timeout={self.timeout}, "
            f"watch={self.watch}, one_shot={self.one_shot}, convert={self.convert}, "
            f"move_to={str(self.move_to) if self.move_to else None!r})"
        )


def default_config_path() -> Path:
    """Return the config path from the environment or the XDG default."""
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    config_home = os.getenv("XDG_CONFIG_HOME") or os.path.join("~", ".config")
    return Path(config_home).expanduser() / "matrix-consume" / "config"


def parse_timeout(text: str, field_name: str = "timeout") -> float:
    """Convert a duration such as ``3``, ``2.5s``, ``10m`` or ``1d`` to seconds."""
    match = TIMEOUT_RE.match(text.strip())
    if not match:
        raise ConfigInvalid(
            field_name, f"{text!r} is not a number with an optional s/m/h/d suffix"
        )
    number, unit = match.groups()
    return float(number) * TIMEOUT_UNITS[unit]


def parse_bool(text: str, field_name: str) -> bool:
    if text == "true":
        return True
    if text == "false":
        return False
    raise ConfigInvalid(field_name, f"expected 'true' or 'false', got {text!r}")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_lines(text: str) -> Dict[str, Value]:
    """Parse ``key=value`` lines into a dict of strings and string lists.

    Keys are lowercased.  A later assignment to the same key wins.
    """
    values: Dict[str, Value] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        if not sep:
            raise ConfigInvalid(f"line {lineno}", f"expected key=value, got {raw!r}")
        key = key.strip().lower()
        value = value.strip()
        if value.startswith("(") and value.endswith(")"):
            try:
                values[key] = shlex.split(value[1:-1])
            except ValueError as exc:
                raise ConfigInvalid(key, f"cannot split array value: {exc}") from exc
        else:
            values[key] = _unquote(value)
    return values


def _scalar(values: Dict[str, Value], key: str) -> Optional[str]:
    value = values.get(key)
    if value is None:
        return None
    if isinstance(value, list):
        raise ConfigInvalid(key, "expected a single value, not an array")
    return value


def _array(values: Dict[str, Value], key: str) -> Tuple[str, ...]:
    value = values.get(key)
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        return tuple(shlex.split(value))
    return tuple(value)


def build_config(
    values: Dict[str, Value],
    timeout: Optional[float] = None,
    watch: Optional[bool] = None,
    one_shot: Optional[bool] = None,
    source: Optional[Path] = None,
) -> Config:
    """Validate parsed values and build a :class:`Config`.

    Keyword overrides take precedence over file values, which take
    precedence over the defaults.  Raises :class:`ConfigInvalid` naming the
    first offending field.
    """
    for key in values:
        if key not in SCALAR_KEYS and key not in ARRAY_KEYS:
            logger.debug("Ignoring unknown config key: %s", key)

    for key in REQUIRED_KEYS:
        if not _scalar(values, key):
            raise ConfigInvalid(key, "missing or empty")

    room_id = _scalar(values, "room_id")
    if not ROOM_ID_RE.match(room_id):
        raise ConfigInvalid("room_id", f"{room_id!r} does not look like !localpart:domain")

    server = _scalar(values, "server")
    if "." not in server:
        raise ConfigInvalid("server", f"{server!r} is not a domain name")

    token = _scalar(values, "token")
    if not TOKEN_RE.match(token):
        raise ConfigInvalid("token", "may only contain letters, digits and underscores")

    directory = Path(_scalar(values, "dir")).expanduser()
    if not directory.is_dir():
        raise ConfigInvalid("dir", f"directory does not exist: {directory}")
    directory = directory.resolve()

    move_to: Optional[Path] = None
    move_to_value = _scalar(values, "move_to")
    if move_to_value:
        move_to = Path(move_to_value).expanduser()
        if not move_to.is_dir():
            raise ConfigInvalid("move_to", f"directory does not exist: {move_to}")
        move_to = move_to.resolve()
        if move_to == directory:
            raise ConfigInvalid("move_to", "must differ from dir")

    if timeout is None:
        timeout_value = _scalar(values, "timeout")
        timeout = parse_timeout(timeout_value) if timeout_value is not None else DEFAULT_TIMEOUT
    if timeout < 0:
        raise ConfigInvalid("timeout", "must not be negative")

    if watch is None:
        watch_value = _scalar(values, "watch")
        watch = parse_bool(watch_value, "watch") if watch_value is not None else False

    if one_shot is None:
        one_shot_value = _scalar(values, "one_shot")
        one_shot = parse_bool(one_shot_value, "one_shot") if one_shot_value is not None else False

    convert_value = _scalar(values, "cwebp_convert")
    convert = parse_bool(convert_value, "cwebp_convert") if convert_value is not None else False

    http_args = _array(values, "curl_args")
    session_options(http_args)

    return Config(
        room_id=room_id,
        server=server,
        token=token,
        directory=directory,
        timeout=timeout,
        watch=watch,
        one_shot=one_shot,
        convert=convert,
        move_to=move_to,
        http_args=http_args,
        cwebp_args=_array(values, "cwebp_args"),
        source=source,
    )


def load_config(
    path: Optional[Path] = None,
    timeout: Optional[float] = None,
    watch: Optional[bool] = None,
    one_shot: Optional[bool] = None,
) -> Config:
    """Read and validate the configuration file at ``path``.

    Args:
        path: config file; defaults to :func:`default_config_path`.
        timeout: command-line override in seconds.
        watch: command-line override for watch mode.
        one_shot: command-line override for one-shot mode.

    Raises:
        ConfigUnreadable: the file is missing or cannot be read.
        ConfigInvalid: any field fails validation.
    """
    if path is None:
        path = default_config_path()
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigUnreadable(path, "no such file") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigUnreadable(path, str(exc)) from exc

    config = build_config(
        parse_lines(text), timeout=timeout, watch=watch, one_shot=one_shot, source=path
    )
    logger.debug("Loaded %r from %s", config, path)
    return config
