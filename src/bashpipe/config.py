"""Per-invocation configuration: interpreter argv, env overrides, trace flag."""

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import yaml

DEFAULT_INTERPRETER = ("/bin/bash", "-c")
DEFAULT_CONFIG_FILE = ".bashpipe.yml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Config:
    interpreter: tuple[str, ...] = DEFAULT_INTERPRETER
    env: Mapping[str, str] = field(default_factory=dict)
    trace: bool = False

    def __post_init__(self):
        if not self.interpreter:
            raise ConfigError("interpreter must not be empty")
        object.__setattr__(self, "interpreter", tuple(str(a) for a in self.interpreter))
        env = {str(k): str(v) for k, v in self.env.items()}
        for key, value in env.items():
            _check_env_entry(key, value)
        object.__setattr__(self, "env", MappingProxyType(env))

    def with_env(self, overrides: Mapping[str, str] | None) -> "Config":
        """Return a copy with *overrides* merged over this config's env."""
        if not overrides:
            return self
        return Config(interpreter=self.interpreter, env={**self.env, **overrides}, trace=self.trace)

    def to_dict(self) -> dict:
        return {"interpreter": list(self.interpreter), "env": dict(self.env), "trace": self.trace}


def _check_env_entry(key: str, value: str) -> None:
    if not key or "=" in key or "\0" in key:
        raise ConfigError(f"invalid environment variable name: {key!r}")
    if "\0" in value:
        raise ConfigError(f"environment variable {key} contains a NUL byte")


def parse_env_pairs(items) -> dict[str, str]:
    """Convert ["KEY=VALUE", ...] into a dict."""
    env = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigError(f"expected KEY=VALUE, got {item!r}")
        env[key] = value
    return env


def _parse_interpreter(value) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    raise ConfigError(f"interpreter must be a string or list, got {type(value).__name__}")


def _parse_env(value) -> dict[str, str]:
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    if isinstance(value, list):
        # List format ["KEY=value", ...], as compose labels allow
        return parse_env_pairs(str(v) for v in value)
    raise ConfigError(f"env must be a mapping or list, got {type(value).__name__}")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _config_path(path: str | None, environ: Mapping[str, str]) -> str | None:
    """Resolve the config file.

    Order: explicit path → BASHPIPE_CONFIG env → .bashpipe.yml (if present).
    """
    if path:
        return path
    env_path = environ.get("BASHPIPE_CONFIG")
    if env_path:
        return env_path
    if os.path.isfile(DEFAULT_CONFIG_FILE):
        return DEFAULT_CONFIG_FILE
    return None


def _read_file(path: str) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def load_config(path: str | None = None, environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from defaults, an optional YAML file, then env vars.

    Env vars win over the file: BASHPIPE_SHELL replaces the interpreter
    (split like a shell word list) and BASHPIPE_TRACE toggles tracing.
    """
    environ = os.environ if environ is None else environ
    interpreter = DEFAULT_INTERPRETER
    env: dict[str, str] = {}
    trace = False

    config_path = _config_path(path, environ)
    if config_path is not None:
        data = _read_file(config_path)
        if "interpreter" in data:
            interpreter = _parse_interpreter(data["interpreter"])
        if "env" in data:
            env = _parse_env(data["env"])
        if "trace" in data:
            trace = _parse_bool(data["trace"])

    shell = environ.get("BASHPIPE_SHELL")
    if shell:
        interpreter = _parse_interpreter(shell)
    trace_var = environ.get("BASHPIPE_TRACE")
    if trace_var is not None:
        trace = _parse_bool(trace_var)

    return Config(interpreter=interpreter, env=env, trace=trace)
