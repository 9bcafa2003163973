import os
from enum import Enum, unique
from typing import Any, Mapping, Optional

import structlog
from attrs import evolve, field, frozen

from .errors import ConfigError

HOSTNAME_ENV_VAR = "HOSTNAME"
PORT_ENV_VAR = "PORT"
WORKERS_ENV_VAR = "WORKERS"
REUSE_PORT_ENV_VAR = "REUSE_PORT"
VARIANT_ENV_VAR = "WORKERBENCH_VARIANT"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

_TRUE_VALUES = frozenset(["1", "true", "yes", "on"])
_FALSE_VALUES = frozenset(["", "0", "false", "no", "off"])

log = structlog.get_logger("workerbench.config")


@unique
class Variant(Enum):
    PLAIN = "plain"
    JSON = "json"

    def __str__(self) -> str:
        return self.value


def cpu_count() -> int:
    try:
        return len(os.sched_getaffinity(0)) or 1  # type: ignore
    except AttributeError:  # not available on every platform
        return os.cpu_count() or 1


def parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"Expected a boolean value, got {value!r}")


def parse_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Port must be an integer, got {value!r}") from e
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port must be between 0 and 65535, got {port}")
    return port


def parse_workers(value: Any) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Worker count must be an integer, got {value!r}") from e
    if workers < 1:
        raise ConfigError(f"Worker count must be at least 1, got {workers}")
    return workers


def parse_variant(value: Any) -> Variant:
    if isinstance(value, Variant):
        return value
    try:
        return Variant(str(value).strip().lower())
    except ValueError as e:
        choices = ", ".join(v.value for v in Variant)
        raise ConfigError(f"Variant must be one of {choices}, got {value!r}") from e


@frozen
class ServerConfig:
    """
    Process-wide settings, read once at startup and handed to the supervisor
    and worker constructors.
    """

    host: str = DEFAULT_HOST
    port: int = field(default=DEFAULT_PORT, converter=parse_port)
    workers: int = field(factory=cpu_count, converter=parse_workers)
    reuse_port: bool = False
    variant: Variant = field(default=Variant.JSON, converter=parse_variant)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        if environ is None:
            environ = os.environ

        kwargs: dict = {}
        if environ.get(HOSTNAME_ENV_VAR):
            kwargs["host"] = environ[HOSTNAME_ENV_VAR]
        if environ.get(PORT_ENV_VAR):
            kwargs["port"] = environ[PORT_ENV_VAR]
        if environ.get(WORKERS_ENV_VAR):
            kwargs["workers"] = environ[WORKERS_ENV_VAR]
        if REUSE_PORT_ENV_VAR in environ:
            kwargs["reuse_port"] = parse_bool(environ[REUSE_PORT_ENV_VAR])
        if environ.get(VARIANT_ENV_VAR):
            kwargs["variant"] = environ[VARIANT_ENV_VAR]

        config = cls(**kwargs)
        log.debug("loaded config", **config.to_log_fields())
        return config

    def evolve(self, **changes: Any) -> "ServerConfig":
        """Return a copy with the given non-None fields replaced."""
        return evolve(self, **{k: v for k, v in changes.items() if v is not None})

    def to_log_fields(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "workers": self.workers,
            "reuse_port": self.reuse_port,
            "variant": self.variant.value,
        }
