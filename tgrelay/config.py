# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for the relay service.

Configuration is loaded from a YAML file.  The default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/tgrelay/tgrelay.yaml``
    (typically ``~/.config/tgrelay/tgrelay.yaml``)

``!env`` tags resolve values from environment variables, which may in turn
come from a ``.env`` file next to the config.  Example::

    telegram:
      token: !env TELEGRAM_BOT_TOKEN
      administrators: [12345]
      whitelist: [12345, 42]
      allow_all: false
    polling:
      timeout: 60
      backoff_initial: 1
      backoff_max: 60
    service:
      notify_on_start: true
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_path

from tgrelay.authorization import AuthorizationPolicy
from tgrelay.client import DEFAULT_API_URL
from tgrelay.dotenv_loader import load_dotenv_once
from tgrelay.errors import RelayError
from tgrelay.logging import SecretFilter


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "tgrelay"

#: Telegram rejects long-poll timeouts far beyond this.
_MAX_LONG_POLL_TIMEOUT = 600

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


class ConfigError(RelayError):
    """Raised when the configuration is missing or invalid."""


def get_config_path() -> Path:
    """Return the default config file path.

    Returns:
        ``$XDG_CONFIG_HOME/tgrelay/tgrelay.yaml``.
    """
    return user_config_path(_APP_NAME) / "tgrelay.yaml"


def get_dotenv_path() -> Path:
    """Return the ``.env`` file path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


@dataclass(frozen=True)
class RelayConfig:
    """Settings for one relay instance.

    Attributes:
        token: Bot authentication token.
        api_url: Bot API base URL.
        administrators: Chat ids that receive alerts and broadcasts.
        whitelist: Chat ids admitted when ``allow_all`` is False.
        allow_all: Admit every chat.
        long_poll_timeout: ``getUpdates`` ceiling in seconds.
        request_timeout: Connect/write timeout in seconds.  The read
            timeout is ``long_poll_timeout + request_timeout``.
        backoff_initial: First retry delay after a failed poll, seconds.
            Zero retries immediately.
        backoff_max: Upper bound for the retry delay, seconds.
        notify_on_start: Broadcast a start notice to administrators.
    """

    token: str
    api_url: str = DEFAULT_API_URL
    administrators: frozenset[int] = field(default_factory=frozenset)
    whitelist: frozenset[int] = field(default_factory=frozenset)
    allow_all: bool = False
    long_poll_timeout: int = 60
    request_timeout: float = 10.0
    backoff_initial: float = 1.0
    backoff_max: float = 60.0
    notify_on_start: bool = False

    def __post_init__(self) -> None:
        """Validate settings and register the token for log redaction.

        Raises:
            ConfigError: If a setting is invalid.
        """
        if not self.token:
            raise ConfigError("Telegram token must not be empty")
        SecretFilter.register_secret(self.token)

        if not 0 < self.long_poll_timeout <= _MAX_LONG_POLL_TIMEOUT:
            raise ConfigError(
                f"polling.timeout must be between 1 and "
                f"{_MAX_LONG_POLL_TIMEOUT}, got {self.long_poll_timeout}"
            )
        if self.request_timeout <= 0:
            raise ConfigError("polling.request_timeout must be positive")
        if self.backoff_initial < 0:
            raise ConfigError("polling.backoff_initial must not be negative")
        if self.backoff_max < self.backoff_initial:
            raise ConfigError(
                "polling.backoff_max must be at least polling.backoff_initial"
            )

    def policy(self) -> AuthorizationPolicy:
        """Build the initial authorization policy."""
        return AuthorizationPolicy(
            administrators=self.administrators,
            whitelist=self.whitelist,
            allow_all=self.allow_all,
        )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "RelayConfig":
        """Load configuration from a YAML file.

        A ``.env`` file is loaded first if present, so ``!env`` tags can
        refer to variables defined there.

        Args:
            config_path: Path to the YAML file.  Defaults to
                ``~/.config/tgrelay/tgrelay.yaml`` (XDG).

        Returns:
            RelayConfig instance.

        Raises:
            ConfigError: If the file is missing or a value is invalid.
        """
        load_dotenv_once(get_dotenv_path())

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            try:
                raw = yaml.load(f, Loader=_make_loader())
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}")

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls.from_dict(raw)
        logger.info(
            "Config loaded: %d administrator(s), %d whitelisted chat(s), "
            "allow_all=%s",
            len(config.administrators),
            len(config.whitelist),
            config.allow_all,
        )
        return config

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RelayConfig":
        """Build config from a parsed (but unresolved) YAML mapping."""
        telegram = _section(raw, "telegram")
        polling = _section(raw, "polling")
        service = _section(raw, "service")

        token = _resolve(telegram.get("token"))
        if not token:
            raise ConfigError(_missing_message("telegram.token", telegram))

        return cls(
            token=token,
            api_url=_resolve(telegram.get("api_url")) or DEFAULT_API_URL,
            administrators=_resolve_chat_ids(
                telegram.get("administrators"), "telegram.administrators"
            ),
            whitelist=_resolve_chat_ids(
                telegram.get("whitelist"), "telegram.whitelist"
            ),
            allow_all=_resolve_bool(
                telegram.get("allow_all"), default=False
            ),
            long_poll_timeout=_resolve_number(
                polling.get("timeout"), int, 60, "polling.timeout"
            ),
            request_timeout=_resolve_number(
                polling.get("request_timeout"),
                float,
                10.0,
                "polling.request_timeout",
            ),
            backoff_initial=_resolve_number(
                polling.get("backoff_initial"),
                float,
                1.0,
                "polling.backoff_initial",
            ),
            backoff_max=_resolve_number(
                polling.get("backoff_max"), float, 60.0, "polling.backoff_max"
            ),
            notify_on_start=_resolve_bool(
                service.get("notify_on_start"), default=False
            ),
        )


# ---------------------------------------------------------------------------
# YAML tag handling and value resolution
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a YAML mapping")
    return value


def _missing_message(name: str, section: dict[str, Any]) -> str:
    value = section.get(name.rsplit(".", 1)[-1])
    if isinstance(value, _EnvVar):
        return (
            f"Required config '{name}': environment variable "
            f"'{value.var_name}' is not set"
        )
    return f"Required config '{name}' is missing"


def _resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is not set.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name)
    if value is None:
        return None
    return str(value)


def _resolve_bool(value: object, *, default: bool) -> bool:
    """Resolve a boolean, accepting common string spellings."""
    if isinstance(value, bool):
        return value
    resolved = _resolve(value)
    if resolved is None or resolved.strip() == "":
        return default
    s = resolved.lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {resolved!r} to bool")


def _resolve_number[T: (int, float)](
    value: object, coerce: type[T], default: T, name: str
) -> T:
    """Resolve a number, falling back to ``default`` when absent."""
    if isinstance(value, bool):
        raise ConfigError(f"Config '{name}' must be a number")
    resolved = _resolve(value)
    if resolved is None or resolved.strip() == "":
        return default
    try:
        return coerce(resolved)
    except ValueError:
        raise ConfigError(
            f"Config '{name}' must be {coerce.__name__}, got {resolved!r}"
        )


def _resolve_chat_ids(value: object, name: str) -> frozenset[int]:
    """Resolve a list of chat ids, handling ``!env`` for each element.

    An element may also resolve to a comma-separated list, which lets a
    single environment variable carry several ids.
    """
    if value is None:
        return frozenset()
    if not isinstance(value, list):
        raise ConfigError(
            f"Config '{name}' must be a list, got {type(value).__name__}"
        )

    chat_ids: set[int] = set()
    for item in value:
        if isinstance(item, bool):
            raise ConfigError(f"Config '{name}': invalid chat id {item!r}")
        if isinstance(item, int):
            chat_ids.add(item)
            continue
        resolved = _resolve(item)
        if not resolved:
            continue
        for part in resolved.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                chat_ids.add(int(part))
            except ValueError:
                raise ConfigError(
                    f"Config '{name}': invalid chat id {part!r}"
                )
    return frozenset(chat_ids)
