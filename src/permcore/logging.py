"""Logging helpers for permcore.

Every permcore module logs through the standard library with
``logging.getLogger(__name__)``. This module adds what services embedding
permcore need on top:

- ``setup_logging``: root handler configured from ``PolicyConfig``.
- ``PermcoreFormatter``: JSON or plain lines stamped with ``user_id``/``role``.
- ``get_actor_logger``: adapter that accepts ``actor=`` on each call.
- ``safe_preview`` / ``safe_log_value``: bounded, redacted rendering of
  grant rows and their opaque ``conditions``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .config import PolicyConfig
from .permissions.grants import Actor

REDACTED = "[REDACTED]"

# Grant conditions are free-form admin input; these are scrubbed before logging.
SECRET_PATTERNS = [
    re.compile(
        r'(?:password|passwd|pwd|secret|token|key|api[_-]?key|auth[_-]?token)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE,
    ),
    re.compile(r"(?:bearer|basic)\s+([a-zA-Z0-9._+/=-]+)", re.IGNORECASE),
    re.compile(r'(?:x-api-key|x-auth-token|x-access-token)\s*[:=]\s*["\']?([^"\'\s]+)', re.IGNORECASE),
]

_ACTOR_KEYS = ("user_id", "role")

# Attributes present on every LogRecord; anything else arrived via ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", *_ACTOR_KEYS}


def safe_preview(value: Any, limit: int = 240) -> str:
    """Render ``value`` on one line, at most ``limit`` characters.

    Mappings and lists (grant rows, conditions) are rendered as JSON;
    datetimes inside them fall back to ``str``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        text = value
    elif isinstance(value, (dict, list, tuple)):
        try:
            text = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            text = repr(value)
    else:
        text = str(value)

    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _mask(match: re.Match[str], replacement: str) -> str:
    if not match.groups() or match.group(1) is None:
        return replacement
    start, end = match.span(1)
    offset = match.start()
    whole = match.group(0)
    return whole[: start - offset] + replacement + whole[end - offset :]


def redact_secrets(text: str, replacement: str = REDACTED) -> str:
    """Replace credential-looking values in ``text`` with ``replacement``.

    Only the secret value is masked; the key stays readable
    (``password: [REDACTED]``). Non-strings are returned unchanged.
    """
    if not isinstance(text, str):
        return text
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(lambda m: _mask(m, replacement), text)
    return text


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    preview = safe_preview(value, limit=limit)
    return redact_secrets(preview) if redact else preview


class PermcoreFormatter(logging.Formatter):
    """Formats records as JSON objects or ``[ts] LEVEL logger user_id=.. role=..: msg`` lines.

    Args:
        include_actor: Emit the ``user_id``/``role`` record attributes.
        json_format: JSON output instead of plain text.
        redact_secrets: Scrub the message and extra fields.
    """

    def __init__(
        self,
        include_actor: bool = True,
        json_format: bool = True,
        redact_secrets: bool = True,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.include_actor = include_actor
        self.json_format = json_format
        self.redact_secrets = redact_secrets

    def _actor_fields(self, record: logging.LogRecord) -> dict[str, str]:
        if not self.include_actor:
            return {}
        return {key: str(getattr(record, key)) for key in _ACTOR_KEYS if getattr(record, key, None)}

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, str]:
        return {
            key: safe_log_value(value, redact=self.redact_secrets)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        }

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if self.redact_secrets:
            message = redact_secrets(message)
        timestamp = self.formatTime(record, self.datefmt)
        actor = self._actor_fields(record)

        if not self.json_format:
            line = " ".join(
                [f"[{timestamp}]", record.levelname, record.name]
                + [f"{key}={value}" for key, value in actor.items()]
            )
            line = f"{line}: {message}"
            if record.exc_info:
                line = f"{line}\n{self.formatException(record.exc_info)}"
            return line

        payload: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            **actor,
            **self._extra_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class ActorLoggerAdapter(logging.LoggerAdapter):
    """Stamps records with the actor's ``user_id`` and ``role``.

    The actor is either bound at construction or passed per call::

        logger = get_actor_logger(__name__)
        logger.info("Gate denied", actor=actor)
    """

    def __init__(self, logger: logging.Logger, actor: Optional[Actor] = None) -> None:
        super().__init__(logger, {})
        self.actor = actor

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        actor = kwargs.pop("actor", None) or self.actor
        extra = dict(kwargs.get("extra") or {})
        if isinstance(actor, Actor):
            extra.setdefault("user_id", actor.user_id)
            extra.setdefault("role", actor.role)
        if extra:
            kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    config: Optional[PolicyConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
) -> None:
    """Install a single stderr handler with :class:`PermcoreFormatter` on the root logger.

    Args:
        config: Level, JSON switch and service name; read from the environment if None.
        json_format: Overrides ``config.log_json``.
        redact_secrets: Scrub credentials from formatted records.
    """
    if config is None:
        from .config import load_policy_config_from_env

        config = load_policy_config_from_env()

    level = logging.getLevelName(config.log_level.value)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        PermcoreFormatter(
            include_actor=True,
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    if config.service_name:
        logging.getLogger(config.service_name).setLevel(level)


def get_actor_logger(name: str, actor: Optional[Actor] = None) -> ActorLoggerAdapter:
    return ActorLoggerAdapter(logging.getLogger(name), actor=actor)


__all__ = [
    "ActorLoggerAdapter",
    "PermcoreFormatter",
    "REDACTED",
    "SECRET_PATTERNS",
    "get_actor_logger",
    "redact_secrets",
    "safe_log_value",
    "safe_preview",
    "setup_logging",
]
