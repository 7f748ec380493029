"""
Connection configuration parsed from DSNs or environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from ..utils.redaction import REDACTED_VALUE, is_sensitive
from .errors import AdapterConfigurationError


@dataclass
class DSNConfig:
    driver: str
    username: Optional[str]
    password: Optional[str]
    host: Optional[str]
    port: Optional[int]
    database: Optional[str]
    path: str
    query: dict[str, str]

    def redacted(self) -> str:
        """
        Return the DSN with credentials removed but structure preserved.
        """
        netloc = ""
        if self.username:
            netloc += self.username
            if self.password:
                netloc += f":{REDACTED_VALUE}"
            netloc += "@"
        if self.host:
            netloc += self.host
        if self.port:
            netloc += f":{self.port}"
        query = {
            key: REDACTED_VALUE if is_sensitive(key) else value for key, value in self.query.items()
        }
        result = f"{self.driver}://{netloc}{self.path or ''}"
        if query:
            result += f"?{urlencode(query)}"
        return result


def parse_dsn(dsn: str) -> DSNConfig:
    parsed = urlparse(dsn)
    try:
        port = parsed.port
    except ValueError as exc:
        raise AdapterConfigurationError(f"Invalid port in DSN for driver '{parsed.scheme}'") from exc
    return DSNConfig(
        driver=parsed.scheme,
        username=parsed.username,
        password=parsed.password,
        host=parsed.hostname,
        port=port,
        database=parsed.path.lstrip("/") or None,
        path=parsed.path or "",
        query={key: values[0] for key, values in parse_qs(parsed.query).items()},
    )


def _parse_number(value: str, *, key: str, cast: type) -> Any:
    try:
        return cast(value)
    except ValueError as exc:
        raise AdapterConfigurationError(
            f"Invalid {cast.__name__} value for '{key}': {value!r}"
        ) from exc


@dataclass
class ConnectionConfig:
    """
    Normalized connection configuration for adapters.

    Adapters always run the driver in autocommit mode and open transactions
    explicitly, so ``isolation_level`` applies to those explicit transactions.
    """

    url: str
    timeout: float | None = None
    isolation_level: str | None = None
    options: dict[str, Any] | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "ConnectionConfig":
        parsed = parse_dsn(dsn)
        query = dict(parsed.query)

        timeout = query.pop("timeout", None)
        isolation_level = query.pop("isolation_level", None)
        options: dict[str, Any] = {}
        for key, value in query.items():
            if key == "connect_timeout":
                options[key] = _parse_number(value, key=key, cast=int)
            else:
                options[key] = value
        options.update(kwargs.pop("options", None) or {})

        return cls(
            url=dsn,
            dsn=parsed,
            timeout=kwargs.pop(
                "timeout",
                _parse_number(timeout, key="timeout", cast=float) if timeout is not None else None,
            ),
            isolation_level=kwargs.pop("isolation_level", isolation_level),
            options=options or None,
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_var: str, **kwargs: Any) -> "ConnectionConfig":
        value = os.getenv(env_var)
        if not value:
            raise AdapterConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **kwargs)

    def redacted_dsn(self) -> str:
        if self.dsn:
            return self.dsn.redacted()
        return self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted
