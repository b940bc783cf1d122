"""Connection settings, read from ``SFTPKIT_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping

from .transfer import DEFAULT_CHUNK_SIZE

__all__ = ["ConnectionConfig"]

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    if parsed <= 0:
        return default
    return parsed


def _positive_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    if parsed <= 0:
        return default
    return parsed


@dataclass(frozen=True)
class ConnectionConfig:
    """Where and how to open the SSH connection.

    Attributes:
        host: Server host name or address.
        port: SSH port.
        username: Login name (``None`` lets paramiko pick the local user).
        password: Password, also used to unlock *key_filename*.
        key_filename: Private key file.
        timeout: TCP connect timeout in seconds.
        strict_host_keys: Reject servers missing from ``known_hosts``.
        chunk_size: Bytes per transfer request.
    """

    host: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    key_filename: str | None = None
    timeout: float = 30.0
    strict_host_keys: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):
        if not self.host:
            raise ValueError("host is required (set SFTPKIT_HOST or pass --host)")

    def __repr__(self) -> str:
        password = "***" if self.password else None
        return (
            f"ConnectionConfig(host={self.host!r}, port={self.port}, "
            f"username={self.username!r}, password={password!r}, "
            f"key_filename={self.key_filename!r})"
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> ConnectionConfig:
        """Build a config from ``SFTPKIT_*`` variables, then apply *overrides*.

        ``None`` overrides are ignored so CLI options left unset fall back
        to the environment.
        """
        env = os.environ if environ is None else environ
        values = {
            "host": env.get("SFTPKIT_HOST", ""),
            "port": _positive_int(env, "SFTPKIT_PORT", 22),
            "username": env.get("SFTPKIT_USER") or None,
            "password": env.get("SFTPKIT_PASSWORD") or None,
            "key_filename": env.get("SFTPKIT_IDENTITY") or None,
            "timeout": _positive_float(env, "SFTPKIT_TIMEOUT", 30.0),
            "strict_host_keys": env.get("SFTPKIT_STRICT_HOST_KEYS", "").strip().lower() in _TRUE_VALUES,
            "chunk_size": _positive_int(env, "SFTPKIT_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        }
        values.update(_known_overrides(overrides))
        return cls(**values)

    def replace(self, **overrides) -> ConnectionConfig:
        """Return a copy with the non-``None`` *overrides* applied."""
        return replace(self, **_known_overrides(overrides))


def _known_overrides(overrides: dict) -> dict:
    known = {f.name for f in fields(ConnectionConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown connection settings: {', '.join(sorted(unknown))}")
    return {k: v for k, v in overrides.items() if v is not None}
