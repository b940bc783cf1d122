"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import json
import logging
import stat
import sys
from contextlib import contextmanager
from datetime import datetime, timezone

import click
import paramiko
import structlog

from ..client import SFTPClient
from ..remote import RemoteResourceInfo


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    """Route structlog output to stderr; DEBUG with -v, WARNING otherwise."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _open_client(ctx) -> SFTPClient:
    """Return the client for this invocation, connecting on first use.

    A client placed in ``ctx.obj["client"]`` beforehand is used as-is and
    left open; a client opened here is closed when the command ends.
    """
    client = ctx.obj.get("client")
    if client is not None:
        return client
    try:
        client = SFTPClient.connect(**ctx.obj.get("connection", {}))
    except ValueError as exc:
        raise click.ClickException(str(exc))
    except (OSError, paramiko.SSHException) as exc:
        raise click.ClickException(f"Connection failed: {exc}")
    ctx.obj["client"] = client
    ctx.call_on_close(client.close)
    return client


@contextmanager
def _sftp_errors():
    """Turn filesystem, transport and argument errors into ClickExceptions."""
    try:
        yield
    except (OSError, ValueError, paramiko.SSHException) as exc:
        raise click.ClickException(str(exc))


def _parse_octal(value: str) -> int:
    try:
        mode = int(value, 8)
    except ValueError:
        raise click.BadParameter(f"Not an octal mode: {value}")
    if mode < 0 or mode > 0o7777:
        raise click.BadParameter(f"Mode out of range: {value}")
    return mode


def _format_time(epoch: int | None) -> str:
    if epoch is None:
        return "-"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _attrs_dict(attrs) -> dict:
    """Build a JSON-ready dict for a FileAttributes value."""
    return {
        "type": str(attrs.type),
        "size": attrs.size,
        "uid": attrs.uid,
        "gid": attrs.gid,
        "permissions": f"{attrs.permissions:04o}" if attrs.permissions is not None else None,
        "atime": attrs.atime,
        "mtime": attrs.mtime,
    }


def _long_line(info: RemoteResourceInfo) -> str:
    """Format one ``ls -l`` row."""
    attrs = info.attributes
    mode = stat.filemode(attrs.mode) if attrs.mode is not None else "?---------"
    uid = "-" if attrs.uid is None else str(attrs.uid)
    gid = "-" if attrs.gid is None else str(attrs.gid)
    size = "-" if attrs.size is None else str(attrs.size)
    return f"{mode} {uid:>6} {gid:>6} {size:>10} {_format_time(attrs.mtime)} {info.name}"


def _format_option(f):
    """Shared --format option (text or json)."""
    return click.option(
        "--format", "fmt", type=click.Choice(["text", "json"]), default="text",
        help="Output format.",
    )(f)


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--host", "-H", default=None, help="Server host (or set SFTPKIT_HOST).")
@click.option("--port", "-p", type=int, default=None, help="SSH port (or set SFTPKIT_PORT).")
@click.option("--user", "-u", "username", default=None, help="Login name (or set SFTPKIT_USER).")
@click.option("--password", default=None, help="Password (or set SFTPKIT_PASSWORD).")
@click.option("--identity", "-i", "key_filename", type=click.Path(dir_okay=False), default=None,
              help="Private key file (or set SFTPKIT_IDENTITY).")
@click.option("--strict-host-keys", is_flag=True, default=False,
              help="Reject hosts missing from known_hosts.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, host, port, username, password, key_filename, strict_host_keys, verbose):
    """sftpkit: POSIX-like file operations over SFTP.

    \b
    Quick start:
      export SFTPKIT_HOST=example.org SFTPKIT_USER=me
      sftpkit ls /srv/data
      sftpkit mkdir -p /srv/data/2024/06
      sftpkit put report.csv /srv/data/2024/06/
      sftpkit get --resume /srv/data/big.iso big.iso

    \b
    Connection settings come from the options above or from
    SFTPKIT_* environment variables.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["connection"] = {
        "host": host,
        "port": port,
        "username": username,
        "password": password,
        "key_filename": key_filename,
        "strict_host_keys": strict_host_keys or None,
    }
    _configure_logging(verbose)


def _echo_json(value) -> None:
    click.echo(json.dumps(value))
