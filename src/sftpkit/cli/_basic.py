"""Basic commands: ls, stat, mkdir, rm, rmdir, mv, ln, readlink, realpath,
chmod, chown, chgrp, truncate, version."""

from __future__ import annotations

import click

from ..attributes import RenameFlags
from ..selectors import first, glob_filter
from ._helpers import (
    main,
    _attrs_dict,
    _echo_json,
    _format_option,
    _long_line,
    _open_client,
    _parse_octal,
    _sftp_errors,
    _status,
)


# ---------------------------------------------------------------------------
# ls / stat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path", default=".")
@click.option("-l", "--long", "long_", is_flag=True, help="Show mode, owner, size and mtime.")
@click.option("--glob", "pattern", default=None, help="Only list names matching a shell glob.")
@click.option("--limit", type=click.IntRange(min=0), default=None,
              help="Stop reading the directory after N matching entries.")
@_format_option
@click.pass_context
def ls(ctx, path, long_, pattern, limit, fmt):
    """List directory PATH (default: the server's working directory).

    Entries are printed in the order the server returns them.

    \b
    Examples:
        sftpkit ls /srv/data
        sftpkit ls -l --glob '*.csv' /srv/data
        sftpkit ls --limit 10 /var/log
    """
    client = _open_client(ctx)
    predicate = glob_filter(pattern) if pattern else None
    if limit is not None:
        selector = first(limit, predicate)
    else:
        selector = predicate
    with _sftp_errors():
        entries = client.ls(path, selector)

    if fmt == "json":
        if long_:
            _echo_json([{"name": e.name, "path": e.path, **_attrs_dict(e.attributes)} for e in entries])
        else:
            _echo_json([e.name for e in entries])
        return
    for entry in entries:
        if long_:
            click.echo(_long_line(entry))
        elif entry.is_directory:
            click.echo(entry.name + "/")
        else:
            click.echo(entry.name)


@main.command()
@click.argument("path")
@click.option("-L", "--no-dereference", "no_deref", is_flag=True,
              help="Describe a symlink itself rather than its target.")
@_format_option
@click.pass_context
def stat(ctx, path, no_deref, fmt):
    """Show attributes of PATH."""
    client = _open_client(ctx)
    with _sftp_errors():
        attrs = client.lstat(path) if no_deref else client.stat(path)
    info = _attrs_dict(attrs)
    if fmt == "json":
        _echo_json({"path": path, **info})
        return
    click.echo(f"path: {path}")
    for key, value in info.items():
        click.echo(f"{key}: {'-' if value is None else value}")


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------

@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("-p", "--parents", is_flag=True, help="Create missing parents; no error if existing.")
@click.pass_context
def mkdir(ctx, paths, parents):
    """Create directories."""
    client = _open_client(ctx)
    for path in paths:
        with _sftp_errors():
            if parents:
                client.mkdirs(path)
            else:
                client.mkdir(path)
        _status(ctx, f"mkdir {path}")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def rmdir(ctx, paths):
    """Remove empty directories."""
    client = _open_client(ctx)
    for path in paths:
        with _sftp_errors():
            client.rmdir(path)
        _status(ctx, f"rmdir {path}")


# ---------------------------------------------------------------------------
# Files and links
# ---------------------------------------------------------------------------

@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def rm(ctx, paths):
    """Remove files or symlinks."""
    client = _open_client(ctx)
    for path in paths:
        with _sftp_errors():
            client.rm(path)
        _status(ctx, f"rm {path}")


@main.command()
@click.argument("old_path")
@click.argument("new_path")
@click.option("-f", "--overwrite", is_flag=True,
              help="Replace NEW_PATH if it exists (posix-rename extension).")
@click.pass_context
def mv(ctx, old_path, new_path, overwrite):
    """Rename OLD_PATH to NEW_PATH."""
    client = _open_client(ctx)
    flags = RenameFlags.OVERWRITE if overwrite else RenameFlags(0)
    with _sftp_errors():
        client.rename(old_path, new_path, flags)
    _status(ctx, f"mv {old_path} -> {new_path}")


@main.command()
@click.argument("target")
@click.argument("link_path")
@click.pass_context
def ln(ctx, target, link_path):
    """Create symlink LINK_PATH pointing at TARGET."""
    client = _open_client(ctx)
    with _sftp_errors():
        client.symlink(link_path, target)


@main.command()
@click.argument("path")
@click.pass_context
def readlink(ctx, path):
    """Print the target of symlink PATH."""
    client = _open_client(ctx)
    with _sftp_errors():
        click.echo(client.readlink(path))


@main.command()
@click.argument("path", default=".")
@click.pass_context
def realpath(ctx, path):
    """Print the absolute, canonical form of PATH."""
    client = _open_client(ctx)
    with _sftp_errors():
        click.echo(client.canonicalize(path))


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------

@main.command()
@click.argument("mode")
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def chmod(ctx, mode, paths):
    """Set permission bits (octal MODE, e.g. 644)."""
    perms = _parse_octal(mode)
    client = _open_client(ctx)
    for path in paths:
        with _sftp_errors():
            client.chmod(path, perms)


@main.command()
@click.argument("uid", type=int)
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def chown(ctx, uid, paths):
    """Set the owning user id, keeping the group."""
    client = _open_client(ctx)
    for path in paths:
        with _sftp_errors():
            client.chown(path, uid)


@main.command()
@click.argument("gid", type=int)
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def chgrp(ctx, gid, paths):
    """Set the owning group id, keeping the user."""
    client = _open_client(ctx)
    for path in paths:
        with _sftp_errors():
            client.chgrp(path, gid)


@main.command()
@click.argument("size", type=click.IntRange(min=0))
@click.argument("path")
@click.pass_context
def truncate(ctx, size, path):
    """Set the size of PATH in bytes."""
    client = _open_client(ctx)
    with _sftp_errors():
        client.truncate(path, size)


@main.command()
@click.pass_context
def version(ctx):
    """Print the negotiated SFTP protocol version."""
    client = _open_client(ctx)
    click.echo(str(client.version()))
