"""Transfer commands: get, put."""

from __future__ import annotations

import os

import click

from ..exceptions import NoSuchFileError
from ._helpers import main, _open_client, _sftp_errors, _status


def _resume_option(f):
    """Shared --resume / --offset options."""
    f = click.option("--offset", type=click.IntRange(min=0), default=None,
                     help="Start the transfer at this byte offset.")(f)
    f = click.option("--resume", is_flag=True, default=False,
                     help="Continue a partial transfer from the destination's current size.")(f)
    return f


def _pick_offset(resume: bool, offset: int | None, current_size) -> int:
    if resume and offset is not None:
        raise click.UsageError("--resume and --offset are mutually exclusive")
    if offset is not None:
        return offset
    if resume:
        return current_size()
    return 0


@main.command()
@click.argument("remote_path")
@click.argument("local_path", type=click.Path(), default=".")
@_resume_option
@click.pass_context
def get(ctx, remote_path, local_path, resume, offset):
    """Download REMOTE_PATH to LOCAL_PATH (directories recursively).

    \b
    Examples:
        sftpkit get /srv/data/report.csv .
        sftpkit get --resume /srv/iso/big.iso big.iso
    """
    client = _open_client(ctx)

    def _local_size() -> int:
        if client.is_dir(remote_path):
            return 0
        target = local_path
        if os.path.isdir(target):
            target = os.path.join(target, remote_path.rstrip("/").rsplit("/", 1)[-1])
        try:
            return os.path.getsize(target)
        except FileNotFoundError:
            return 0

    with _sftp_errors():
        byte_offset = _pick_offset(resume, offset, _local_size)
        client.get(remote_path, local_path, byte_offset)
    _status(ctx, f"get {remote_path} -> {local_path} (from byte {byte_offset})")


@main.command()
@click.argument("local_path", type=click.Path(exists=True))
@click.argument("remote_path")
@_resume_option
@click.pass_context
def put(ctx, local_path, remote_path, resume, offset):
    """Upload LOCAL_PATH to REMOTE_PATH (directories recursively).

    \b
    Examples:
        sftpkit put report.csv /srv/data/
        sftpkit put --resume big.iso /srv/iso/big.iso
    """
    client = _open_client(ctx)

    def _remote_size() -> int:
        if os.path.isdir(local_path):
            return 0
        target = remote_path
        if client.is_dir(target):
            target = target.rstrip("/") + "/" + os.path.basename(local_path.rstrip(os.sep))
        try:
            return client.size(target) or 0
        except NoSuchFileError:
            return 0

    with _sftp_errors():
        byte_offset = _pick_offset(resume, offset, _remote_size)
        client.put(local_path, remote_path, byte_offset)
    _status(ctx, f"put {local_path} -> {remote_path} (from byte {byte_offset})")
