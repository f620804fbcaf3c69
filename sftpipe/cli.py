import os
import signal
import sys
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple
from urllib.parse import urlsplit

import click
from tqdm import tqdm

from sftpipe.config import set_log_level
from sftpipe.interfaces import AttributeRecord
from sftpipe.lib.joinpath import basename, path_join
from sftpipe.sftp import (
    sftp_chdir,
    sftp_close_session,
    sftp_delete,
    sftp_dir,
    sftp_download,
    sftp_mget,
    sftp_mkdir,
    sftp_mput,
    sftp_open_session,
    sftp_rename,
    sftp_rmdir,
    sftp_stat,
    sftp_upload,
)
from sftpipe.utils import get_human_size
from sftpipe.version import VERSION

options = {}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Set logging level.",
)
def cli(debug, log_level):
    """
    Client for sftpipe.

    Remote paths are urls like ``sftp://[user[:password]@]host[:port]/path``,
    the path is relative to the login directory, use ``//path`` for an
    absolute one.
    """
    options["debug"] = debug
    options["log_level"] = log_level or ("DEBUG" if debug else "INFO")
    set_log_level(options["log_level"])


def safe_cli():  # pragma: no cover
    debug = options.get("debug", False)
    if not debug:
        signal.signal(signal.SIGINT, signal.SIG_DFL)
    try:
        cli()
    except Exception as e:
        if debug:
            raise
        else:
            click.echo(f"\n[{type(e).__name__}] {e}", err=True)
            sys.exit(1)


def split_url(url: str) -> Tuple[str, Optional[int], Optional[str], Optional[str], str]:
    """Split an sftp url in hostname, port, username, password and path

    The path keeps one leading ``/`` when absolute and none when relative to
    the login directory.
    """
    parts = urlsplit(url)
    if parts.scheme != "sftp" or not parts.hostname:
        raise click.BadParameter("Not an sftp url: %r" % url)
    if parts.path.startswith("//"):
        path = "/" + parts.path.lstrip("/")
    else:
        path = parts.path.lstrip("/")
    return parts.hostname, parts.port, parts.username, parts.password, path


@contextmanager
def open_url(url: str) -> Iterator[Tuple[int, str]]:
    hostname, port, username, password, path = split_url(url)
    handle = sftp_open_session(hostname, port, username, password)
    try:
        yield handle, path
    finally:
        sftp_close_session(handle)


def simple_echo(record: AttributeRecord) -> str:
    return record.name


def long_echo(record: AttributeRecord) -> str:
    return "%12d %s %s" % (
        record.size,
        time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.mtime)),
        record.name + ("/" if record.is_dir() else ""),
    )


def human_echo(record: AttributeRecord) -> str:
    return "%10s %s %s" % (
        get_human_size(record.size),
        time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.mtime)),
        record.name + ("/" if record.is_dir() else ""),
    )


def _progress_bar(total: int) -> tqdm:
    return tqdm(
        total=total,
        unit="B",
        ascii=True,
        unit_scale=True,
        unit_divisor=1024,
    )


@cli.command(short_help="List the entries of a directory or wildcard.")
@click.argument("url")
@click.option(
    "-l",
    "--long",
    is_flag=True,
    help="List all the entries with size, modification time and name.",
)
@click.option(
    "-h",
    "--human-readable",
    is_flag=True,
    help="Displays file sizes in human readable format.",
)
def ls(url: str, long: bool, human_readable: bool):
    if long:
        echo_func = human_echo if human_readable else long_echo
    else:
        echo_func = simple_echo

    total_size = 0
    total_count = 0
    with open_url(url) as (handle, path):
        for record in sftp_dir(handle, path):
            total_size += record.size
            total_count += 1
            click.echo(echo_func(record))
    if long:
        click.echo(f"total({total_count}): {get_human_size(total_size)}")


@cli.command(short_help="Return the stat of a remote path.")
@click.argument("url")
def stat(url: str):
    with open_url(url) as (handle, path):
        click.echo(sftp_stat(handle, path))


@cli.command(short_help="Download a remote file.")
@click.argument("url")
@click.argument("local_path", required=False)
@click.option("-g", "--progress-bar", is_flag=True, help="Show progress bar.")
def get(url: str, local_path: Optional[str], progress_bar: bool):
    with open_url(url) as (handle, path):
        if not local_path:
            local_path = basename(path)
        elif local_path.endswith("/") or os.path.isdir(local_path):
            local_path = os.path.join(local_path, basename(path))

        if progress_bar:
            sbar = _progress_bar(sftp_stat(handle, path).size)

            def callback(length: int):
                sbar.update(length)

            sftp_download(handle, path, local_path, callback=callback)
            sbar.close()
        else:
            sftp_download(handle, path, local_path)


@cli.command(short_help="Upload a local file.")
@click.argument("local_path")
@click.argument("url")
@click.option("-g", "--progress-bar", is_flag=True, help="Show progress bar.")
def put(local_path: str, url: str, progress_bar: bool):
    with open_url(url) as (handle, path):
        if not path or path.endswith("/"):
            path = path + os.path.basename(local_path)

        if progress_bar:
            sbar = _progress_bar(os.stat(local_path).st_size)

            def callback(length: int):
                sbar.update(length)

            sftp_upload(handle, local_path, path, callback=callback)
            sbar.close()
        else:
            sftp_upload(handle, local_path, path)


@cli.command(short_help="Download files, directory trees or wildcard matches.")
@click.argument("url")
@click.argument("target", required=False)
def mget(url: str, target: Optional[str]):
    with open_url(url) as (handle, path):
        for local_path in sftp_mget(handle, path, target):
            click.echo(local_path)


@cli.command(short_help="Upload files, directory trees or wildcard matches.")
@click.argument("local_path")
@click.argument("url")
def mput(local_path: str, url: str):
    with open_url(url) as (handle, path):
        if path:
            sftp_chdir(handle, path)
        for remote_path in sftp_mput(handle, local_path):
            click.echo(remote_path)


@cli.command(short_help="Make the directory if it doesn't already exist.")
@click.argument("url")
def mkdir(url: str):
    with open_url(url) as (handle, path):
        sftp_mkdir(handle, path)


@cli.command(short_help="Remove an empty directory.")
@click.argument("url")
def rmdir(url: str):
    with open_url(url) as (handle, path):
        sftp_rmdir(handle, path)


@cli.command(short_help="Rename a remote path on the same host.")
@click.argument("url")
@click.argument("dst_path")
def mv(url: str, dst_path: str):
    if dst_path.startswith("sftp://"):
        dst_path = split_url(dst_path)[-1]
    with open_url(url) as (handle, path):
        if dst_path.endswith("/"):
            dst_path = path_join(dst_path, basename(path))
        sftp_rename(handle, path, dst_path)


@cli.command(short_help="Remove files, wildcards are supported.")
@click.argument("url")
def rm(url: str):
    with open_url(url) as (handle, path):
        for remote_path in sftp_delete(handle, path):
            click.echo("removed %s" % remote_path)


@cli.command(short_help="Return the sftpipe version.")
def version():
    click.echo(VERSION)


if __name__ == "__main__":
    # Usage: python -m sftpipe.cli
    safe_cli()  # pragma: no cover
