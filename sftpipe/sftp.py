import os
from typing import Callable, List, Optional, Tuple

from sftpipe.errors import SftpFileNotFoundError, raise_fs_error
from sftpipe.interfaces import AttributeRecord, AttributeSequence
from sftpipe.lib.fnmatch import filter as fnmatch_filter
from sftpipe.lib.fnmatch import has_magic
from sftpipe.lib.handle_table import HandleTable
from sftpipe.lib.joinpath import path_join
from sftpipe.sftp_session import SftpSession

__all__ = [
    "parse_host",
    "sftp_open_session",
    "sftp_connect",
    "sftp_close_session",
    "sftp_disconnect",
    "sftp_getcwd",
    "sftp_chdir",
    "sftp_stat",
    "sftp_listdir",
    "sftp_glob",
    "sftp_mkdir",
    "sftp_rmdir",
    "sftp_rename",
    "sftp_unlink",
    "sftp_download",
    "sftp_upload",
    "sftp_dir",
    "sftp_mget",
    "sftp_mput",
    "sftp_delete",
]

_sessions: HandleTable[SftpSession] = HandleTable()


def _get_session(handle: int) -> SftpSession:
    return _sessions.get(handle)


def parse_host(host: str) -> Tuple[str, Optional[int]]:
    """Split ``host:port``, the port is None when absent

    :raises ValueError: the port is not a number
    """
    if host.count(":") != 1:
        return host, None
    hostname, _, port = host.partition(":")
    if not port:
        return hostname, None
    try:
        return hostname, int(port)
    except ValueError:
        raise ValueError("Invalid port: %r" % host)


def sftp_open_session(
    host: Optional[str] = None,
    port: Optional[int] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> int:
    """Create a session and return its handle

    Without host, the session is created unconnected, use :func:`sftp_connect`
    to open it later. ``host`` may carry the port as ``host:port``.

    :returns: Opaque session handle
    :raises SftpConnectionError: the host is unreachable or the handshake
        failed
    :raises SftpAuthError: the credentials were rejected
    :raises SftpStateError: the login directory could not be queried
    """
    session = SftpSession()
    if host:
        hostname, host_port = parse_host(host)
        session.connect(hostname, port or host_port, username, password)
    return _sessions.add(session)


def sftp_connect(
    handle: int,
    host: str,
    port: Optional[int] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> None:
    """(Re)connect the session of a handle, closing its current connection"""
    hostname, host_port = parse_host(host)
    _get_session(handle).connect(hostname, port or host_port, username, password)


def sftp_close_session(handle: int) -> None:
    """Close a session and release its handle, unknown handles are ignored"""
    session = _sessions.remove(handle)
    if session is not None:
        session.close()


def sftp_disconnect(handle: int) -> None:
    """Close the connection of a session, keeping the handle usable"""
    _get_session(handle).disconnect()


def sftp_getcwd(handle: int) -> Optional[str]:
    return _get_session(handle).cwd


def sftp_chdir(handle: int, path: Optional[str]) -> str:
    return _get_session(handle).chdir(path)


def sftp_stat(handle: int, path: Optional[str] = None) -> AttributeRecord:
    return _get_session(handle).stat(path)


def sftp_listdir(handle: int, path: Optional[str] = None) -> AttributeSequence:
    return _get_session(handle).listdir(path)


def sftp_glob(handle: int, pattern: str) -> AttributeSequence:
    return _get_session(handle).glob(pattern)


def sftp_mkdir(handle: int, path: str) -> None:
    _get_session(handle).mkdir(path)


def sftp_rmdir(handle: int, path: str) -> None:
    _get_session(handle).rmdir(path)


def sftp_rename(handle: int, src_path: str, dst_path: str) -> None:
    _get_session(handle).rename(src_path, dst_path)


def sftp_unlink(handle: int, path: str) -> None:
    _get_session(handle).unlink(path)


def sftp_download(
    handle: int,
    remote_path: str,
    local_path: str,
    callback: Optional[Callable[[int], None]] = None,
    **kwargs,
) -> int:
    """
    Downloads a file from sftp to local filesystem.

    :param handle: Session handle
    :param remote_path: source sftp path
    :param local_path: target fs path
    :param callback: Called periodically during copy, and the input parameter is
        the data size (in bytes) of copy since the last call
    :returns: Number of bytes downloaded
    """
    return _get_session(handle).download(remote_path, local_path, callback, **kwargs)


def sftp_upload(
    handle: int,
    local_path: str,
    remote_path: str,
    callback: Optional[Callable[[int], None]] = None,
    **kwargs,
) -> int:
    """
    Uploads a file from local filesystem to sftp server.

    :param handle: Session handle
    :param local_path: source fs path
    :param remote_path: target sftp path
    :param callback: Called periodically during copy, and the input parameter is
        the data size (in bytes) of copy since the last call
    :returns: Number of bytes uploaded
    """
    return _get_session(handle).upload(local_path, remote_path, callback, **kwargs)


def _lookup(session: SftpSession, path: Optional[str]) -> AttributeSequence:
    """The entry of a path, or the entries matching it as a wildcard"""
    try:
        record = session.stat(path)
    except SftpFileNotFoundError:
        if not path or not has_magic(path):
            raise
        return session.glob(path)
    records = AttributeSequence()
    records.append(record)
    return records


def _remote_prefix(path: Optional[str]) -> str:
    if not path or "/" not in path:
        return ""
    return path[: path.rindex("/") + 1]


def sftp_dir(handle: int, path: Optional[str] = None) -> AttributeSequence:
    """List a directory, or the entries matching a wildcard

    A path naming a file lists that file alone.
    """
    session = _get_session(handle)
    records = _lookup(session, path)
    if len(records) == 1 and records[0].is_dir() and not has_magic(path or ""):
        return session.listdir(path)
    return records


def sftp_mget(
    handle: int,
    path: str,
    target: Optional[str] = None,
    callback: Optional[Callable[[int], None]] = None,
) -> List[str]:
    """Download a file, a directory tree or every entry matching a wildcard

    Remote paths are mirrored below ``target``: ``a/b/*.txt`` lands in
    ``target/a/b/``. Missing local directories are created.

    :param handle: Session handle
    :param path: Remote path or wildcard
    :param target: Local directory, the current one by default
    :param callback: Progress callback passed on to every download
    :returns: Local paths of every file and directory written, in the
        order they were processed
    :raises SftpFileNotFoundError: nothing matches path
    """
    session = _get_session(handle)
    path = path.rstrip("/") or path
    target = target or os.getcwd()
    records = _lookup(session, path)
    if not records:
        raise SftpFileNotFoundError("No such file or directory: %r" % path)
    prefix = _remote_prefix(path)
    local_prefix = os.path.join(target, prefix.lstrip("/"))
    with raise_fs_error(local_prefix):
        os.makedirs(local_prefix, exist_ok=True)

    stack = [(prefix + record.name, record.is_dir()) for record in records]
    local_paths = []
    while stack:
        remote_path, is_dir = stack.pop()
        local_path = os.path.join(target, remote_path.lstrip("/"))
        if is_dir:
            with raise_fs_error(local_path):
                os.makedirs(local_path, exist_ok=True)
            for record in session.listdir(remote_path):
                stack.append((path_join(remote_path, record.name), record.is_dir()))
        else:
            session.download(remote_path, local_path, callback)
        local_paths.append(local_path)
    return local_paths


def _local_lookup(path: str) -> Tuple[str, List[Tuple[str, bool]]]:
    if os.path.exists(path):
        source, name = os.path.split(os.path.abspath(path))
        return source, [(name, os.path.isdir(path))]
    source, pattern = os.path.split(path)
    source = source or os.getcwd()
    if not has_magic(pattern):
        raise SftpFileNotFoundError("No such file or directory: %r" % path)
    with raise_fs_error(source):
        names = sorted(os.listdir(source))
    entries = [
        (name, os.path.isdir(os.path.join(source, name)))
        for name in fnmatch_filter(names, pattern)
    ]
    return source, entries


def sftp_mput(
    handle: int,
    path: str,
    callback: Optional[Callable[[int], None]] = None,
) -> List[str]:
    """Upload a local file, a directory tree or every entry matching a wildcard

    Everything lands in the remote working directory, missing remote
    directories are created.

    :param handle: Session handle
    :param path: Local path or wildcard
    :param callback: Progress callback passed on to every upload
    :returns: Remote paths of every file and directory written, in the
        order they were processed
    :raises SftpFileNotFoundError: the local path does not exist
    """
    session = _get_session(handle)
    source, entries = _local_lookup(path)
    target = session.cwd or ""
    stack = list(entries)
    remote_paths = []
    while stack:
        relative_path, is_dir = stack.pop()
        local_path = os.path.join(source, relative_path)
        remote_path = path_join(target, relative_path)
        if is_dir:
            session.mkdir(remote_path)
            with raise_fs_error(local_path):
                names = sorted(os.listdir(local_path))
            for name in names:
                stack.append(
                    (
                        "/".join([relative_path, name]),
                        os.path.isdir(os.path.join(local_path, name)),
                    )
                )
        else:
            session.upload(local_path, remote_path, callback)
        remote_paths.append(remote_path)
    return remote_paths


def sftp_delete(handle: int, pattern: str) -> List[str]:
    """Delete a remote file, or every entry matching a wildcard

    :returns: Paths deleted, as given relative to the working directory
    """
    session = _get_session(handle)
    prefix = _remote_prefix(pattern)
    deleted = []
    for record in _lookup(session, pattern):
        session.unlink(prefix + record.name)
        deleted.append(prefix + record.name)
    return deleted
