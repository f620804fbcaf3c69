import os
from contextlib import contextmanager
from logging import getLogger as get_logger
from stat import S_ISDIR
from typing import Callable, Optional, Type

import paramiko

from sftpipe.config import (
    SFTP_CONNECT_TIMEOUT,
    SFTP_HOST_KEY_POLICY,
    SFTP_KEEPALIVE_INTERVAL,
)
from sftpipe.errors import (
    SftpAuthError,
    SftpConnectionError,
    SftpException,
    SftpInternalError,
    SftpNotADirectoryError,
    SftpPathError,
    SftpStateError,
    full_error_message,
    raise_fs_error,
    raise_sftp_error,
)
from sftpipe.interfaces import AttributeRecord, AttributeSequence
from sftpipe.lib.download_engine import DownloadEngine
from sftpipe.lib.fnmatch import fnmatch
from sftpipe.lib.joinpath import basename, expand_path, split_path
from sftpipe.lib.sftp_channel import ParamikoChannel
from sftpipe.lib.upload_engine import UploadEngine

_logger = get_logger(__name__)

__all__ = [
    "SftpSession",
    "get_private_key",
    "provide_connect_info",
    "get_ssh_client",
    "get_sftp_client",
]

SFTP_USERNAME = "SFTP_USERNAME"
SFTP_PASSWORD = "SFTP_PASSWORD"  # nosec B105
SFTP_PRIVATE_KEY_PATH = "SFTP_PRIVATE_KEY_PATH"
SFTP_PRIVATE_KEY_TYPE = "SFTP_PRIVATE_KEY_TYPE"
SFTP_PRIVATE_KEY_PASSWORD = "SFTP_PRIVATE_KEY_PASSWORD"  # nosec B105
DEFAULT_SFTP_PORT = 22
DEFAULT_DIRECTORY_MODE = 0o755


def get_private_key() -> Optional[paramiko.PKey]:
    key_with_types = {
        "RSA": paramiko.RSAKey,
        "ECDSA": paramiko.ECDSAKey,
        "ED25519": paramiko.Ed25519Key,
    }
    key_type = os.getenv(SFTP_PRIVATE_KEY_TYPE, "RSA").upper()
    private_key_path = os.getenv(SFTP_PRIVATE_KEY_PATH)
    if not private_key_path:
        return None
    if key_type not in key_with_types:
        raise ValueError("Unsupported private key type: %r" % key_type)
    with raise_fs_error(private_key_path):
        if not os.path.exists(private_key_path):
            raise FileNotFoundError(
                "Private key file not exist: %r" % private_key_path
            )
        return key_with_types[key_type].from_private_key_file(
            private_key_path, password=os.getenv(SFTP_PRIVATE_KEY_PASSWORD)
        )


def provide_connect_info(
    hostname: str,
    port: Optional[int] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
):
    if not port:
        port = DEFAULT_SFTP_PORT
    if not username:
        username = os.getenv(SFTP_USERNAME)
    if not password:
        password = os.getenv(SFTP_PASSWORD)
    private_key = get_private_key()
    return hostname, port, username, password, private_key


@contextmanager
def raise_connect_error(hostname: str, port: int):
    try:
        yield
    except paramiko.AuthenticationException as error:
        raise SftpAuthError(
            "Authentication failed: %s:%d, error: %s"
            % (hostname, port, full_error_message(error))
        )
    except (paramiko.SSHException, OSError, EOFError) as error:
        raise SftpConnectionError(
            "Connection failed: %s:%d, error: %s"
            % (hostname, port, full_error_message(error))
        )


def get_ssh_client(
    hostname: str,
    port: int,
    username: Optional[str] = None,
    password: Optional[str] = None,
    private_key: Optional[paramiko.PKey] = None,
    default_policy: Type[paramiko.MissingHostKeyPolicy] = paramiko.RejectPolicy,
) -> paramiko.SSHClient:
    """Open an authenticated ssh connection

    Without password and private key, paramiko falls back to the ssh agent
    and the default key files of the current user.
    """
    policies = {
        "auto": paramiko.AutoAddPolicy,
        "reject": paramiko.RejectPolicy,
        "warning": paramiko.WarningPolicy,
    }
    policy = policies.get(SFTP_HOST_KEY_POLICY, default_policy)()  # pyre-ignore[29]

    ssh_client = paramiko.SSHClient()
    try:
        ssh_client.load_system_host_keys()
        ssh_client.set_missing_host_key_policy(policy)
        ssh_client.connect(
            hostname=hostname,
            port=port,
            username=username,
            password=password,
            pkey=private_key,
            timeout=SFTP_CONNECT_TIMEOUT,
            auth_timeout=SFTP_CONNECT_TIMEOUT,
            banner_timeout=SFTP_CONNECT_TIMEOUT,
        )
    except Exception:
        ssh_client.close()
        raise
    return ssh_client


def get_sftp_client(ssh_client: paramiko.SSHClient) -> paramiko.SFTPClient:
    """Start the sftp subsystem on a new channel of an ssh connection"""
    transport = ssh_client.get_transport()
    if not transport:
        raise paramiko.SSHException("Get transport error")
    transport.set_keepalive(SFTP_KEEPALIVE_INTERVAL)
    session = transport.open_session(timeout=SFTP_CONNECT_TIMEOUT)
    if not session:
        raise paramiko.SSHException("Create session error")
    session.invoke_subsystem("sftp")
    return paramiko.SFTPClient(session)


def _make_record(attrs: paramiko.SFTPAttributes, name: str) -> AttributeRecord:
    return AttributeRecord(
        name=name,
        size=attrs.st_size or 0,
        isdir=S_ISDIR(attrs.st_mode) if attrs.st_mode is not None else False,
        mtime=attrs.st_mtime or 0.0,
        extra=attrs,
    )


class SftpSession:
    """An sftp connection and the working directory kept for it on the client

    The protocol itself knows nothing about a working directory: every
    relative path is expanded against :attr:`cwd` before it is sent, and an
    empty path means the working directory itself.

    A session serves one operation at a time. Calls on the same session from
    several threads must be serialized by the caller.
    """

    default_policy = paramiko.RejectPolicy

    def __init__(
        self,
        hostname: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self._ssh_client: Optional[paramiko.SSHClient] = None
        self._client: Optional[paramiko.SFTPClient] = None
        self._channel: Optional[ParamikoChannel] = None
        self._cwd: Optional[str] = None
        self.hostname = hostname
        if hostname:
            self.connect(hostname, port, username, password)

    def __repr__(self) -> str:
        if not self.is_open:
            return "<%s closed>" % self.__class__.__name__
        return "<%s host=%r cwd=%r>" % (
            self.__class__.__name__,
            self.hostname,
            self._cwd,
        )

    def __enter__(self) -> "SftpSession":
        return self

    def __exit__(self, type, value, traceback) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def cwd(self) -> Optional[str]:
        """Absolute remote working directory, None if not connected"""
        return self._cwd

    def connect(
        self,
        hostname: str,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        """Open the connection, closing the current one first

        :param hostname: Remote host name or address
        :param port: Remote port, 22 by default
        :param username: Login name, ``SFTP_USERNAME`` by default
        :param password: Login password, ``SFTP_PASSWORD`` by default
        :raises SftpConnectionError: the host is unreachable or the handshake
            failed
        :raises SftpAuthError: the credentials were rejected
        :raises SftpStateError: the login directory could not be queried
        """
        self.close()
        hostname, port, username, password, private_key = provide_connect_info(
            hostname=hostname, port=port, username=username, password=password
        )
        ssh_client, client = None, None
        try:
            with raise_connect_error(hostname, port):
                ssh_client = get_ssh_client(
                    hostname,
                    port,
                    username,
                    password,
                    private_key,
                    self.default_policy,
                )
                client = get_sftp_client(ssh_client)
            try:
                cwd = client.normalize(".")
            except Exception as error:
                raise SftpStateError(
                    "Cannot query working directory: %s:%d, error: %s"
                    % (hostname, port, full_error_message(error))
                )
            if not cwd:
                raise SftpStateError(
                    "Server sent an empty working directory: %s:%d" % (hostname, port)
                )
        except BaseException:
            if client is not None:
                client.close()
            if ssh_client is not None:
                ssh_client.close()
            raise
        self.hostname = hostname
        self._ssh_client = ssh_client
        self._client = client
        self._channel = ParamikoChannel(client)
        self._cwd = cwd
        _logger.info("sftp session opened: %s:%d, cwd: %r" % (hostname, port, cwd))

    def close(self) -> None:
        """Release the connection, closing twice or never opened is fine"""
        client, self._client = self._client, None
        ssh_client, self._ssh_client = self._ssh_client, None
        self._channel = None
        self._cwd = None
        if client is not None:
            client.close()
            _logger.info("sftp session closed: %s" % self.hostname)
        if ssh_client is not None:
            ssh_client.close()

    disconnect = close

    def _check_open(self) -> paramiko.SFTPClient:
        if self._client is None:
            raise SftpStateError("Sftp session is not connected")
        return self._client

    def resolve(self, path: Optional[str]) -> Optional[str]:
        """Make a remote path absolute against the working directory

        :returns: None if the path is empty
        """
        return expand_path(path, self._cwd)

    def _target(self, path: Optional[str]) -> str:
        self._check_open()
        return self.resolve(path) or self._cwd  # pyre-ignore[7]

    def chdir(self, path: Optional[str]) -> str:
        """Change the working directory

        The new directory is canonicalized by the server. On any failure the
        working directory is left as it was.

        :returns: The new working directory
        :raises SftpNotADirectoryError: the path is not a directory
        """
        client = self._check_open()
        target = self._target(path)
        with raise_sftp_error(target):
            canonical = client.normalize(target)
            attrs = client.stat(canonical)
        if attrs.st_mode is None or not S_ISDIR(attrs.st_mode):
            raise SftpNotADirectoryError("Not a directory: %r" % canonical)
        self._cwd = canonical
        return canonical

    def stat(self, path: Optional[str] = None) -> AttributeRecord:
        """Get metadata of a remote path

        :raises SftpFileNotFoundError: the path does not exist
        :raises SftpPermissionError: the server denied access
        """
        client = self._check_open()
        target = self._target(path)
        with raise_sftp_error(target):
            attrs = client.stat(target)
        name = getattr(attrs, "filename", None) or basename(target)
        if not name:
            raise SftpInternalError("Cannot derive a name for: %r" % target)
        return _make_record(attrs, name)

    def listdir(self, path: Optional[str] = None) -> AttributeSequence:
        """List a remote directory, leaving out every name starting with ``.``

        Entries keep the order in which the server sent them.
        """
        client = self._check_open()
        target = self._target(path)
        records = AttributeSequence()
        with raise_sftp_error(target):
            for attrs in client.listdir_iter(target):
                if attrs.filename.startswith("."):
                    continue
                records.append(_make_record(attrs, attrs.filename))
        return records

    def glob(self, pattern: str) -> AttributeSequence:
        """List the entries of a directory whose name matches a wildcard

        Only the last segment of the pattern may hold wildcards. Hidden
        entries match only patterns that do not start with a wildcard, the
        ``.`` and ``..`` entries never match.
        """
        client = self._check_open()
        dirname, leaf = split_path(self._target(pattern))
        records = AttributeSequence()
        with raise_sftp_error(dirname):
            for attrs in client.listdir_iter(dirname):
                if attrs.filename in (".", ".."):
                    continue
                if fnmatch(attrs.filename, leaf):
                    records.append(_make_record(attrs, attrs.filename))
        return records

    def _is_dir(self, path: str) -> bool:
        try:
            return self.stat(path).is_dir()
        except SftpException:
            return False

    def mkdir(self, path: str, mode: int = DEFAULT_DIRECTORY_MODE) -> None:
        """Create a remote directory, an existing directory is not an error"""
        client = self._check_open()
        target = self._target(path)
        try:
            with raise_sftp_error(target):
                client.mkdir(target, mode)
        except SftpPathError:
            # most servers answer a generic failure for existing directories
            if not self._is_dir(target):
                raise

    def rmdir(self, path: str) -> None:
        client = self._check_open()
        target = self._target(path)
        with raise_sftp_error(target):
            client.rmdir(target)

    def rename(self, src_path: str, dst_path: str) -> None:
        client = self._check_open()
        src_target, dst_target = self._target(src_path), self._target(dst_path)
        with raise_sftp_error(src_target):
            client.rename(src_target, dst_target)

    def unlink(self, path: str) -> None:
        client = self._check_open()
        target = self._target(path)
        with raise_sftp_error(target):
            client.remove(target)

    remove = unlink

    def _check_channel(self) -> ParamikoChannel:
        self._check_open()
        return self._channel  # pyre-ignore[7]

    def download(
        self,
        remote_path: str,
        local_path: str,
        callback: Optional[Callable[[int], None]] = None,
        **kwargs,
    ) -> int:
        """Download a remote file with pipelined read requests

        The local file is created or truncated first. If the transfer fails,
        its content is undefined.

        :param remote_path: Remote file, relative to the working directory
        :param local_path: Local destination file
        :param callback: Called with the number of bytes of every local write
        :param kwargs: ``max_window``, ``max_chunk`` and ``min_chunk`` of
            :class:`DownloadEngine`
        :returns: Number of bytes downloaded
        :raises SftpTransferError: a read request failed or the local write
            failed
        :raises SftpLocalIOError: the local file could not be created or
            closed
        """
        channel = self._check_channel()
        target = self._target(remote_path)
        handle = channel.open_read(target)
        try:
            with raise_fs_error(local_path):
                sink = open(local_path, "wb")
            try:
                size = DownloadEngine(
                    channel, handle, sink, callback=callback, name=target, **kwargs
                ).run()
            except BaseException:
                self._close_sink_quietly(sink, local_path)
                raise
            with raise_fs_error(local_path):
                sink.close()
        except BaseException:
            self._close_quietly(channel, handle)
            raise
        channel.close(handle)
        _logger.info("downloaded: %r -> %r, bytes: %d" % (target, local_path, size))
        return size

    def upload(
        self,
        local_path: str,
        remote_path: str,
        callback: Optional[Callable[[int], None]] = None,
        **kwargs,
    ) -> int:
        """Upload a local file, the remote file gets its permission bits

        A remote file left by a failed upload is not removed.

        :param local_path: Local source file
        :param remote_path: Remote destination, relative to the working
            directory
        :param callback: Called with the number of bytes of every remote write
        :param kwargs: ``block_size`` of :class:`UploadEngine`
        :returns: Number of bytes uploaded
        :raises SftpLocalIOError: the local file could not be read
        """
        channel = self._check_channel()
        target = self._target(remote_path)
        with raise_fs_error(local_path):
            source = open(local_path, "rb")
        with source:
            with raise_fs_error(local_path):
                mode = os.fstat(source.fileno()).st_mode & 0o777
            handle = channel.open_write(target, mode)
            try:
                size = UploadEngine(
                    channel, handle, source, callback=callback, name=target, **kwargs
                ).run()
            except BaseException:
                self._close_quietly(channel, handle)
                raise
            channel.close(handle)
        _logger.info("uploaded: %r -> %r, bytes: %d" % (local_path, target, size))
        return size

    def _close_quietly(self, channel: ParamikoChannel, handle) -> None:
        try:
            channel.close(handle)
        except SftpException as error:
            _logger.debug(
                "close after failed transfer: %r, error: %s"
                % (handle, full_error_message(error))
            )

    def _close_sink_quietly(self, sink, local_path: str) -> None:
        try:
            sink.close()
        except OSError as error:
            _logger.debug(
                "close after failed transfer: %r, error: %s"
                % (local_path, full_error_message(error))
            )
