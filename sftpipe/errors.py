import errno
import socket
from contextlib import contextmanager
from typing import Optional

import paramiko

from sftpipe.interfaces import PathLike

__all__ = [
    "SFTP_OK",
    "SFTP_EOF",
    "SFTP_NO_SUCH_FILE",
    "SFTP_PERMISSION_DENIED",
    "SFTP_FAILURE",
    "SFTP_BAD_MESSAGE",
    "SFTP_NO_CONNECTION",
    "SFTP_CONNECTION_LOST",
    "SFTP_OP_UNSUPPORTED",
    "SFTP_INVALID_HANDLE",
    "SFTP_NO_SUCH_PATH",
    "SFTP_FILE_ALREADY_EXISTS",
    "SFTP_WRITE_PROTECT",
    "SFTP_NO_MEDIA",
    "SftpException",
    "SftpConnectionError",
    "SftpAuthError",
    "SftpStateError",
    "SftpPathError",
    "SftpFileNotFoundError",
    "SftpNotADirectoryError",
    "SftpPermissionError",
    "SftpFileExistsError",
    "SftpFailureError",
    "SftpProtocolError",
    "SftpLocalIOError",
    "SftpMemoryError",
    "SftpTransferError",
    "SftpInternalError",
    "full_error_message",
    "status_message",
    "translate_sftp_status",
    "translate_sftp_error",
    "translate_fs_error",
    "raise_sftp_error",
]

# Status codes of the SFTP protocol, the first nine are the ones defined by
# version 3 (and by paramiko), the rest were added in later drafts.
SFTP_OK = 0
SFTP_EOF = 1
SFTP_NO_SUCH_FILE = 2
SFTP_PERMISSION_DENIED = 3
SFTP_FAILURE = 4
SFTP_BAD_MESSAGE = 5
SFTP_NO_CONNECTION = 6
SFTP_CONNECTION_LOST = 7
SFTP_OP_UNSUPPORTED = 8
SFTP_INVALID_HANDLE = 9
SFTP_NO_SUCH_PATH = 10
SFTP_FILE_ALREADY_EXISTS = 11
SFTP_WRITE_PROTECT = 12
SFTP_NO_MEDIA = 13

# Client side conditions that have no protocol status
CONNECTION_ERROR = -1
AUTH_ERROR = -2
STATE_ERROR = -3
LOCAL_IO_ERROR = -4
MEMORY_ERROR = -5
TRANSFER_ERROR = -6
INTERNAL_ERROR = -7
NOT_A_DIRECTORY = -8

_STATUS_MESSAGES = {
    SFTP_OK: "No error",
    SFTP_EOF: "Unexpected end-of-file",
    SFTP_NO_SUCH_FILE: "File doesn't exist",
    SFTP_PERMISSION_DENIED: "Permission denied",
    SFTP_FAILURE: "Generic failure",
    SFTP_BAD_MESSAGE: "Garbage received from server",
    SFTP_NO_CONNECTION: "No connection set up",
    SFTP_CONNECTION_LOST: "Connection lost",
    SFTP_OP_UNSUPPORTED: "Operation not supported",
    SFTP_INVALID_HANDLE: "Invalid file handle",
    SFTP_NO_SUCH_PATH: "No such file or directory",
    SFTP_FILE_ALREADY_EXISTS: "File already exists",
    SFTP_WRITE_PROTECT: "Write-protected filesystem",
    SFTP_NO_MEDIA: "No media in remote drive",
}


def status_message(code: int) -> str:
    return _STATUS_MESSAGES.get(code, "Unknown status: %d" % code)


def full_class_name(obj):
    module = obj.__class__.__module__
    if module is None or module == str.__class__.__module__:
        return obj.__class__.__name__  # Avoid reporting __builtin__
    else:
        return module + "." + obj.__class__.__name__


def full_error_message(error):
    return "%s(%r)" % (full_class_name(error), str(error))


class SftpException(Exception):
    """
    Base type for all sftpipe errors, should NOT be constructed directly.
    When you try to do so, consider adding a new type of error.

    Every error carries a numeric ``code``: the SFTP status code when the
    server reported one, a negative number for client side conditions.
    """

    code = SFTP_FAILURE

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def __reduce__(self):
        return (self.__class__, (self.message, self.code))


class SftpConnectionError(SftpException, ConnectionError):
    code = CONNECTION_ERROR


class SftpAuthError(SftpException, PermissionError):
    code = AUTH_ERROR


class SftpStateError(SftpException):
    """Operation on a closed, never opened or unknown session"""

    code = STATE_ERROR


class SftpPathError(SftpException, OSError):
    code = SFTP_FAILURE


class SftpFileNotFoundError(SftpPathError, FileNotFoundError):
    code = SFTP_NO_SUCH_FILE


class SftpNotADirectoryError(SftpPathError, NotADirectoryError):
    code = NOT_A_DIRECTORY


class SftpPermissionError(SftpPathError, PermissionError):
    code = SFTP_PERMISSION_DENIED


class SftpFileExistsError(SftpPathError, FileExistsError):
    code = SFTP_FILE_ALREADY_EXISTS


class SftpFailureError(SftpPathError):
    """The server answered with a generic failure status"""

    code = SFTP_FAILURE


class SftpProtocolError(SftpException):
    """Malformed response, unsupported operation or lost connection"""

    code = SFTP_BAD_MESSAGE


class SftpLocalIOError(SftpException, OSError):
    code = LOCAL_IO_ERROR


class SftpMemoryError(SftpException, MemoryError):
    code = MEMORY_ERROR


class SftpTransferError(SftpException):
    """Fatal condition inside a download or upload"""

    code = TRANSFER_ERROR


class SftpInternalError(SftpException):
    code = INTERNAL_ERROR


def translate_sftp_status(code: int, text: Optional[str], path: PathLike) -> Exception:
    """Generate exception according to a status response of the server

    :param code: SFTP status code
    :param text: Error message sent by the server, may be empty
    :param path: Remote path the request was about
    """
    message = "%s: %r" % (text or status_message(code), path)
    if code in (SFTP_NO_SUCH_FILE, SFTP_NO_SUCH_PATH):
        return SftpFileNotFoundError(message, code)
    if code in (SFTP_PERMISSION_DENIED, SFTP_WRITE_PROTECT):
        return SftpPermissionError(message, code)
    if code == SFTP_FILE_ALREADY_EXISTS:
        return SftpFileExistsError(message, code)
    if code in (
        SFTP_EOF,
        SFTP_BAD_MESSAGE,
        SFTP_NO_CONNECTION,
        SFTP_CONNECTION_LOST,
        SFTP_OP_UNSUPPORTED,
        SFTP_INVALID_HANDLE,
    ):
        return SftpProtocolError(message, code)
    return SftpFailureError(message, code)


def translate_sftp_error(sftp_error: Exception, sftp_path: PathLike) -> Exception:
    """Generate exception according to the error raised by paramiko

    paramiko converts status responses into ``IOError`` (with ``errno`` set
    only for missing files and denied permissions) and ``EOFError``, lost
    transports surface as ``SSHException`` or socket errors.

    :param sftp_error: error raised by paramiko
    :param sftp_path: remote path
    """
    if isinstance(sftp_error, SftpException):
        return sftp_error
    if isinstance(sftp_error, paramiko.AuthenticationException):
        return SftpAuthError(
            "Authentication failed: %r, error: %s"
            % (sftp_path, full_error_message(sftp_error))
        )
    if isinstance(sftp_error, paramiko.SFTPError):
        return SftpProtocolError(
            "Garbage received from server: %r, error: %s"
            % (sftp_path, full_error_message(sftp_error)),
            SFTP_BAD_MESSAGE,
        )
    if isinstance(
        sftp_error, (paramiko.SSHException, EOFError, socket.timeout, ConnectionError)
    ):
        return SftpProtocolError(
            "Connection lost: %r, error: %s"
            % (sftp_path, full_error_message(sftp_error)),
            SFTP_CONNECTION_LOST,
        )
    if isinstance(sftp_error, MemoryError):
        return SftpMemoryError("Memory error: %r" % sftp_path)
    if isinstance(sftp_error, OSError):
        text = sftp_error.strerror or str(sftp_error)
        if sftp_error.errno == errno.ENOENT:
            return translate_sftp_status(SFTP_NO_SUCH_FILE, text, sftp_path)
        if sftp_error.errno == errno.EACCES:
            return translate_sftp_status(SFTP_PERMISSION_DENIED, text, sftp_path)
        if sftp_error.errno == errno.EEXIST:
            return translate_sftp_status(SFTP_FILE_ALREADY_EXISTS, text, sftp_path)
        if "Socket is closed" in text:
            return translate_sftp_status(SFTP_CONNECTION_LOST, text, sftp_path)
        return translate_sftp_status(SFTP_FAILURE, text, sftp_path)
    return SftpInternalError(
        "Unknown error encountered: %r, error: %s"
        % (sftp_path, full_error_message(sftp_error))
    )


def translate_fs_error(fs_error: Exception, fs_path: PathLike) -> Exception:
    """Wrap an error of the local side of a transfer"""
    if isinstance(fs_error, SftpException):
        return fs_error
    if isinstance(fs_error, MemoryError):
        return SftpMemoryError("Memory error: %r" % fs_path)
    return SftpLocalIOError(
        "Local I/O error: %r, error: %s" % (fs_path, full_error_message(fs_error))
    )


@contextmanager
def raise_sftp_error(sftp_path: PathLike):
    try:
        yield
    except Exception as error:
        raise translate_sftp_error(error, sftp_path)


@contextmanager
def raise_fs_error(fs_path: PathLike):
    try:
        yield
    except (OSError, MemoryError) as error:
        raise translate_fs_error(error, fs_path)
