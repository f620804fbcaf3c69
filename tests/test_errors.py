import errno
import pickle
import socket

import paramiko
import pytest

from sftpipe.errors import (
    AUTH_ERROR,
    INTERNAL_ERROR,
    LOCAL_IO_ERROR,
    MEMORY_ERROR,
    SFTP_BAD_MESSAGE,
    SFTP_CONNECTION_LOST,
    SFTP_EOF,
    SFTP_FAILURE,
    SFTP_FILE_ALREADY_EXISTS,
    SFTP_NO_MEDIA,
    SFTP_NO_SUCH_FILE,
    SFTP_NO_SUCH_PATH,
    SFTP_OP_UNSUPPORTED,
    SFTP_PERMISSION_DENIED,
    SFTP_WRITE_PROTECT,
    SftpAuthError,
    SftpException,
    SftpFailureError,
    SftpFileExistsError,
    SftpFileNotFoundError,
    SftpInternalError,
    SftpLocalIOError,
    SftpMemoryError,
    SftpNotADirectoryError,
    SftpPermissionError,
    SftpProtocolError,
    SftpStateError,
    SftpTransferError,
    raise_fs_error,
    raise_sftp_error,
    status_message,
    translate_fs_error,
    translate_sftp_error,
    translate_sftp_status,
)


def test_status_message():
    assert status_message(SFTP_NO_SUCH_FILE) == "File doesn't exist"
    assert status_message(SFTP_NO_MEDIA) == "No media in remote drive"
    assert status_message(99) == "Unknown status: 99"


@pytest.mark.parametrize(
    "code, error_class",
    [
        (SFTP_EOF, SftpProtocolError),
        (SFTP_NO_SUCH_FILE, SftpFileNotFoundError),
        (SFTP_NO_SUCH_PATH, SftpFileNotFoundError),
        (SFTP_PERMISSION_DENIED, SftpPermissionError),
        (SFTP_WRITE_PROTECT, SftpPermissionError),
        (SFTP_FILE_ALREADY_EXISTS, SftpFileExistsError),
        (SFTP_FAILURE, SftpFailureError),
        (SFTP_BAD_MESSAGE, SftpProtocolError),
        (SFTP_CONNECTION_LOST, SftpProtocolError),
        (SFTP_OP_UNSUPPORTED, SftpProtocolError),
        (SFTP_NO_MEDIA, SftpFailureError),
    ],
)
def test_translate_sftp_status(code, error_class):
    error = translate_sftp_status(code, "", "/remote/file")
    assert type(error) is error_class
    assert error.code == code
    assert status_message(code) in str(error)
    assert "/remote/file" in str(error)


def test_translate_sftp_status_server_text():
    error = translate_sftp_status(SFTP_FAILURE, "Directory not empty", "/dir")
    assert str(error) == "Directory not empty: '/dir'"


def test_error_base_classes():
    assert isinstance(SftpFileNotFoundError("x"), FileNotFoundError)
    assert isinstance(SftpPermissionError("x"), PermissionError)
    assert isinstance(SftpFileExistsError("x"), FileExistsError)
    assert isinstance(SftpNotADirectoryError("x"), NotADirectoryError)
    assert isinstance(SftpAuthError("x"), PermissionError)
    assert isinstance(SftpLocalIOError("x"), OSError)
    assert isinstance(SftpMemoryError("x"), MemoryError)
    for error_class in (SftpStateError, SftpTransferError, SftpInternalError):
        assert issubclass(error_class, SftpException)
        assert not issubclass(error_class, OSError)


@pytest.mark.parametrize(
    "error, error_class, code",
    [
        (
            paramiko.AuthenticationException("bad password"),
            SftpAuthError,
            AUTH_ERROR,
        ),
        (paramiko.SFTPError("Expected handle"), SftpProtocolError, SFTP_BAD_MESSAGE),
        (paramiko.SSHException("closed"), SftpProtocolError, SFTP_CONNECTION_LOST),
        (EOFError(), SftpProtocolError, SFTP_CONNECTION_LOST),
        (socket.timeout(), SftpProtocolError, SFTP_CONNECTION_LOST),
        (ConnectionResetError(), SftpProtocolError, SFTP_CONNECTION_LOST),
        (MemoryError(), SftpMemoryError, MEMORY_ERROR),
        (IOError(errno.ENOENT, "No such file"), SftpFileNotFoundError, 2),
        (IOError(errno.EACCES, "Permission denied"), SftpPermissionError, 3),
        (IOError(errno.EEXIST, "File exists"), SftpFileExistsError, 11),
        (OSError("Socket is closed"), SftpProtocolError, SFTP_CONNECTION_LOST),
        (IOError("Failure"), SftpFailureError, SFTP_FAILURE),
        (ValueError("unknown"), SftpInternalError, INTERNAL_ERROR),
    ],
)
def test_translate_sftp_error(error, error_class, code):
    translated = translate_sftp_error(error, "/remote/file")
    assert type(translated) is error_class
    assert translated.code == code


def test_translate_sftp_error_keeps_sftp_exception():
    error = SftpStateError("closed")
    assert translate_sftp_error(error, "/remote/file") is error


def test_translate_fs_error():
    error = translate_fs_error(OSError(1, "test"), "/local/file")
    assert isinstance(error, SftpLocalIOError)
    assert error.code == LOCAL_IO_ERROR
    assert "/local/file" in str(error)

    assert isinstance(translate_fs_error(MemoryError(), "/local"), SftpMemoryError)


def test_raise_sftp_error():
    with pytest.raises(SftpFileNotFoundError) as error:
        with raise_sftp_error("/remote/file"):
            raise IOError(errno.ENOENT, "No such file")
    assert isinstance(error.value.__context__, IOError)


def test_raise_fs_error():
    with pytest.raises(SftpLocalIOError):
        with raise_fs_error("/local/file"):
            raise IsADirectoryError(errno.EISDIR, "Is a directory")

    with pytest.raises(SftpMemoryError) as error:
        with raise_fs_error("/local/file"):
            raise MemoryError()
    assert error.value.code == MEMORY_ERROR

    with pytest.raises(ValueError):
        with raise_fs_error("/local/file"):
            raise ValueError("not an io error")


@pytest.mark.parametrize(
    "error",
    [
        SftpFileNotFoundError("No such file: '/remote/file'", SFTP_NO_SUCH_PATH),
        SftpProtocolError("Connection lost", SFTP_CONNECTION_LOST),
        SftpTransferError("Remote read failed"),
        SftpStateError("Sftp session is not connected"),
    ],
)
def test_pickle_error(error):
    unpickled = pickle.loads(pickle.dumps(error))
    assert type(unpickled) is type(error)
    assert unpickled.code == error.code
    assert str(unpickled) == str(error)
    assert unpickled.message == error.message
