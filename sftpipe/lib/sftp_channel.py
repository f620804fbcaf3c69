from logging import getLogger as get_logger
from typing import Dict, NamedTuple, Optional, Union

import paramiko
from paramiko.sftp import (
    CMD_CLOSE,
    CMD_DATA,
    CMD_HANDLE,
    CMD_OPEN,
    CMD_READ,
    CMD_STATUS,
    CMD_WRITE,
    SFTP_EOF,
    SFTP_FLAG_CREATE,
    SFTP_FLAG_READ,
    SFTP_FLAG_TRUNC,
    SFTP_FLAG_WRITE,
    int64,
)

from sftpipe.errors import SftpProtocolError, raise_sftp_error, translate_sftp_status
from sftpipe.interfaces import RemoteChannel

_logger = get_logger(__name__)

__all__ = [
    "RemoteHandle",
    "ParamikoChannel",
]

# Largest payload of a single write request accepted by every server
MAX_REQUEST_SIZE = 32768


class RemoteHandle(NamedTuple):
    path: str
    handle: bytes


class ParamikoChannel(RemoteChannel):
    """Pipelined request primitives on top of a ``paramiko.SFTPClient``

    Read requests are registered with the client with this object as their
    owner, so paramiko hands every answer to :meth:`_async_response`,
    whichever call happens to read it from the socket.
    """

    def __init__(self, client: paramiko.SFTPClient):
        self._client = client
        self._owners: Dict[int, RemoteHandle] = {}
        self._responses: Dict[int, Union[bytes, Exception]] = {}

    def _open(
        self, path: str, flags: int, attrs: paramiko.SFTPAttributes
    ) -> RemoteHandle:
        with raise_sftp_error(path):
            t, msg = self._client._request(CMD_OPEN, path, flags, attrs)
            if t != CMD_HANDLE:
                raise paramiko.SFTPError("Expected handle")
            return RemoteHandle(path, msg.get_binary())

    def open_read(self, path: str) -> RemoteHandle:
        return self._open(path, SFTP_FLAG_READ, paramiko.SFTPAttributes())

    def open_write(self, path: str, mode: int) -> RemoteHandle:
        attrs = paramiko.SFTPAttributes()
        attrs.st_mode = mode
        return self._open(
            path, SFTP_FLAG_WRITE | SFTP_FLAG_CREATE | SFTP_FLAG_TRUNC, attrs
        )

    def close(self, handle: RemoteHandle) -> None:
        for num, owner in list(self._owners.items()):
            if owner is handle:
                del self._owners[num]
                self._responses.pop(num, None)
        with raise_sftp_error(handle.path):
            self._client._request(CMD_CLOSE, handle.handle)

    def read_begin(self, handle: RemoteHandle, offset: int, length: int) -> int:
        with raise_sftp_error(handle.path):
            num = self._client._async_request(
                self, CMD_READ, handle.handle, int64(offset), int(length)
            )
        self._owners[num] = handle
        return num

    def _async_response(self, t: int, msg: paramiko.Message, num: int) -> None:
        handle = self._owners.get(num)
        if handle is None:
            _logger.debug("drop answer of abandoned request #%d" % num)
            return
        if t == CMD_DATA:
            self._responses[num] = msg.get_string()
        elif t == CMD_STATUS:
            code = msg.get_int()
            if code == SFTP_EOF:
                self._responses[num] = b""
            else:
                self._responses[num] = translate_sftp_status(
                    code, msg.get_text(), handle.path
                )
        else:
            self._responses[num] = SftpProtocolError(
                "Expected data, got packet type %d: %r" % (t, handle.path)
            )

    def read_poll(self, request_id: int) -> Optional[bytes]:
        handle = self._owners.get(request_id)
        if request_id not in self._responses:
            with raise_sftp_error(handle.path if handle else None):
                while (
                    request_id not in self._responses
                    and self._client.sock.recv_ready()
                ):
                    self._client._read_response()
        if request_id not in self._responses:
            return None
        self._owners.pop(request_id, None)
        response = self._responses.pop(request_id)
        if isinstance(response, Exception):
            raise response
        return response

    def wait(self) -> None:
        with raise_sftp_error(None):
            self._client._read_response()

    def write(self, handle: RemoteHandle, offset: int, data: bytes) -> int:
        written = 0
        with raise_sftp_error(handle.path):
            while written < len(data):
                chunk = data[written : written + MAX_REQUEST_SIZE]
                self._client._request(
                    CMD_WRITE, handle.handle, int64(offset + written), chunk
                )
                written += len(chunk)
        return written
