from logging import getLogger as get_logger
from typing import IO, Any, Callable, Optional

from sftpipe.config import SFTP_UPLOAD_BLOCK_SIZE
from sftpipe.errors import SftpTransferError, raise_fs_error
from sftpipe.interfaces import RemoteChannel

_logger = get_logger(__name__)

__all__ = [
    "UploadEngine",
]


class UploadEngine:
    """Copy a local stream into an open remote file, one block at a time

    Every block is written synchronously before the next one is read, there
    is never more than one write request outstanding.
    """

    def __init__(
        self,
        channel: RemoteChannel,
        handle: Any,
        source: IO[bytes],
        *,
        block_size: int = SFTP_UPLOAD_BLOCK_SIZE,
        callback: Optional[Callable[[int], None]] = None,
        name: Optional[str] = None,
    ):
        if block_size <= 0:
            raise ValueError("block_size must be positive, got: %r" % block_size)
        self._channel = channel
        self._handle = handle
        self._source = source
        self._block_size = block_size
        self._callback = callback
        self.name = name or repr(handle)

    def _read(self) -> bytes:
        with raise_fs_error(getattr(self._source, "name", self.name)):
            return self._source.read(self._block_size)

    def run(self) -> int:
        """Transfer the whole source

        :returns: Number of bytes written to the remote file
        :raises SftpLocalIOError: if reading the source failed
        :raises SftpTransferError: if the server accepted less than a block
        """
        offset = 0
        while True:
            data = self._read()
            if not data:
                break
            written = self._channel.write(self._handle, offset, data)
            if written != len(data):
                raise SftpTransferError(
                    "Short write: %r, offset: %d, expected: %d, written: %d"
                    % (self.name, offset, len(data), written)
                )
            offset += written
            if self._callback:
                self._callback(written)
        _logger.debug("upload done: %r, bytes: %d" % (self.name, offset))
        return offset
