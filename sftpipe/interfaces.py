import stat
from abc import ABC, abstractmethod
from datetime import datetime
from os import PathLike as _PathLike
from typing import Any, Iterator, List, NamedTuple, Optional, Union, overload

__all__ = [
    "PathLike",
    "AttributeRecord",
    "AttributeSequence",
    "RemoteChannel",
]

PathLike = Union[str, _PathLike]


class AttributeRecord(NamedTuple):
    """Metadata of one remote directory entry"""

    name: str
    size: int = 0
    isdir: bool = False
    mtime: float = 0.0
    extra: Any = None

    def is_dir(self) -> bool:
        return self.isdir

    def is_file(self) -> bool:
        return not self.isdir

    @property
    def modified(self) -> datetime:
        """Last modification time as a local, naive datetime"""
        return datetime.fromtimestamp(self.mtime)

    @property
    def st_mode(self) -> int:
        """
        File mode: file type and file mode bits (permissions).
        Falls back to the bare file type when the server sent no permissions.
        """
        if self.extra is not None and getattr(self.extra, "st_mode", None):
            return self.extra.st_mode
        if self.isdir:
            return stat.S_IFDIR
        return stat.S_IFREG


class AttributeSequence:
    """Append-only sequence of :class:`AttributeRecord` in enumeration order"""

    def __init__(self) -> None:
        self._records: List[AttributeRecord] = []

    def append(self, record: AttributeRecord) -> None:
        self._records.append(record)

    def names(self) -> List[str]:
        return [record.name for record in self._records]

    def __iter__(self) -> Iterator[AttributeRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    @overload
    def __getitem__(self, index: int) -> AttributeRecord: ...

    @overload
    def __getitem__(self, index: slice) -> List[AttributeRecord]: ...

    def __getitem__(self, index):
        return self._records[index]

    def __repr__(self) -> str:
        return "%s(%r)" % (self.__class__.__name__, self.names())


class RemoteChannel(ABC):
    """Request primitives of one sftp channel, as used by the transfer engines

    Reads are split in two halves so that several of them can be outstanding
    at once: ``read_begin`` sends the request and returns its id, ``read_poll``
    collects the answer once it has arrived. Every request names its offset
    explicitly, no file cursor is shared between requests.
    """

    @abstractmethod
    def open_read(self, path: str) -> Any:
        """Open a remote file for reading and return its handle"""

    @abstractmethod
    def open_write(self, path: str, mode: int) -> Any:
        """Create or truncate a remote file with permission bits ``mode``"""

    @abstractmethod
    def close(self, handle: Any) -> None:
        pass  # pragma: no cover

    @abstractmethod
    def read_begin(self, handle: Any, offset: int, length: int) -> int:
        """Send a read request without waiting for the answer

        :returns: Request id to be passed to :meth:`read_poll`
        """

    @abstractmethod
    def read_poll(self, request_id: int) -> Optional[bytes]:
        """Collect the answer of a read request without blocking

        :returns: None if the answer has not arrived yet, empty bytes at end of
            file, otherwise the data, which may be shorter than requested
        :raises SftpException: if the server answered with an error
        """

    @abstractmethod
    def wait(self) -> None:
        """Block until at least one more answer has arrived"""

    @abstractmethod
    def write(self, handle: Any, offset: int, data: bytes) -> int:
        """Write ``data`` at ``offset`` synchronously

        :returns: Number of bytes written
        """
