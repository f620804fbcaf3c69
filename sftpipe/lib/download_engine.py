from enum import Enum
from logging import getLogger as get_logger
from typing import IO, Any, Callable, List, Optional

from sftpipe.config import SFTP_MAX_CHUNK, SFTP_MAX_WINDOW, SFTP_MIN_CHUNK
from sftpipe.errors import SftpException, SftpTransferError, full_error_message
from sftpipe.interfaces import RemoteChannel

_logger = get_logger(__name__)

__all__ = [
    "SlotState",
    "RequestSlot",
    "DownloadEngine",
]


class SlotState(Enum):
    UNSENT = "unsent"
    IN_FLIGHT = "in_flight"
    PARTIAL = "partial"
    COMPLETE = "complete"


class RequestSlot:
    """One read request of the window and the byte range it still owns"""

    def __init__(self, offset: int, length: int):
        self.offset = offset
        self.remaining = length
        self.request_id: Optional[int] = None
        self.state = SlotState.UNSENT if length else SlotState.COMPLETE
        self.requested = 0
        self.bad = False

    def advance(self, length: int) -> None:
        self.offset += length
        self.remaining -= length
        self.state = SlotState.PARTIAL if self.remaining else SlotState.COMPLETE

    def __repr__(self) -> str:
        return "<RequestSlot offset=%d remaining=%d state=%s>" % (
            self.offset,
            self.remaining,
            self.state.value,
        )


class DownloadEngine:
    """Download a remote file keeping several read requests in flight

    Every cycle of the loop:

    1. sends a request for every slot that is not waiting for an answer,
       recycling the drained ones to the next unread range of the file;
    2. widens the window by one slot while every request could be sent, the
       end of file is unknown and the window is below ``max_window``;
    3. halves the length of future requests if an answer of the previous
       cycle was shorter than its request, down to ``min_chunk``;
    4. collects the answers that have arrived and writes them to the sink at
       the offset of their slot. A short answer leaves the rest of the range
       in the slot to be requested again, an empty one marks the end of file.

    Slots own disjoint ranges and every write names its offset, so answers
    may arrive in any order.
    """

    def __init__(
        self,
        channel: RemoteChannel,
        handle: Any,
        sink: IO[bytes],
        *,
        max_window: int = SFTP_MAX_WINDOW,
        max_chunk: int = SFTP_MAX_CHUNK,
        min_chunk: int = SFTP_MIN_CHUNK,
        callback: Optional[Callable[[int], None]] = None,
        name: Optional[str] = None,
    ):
        if max_window <= 0:
            raise ValueError("max_window must be positive, got: %r" % max_window)
        if not 0 < min_chunk <= max_chunk:
            raise ValueError(
                "min_chunk must be positive and not bigger than max_chunk, "
                "got: min_chunk=%r, max_chunk=%r" % (min_chunk, max_chunk)
            )
        self._channel = channel
        self._handle = handle
        self._sink = sink
        self._max_window = max_window
        self._min_chunk = min_chunk
        self._callback = callback
        self.name = name or repr(handle)

        self.chunk_size = max_chunk
        self._next_offset = 0
        self._slots: List[RequestSlot] = []
        self._bad = 0
        self._eof = False
        self._short_answer = False
        self._written = 0

    @property
    def window(self) -> int:
        return len(self._slots)

    def _new_slot(self) -> RequestSlot:
        slot = RequestSlot(self._next_offset, self.chunk_size)
        self._next_offset += self.chunk_size
        return slot

    def _issue(self, slot: RequestSlot) -> None:
        try:
            slot.request_id = self._channel.read_begin(
                self._handle, slot.offset, slot.remaining
            )
        except SftpException as error:
            _logger.debug(
                "read request failed: %r, offset: %d, error: %s"
                % (self.name, slot.offset, full_error_message(error))
            )
            if not slot.bad:
                slot.bad = True
                self._bad += 1
            return
        if slot.bad:
            slot.bad = False
            self._bad -= 1
        slot.requested = slot.remaining
        slot.state = SlotState.IN_FLIGHT

    def _dispatch(self) -> None:
        slots = []
        for slot in self._slots:
            if slot.state is SlotState.IN_FLIGHT:
                slots.append(slot)
                continue
            if not slot.remaining:
                if self._eof or self._bad:
                    continue
                slot = self._new_slot()
            self._issue(slot)
            slots.append(slot)
        self._slots = slots

    def _grow(self) -> None:
        if self._bad or self._eof or len(self._slots) >= self._max_window:
            return
        self._slots.append(self._new_slot())
        _logger.debug("widen window: %r, size: %d" % (self.name, len(self._slots)))

    def _shrink(self) -> None:
        short_answer, self._short_answer = self._short_answer, False
        if short_answer and self.chunk_size > self._min_chunk:
            self.chunk_size = max(self._min_chunk, self.chunk_size // 2)
            _logger.debug("shrink chunk: %r, size: %d" % (self.name, self.chunk_size))

    def _write(self, offset: int, data: bytes) -> None:
        try:
            self._sink.seek(offset)
            self._sink.write(data)
            # nothing may be left in a buffer for close() to fail on
            self._sink.flush()
        except OSError as error:
            raise SftpTransferError(
                "Local write failed: %r, offset: %d, error: %s"
                % (self.name, offset, full_error_message(error))
            ) from error
        self._written += len(data)
        if self._callback:
            self._callback(len(data))

    def _collect(self) -> None:
        waiting = False
        for slot in self._slots:
            if slot.state is not SlotState.IN_FLIGHT:
                continue
            try:
                data = self._channel.read_poll(slot.request_id)  # pyre-ignore[6]
            except SftpException as error:
                raise SftpTransferError(
                    "Remote read failed: %r, offset: %d, error: %s"
                    % (self.name, slot.offset, full_error_message(error))
                ) from error
            if data is None:
                waiting = True
                continue
            slot.request_id = None
            if len(data) > slot.requested:
                raise SftpTransferError(
                    "Server sent %d bytes for a request of %d: %r"
                    % (len(data), slot.requested, self.name)
                )
            if data:
                self._write(slot.offset, data)
                if len(data) < slot.requested:
                    self._short_answer = True
                slot.advance(len(data))
            else:
                slot.remaining = 0
                slot.state = SlotState.COMPLETE
                self._eof = True
        if waiting and not self._ready():
            self._channel.wait()

    def _ready(self) -> bool:
        """Whether the next dispatch has a slot to send without waiting"""
        return any(
            slot.state is not SlotState.IN_FLIGHT and not slot.bad
            for slot in self._slots
        )

    def run(self) -> int:
        """Transfer the whole file

        :returns: Number of bytes written to the sink
        :raises SftpTransferError: on the first remote read error, local write
            error, or when some read requests could never be sent
        """
        self._slots = [self._new_slot()]
        while len(self._slots) > self._bad:
            self._dispatch()
            self._grow()
            self._shrink()
            self._collect()
        if self._bad:
            raise SftpTransferError(
                "%d read requests could not be sent: %r" % (self._bad, self.name)
            )
        if not self._eof:  # pragma: no cover
            raise SftpTransferError("End of file never reached: %r" % self.name)
        _logger.debug(
            "download done: %r, bytes: %d, chunk: %d"
            % (self.name, self._written, self.chunk_size)
        )
        return self._written
