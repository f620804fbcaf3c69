from typing import Generic, List, Optional, TypeVar

from sftpipe.errors import SftpStateError

T = TypeVar("T")

_INDEX_BITS = 32
_INDEX_MASK = (1 << _INDEX_BITS) - 1


class HandleTable(Generic[T]):
    """Arena of objects addressed by opaque integer handles

    A handle packs a slot index with the generation of that slot. Removing an
    object bumps the generation, so a handle kept after removal never reaches
    the object later stored in the same slot.
    """

    def __init__(self) -> None:
        self._objects: List[Optional[T]] = []
        self._generations: List[int] = []
        self._free: List[int] = []

    def add(self, obj: T) -> int:
        if self._free:
            index = self._free.pop()
            self._objects[index] = obj
        else:
            index = len(self._objects)
            self._objects.append(obj)
            self._generations.append(1)
        return (self._generations[index] << _INDEX_BITS) | index

    def _index(self, handle: int) -> Optional[int]:
        if not isinstance(handle, int) or handle <= 0:
            return None
        index, generation = handle & _INDEX_MASK, handle >> _INDEX_BITS
        if index >= len(self._objects) or self._generations[index] != generation:
            return None
        if self._objects[index] is None:
            return None
        return index

    def get(self, handle: int) -> T:
        index = self._index(handle)
        if index is None:
            raise SftpStateError("Invalid sftp connection handle: %r" % (handle,))
        return self._objects[index]  # pyre-ignore[7]

    def remove(self, handle: int) -> Optional[T]:
        """Drop the object of a handle, unknown handles are ignored"""
        index = self._index(handle)
        if index is None:
            return None
        obj = self._objects[index]
        self._objects[index] = None
        self._generations[index] += 1
        self._free.append(index)
        return obj

    def __contains__(self, handle: int) -> bool:
        return self._index(handle) is not None

    def __len__(self) -> int:
        return len(self._objects) - len(self._free)
