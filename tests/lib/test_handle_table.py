import pytest

from sftpipe.errors import STATE_ERROR, SftpStateError
from sftpipe.lib.handle_table import HandleTable


def test_handle_table():
    table = HandleTable()
    first = table.add("first")
    second = table.add("second")

    assert first != second
    assert len(table) == 2
    assert table.get(first) == "first"
    assert table.get(second) == "second"
    assert first in table


def test_handle_table_remove():
    table = HandleTable()
    handle = table.add("object")

    assert table.remove(handle) == "object"
    assert handle not in table
    assert len(table) == 0
    assert table.remove(handle) is None


def test_handle_table_stale_handle():
    table = HandleTable()
    old = table.add("old")
    table.remove(old)
    new = table.add("new")

    assert new != old
    assert table.get(new) == "new"
    with pytest.raises(SftpStateError) as error:
        table.get(old)
    assert error.value.code == STATE_ERROR
    assert table.remove(old) is None
    assert table.get(new) == "new"


@pytest.mark.parametrize("handle", [0, -1, 12345678901234, "1", None, 1.0])
def test_handle_table_invalid_handle(handle):
    table = HandleTable()
    table.add("object")

    with pytest.raises(SftpStateError):
        table.get(handle)
    assert handle not in table
    assert table.remove(handle) is None
