import os

import pytest

from sftpipe import sftp
from sftpipe.errors import (
    SftpFileNotFoundError,
    SftpNotADirectoryError,
    SftpStateError,
)
from sftpipe.sftp_session import SftpSession

from .test_sftp_session import HOME, sftp_mocker, ssh_client, write_file  # noqa: F401


@pytest.fixture
def handle(sftp_mocker):
    handle = sftp.sftp_open_session("host")
    yield handle
    sftp.sftp_close_session(handle)


@pytest.fixture
def remote_tree(sftp_mocker):
    os.makedirs(os.path.join(HOME, "dir", "sub"))
    write_file(os.path.join(HOME, "dir", "a.txt"), b"a")
    write_file(os.path.join(HOME, "dir", "sub", "b.txt"), b"bb")
    write_file(os.path.join(HOME, "c.txt"), b"ccc")
    write_file(os.path.join(HOME, "d.txt"), b"dddd")
    write_file(os.path.join(HOME, "e.dat"), b"eeeee")


@pytest.mark.parametrize(
    "host, expected",
    [
        ("host", ("host", None)),
        ("host:2222", ("host", 2222)),
        ("host:", ("host", None)),
        ("10.0.0.1:22", ("10.0.0.1", 22)),
        ("::1", ("::1", None)),
    ],
)
def test_parse_host(host, expected):
    assert sftp.parse_host(host) == expected


def test_parse_host_invalid_port():
    with pytest.raises(ValueError):
        sftp.parse_host("host:ssh")


def test_sftp_open_session(handle):
    assert sftp.sftp_getcwd(handle) == HOME
    assert isinstance(sftp._sessions.get(handle), SftpSession)


def test_sftp_open_session_port(sftp_mocker, mocker):
    get_ssh_client = mocker.patch(
        "sftpipe.sftp_session.get_ssh_client", return_value=mocker.MagicMock()
    )
    handle = sftp.sftp_open_session("host:2222", username="user")
    try:
        assert get_ssh_client.call_args[0][:3] == ("host", 2222, "user")
    finally:
        sftp.sftp_close_session(handle)


def test_sftp_open_session_unconnected(sftp_mocker):
    handle = sftp.sftp_open_session()
    try:
        assert sftp.sftp_getcwd(handle) is None
        with pytest.raises(SftpStateError):
            sftp.sftp_listdir(handle)

        sftp.sftp_connect(handle, "host")
        assert sftp.sftp_getcwd(handle) == HOME
    finally:
        sftp.sftp_close_session(handle)


def test_sftp_connect_port(sftp_mocker, mocker):
    get_ssh_client = mocker.patch(
        "sftpipe.sftp_session.get_ssh_client", return_value=mocker.MagicMock()
    )
    handle = sftp.sftp_open_session()
    try:
        sftp.sftp_connect(handle, "host:2222")
        assert get_ssh_client.call_args[0][:2] == ("host", 2222)

        sftp.sftp_connect(handle, "host:2222", port=22)
        assert get_ssh_client.call_args[0][:2] == ("host", 22)
    finally:
        sftp.sftp_close_session(handle)


def test_sftp_close_session(handle):
    sftp.sftp_close_session(handle)

    with pytest.raises(SftpStateError):
        sftp.sftp_getcwd(handle)
    with pytest.raises(SftpStateError):
        sftp.sftp_stat(handle, "file")

    # closing twice or an unknown handle is fine
    sftp.sftp_close_session(handle)
    sftp.sftp_close_session(0)
    sftp.sftp_close_session(12345)


def test_sftp_stale_handle(sftp_mocker):
    first = sftp.sftp_open_session()
    sftp.sftp_close_session(first)
    second = sftp.sftp_open_session()
    try:
        assert first != second
        with pytest.raises(SftpStateError):
            sftp.sftp_getcwd(first)
        assert sftp.sftp_getcwd(second) is None
    finally:
        sftp.sftp_close_session(second)


def test_sftp_disconnect(handle):
    sftp.sftp_disconnect(handle)

    assert sftp.sftp_getcwd(handle) is None
    with pytest.raises(SftpStateError):
        sftp.sftp_listdir(handle)

    sftp.sftp_connect(handle, "host")
    assert sftp.sftp_getcwd(handle) == HOME


def test_sftp_chdir(handle, remote_tree):
    assert sftp.sftp_chdir(handle, "dir") == "/home/user/dir"
    assert sftp.sftp_getcwd(handle) == "/home/user/dir"
    assert sftp.sftp_listdir(handle).names() == ["a.txt", "sub"]

    with pytest.raises(SftpNotADirectoryError):
        sftp.sftp_chdir(handle, "a.txt")
    assert sftp.sftp_getcwd(handle) == "/home/user/dir"


def test_sftp_stat(handle, remote_tree):
    record = sftp.sftp_stat(handle, "c.txt")
    assert record.name == "c.txt"
    assert record.size == 3
    assert sftp.sftp_stat(handle).name == "user"


def test_sftp_glob(handle, remote_tree):
    assert sftp.sftp_glob(handle, "*.txt").names() == ["c.txt", "d.txt"]
    assert sftp.sftp_glob(handle, "dir/*").names() == ["a.txt", "sub"]


def test_sftp_mkdir_rmdir(handle):
    sftp.sftp_mkdir(handle, "new")
    sftp.sftp_mkdir(handle, "new")
    assert os.path.isdir("/home/user/new")

    sftp.sftp_rmdir(handle, "new")
    assert not os.path.exists("/home/user/new")


def test_sftp_rename_unlink(handle, remote_tree):
    sftp.sftp_rename(handle, "c.txt", "f.txt")
    assert os.path.exists("/home/user/f.txt")

    sftp.sftp_unlink(handle, "f.txt")
    assert not os.path.exists("/home/user/f.txt")


def test_sftp_download_upload(handle, remote_tree):
    os.makedirs("/local")
    lengths = []

    assert sftp.sftp_download(handle, "d.txt", "/local/d.txt", lengths.append) == 4
    with open("/local/d.txt", "rb") as f:
        assert f.read() == b"dddd"
    assert sum(lengths) == 4

    assert sftp.sftp_upload(handle, "/local/d.txt", "dir/d.txt") == 4
    with open("/home/user/dir/d.txt", "rb") as f:
        assert f.read() == b"dddd"


def test_sftp_dir(handle, remote_tree):
    assert sftp.sftp_dir(handle).names() == ["c.txt", "d.txt", "dir", "e.dat"]
    assert sftp.sftp_dir(handle, "dir").names() == ["a.txt", "sub"]
    assert sftp.sftp_dir(handle, "dir/a.txt").names() == ["a.txt"]
    assert sftp.sftp_dir(handle, "*.txt").names() == ["c.txt", "d.txt"]
    assert sftp.sftp_dir(handle, "*.json").names() == []

    with pytest.raises(SftpFileNotFoundError):
        sftp.sftp_dir(handle, "missing")


def test_sftp_mget_directory(handle, remote_tree):
    local_paths = sftp.sftp_mget(handle, "dir/", "/local")

    assert local_paths == [
        "/local/dir",
        "/local/dir/sub",
        "/local/dir/sub/b.txt",
        "/local/dir/a.txt",
    ]
    with open("/local/dir/a.txt", "rb") as f:
        assert f.read() == b"a"
    with open("/local/dir/sub/b.txt", "rb") as f:
        assert f.read() == b"bb"


def test_sftp_mget_glob(handle, remote_tree):
    assert sftp.sftp_mget(handle, "*.txt", "/local") == [
        "/local/d.txt",
        "/local/c.txt",
    ]
    assert sftp.sftp_mget(handle, "dir/*.txt", "/local") == ["/local/dir/a.txt"]
    with open("/local/d.txt", "rb") as f:
        assert f.read() == b"dddd"


def test_sftp_mget_absolute(handle, remote_tree):
    assert sftp.sftp_mget(handle, "/home/user/e.dat", "/local") == [
        "/local/home/user/e.dat"
    ]


def test_sftp_mget_default_target(handle, remote_tree):
    os.makedirs("/local")
    os.chdir("/local")

    assert sftp.sftp_mget(handle, "e.dat") == ["/local/e.dat"]


def test_sftp_mget_not_found(handle, remote_tree):
    with pytest.raises(SftpFileNotFoundError):
        sftp.sftp_mget(handle, "*.json", "/local")
    with pytest.raises(SftpFileNotFoundError):
        sftp.sftp_mget(handle, "missing", "/local")


def test_sftp_mput_directory(handle):
    os.makedirs("/local/src/sub")
    write_file("/local/src/x.txt", b"x")
    write_file("/local/src/sub/y.txt", b"yy")
    os.makedirs("/remote")
    sftp.sftp_chdir(handle, "/remote")

    assert sftp.sftp_mput(handle, "/local/src") == [
        "/remote/src",
        "/remote/src/x.txt",
        "/remote/src/sub",
        "/remote/src/sub/y.txt",
    ]
    with open("/remote/src/sub/y.txt", "rb") as f:
        assert f.read() == b"yy"

    # existing remote directories are reused
    assert len(sftp.sftp_mput(handle, "/local/src")) == 4


def test_sftp_mput_glob(handle):
    os.makedirs("/local/src/sub")
    write_file("/local/src/x.txt", b"x")
    write_file("/local/src/z.txt", b"z")
    os.makedirs("/remote")
    sftp.sftp_chdir(handle, "/remote")

    assert sftp.sftp_mput(handle, "/local/src/*.txt") == [
        "/remote/z.txt",
        "/remote/x.txt",
    ]
    assert sftp.sftp_mput(handle, "/local/src/*.json") == []


def test_sftp_mput_not_found(handle):
    with pytest.raises(SftpFileNotFoundError):
        sftp.sftp_mput(handle, "/local/missing")


def test_sftp_delete(handle, remote_tree):
    assert sftp.sftp_delete(handle, "*.txt") == ["c.txt", "d.txt"]
    assert not os.path.exists("/home/user/c.txt")
    assert not os.path.exists("/home/user/d.txt")
    assert os.path.exists("/home/user/e.dat")

    assert sftp.sftp_delete(handle, "dir/a.txt") == ["dir/a.txt"]
    assert not os.path.exists("/home/user/dir/a.txt")

    assert sftp.sftp_delete(handle, "*.json") == []
    with pytest.raises(SftpFileNotFoundError):
        sftp.sftp_delete(handle, "missing")
