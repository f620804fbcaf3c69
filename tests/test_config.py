import importlib
import logging
import os

import pytest
from mock import patch


@patch.dict(
    os.environ,
    {
        "SFTPIPE_SFTP_MAX_WINDOW": "8",
        "SFTPIPE_SFTP_MAX_CHUNK": "64Ki",
        "SFTPIPE_SFTP_MIN_CHUNK": "1Ki",
        "SFTPIPE_SFTP_UPLOAD_BLOCK_SIZE": "1Mi",
        "SFTPIPE_SFTP_CONNECT_TIMEOUT": "2.5",
        "SFTPIPE_SFTP_HOST_KEY_POLICY": "auto",
        "SFTPIPE_LOG_LEVEL": "ERROR",
    },
)
def test_config():
    from sftpipe import config

    importlib.reload(config)

    assert config.SFTP_MAX_WINDOW == 8
    assert config.SFTP_MAX_CHUNK == 64 * 2**10
    assert config.SFTP_MIN_CHUNK == 2**10
    assert config.SFTP_UPLOAD_BLOCK_SIZE == 2**20
    assert config.SFTP_CONNECT_TIMEOUT == 2.5
    assert config.SFTP_HOST_KEY_POLICY == "auto"
    assert logging.getLogger("sftpipe").level == logging.ERROR


def test_config_default():
    from sftpipe import config

    with patch.dict(os.environ, clear=True):
        importlib.reload(config)

    assert config.SFTP_MAX_WINDOW == 32
    assert config.SFTP_MAX_CHUNK == 512 * 2**10
    assert config.SFTP_MIN_CHUNK == 512
    assert config.SFTP_UPLOAD_BLOCK_SIZE == 64 * 2**10
    assert config.SFTP_HOST_KEY_POLICY is None


@pytest.mark.parametrize(
    "env",
    [
        {"SFTPIPE_SFTP_MAX_WINDOW": "0"},
        {"SFTPIPE_SFTP_MIN_CHUNK": "0"},
        {"SFTPIPE_SFTP_MAX_CHUNK": "256", "SFTPIPE_SFTP_MIN_CHUNK": "512"},
        {"SFTPIPE_SFTP_UPLOAD_BLOCK_SIZE": "0"},
        {"SFTPIPE_SFTP_MAX_CHUNK": "1kb"},
    ],
)
def test_config_error(env):
    with patch.dict(os.environ, env):
        with pytest.raises(ValueError):
            from sftpipe import config

            importlib.reload(config)

    from sftpipe import config

    importlib.reload(config)


def test_set_log_level():
    from sftpipe.config import set_log_level

    set_log_level("DEBUG")
    assert logging.getLogger("sftpipe").level == logging.DEBUG

    set_log_level(logging.WARNING)
    assert logging.getLogger("sftpipe").level == logging.WARNING


def test_parse_quantity():
    from sftpipe.config import parse_quantity

    assert parse_quantity("1Ki") == 2**10
    assert parse_quantity("1k") == 10**3
    assert parse_quantity("1Mi") == 2**20
    assert parse_quantity("1M") == 10**6
    assert parse_quantity("1024") == 1024
    assert parse_quantity(1024) == 1024

    with pytest.raises(ValueError):
        parse_quantity("1ki")

    with pytest.raises(ValueError):
        parse_quantity("1kb")

    with pytest.raises(ValueError):
        parse_quantity("Mi")
