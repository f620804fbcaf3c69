from sftpipe.errors import (
    SftpAuthError,
    SftpConnectionError,
    SftpException,
    SftpFailureError,
    SftpFileExistsError,
    SftpFileNotFoundError,
    SftpInternalError,
    SftpLocalIOError,
    SftpMemoryError,
    SftpNotADirectoryError,
    SftpPathError,
    SftpPermissionError,
    SftpProtocolError,
    SftpStateError,
    SftpTransferError,
)
from sftpipe.interfaces import AttributeRecord, AttributeSequence
from sftpipe.sftp import (
    parse_host,
    sftp_chdir,
    sftp_close_session,
    sftp_connect,
    sftp_delete,
    sftp_dir,
    sftp_disconnect,
    sftp_download,
    sftp_getcwd,
    sftp_glob,
    sftp_listdir,
    sftp_mget,
    sftp_mkdir,
    sftp_mput,
    sftp_open_session,
    sftp_rename,
    sftp_rmdir,
    sftp_stat,
    sftp_unlink,
    sftp_upload,
)
from sftpipe.sftp_session import SftpSession
from sftpipe.version import VERSION as __version__  # noqa: F401

__all__ = [
    "SftpSession",
    "AttributeRecord",
    "AttributeSequence",
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
    "parse_host",
    "sftp_open_session",
    "sftp_connect",
    "sftp_close_session",
    "sftp_disconnect",
    "sftp_getcwd",
    "sftp_chdir",
    "sftp_stat",
    "sftp_listdir",
    "sftp_glob",
    "sftp_mkdir",
    "sftp_rmdir",
    "sftp_rename",
    "sftp_unlink",
    "sftp_download",
    "sftp_upload",
    "sftp_dir",
    "sftp_mget",
    "sftp_mput",
    "sftp_delete",
]
