import posixpath
from typing import Optional, Tuple


def path_join(cwd: str, path: str) -> str:
    """Join a directory and a relative path with exactly one separator"""
    return "/".join([cwd.rstrip("/"), path])


def expand_path(path: Optional[str], cwd: Optional[str]) -> Optional[str]:
    """Make a remote path absolute against the working directory

    The sftp protocol has no working directory, so relative paths are
    expanded on the client before they are sent.

    :param path: Remote path, absolute or relative
    :param cwd: Working directory of the session
    :returns: None if path is empty, path if it is absolute,
        otherwise path appended to cwd
    """
    if not path:
        return None
    if path.startswith("/") or not cwd:
        return path
    return path_join(cwd, path)


def split_path(path: str) -> Tuple[str, str]:
    """Split a path in the directory part and the final segment"""
    dirname, basename = posixpath.split(path)
    if not dirname:
        dirname = "."
    elif dirname != "/" * len(dirname):
        dirname = dirname.rstrip("/")
    return dirname, basename


def basename(path: str) -> str:
    """Final segment of a path, ``/`` for the root directory"""
    stripped = path.rstrip("/")
    if not stripped:
        return "/" if path else ""
    return posixpath.basename(stripped)
