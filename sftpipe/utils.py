import math


def get_human_size(size_bytes: float) -> str:
    """Get human-readable size, e.g. `100MB`"""
    if size_bytes < 0:
        raise ValueError("negative size: %r" % size_bytes)
    if size_bytes == 0:
        return "0 B"
    size_name = ("B", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
    index = min(int(math.floor(math.log(size_bytes, 1024))), len(size_name) - 1)
    base = math.pow(1024, index)
    if base == 1:
        size = size_bytes
    else:
        size = round(size_bytes / base, 2)
    return "%s %s" % (size, size_name[index])
