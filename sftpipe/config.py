import logging
import os
import typing as T


def parse_quantity(quantity: T.Union[str, int]) -> int:
    """
    Parse kubernetes canonical form quantity like 200Mi to a int number.
    Supported SI suffixes:
    base1024: Ki | Mi | Gi | Ti | Pi | Ei
    base1000: "" | k | M | G | T | P | E

    (International System of units; See: http://physics.nist.gov/cuu/Units/binary.html)

    Input:
    quantity: string. kubernetes canonical form quantity

    Returns:
    Int

    Raises:
    ValueError on invalid or unknown input
    """
    if isinstance(quantity, int):
        return quantity

    exponents = {"K": 1, "k": 1, "M": 2, "G": 3, "T": 4, "P": 5, "E": 6}

    number = quantity
    suffix = None
    if len(quantity) >= 2 and quantity[-1] == "i":
        if quantity[-2] in exponents:
            number = quantity[:-2]
            suffix = quantity[-2:]
    elif len(quantity) >= 1 and quantity[-1] in exponents:
        number = quantity[:-1]
        suffix = quantity[-1:]

    try:
        number = int(number)
    except ValueError:
        raise ValueError("Invalid number format: {}".format(number))

    if suffix is None:
        return number

    if suffix.endswith("i"):
        base = 1024
    else:
        base = 1000

    # handle SI inconsistency
    if suffix == "ki":
        raise ValueError("{} has unknown suffix".format(quantity))

    exponent = int(exponents[suffix[0]])
    return number * (base**exponent)


def set_log_level(level: T.Optional[T.Union[int, str]] = None):
    logging.basicConfig(
        level=logging.ERROR,
        format=(
            "%(asctime)s | %(levelname)-8s | "
            "%(name)s:%(funcName)s:%(lineno)d - %(message)s"
        ),
    )
    level = level or os.getenv("SFTPIPE_LOG_LEVEL") or logging.INFO
    logging.getLogger("sftpipe").setLevel(level)


# Number of read requests a download keeps outstanding at most
SFTP_MAX_WINDOW = int(os.getenv("SFTPIPE_SFTP_MAX_WINDOW") or 32)
if SFTP_MAX_WINDOW <= 0:
    raise ValueError(
        f"'SFTPIPE_SFTP_MAX_WINDOW' must bigger than 0, got {SFTP_MAX_WINDOW}"
    )

# Length of the read requests of a download, halved down to the minimum
# while the server answers with less data than requested
SFTP_MAX_CHUNK = parse_quantity(os.getenv("SFTPIPE_SFTP_MAX_CHUNK") or 512 * 2**10)
SFTP_MIN_CHUNK = parse_quantity(os.getenv("SFTPIPE_SFTP_MIN_CHUNK") or 512)
if SFTP_MIN_CHUNK <= 0:
    raise ValueError(
        f"'SFTPIPE_SFTP_MIN_CHUNK' must bigger than 0, got {SFTP_MIN_CHUNK}"
    )
if SFTP_MAX_CHUNK < SFTP_MIN_CHUNK:
    raise ValueError(
        "'SFTPIPE_SFTP_MAX_CHUNK' must not be smaller than "
        f"'SFTPIPE_SFTP_MIN_CHUNK', got {SFTP_MAX_CHUNK} < {SFTP_MIN_CHUNK}"
    )

SFTP_UPLOAD_BLOCK_SIZE = parse_quantity(
    os.getenv("SFTPIPE_SFTP_UPLOAD_BLOCK_SIZE") or 64 * 2**10
)
if SFTP_UPLOAD_BLOCK_SIZE <= 0:
    raise ValueError(
        "'SFTPIPE_SFTP_UPLOAD_BLOCK_SIZE' must bigger than 0, "
        f"got {SFTP_UPLOAD_BLOCK_SIZE}"
    )

SFTP_CONNECT_TIMEOUT = float(os.getenv("SFTPIPE_SFTP_CONNECT_TIMEOUT") or 5)
SFTP_KEEPALIVE_INTERVAL = int(os.getenv("SFTPIPE_SFTP_KEEPALIVE_INTERVAL") or 15)

SFTP_HOST_KEY_POLICY = os.getenv("SFTPIPE_SFTP_HOST_KEY_POLICY")

if os.getenv("SFTPIPE_LOG_LEVEL"):
    set_log_level()
