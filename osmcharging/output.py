from osmcharging.models import AggregatedResult
from osmcharging.serialize import dumps

import gzip
import os
import pathlib
import tempfile


SIZE_UNITS = [
    ("G", 1024 ** 3),
    ("M", 1024 ** 2),
    ("K", 1024),
]


def format_bytes(size: int) -> str:
    for unit, unit_size in SIZE_UNITS:
        if size >= unit_size:
            return f"{size / unit_size:.1f}{unit}"

    return f"{size}B"


def write_bytes_atomic(path, data: bytes):
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory as the target so the rename never crosses filesystems
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")

    try:
        with os.fdopen(fd, "wb") as tmp_fh:
            tmp_fh.write(data)
            tmp_fh.flush()
            os.fsync(tmp_fh.fileno())

        os.replace(tmp_path, path)
    except BaseException:
        pathlib.Path(tmp_path).unlink(missing_ok=True)

        raise


def write_snapshot(result: AggregatedResult, path) -> pathlib.Path:
    path = pathlib.Path(path)

    compressed = gzip.compress(dumps(result).encode("utf-8"), compresslevel=9)
    write_bytes_atomic(path, compressed)

    return path


def read_snapshot(path) -> str:
    with gzip.open(path, "rt", encoding="utf-8") as snapshot_fh:
        return snapshot_fh.read()
