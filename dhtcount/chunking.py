"""Splitting an input file into per-process chunks on word boundaries."""

import os
import re
import warnings
from dataclasses import dataclass

_TRAILING_WORD = re.compile(rb"[^A-Za-z0-9][A-Za-z0-9]*\Z")


@dataclass(frozen=True)
class Chunk:
    """A run of bytes taken from the input at a given offset."""

    offset: int
    data: bytes

    @property
    def size(self):
        return len(self.data)


def file_size(path):
    """Return the size of the file at ``path`` in bytes."""
    return os.path.getsize(path)


def compute_offsets(total_size, num_processes):
    """Split ``total_size`` bytes into ``(offset, size)`` pairs, one per process.

    The first ``total_size % num_processes`` processes get one extra byte.
    """
    if num_processes <= 0:
        raise ValueError("num_processes must be positive")
    if total_size < 0:
        raise ValueError("total_size must not be negative")
    base, extra = divmod(total_size, num_processes)
    result = []
    offset = 0
    for index in range(num_processes):
        size = base + (1 if index < extra else 0)
        result.append((offset, size))
        offset += size
    return result


def read_chunk(path, size, offset):
    """Read up to ``size`` bytes from ``path`` starting at ``offset``."""
    if offset < 0:
        raise ValueError(f"could not seek to offset {offset} in file {path}")
    with open(path, "rb") as handle:
        handle.seek(offset)
        data = handle.read(size)
    if len(data) != size:
        warnings.warn(
            f"read {len(data)} bytes instead of {size} bytes from file {path}",
            stacklevel=2,
        )
    return Chunk(offset, data)


def last_separator_index(data):
    """Return the index of the last non-alphanumeric byte, or -1 if there is none."""
    match = _TRAILING_WORD.search(data)
    return match.start() if match else -1


def realign_chunks(chunks):
    """Move each chunk's trailing partial word onto the start of the next chunk."""
    items = list(chunks)
    result = []
    carry = b""
    for position, chunk in enumerate(items):
        data = carry + chunk.data
        offset = chunk.offset - len(carry)
        carry = b""
        if position < len(items) - 1:
            split = last_separator_index(data) + 1
            carry = data[split:]
            data = data[:split]
        result.append(Chunk(offset, data))
    return result