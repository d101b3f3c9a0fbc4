"""A set of word tables, one per process, that together count a text."""

import re
import warnings

from dhtcount.chunking import (
    Chunk,
    compute_offsets,
    file_size,
    read_chunk,
    realign_chunks,
)
from dhtcount.hashing import route
from dhtcount.table import WordPacket, WordTable

MAX_PROCESSES = 8
MAX_WORD_LENGTH = 62

_WORD = re.compile(rb"[A-Za-z0-9]+")


def tokenize(data, offset):
    """Yield ``(word, location)`` for each word of 1 to 62 ASCII alphanumerics.

    Words are upper-cased; ``location`` is ``offset`` plus the word's start.
    Longer runs are skipped.
    """
    for match in _WORD.finditer(data):
        token = match.group()
        if len(token) <= MAX_WORD_LENGTH:
            yield token.decode("ascii").upper(), offset + match.start()


def format_highest(rank, record):
    """Return the report line for the most frequent record of ``rank``."""
    if record is None:
        return f"Rank {rank}: No valid records found."
    locations = "".join(f"{location} " for location in record.sorted_locations())
    return f"Rank {rank}: {record.word} - Freq: {record.frequency}; Loc (<= 7): {locations}"


def format_query(word, record):
    """Return the answer line for a query ``word`` and its record, if any."""
    if record is None:
        return f"{word} - Freq: 0 "
    line = f"{record.word} - Freq: {record.frequency}"
    locations = record.sorted_locations()
    if locations:
        line += "; Loc (<= 7): " + " ".join(map(str, locations)) + " "
    return line


class Cluster:
    """Word tables for ``size`` processes; words are routed by their hash.

    Words that hash to a process at or beyond ``size`` are dropped.
    """

    def __init__(self, size):
        if not 1 <= size <= MAX_PROCESSES:
            raise ValueError(f"size must be between 1 and {MAX_PROCESSES}")
        self.size = size
        self.tables = [WordTable() for _ in range(size)]

    def load(self, path):
        """Count the words of the file at ``path``."""
        chunks = [
            read_chunk(path, size, offset)
            for offset, size in compute_offsets(file_size(path), self.size)
        ]
        self._distribute(realign_chunks(chunks))

    def load_bytes(self, data):
        """Count the words of ``data``."""
        chunks = [
            Chunk(offset, data[offset:offset + size])
            for offset, size in compute_offsets(len(data), self.size)
        ]
        self._distribute(realign_chunks(chunks))

    def _distribute(self, chunks):
        outboxes = [[[] for _ in range(self.size)] for _ in range(self.size)]
        for source, chunk in enumerate(chunks):
            for word, location in tokenize(chunk.data, chunk.offset):
                process_id, bucket_id = route(word)
                if process_id < self.size:
                    outboxes[source][process_id].append(
                        WordPacket(word, bucket_id, location)
                    )
        for target, table in enumerate(self.tables):
            for step in range(self.size):
                source = (target - step) % self.size
                for packet in outboxes[source][target]:
                    try:
                        table.add(packet)
                    except OverflowError as exc:
                        warnings.warn(str(exc), stacklevel=2)

    def highest_report(self):
        """Return one line per process naming its most frequent word."""
        return [
            format_highest(rank, table.most_frequent())
            for rank, table in enumerate(self.tables)
        ]

    def lookup(self, word):
        """Return the record for ``word`` or None if it was not counted."""
        word = word.upper()
        process_id, bucket_id = route(word)
        if process_id >= self.size:
            return None
        for record in self.tables[process_id].bucket(bucket_id):
            if record.word == word:
                return record
        return None

    def query(self, words):
        """Return one answer line per query word."""
        return [format_query(word, self.lookup(word)) for word in words]