"""Per-process word table: fixed buckets of word records."""

from dataclasses import dataclass, field

TOTAL_BUCKETS = 256
MAX_BUCKET_ENTRIES = 32767
MAX_LOCATIONS = 7
WORD_CAPACITY = 64


def _empty_slots():
    return [0] * MAX_LOCATIONS


@dataclass
class Record:
    """A word, how often it occurs and up to seven of its earliest locations.

    A location slot holding 0 counts as empty.
    """

    word: str
    frequency: int = 0
    locations: list = field(default_factory=_empty_slots)

    def sorted_locations(self):
        """Return the stored locations in ascending order, empty slots left out."""
        return sorted(location for location in self.locations if location != 0)

    def _record(self, location):
        self.frequency += 1
        if self.locations[-1] != 0:
            worst = max(range(MAX_LOCATIONS), key=self.locations.__getitem__)
            if location < self.locations[worst]:
                self.locations[worst] = location
        else:
            self.locations[self.locations.index(0)] = location


@dataclass(frozen=True)
class WordPacket:
    """A word occurrence addressed to a bucket."""

    word: str
    bucket_id: int
    location: int


class WordTable:
    """A fixed array of buckets, each holding at most 32767 records."""

    def __init__(self):
        self._buckets = [dict() for _ in range(TOTAL_BUCKETS)]

    def _bucket_map(self, bucket_id):
        if not 0 <= bucket_id < TOTAL_BUCKETS:
            raise ValueError(f"Bucket {bucket_id} does not exist.")
        return self._buckets[bucket_id]

    def add(self, packet):
        """Count one occurrence of the packet's word and return its record."""
        bucket = self._bucket_map(packet.bucket_id)
        word = packet.word[: WORD_CAPACITY - 1]
        record = bucket.get(word)
        if record is not None:
            record._record(packet.location)
            return record
        if len(bucket) >= MAX_BUCKET_ENTRIES:
            raise OverflowError(
                f"Bucket {packet.bucket_id} is full, unable to add record '{word}'."
            )
        record = Record(word, 1)
        record.locations[0] = packet.location
        bucket[word] = record
        return record

    def bucket(self, bucket_id):
        """Return the records of one bucket in insertion order."""
        return list(self._bucket_map(bucket_id).values())

    def records(self):
        """Yield every record, bucket by bucket."""
        for bucket in self._buckets:
            yield from bucket.values()

    def most_frequent(self):
        """Return the first record with the highest frequency, or None."""
        best = None
        for record in self.records():
            if best is None or record.frequency > best.frequency:
                best = record
        return best