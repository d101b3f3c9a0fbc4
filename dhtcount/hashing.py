"""Word hashing and routing of words to processes and buckets."""

import string

HASH_SPACE = 2048
EVEN_MULTIPLIER = 121
ODD_MULTIPLIER = 1331
PROCESS_MASK = 0x7
BUCKET_MASK = 0xFF

_ASCII_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


def word_hash(word):
    """Return the hash of ``word`` in ``range(2048)``, ignoring ASCII case."""
    total = sum(
        ord(char) * (ODD_MULTIPLIER if position & 1 else EVEN_MULTIPLIER)
        for position, char in enumerate(word.translate(_ASCII_UPPER))
    )
    return (total & 0xFFFFFFFF) % HASH_SPACE


def route(word):
    """Return ``(process_id, bucket_id)`` that owns ``word``."""
    value = word_hash(word)
    return (value >> 8) & PROCESS_MASK, value & BUCKET_MASK