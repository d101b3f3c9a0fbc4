"""Reading the words of a query file."""

import re

MAX_QUERY_WORD = 63

_WORD = re.compile(r"[A-Za-z0-9]+")
_ASCII_UPPER = str.maketrans(
    "abcdefghijklmnopqrstuvwxyz", "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def parse_query_words(text):
    """Return the distinct words of ``text``, upper-cased, in first-seen order.

    A word is a run of ASCII letters and digits; only its first 63
    characters are kept. ``text`` may be ``str`` or ``bytes``.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("latin-1")
    words = []
    seen = set()
    for match in _WORD.finditer(text):
        word = match.group()[:MAX_QUERY_WORD].translate(_ASCII_UPPER)
        if word not in seen:
            seen.add(word)
            words.append(word)
    return words


def read_query_words(path):
    """Return the distinct query words held in the file at ``path``."""
    with open(path, "rb") as handle:
        return parse_query_words(handle.read())