import pytest

from dhtcount.query import MAX_QUERY_WORD, parse_query_words, read_query_words


def test_duplicates_ignore_case_and_keep_order():
    assert parse_query_words("the The THE cat") == ["THE", "CAT"]


def test_separators_split_words():
    words = parse_query_words("alpha,beta;gamma\n\talpha")
    assert words == ["ALPHA", "BETA", "GAMMA"]


def test_digits_are_word_characters():
    assert parse_query_words("abc123 x9") == ["ABC123", "X9"]


def test_long_word_is_truncated():
    words = parse_query_words("a" * 70)
    assert len(words) == 1
    assert words[0] == "A" * MAX_QUERY_WORD


def test_bytes_input_matches_text_input():
    text = "Hello world, hello again."
    assert parse_query_words(text.encode()) == parse_query_words(text)


def test_empty_and_punctuation_only():
    assert parse_query_words("") == []
    assert parse_query_words("... ,,, !!!") == []


def test_non_ascii_bytes_separate_words():
    assert parse_query_words(b"ab\xe9cd") == ["AB", "CD"]


def test_read_query_words_from_file(tmp_path):
    path = tmp_path / "query.txt"
    path.write_bytes(b"dog cat\ndog bird")
    assert read_query_words(path) == ["DOG", "CAT", "BIRD"]


def test_read_query_words_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_query_words(tmp_path / "absent.txt")