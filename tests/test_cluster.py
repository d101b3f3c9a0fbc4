from collections import Counter

import pytest

from dhtcount.cluster import (
    Cluster,
    format_highest,
    format_query,
    tokenize,
)
from dhtcount.hashing import route
from dhtcount.table import Record

TEXT = (
    b"The quick brown fox jumps over the lazy dog. The dog sleeps; "
    b"the fox runs around the yard and the dog barks at the fox again."
)


def _words(data):
    return [word.upper() for word in data.decode().replace(".", " ").replace(";", " ").split()]


def test_tokenize_words_and_locations():
    tokens = list(tokenize(b"ab, cd", 10))
    assert [word for word, _ in tokens] == ["AB", "CD"]
    assert [location for _, location in tokens] == [10, 14]


def test_tokenize_skips_overlong_words():
    assert list(tokenize(b"a" * 63, 0)) == []
    assert list(tokenize(b"b" * 62, 0)) == [("B" * 62, 0)]


def test_format_highest_without_record():
    assert format_highest(3, None) == "Rank 3: No valid records found."


def test_format_query_without_record():
    assert format_query("CAT", None) == "CAT - Freq: 0 "


def test_location_zero_counts_as_empty():
    cluster = Cluster(1)
    cluster.load_bytes(b"a a a b")
    record = cluster.lookup("a")
    if route("A")[0] == 0:
        assert record.frequency == 3
        assert record.sorted_locations() == [2, 4]
        assert format_highest(0, record) == "Rank 0: A - Freq: 3; Loc (<= 7): 2 4 "
    else:
        assert record is None


def test_format_query_with_and_without_locations():
    record = Record("DOG", 2, [5, 9, 0, 0, 0, 0, 0])
    assert format_query("DOG", record) == "DOG - Freq: 2; Loc (<= 7): 5 9 "
    bare = Record("DOG", 1)
    assert format_query("DOG", bare) == "DOG - Freq: 1"


@pytest.mark.parametrize("size", [0, 9, -1])
def test_invalid_size(size):
    with pytest.raises(ValueError):
        Cluster(size)


def test_full_cluster_counts_every_word():
    cluster = Cluster(8)
    cluster.load_bytes(TEXT)
    for word, count in Counter(_words(TEXT)).items():
        assert cluster.lookup(word).frequency == count


def test_small_cluster_drops_foreign_words():
    cluster = Cluster(2)
    cluster.load_bytes(TEXT)
    for word, count in Counter(_words(TEXT)).items():
        record = cluster.lookup(word)
        if route(word)[0] < 2:
            assert record.frequency == count
        else:
            assert record is None


def test_each_table_holds_only_its_words():
    cluster = Cluster(8)
    cluster.load_bytes(TEXT)
    for rank, table in enumerate(cluster.tables):
        for record in table.records():
            assert route(record.word)[0] == rank


def test_counts_do_not_depend_on_size():
    small = Cluster(3)
    large = Cluster(8)
    small.load_bytes(TEXT)
    large.load_bytes(TEXT)
    for word in set(_words(TEXT)):
        if route(word)[0] < 3:
            assert small.lookup(word).frequency == large.lookup(word).frequency
            assert small.lookup(word).locations == large.lookup(word).locations


def test_word_split_across_chunks_counted_once():
    cluster = Cluster(8)
    cluster.load_bytes(b" abcdefgh")
    record = cluster.lookup("abcdefgh")
    assert record.frequency == 1
    assert record.sorted_locations() == [1]


def test_locations_point_at_word():
    cluster = Cluster(8)
    cluster.load_bytes(TEXT)
    for table in cluster.tables:
        for record in table.records():
            for location in record.sorted_locations():
                end = location + len(record.word)
                assert TEXT[location:end].decode().upper() == record.word


def test_highest_report_has_line_per_rank():
    cluster = Cluster(4)
    cluster.load_bytes(TEXT)
    report = cluster.highest_report()
    assert len(report) == 4
    for rank, line in enumerate(report):
        assert line.startswith(f"Rank {rank}: ")


def test_load_matches_load_bytes(tmp_path):
    path = tmp_path / "input.txt"
    path.write_bytes(TEXT)
    from_file = Cluster(8)
    from_file.load(path)
    from_memory = Cluster(8)
    from_memory.load_bytes(TEXT)
    assert from_file.highest_report() == from_memory.highest_report()


def test_query_lines():
    cluster = Cluster(8)
    cluster.load_bytes(TEXT)
    lines = cluster.query(["DOG", "ZEBRA"])
    assert lines[0].startswith("DOG - Freq: 3")
    assert lines[1] == format_query("ZEBRA", None)


def test_empty_cluster_reports_no_records():
    cluster = Cluster(2)
    cluster.load_bytes(b"")
    assert cluster.highest_report() == [
        format_highest(0, None),
        format_highest(1, None),
    ]