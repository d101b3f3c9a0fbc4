"""Command line: count words of a file and answer a query file."""

import argparse
import sys

from dhtcount.cluster import MAX_PROCESSES, Cluster
from dhtcount.query import read_query_words

QUERY_BANNER = (
    "\n====== ====== ====== ======\n"
    "   Starting the query ... \n"
    "====== ====== ====== ======"
)


def _parser():
    parser = argparse.ArgumentParser(
        prog="dhtcount",
        description="Count words of a text across hashed tables and query them.",
    )
    parser.add_argument("filename", help="text file to count")
    parser.add_argument("query_file", help="file holding the words to look up")
    parser.add_argument(
        "-n",
        "--processes",
        type=int,
        default=MAX_PROCESSES,
        help=f"number of tables to spread words over (1-{MAX_PROCESSES})",
    )
    return parser


def main(argv=None):
    """Run the word count and query; return the exit status."""
    parser = _parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    try:
        cluster = Cluster(args.processes)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        cluster.load(args.filename)
    except OSError:
        print(f"Unable to open file {args.filename}.", file=sys.stderr)
        return 1

    for line in cluster.highest_report():
        print(line)

    if cluster.size > 1:
        print(QUERY_BANNER)
        try:
            words = read_query_words(args.query_file)
        except OSError:
            print(f"Cannot open file {args.query_file}.", file=sys.stderr)
            return 1
        for line in cluster.query(words):
            print(line)
    return 0