# dhtcount

`dhtcount` counts the words in a text file. It spreads them over a set of
ranks that together hold a hash-partitioned word table. It then answers
look-ups for the words listed in a query file.

## How it works

1. The input is cut into nearly equal byte chunks, one per rank. This is done
   by `dhtcount.chunking.compute_offsets`. The first `size % ranks` chunks
   get one extra byte.
2. `realign_chunks` moves the trailing partial word of each chunk onto the
   start of the next chunk, so that no word is split between two ranks.
3. `dhtcount.cluster.tokenize` splits each chunk into runs of 1 to 62 ASCII
   letters and digits. Longer runs are skipped. Each word is upper-cased and
   tagged with its byte offset in the file.
4. `dhtcount.hashing.word_hash` hashes the word to a value below 2048.
   `route` splits that value into two parts:
   * bits 8–10 give the owning rank;
   * bits 0–7 give the bucket.
5. `dhtcount.table.WordTable` is the table of one rank. It has 256 buckets of
   at most 32767 records. Each record holds how often its word occurs and
   the smallest seven non-zero offsets at which it appears.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
dhtcount test1.txt query.txt
dhtcount -n 4 test1.txt query.txt
```

The arguments are:

* the first argument is the text to count;
* the second argument is the query file;
* `-n/--processes` sets the number of ranks, from 1 to 8. The default is 8.

The command prints one line per rank, naming that rank's most frequent word.
When there is more than one rank, it then prints a banner and one answer per
query word:

```
Rank 0: THE - Freq: 42; Loc (<= 7): 0 17 95 130 201 288 301
...
====== ====== ====== ======
   Starting the query ... 
====== ====== ====== ======
THE - Freq: 42; Loc (<= 7): 0 17 95 130 201 288 301 
ZEBRA - Freq: 0 
```

Query words are runs of ASCII letters and digits. Only the first 63
characters of each word are kept, and words are matched case-insensitively.
Each distinct word is answered once, in the order it first appears in the
query file. A file that cannot be opened gives an error message and exit
status 1.

With fewer than 8 ranks, words whose hash routes them to a rank at or beyond
the rank count are not counted.

## Library use

```python
from dhtcount.cluster import Cluster
from dhtcount.query import read_query_words

cluster = Cluster(8)
cluster.load("test1.txt")          # or cluster.load_bytes(b"...")
for line in cluster.highest_report():
    print(line)
for line in cluster.query(read_query_words("query.txt")):
    print(line)

record = cluster.lookup("the")     # a Record, or None
```

* `Record.sorted_locations()` returns the stored offsets in ascending order.
* `WordTable.add(WordPacket(word, bucket_id, location))` counts one
  occurrence.
* `WordTable.most_frequent()` returns the first record with the highest
  count.
* `parse_query_words` does the same job as `read_query_words`, but works on
  a string or bytes instead of a file.

## Connection examples

The package also ships small programs about setting up connections between
peers. They do not touch the word table.

`dhtcount.verbs` models a reliable-connected endpoint in memory. It has
these parts:

* memory regions with local and remote keys;
* a completion queue;
* a queue pair that moves from INIT through RTR to RTS;
* `ConnInfo`, a record that packs to a fixed wire form and carries the LID,
  queue pair number, packet sequence number, remote key and address.

The `nocma` programs work over TCP. The two sides exchange `ConnInfo`
records. The client then writes `Hello from client!` into the server's
shared region and sends a `done` notice:

```
dhtcount-nocma-server 18000
dhtcount-nocma-client localhost 18000
```

The `cma` programs use two ports:

1. On `port + 5`, the client sends the 16-byte message `COP5611` and the
   server answers with the same message.
2. The client then connects to the rendezvous port `port`, and the server
   answers there with `done`.

```
dhtcount-cma-server 18000
dhtcount-cma-client localhost 18000
```

`dhtcount-pair 18000` runs both sides of the same exchange in one process,
over loopback.

`dhtcount-mesh <server> <port>` builds two ranks in one process. It gives
each rank one context per peer and connects every rank to the other through
a shared table of connection infos. The two arguments are required but not
otherwise used.

## What it does not do

* Ranks are not separate processes or machines. `Cluster` holds every
  rank's table in one process, and the word exchange between ranks is done
  in memory.
* No remote-memory hardware is used. The endpoints, keys, queue pairs and
  remote writes in `dhtcount.verbs` and `dhtcount.nocma` are an in-process
  model. The write travels over an ordinary TCP socket.
* The `cma` and `pair` programs exchange their messages over plain TCP.
* Query look-ups read the in-memory tables directly. They are not remote
  reads.