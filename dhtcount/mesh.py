"""A full mesh of queue pairs: one context per peer, connected from a shared table.

Every rank builds one context for each other rank. The connection infos of
all ranks are laid out in a table of ``size * size`` entries, where block
``r`` holds rank ``r``'s info for each of its peers. A rank connects its
context for ``peer`` using the entry the peer made for it.
"""

import socket
import sys

from dhtcount.verbs import DEFAULT_LID, IB_PORT, ConnectionContext, VerbsError

MESH_SIZE = 2


def _check_rank(rank, size):
    if size < 1:
        raise ValueError("size must be positive")
    if not 0 <= rank < size:
        raise ValueError(f"rank {rank} out of range for size {size}")


def peer_index(rank, peer, size):
    """Return where ``peer`` keeps its info for ``rank`` in the shared table."""
    _check_rank(rank, size)
    _check_rank(peer, size)
    return size * peer + rank


def _close_all(contexts):
    for ctx in contexts:
        if ctx is not None and not ctx.closed:
            ctx.close()


def build_contexts(rank, size):
    """Create one ready context per peer of ``rank``.

    Returns ``(contexts, infos)``: two lists of length ``size`` indexed by
    peer, holding None at ``rank`` itself.
    """
    _check_rank(rank, size)
    contexts = [None] * size
    infos = [None] * size
    try:
        for step in range(1, size):
            peer = (rank + step) % size
            ctx = ConnectionContext(IB_PORT)
            contexts[peer] = ctx
            posted = ctx.post_recv(ctx.rx_depth)
            if posted < ctx.rx_depth:
                raise VerbsError(f"Couldn't post receive ({posted})")
            infos[peer] = ctx.local_info(DEFAULT_LID, ctx.buf)
    except Exception:
        _close_all(contexts)
        raise
    return contexts, infos


def connect_all(rank, size, contexts, all_info):
    """Connect each of ``rank``'s contexts to the matching peer.

    Returns the peers connected, in the order they were connected.
    """
    _check_rank(rank, size)
    if len(contexts) != size:
        raise ValueError(f"expected {size} contexts, got {len(contexts)}")
    if len(all_info) != size * size:
        raise ValueError(f"expected {size * size} infos, got {len(all_info)}")
    connected = []
    for step in range(1, size):
        peer = (rank + step) % size
        ctx = contexts[peer]
        if ctx is None:
            raise ValueError(f"no context for peer {peer}")
        remote = all_info[peer_index(rank, peer, size)]
        if remote is None:
            raise ValueError(f"no info from peer {peer} for rank {rank}")
        ctx.connect(remote, ctx.psn)
        connected.append(peer)
    return connected


def main(argv=None):
    """Build and connect a two-rank mesh in this process; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) == 1:
        print("Server usage: dhtcount-mesh <port_greater_than_18000>")
        return 1
    if len(args) != 2:
        print("Client usage: dhtcount-mesh <server> <port_greater_than_18000>")
        return 1

    hostname = socket.gethostname()
    for rank in range(MESH_SIZE):
        print(f"rank {rank} hostname: {hostname}")

    built = []
    try:
        for rank in range(MESH_SIZE):
            built.append(build_contexts(rank, MESH_SIZE))
        all_info = [info for _, infos in built for info in infos]
        for rank, (contexts, _) in enumerate(built):
            connect_all(rank, MESH_SIZE, contexts, all_info)
    except VerbsError as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        for contexts, _ in built:
            _close_all(contexts)
    return 0