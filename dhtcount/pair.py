"""Two ranks in one process: a message exchange followed by a TCP rendezvous.

Rank 1 shares its address with rank 0, opens the rendezvous port and serves
the message exchange on ``port + 5``. Rank 0 runs the exchange as the client,
then connects to the rendezvous port, which rank 1 answers with ``done``.
"""

import queue
import socket
import sys
import threading

from dhtcount.cma import (
    CM_PORT_OFFSET,
    DONE_MESSAGE,
    SOCKET_TIMEOUT,
    CmaError,
    exchange_client,
    exchange_server,
)

# Both ranks live on this host, so rank 1 publishes the loopback address.
LOOPBACK = "127.0.0.1"
PAIR_SIZE = 2


def _check_port(port):
    if not 0 < port <= 0xFFFF - CM_PORT_OFFSET:
        raise ValueError(f"port {port} out of range")


def _rank_one(port, mailbox, outcome):
    try:
        mailbox.put(LOOPBACK)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as rendezvous:
            rendezvous.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            rendezvous.bind(("", port))
            rendezvous.listen(1)
            rendezvous.settimeout(SOCKET_TIMEOUT)
            with socket.create_server(("", port + CM_PORT_OFFSET)) as cm_listener:
                cm_listener.settimeout(SOCKET_TIMEOUT)
                outcome["received"] = exchange_server(cm_listener)
            client, _ = rendezvous.accept()
            with client:
                client.sendall(DONE_MESSAGE)
    except BaseException as exc:  # handed back to the caller's thread
        outcome["error"] = exc


def _read_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(64)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks).split(b"\0", 1)[0].decode("latin-1")


def run_pair(port):
    """Run both ranks on ``port`` and ``port + 5``.

    Returns ``(server_received, client_received, rendezvous_message)``.
    """
    _check_port(port)
    mailbox = queue.Queue()
    outcome = {}
    server = threading.Thread(
        target=_rank_one, args=(port, mailbox, outcome), daemon=True
    )
    server.start()
    client_error = None
    client_received = rendezvous_message = None
    try:
        remote = mailbox.get(timeout=SOCKET_TIMEOUT)
        client_received = exchange_client(remote, port + CM_PORT_OFFSET)
        with socket.create_connection((remote, port), timeout=SOCKET_TIMEOUT) as sock:
            rendezvous_message = _read_all(sock)
    except (OSError, CmaError, queue.Empty) as exc:
        client_error = exc
    server.join(SOCKET_TIMEOUT)
    if "error" in outcome:
        raise outcome["error"]
    if client_error is not None:
        raise client_error
    if server.is_alive():
        raise CmaError("server rank did not finish")
    return outcome["received"], client_received, rendezvous_message


def main(argv=None):
    """Run the two-rank exchange on the given port; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "Usage: dhtcount-pair <port_greater_than_18000>"
    if len(args) != 1:
        print(usage)
        return 1
    try:
        port = int(args[0])
        _check_port(port)
    except ValueError:
        print(usage)
        return 1
    try:
        run_pair(port)
    except (OSError, CmaError) as exc:
        print(exc, file=sys.stderr)
        return 1
    for rank in range(PAIR_SIZE):
        print(f"rank {rank}: closed sockets.", file=sys.stderr)
    return 0