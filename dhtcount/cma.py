"""A two-sided message exchange with a managed connection, plus a TCP rendezvous.

The server listens on ``port`` for a plain TCP rendezvous and on
``port + 5`` for the message exchange. The client sends a fixed 16-byte
message, the server answers with its own, and then the client connects
to the rendezvous port, which the server answers with ``done``.
"""

import socket
import sys
import time

MESSAGE_SIZE = 16
GREETING = b"COP5611"
CM_PORT_OFFSET = 5
DONE_MESSAGE = b"done\0"
SOCKET_TIMEOUT = 30.0
CONNECT_TIMEOUT = 5.0
_RETRY_DELAY = 0.05


class CmaError(Exception):
    """The message exchange failed."""


def _pad(message):
    if len(message) > MESSAGE_SIZE:
        raise ValueError(f"message must be at most {MESSAGE_SIZE} bytes")
    return message.ljust(MESSAGE_SIZE, b"\0")


def _c_string(data):
    return data.split(b"\0", 1)[0].decode("latin-1")


def _recv_exact(sock, count):
    chunks = []
    remaining = count
    while remaining:
        chunk = sock.recv(remaining)
        if not chunk:
            raise CmaError("peer closed the connection before the message arrived")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _connect(host, port):
    deadline = time.monotonic() + CONNECT_TIMEOUT
    while True:
        try:
            return socket.create_connection((host, port), timeout=SOCKET_TIMEOUT)
        except ConnectionRefusedError:
            if time.monotonic() >= deadline:
                raise
            time.sleep(_RETRY_DELAY)


def exchange_server(listener):
    """Accept one peer on ``listener``, take its message and answer with ours.

    Returns the message the peer sent.
    """
    conn, _ = listener.accept()
    with conn:
        conn.settimeout(listener.gettimeout() or SOCKET_TIMEOUT)
        received = _recv_exact(conn, MESSAGE_SIZE)
        conn.sendall(_pad(GREETING))
    return _c_string(received)


def exchange_client(host, port):
    """Send our message to the server at ``host``:``port`` and return its answer."""
    with _connect(host, port) as sock:
        sock.sendall(_pad(GREETING))
        reply = _recv_exact(sock, MESSAGE_SIZE)
    return _c_string(reply)


def _parse_port(text):
    port = int(text)
    if not 0 < port <= 0xFFFF - CM_PORT_OFFSET:
        raise ValueError(f"port {port} out of range")
    return port


def server_main(argv=None):
    """Run the exchange as the server on the given port; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "Server usage: dhtcount-cma-server <port_greater_than_18000>"
    if len(args) != 1:
        print(usage)
        return 1
    try:
        port = _parse_port(args[0])
    except ValueError:
        print(usage)
        return 1

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as rendezvous:
        rendezvous.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            rendezvous.bind(("", port))
        except OSError:
            print(f"failed to bind at port {port}", file=sys.stderr)
            return 1
        rendezvous.listen(1)
        rendezvous.settimeout(SOCKET_TIMEOUT)

        try:
            with socket.create_server(
                ("", port + CM_PORT_OFFSET), reuse_port=False
            ) as cm_listener:
                cm_listener.settimeout(SOCKET_TIMEOUT)
                exchange_server(cm_listener)
        except (OSError, CmaError) as exc:
            print(exc, file=sys.stderr)
            return 1

        try:
            client, _ = rendezvous.accept()
        except OSError as exc:
            print(exc, file=sys.stderr)
            return 1
        with client:
            try:
                client.sendall(DONE_MESSAGE)
            except OSError:
                pass
    print("closed sockets.", file=sys.stderr)
    return 0


def client_main(argv=None):
    """Run the exchange as the client against the given server and port."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "Client usage: dhtcount-cma-client <server> <port_greater_than_18000>"
    if len(args) != 2:
        print(usage)
        return 1
    try:
        port = _parse_port(args[1])
    except ValueError:
        print(usage)
        return 1
    try:
        address = socket.gethostbyname(args[0])
    except OSError:
        print(f"\nInvalid address {args[0]} Address not supported ", file=sys.stderr)
        return 1

    try:
        exchange_client(address, port + CM_PORT_OFFSET)
    except (OSError, CmaError) as exc:
        print(exc, file=sys.stderr)
        return 1

    try:
        with _connect(address, port):
            pass
    except OSError:
        print(f"failed to connect {args[0]} at port {port}", file=sys.stderr)
        return 1
    print("closed sockets.", file=sys.stderr)
    return 0