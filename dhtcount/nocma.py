"""Connection set-up by exchanging endpoint info over TCP, then one remote write.

The server publishes a shared region; the client writes a message into it
and tells the server when it is done.
"""

import socket
import struct
import sys

from dhtcount.verbs import (
    ACCESS_ALL,
    ACCESS_REMOTE_WRITE,
    CONN_INFO_SIZE,
    DEFAULT_LID,
    MESG_SIZE,
    SEND_WRID,
    WC_REM_ACCESS_ERR,
    WC_SUCCESS,
    Completion,
    ConnectionContext,
    ConnInfo,
    MemoryRegion,
    Opcode,
    QpState,
    VerbsError,
)

GREETING = "Hello from client!"
DONE_MESSAGE = b"done\0"
NOTIFY_LIMIT = 64
SOCKET_TIMEOUT = 30.0

_WRITE = b"W"
_NOTIFY = b"N"
_ACK = b"A"
_NAK = b"E"
_WRITE_HEADER = struct.Struct("<IQI")
_LENGTH = struct.Struct("<I")


def _recv_exact(sock, count):
    chunks = []
    remaining = count
    while remaining:
        chunk = sock.recv(remaining)
        if not chunk:
            raise ConnectionError("peer closed the connection")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _c_string(data):
    return data.split(b"\0", 1)[0].decode("latin-1")


def _prepare(ctx):
    posted = ctx.post_recv(ctx.rx_depth)
    if posted < ctx.rx_depth:
        raise VerbsError(f"Couldn't post receive ({posted})")


def _apply_write(ctx, region, rkey, addr, data):
    if ctx.state != QpState.RTS:
        raise VerbsError("queue pair is not ready")
    if rkey != region.rkey or not region.access & ACCESS_REMOTE_WRITE:
        raise VerbsError("remote access error")
    region.write(addr - region.addr, data)


def _serve_frames(conn, ctx, region):
    while True:
        tag = _recv_exact(conn, 1)
        if tag == _WRITE:
            rkey, addr, length = _WRITE_HEADER.unpack(
                _recv_exact(conn, _WRITE_HEADER.size)
            )
            data = _recv_exact(conn, length)
            try:
                _apply_write(ctx, region, rkey, addr, data)
            except VerbsError:
                conn.sendall(_NAK)
                raise
            conn.sendall(_ACK)
        elif tag == _NOTIFY:
            (length,) = _LENGTH.unpack(_recv_exact(conn, _LENGTH.size))
            return _c_string(_recv_exact(conn, length)[:NOTIFY_LIMIT])
        else:
            raise VerbsError(f"unexpected frame {tag!r}")


def serve(listener):
    """Accept one client on ``listener`` and take its write.

    Returns ``(message, text)``: the client's completion notice and the
    string it wrote into the shared region.
    """
    with ConnectionContext() as ctx:
        _prepare(ctx)
        conn, _ = listener.accept()
        with conn:
            conn.settimeout(listener.gettimeout())
            shared = MemoryRegion(MESG_SIZE, ACCESS_ALL)
            my_info = ctx.local_info(DEFAULT_LID, shared)
            conn.sendall(my_info.pack())
            peer = ConnInfo.unpack(_recv_exact(conn, CONN_INFO_SIZE))
            ctx.connect(peer, my_info.psn)
            message = _serve_frames(conn, ctx, shared)
    return message, _c_string(shared.read(0, shared.size))


def _rdma_write(sock, ctx, region, peer):
    if ctx.state != QpState.RTS:
        raise VerbsError("queue pair is not ready")
    data = region.read(0, region.size)
    sock.sendall(_WRITE + _WRITE_HEADER.pack(peer.rkey, peer.addr, len(data)) + data)
    status = WC_SUCCESS if _recv_exact(sock, 1) == _ACK else WC_REM_ACCESS_ERR
    ctx.cq.push(Completion(Opcode.RDMA_WRITE, status, SEND_WRID))
    return ctx.cq.poll(Opcode.RDMA_WRITE)


def run_client(host, port, message):
    """Connect to a server, write ``message`` into its region and notify it.

    Returns the completion of the remote write.
    """
    payload = message.encode("latin-1") if isinstance(message, str) else bytes(message)
    if len(payload) >= MESG_SIZE:
        raise ValueError(f"message must be shorter than {MESG_SIZE} bytes")
    with ConnectionContext() as ctx:
        _prepare(ctx)
        with socket.create_connection((host, port), timeout=SOCKET_TIMEOUT) as sock:
            shared = MemoryRegion(MESG_SIZE, ACCESS_ALL)
            my_info = ctx.local_info(DEFAULT_LID, shared)
            peer = ConnInfo.unpack(_recv_exact(sock, CONN_INFO_SIZE))
            sock.sendall(my_info.pack())
            ctx.connect(peer, my_info.psn)
            shared.write(0, payload + b"\0")
            completion = _rdma_write(sock, ctx, shared, peer)
            sock.sendall(_NOTIFY + _LENGTH.pack(len(DONE_MESSAGE)) + DONE_MESSAGE)
    return completion


def server_main(argv=None):
    """Serve one client on the given port; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "server usage: dhtcount-nocma-server <port_greater_than_18000>"
    if len(args) != 1:
        print(usage)
        return 1
    try:
        port = int(args[0])
    except ValueError:
        print(usage)
        return 1

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            listener.bind(("", port))
        except (OSError, OverflowError):
            print(f"failed to bind at port {port}", file=sys.stderr)
            return 1
        listener.listen(1)
        try:
            message, _ = serve(listener)
        except (OSError, VerbsError) as exc:
            print(exc, file=sys.stderr)
            return 1
    print(f"message {message} ...", file=sys.stderr)
    print("closed QP.", file=sys.stderr)
    return 0


def client_main(argv=None):
    """Write a greeting to the server at the given host and port."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "Client usage: dhtcount-nocma-client <server> <port_greater_than_18000>"
    if len(args) != 2:
        print(usage)
        return 1
    try:
        port = int(args[1])
    except ValueError:
        print(usage)
        return 1
    try:
        address = socket.gethostbyname(args[0])
    except OSError:
        print(f"\nInvalid address {args[0]} Address not supported ", file=sys.stderr)
        return 1
    try:
        run_client(address, port, GREETING)
    except (OSError, OverflowError):
        print(f"failed to connect {args[0]} at port {port}", file=sys.stderr)
        return 1
    except VerbsError as exc:
        print(exc, file=sys.stderr)
        return 1
    print("closed QP.", file=sys.stderr)
    return 0