"""An in-process model of a reliable-connected verbs endpoint.

It models the pieces a connection set-up needs: memory regions with keys,
a completion queue, and a queue pair that moves through INIT, RTR and RTS.
"""

import itertools
import random
import struct
from collections import deque
from dataclasses import dataclass
from enum import IntEnum

IB_PORT = 1
RX_DEPTH = 500
MESG_SIZE = 4096
DEFAULT_LID = 1
FILL_BYTE = 0x7B

RECV_WRID = 1
SEND_WRID = 2

ACCESS_LOCAL_WRITE = 1
ACCESS_REMOTE_WRITE = 2
ACCESS_REMOTE_READ = 4
ACCESS_REMOTE_ATOMIC = 8
ACCESS_ALL = (
    ACCESS_LOCAL_WRITE | ACCESS_REMOTE_WRITE | ACCESS_REMOTE_READ | ACCESS_REMOTE_ATOMIC
)

SEND_SIGNALED = 2

WC_SUCCESS = 0
WC_WR_FLUSH_ERR = 5
WC_REM_ACCESS_ERR = 10

_CONN_INFO = struct.Struct("<iiiIQ")
CONN_INFO_SIZE = _CONN_INFO.size

_keys = itertools.count(1)
_qp_numbers = itertools.count(0x100)


class VerbsError(Exception):
    """A verbs operation failed."""


class QpState(IntEnum):
    RESET = 0
    INIT = 1
    RTR = 2
    RTS = 3


class Opcode(IntEnum):
    SEND = 0
    RDMA_WRITE = 1
    RDMA_READ = 2
    RECV = 128


@dataclass(frozen=True)
class ConnInfo:
    """What a peer needs to reach this endpoint and its shared region."""

    lid: int
    qpn: int
    psn: int
    rkey: int = 0
    addr: int = 0

    def pack(self):
        """Return the wire form of this record."""
        return _CONN_INFO.pack(self.lid, self.qpn, self.psn, self.rkey, self.addr)

    @classmethod
    def unpack(cls, data):
        """Build a record from its wire form."""
        if len(data) != CONN_INFO_SIZE:
            raise ValueError(
                f"connection info needs {CONN_INFO_SIZE} bytes, got {len(data)}"
            )
        return cls(*_CONN_INFO.unpack(data))


class MemoryRegion:
    """A registered buffer with local and remote keys and a base address."""

    def __init__(self, size, access):
        if size <= 0:
            raise ValueError("region size must be positive")
        key = next(_keys)
        self.size = size
        self.access = access
        self.lkey = key
        self.rkey = key + 0x10000
        self.addr = key << 32
        self._buffer = bytearray(size)

    def _check(self, offset, length):
        if offset < 0 or length < 0 or offset + length > self.size:
            raise VerbsError(
                f"access of {length} bytes at offset {offset} outside region of {self.size}"
            )

    def read(self, offset, length):
        """Return ``length`` bytes starting at ``offset``."""
        self._check(offset, length)
        return bytes(self._buffer[offset:offset + length])

    def write(self, offset, data):
        """Store ``data`` starting at ``offset``."""
        self._check(offset, len(data))
        self._buffer[offset:offset + len(data)] = data


@dataclass(frozen=True)
class Completion:
    """One entry of a completion queue."""

    opcode: Opcode
    status: int = WC_SUCCESS
    wr_id: int = 0


class CompletionQueue:
    """A bounded queue of completions."""

    def __init__(self, depth):
        if depth <= 0:
            raise ValueError("depth must be positive")
        self.depth = depth
        self._entries = deque()

    def __len__(self):
        return len(self._entries)

    def push(self, completion):
        """Append a completion; raise if the queue is full."""
        if len(self._entries) >= self.depth:
            raise VerbsError("completion queue overrun")
        self._entries.append(completion)

    def poll(self, opcode):
        """Drain entries until one of ``opcode`` turns up and return it.

        Flushed entries and RDMA completions of the other kind are dropped;
        a failed entry or one that is not an RDMA read or write raises.
        Returns None when the queue runs dry.
        """
        while self._entries:
            completion = self._entries.popleft()
            if completion.status != WC_SUCCESS:
                if completion.status == WC_WR_FLUSH_ERR:
                    continue
                raise VerbsError(f"cq completion failed status {completion.status}")
            if completion.opcode not in (Opcode.RDMA_WRITE, Opcode.RDMA_READ):
                raise VerbsError("unexpected opcode completion")
            if completion.opcode == opcode:
                return completion
        return None


class ConnectionContext:
    """A queue pair with its work buffer and completion queue."""

    def __init__(self, port=IB_PORT, rx_depth=RX_DEPTH, size=MESG_SIZE):
        if rx_depth <= 0:
            raise ValueError("rx_depth must be positive")
        self.port = port
        self.rx_depth = rx_depth
        self.size = size
        self.send_flags = SEND_SIGNALED
        self.buf = MemoryRegion(size, ACCESS_LOCAL_WRITE)
        self.buf.write(0, bytes([FILL_BYTE]) * size)
        self.cq = CompletionQueue(rx_depth + 1)
        self.qpn = next(_qp_numbers)
        self.state = QpState.INIT
        self.psn = None
        self.remote = None
        self.closed = False
        self._posted_recvs = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        if not self.closed:
            self.close()

    def _require_open(self):
        if self.closed:
            raise VerbsError("context is closed")

    def post_recv(self, count):
        """Post up to ``count`` receives; return how many fit on the queue."""
        self._require_open()
        posted = max(0, min(count, self.rx_depth - self._posted_recvs))
        self._posted_recvs += posted
        return posted

    def local_info(self, lid, region):
        """Return this endpoint's connection info, drawing a fresh PSN."""
        self._require_open()
        if not lid:
            raise VerbsError("Couldn't get local LID")
        self.psn = random_psn()
        return ConnInfo(lid, self.qpn, self.psn, region.rkey, region.addr)

    def connect(self, dest, psn):
        """Move the queue pair through RTR to RTS towards ``dest``."""
        self._require_open()
        if self.state != QpState.INIT:
            raise VerbsError("Failed to modify QP to RTR")
        self.state = QpState.RTR
        self.remote = dest
        self.psn = psn
        self.state = QpState.RTS

    def close(self):
        """Release the queue pair and its resources."""
        if self.closed:
            raise VerbsError("Couldn't destroy QP")
        self.closed = True
        self.state = QpState.RESET
        self._posted_recvs = 0
        self.cq = CompletionQueue(self.rx_depth + 1)


def random_psn():
    """Return a random 24-bit packet sequence number."""
    return random.getrandbits(24)