import pytest

from dhtcount.verbs import (
    ACCESS_ALL,
    ACCESS_LOCAL_WRITE,
    CONN_INFO_SIZE,
    FILL_BYTE,
    WC_REM_ACCESS_ERR,
    WC_WR_FLUSH_ERR,
    Completion,
    CompletionQueue,
    ConnectionContext,
    ConnInfo,
    MemoryRegion,
    Opcode,
    QpState,
    VerbsError,
    random_psn,
)


def test_conn_info_round_trip():
    info = ConnInfo(lid=3, qpn=77, psn=0xABCDEF, rkey=4242, addr=1 << 40)
    packed = info.pack()
    assert len(packed) == CONN_INFO_SIZE
    assert ConnInfo.unpack(packed) == info


def test_conn_info_unpack_wrong_length():
    with pytest.raises(ValueError):
        ConnInfo.unpack(b"\x00" * (CONN_INFO_SIZE - 1))


def test_memory_region_read_write():
    region = MemoryRegion(64, ACCESS_ALL)
    region.write(10, b"abc")
    assert region.read(10, 3) == b"abc"
    assert region.read(0, 2) == b"\x00\x00"


def test_memory_region_bounds():
    region = MemoryRegion(8, ACCESS_ALL)
    with pytest.raises(VerbsError):
        region.write(6, b"abc")
    with pytest.raises(VerbsError):
        region.read(-1, 2)


def test_memory_regions_have_distinct_keys():
    first = MemoryRegion(16, ACCESS_ALL)
    second = MemoryRegion(16, ACCESS_ALL)
    assert first.rkey != second.rkey
    assert first.addr != second.addr


def test_context_buffer_is_filled():
    ctx = ConnectionContext(size=32)
    assert ctx.buf.read(0, 32) == bytes([FILL_BYTE]) * 32
    assert ctx.buf.access == ACCESS_LOCAL_WRITE
    assert ctx.state == QpState.INIT


def test_post_recv_limited_by_depth():
    ctx = ConnectionContext(rx_depth=5)
    assert ctx.post_recv(3) == 3
    assert ctx.post_recv(5) == 2
    assert ctx.post_recv(1) == 0


def test_local_info_carries_region_keys():
    ctx = ConnectionContext()
    region = MemoryRegion(128, ACCESS_ALL)
    info = ctx.local_info(7, region)
    assert info.rkey == region.rkey
    assert info.addr == region.addr
    assert info.qpn == ctx.qpn
    assert info.psn == ctx.psn


def test_local_info_needs_lid():
    ctx = ConnectionContext()
    with pytest.raises(VerbsError):
        ctx.local_info(0, MemoryRegion(8, ACCESS_ALL))


def test_connect_reaches_rts_once():
    ctx = ConnectionContext()
    peer = ConnInfo(lid=2, qpn=9, psn=5)
    ctx.connect(peer, 11)
    assert ctx.state == QpState.RTS
    assert ctx.remote == peer
    with pytest.raises(VerbsError):
        ctx.connect(peer, 11)


def test_close_twice_fails():
    ctx = ConnectionContext()
    ctx.close()
    assert ctx.state == QpState.RESET
    with pytest.raises(VerbsError):
        ctx.close()
    with pytest.raises(VerbsError):
        ctx.post_recv(1)


def test_context_manager_closes():
    with ConnectionContext() as ctx:
        pass
    assert ctx.closed is True


def test_poll_skips_flushed_and_other_kind():
    cq = CompletionQueue(4)
    cq.push(Completion(Opcode.RDMA_WRITE, WC_WR_FLUSH_ERR))
    cq.push(Completion(Opcode.RDMA_READ))
    wanted = Completion(Opcode.RDMA_WRITE, wr_id=2)
    cq.push(wanted)
    assert cq.poll(Opcode.RDMA_WRITE) == wanted
    assert len(cq) == 0


def test_poll_empty_returns_none():
    cq = CompletionQueue(2)
    cq.push(Completion(Opcode.RDMA_READ))
    assert cq.poll(Opcode.RDMA_WRITE) is None


def test_poll_failed_status_raises():
    cq = CompletionQueue(2)
    cq.push(Completion(Opcode.RDMA_WRITE, WC_REM_ACCESS_ERR))
    with pytest.raises(VerbsError):
        cq.poll(Opcode.RDMA_WRITE)


def test_poll_unexpected_opcode_raises():
    cq = CompletionQueue(2)
    cq.push(Completion(Opcode.SEND))
    with pytest.raises(VerbsError):
        cq.poll(Opcode.RDMA_WRITE)


def test_push_overrun_raises():
    cq = CompletionQueue(1)
    cq.push(Completion(Opcode.RDMA_WRITE))
    with pytest.raises(VerbsError):
        cq.push(Completion(Opcode.RDMA_WRITE))


def test_random_psn_is_24_bits():
    values = [random_psn() for _ in range(200)]
    assert all(0 <= value < (1 << 24) for value in values)