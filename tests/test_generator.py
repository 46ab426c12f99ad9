import threading

import pytest

from app.generator import PacedGenerator
from app.session import SessionPolicy
from domain.wire import decode_header
from infra.sinks import MemorySink

from conftest import CaptureWriter


def test_send_one_stamps_time_and_sequence(clock):
    gen = PacedGenerator(MemorySink(), rate_pps=100, datagram_size=64, clock=clock)
    w = CaptureWriter()

    gen.send_one(w)
    clock.advance(5)
    gen.send_one(w)

    h1, h2 = (decode_header(d) for d in w.datagrams)
    assert (h1.sequence_number, h2.sequence_number) == (1, 2)
    assert h2.send_timestamp_nanos - h1.send_timestamp_nanos == 5
    assert all(len(d) == 64 for d in w.datagrams)
    assert w.datagrams[0][16:] == w.datagrams[1][16:]


def test_send_one_updates_counters(clock):
    gen = PacedGenerator(MemorySink(), rate_pps=100, datagram_size=200, clock=clock)
    gen.counters.mark_running()
    w = CaptureWriter()

    for _ in range(3):
        gen.send_one(w)

    snap = gen.counters.take_snapshot()
    assert snap.bytes == 600
    assert snap.packets_sent == 3
    assert snap.sent_seq == 3


def test_invalid_rate():
    with pytest.raises(ValueError):
        PacedGenerator(MemorySink(), rate_pps=0, datagram_size=100)


def test_datagram_smaller_than_header():
    with pytest.raises(ValueError):
        PacedGenerator(MemorySink(), rate_pps=10, datagram_size=8)


def test_stops_once_byte_limit_exceeded(clock):
    sink = MemorySink()
    policy = SessionPolicy(max_bytes=1000, tick_sec=0.05, grace_sec=0.15)
    gen = PacedGenerator(sink, rate_pps=2000, datagram_size=100, clock=clock, policy=policy)
    w = CaptureWriter()

    gen.run(w)

    assert len(w.datagrams) == 11
    assert [decode_header(d).sequence_number for d in w.datagrams] == list(range(1, 12))
    assert sink.statuses[0].startswith("start UDP client, pps: 2000, psize: 100")
    assert any("Send byte limit (1000) reached, quitting, sent 1100 bytes" in s for s in sink.statuses)
    assert "Final statistics:" in sink.statuses
    assert sink.last_record().packets_sent == 11


def test_stops_when_supervisor_elapsed_reaches_time_limit(clock):
    sink = MemorySink()
    policy = SessionPolicy(max_seconds=2, tick_sec=0.05, grace_sec=0.15)
    gen = PacedGenerator(sink, rate_pps=1000, datagram_size=32, clock=clock, policy=policy)
    w = CaptureWriter()

    done = threading.Event()

    def target():
        gen.run(w)
        done.set()

    t = threading.Thread(target=target, daemon=True)
    t.start()

    assert done.wait(timeout=5.0)
    assert any("Time limit (2 seconds) reached" in s for s in sink.statuses)
    assert len(w.datagrams) > 0
    # a sessão termina no tick seguinte ao pedido de shutdown
    assert sink.last_record().elapsed_seconds >= 2


def test_write_error_propagates_after_shutdown(clock):
    class Broken:
        def write(self, data):
            raise OSError("network unreachable")

    sink = MemorySink()
    policy = SessionPolicy(tick_sec=0.02, grace_sec=0.1)
    gen = PacedGenerator(sink, rate_pps=100, datagram_size=32, clock=clock, policy=policy)

    with pytest.raises(OSError):
        gen.run(Broken())

    assert "Final statistics:" in sink.statuses
    assert sink.last_record().packets_sent == 0


def test_rate_above_one_packet_per_nanosecond_rejected():
    with pytest.raises(ValueError, match="rate_pps"):
        PacedGenerator(MemorySink(), rate_pps=2_000_000_000, datagram_size=64)


def test_maximum_rate_runs_without_zero_interval(clock):
    sink = MemorySink()
    policy = SessionPolicy(max_bytes=100, tick_sec=0.02, grace_sec=0.1)
    gen = PacedGenerator(sink, rate_pps=1_000_000_000, datagram_size=16, clock=clock, policy=policy)
    w = CaptureWriter()

    gen.run(w)

    assert gen.interval_nanos == 1
    assert len(w.datagrams) == 7
