from __future__ import annotations

import queue
import threading
from typing import Iterable, List, Optional

import pytest

from app.session import SessionPolicy
from domain.models import OutputRecord
from domain.wire import encode_header


class FakeClock:
    def __init__(self, epoch: float = 1_700_000_000.0, nanos: int = 1_000_000_000):
        self.epoch = epoch
        self.nanos = nanos

    def now_epoch(self) -> float:
        return self.epoch

    def now_nanos(self) -> int:
        return self.nanos

    def advance(self, nanos: int) -> None:
        self.nanos += nanos
        self.epoch += nanos / 1e9


class ListSource:
    """Entrega os datagramas da lista e depois fim de stream."""

    def __init__(self, datagrams: Iterable[bytes]):
        self._items = list(datagrams)

    def read(self) -> Optional[bytes]:
        if not self._items:
            return None
        return self._items.pop(0)


class CaptureWriter:
    def __init__(self) -> None:
        self.datagrams: List[bytes] = []

    def write(self, data: bytes) -> int:
        self.datagrams.append(bytes(data))
        return len(data)


class QueueTransport:
    """Transporte em memória sem perda: write() num lado, read() no outro."""

    def __init__(self) -> None:
        self._q: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self.written = 0
        self._lock = threading.Lock()

    def write(self, data: bytes) -> int:
        self._q.put(bytes(data))
        with self._lock:
            self.written += 1
        return len(data)

    def read(self) -> Optional[bytes]:
        return self._q.get()

    def close(self) -> None:
        self._q.put(None)


def datagram(seq: int, ts: int = 0, size: int = 16) -> bytes:
    return encode_header(ts, seq) + b"\x00" * (size - 16)


def make_record(**overrides) -> OutputRecord:
    base = dict(
        stamp_epoch=1_700_000_000.25,
        elapsed_seconds=3,
        rate_last_sec=8_000_000,
        rate_last_10_sec=7_500_000.0,
        rate_avg=7_000_000.0,
        rate_min=6_000_000,
        rate_max=8_000_000,
        jitter_last_sec=0.000125,
        jitter_last_10_sec=0.0001,
        jitter_avg=0.0001,
        jitter_min=0.0,
        jitter_max=0.0002,
        packets_sent=0,
        packets_received=3000,
        packets_dropped=2,
        packets_out_of_order=1,
    )
    base.update(overrides)
    return OutputRecord(**base)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_policy() -> SessionPolicy:
    return SessionPolicy(tick_sec=0.02, grace_sec=0.1)
