from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from domain.models import SequenceTracker
from domain.ports import Clock, DatagramSource, OutputSink
from domain.wire import FramingError, decode_header
from infra.affinity import pin_current_thread
from infra.clock import SystemClock

from .session import MeasurementSession, SessionPolicy, is_limited

log = logging.getLogger(__name__)


class ArrivalKind(enum.Enum):
    IN_ORDER = "in_order"
    GAP = "gap"
    OUT_OF_ORDER = "out_of_order"


@dataclass(frozen=True)
class Arrival:
    seq: int
    kind: ArrivalKind
    nbytes: int
    jitter_nanos: Optional[int] = None  # só quando as 3 últimas chegadas são consecutivas
    lost: int = 0


class StreamAnalyzer:
    """
    Lado receptor: classifica cada datagrama pela sequência e estima jitter.

    Jitter = |2*t(n-1) - (t(n-2) + t(n))|, só quando as três últimas chegadas
    são consecutivas. Fora disso:
      - salto para frente: seq - highest - 1 pacotes perdidos
      - seq <= highest: fora de ordem (desfaz uma perda contada antes)
    """

    def __init__(
        self,
        sink: OutputSink,
        clock: Optional[Clock] = None,
        policy: Optional[SessionPolicy] = None,
    ):
        self.clock = clock or SystemClock()
        self.policy = policy or SessionPolicy()
        self.tracker = SequenceTracker()
        self.session = MeasurementSession(sink, self.clock, self.policy)

        self.total_bytes = 0
        self.rejected = 0
        self._last_elapsed = 0

    @property
    def counters(self):
        return self.session.counters

    @property
    def sink(self) -> OutputSink:
        return self.session.sink

    def classify(self, seq: int, recv_nanos: int, nbytes: int) -> Arrival:
        t = self.tracker

        if t.last_three_consecutive(seq):
            jitter = abs(2 * t.prev_recv_nanos - (t.two_back_recv_nanos + recv_nanos))
            arrival = Arrival(seq=seq, kind=ArrivalKind.IN_ORDER, nbytes=nbytes, jitter_nanos=jitter)
        elif seq > t.highest_seq:
            lost = seq - t.highest_seq - 1
            t.dropped += lost
            kind = ArrivalKind.GAP if lost else ArrivalKind.IN_ORDER
            arrival = Arrival(seq=seq, kind=kind, nbytes=nbytes, lost=lost)
        else:
            # chegou atrasado: a perda contada no salto não aconteceu.
            # duplicatas também caem aqui, por isso o clamp em zero
            if t.dropped > 0:
                t.dropped -= 1
            t.out_of_order += 1
            arrival = Arrival(seq=seq, kind=ArrivalKind.OUT_OF_ORDER, nbytes=nbytes)

        t.shift(seq, recv_nanos)
        return arrival

    def process(self, data: bytes, recv_nanos: int) -> Arrival:
        """Decodifica, classifica e publica nos contadores. Levanta FramingError."""
        header = decode_header(data)
        arrival = self.classify(header.sequence_number, recv_nanos, len(data))

        t = self.tracker
        self._last_elapsed = self.counters.record_received(
            arrival.nbytes,
            arrival.jitter_nanos,
            received=t.received,
            dropped=t.dropped,
            out_of_order=t.out_of_order,
            highest_seq=t.highest_seq,
        )
        self.total_bytes += arrival.nbytes
        return arrival

    def run(self, source: DatagramSource) -> None:
        """
        Consome `source` até: fim de stream, limite de bytes, limite de tempo.
        Erros de transporte sobem para o chamador (depois do shutdown).
        """
        if self.policy.producer_cpu is not None:
            pin_current_thread(self.policy.producer_cpu, "analyzer")

        self.session.start()
        log.info(
            "[analyzer] start max_bytes=%s max_seconds=%s",
            self.policy.max_bytes,
            self.policy.max_seconds,
        )
        try:
            self._loop(source)
        finally:
            self.session.close()
            log.info(
                "[analyzer] done received=%d dropped=%d out_of_order=%d rejected=%d",
                self.tracker.received,
                self.tracker.dropped,
                self.tracker.out_of_order,
                self.rejected,
            )

    def _loop(self, source: DatagramSource) -> None:
        max_bytes = self.policy.max_bytes

        while True:
            data = source.read()
            recv_nanos = self.clock.now_nanos()
            if data is None:
                log.info("[analyzer] end of stream")
                return

            try:
                self.process(data, recv_nanos)
            except FramingError as e:
                self.rejected += 1
                log.warning("[analyzer] rejected datagram: %s", e)
                continue

            if is_limited(max_bytes) and self.total_bytes >= max_bytes:
                self.sink.status(
                    f"\nByte limit ({max_bytes}) reached, quitting, {self.total_bytes} total bytes received \n"
                )
                return

            if self.session.time_cap_reached(self._last_elapsed):
                self.sink.status(f"\nTime limit ({self.policy.max_seconds} seconds) reached, quitting \n")
                return
