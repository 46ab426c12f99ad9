from __future__ import annotations

import logging
import time
from typing import Optional

from domain.ports import Clock, DatagramSink, OutputSink
from domain.wire import make_payload_buffer, stamp_header
from infra.affinity import pin_current_thread
from infra.clock import SystemClock

from .session import MeasurementSession, SessionPolicy, is_limited

log = logging.getLogger(__name__)

MAX_RATE_PPS = 1_000_000_000  # intervalo de pelo menos 1 ns


class PacedGenerator:
    """
    Lado emissor: datagramas de tamanho fixo a `rate_pps` por segundo.

    - cabeçalho: timestamp (ns) + sequência (começa em 1)
    - deadline periódico de 1e9/rate_pps ns; deadlines perdidos por mais de
      um intervalo são descartados (não há rajada de recuperação)
    - sem backpressure: envia no ritmo configurado, independente da rede
    """

    def __init__(
        self,
        sink: OutputSink,
        *,
        rate_pps: int,
        datagram_size: int,
        clock: Optional[Clock] = None,
        policy: Optional[SessionPolicy] = None,
    ):
        if rate_pps <= 0 or rate_pps > MAX_RATE_PPS:
            raise ValueError(f"rate_pps must be in 1..{MAX_RATE_PPS}, got {rate_pps}")

        self.rate_pps = int(rate_pps)
        self.datagram_size = int(datagram_size)
        self.interval_nanos = 1_000_000_000 // self.rate_pps

        self.clock = clock or SystemClock()
        self.policy = policy or SessionPolicy()
        self.session = MeasurementSession(sink, self.clock, self.policy)

        self._payload = make_payload_buffer(self.datagram_size)
        self.next_seq = 1

        self.total_bytes = 0
        self.missed_ticks = 0

    @property
    def counters(self):
        return self.session.counters

    @property
    def sink(self) -> OutputSink:
        return self.session.sink

    def send_one(self, writer: DatagramSink) -> int:
        seq = self.next_seq
        stamp_header(self._payload, self.clock.now_nanos(), seq)
        self.next_seq += 1

        n = writer.write(bytes(self._payload))

        elapsed = self.counters.record_sent(n, seq)
        self.total_bytes += n
        return elapsed

    def run(self, writer: DatagramSink) -> None:
        if self.policy.producer_cpu is not None:
            pin_current_thread(self.policy.producer_cpu, "generator")

        self.counters.mark_running()
        self.session.start()

        self.sink.status(
            f"start UDP client, pps: {self.rate_pps}, psize: {self.datagram_size}, "
            f"ns: {self.policy.max_seconds}, nb: {self.policy.max_bytes}"
        )
        log.info("[generator] start pps=%d size=%d", self.rate_pps, self.datagram_size)

        try:
            self._loop(writer)
        finally:
            self.session.close()
            log.info(
                "[generator] done sent=%d bytes=%d missed_ticks=%d",
                self.next_seq - 1,
                self.total_bytes,
                self.missed_ticks,
            )

    def _loop(self, writer: DatagramSink) -> None:
        max_bytes = self.policy.max_bytes
        interval = self.interval_nanos

        next_fire = time.perf_counter_ns() + interval
        while True:
            now = time.perf_counter_ns()
            if now < next_fire:
                time.sleep((next_fire - now) / 1e9)
                now = time.perf_counter_ns()

            elapsed = self.send_one(writer)

            next_fire += interval
            if now - next_fire >= interval:
                skipped = (now - next_fire) // interval
                self.missed_ticks += skipped
                next_fire += skipped * interval

            if is_limited(max_bytes) and self.total_bytes > max_bytes:
                self.sink.status(
                    f"\nSend byte limit ({max_bytes}) reached, quitting, sent {self.total_bytes} bytes \n"
                )
                return

            if self.session.time_cap_reached(elapsed):
                self.sink.status(f"\nTime limit ({self.policy.max_seconds} seconds) reached, quitting \n")
                return
