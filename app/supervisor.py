from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Optional

from domain.history import DEFAULT_DEPTH, SlidingWindowTracker
from domain.models import CounterSnapshot, OutputRecord
from domain.ports import Clock, OutputSink
from infra.affinity import pin_current_thread

from .counters import SharedCounters

log = logging.getLogger(__name__)

NANOS_PER_SEC = 1_000_000_000


class SupervisorState(enum.Enum):
    IDLE = "idle"
    REPORTING = "reporting"
    TERMINATED = "terminated"


class StatsSupervisor:
    """
    Relatório periódico (1 tick por segundo).

    - snapshot atômico dos contadores a cada tick
    - alimenta os históricos de taxa e jitter
    - monta um OutputRecord e entrega ao sink
    - ao ver shutdown_requested: imprime o relatório final e encerra

    Uso único: uma instância por sessão.
    """

    def __init__(
        self,
        counters: SharedCounters,
        sink: OutputSink,
        clock: Clock,
        *,
        interval_sec: float = 1.0,
        depth: int = DEFAULT_DEPTH,
        cpu: Optional[int] = None,
    ):
        self.counters = counters
        self.sink = sink
        self.clock = clock
        self.interval_sec = float(interval_sec)
        self.cpu = cpu

        self.rate = SlidingWindowTracker(depth=depth)
        self.jitter = SlidingWindowTracker(depth=depth)

        self.state = SupervisorState.IDLE
        self._need_header = True

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -----------------------------
    # thread
    # -----------------------------

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("StatsSupervisor is single-use; create a new one per session")
        self._thread = threading.Thread(target=self.run, name="stats-supervisor", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def abort(self) -> None:
        """Para o loop sem relatório final."""
        self._stop.set()

    def run(self) -> None:
        if self.cpu is not None:
            pin_current_thread(self.cpu, "supervisor")

        next_tick = time.monotonic() + self.interval_sec
        while self.state is not SupervisorState.TERMINATED:
            if self._stop.wait(max(0.0, next_tick - time.monotonic())):
                log.debug("[supervisor] aborted")
                return

            self.tick()

            # mantém o grid; se atrasou mais de um tick, não tenta recuperar
            next_tick += self.interval_sec
            now = time.monotonic()
            if next_tick < now:
                next_tick = now + self.interval_sec

    # -----------------------------
    # tick
    # -----------------------------

    def tick(self) -> Optional[OutputRecord]:
        if self.state is SupervisorState.TERMINATED:
            return None

        snap = self.counters.take_snapshot()
        if snap is None:
            # produtor ainda não começou
            if self.counters.shutdown_requested:
                log.info("[supervisor] shutdown before any traffic, no statistics")
                self.counters.finish()
                self.state = SupervisorState.TERMINATED
            return None

        self.state = SupervisorState.REPORTING
        record = self._build_record(snap)

        if snap.shutdown_requested:
            self.sink.status("Final statistics:")
            self.sink.header()
            self.sink.write_record(record)
            self.counters.finish()
            self.state = SupervisorState.TERMINATED
            log.info(
                "[supervisor] terminated after %d s sent_seq=%d received_seq=%d",
                snap.elapsed_seconds,
                snap.sent_seq,
                snap.received_seq,
            )
            return record

        if self._need_header:
            self.sink.header()
            self._need_header = False
        self.sink.write_record(record)
        return record

    def _build_record(self, snap: CounterSnapshot) -> OutputRecord:
        self.rate.update(snap.bits)
        self.jitter.update(snap.mean_jitter_nanos)

        nsec = snap.elapsed_seconds
        r, j = self.rate, self.jitter

        return OutputRecord(
            stamp_epoch=self.clock.now_epoch(),
            elapsed_seconds=nsec,
            rate_last_sec=r.current,
            rate_last_10_sec=r.window_avg,
            rate_avg=r.lifetime_avg(nsec),
            rate_min=r.minimum,
            rate_max=r.maximum,
            jitter_last_sec=j.current / NANOS_PER_SEC,
            jitter_last_10_sec=j.window_avg / NANOS_PER_SEC,
            jitter_avg=j.lifetime_avg(nsec) / NANOS_PER_SEC,
            jitter_min=j.minimum / NANOS_PER_SEC,
            jitter_max=j.maximum / NANOS_PER_SEC,
            packets_sent=snap.packets_sent,
            packets_received=snap.packets_received,
            packets_dropped=snap.packets_dropped,
            packets_out_of_order=snap.packets_out_of_order,
        )
