from __future__ import annotations

import threading
from typing import Optional

from domain.models import CounterSnapshot


class SharedCounters:
    """
    Bloco de contadores compartilhado entre o produtor (gerador ou analisador)
    e o supervisor. Um único lock; seções críticas só fazem aritmética.

    - produtor: escreve bytes/pacotes/jitter
    - supervisor: zera o intervalo e avança elapsed_seconds
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        # intervalo corrente
        self._bytes = 0
        self._jitter_sum_nanos = 0
        self._jitter_samples = 0

        # acumulados
        self._packets_sent = 0
        self._packets_received = 0
        self._packets_dropped = 0
        self._packets_out_of_order = 0
        self._sent_seq = 0
        self._received_seq = 0

        self._elapsed_seconds = 0

        self._running = False
        self._shutdown_requested = False

    # -----------------------------
    # lado produtor
    # -----------------------------

    def mark_running(self) -> None:
        with self._lock:
            self._running = True

    def record_sent(self, nbytes: int, seq: int) -> int:
        """Retorna elapsed_seconds (para checar o limite de tempo)."""
        with self._lock:
            self._bytes += nbytes
            self._packets_sent += 1
            self._sent_seq = seq
            return self._elapsed_seconds

    def record_received(
        self,
        nbytes: int,
        jitter_nanos: Optional[int],
        *,
        received: int,
        dropped: int,
        out_of_order: int,
        highest_seq: int,
    ) -> int:
        with self._lock:
            self._bytes += nbytes
            if jitter_nanos is not None:
                self._jitter_sum_nanos += jitter_nanos
                self._jitter_samples += 1
            self._packets_received = received
            self._packets_dropped = dropped
            self._packets_out_of_order = out_of_order
            self._received_seq = highest_seq
            self._running = True
            return self._elapsed_seconds

    def request_shutdown(self) -> None:
        with self._lock:
            self._shutdown_requested = True

    # -----------------------------
    # lado supervisor
    # -----------------------------

    def take_snapshot(self) -> Optional[CounterSnapshot]:
        """
        Snapshot atômico + reset do intervalo + elapsed_seconds += 1.
        None enquanto o produtor não começou (running=False).
        """
        with self._lock:
            if not self._running:
                return None

            self._elapsed_seconds += 1

            snap = CounterSnapshot(
                bytes=self._bytes,
                jitter_sum_nanos=self._jitter_sum_nanos,
                jitter_samples=self._jitter_samples,
                packets_sent=self._packets_sent,
                packets_received=self._packets_received,
                packets_dropped=self._packets_dropped,
                packets_out_of_order=self._packets_out_of_order,
                sent_seq=self._sent_seq,
                received_seq=self._received_seq,
                elapsed_seconds=self._elapsed_seconds,
                shutdown_requested=self._shutdown_requested,
            )

            self._bytes = 0
            self._jitter_sum_nanos = 0
            self._jitter_samples = 0
            return snap

    def finish(self) -> None:
        with self._lock:
            self._elapsed_seconds = 0
            self._shutdown_requested = False

    # -----------------------------
    # leitura
    # -----------------------------

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def shutdown_requested(self) -> bool:
        with self._lock:
            return self._shutdown_requested

    @property
    def elapsed_seconds(self) -> int:
        with self._lock:
            return self._elapsed_seconds

    def totals(self) -> tuple[int, int, int, int]:
        with self._lock:
            return (
                self._packets_sent,
                self._packets_received,
                self._packets_dropped,
                self._packets_out_of_order,
            )
