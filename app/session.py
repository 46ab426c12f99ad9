from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from domain.ports import Clock, OutputSink

from .counters import SharedCounters
from .supervisor import StatsSupervisor

log = logging.getLogger(__name__)

UNLIMITED = -1


@dataclass
class SessionPolicy:
    max_bytes: int = UNLIMITED
    max_seconds: int = UNLIMITED
    tick_sec: float = 1.0
    grace_sec: float = 2.0
    window: int = 10
    producer_cpu: Optional[int] = None
    supervisor_cpu: Optional[int] = None


def is_limited(cap: Optional[int]) -> bool:
    return cap is not None and cap != UNLIMITED


class MeasurementSession:
    """
    Par produtor + supervisor de uma medição.

    O produtor chama start() antes do loop e close() ao sair (sempre, via
    finally): close() sinaliza o shutdown e espera `grace_sec` para que o
    supervisor publique o relatório final no próximo tick.
    """

    def __init__(self, sink: OutputSink, clock: Clock, policy: SessionPolicy):
        self.sink = sink
        self.clock = clock
        self.policy = policy

        self.counters = SharedCounters()
        self.supervisor = StatsSupervisor(
            self.counters,
            sink,
            clock,
            interval_sec=policy.tick_sec,
            depth=policy.window,
            cpu=policy.supervisor_cpu,
        )
        self._started = False
        self._closed = False

    def start(self) -> None:
        if self._started:
            raise RuntimeError("MeasurementSession is single-use")
        self._started = True
        self.supervisor.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        self.counters.request_shutdown()
        time.sleep(self.policy.grace_sec)

        if not self.supervisor.join(timeout=self.policy.tick_sec):
            log.warning("[session] supervisor did not finish within grace period, aborting it")
            self.supervisor.abort()

    def time_cap_reached(self, elapsed_seconds: int) -> bool:
        return is_limited(self.policy.max_seconds) and elapsed_seconds >= self.policy.max_seconds
