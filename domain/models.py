from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PacketHeader:
    send_timestamp_nanos: int
    sequence_number: int


@dataclass
class SequenceTracker:
    """
    Estado de recepção de um único analisador.
    - highest_seq: maior número de sequência já visto
    - prev_* / two_back_*: as duas últimas chegadas (seq + instante local)
    """
    highest_seq: int = 0
    prev_seq: int = 0
    two_back_seq: int = 0
    prev_recv_nanos: Optional[int] = None
    two_back_recv_nanos: Optional[int] = None

    received: int = 0
    dropped: int = 0
    out_of_order: int = 0

    def last_three_consecutive(self, seq: int) -> bool:
        return (
            self.two_back_recv_nanos is not None
            and seq == self.highest_seq + 1
            and seq == self.prev_seq + 1
            and self.prev_seq == self.two_back_seq + 1
        )

    def shift(self, seq: int, recv_nanos: int) -> None:
        self.two_back_seq = self.prev_seq
        self.prev_seq = seq

        self.two_back_recv_nanos = self.prev_recv_nanos
        self.prev_recv_nanos = recv_nanos

        if seq > self.highest_seq:
            self.highest_seq = seq

        self.received += 1


@dataclass(frozen=True)
class CounterSnapshot:
    # interval (zerados a cada tick)
    bytes: int
    jitter_sum_nanos: int
    jitter_samples: int

    # acumulados
    packets_sent: int
    packets_received: int
    packets_dropped: int
    packets_out_of_order: int
    sent_seq: int
    received_seq: int

    elapsed_seconds: int
    shutdown_requested: bool

    @property
    def bits(self) -> int:
        return self.bytes * 8

    @property
    def mean_jitter_nanos(self) -> float:
        return self.jitter_sum_nanos / self.jitter_samples if self.jitter_samples else 0.0


@dataclass(frozen=True)
class OutputRecord:
    stamp_epoch: float
    elapsed_seconds: int

    rate_last_sec: float
    rate_last_10_sec: float
    rate_avg: float
    rate_min: float
    rate_max: float

    # segundos
    jitter_last_sec: float
    jitter_last_10_sec: float
    jitter_avg: float
    jitter_min: float
    jitter_max: float

    packets_sent: int
    packets_received: int
    packets_dropped: int
    packets_out_of_order: int
