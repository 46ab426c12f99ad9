from __future__ import annotations

from typing import Optional, Protocol

from .models import OutputRecord


class Clock(Protocol):
    def now_epoch(self) -> float: ...

    def now_nanos(self) -> int: ...


# -----------------------------
# Transporte (um datagrama por chamada)
# -----------------------------

class DatagramSource(Protocol):
    def read(self) -> Optional[bytes]:
        """Próximo datagrama. None = fim de stream (término normal)."""
        ...


class DatagramSink(Protocol):
    def write(self, data: bytes) -> int: ...


# -----------------------------
# Saída de relatórios
# -----------------------------

class OutputSink(Protocol):
    def header(self) -> None: ...

    def write_record(self, record: OutputRecord) -> None: ...

    def status(self, text: str) -> None: ...

    def last_record(self) -> Optional[OutputRecord]: ...


class RecordPublisher(Protocol):
    def publish(self, record: OutputRecord) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...
