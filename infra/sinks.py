from __future__ import annotations
import sys
import threading
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TextIO

from domain.ports import OutputSink, RecordPublisher
from domain.models import OutputRecord

TS_BLANK = " " * 29


def format_rate(bps: float) -> str:
    if bps > 1_000_000_000:
        label, r = "G", bps / 1_000_000_000.0
    elif bps > 1_000_000:
        label, r = "M", bps / 1_000_000.0
    elif bps > 1_000:
        label, r = "K", bps / 1_000.0
    else:
        label, r = " ", float(bps)
    return f"{r:5.3f}{label}"


def format_stamp(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("[%m-%d-%Y][%H:%M:%S.%f]")


class ConsoleSink(OutputSink):
    """
    Tabela de texto, uma linha por segundo.
      receiving=False: taxa + pacotes enviados
      receiving=True:  taxa + jitter (ms) + recebidos/perdidos/fora de ordem
    """

    def __init__(self, stream: Optional[TextIO] = None, *, receiving: bool = False, show_timestamps: bool = True):
        self.stream = stream
        self.receiving = receiving
        self.show_timestamps = show_timestamps
        self._last: Optional[OutputRecord] = None

    def _out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def header(self) -> None:
        lines = []

        top = TS_BLANK if self.show_timestamps else ""
        top += "           [ <-------- Data Rate (bps) --------> ]"
        if self.receiving:
            top += "[ <---------- Jitter (ms) -----------> ][ <---- Number of Packets ----> ] "
        lines.append(top)

        cols = "[                  Timestamp]" if self.show_timestamps else ""
        cols += "[  # Secs ][ Lst Secnd ][  Lst 10 S ][ Snce Strt ]"
        if self.receiving:
            cols += "[ Last Sec ][ Last 10 S ][ Since Start ][ Receivd ][ Dropped ][ OutOrdr ] "
        else:
            cols += "[ # Packets Sent ] "
        lines.append(cols)

        print("\n".join(lines), file=self._out(), flush=True)

    def write_record(self, record: OutputRecord) -> None:
        self._last = record

        line = format_stamp(record.stamp_epoch) if self.show_timestamps else ""
        line += f"[ {record.elapsed_seconds:7d} ]"
        line += f"[ {format_rate(record.rate_last_sec):>9} ]"
        line += f"[ {format_rate(record.rate_last_10_sec):>9} ]"
        line += f"[ {format_rate(record.rate_avg):>9} ]"

        if self.receiving:
            line += (
                f"[ {record.jitter_last_sec * 1000.0:8.3f} ]"
                f"[ {record.jitter_last_10_sec * 1000.0:9.3f} ]"
                f"[ {record.jitter_avg * 1000.0:11.3f} ]"
                f"[ {record.packets_received:7d} ]"
                f"[ {record.packets_dropped:7d} ]"
                f"[ {record.packets_out_of_order:7d} ]"
            )
        else:
            line += f"[ {record.packets_sent:14d} ]"

        print(line, file=self._out(), flush=True)

    def status(self, text: str) -> None:
        print(text, file=self._out(), flush=True)

    def last_record(self) -> Optional[OutputRecord]:
        return self._last


class NullSink(OutputSink):
    """Headless: não imprime nada, só guarda o último registro."""

    def __init__(self) -> None:
        self._last: Optional[OutputRecord] = None

    def header(self) -> None:
        pass

    def write_record(self, record: OutputRecord) -> None:
        self._last = record

    def status(self, text: str) -> None:
        pass

    def last_record(self) -> Optional[OutputRecord]:
        return self._last


class MemorySink(OutputSink):
    """Captura tudo em memória (testes, uso embutido)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: List[OutputRecord] = []
        self.statuses: List[str] = []
        self.headers = 0
        # sequência de chamadas: "header" | "record" | "status"
        self.events: List[str] = []

    def header(self) -> None:
        with self._lock:
            self.headers += 1
            self.events.append("header")

    def write_record(self, record: OutputRecord) -> None:
        with self._lock:
            self.records.append(record)
            self.events.append("record")

    def status(self, text: str) -> None:
        with self._lock:
            self.statuses.append(text)
            self.events.append("status")

    def last_record(self) -> Optional[OutputRecord]:
        with self._lock:
            return self.records[-1] if self.records else None


class TeeSink(OutputSink):
    """Sink principal + publishers extras (HTTP, CSV) para cada linha de dados."""

    def __init__(self, primary: OutputSink, publishers: Sequence[RecordPublisher] = ()):
        self.primary = primary
        self.publishers = list(publishers)

    def header(self) -> None:
        self.primary.header()

    def write_record(self, record: OutputRecord) -> None:
        self.primary.write_record(record)
        for p in self.publishers:
            p.publish(record)

    def status(self, text: str) -> None:
        self.primary.status(text)

    def last_record(self) -> Optional[OutputRecord]:
        return self.primary.last_record()
