from __future__ import annotations

import csv
import os
import threading
import time
from dataclasses import astuple, fields
from queue import Queue, Full, Empty
from datetime import datetime, timezone
from typing import List

from domain.models import OutputRecord
from domain.ports import RecordPublisher


class CsvRecordWriter(RecordPublisher):
    """
    Escrita assíncrona dos registros por segundo em CSV.
    Não bloqueia o supervisor.
    """

    COLUMNS = ["utc_time"] + [f.name for f in fields(OutputRecord)]

    def __init__(
        self,
        csv_path: str,
        *,
        queue_max: int = 10000,
        drop_on_full: bool = True,
        flush_every_n: int = 10,
        flush_every_sec: float = 2.0,
    ):
        self.csv_path = csv_path
        self.drop_on_full = drop_on_full
        self.flush_every_n = flush_every_n
        self.flush_every_sec = flush_every_sec

        self.total_dropped = 0

        self._q: Queue[OutputRecord] = Queue(maxsize=queue_max)
        self._stop = threading.Event()
        self._t = threading.Thread(target=self._worker, name="csv-writer", daemon=True)

    def start(self) -> None:
        self._t.start()

    def stop(self) -> None:
        self._stop.set()
        self._t.join(timeout=5)

    def publish(self, record: OutputRecord) -> None:
        try:
            self._q.put_nowait(record)
        except Full:
            if not self.drop_on_full:
                self._q.put(record)
            else:
                self.total_dropped += 1

    @staticmethod
    def _fmt_epoch(epoch: float) -> str:
        dt = datetime.fromtimestamp(epoch, tz=timezone.utc)
        return dt.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

    def _ensure_header(self) -> None:
        if not os.path.exists(self.csv_path) or os.path.getsize(self.csv_path) == 0:
            with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(self.COLUMNS)

    def _flush(self, batch: List[OutputRecord]) -> None:
        if not batch:
            return
        self._ensure_header()
        with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            for rec in batch:
                w.writerow([self._fmt_epoch(rec.stamp_epoch), *astuple(rec)])

    def _drain(self, batch: List[OutputRecord]) -> None:
        while True:
            try:
                batch.append(self._q.get_nowait())
            except Empty:
                return

    def _worker(self) -> None:
        batch: List[OutputRecord] = []
        last_flush = time.time()

        while not self._stop.is_set():
            try:
                rec = self._q.get(timeout=0.2)
                batch.append(rec)
            except Empty:
                pass

            now = time.time()
            if batch and (
                len(batch) >= self.flush_every_n
                or (now - last_flush) >= self.flush_every_sec
            ):
                self._flush(batch)
                batch.clear()
                last_flush = now

        # o que ainda estiver na fila sai no stop
        self._drain(batch)
        if batch:
            self._flush(batch)
