from __future__ import annotations

import logging
import queue
import threading
from dataclasses import asdict
from typing import Optional

import httpx

from domain.models import OutputRecord
from domain.ports import RecordPublisher

log = logging.getLogger(__name__)


class HttpRecordPublisher(RecordPublisher):
    """
    POST de cada OutputRecord (JSON) fora da thread do supervisor.
    Uma tentativa por registro: falhas só são contadas.
    """

    def __init__(
        self,
        url: str,
        *,
        workers: int = 2,
        queue_max: int = 1000,
        timeout_sec: float = 2.0,
        drop_on_full: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_sec
        self._drop_on_full = drop_on_full
        self._transport = transport

        self._q: queue.Queue[OutputRecord | _Stop] = queue.Queue(maxsize=queue_max)
        self._workers = workers
        self._threads: list[threading.Thread] = []
        self._client: Optional[httpx.Client] = None
        self._started = False
        self._counts_lock = threading.Lock()

        # métricas simples
        self.total_published = 0
        self.total_dropped = 0
        self.total_failed = 0
        self.total_sent = 0

    def start(self) -> None:
        if self._started:
            return
        self._client = httpx.Client(timeout=self._timeout, transport=self._transport)
        self._threads = []
        for i in range(self._workers):
            t = threading.Thread(target=self._worker, args=(i,), name=f"http-publisher-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        # sinaliza parada (depois do que já está na fila)
        for _ in self._threads:
            self._q.put(_Stop())
        for t in self._threads:
            t.join(timeout=3)
        self._threads.clear()
        self._started = False
        if self._client:
            self._client.close()
            self._client = None
        log.info(
            "[http] stopped published=%d sent=%d failed=%d dropped=%d",
            self.total_published,
            self.total_sent,
            self.total_failed,
            self.total_dropped,
        )

    def publish(self, record: OutputRecord) -> None:
        if not self._started:
            raise RuntimeError("HttpRecordPublisher.publish called before start()")

        self.total_published += 1

        if self._drop_on_full:
            try:
                self._q.put_nowait(record)
            except queue.Full:
                self.total_dropped += 1
        else:
            self._q.put(record)

    def _worker(self, wid: int) -> None:
        assert self._client is not None

        while True:
            item = self._q.get()
            try:
                if isinstance(item, _Stop):
                    return

                try:
                    r = self._client.post(self._url, json=asdict(item))
                    r.raise_for_status()
                except httpx.HTTPError as e:
                    with self._counts_lock:
                        self.total_failed += 1
                    log.warning("[http] worker %d: post failed: %s", wid, e)
                else:
                    with self._counts_lock:
                        self.total_sent += 1
            finally:
                self._q.task_done()


class _Stop:
    pass
