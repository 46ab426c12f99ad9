import csv
import json
import threading

import httpx

from infra.csv_publisher import CsvRecordWriter
from infra.http_publisher import HttpRecordPublisher

from conftest import make_record


def test_http_publisher_posts_record_as_json():
    bodies = []
    lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        with lock:
            bodies.append(json.loads(request.content))
        return httpx.Response(204)

    pub = HttpRecordPublisher(
        "http://collector.test/records",
        workers=1,
        transport=httpx.MockTransport(handler),
    )
    pub.start()
    pub.publish(make_record(elapsed_seconds=1))
    pub.publish(make_record(elapsed_seconds=2))
    pub.stop()

    assert [b["elapsed_seconds"] for b in bodies] == [1, 2]
    assert bodies[0]["packets_received"] == 3000
    assert pub.total_sent == 2
    assert pub.total_failed == 0


def test_http_publisher_attempts_once_on_failure():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    pub = HttpRecordPublisher("http://collector.test/records", workers=1, transport=httpx.MockTransport(handler))
    pub.start()
    pub.publish(make_record())
    pub.stop()

    assert len(calls) == 1
    assert pub.total_failed == 1
    assert pub.total_sent == 0


def test_http_publish_before_start_raises():
    pub = HttpRecordPublisher("http://collector.test/records")
    try:
        pub.publish(make_record())
    except RuntimeError:
        pass
    else:
        raise AssertionError("expected RuntimeError")


def test_csv_writer_flushes_on_stop(tmp_path):
    path = tmp_path / "records.csv"
    w = CsvRecordWriter(str(path), flush_every_n=100, flush_every_sec=60.0)
    w.start()
    w.publish(make_record(elapsed_seconds=1))
    w.publish(make_record(elapsed_seconds=2))
    w.stop()

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert rows[0] == CsvRecordWriter.COLUMNS
    assert len(rows) == 3
    idx = rows[0].index("elapsed_seconds")
    assert [r[idx] for r in rows[1:]] == ["1", "2"]
    assert rows[1][0] == "2023-11-14 22:13:20.250"


def test_csv_writer_appends_without_repeating_header(tmp_path):
    path = tmp_path / "records.csv"
    for n in (1, 2):
        w = CsvRecordWriter(str(path), flush_every_n=1)
        w.start()
        w.publish(make_record(elapsed_seconds=n))
        w.stop()

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert sum(1 for r in rows if r == CsvRecordWriter.COLUMNS) == 1
    assert len(rows) == 3
