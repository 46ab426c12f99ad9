import io

import pytest

from infra.sinks import ConsoleSink, MemorySink, NullSink, TeeSink, format_rate, format_stamp

from conftest import make_record


@pytest.mark.parametrize(
    "bps, expected",
    [
        (0, "0.000 "),
        (999, "999.000 "),
        (1000, "1000.000 "),
        (1500, "1.500K"),
        (8_000_000, "8.000M"),
        (2_500_000_000, "2.500G"),
    ],
)
def test_format_rate(bps, expected):
    assert format_rate(bps) == expected


def test_format_stamp_is_utc():
    assert format_stamp(0.5) == "[01-01-1970][00:00:00.500000]"


def test_receiving_console_layout():
    out = io.StringIO()
    sink = ConsoleSink(out, receiving=True, show_timestamps=False)

    sink.header()
    sink.write_record(make_record())

    lines = out.getvalue().splitlines()
    assert "Jitter (ms)" in lines[0]
    assert "[ Receivd ][ Dropped ][ OutOrdr ]" in lines[1]
    assert "Timestamp" not in lines[1]
    assert lines[2].startswith("[       3 ][    8.000M ]")
    assert "[    0.125 ]" in lines[2]
    assert lines[2].endswith("[    3000 ][       2 ][       1 ]")


def test_sending_console_layout_with_timestamps():
    out = io.StringIO()
    sink = ConsoleSink(out, receiving=False, show_timestamps=True)

    sink.header()
    sink.write_record(make_record(packets_sent=42))

    lines = out.getvalue().splitlines()
    assert "Jitter" not in lines[0]
    assert lines[1].startswith("[                  Timestamp][  # Secs ]")
    assert "[ # Packets Sent ]" in lines[1]
    assert lines[2].startswith("[11-14-2023]")
    assert lines[2].endswith("[             42 ]")


def test_console_remembers_last_record():
    sink = ConsoleSink(io.StringIO())
    assert sink.last_record() is None

    rec = make_record()
    sink.write_record(rec)

    assert sink.last_record() is rec


def test_console_status_line():
    out = io.StringIO()
    ConsoleSink(out).status("Final statistics:")

    assert out.getvalue() == "Final statistics:\n"


def test_null_sink_keeps_last_record_only():
    sink = NullSink()
    sink.header()
    sink.status("ignored")
    rec = make_record()
    sink.write_record(rec)

    assert sink.last_record() is rec


def test_tee_forwards_records_to_publishers():
    class Collect:
        def __init__(self):
            self.got = []

        def publish(self, record):
            self.got.append(record)

        def start(self):
            pass

        def stop(self):
            pass

    primary = MemorySink()
    pub = Collect()
    tee = TeeSink(primary, [pub])

    rec = make_record()
    tee.header()
    tee.status("hello")
    tee.write_record(rec)

    assert primary.events == ["header", "status", "record"]
    assert pub.got == [rec]
    assert tee.last_record() is rec
