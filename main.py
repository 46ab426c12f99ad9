from __future__ import annotations

import argparse
import logging

from config import AppConfig, load_config
from app.analyzer import StreamAnalyzer
from app.generator import PacedGenerator
from app.session import SessionPolicy
from domain.ports import OutputSink, RecordPublisher
from infra.clock import SystemClock
from infra.csv_publisher import CsvRecordWriter
from infra.http_publisher import HttpRecordPublisher
from infra.logger_config import setup_logger
from infra.sinks import ConsoleSink, TeeSink
from infra.udp_transport import UdpDatagramSink, UdpDatagramSource, open_listener, open_sender

log = logging.getLogger(__name__)


def _policy(cfg: AppConfig) -> SessionPolicy:
    return SessionPolicy(
        max_bytes=cfg.max_bytes,
        max_seconds=cfg.max_seconds,
        grace_sec=cfg.grace_sec,
        window=cfg.window,
        producer_cpu=cfg.producer_cpu,
        supervisor_cpu=cfg.supervisor_cpu,
    )


def _publishers(cfg: AppConfig) -> list[RecordPublisher]:
    pubs: list[RecordPublisher] = []
    if cfg.http_publish is not None:
        h = cfg.http_publish
        pubs.append(
            HttpRecordPublisher(
                h.url,
                workers=h.workers,
                queue_max=h.queue_max,
                timeout_sec=h.timeout_sec,
                drop_on_full=h.drop_on_full,
            )
        )
        log.info("[http] enabled=True url=%s", h.url)
    if cfg.csv_publish is not None:
        c = cfg.csv_publish
        pubs.append(
            CsvRecordWriter(
                c.csv_path,
                queue_max=c.queue_max,
                drop_on_full=c.drop_on_full,
                flush_every_n=c.flush_every_n,
                flush_every_sec=c.flush_every_sec,
            )
        )
        log.info("[csv] enabled=True csv=%s", c.csv_path)
    return pubs


def run_generate(cfg: AppConfig, sink: OutputSink) -> None:
    sock = open_sender((cfg.host, cfg.port))
    try:
        gen = PacedGenerator(
            sink,
            rate_pps=cfg.rate_pps,
            datagram_size=cfg.datagram_size,
            clock=SystemClock(),
            policy=_policy(cfg),
        )
        gen.run(UdpDatagramSink(sock))
    finally:
        sock.close()


def run_analyze(cfg: AppConfig, sink: OutputSink) -> None:
    sock = open_listener(cfg.host, cfg.port, rcvbuf=cfg.recv_buffer)
    try:
        analyzer = StreamAnalyzer(sink, SystemClock(), _policy(cfg))
        analyzer.run(UdpDatagramSource(sock))
    finally:
        sock.close()


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(prog="udpprobe", description="Synthetic UDP traffic probe")
    ap.add_argument("-c", "--config", default="config.yaml", help="YAML config file (default: config.yaml)")
    ap.add_argument("-m", "--mode", choices=["generate", "analyze"], help="override 'mode' from the config")
    args = ap.parse_args(argv)

    try:
        cfg = load_config(args.config, mode_override=args.mode)
    except (OSError, ValueError) as e:
        raise SystemExit(str(e))

    setup_logger("", log_file=cfg.log_file, level=getattr(logging, cfg.log_level, logging.INFO))

    console = ConsoleSink(receiving=cfg.mode == "analyze", show_timestamps=cfg.show_timestamps)
    publishers = _publishers(cfg)
    for p in publishers:
        p.start()

    sink = TeeSink(console, publishers) if publishers else console

    try:
        if cfg.mode == "generate":
            run_generate(cfg, sink)
        else:
            run_analyze(cfg, sink)
    except KeyboardInterrupt:
        log.info("[main] interrupted")
    except OSError as e:
        raise SystemExit(f"Transport error: {e}")
    finally:
        for p in publishers:
            try:
                p.stop()
            except Exception:
                log.exception("[main] failed to stop publisher %r", p)

    print("Last Data:", sink.last_record())


if __name__ == "__main__":
    main()
