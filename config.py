from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from app.generator import MAX_RATE_PPS

UNLIMITED = -1
MODES = ("generate", "analyze")


@dataclass(frozen=True)
class HttpPublishConfig:
    url: str

    workers: int = 2
    queue_max: int = 1000
    timeout_sec: float = 2.0
    drop_on_full: bool = True


@dataclass(frozen=True)
class CsvPublishConfig:
    csv_path: str = "udpprobe.csv"
    queue_max: int = 10000
    drop_on_full: bool = True
    flush_every_n: int = 10
    flush_every_sec: float = 2.0


@dataclass(frozen=True)
class AppConfig:
    mode: str
    host: str
    port: int

    rate_pps: int = 1000
    datagram_size: int = 1000

    max_bytes: int = UNLIMITED
    max_seconds: int = UNLIMITED

    grace_sec: float = 2.0
    window: int = 10

    show_timestamps: bool = True
    recv_buffer: int = 65535

    producer_cpu: Optional[int] = None
    supervisor_cpu: Optional[int] = None

    log_level: str = "INFO"
    log_file: Optional[str] = None

    http_publish: Optional[HttpPublishConfig] = None
    csv_publish: Optional[CsvPublishConfig] = None


def _req(d: Mapping[str, Any], path: str) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            raise ValueError(f"Invalid config: required field '{path}' is missing.")
        cur = cur[part]
    return cur


def _opt(d: Mapping[str, Any], path: str, default: Any) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _cap(x: Any, path: str) -> int:
    """null / -1 / "unlimited" -> UNLIMITED; senão inteiro >= 0."""
    if x is None or (isinstance(x, str) and x.strip().lower() == "unlimited"):
        return UNLIMITED
    try:
        v = int(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config: '{path}' must be an integer or -1 (unlimited), got {x!r}") from e
    if v == UNLIMITED:
        return v
    if v < 0:
        raise ValueError(f"Invalid config: '{path}' must be >= 0 or -1 (unlimited), got {v}")
    return v


def _opt_int(x: Any, path: str) -> Optional[int]:
    if x is None:
        return None
    try:
        return int(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config: '{path}' must be an integer, got {x!r}") from e


def parse_config(data: Mapping[str, Any], *, mode_override: Optional[str] = None) -> AppConfig:
    mode = str(mode_override or _req(data, "mode")).strip().lower()
    if mode not in MODES:
        raise ValueError(f"Invalid config: 'mode' must be one of {MODES}, got {mode!r}")

    host = str(_opt(data, "host", "0.0.0.0" if mode == "analyze" else "127.0.0.1"))
    port = int(_req(data, "port"))
    if port < 1 or port > 65535:
        raise ValueError(f"Invalid config: 'port' out of range: {port}")

    rate_pps = int(_opt(data, "rate_pps", 1000))
    if rate_pps <= 0 or rate_pps > MAX_RATE_PPS:
        raise ValueError(f"Invalid config: 'rate_pps' must be in 1..{MAX_RATE_PPS}, got {rate_pps}")

    datagram_size = int(_opt(data, "datagram_size", 1000))
    if datagram_size < 16:
        raise ValueError(f"Invalid config: 'datagram_size' must be >= 16 (header size), got {datagram_size}")

    window = int(_opt(data, "window", 10))
    if window < 1:
        raise ValueError(f"Invalid config: 'window' must be >= 1, got {window}")

    # ---- http_publish (opcional) ----
    http_raw = _opt(data, "http_publish", None)
    http_publish = None
    if isinstance(http_raw, Mapping) and bool(_opt(http_raw, "enabled", True)):
        http_publish = HttpPublishConfig(
            url=str(_req(http_raw, "url")),
            workers=int(_opt(http_raw, "workers", 2)),
            queue_max=int(_opt(http_raw, "queue_max", 1000)),
            timeout_sec=float(_opt(http_raw, "timeout_sec", 2.0)),
            drop_on_full=bool(_opt(http_raw, "drop_on_full", True)),
        )

    # ---- csv_publish (opcional) ----
    csv_raw = _opt(data, "csv_publish", None)
    csv_publish = None
    if isinstance(csv_raw, Mapping) and bool(_opt(csv_raw, "enabled", True)):
        csv_publish = CsvPublishConfig(
            csv_path=str(_opt(csv_raw, "csv_path", "udpprobe.csv")),
            queue_max=int(_opt(csv_raw, "queue_max", 10000)),
            drop_on_full=bool(_opt(csv_raw, "drop_on_full", True)),
            flush_every_n=int(_opt(csv_raw, "flush_every_n", 10)),
            flush_every_sec=float(_opt(csv_raw, "flush_every_sec", 2.0)),
        )

    log_file = _opt(data, "logging.file", None)

    return AppConfig(
        mode=mode,
        host=host,
        port=port,
        rate_pps=rate_pps,
        datagram_size=datagram_size,
        max_bytes=_cap(_opt(data, "max_bytes", UNLIMITED), "max_bytes"),
        max_seconds=_cap(_opt(data, "max_seconds", UNLIMITED), "max_seconds"),
        grace_sec=float(_opt(data, "grace_sec", 2.0)),
        window=window,
        show_timestamps=bool(_opt(data, "show_timestamps", True)),
        recv_buffer=int(_opt(data, "recv_buffer", 65535)),
        producer_cpu=_opt_int(_opt(data, "affinity.producer_cpu", None), "affinity.producer_cpu"),
        supervisor_cpu=_opt_int(_opt(data, "affinity.supervisor_cpu", None), "affinity.supervisor_cpu"),
        log_level=str(_opt(data, "logging.level", "INFO")).upper(),
        log_file=str(log_file) if log_file else None,
        http_publish=http_publish,
        csv_publish=csv_publish,
    )


def load_config(path: str = "config.yaml", *, mode_override: Optional[str] = None) -> AppConfig:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Invalid config: top level of {path} must be a mapping.")
    return parse_config(data, mode_override=mode_override)
