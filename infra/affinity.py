from __future__ import annotations

import logging
import os

log = logging.getLogger(__name__)


def pin_current_thread(cpu: int, role: str = "") -> bool:
    """
    Fixa a thread chamadora numa CPU (Linux: pid 0 = thread corrente).
    Sem suporte na plataforma: só registra e segue.
    """
    if not hasattr(os, "sched_setaffinity"):
        log.warning("[affinity] %s: CPU pinning not supported on this platform", role or "thread")
        return False
    try:
        os.sched_setaffinity(0, {int(cpu)})
    except OSError as e:
        log.warning("[affinity] %s: could not pin to CPU %s: %s", role or "thread", cpu, e)
        return False
    log.debug("[affinity] %s pinned to CPU %s", role or "thread", cpu)
    return True
