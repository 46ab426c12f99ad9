from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_DEPTH = 10


@dataclass
class SlidingWindowTracker:
    """
    Histórico por segundo de uma grandeza (taxa, jitter).

    - últimas `depth` amostras num buffer circular
    - total / mínimo / máximo desde o início
    - a média da janela divide por `filled` (não por `depth`) até encher
    """
    depth: int = DEFAULT_DEPTH

    current: float = 0
    filled: int = 0
    cursor: int = 0
    window_sum: float = 0
    lifetime_total: float = 0
    lifetime_min: Optional[float] = None
    lifetime_max: Optional[float] = None
    samples: int = 0

    _slots: List[float] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if self.depth < 1:
            raise ValueError(f"depth must be >= 1, got {self.depth}")
        self._slots = [0] * self.depth

    def update(self, sample: float) -> None:
        self.current = sample
        self.samples += 1

        if self.lifetime_min is None or sample < self.lifetime_min:
            self.lifetime_min = sample
        if self.lifetime_max is None or sample > self.lifetime_max:
            self.lifetime_max = sample

        self.lifetime_total += sample

        self._slots[self.cursor] = sample
        self.cursor = (self.cursor + 1) % self.depth

        if self.filled < self.depth:
            self.filled += 1

        self.window_sum = sum(self._slots[: self.filled])

    @property
    def window_avg(self) -> float:
        return self.window_sum / self.filled if self.filled else 0.0

    def lifetime_avg(self, elapsed_seconds: int) -> float:
        return self.lifetime_total / elapsed_seconds if elapsed_seconds else 0.0

    @property
    def minimum(self) -> float:
        return self.lifetime_min if self.lifetime_min is not None else 0.0

    @property
    def maximum(self) -> float:
        return self.lifetime_max if self.lifetime_max is not None else 0.0

    def window(self) -> List[float]:
        """Amostras da janela, da mais antiga para a mais recente."""
        if self.filled < self.depth:
            return list(self._slots[: self.filled])
        return self._slots[self.cursor:] + self._slots[: self.cursor]
