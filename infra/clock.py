from time import time, time_ns
from domain.ports import Clock

# epoch seconds (float) / epoch nanoseconds (int)
class SystemClock(Clock):
    def now_epoch(self) -> float:
        return time()

    def now_nanos(self) -> int:
        return time_ns()
