from __future__ import annotations
from dataclasses import dataclass, field
import time
from typing import Callable, List, Optional, Tuple

ProgressSink = Callable[[str], None]


def emit(sink: Optional[ProgressSink], msg: str) -> None:
    if sink:
        sink(msg)


@dataclass
class ProgressLog:
    """Collects progress lines with elapsed time; optionally forwards each one."""
    forward: Optional[ProgressSink] = None
    lines: List[Tuple[int, str]] = field(default_factory=list)

    def __post_init__(self):
        self._t0 = time.time()

    def __call__(self, msg: str) -> None:
        elapsed = int(time.time() - self._t0)
        self.lines.append((elapsed, msg))
        emit(self.forward, msg)

    def tail(self, n: int = 120) -> str:
        return "\n".join(f"{t:>4}s  {m}" for t, m in self.lines[-n:])
