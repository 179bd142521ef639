"""Console progress for long per-account loops."""

import sys
import time
from datetime import timedelta
from typing import Optional, TextIO


def eta(done: int, total: int, elapsed: float) -> Optional[timedelta]:
    if done <= 0 or elapsed <= 0:
        return None
    return timedelta(seconds=round((total - done) * elapsed / done))


def progress_line(prefix: str, done: int, total: int, elapsed: float) -> str:
    """e.g. escrow 12/40 (30%) eta 0:01:05"""
    pct = done * 100 // total if total else 100
    remaining = eta(done, total, elapsed)
    return f"{prefix} {done}/{total} ({pct}%) eta {remaining if remaining is not None else '?'}"


class Progress:
    """Redraws one console line as accounts are processed; silent off a terminal."""

    def __init__(self, total: int, *, prefix: str = "", min_interval: float = 0.5, stream: Optional[TextIO] = None):
        self.total = max(0, int(total))
        self.prefix = prefix
        self.min_interval = min_interval
        self.stream = stream or sys.stderr
        self.enabled = self.stream.isatty()
        self._started = time.monotonic()
        self._drawn_at = 0.0

    def update(self, done: int) -> None:
        if not self.enabled:
            return
        now = time.monotonic()
        if now - self._drawn_at < self.min_interval and done < self.total:
            return
        self._drawn_at = now
        self.stream.write("\r" + progress_line(self.prefix, min(done, self.total), self.total, now - self._started))
        self.stream.flush()

    def finish(self) -> None:
        if self.enabled:
            self.stream.write("\n")
            self.stream.flush()
