from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Deque, Dict, List


CATEGORIES = ("events", "errors", "debug", "output", "menus", "troubleshooting")


@dataclass
class LogManager:
    """Simple line-buffered log manager by category.

    Categories: events, errors, debug, output, menus, troubleshooting.
    Safe to call from pty reader and timer threads.
    """

    max_lines: int = 2000
    buffers: Dict[str, Deque[str]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        for name in CATEGORIES:
            self.buffers[name] = deque(maxlen=self.max_lines)

    def add(self, category: str, message: str) -> None:
        with self._lock:
            buf = self.buffers.setdefault(category, deque(maxlen=self.max_lines))
            for line in message.splitlines() or [message]:
                buf.append(line)

    def logger(self, category: str) -> Callable[[str], None]:
        """Return a ``debug_logger``-style callable bound to ``category``."""
        return partial(self.add, category)

    def tail(self, category: str, limit: int = 50) -> List[str]:
        with self._lock:
            buf = self.buffers.get(category)
            if not buf:
                return []
            return list(buf)[-limit:]

    def text(self, category: str) -> str:
        with self._lock:
            buf = self.buffers.get(category)
            if not buf:
                return ""
            return "\n".join(buf)

    def clear(self, category: str) -> None:
        with self._lock:
            buf = self.buffers.get(category)
            if buf is not None:
                buf.clear()
