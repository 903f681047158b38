"""Per-session state: identity, owned process handle, output tail, debounce."""

from __future__ import annotations

import re
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Deque, List, Optional

from .menu_detector import MenuOption
from .scheduler import ScheduledTask, Scheduler
from .terminal_runner import ProcessHandle


_LINE_BREAK = re.compile(r"\r?\n")


class SessionState(Enum):
    RUNNING = "running"
    CLOSED = "closed"


@dataclass
class OutputBuffer:
    """Bounded FIFO of the most recent complete output lines.

    Chunks are split incrementally: text after the last line break is held
    in ``partial`` until the next chunk completes it. ``partial`` is still
    part of the detection window, since prompts often lack a trailing newline.
    """

    max_lines: int = 50
    max_partial_chars: int = 4096
    lines: Deque[str] = field(init=False)
    partial: str = field(default="", init=False)

    def __post_init__(self) -> None:
        if self.max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self.lines = deque(maxlen=self.max_lines)

    def feed(self, chunk: str) -> List[str]:
        """Append a chunk; return the lines it completed."""
        parts = _LINE_BREAK.split(self.partial + chunk)
        self.partial = parts.pop()
        if len(self.partial) > self.max_partial_chars:
            # Full-screen repaints can go a long way without a newline
            parts.append(self.partial)
            self.partial = ""
        self.lines.extend(parts)
        return parts

    def window(self) -> str:
        tail = list(self.lines)
        if self.partial:
            tail.append(self.partial)
        return "\n".join(tail)

    def clear(self) -> None:
        self.lines.clear()
        self.partial = ""

    def __len__(self) -> int:
        return len(self.lines)


@dataclass
class Session:
    """One terminal tab: its process plus transient detection state.

    Buffer and debounce timer belong to this session alone; the manager never
    shares them between ids.
    """

    id: str
    name: str
    process: ProcessHandle
    buffer: OutputBuffer
    state: SessionState = SessionState.RUNNING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_options: List[MenuOption] = field(default_factory=list, init=False)
    pending_detection: Optional[ScheduledTask] = field(default=None, init=False, repr=False)
    _detection_generation: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def append_output(self, chunk: str) -> List[str]:
        with self._lock:
            if self.is_closed:
                return []
            return self.buffer.feed(chunk)

    def buffered_lines(self) -> int:
        with self._lock:
            return len(self.buffer)

    def detection_window(self) -> str:
        with self._lock:
            return self.buffer.window()

    def has_pending_detection(self) -> bool:
        with self._lock:
            return self.pending_detection is not None

    def schedule_detection(
        self,
        scheduler: Scheduler,
        delay: float,
        callback: Callable[[int], None],
    ) -> bool:
        """Replace any pending detection task with a new one (trailing edge).

        ``callback`` receives the generation number it was scheduled with and
        should pass it back to ``claim_detection``.
        """
        with self._lock:
            if self.is_closed:
                return False
            if self.pending_detection is not None:
                self.pending_detection.cancel()
            self._detection_generation += 1
            generation = self._detection_generation
            self.pending_detection = scheduler.schedule(delay, lambda: callback(generation))
            return True

    def claim_detection(self, generation: int) -> Optional[str]:
        """Return the window to analyze, or None if this task was superseded.

        A timer that already started running cannot be cancelled, so the
        generation check keeps a late firing from analyzing on behalf of a
        newer one.
        """
        with self._lock:
            if self.is_closed or generation != self._detection_generation:
                return None
            self.pending_detection = None
            return self.buffer.window()

    def cancel_detection(self) -> None:
        with self._lock:
            if self.pending_detection is not None:
                self.pending_detection.cancel()
                self.pending_detection = None
            self._detection_generation += 1

    def close(self) -> None:
        """Mark closed, cancel pending detection and release the buffer."""
        with self._lock:
            self.state = SessionState.CLOSED
            if self.pending_detection is not None:
                self.pending_detection.cancel()
                self.pending_detection = None
            self._detection_generation += 1
            self.buffer.clear()
