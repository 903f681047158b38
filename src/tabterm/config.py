"""Runtime configuration for the tabbed terminal service."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional


@dataclass(frozen=True)
class TabTermConfig:
    # Program started in every new tab
    command: str = "claude"
    args: List[str] = field(default_factory=list)
    term_name: str = "xterm-color"

    # Initial pty size; the UI resizes once it has measured itself
    cols: int = 80
    rows: int = 24
    cwd: Optional[str] = None

    # Tab naming: "terminal-3" / "Claude 3"
    id_prefix: str = "terminal"
    name_prefix: str = "Claude"

    # Menu detection
    max_buffer_lines: int = 50
    debounce_seconds: float = 0.5

    # Service
    host: str = "127.0.0.1"
    port: int = 8765
    log_lines: int = 2000

    def with_overrides(self, **overrides) -> "TabTermConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
