"""
Session multiplexer - process lifecycle, output buffering, menu detection.

Handles:
- Spawning programs in pseudo-terminals
- Per-session output tails and debounced detection passes
- Heuristic extraction of numbered / lettered menu options
"""

from .menu_detector import MenuCandidate, MenuOption, analyze, detect_menu
from .session import OutputBuffer, Session, SessionState
from .session_manager import SessionManager
from .terminal_runner import ProcessAdapter, ProcessHandle, PtyProcessAdapter, TerminalRunner

__all__ = [
    "MenuCandidate",
    "MenuOption",
    "analyze",
    "detect_menu",
    "OutputBuffer",
    "Session",
    "SessionState",
    "SessionManager",
    "ProcessAdapter",
    "ProcessHandle",
    "PtyProcessAdapter",
    "TerminalRunner",
]
