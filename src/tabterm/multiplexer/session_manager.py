"""Session lifecycle, per-session I/O routing and menu detection scheduling.

The manager owns the collection of sessions keyed by id. It is the only
place that adds or removes sessions; everything else (the message router,
diagnostics) reads through it.

Threading:
- Output and exit callbacks arrive on each process's pty reader thread
- Detection passes run on scheduler (timer) threads
- Public operations are called from the service's worker threads
The collection is guarded by one lock; each session guards its own buffer
and timer.
"""

from __future__ import annotations

import os
import threading
from typing import Callable, Dict, List, Optional

from ..config import TabTermConfig
from ..log_manager import LogManager
from .menu_detector import MenuCandidate, MenuOption, detect_menu, strip_escapes
from .scheduler import Scheduler, ThreadingScheduler
from .session import OutputBuffer, Session
from .terminal_runner import ProcessAdapter, PtyProcessAdapter


CreatedCallback = Callable[[str, str], None]
OutputCallback = Callable[[str, str], None]
ClosedCallback = Callable[[str], None]
MenuCallback = Callable[[MenuCandidate], None]
Detector = Callable[[str], List[MenuOption]]


class SessionManager:
    """Manages terminal sessions for one UI panel.

    Responsibilities:
    - Allocate ids/names from a counter that never goes backwards
    - Spawn, resize, feed and tear down session processes
    - Buffer output tails and debounce menu detection per session
    - Notify the UI boundary through the ``on_*`` callbacks
    """

    def __init__(
        self,
        adapter: Optional[ProcessAdapter] = None,
        config: Optional[TabTermConfig] = None,
        scheduler: Optional[Scheduler] = None,
        detector: Detector = detect_menu,
        debug_logger: Optional[Callable[[str], None]] = None,
        log_manager: Optional[LogManager] = None,
        on_created_callback: Optional[CreatedCallback] = None,
        on_output_callback: Optional[OutputCallback] = None,
        on_closed_callback: Optional[ClosedCallback] = None,
        on_menu_callback: Optional[MenuCallback] = None,
    ):
        """Initialize session manager.

        Args:
            adapter: Process adapter used to spawn session programs
            config: Command, sizes, buffer and debounce settings
            scheduler: Delayed-task scheduler for detection debounce
            detector: Menu detector applied to each session's output tail
            debug_logger: Optional callback for debug messages
            log_manager: Optional LogManager for events/output/menus/errors
            on_created_callback: Called with (session_id, name) once registered
            on_output_callback: Called with (session_id, raw_text) per chunk
            on_closed_callback: Called with session_id after teardown
            on_menu_callback: Called with a MenuCandidate when options are found
        """
        self.config = config or TabTermConfig()
        self.sessions: Dict[str, Session] = {}
        self._adapter = adapter or PtyProcessAdapter(
            term_name=self.config.term_name, debug_logger=debug_logger
        )
        self._scheduler = scheduler or ThreadingScheduler()
        self._detector = detector
        self._debug_logger = debug_logger or (lambda msg: None)
        self._log_manager = log_manager
        self._on_created_callback = on_created_callback
        self._on_output_callback = on_output_callback
        self._on_closed_callback = on_closed_callback
        self._on_menu_callback = on_menu_callback
        self._counter = 0
        self._lock = threading.Lock()

    # --- Public operations -------------------------------------------------

    def create_session(self) -> str:
        """Spawn a new session and return its id.

        A process that fails to start is reported like one that exited right
        away: the session is announced and then closed.
        """
        with self._lock:
            self._counter += 1
            number = self._counter
        session_id = f"{self.config.id_prefix}-{number}"
        name = f"{self.config.name_prefix} {number}"

        try:
            handle = self._adapter.spawn(
                self.config.command,
                list(self.config.args),
                cols=self.config.cols,
                rows=self.config.rows,
                cwd=self.config.cwd or os.getcwd(),
                env=None,
            )
        except OSError as e:
            self._log("errors", f"[{session_id}] spawn failed: {e}")
            self._notify_created(session_id, name)
            self._notify_closed(session_id)
            return session_id

        session = Session(
            id=session_id,
            name=name,
            process=handle,
            buffer=OutputBuffer(max_lines=self.config.max_buffer_lines),
        )

        handle.on_output(lambda text: self._handle_output(session_id, text))
        handle.on_exit(lambda code: self._handle_exit(session_id, code))

        # Register BEFORE starting, so output callbacks can find it
        with self._lock:
            self.sessions[session_id] = session

        self._log("events", f"Created {session_id} ({name}): {self.config.command}")
        self._notify_created(session_id, name)

        if not handle.start():
            self._debug_logger(f"[{session_id}] process did not start")
        return session_id

    def send_input(self, session_id: str, data: str) -> bool:
        """Write to the session's process. Unknown ids are ignored."""
        session = self.get_session(session_id)
        if session is None:
            self._debug_logger(f"input for unknown session '{session_id}' ignored")
            return False
        session.process.write(data)
        return True

    def resize(self, session_id: str, cols: int, rows: int) -> bool:
        """Resize the session's pty. Unknown ids are ignored.

        Args:
            session_id: Session identifier
            cols: Width in columns (chars per line)
            rows: Height in rows (number of lines)
        """
        session = self.get_session(session_id)
        if session is None:
            self._debug_logger(f"resize for unknown session '{session_id}' ignored")
            return False
        if cols < 1 or rows < 1:
            self._debug_logger(f"[{session_id}] invalid size {cols}x{rows} ignored")
            return False
        session.process.resize(cols, rows)
        self._debug_logger(f"[{session_id}] resized to {cols}x{rows}")
        return True

    def close_session(self, session_id: str) -> bool:
        """Kill and remove a session. Closing an unknown id is a no-op."""
        return self._teardown(session_id, reason="closed by request")

    def rename_session(self, session_id: str, name: str) -> bool:
        session = self.get_session(session_id)
        if session is None or not name.strip():
            return False
        session.name = name.strip()
        return True

    def dispose_all(self) -> None:
        """Kill every live process and clear the collection (shutdown)."""
        with self._lock:
            sessions = list(self.sessions.values())
            self.sessions.clear()
        for session in sessions:
            session.close()
            try:
                session.process.kill()
            except OSError as e:
                self._log("errors", f"[{session.id}] kill failed during dispose: {e}")
        if sessions:
            self._log("events", f"Disposed {len(sessions)} session(s)")

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self.sessions.get(session_id)

    def list_sessions(self) -> List[Session]:
        with self._lock:
            return list(self.sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self.sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self.sessions

    # --- Process callbacks -------------------------------------------------

    def _handle_output(self, session_id: str, text: str) -> None:
        session = self.get_session(session_id)
        if session is None:
            return

        completed = session.append_output(text)
        if self._log_manager:
            for line in completed:
                clean = strip_escapes(line).strip()
                if clean:
                    self._log_manager.add("output", f"[{session_id}] {clean}")

        if self._on_output_callback:
            self._on_output_callback(session_id, text)

        session.schedule_detection(
            self._scheduler,
            self.config.debounce_seconds,
            lambda generation: self._run_detection(session_id, generation),
        )

    def _handle_exit(self, session_id: str, code: int) -> None:
        self._teardown(session_id, reason=f"exited with code {code}")

    def _teardown(self, session_id: str, reason: str) -> bool:
        """Single exit path for explicit close and spontaneous exit."""
        with self._lock:
            session = self.sessions.pop(session_id, None)
        if session is None:
            return False

        session.close()
        try:
            session.process.kill()
        except OSError as e:
            self._log("errors", f"[{session_id}] kill failed: {e}")

        self._log("events", f"Closed {session_id}: {reason}")
        self._notify_closed(session_id)
        return True

    # --- Detection ---------------------------------------------------------

    def _run_detection(self, session_id: str, generation: int) -> None:
        session = self.get_session(session_id)
        if session is None:
            return
        window = session.claim_detection(generation)
        if window is None:
            return

        try:
            options = self._detector(window)
        except Exception as e:
            self._log("errors", f"[{session_id}] menu detection failed: {e!r}")
            return
        session.last_options = list(options)
        if not options:
            return

        candidate = MenuCandidate(session_id=session_id, options=list(options))
        summary = ", ".join(f"{o.key}={o.label}" for o in candidate.options)
        self._log("menus", f"[{session_id}] {len(candidate.options)} option(s): {summary}")
        if self._on_menu_callback:
            try:
                self._on_menu_callback(candidate)
            except Exception as e:
                self._log("errors", f"[{session_id}] menu callback failed: {e!r}")

    # --- Helpers -----------------------------------------------------------

    def _notify_created(self, session_id: str, name: str) -> None:
        if self._on_created_callback:
            self._on_created_callback(session_id, name)

    def _notify_closed(self, session_id: str) -> None:
        if self._on_closed_callback:
            self._on_closed_callback(session_id)

    def _log(self, category: str, message: str) -> None:
        self._debug_logger(message)
        if self._log_manager:
            self._log_manager.add(category, message)

