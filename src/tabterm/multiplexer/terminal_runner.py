"""PTY process adapter for multiplexed terminal sessions.

The session manager only talks to the ``ProcessAdapter`` / ``ProcessHandle``
protocols below. ``PtyProcessAdapter`` is the real implementation:
- Fork the child inside a pseudo-terminal with an explicit initial winsize
- Background reader thread that streams decoded output chunks to a callback
- Exit callback that fires exactly once, also when the fork itself fails

Notes:
- Output chunks are whatever ``os.read`` returns. They are not aligned to
  lines or escape sequences; consumers must split incrementally.
- UTF-8 is decoded with an incremental decoder so a multi-byte character
  split across two reads is not replaced with U+FFFD.
"""

from __future__ import annotations

import codecs
import errno
import fcntl
import os
import pty
import select
import shlex
import signal
import struct
import sys
import termios
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence


OutputCallback = Callable[[str], None]
ExitCallback = Callable[[int], None]


class SpawnError(OSError):
    """The session program cannot be spawned with the requested parameters."""


class ProcessHandle(Protocol):
    """One running (or about to run) external program attached to a pty."""

    def on_output(self, cb: OutputCallback) -> None: ...

    def on_exit(self, cb: ExitCallback) -> None: ...

    def start(self) -> bool: ...

    def write(self, data: str) -> None: ...

    def resize(self, cols: int, rows: int) -> None: ...

    def kill(self) -> None: ...

    def is_alive(self) -> bool: ...


class ProcessAdapter(Protocol):
    def spawn(
        self,
        command: str,
        args: Sequence[str],
        *,
        cols: int,
        rows: int,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessHandle: ...


@dataclass
class TerminalRunner:
    name: str
    command: List[str]
    cols: int = 80
    rows: int = 24
    cwd: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    debug_logger: Optional[Callable[[str], None]] = None
    pid: Optional[int] = None
    master_fd: Optional[int] = None
    exit_code: Optional[int] = None
    _reader_thread: Optional[threading.Thread] = None
    _stop_event: threading.Event = field(default_factory=threading.Event)
    _on_output: Optional[OutputCallback] = None
    _on_exit: Optional[ExitCallback] = None
    _exit_fired: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _first_output: bytearray = field(default_factory=bytearray, init=False, repr=False)

    def on_output(self, cb: OutputCallback) -> None:
        self._on_output = cb

    def on_exit(self, cb: ExitCallback) -> None:
        """Set callback for process exit (receives exit code, -1 if unknown)."""
        self._on_exit = cb

    def _log(self, message: str) -> None:
        if self.debug_logger:
            self.debug_logger(f"[{self.name}] {message}")

    def set_winsize(self, rows: int, cols: int) -> None:
        """Set PTY window size and notify child process via SIGWINCH."""
        if self.master_fd is None:
            return
        try:
            winsize = struct.pack("HHHH", rows, cols, 0, 0)
            fcntl.ioctl(self.master_fd, termios.TIOCSWINSZ, winsize)
        except Exception as e:
            self._log(f"TIOCSWINSZ failed: {e}")
            return
        self.rows = rows
        self.cols = cols
        if self.pid and self.is_alive():
            try:
                os.kill(self.pid, signal.SIGWINCH)
            except Exception:
                pass

    def resize(self, cols: int, rows: int) -> None:
        """Resize using the (cols, rows) order the rest of the app uses."""
        self.set_winsize(rows=rows, cols=cols)

    def get_winsize(self) -> Optional[tuple[int, int]]:
        """Return current PTY winsize as (rows, cols) if available."""
        if self.master_fd is None:
            return None
        try:
            data = fcntl.ioctl(self.master_fd, termios.TIOCGWINSZ, struct.pack("HHHH", 0, 0, 0, 0))
            rows, cols, _, _ = struct.unpack("HHHH", data)
            return rows, cols
        except Exception:
            return None

    def first_output_preview(self, limit: int = 512) -> str:
        if not self._first_output:
            return ""
        return self._first_output[:limit].decode("utf-8", errors="replace")

    def _exec_child(self) -> None:
        """Runs in the forked child. Never returns."""
        try:
            winsize = struct.pack("HHHH", self.rows, self.cols, 0, 0)
            for stream in (sys.stdin, sys.stdout, sys.stderr):
                try:
                    fcntl.ioctl(stream.fileno(), termios.TIOCSWINSZ, winsize)
                except Exception:
                    continue
            env = dict(self.env if self.env is not None else os.environ)
            env["LINES"] = str(self.rows)
            env["COLUMNS"] = str(self.cols)
            if self.cwd:
                os.chdir(self.cwd)
            try:
                os.execvpe(self.command[0], self.command, env)
            except Exception:
                # Fall back to a login shell so aliases/functions resolve
                cmd_str = " ".join(shlex.quote(p) for p in self.command)
                os.execvpe("bash", ["bash", "-lc", cmd_str], env)
        except Exception as e:
            try:
                print(f"Failed to exec {self.command}: {e}", file=sys.stderr)
            finally:
                os._exit(127)
        os._exit(127)

    def start(self) -> bool:
        """Fork process in PTY and begin background read loop.

        Returns False if the fork failed; in that case the exit callback has
        already fired with code -1.
        """
        if self.pid is not None or self._exit_fired:
            return self.pid is not None

        self._first_output.clear()
        try:
            pid, master = pty.fork()
        except OSError as e:
            self._log(f"spawn failed: {e}")
            self._fire_exit(-1)
            return False

        if pid == 0:
            self._exec_child()

        # Parent
        self.pid = pid
        self.master_fd = master
        self.set_winsize(rows=self.rows, cols=self.cols)

        # Start a background reader thread to avoid blocking the event loop
        self._stop_event.clear()
        self._reader_thread = threading.Thread(
            target=self._reader_loop, name=f"pty-reader-{self.name}", daemon=True
        )
        self._reader_thread.start()
        self._log(f"started pid={pid}: {' '.join(self.command)}")
        return True

    def _reader_loop(self) -> None:
        fd = self.master_fd
        if fd is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while not self._stop_event.is_set():
            try:
                r, _, _ = select.select([fd], [], [], 0.05)
                if fd not in r:
                    continue
                data = os.read(fd, 4096)
            except (OSError, ValueError):
                # EIO on Linux once the child side of the pty is gone
                break
            if not data:
                break
            if len(self._first_output) < 2048:
                self._first_output.extend(data[: 2048 - len(self._first_output)])
            text = decoder.decode(data)
            if text and self._on_output:
                try:
                    self._on_output(text)
                except Exception as e:
                    self._log(f"output callback failed: {e!r}")

        if self._stop_event.is_set():
            # kill() owns reaping and the exit notification
            return
        tail = decoder.decode(b"", final=True)
        if tail and self._on_output:
            try:
                self._on_output(tail)
            except Exception as e:
                self._log(f"output callback failed: {e!r}")

        # The pty closes when the child drops its stdio, which may be long
        # before it exits. Poll so the lock is never held across a wait.
        while self._reap(block=False) == -1 and self.exit_code is None:
            if self._stop_event.wait(0.05):
                return
        self._fire_exit(self.exit_code if self.exit_code is not None else -1)

    def _reap(self, block: bool) -> int:
        with self._lock:
            if self.exit_code is not None:
                return self.exit_code
            if self.pid is None:
                return -1
            try:
                pid, status = os.waitpid(self.pid, 0 if block else os.WNOHANG)
            except ChildProcessError:
                self.exit_code = -1
                return self.exit_code
            if pid == 0:
                return -1
            if os.WIFEXITED(status):
                self.exit_code = os.WEXITSTATUS(status)
            elif os.WIFSIGNALED(status):
                self.exit_code = -os.WTERMSIG(status)
            else:
                self.exit_code = -1
            return self.exit_code

    def _fire_exit(self, code: int) -> None:
        with self._lock:
            if self._exit_fired:
                return
            self._exit_fired = True
        self._log(f"exited with code {code}")
        if self._on_exit:
            try:
                self._on_exit(code)
            except Exception as e:
                self._log(f"exit callback failed: {e!r}")

    def write(self, data: str) -> None:
        """Write text to the child's stdin (via PTY)."""
        if self.master_fd is None:
            return
        try:
            os.write(self.master_fd, data.encode("utf-8"))
        except OSError as e:
            self._log(f"write failed: {e}")

    def kill(self) -> None:
        """Stop the reader, close the pty and SIGKILL the child. Idempotent."""
        self._stop_event.set()
        reader = self._reader_thread
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=0.5)

        if self.master_fd is not None:
            try:
                os.close(self.master_fd)
            except OSError:
                pass
            self.master_fd = None

        if self.pid is not None and self.exit_code is None:
            try:
                os.kill(self.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            code = self._reap(block=True)
        else:
            code = self.exit_code if self.exit_code is not None else -1
        self._fire_exit(code)

    def is_alive(self) -> bool:
        if self.pid is None or self.exit_code is not None:
            return False
        try:
            # signal 0 doesn't kill; raises if not running
            os.kill(self.pid, 0)
        except OSError:
            return False
        # A zombie still accepts signal 0; reap it if it already exited
        return self._reap(block=False) == -1 and self.exit_code is None


class PtyProcessAdapter:
    """Spawns ``TerminalRunner`` handles; the caller wires callbacks then starts."""

    def __init__(
        self,
        term_name: str = "xterm-color",
        debug_logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.term_name = term_name
        self._debug_logger = debug_logger

    def spawn(
        self,
        command: str,
        args: Sequence[str],
        *,
        cols: int,
        rows: int,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> TerminalRunner:
        if cwd is not None and not os.path.isdir(cwd):
            raise SpawnError(errno.ENOENT, "Working directory does not exist", cwd)
        merged = dict(os.environ if env is None else env)
        merged["TERM"] = self.term_name
        return TerminalRunner(
            name=command,
            command=[command, *args],
            cols=cols,
            rows=rows,
            cwd=cwd,
            env=merged,
            debug_logger=self._debug_logger,
        )
