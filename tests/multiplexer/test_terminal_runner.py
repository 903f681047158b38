"""Tests for TerminalRunner - PTY management and process lifecycle.

These fork real processes. Note the two size conventions:
- The adapter and session manager use (cols, rows) = (WIDTH, HEIGHT)
- struct winsize, set_winsize and get_winsize use (rows, cols)
"""

import threading
import time

import pytest

from tabterm.multiplexer.terminal_runner import PtyProcessAdapter, SpawnError, TerminalRunner


def wait_until(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class TestPTYWinsizeOrdering:
    def test_set_winsize_parameter_order(self):
        runner = TerminalRunner(name="test", command=["cat"])
        runner.start()
        try:
            runner.set_winsize(rows=39, cols=175)
            assert runner.get_winsize() == (39, 175)
        finally:
            runner.kill()

    def test_resize_takes_cols_first(self):
        runner = TerminalRunner(name="test", command=["sleep", "10"])
        runner.start()
        try:
            runner.resize(120, 40)
            assert runner.get_winsize() == (40, 120)
            assert (runner.cols, runner.rows) == (120, 40)
        finally:
            runner.kill()

    def test_initial_winsize_in_child(self):
        output = []
        runner = TerminalRunner(name="test", command=["bash", "-c", "stty size"], cols=132, rows=43)
        runner.on_output(output.append)
        runner.start()
        try:
            # stty prints "rows cols"
            assert wait_until(lambda: "43 132" in "".join(output))
        finally:
            runner.kill()

    def test_get_winsize_before_start(self):
        assert TerminalRunner(name="test", command=["cat"]).get_winsize() is None


class TestTerminalLifecycle:
    def test_start_and_is_alive(self):
        runner = TerminalRunner(name="test", command=["sleep", "2"])
        assert not runner.is_alive()

        assert runner.start()
        assert runner.is_alive()
        assert runner.pid is not None

        runner.kill()
        assert not runner.is_alive()

    def test_simple_command_execution(self):
        output = []
        runner = TerminalRunner(name="test", command=["echo", "hello"])
        runner.on_output(output.append)
        runner.start()
        try:
            assert wait_until(lambda: "hello" in "".join(output))
        finally:
            runner.kill()

    def test_exit_callback_reports_code(self):
        codes = []
        done = threading.Event()

        def on_exit(code):
            codes.append(code)
            done.set()

        runner = TerminalRunner(name="test", command=["bash", "-c", "exit 42"])
        runner.on_exit(on_exit)
        runner.start()

        assert done.wait(3.0)
        runner.kill()
        assert codes == [42]

    def test_exit_fires_once_when_killed(self):
        codes = []
        runner = TerminalRunner(name="test", command=["sleep", "10"])
        runner.on_exit(codes.append)
        runner.start()

        runner.kill()
        runner.kill()
        time.sleep(0.1)
        assert len(codes) == 1
        assert codes[0] < 0

    def test_child_that_closes_its_stdio_is_still_alive(self):
        codes = []
        done = threading.Event()

        def on_exit(code):
            codes.append(code)
            done.set()

        runner = TerminalRunner(
            name="test", command=["bash", "-c", "exec </dev/null >/dev/null 2>&1; sleep 1"]
        )
        runner.on_exit(on_exit)
        runner.start()
        try:
            # Give the reader time to see the pty close
            time.sleep(0.3)
            started = time.monotonic()
            assert runner.is_alive()
            assert time.monotonic() - started < 0.2

            assert done.wait(3.0)
            assert codes == [0]
        finally:
            runner.kill()

    def test_write_to_stdin(self):
        output = []
        runner = TerminalRunner(name="test", command=["cat"])
        runner.on_output(output.append)
        runner.start()
        try:
            runner.write("test input\n")
            assert wait_until(lambda: "test input" in "".join(output))
        finally:
            runner.kill()

    def test_multibyte_output_is_decoded(self):
        output = []
        runner = TerminalRunner(name="test", command=["printf", "┌─┐ ❯ 1. Yes\\n"])
        runner.on_output(output.append)
        runner.start()
        try:
            assert wait_until(lambda: "┌─┐ ❯ 1. Yes" in "".join(output))
            assert "�" not in "".join(output)
        finally:
            runner.kill()


class TestFirstOutputCapture:
    def test_first_output_preview(self):
        runner = TerminalRunner(name="test", command=["echo", "first output"])
        runner.start()
        try:
            assert wait_until(lambda: "first output" in runner.first_output_preview())
        finally:
            runner.kill()

    def test_first_output_limit(self):
        runner = TerminalRunner(name="test", command=["echo", "A" * 1000])
        runner.start()
        try:
            wait_until(lambda: len(runner.first_output_preview(limit=2048)) >= 100)
            assert len(runner.first_output_preview(limit=100)) <= 100
        finally:
            runner.kill()


class TestErrorHandling:
    def test_invalid_command_exits(self):
        codes = []
        runner = TerminalRunner(name="test", command=["nonexistent_command_xyz"])
        runner.on_exit(codes.append)
        runner.start()
        try:
            assert wait_until(lambda: codes)
            assert codes[0] != 0
        finally:
            runner.kill()

    def test_write_to_closed_terminal(self):
        runner = TerminalRunner(name="test", command=["cat"])
        runner.write("before start\n")
        runner.start()
        runner.kill()
        runner.write("after close\n")

    def test_double_start(self):
        runner = TerminalRunner(name="test", command=["sleep", "1"])
        runner.start()
        pid = runner.pid
        runner.start()
        assert runner.pid == pid
        runner.kill()


class TestPtyProcessAdapter:
    def test_missing_cwd_raises_spawn_error(self):
        with pytest.raises(SpawnError):
            PtyProcessAdapter().spawn("cat", [], cols=80, rows=24, cwd="/nonexistent/tabterm-dir")

    def test_spawn_returns_unstarted_handle(self):
        adapter = PtyProcessAdapter(term_name="xterm-256color")
        handle = adapter.spawn("bash", ["-c", "echo $TERM"], cols=100, rows=30, cwd="/tmp")

        assert handle.pid is None
        assert handle.command == ["bash", "-c", "echo $TERM"]
        assert (handle.cols, handle.rows) == (100, 30)
        assert handle.env["TERM"] == "xterm-256color"

    def test_spawned_program_runs_in_cwd(self, tmp_path):
        output = []
        handle = PtyProcessAdapter().spawn("pwd", [], cols=80, rows=24, cwd=str(tmp_path))
        handle.on_output(output.append)
        handle.start()
        try:
            assert wait_until(lambda: str(tmp_path.resolve()) in "".join(output))
        finally:
            handle.kill()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
