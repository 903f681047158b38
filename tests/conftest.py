"""Shared fakes for session manager, router and service tests.

FakeAdapter/FakeProcess stand in for the pty adapter so lifecycle tests do
not depend on real processes; ManualScheduler lets tests decide when a
debounce timer fires.
"""

import pytest

from tabterm.multiplexer.terminal_runner import SpawnError


class FakeProcess:
    def __init__(self, command, args, cols, rows, cwd, env, fail_start=False):
        self.command = command
        self.args = list(args)
        self.cols = cols
        self.rows = rows
        self.cwd = cwd
        self.env = env
        self.fail_start = fail_start
        self.writes = []
        self.resizes = []
        self.kill_count = 0
        self.started = False
        self.alive = False
        self._on_output = None
        self._on_exit = None
        self._exit_fired = False

    def on_output(self, cb):
        self._on_output = cb

    def on_exit(self, cb):
        self._on_exit = cb

    def start(self):
        if self.fail_start:
            self.emit_exit(-1)
            return False
        self.started = True
        self.alive = True
        return True

    def write(self, data):
        self.writes.append(data)

    def resize(self, cols, rows):
        self.resizes.append((cols, rows))

    def kill(self):
        self.kill_count += 1
        self.emit_exit(-9)

    def is_alive(self):
        return self.alive

    # Test helpers
    def emit_output(self, text):
        self._on_output(text)

    def emit_exit(self, code):
        if self._exit_fired:
            return
        self._exit_fired = True
        self.alive = False
        if self._on_exit:
            self._on_exit(code)


class FakeAdapter:
    def __init__(self):
        self.spawned = []
        self.fail_start = False
        self.raise_on_spawn = False

    def spawn(self, command, args, *, cols, rows, cwd=None, env=None):
        if self.raise_on_spawn:
            raise SpawnError(2, "No such file or directory")
        proc = FakeProcess(command, args, cols, rows, cwd, env, fail_start=self.fail_start)
        self.spawned.append(proc)
        return proc


class ManualTask:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


class ManualScheduler:
    def __init__(self):
        self.tasks = []

    def schedule(self, delay, callback):
        task = ManualTask(delay, callback)
        self.tasks.append(task)
        return task

    def pending(self):
        return [t for t in self.tasks if not t.cancelled and not t.fired]

    def fire_all(self):
        for task in self.pending():
            task.fire()


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def anyio_backend():
    return "asyncio"


BOXED_MENU = "\n".join(
    [
        "┌────────────────────────────┐",
        "│ Do you want to proceed?    │",
        "│ ❯ 1. Yes                   │",
        "│   2. No                    │",
        "└────────────────────────────┘",
    ]
)


@pytest.fixture
def boxed_menu():
    return BOXED_MENU
