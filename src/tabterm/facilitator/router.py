"""Routes messages between one UI panel and its SessionManager."""

from __future__ import annotations

from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..config import TabTermConfig
from ..log_manager import LogManager
from ..multiplexer.menu_detector import MenuCandidate
from ..multiplexer.scheduler import Scheduler
from ..multiplexer.session_manager import SessionManager
from ..multiplexer.terminal_runner import ProcessAdapter
from .protocol import (
    CloseTerminal,
    CreateTerminal,
    InboundMessage,
    MenuDetected,
    MenuOptionPayload,
    Message,
    ResizeTerminal,
    SettingsValidated,
    TerminalClosed,
    TerminalCreated,
    TerminalInput,
    TerminalOutput,
    ValidateSettings,
    decode_inbound,
)
from .settings import validate_settings


Emitter = Callable[[Message], None]


class MessageRouter:
    """The only way in and out of the core for a UI panel.

    Inbound payloads are decoded into protocol messages and applied to the
    session manager; manager events are turned into outbound messages and
    handed to ``emit``. ``emit`` may be called from pty reader and timer
    threads, so it must be thread-safe.
    """

    def __init__(
        self,
        emit: Emitter,
        config: Optional[TabTermConfig] = None,
        adapter: Optional[ProcessAdapter] = None,
        scheduler: Optional[Scheduler] = None,
        log_manager: Optional[LogManager] = None,
    ):
        self._emit = emit
        self.log_manager = log_manager or LogManager()
        self.manager = SessionManager(
            adapter=adapter,
            config=config,
            scheduler=scheduler,
            debug_logger=self.log_manager.logger("debug"),
            log_manager=self.log_manager,
            on_created_callback=self._on_created,
            on_output_callback=self._on_output,
            on_closed_callback=self._on_closed,
            on_menu_callback=self._on_menu,
        )

    def start(self) -> str:
        """Open the first session, as a freshly opened panel does."""
        return self.manager.create_session()

    def dispose(self) -> None:
        self.manager.dispose_all()

    def handle(self, payload: Any) -> None:
        """Decode a raw inbound payload and dispatch it; bad payloads are dropped."""
        try:
            message = decode_inbound(payload)
        except ValidationError as e:
            kind = payload.get("type") if isinstance(payload, dict) else type(payload).__name__
            self.log_manager.add("errors", f"Dropped malformed message ({kind}): {e.error_count()} error(s)")
            return
        self.dispatch(message)

    def dispatch(self, message: InboundMessage) -> None:
        if isinstance(message, CreateTerminal):
            self.manager.create_session()
        elif isinstance(message, TerminalInput):
            self.manager.send_input(message.terminal_id, message.data)
        elif isinstance(message, CloseTerminal):
            self.manager.close_session(message.terminal_id)
        elif isinstance(message, ResizeTerminal):
            self.manager.resize(message.terminal_id, message.cols, message.rows)
        elif isinstance(message, ValidateSettings):
            _, errors = validate_settings(message.settings)
            self._send(SettingsValidated(valid=not errors, errors=errors))

    # --- Manager callbacks -------------------------------------------------

    def _on_created(self, session_id: str, name: str) -> None:
        self._send(TerminalCreated(terminal_id=session_id, name=name))

    def _on_output(self, session_id: str, text: str) -> None:
        self._send(TerminalOutput(terminal_id=session_id, data=text))

    def _on_closed(self, session_id: str) -> None:
        self._send(TerminalClosed(terminal_id=session_id))

    def _on_menu(self, candidate: MenuCandidate) -> None:
        self._send(
            MenuDetected(
                terminal_id=candidate.session_id,
                options=[MenuOptionPayload.from_option(o) for o in candidate.options],
            )
        )

    def _send(self, message: Message) -> None:
        try:
            self._emit(message)
        except Exception as e:
            # The panel may already be gone (closed socket, stopped loop)
            self.log_manager.add("errors", f"Failed to emit {type(message).__name__}: {e!r}")
