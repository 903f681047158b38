"""Client for driving a tabterm service from Python."""

import json
from typing import Any, Awaitable, Callable, Optional

import httpx
import websockets
from pydantic import ValidationError

from ..facilitator.protocol import (
    CloseTerminal,
    CreateTerminal,
    Message,
    OutboundMessage,
    ResizeTerminal,
    TerminalInput,
    ValidateSettings,
    decode_outbound,
)


class TabTermClient:
    """Client for connecting to the tabbed terminal service."""

    def __init__(self, base_url: str = "http://localhost:8765"):
        self.base_url = base_url
        self.ws_url = base_url.replace("http://", "ws://").replace("https://", "wss://")
        self.websocket: Optional[Any] = None
        self._message_callback: Optional[Callable[[OutboundMessage], Awaitable[None]]] = None

    async def list_terminals(self) -> list:
        """List live sessions on the service."""
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{self.base_url}/terminals")
            response.raise_for_status()
            return response.json().get("terminals", [])

    async def check_settings(self, settings: dict) -> dict:
        """Validate a settings payload over HTTP; returns {valid, errors}."""
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{self.base_url}/settings/validate", json=settings)
            response.raise_for_status()
            return response.json()

    async def connect(self):
        """Open a panel. The service creates the first terminal on its own."""
        self.websocket = await websockets.connect(f"{self.ws_url}/ws")

    async def send(self, message: Message):
        if not self.websocket:
            raise ValueError("WebSocket not connected")
        await self.websocket.send(json.dumps(message.to_wire()))

    async def create_terminal(self):
        await self.send(CreateTerminal())

    async def send_input(self, terminal_id: str, data: str):
        await self.send(TerminalInput(terminal_id=terminal_id, data=data))

    async def resize(self, terminal_id: str, cols: int, rows: int):
        await self.send(ResizeTerminal(terminal_id=terminal_id, cols=cols, rows=rows))

    async def close_terminal(self, terminal_id: str):
        await self.send(CloseTerminal(terminal_id=terminal_id))

    async def validate_settings(self, settings: dict):
        """Ask over the socket; the answer arrives as ``settingsValidated``."""
        await self.send(ValidateSettings(settings=settings))

    async def listen(self, callback: Callable[[OutboundMessage], Awaitable[None]]):
        """Listen for events from the service.

        Frames that do not decode as a known event are skipped.
        """
        if not self.websocket:
            raise ValueError("WebSocket not connected")

        self._message_callback = callback

        async for raw in self.websocket:
            try:
                message = decode_outbound(json.loads(raw))
            except (json.JSONDecodeError, ValidationError):
                continue
            if self._message_callback:
                await self._message_callback(message)

    async def close(self):
        """Close the WebSocket connection (the service disposes the panel)."""
        if self.websocket:
            await self.websocket.close()
            self.websocket = None
