"""Message contract between the terminal core and the UI panel.

Every message is a pydantic model tagged by its ``type`` field. Wire names
are camelCase (``terminalId``); Python attributes are snake_case.
Payloads are decoded here, at the boundary, and nowhere else.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from ..multiplexer.menu_detector import MenuOption


class Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        """Convert to the camelCase dict sent over the socket."""
        return self.model_dump(by_alias=True)


# --- UI -> core ------------------------------------------------------------


class CreateTerminal(Message):
    type: Literal["createTerminal"] = "createTerminal"


class TerminalInput(Message):
    type: Literal["terminalInput"] = "terminalInput"
    terminal_id: str
    data: str


class CloseTerminal(Message):
    type: Literal["closeTerminal"] = "closeTerminal"
    terminal_id: str


class ResizeTerminal(Message):
    type: Literal["resizeTerminal"] = "resizeTerminal"
    terminal_id: str
    cols: int = Field(gt=0)
    rows: int = Field(gt=0)


class ValidateSettings(Message):
    type: Literal["validateSettings"] = "validateSettings"
    settings: Dict[str, Any] = Field(default_factory=dict)


# --- core -> UI ------------------------------------------------------------


class TerminalCreated(Message):
    type: Literal["terminalCreated"] = "terminalCreated"
    terminal_id: str
    name: str


class TerminalOutput(Message):
    type: Literal["terminalOutput"] = "terminalOutput"
    terminal_id: str
    data: str


class TerminalClosed(Message):
    type: Literal["terminalClosed"] = "terminalClosed"
    terminal_id: str


class MenuOptionPayload(Message):
    key: str
    label: str

    @classmethod
    def from_option(cls, option: MenuOption) -> "MenuOptionPayload":
        return cls(key=option.key, label=option.label)


class MenuDetected(Message):
    type: Literal["menuDetected"] = "menuDetected"
    terminal_id: str
    options: List[MenuOptionPayload]


class SettingsValidated(Message):
    type: Literal["settingsValidated"] = "settingsValidated"
    valid: bool
    errors: List[str] = Field(default_factory=list)


InboundMessage = Annotated[
    Union[CreateTerminal, TerminalInput, CloseTerminal, ResizeTerminal, ValidateSettings],
    Field(discriminator="type"),
]

OutboundMessage = Annotated[
    Union[TerminalCreated, TerminalOutput, TerminalClosed, MenuDetected, SettingsValidated],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)
_outbound_adapter: TypeAdapter = TypeAdapter(OutboundMessage)


def decode_inbound(payload: Any) -> InboundMessage:
    """Parse a UI command. Raises ``pydantic.ValidationError`` if malformed."""
    return _inbound_adapter.validate_python(payload)


def decode_outbound(payload: Any) -> OutboundMessage:
    """Parse a core event (client side). Raises ``pydantic.ValidationError``."""
    return _outbound_adapter.validate_python(payload)
