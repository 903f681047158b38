"""Validation of the snapshot-delivery settings payload.

The core only checks the shape; storing the settings and using the bot
credentials belong to the host.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel


MIN_ROWS = 10
MAX_ROWS = 200

_ROWS_MESSAGE = f"Max rows must be between {MIN_ROWS} and {MAX_ROWS}"

# Keyed by both field name and wire alias; error locations use whichever
# name the payload supplied.
_FIELD_MESSAGES = {
    "bot_token": "Bot token is required",
    "botToken": "Bot token is required",
    "chat_id": "Chat ID is required",
    "chatId": "Chat ID is required",
    "max_rows": _ROWS_MESSAGE,
    "maxRows": _ROWS_MESSAGE,
}


class BotSettings(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )

    bot_token: str = Field(min_length=1)
    chat_id: str = Field(min_length=1)
    max_rows: int = Field(default=50, ge=MIN_ROWS, le=MAX_ROWS)


def validate_settings(payload: Any) -> Tuple[Optional[BotSettings], List[str]]:
    """Validate a settings payload.

    Returns:
        (settings, []) when valid, otherwise (None, user-facing messages)
    """
    if not isinstance(payload, Mapping):
        return None, ["Settings must be an object"]
    try:
        return BotSettings.model_validate(dict(payload)), []
    except ValidationError as e:
        errors: List[str] = []
        for err in e.errors():
            loc = err.get("loc") or ("",)
            message = _FIELD_MESSAGES.get(str(loc[0]), err.get("msg", "Invalid settings"))
            if message not in errors:
                errors.append(message)
        return None, errors
