"""Tests for settings payload validation."""

import pytest

from tabterm.facilitator.settings import MAX_ROWS, MIN_ROWS, validate_settings


def test_valid_settings():
    settings, errors = validate_settings({"botToken": "123:abc", "chatId": "-100200", "maxRows": 80})
    assert errors == []
    assert settings.bot_token == "123:abc"
    assert settings.chat_id == "-100200"
    assert settings.max_rows == 80


def test_max_rows_defaults_to_fifty():
    settings, errors = validate_settings({"botToken": "t", "chatId": "c"})
    assert errors == []
    assert settings.max_rows == 50


def test_numeric_chat_id_is_accepted():
    settings, errors = validate_settings({"botToken": "t", "chatId": 123456})
    assert errors == []
    assert settings.chat_id == "123456"


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"chatId": "c"}, ["Bot token is required"]),
        ({"botToken": "   ", "chatId": "c"}, ["Bot token is required"]),
        ({"botToken": "t"}, ["Chat ID is required"]),
        ({}, ["Bot token is required", "Chat ID is required"]),
    ],
)
def test_required_fields(payload, expected):
    settings, errors = validate_settings(payload)
    assert settings is None
    assert errors == expected


@pytest.mark.parametrize("rows", [MIN_ROWS - 1, MAX_ROWS + 1, "lots"])
def test_max_rows_out_of_range(rows):
    _, errors = validate_settings({"botToken": "t", "chatId": "c", "maxRows": rows})
    assert errors == [f"Max rows must be between {MIN_ROWS} and {MAX_ROWS}"]


@pytest.mark.parametrize("rows", [MIN_ROWS, MAX_ROWS])
def test_max_rows_bounds_are_inclusive(rows):
    _, errors = validate_settings({"botToken": "t", "chatId": "c", "maxRows": rows})
    assert errors == []


def test_snake_case_names_are_accepted():
    _, errors = validate_settings({"bot_token": "t", "chat_id": "c", "max_rows": 20})
    assert errors == []


def test_non_object_payload():
    assert validate_settings(["t", "c"]) == (None, ["Settings must be an object"])
