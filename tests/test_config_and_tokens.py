"""Tests for settings, token helpers and the token script."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from portal.config import Settings
from portal.infrastructure.security import (
    create_access_token,
    decode_access_token,
    principal_from_token,
)
from scripts.issue_token import main as issue_token


def test_settings_reject_personal_prefix_for_admin_channel() -> None:
    with pytest.raises(ValidationError):
        Settings(admin_channel_name="user-admins")
    with pytest.raises(ValidationError):
        Settings(heartbeat_interval_seconds=0)


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("HEARTBEAT_INTERVAL_SECONDS", "12.5")
    monkeypatch.setenv("MEMBER_TABLE", "members")

    settings = Settings()

    assert settings.heartbeat_interval_seconds == 12.5
    assert settings.member_table == "members"
    assert settings.admin_channel_name == "admin-broadcast"


def test_principal_from_token() -> None:
    token = create_access_token({"sub": "42", "name": "Pastor Lee", "role": "Pastor"})

    principal = principal_from_token(token)

    assert principal.id == "42"
    assert principal.is_admin()
    assert principal.role == "Pastor"


@pytest.mark.parametrize(
    "token",
    [
        "not-a-token",
        create_access_token({"name": "No subject"}),
        create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=-5)),
    ],
)
def test_invalid_tokens_raise_value_error(token: str) -> None:
    with pytest.raises(ValueError):
        principal_from_token(token)


def test_issue_token_script_prints_usable_token(capsys) -> None:
    token = issue_token(["m-7", "--name", "Ruth Han", "--role", "user", "--minutes", "5"])

    assert capsys.readouterr().out.strip() == token
    payload = decode_access_token(token)
    assert payload["sub"] == "m-7"
    assert payload["role"] == "user"
    assert not principal_from_token(token).is_admin()


def test_issue_token_script_rejects_non_positive_lifetime() -> None:
    with pytest.raises(SystemExit):
        issue_token(["m-7", "--minutes", "0"])
