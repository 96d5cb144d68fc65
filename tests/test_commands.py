from __future__ import annotations

import asyncio

import pytest

from panelbridge.core.commands import COMMANDS, CommandError, PanelCommands, PermissionDenied
from panelbridge.core.types import Account, CommandOutcome, Role


class RecordingDispatcher:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def dispatch(self, command, args, caller="WebPanel"):
        self.calls.append((command, list(args), caller))
        return CommandOutcome(True, "ok")


def _account(role: Role) -> Account:
    return Account(id="1", name=f"{role.value}-user", role=role, password_hash="x")


def _run(name: str, body: dict, role: Role):
    dispatcher = RecordingDispatcher()
    outcome = asyncio.run(PanelCommands(dispatcher).run(name, body, _account(role)))
    return outcome, dispatcher.calls


def test_catalog_covers_panel_commands() -> None:
    assert set(COMMANDS) == {"kick", "ban", "unban", "mute", "unmute", "announce", "shutdown", "setrank", "raw"}


def test_kick_uses_default_reason() -> None:
    outcome, calls = _run("kick", {"player": "Alice"}, Role.MODERATOR)
    assert outcome.success
    assert calls == [("kick", ["Alice", "Kicked via WebPanel"], "moderator-user")]


def test_kick_keeps_given_reason() -> None:
    _, calls = _run("kick", {"player": "Alice", "reason": "rule violation"}, Role.MODERATOR)
    assert calls[0][1] == ["Alice", "rule violation"]


@pytest.mark.parametrize("name", ["ban", "unban", "setrank", "shutdown", "raw"])
def test_moderator_cannot_run_privileged_commands(name: str) -> None:
    with pytest.raises(PermissionDenied):
        _run(name, {"player": "x", "rank": 1, "command": "x"}, Role.MODERATOR)


def test_admin_may_ban_but_not_shutdown() -> None:
    _, calls = _run("ban", {"player": "Bob"}, Role.ADMIN)
    assert calls == [("ban", ["Bob", "Banned via WebPanel"], "admin-user")]
    with pytest.raises(PermissionDenied):
        _run("shutdown", {}, Role.ADMIN)


def test_owner_shutdown_and_raw() -> None:
    _, calls = _run("shutdown", {}, Role.OWNER)
    assert calls[0][1] == ["Shutdown via WebPanel"]

    _, calls = _run("raw", {"command": ":fly", "args": ["me", 10]}, Role.OWNER)
    assert calls[0][1] == [":fly", "me", 10]


def test_missing_fields_raise_command_error() -> None:
    with pytest.raises(CommandError):
        _run("kick", {}, Role.OWNER)
    with pytest.raises(CommandError):
        _run("setrank", {"player": "A"}, Role.OWNER)
    with pytest.raises(CommandError):
        _run("raw", {"command": ":m", "args": "not-a-list"}, Role.OWNER)


def test_unknown_command() -> None:
    with pytest.raises(KeyError):
        _run("explode", {}, Role.OWNER)
