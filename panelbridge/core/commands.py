"""Moderation commands the panel can send, with their role requirements."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .dispatcher import CommandDispatcher
from .types import Account, CommandOutcome, Role

logger = logging.getLogger(__name__)

ANY_ROLE: FrozenSet[Role] = frozenset(Role)
STAFF: FrozenSet[Role] = frozenset({Role.OWNER, Role.ADMIN})
OWNER_ONLY: FrozenSet[Role] = frozenset({Role.OWNER})


class CommandError(ValueError):
    """Request body is missing something the command needs."""


class PermissionDenied(Exception):
    """Caller's role may not run this command."""


def _required(body: Dict[str, Any], key: str) -> Any:
    value = body.get(key)
    if value is None or value == "":
        raise CommandError(f"'{key}' is required")
    return value


def _or_default(body: Dict[str, Any], key: str, default: str) -> Any:
    value = body.get(key)
    return value if value not in (None, "") else default


def _raw_args(body: Dict[str, Any]) -> List[Any]:
    extra = body.get("args") or []
    if not isinstance(extra, list):
        raise CommandError("'args' must be a list")
    return [_required(body, "command"), *extra]


@dataclass(frozen=True)
class PanelCommand:
    name: str
    roles: FrozenSet[Role]
    build_args: Callable[[Dict[str, Any]], List[Any]]


COMMANDS: Dict[str, PanelCommand] = {
    c.name: c for c in (
        PanelCommand("kick", ANY_ROLE,
                     lambda b: [_required(b, "player"), _or_default(b, "reason", "Kicked via WebPanel")]),
        PanelCommand("ban", STAFF,
                     lambda b: [_required(b, "player"), _or_default(b, "reason", "Banned via WebPanel")]),
        PanelCommand("unban", STAFF, lambda b: [_required(b, "player")]),
        PanelCommand("mute", ANY_ROLE, lambda b: [_required(b, "player")]),
        PanelCommand("unmute", ANY_ROLE, lambda b: [_required(b, "player")]),
        PanelCommand("announce", ANY_ROLE, lambda b: [_required(b, "message")]),
        PanelCommand("shutdown", OWNER_ONLY,
                     lambda b: [_or_default(b, "reason", "Shutdown via WebPanel")]),
        PanelCommand("setrank", STAFF, lambda b: [_required(b, "player"), _required(b, "rank")]),
        PanelCommand("raw", OWNER_ONLY, _raw_args),
    )
}


class PanelCommands:
    """Validates panel requests and hands them to the dispatcher."""

    def __init__(self, dispatcher: CommandDispatcher):
        self.dispatcher = dispatcher

    @staticmethod
    def lookup(name: str) -> Optional[PanelCommand]:
        return COMMANDS.get(name)

    async def run(self, name: str, body: Dict[str, Any], account: Account) -> CommandOutcome:
        """Check role and arguments, then dispatch.

        Raises:
            KeyError: unknown command
            PermissionDenied: role not allowed
            CommandError: missing/invalid arguments
        """
        command = COMMANDS.get(name)
        if command is None:
            raise KeyError(name)
        if account.role not in command.roles:
            logger.warning(f"{account.name} ({account.role.value}) denied '{name}'")
            raise PermissionDenied(f"'{name}' requires one of: {', '.join(sorted(r.value for r in command.roles))}")

        args = command.build_args(body or {})
        return await self.dispatcher.dispatch(name, args, caller=account.name)
