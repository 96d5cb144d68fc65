"""Type definitions for the panel bridge."""

import time
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum


def now_ms() -> int:
    """Wall-clock timestamp in milliseconds (the remote side speaks ms)."""
    return int(time.time() * 1000)


class Role(Enum):
    """Panel account role."""
    OWNER = "owner"
    ADMIN = "admin"
    MODERATOR = "moderator"


@dataclass(frozen=True)
class CommandEnvelope:
    """Outbound command as published to the remote environment. Immutable."""
    secret: str
    command: str
    args: Tuple[Any, ...]
    caller: str
    request_id: str
    timestamp: int = field(default_factory=now_ms)

    def to_wire(self) -> Dict[str, Any]:
        """Shape expected by the in-game plugin."""
        return {
            "secret": self.secret,
            "command": self.command,
            "args": list(self.args),
            "caller": self.caller,
            "requestId": self.request_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CommandOutcome:
    """Result of a dispatched command, from a callback or synthesized locally."""
    success: bool
    result: str

    @classmethod
    def failure(cls, result: str) -> "CommandOutcome":
        return cls(success=False, result=result)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "result": self.result}


TIMEOUT_OUTCOME = CommandOutcome.failure("timeout")


@dataclass(frozen=True)
class CommandHistoryEntry:
    """One dispatched command and how it ended."""
    command: str
    args: Tuple[Any, ...]
    caller: str
    outcome: CommandOutcome
    at: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "args": list(self.args),
            "caller": self.caller,
            "success": self.outcome.success,
            "result": self.outcome.result,
            "at": self.at,
        }


@dataclass
class Account:
    """Panel account (in-memory only)."""
    id: str
    name: str
    role: Role
    password_hash: str
    created_at: int = field(default_factory=now_ms)

    def public(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role.value, "createdAt": self.created_at}


@dataclass
class BridgeConfig:
    """Configuration for the panel bridge."""
    # Shared secret the in-game plugin sends with every callback
    panel_secret: str

    # Open Cloud messaging (outbound)
    roblox_api_key: str = ""
    universe_id: str = ""
    messaging_topic: str = "WebPanel_Command"
    messaging_base_url: str = "https://apis.roblox.com/messaging-service/v1"
    publish_timeout: float = 10.0
    publish_attempts: int = 1  # 1 = single attempt, no retries
    publish_backoff: float = 0.5

    # Correlation
    command_timeout: float = 10.0
    log_late_answers: bool = True

    # Bounded state
    log_capacity: int = 1000
    history_capacity: int = 500
    snapshot_logs: int = 50

    # Panel server
    host: str = "0.0.0.0"
    port: int = 3000
    session_ttl_hours: float = 8.0
    owner_name: str = "Owner"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("panel_secret", "roblox_api_key"):
            data[key] = "***" if data[key] else ""
        return data


# Presence entries shipped by the remote side are free-form JSON values.
PlayerList = List[Any]
