"""Bridge core: correlation, bounded state, callback routing and fan-out."""

from .types import BridgeConfig, CommandEnvelope, CommandOutcome, CommandHistoryEntry, Role

__all__ = ["BridgeConfig", "CommandEnvelope", "CommandOutcome", "CommandHistoryEntry", "Role"]
