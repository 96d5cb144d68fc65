"""Panel bridge: correlated command dispatch and event ingestion for a remote game server."""

__version__ = "1.0.0"
