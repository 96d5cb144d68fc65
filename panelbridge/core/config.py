"""Configuration loader for the panel bridge."""

import logging
import os
import yaml
from pathlib import Path
from dotenv import load_dotenv
from .types import BridgeConfig

logger = logging.getLogger(__name__)

DEFAULT_PANEL_SECRET = "CHANGEZ_MOI_SECRET_12345"


def _flag(value) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def load_config(
    env_file: str = ".env",
    config_file: str = "config/bridge.yaml",
    allow_default_secret: bool = False,
) -> BridgeConfig:
    """Load configuration from environment and yaml files.

    Args:
        env_file: Path to .env file
        config_file: Path to bridge.yaml config file
        allow_default_secret: Accept the placeholder panel secret (local dev only)

    Returns:
        BridgeConfig instance with all settings
    """
    # Load environment variables
    load_dotenv(env_file)

    # Load YAML config if exists
    yaml_config = {}
    if Path(config_file).exists():
        with open(config_file, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}

    # Environment takes precedence over YAML
    remote = yaml_config.get("remote", {})
    bridge = yaml_config.get("bridge", {})
    server = yaml_config.get("server", {})
    logging_config = yaml_config.get("logging", {})

    config = BridgeConfig(
        panel_secret=os.getenv("PANEL_SECRET", remote.get("panel_secret", DEFAULT_PANEL_SECRET)),

        # Open Cloud messaging
        roblox_api_key=os.getenv("ROBLOX_API_KEY", remote.get("api_key", "")),
        universe_id=str(os.getenv("ROBLOX_UNIVERSE_ID", remote.get("universe_id", ""))),
        messaging_topic=os.getenv("MESSAGING_TOPIC", remote.get("topic", "WebPanel_Command")),
        messaging_base_url=os.getenv(
            "MESSAGING_BASE_URL",
            remote.get("base_url", "https://apis.roblox.com/messaging-service/v1"),
        ),
        publish_timeout=float(os.getenv("PUBLISH_TIMEOUT", remote.get("publish_timeout", 10.0))),
        publish_attempts=int(os.getenv("PUBLISH_ATTEMPTS", remote.get("publish_attempts", 1))),
        publish_backoff=float(os.getenv("PUBLISH_BACKOFF", remote.get("publish_backoff", 0.5))),

        # Correlation
        command_timeout=float(os.getenv("COMMAND_TIMEOUT", bridge.get("command_timeout", 10.0))),
        log_late_answers=_flag(os.getenv("LOG_LATE_ANSWERS", bridge.get("log_late_answers", True))),

        # Bounded state
        log_capacity=int(os.getenv("LOG_CAPACITY", bridge.get("log_capacity", 1000))),
        history_capacity=int(os.getenv("HISTORY_CAPACITY", bridge.get("history_capacity", 500))),
        snapshot_logs=int(os.getenv("SNAPSHOT_LOGS", bridge.get("snapshot_logs", 50))),

        # Panel server
        host=os.getenv("PANEL_HOST", server.get("host", "0.0.0.0")),
        port=int(os.getenv("PANEL_PORT", os.getenv("PORT", server.get("port", 3000)))),
        session_ttl_hours=float(os.getenv("SESSION_TTL_HOURS", server.get("session_ttl_hours", 8))),
        owner_name=os.getenv("OWNER_NAME", server.get("owner_name", "Owner")),

        # Logging
        log_level=os.getenv("LOG_LEVEL", logging_config.get("level", "INFO")),
        log_file=os.getenv("LOG_FILE", logging_config.get("file")),
    )

    # Validate
    if not config.panel_secret:
        raise ValueError("PANEL_SECRET is required but not set in .env file")
    if config.panel_secret == DEFAULT_PANEL_SECRET and not allow_default_secret:
        raise ValueError("PANEL_SECRET still has the placeholder value; set a real shared secret")
    if config.publish_attempts < 1:
        raise ValueError("PUBLISH_ATTEMPTS must be at least 1")
    if config.command_timeout <= 0:
        raise ValueError("COMMAND_TIMEOUT must be positive")
    for name in ("log_capacity", "history_capacity"):
        if getattr(config, name) < 1:
            raise ValueError(f"{name.upper()} must be at least 1")

    if config.publish_timeout * config.publish_attempts > config.command_timeout:
        logger.warning(
            f"Publish budget ({config.publish_attempts} x {config.publish_timeout}s) exceeds "
            f"COMMAND_TIMEOUT ({config.command_timeout}s); slow publishes will be cut off"
        )
    if not config.universe_id:
        logger.warning("ROBLOX_UNIVERSE_ID not configured; commands will fail to publish")
    if not config.roblox_api_key:
        logger.warning("ROBLOX_API_KEY not configured; commands will fail to publish")

    return config
