"""Shared fixtures for panel bridge tests."""

from __future__ import annotations

import pytest

from panelbridge.core.types import BridgeConfig
from stubs import SECRET


@pytest.fixture
def make_config():
    def _make(**overrides) -> BridgeConfig:
        values = dict(
            panel_secret=SECRET,
            roblox_api_key="test-api-key",
            universe_id="4242",
            command_timeout=1.0,
            publish_backoff=0.0,
        )
        values.update(overrides)
        return BridgeConfig(**values)

    return _make
