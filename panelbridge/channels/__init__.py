"""Outbound transport adapters."""

from .open_cloud_channel import OpenCloudChannel, TransportError

__all__ = ["OpenCloudChannel", "TransportError"]
