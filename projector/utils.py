"""Utility helpers for the projector app."""

from __future__ import annotations

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from .consumers import PROJECTOR_GROUP


def notify_snapshot_changed() -> bool:
    """Ask every connected projector to reload the festival snapshot."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False
    async_to_sync(channel_layer.group_send)(PROJECTOR_GROUP, {"type": "snapshot.changed"})
    return True
