"""Websocket consumer driving a projector screen."""

from __future__ import annotations

import asyncio
import logging

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from festival.sources import load_snapshot

from .presentation import AsyncioClock, DisplayMode, Frame, PresentationScheduler

logger = logging.getLogger(__name__)

PROJECTOR_GROUP = "festival_projector"


class ProjectorConsumer(AsyncJsonWebsocketConsumer):
    group_name = PROJECTOR_GROUP

    async def connect(self):
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        self.outbox: asyncio.Queue = asyncio.Queue()
        self.pump = asyncio.ensure_future(self._pump())
        self.scheduler = PresentationScheduler(AsyncioClock(), self.outbox.put_nowait)
        self.scheduler.load(await sync_to_async(load_snapshot)())
        self.scheduler.start()

    async def disconnect(self, code):
        scheduler = getattr(self, "scheduler", None)
        if scheduler is not None:
            scheduler.stop()
        pump = getattr(self, "pump", None)
        if pump is not None:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def _pump(self):
        while True:
            frame: Frame = await self.outbox.get()
            try:
                await self.send_json(frame.as_dict())
            except Exception:
                logger.exception("Failed to send projector frame to %s", self.channel_name)
                self.scheduler.stop()
                return

    async def receive_json(self, content, **kwargs):
        action = content.get("action") if isinstance(content, dict) else None
        if action == "pause":
            self.scheduler.pause()
        elif action == "resume":
            self.scheduler.resume()
        elif action == "next":
            self.scheduler.advance()
        elif action == "previous":
            self.scheduler.previous()
        elif action == "jump":
            mode = content.get("mode")
            if mode not in DisplayMode.values:
                await self.send_json({"type": "error", "detail": f"Unknown mode: {mode}"})
                return
            self.scheduler.jump_to(DisplayMode(mode))
        else:
            await self.send_json({"type": "error", "detail": f"Unknown action: {action}"})

    async def snapshot_changed(self, event):
        logger.debug("Reloading projector snapshot for %s", self.channel_name)
        self.scheduler.load(await sync_to_async(load_snapshot)())
