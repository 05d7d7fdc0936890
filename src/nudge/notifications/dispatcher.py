"""Dispatcher contract and the channel fan-out adapter."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from nudge.infrastructure.logger import logger
from nudge.notifications.types import NotificationType


class DispatchPayload(BaseModel):
    recipient: str
    notification_id: str
    notification_type: NotificationType
    message: str
    scheduled_at: datetime
    task_id: str | None = None
    dream_id: str | None = None
    metadata: dict[str, Any] | None = None


class DispatchResult(BaseModel):
    success: bool
    error: str | None = None


@runtime_checkable
class Dispatcher(Protocol):
    async def send(self, payload: DispatchPayload) -> DispatchResult: ...


@runtime_checkable
class Channel(Protocol):
    name: str

    async def deliver(self, payload: DispatchPayload) -> DispatchResult: ...


class LogChannel:
    """Renders notifications into the log; the default transport."""

    name = "log"

    async def deliver(self, payload: DispatchPayload) -> DispatchResult:
        actions = [a["label"] for a in (payload.metadata or {}).get("actions", [])]
        logger.info(
            f"[{payload.notification_type.value}] {payload.message}",
            channel=self.name,
            recipient=payload.recipient,
            notification_id=payload.notification_id,
            task_id=payload.task_id,
            scheduled_at=payload.scheduled_at.isoformat(),
            actions=actions or None,
        )
        return DispatchResult(success=True)


class ChannelDispatcher:
    """Sends every payload through all registered channels and aggregates their errors."""

    def __init__(self, channels: list[Channel] | None = None) -> None:
        self._channels: list[Channel] = []
        for channel in channels or []:
            self.register(channel)

    def register(self, channel: Channel) -> None:
        if any(c.name == channel.name for c in self._channels):
            raise ValueError(f'Channel "{channel.name}" is already registered')
        self._channels.append(channel)

    async def send(self, payload: DispatchPayload) -> DispatchResult:
        if not self._channels:
            return DispatchResult(success=False, error="No channels registered")

        errors: list[str] = []
        for channel in self._channels:
            try:
                result = await channel.deliver(payload)
            except Exception as err:
                logger.exception("Channel delivery raised", channel=channel.name, notification_id=payload.notification_id)
                errors.append(f"{channel.name}: {err}")
                continue
            if not result.success:
                errors.append(f"{channel.name}: {result.error or 'unknown error'}")

        if errors:
            return DispatchResult(success=False, error="; ".join(errors))
        return DispatchResult(success=True)
