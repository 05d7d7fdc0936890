"""Event dispatcher: polls PENDING domain events and routes them to handlers."""

from __future__ import annotations

from nudge.events.handlers import DomainEventHandler, EventHandlerError
from nudge.events.repository import EventRepository
from nudge.events.types import DomainEvent
from nudge.infrastructure.config import EVENT_BATCH_SIZE, EVENT_POLL_INTERVAL
from nudge.infrastructure.logger import logger
from nudge.infrastructure.poll_loop import PollLoop, start_poll_loop


class EventDispatcher:
    """Routes events to registered handlers and is the only writer of event status."""

    def __init__(
        self,
        event_repo: EventRepository,
        handlers: list[DomainEventHandler],
        batch_size: int = EVENT_BATCH_SIZE,
    ) -> None:
        self._event_repo = event_repo
        self._handlers: dict[str, DomainEventHandler] = {h.event_type.value: h for h in handlers}
        self._batch_size = batch_size

    async def process_batch(self) -> int:
        """Handle up to one batch of PENDING events, oldest first. Returns how many were handled."""
        events = self._event_repo.get_pending(self._batch_size)
        if events:
            logger.info("Processing domain events", count=len(events))
        for event in events:
            await self.dispatch(event)
        return len(events)

    async def dispatch(self, event: DomainEvent) -> None:
        handler = self._handlers.get(event.event_type)
        if not handler:
            logger.warning("Unknown event type, skipping", event_id=event.id, event_type=event.event_type)
            self._event_repo.mark_processed(event.id)
            return

        try:
            await handler.handle(event)
        except EventHandlerError as err:
            logger.warning(err.args[0], event_id=event.id, event_type=event.event_type, **err.details)
            self._event_repo.mark_failed(event.id, err.args[0])
            return
        except Exception as err:
            logger.exception("Event handler failed", event_id=event.id, event_type=event.event_type)
            self._event_repo.mark_failed(event.id, str(err) or type(err).__name__)
            return

        self._event_repo.mark_processed(event.id)


def start_event_loop(dispatcher: EventDispatcher, interval_s: float = EVENT_POLL_INTERVAL) -> PollLoop:
    """Start the event dispatcher polling loop."""

    async def poll() -> None:
        await dispatcher.process_batch()

    return start_poll_loop("EventDispatcher", interval_s, poll)
