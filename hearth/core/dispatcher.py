"""Synchronous in-transaction domain event dispatch.

Handlers are registered once at startup and run inline inside the caller's
transaction, so a failing handler aborts the whole unit of work.
"""

import logging
from collections.abc import Awaitable, Callable

from hearth.core.db_client import Session
from hearth.domain.events import DomainEvent


logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent, Session], Awaitable[None]]


class EventDispatcher:
    """Explicit registry of event handlers."""

    def __init__(self) -> None:
        self._handlers: list[tuple[type[DomainEvent], EventHandler]] = []

    def register(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        """Register a handler for an event type and all of its subclasses.

        Handlers run in registration order.
        """
        self._handlers.append((event_type, handler))
        logger.debug(
            "Registered event handler",
            extra={"event_type": event_type.__name__, "handler": getattr(handler, "__name__", repr(handler))},
        )

    def handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        return [handler for event_type, handler in self._handlers if isinstance(event, event_type)]

    async def dispatch(self, event: DomainEvent, *, session: Session) -> None:
        for handler in self.handlers_for(event):
            await handler(event, session)
