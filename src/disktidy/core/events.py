"""Push-event subscriptions and session correlation."""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Protocol

log = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]
Unlisten = Callable[[], None]


class EventSource(Protocol):
    """Host-pushed event stream."""

    async def listen(self, event_name: str, handler: EventHandler) -> Unlisten:
        """Register *handler* for *event_name* and return an unlisten function."""
        ...


class LocalEventBus:
    """In-process event source.

    Handlers run synchronously on the caller's thread (the event loop).
    A handler that raises is logged and does not stop delivery to others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    async def listen(self, event_name: str, handler: EventHandler) -> Unlisten:
        self._handlers.setdefault(event_name, []).append(handler)

        def unlisten() -> None:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unlisten

    def emit(self, event_name: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event_name, ())):
            try:
                handler(payload)
            except Exception:
                log.exception("Handler for '%s' failed", event_name)

    def listener_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, ()))


class Subscription:
    """Cancellable handle for one registration.

    ``unsubscribe()`` runs the underlying unlisten exactly once.
    """

    def __init__(self, event_name: str, unlisten: Unlisten) -> None:
        self.event_name = event_name
        self._unlisten: Unlisten | None = unlisten

    @property
    def active(self) -> bool:
        return self._unlisten is not None

    def unsubscribe(self) -> None:
        unlisten, self._unlisten = self._unlisten, None
        if unlisten is None:
            return
        try:
            unlisten()
        except Exception:
            log.exception("Failed to unlisten '%s'", self.event_name)


class EventCorrelator:
    """Owns the subscriptions of one consumer and filters events by session.

    At most one live subscription exists per ``(event_name, consumer)``.
    Events are accepted only for the bound session id. While the id is
    still unknown (start not yet acknowledged) any event is accepted unless
    it belongs to a retired session, since progress can arrive before the
    start call returns.
    """

    def __init__(self, source: EventSource) -> None:
        self._source = source
        self._subscriptions: dict[tuple[str, Hashable], Subscription] = {}
        self._session_id: str | None = None
        self._active = False
        self._retired: set[str] = set()

    # -- Subscriptions --

    async def subscribe(
        self,
        event_name: str,
        handler: EventHandler,
        consumer: Hashable = None,
    ) -> Subscription:
        """Register *handler*, replacing any prior subscription for the same key."""
        key = (event_name, consumer)
        previous = self._subscriptions.pop(key, None)
        if previous is not None:
            previous.unsubscribe()

        unlisten = await self._source.listen(event_name, handler)
        subscription = Subscription(event_name, unlisten)

        # A concurrent subscribe for the same key may have finished first.
        raced = self._subscriptions.pop(key, None)
        if raced is not None:
            raced.unsubscribe()
        self._subscriptions[key] = subscription
        log.debug("Subscribed to '%s'", event_name)
        return subscription

    def subscription_count(self, event_name: str | None = None) -> int:
        return sum(
            1
            for (name, _), sub in self._subscriptions.items()
            if sub.active and (event_name is None or name == event_name)
        )

    def close(self) -> None:
        """Tear down every subscription."""
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.unsubscribe()

    # -- Correlation --

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def open(self) -> None:
        """Start accepting events for a session whose id is not known yet."""
        self._session_id = None
        self._active = True

    def bind(self, session_id: str) -> None:
        self._session_id = session_id
        self._active = True

    def retire(self, session_id: str | None = None) -> None:
        """Mark a session stale. Its events are dropped from now on."""
        sid = session_id if session_id is not None else self._session_id
        if sid is not None:
            self._retired.add(sid)
        if sid is None or sid == self._session_id:
            self._active = False

    def finish(self, session_id: str | None = None) -> None:
        """End the live session, even if its id was never bound.

        Nothing is accepted again until the next ``open()`` or ``bind()``.
        """
        if session_id is not None:
            self._session_id = session_id
            self._retired.add(session_id)
        elif self._session_id is not None:
            self._retired.add(self._session_id)
        self._active = False

    def is_retired(self, session_id: str | None) -> bool:
        return session_id is not None and session_id in self._retired

    def accepts(self, session_id: str | None) -> bool:
        """Whether an event carrying *session_id* belongs to the live session."""
        if not self._active:
            return False
        if session_id is None:
            return True
        if session_id in self._retired:
            return False
        return self._session_id is None or session_id == self._session_id
