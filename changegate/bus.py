"""
In-process publish/subscribe.

An EventBus is an ordinary value: whoever builds the state machine owns
the bus and disposes of it. Delivery is synchronous. A listener that
raises is logged and skipped; it never affects the publisher or the
other listeners.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

WILDCARD = "*"

Listener = Callable[..., Any]
Unsubscribe = Callable[[], None]


@dataclass(eq=False)
class _Subscription:
    listener: Listener
    once: bool
    active: bool = True


class EventBus:
    """
    Named-event bus with one-shot and wildcard listeners.

    Name-specific listeners are called as listener(payload). Wildcard
    listeners, registered under "*", are called as listener(payload,
    event_name) after all name-specific listeners have run.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Subscription]] = {}
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _register(self, event_name: str, listener: Listener, *, once: bool) -> Unsubscribe:
        if self._disposed:
            raise RuntimeError("EventBus has been disposed")
        sub = _Subscription(listener=listener, once=once)
        self._listeners.setdefault(event_name, []).append(sub)

        def unsubscribe() -> None:
            self._remove(event_name, sub)

        return unsubscribe

    def _remove(self, event_name: str, sub: _Subscription) -> None:
        sub.active = False
        subs = self._listeners.get(event_name)
        if not subs:
            return
        if sub in subs:
            subs.remove(sub)
        if not subs:
            del self._listeners[event_name]

    def subscribe(self, event_name: str, listener: Listener) -> Unsubscribe:
        """Register `listener`; the returned callable removes it (idempotent)."""
        return self._register(event_name, listener, once=False)

    def once(self, event_name: str, listener: Listener) -> Unsubscribe:
        """Register `listener` for the next delivery of `event_name` only."""
        return self._register(event_name, listener, once=True)

    def publish(self, event_name: str, payload: Any = None) -> None:
        """Deliver `payload` to every current listener of `event_name`, then wildcards."""
        if self._disposed:
            raise RuntimeError("EventBus has been disposed")

        # Snapshot so listeners may (un)subscribe while we deliver
        specific = [] if event_name == WILDCARD else list(self._listeners.get(event_name, ()))
        wildcard = list(self._listeners.get(WILDCARD, ()))

        for sub in specific:
            self._deliver(event_name, event_name, sub, (payload,))
        for sub in wildcard:
            self._deliver(event_name, WILDCARD, sub, (payload, event_name))

    def _deliver(self, event_name: str, registered_as: str, sub: _Subscription, args: tuple[Any, ...]) -> None:
        if not sub.active:
            return
        if sub.once:
            self._remove(registered_as, sub)
        try:
            sub.listener(*args)
        except Exception:
            logger.exception("Event listener for %s failed", event_name)

    def clear(self, event_name: str | None = None) -> None:
        """Drop the listeners of one event, or of every event when no name is given."""
        names = [event_name] if event_name is not None else list(self._listeners)
        for name in names:
            for sub in self._listeners.pop(name, []):
                sub.active = False

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    def event_names(self) -> list[str]:
        """Names that currently have at least one listener."""
        return list(self._listeners)

    def dispose(self) -> None:
        """Release all listeners. Further subscribe/publish calls raise RuntimeError."""
        if self._disposed:
            return
        self.clear()
        self._disposed = True
        logger.debug("EventBus disposed")


class NamespacedEventBus:
    """View of an EventBus that prefixes every event name with `namespace:`."""

    def __init__(self, bus: EventBus, namespace: str):
        if not namespace:
            raise ValueError("namespace must be non-empty")
        self.bus = bus
        self.namespace = namespace

    def _name(self, event_name: str) -> str:
        return f"{self.namespace}:{event_name}"

    def subscribe(self, event_name: str, listener: Listener) -> Unsubscribe:
        return self.bus.subscribe(self._name(event_name), listener)

    def once(self, event_name: str, listener: Listener) -> Unsubscribe:
        return self.bus.once(self._name(event_name), listener)

    def publish(self, event_name: str, payload: Any = None) -> None:
        self.bus.publish(self._name(event_name), payload)

    def clear(self, event_name: str | None = None) -> None:
        if event_name is not None:
            self.bus.clear(self._name(event_name))
            return
        prefix = f"{self.namespace}:"
        for name in [n for n in self.bus.event_names() if n.startswith(prefix)]:
            self.bus.clear(name)

    def listener_count(self, event_name: str) -> int:
        return self.bus.listener_count(self._name(event_name))
