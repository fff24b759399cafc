"""Minimal publish/subscribe with isolated subscriber delivery."""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class Emitter(Generic[T]):
    """Fan-out of values to subscribed listeners.

    Each listener is invoked in isolation: a listener that raises is logged
    and does not prevent delivery to the remaining listeners. Listeners may
    subscribe or unsubscribe while an emit is in progress; the change applies
    from the next emit.
    """

    def __init__(self, name: str = "emitter"):
        self.name = name
        self._listeners: list[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, value: T) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(f"{self.name} listener failed")

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
