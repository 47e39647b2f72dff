"""Change notification for engine state."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[], None]


class ChangeSignal:
    """A "something changed, re-read state" signal.

    Handlers take no arguments; they are expected to query the engine's
    getters when called.
    """

    def __init__(self):
        self._subscribers: list[ChangeHandler] = []
        self.emit_count = 0

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Subscribe to change notifications.

        Returns:
            Callable that removes the subscription
        """
        self._subscribers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: ChangeHandler) -> None:
        """Unsubscribe from change notifications."""
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    def emit(self, reason: str = "") -> None:
        """Notify all subscribers.

        ``reason`` is only logged; subscribers never receive a payload.
        """
        self.emit_count += 1
        logger.debug("State changed%s", f" ({reason})" if reason else "")
        for handler in list(self._subscribers):
            try:
                handler()
            except Exception:
                # A broken subscriber must not break the engine
                logger.exception("Change subscriber %r failed", handler)


class ChangePublisher:
    """Mixin for components that announce state changes."""

    def __init__(self, signal: ChangeSignal):
        self.signal = signal

    def _emit(self, reason: str = "") -> None:
        self.signal.emit(reason)
