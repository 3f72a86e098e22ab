"""Publisher for segmentation events with isolated subscriber delivery.

This module implements the Observer pattern's publisher component. The engine
emits typed events (SpeechStartEvent, SpeechEndEvent, VadResultEvent) and
OracleFailure errors; each subscriber receives them independently.
"""

import threading
import logging
from typing import Callable, List, TYPE_CHECKING

from vad_segmenter.types import SpeechEndEvent, SpeechEvent, SpeechStartEvent, VadResultEvent

if TYPE_CHECKING:
    from vad_segmenter.exceptions import OracleFailure
    from vad_segmenter.protocols import SpeechEventSubscriber

logger = logging.getLogger(__name__)

SpeechEventCallback = Callable[[SpeechEvent], None]


class SpeechEventPublisher:
    """Manages subscribers and publishes segmentation events.

    Two kinds of listeners are supported:
    - subscribers implementing SpeechEventSubscriber (one method per event type)
    - plain callbacks receiving any SpeechEvent, optionally one-shot

    Thread Safety:
        - Registration uses a lock
        - Listener lists are copied before iteration (lock released during callbacks)

    Error Handling:
        - Each delivery is wrapped in try-except
        - A failing listener is logged and never stops delivery to the others
    """

    def __init__(self, verbose: bool = False) -> None:
        self._subscribers: List['SpeechEventSubscriber'] = []
        self._callbacks: List[SpeechEventCallback] = []
        self._once: List[SpeechEventCallback] = []
        self._lock: threading.Lock = threading.Lock()
        self._verbose: bool = verbose

    def subscribe(self, subscriber: 'SpeechEventSubscriber') -> None:
        """Register a subscriber. Registering twice has no additional effect."""
        with self._lock:
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)
                if self._verbose:
                    logger.info("Subscriber registered: %s", subscriber.__class__.__name__)

    def unsubscribe(self, subscriber: 'SpeechEventSubscriber') -> None:
        """Unregister a subscriber. Unknown subscribers are ignored."""
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)
                if self._verbose:
                    logger.info("Subscriber unregistered: %s", subscriber.__class__.__name__)

    def subscribe_callback(self, callback: SpeechEventCallback, once: bool = False) -> None:
        """Register a callback receiving every SpeechEvent.

        Args:
            callback: Callable taking one event
            once: Remove the callback after its first delivery
        """
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)
            if once and callback not in self._once:
                self._once.append(callback)

    def unsubscribe_callback(self, callback: SpeechEventCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
            if callback in self._once:
                self._once.remove(callback)

    def publish(self, event: SpeechEvent) -> None:
        """Deliver event to all subscribers and callbacks.

        Subscribers get the method matching the event type; callbacks get
        the event itself.
        """
        match event:
            case SpeechStartEvent():
                method = 'on_speech_start'
            case SpeechEndEvent():
                method = 'on_speech_end'
            case VadResultEvent():
                method = 'on_vad_result'
            case _:
                raise TypeError(f"Unsupported event type: {type(event).__name__}")

        with self._lock:
            subscribers = list(self._subscribers)
            callbacks = list(self._callbacks)
            fired_once = [cb for cb in callbacks if cb in self._once]
            for cb in fired_once:
                self._callbacks.remove(cb)
                self._once.remove(cb)

        for subscriber in subscribers:
            try:
                getattr(subscriber, method)(event)
            except Exception as e:
                logger.error(
                    "Subscriber %s failed %s: %s", subscriber.__class__.__name__, method, e,
                    exc_info=True
                )

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Callback %r failed on %s: %s", callback, type(event).__name__, e,
                    exc_info=True
                )

    def publish_error(self, error: 'OracleFailure') -> None:
        """Deliver a per-frame oracle failure to subscribers' on_error."""
        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber.on_error(error)
            except Exception as e:
                logger.error(
                    "Subscriber %s failed on_error: %s", subscriber.__class__.__name__, e,
                    exc_info=True
                )

    def subscriber_count(self) -> int:
        """Number of registered subscribers and callbacks."""
        with self._lock:
            return len(self._subscribers) + len(self._callbacks)

    def clear(self) -> None:
        """Remove every subscriber and callback."""
        with self._lock:
            self._subscribers.clear()
            self._callbacks.clear()
            self._once.clear()
