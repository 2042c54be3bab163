"""Наблюдатели (Observer) за состоянием вида карты."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from shared.constants import ViewEvent

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventData(BaseModel):
    """Данные события вида карты."""

    event: ViewEvent
    timestamp: float = Field(default_factory=time.time)
    data: dict[str, object] = Field(default_factory=dict)


class Observer:
    """Базовый интерфейс наблюдателя."""

    def update(self, event_data: EventData) -> None:
        msg = 'Метод update должен быть реализован в наследнике'
        raise NotImplementedError(msg)


class Observable:
    """Mixin class to add Observer pattern functionality."""

    def __init__(self) -> None:
        self._observers: list[Observer] = []

    def add_observer(self, observer: Observer) -> None:
        if observer not in self._observers:
            self._observers.append(observer)
            logger.debug('Added observer: %s', observer.__class__.__name__)

    def remove_observer(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
            logger.debug('Removed observer: %s', observer.__class__.__name__)

    def notify_observers(
        self,
        event: ViewEvent,
        data: dict[str, object] | None = None,
    ) -> None:
        """Notify all observers of an event."""
        if not self._observers:
            return
        event_data = EventData(event=event, data=data or {})
        for observer in list(self._observers):
            try:
                observer.update(event_data)
            except Exception:
                logger.exception(
                    'Error notifying observer %s',
                    observer.__class__.__name__,
                )


class CallbackObserver(Observer):
    """Adapter to a plain callable (avoids clashing with QWidget.update)."""

    def __init__(self, handler: Callable[[EventData], None]) -> None:
        self._handler = handler

    def update(self, event_data: EventData) -> None:
        self._handler(event_data)
