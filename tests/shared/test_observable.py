"""Tests for shared.observable."""

from unittest.mock import MagicMock

import pytest

from shared.constants import ViewEvent
from shared.observable import CallbackObserver, EventData, Observable, Observer


class TestObservable:
    def test_notify_delivers_event_data(self):
        subject = Observable()
        observer = MagicMock()
        subject.add_observer(observer)
        subject.notify_observers(ViewEvent.ZOOM_CHANGED, {'new': 4})
        event_data = observer.update.call_args[0][0]
        assert isinstance(event_data, EventData)
        assert event_data.event is ViewEvent.ZOOM_CHANGED
        assert event_data.data == {'new': 4}
        assert event_data.timestamp > 0

    def test_add_is_idempotent(self):
        subject = Observable()
        observer = MagicMock()
        subject.add_observer(observer)
        subject.add_observer(observer)
        subject.notify_observers(ViewEvent.REPAINT)
        observer.update.assert_called_once()

    def test_remove(self):
        subject = Observable()
        observer = MagicMock()
        subject.add_observer(observer)
        subject.remove_observer(observer)
        subject.remove_observer(observer)
        subject.notify_observers(ViewEvent.REPAINT)
        observer.update.assert_not_called()

    def test_failing_observer_does_not_stop_others(self, caplog):
        subject = Observable()
        bad = MagicMock()
        bad.update.side_effect = RuntimeError('boom')
        good = MagicMock()
        subject.add_observer(bad)
        subject.add_observer(good)
        subject.notify_observers(ViewEvent.REPAINT)
        good.update.assert_called_once()
        assert 'Error notifying observer' in caplog.text

    def test_observer_may_unsubscribe_during_notify(self):
        subject = Observable()
        second = MagicMock()
        first = CallbackObserver(lambda _e: subject.remove_observer(first))
        subject.add_observer(first)
        subject.add_observer(second)
        subject.notify_observers(ViewEvent.REPAINT)
        second.update.assert_called_once()


class TestCallbackObserver:
    def test_forwards_to_handler(self):
        received = []
        observer = CallbackObserver(received.append)
        event_data = EventData(event=ViewEvent.REPAINT)
        observer.update(event_data)
        assert received == [event_data]


def test_base_observer_is_abstract():
    with pytest.raises(NotImplementedError):
        Observer().update(EventData(event=ViewEvent.REPAINT))
