import threading
import unittest
from unittest.mock import Mock, call

from hamcrest import assert_that, is_, empty

from dcsbios.support.events import EventSource


class EventsTest(unittest.TestCase):

    def test_handlers_empty(self):
        sut = EventSource()
        assert_that(sut.handlers(), is_(empty()))
        assert_that(len(sut), is_(0))

    def test_handlers_not_empty(self):
        sut = EventSource()
        handler = Mock()
        sut.add(handler)
        assert_that(list(sut.handlers()), is_([handler]))

    def test_no_listeners(self):
        sut = EventSource()
        sut.fire(1)

    def test_manage_handlers(self):
        sut = EventSource()
        m1 = Mock()
        sut.add(m1)
        assert_that(sut.handlers(), is_((m1,)))

        sut.remove(m1)
        assert_that(sut.handlers(), is_(()))

        sut.remove(m1)
        assert_that(sut.handlers(), is_(()))

        sut += m1
        assert_that(sut.handlers(), is_((m1,)))

        sut -= m1
        assert_that(sut.handlers(), is_(()))

    def test_fire_all_with_empty_events(self):
        sut = EventSource()
        m1 = Mock()
        sut.add(m1)
        sut.fire_all([])
        m1.assert_not_called()

    def test_listeners(self):
        sut = EventSource()
        l1 = Mock()
        l2 = Mock()
        sut += l1
        sut += l2
        sut.fire(1, v="hey")
        l1.assert_called_once_with(1, v="hey")
        l2.assert_called_once_with(1, v="hey")

        l1.reset_mock()
        l2.reset_mock()

        sut.fire_all([1, 2, 3])
        l1.assert_has_calls([call(1), call(2), call(3)])
        l2.assert_has_calls([call(1), call(2), call(3)])

    def test_handler_can_remove_itself_while_firing(self):
        sut = EventSource()
        later = Mock()

        def once(event):
            sut.remove(once)

        sut += once
        sut += later
        sut.fire('a')
        sut.fire('b')
        later.assert_has_calls([call('a'), call('b')])
        assert_that(sut.handlers(), is_((later,)))

    def test_fire_runs_on_calling_thread(self):
        sut = EventSource()
        threads = []
        sut += lambda e: threads.append(threading.current_thread())
        worker = threading.Thread(target=sut.fire, args=(1,))
        worker.start()
        worker.join()
        assert_that(threads, is_([worker]))
