import socket
import threading
import unittest
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, calling, contains_exactly, equal_to, is_, raises, starts_with

from dcsbios.conduit.udp import UdpEndpoint
from dcsbios.dispatcher import CommandDispatcher, OutboundCommand
from dcsbios.errors import TransportNotRunningError
from dcsbios.events import CommandSentEvent
from dcsbios.protocol.loop_test import debug_timeout, wait_until


class OutboundCommandTest(unittest.TestCase):

    def test_encode_ascii(self):
        assert_that(OutboundCommand('panelA', "FLAPS_SWITCH INC\n").encode(), is_(b"FLAPS_SWITCH INC\n"))

    def test_encode_replaces_non_ascii(self):
        assert_that(OutboundCommand(None, "UFC é€\n").encode(), is_(b"UFC ??\n"))


class CommandDispatcherQueueTest(unittest.TestCase):

    def setUp(self):
        self.sut = CommandDispatcher(log=Mock())

    def test_blank_commands_are_dropped(self):
        for text in (None, '', ' ', '   \n', '\t\r\n'):
            assert_that(self.sut.enqueue('panelA', text), is_(False), repr(text))
        assert_that(self.sut.pending, is_(0))

    def test_enqueue(self):
        assert_that(self.sut.enqueue('panelA', "FLAPS_SWITCH INC\n"), is_(True))
        assert_that(self.sut.pending, is_(1))
        assert_that(self.sut.commands.get_nowait(), is_(equal_to(OutboundCommand('panelA', "FLAPS_SWITCH INC\n"))))

    def test_enqueue_all(self):
        assert_that(self.sut.enqueue_all('panelA', ["A 1\n", "  ", "B 2\n"]), is_(2))
        assert_that(self.sut.enqueue_all('panelA', None), is_(0))
        assert_that(self.sut.commands.get_nowait().text, is_("A 1\n"))
        assert_that(self.sut.commands.get_nowait().text, is_("B 2\n"))

    def test_send_without_socket(self):
        assert_that(calling(self.sut.send).with_args(OutboundCommand(None, "A 1\n")), raises(TransportNotRunningError))

    def test_send_fires_command_sent(self):
        sock = Mock()
        listener = Mock()
        self.sut.sock = sock
        self.sut.endpoint = UdpEndpoint('127.0.0.1', 7778)
        self.sut.command_sent += listener
        self.sut.send(OutboundCommand('panelA', "FLAPS_SWITCH INC\n"))
        sock.sendto.assert_called_once_with(b"FLAPS_SWITCH INC\n", ('127.0.0.1', 7778))
        listener.assert_called_once_with(CommandSentEvent('panelA', "FLAPS_SWITCH INC\n"))

    def test_failing_handler_does_not_fail_the_send(self):
        sock = Mock()
        self.sut.sock = sock
        self.sut.endpoint = UdpEndpoint('127.0.0.1', 7778)
        self.sut.command_sent += Mock(side_effect=RuntimeError("handler"))
        self.sut.send(OutboundCommand('panelA', "A 1\n"))
        sock.sendto.assert_called_once_with(b"A 1\n", ('127.0.0.1', 7778))
        self.sut.logger.error.assert_called_once()
        assert_that(self.sut.logger.error.call_args[0][0], starts_with("command_sent handler failed"))


class CommandDispatcherThreadTest(unittest.TestCase):
    """ runs the dispatcher thread, sending to a socket on the loopback interface. """

    def setUp(self):
        self.receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.receiver.bind(('127.0.0.1', 0))
        self.receiver.settimeout(2)
        self.endpoint = UdpEndpoint(*self.receiver.getsockname())
        self.send_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sent = []
        self.sut = CommandDispatcher(log=Mock())
        self.sut.command_sent += self.sent.append

    def tearDown(self):
        self.sut.stop()
        self.send_sock.close()
        self.receiver.close()

    @timeout_decorator.timeout(debug_timeout(5))
    def test_command_is_sent_as_ascii_datagram(self):
        self.sut.start(self.send_sock, self.endpoint)
        self.sut.enqueue('panelA', "FLAPS_SWITCH INC\n")
        assert_that(self.receiver.recv(1024), is_(b"FLAPS_SWITCH INC\n"))
        assert_that(wait_until(lambda: self.sent), is_(True))
        assert_that(self.sent, contains_exactly(CommandSentEvent('panelA', "FLAPS_SWITCH INC\n")))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_blank_command_is_never_sent(self):
        self.sut.start(self.send_sock, self.endpoint)
        self.sut.enqueue('panelA', "   \n")
        self.sut.enqueue('panelA', "MARKER 1\n")
        assert_that(self.receiver.recv(1024), is_(b"MARKER 1\n"))
        assert_that(wait_until(lambda: self.sent), is_(True))
        assert_that(self.sent, contains_exactly(CommandSentEvent('panelA', "MARKER 1\n")))

    @timeout_decorator.timeout(debug_timeout(10))
    def test_concurrent_producers_are_sent_in_queue_order(self):
        queued = []
        lock = threading.Lock()

        def produce(name):
            for i in range(50):
                with lock:
                    text = "%s %d\n" % (name, i)
                    self.sut.enqueue(name, text)
                    queued.append(text)

        producers = [threading.Thread(target=produce, args=('P%d' % n,)) for n in range(4)]
        self.sut.start(self.send_sock, self.endpoint)
        for p in producers:
            p.start()
        for p in producers:
            p.join()
        assert_that(wait_until(lambda: len(self.sent) == 200, timeout=5), is_(True))
        assert_that([e.command for e in self.sent], is_(equal_to(queued)))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_failed_send_does_not_stop_dispatcher(self):
        sock = Mock()
        sock.sendto.side_effect = [OSError("network unreachable"), 10]
        self.sut.start(sock, self.endpoint)
        self.sut.enqueue('panelA', "FIRST 1\n")
        self.sut.enqueue('panelA', "SECOND 1\n")
        assert_that(wait_until(lambda: self.sent), is_(True))
        assert_that(self.sent, contains_exactly(CommandSentEvent('panelA', "SECOND 1\n")))
        assert_that(sock.sendto.call_count, is_(2))
        assert_that(self.sut.alive, is_(True))
        self.sut.logger.error.assert_called_once()

    @timeout_decorator.timeout(debug_timeout(5))
    def test_commands_queued_while_stopped_are_sent_after_start(self):
        self.sut.enqueue(None, "EARLY 1\n")
        self.sut.start(self.send_sock, self.endpoint)
        assert_that(self.receiver.recv(1024), is_(b"EARLY 1\n"))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_stop_is_prompt(self):
        self.sut.start(self.send_sock, self.endpoint)
        assert_that(self.sut.alive, is_(True))
        self.sut.stop()
        assert_that(self.sut.alive, is_(False))
        assert_that(self.sut.running(), is_(False))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_restart(self):
        self.sut.start(self.send_sock, self.endpoint)
        self.sut.stop()
        self.sut.start(self.send_sock, self.endpoint)
        self.sut.enqueue(None, "AGAIN 1\n")
        assert_that(self.receiver.recv(1024), is_(b"AGAIN 1\n"))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_stop_during_send_leaves_only_commands_queued(self):
        sending = threading.Event()
        release = threading.Event()

        def slow_send(data, address):
            sending.set()
            release.wait(2)
            return len(data)

        sock = Mock()
        sock.sendto.side_effect = slow_send
        self.sut.start(sock, self.endpoint)
        self.sut.enqueue(None, "FIRST 1\n")
        assert_that(sending.wait(2), is_(True))
        self.sut.enqueue(None, "SECOND 1\n")
        stopper = threading.Thread(target=self.sut.stop)
        stopper.start()
        assert_that(wait_until(lambda: self.sut.pending == 2), is_(True))
        release.set()
        stopper.join()
        assert_that(self.sut.alive, is_(False))
        assert_that(self.sut.pending, is_(1))
        assert_that(self.sut.commands.get_nowait(), is_(equal_to(OutboundCommand(None, "SECOND 1\n"))))
