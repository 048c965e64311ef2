"""
The DCS-BIOS transport: receives the cockpit export stream over multicast UDP and sends commands back.

A running session uses three background threads:

- the receive loop reads datagrams, feeds them to the decoder and fires events
- the throttle timer wakes the receive loop once per period when there is nothing to read
- the command dispatcher sends queued commands

startup() and shutdown() may be called from any thread. Faults on the background threads are never raised
to callers; they are recorded in the transport's FaultTracker.
"""
import logging
import threading
import time

from dcsbios.conduit.udp import DEFAULT_RECEIVE_IP, DEFAULT_RECEIVE_PORT, DEFAULT_SEND_IP, DEFAULT_SEND_PORT, \
    MAX_DATAGRAM_SIZE, UdpEndpoint, data_available, open_multicast_receiver, open_sender, resolve_ip, resolve_port
from dcsbios.dispatcher import CommandDispatcher
from dcsbios.events import BulkDataEvent, ConnectionActiveEvent
from dcsbios.protocol.loop import AsyncLoop, ThrottleTimer
from dcsbios.protocol.stream import ProtocolDecoder
from dcsbios.support.events import EventSource
from dcsbios.support.faults import FaultTracker
from dcsbios.support.mixins import CommonEqualityMixin, ReprMixin

logger = logging.getLogger(__name__)


class NotificationMode(CommonEqualityMixin, ReprMixin):
    """
    Selects what the transport does with each received datagram. The two capabilities are independent.
    :param decode: feed the data to the protocol decoder and fire control updates
    :param pass_through: fire the raw datagram as a BulkDataEvent
    """
    def __init__(self, decode=True, pass_through=False):
        self.decode = decode
        self.pass_through = pass_through


class ReceiveLoop(AsyncLoop):
    """
    Reads datagrams from the receive socket for one session.
    Socket errors are treated as transient. Any other exception is handed to the transport, which ends the session.
    """

    def __init__(self, transport, sock, throttle: ThrottleTimer, idle_timeout=0.2):
        super().__init__(name='dcsbios-receive', log=transport.logger)
        self.transport = transport
        self.sock = sock
        self.throttle = throttle
        self.idle_timeout = idle_timeout

    def running(self):
        return super().running() and self.transport.is_running

    def loop(self):
        if not self._poll():
            self.throttle.wait(self.idle_timeout)
            return
        self.transport.mark_activity()
        data = self._read()
        if data:
            self.transport.process(data)

    def _poll(self):
        try:
            return data_available(self.sock)
        except OSError:
            return False

    def _read(self):
        try:
            return self.sock.recv(MAX_DATAGRAM_SIZE)
        except OSError:     # includes the receive timeout
            return None

    def exception_handler(self, e):
        self.transport.receive_failed(e)

    def _wake(self):
        self.throttle.release()


class DcsBiosTransport:
    """
    Sends commands to DCS-BIOS and receives data about all cockpit controls in the aircraft.

    Invalid or empty addresses and ports fall back to the DCS-BIOS defaults: the export stream on multicast group
    239.255.50.10 port 5010, and commands to 127.0.0.1 port 7778.

    Collaborators subscribe to the event sources:

    - connection_active: a ConnectionActiveEvent for every datagram received
    - bulk_data: a BulkDataEvent with the raw datagram, when the mode enables pass-through
    - control_updates: a ControlUpdate for every decoded frame, when the mode enables decoding
    - command_sent: a CommandSentEvent after each command is sent

    Handlers run on the transport's threads and should return quickly.
    """

    def __init__(self, receive_ip=None, send_ip=None, receive_port=0, send_port=0, mode: NotificationMode=None,
                 throttle_period=0.01, receive_timeout=0.2, faults: FaultTracker=None, log=logger):
        self.receive_endpoint = UdpEndpoint(resolve_ip(receive_ip, DEFAULT_RECEIVE_IP),
                                            resolve_port(receive_port, DEFAULT_RECEIVE_PORT))
        self.send_endpoint = UdpEndpoint(resolve_ip(send_ip, DEFAULT_SEND_IP),
                                         resolve_port(send_port, DEFAULT_SEND_PORT))
        self.mode = mode if mode is not None else NotificationMode()
        self.throttle_period = throttle_period
        self.receive_timeout = receive_timeout
        self.faults = faults if faults is not None else FaultTracker()
        self.logger = log

        self.connection_active = EventSource()
        self.bulk_data = EventSource()
        self.control_updates = EventSource()
        self.command_sent = EventSource()

        self.dispatcher = CommandDispatcher(log=log)
        self.dispatcher.command_sent.add(self.command_sent.fire)
        self.decoder = None
        self.last_activity = None

        self._receive_sock = None
        self._send_sock = None
        self._throttle = None
        self._receive_loop = None
        self._running = threading.Event()
        self._lifecycle = threading.Lock()

    @classmethod
    def from_settings(cls, settings, **kwargs):
        """ creates a transport from a dcsbios.config.TransportSettings instance """
        return cls(settings.receive_ip, settings.send_ip, settings.receive_port, settings.send_port,
                   NotificationMode(settings.decode, settings.pass_through),
                   throttle_period=settings.throttle_period, receive_timeout=settings.receive_timeout, **kwargs)

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def __enter__(self):
        self.startup()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    def open_receive_socket(self):
        return open_multicast_receiver(self.receive_endpoint, self.receive_timeout)

    def open_send_socket(self):
        return open_sender()

    def startup(self):
        """
        Opens the sockets and starts the background threads. Calling startup() on a running transport does nothing.
        If the session cannot be started the fault is recorded, anything opened is released and the transport
        remains stopped.
        """
        with self._lifecycle:
            if self._running.is_set():
                return
            self._teardown()    # anything left behind by a session that failed
            try:
                self._receive_sock = self.open_receive_socket()
                self._send_sock = self.open_send_socket()
                self.decoder = ProtocolDecoder()
                self.decoder.updates.add(self.control_updates.fire)
                self._throttle = ThrottleTimer(self.throttle_period)
                self._throttle.start()
                self.dispatcher.start(self._send_sock, self.send_endpoint)
                self._running.set()
                self._receive_loop = ReceiveLoop(self, self._receive_sock, self._throttle, self.receive_timeout)
                self._receive_loop.start()
                self.logger.info("dcsbios transport started, receiving from %s, sending to %s",
                                 self.receive_endpoint, self.send_endpoint)
            except Exception as e:
                self._running.clear()
                self.faults.set_fault(e, 'startup')
                self._teardown()

    def shutdown(self):
        """
        Stops the background threads and closes the sockets. Each step is attempted even if an earlier one fails;
        failures are recorded as faults. Calling shutdown() on a stopped transport does nothing.
        """
        with self._lifecycle:
            was_running = self._running.is_set()
            self._running.clear()
            self._teardown()
            if was_running:
                self.logger.info("dcsbios transport stopped")

    def _teardown(self):
        steps = (
            ('throttle', self._stop_throttle),
            ('receive loop', self._stop_receive_loop),
            ('dispatcher', self._stop_dispatcher),
            ('receive socket', self._close_receive_socket),
            ('send socket', self._close_send_socket),
            ('decoder', self._dispose_decoder),
        )
        for name, step in steps:
            try:
                step()
            except Exception as e:
                self.faults.set_fault(e, 'shutdown %s' % name)

    def _stop_throttle(self):
        throttle, self._throttle = self._throttle, None
        if throttle is not None:
            throttle.stop()
            throttle.release()

    def _stop_receive_loop(self):
        receive_loop, self._receive_loop = self._receive_loop, None
        if receive_loop is not None:
            receive_loop.stop()

    def _stop_dispatcher(self):
        self.dispatcher.stop()
        self.dispatcher.sock = None

    def _close_receive_socket(self):
        sock, self._receive_sock = self._receive_sock, None
        if sock is not None:
            sock.close()

    def _close_send_socket(self):
        sock, self._send_sock = self._send_sock, None
        if sock is not None:
            sock.close()

    def _dispose_decoder(self):
        decoder, self.decoder = self.decoder, None
        if decoder is not None:
            decoder.reset()
            decoder.updates.remove(self.control_updates.fire)

    def mark_activity(self):
        self.last_activity = time.time()
        self.connection_active.fire(ConnectionActiveEvent(self))

    def process(self, data: bytes):
        """ handles one received datagram according to the notification mode. """
        decoder = self.decoder
        if self.mode.decode and decoder is not None:
            decoder.add_array(data)
        if self.mode.pass_through:
            self.bulk_data.fire(BulkDataEvent(self, data))

    def receive_failed(self, e):
        """
        Called on the receive thread when an unexpected error ends the receive loop.
        The session stops running; its sockets are released by the next shutdown() or startup().
        """
        self.faults.set_fault(e, 'receive')
        self._running.clear()
        receive_loop = self._receive_loop
        if receive_loop is not None:
            receive_loop.signal_stop()
        throttle = self._throttle
        if throttle is not None:
            throttle.signal_stop()
        self.dispatcher.signal_stop()

    def send(self, text, sender=None) -> bool:
        """
        Queues a command such as "FLAPS_SWITCH INC\\n". Blank commands are ignored.
        :return: True if the command was queued
        """
        return self.dispatcher.enqueue(sender, text)

    def send_all(self, commands, sender=None) -> int:
        """ Queues several commands, in order. """
        return self.dispatcher.enqueue_all(sender, commands)

    def has_fault(self) -> bool:
        return self.faults.has_fault()

    def take_fault(self):
        return self.faults.take_fault()

    def peek_fault(self):
        return self.faults.peek_fault()

    def get_last_exception(self, reset=False):
        return self.faults.get_last_exception(reset)
