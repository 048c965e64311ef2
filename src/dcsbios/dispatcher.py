"""
Sends commands to DCS-BIOS. Producers on any thread queue commands; a single consumer thread sends them,
so the simulator receives them in exactly the order they were queued.
"""
import logging
import queue

from dcsbios.errors import TransportNotRunningError
from dcsbios.events import CommandSentEvent
from dcsbios.protocol.loop import AsyncLoop
from dcsbios.support.events import EventSource
from dcsbios.support.mixins import CommonEqualityMixin, ReprMixin

logger = logging.getLogger(__name__)

# how long the consumer blocks on an empty queue before checking if it has been stopped
DEQUEUE_TIMEOUT = 0.1

# placed on the queue to wake the consumer when stopping
_WAKE = object()


class OutboundCommand(CommonEqualityMixin, ReprMixin):
    """
    A command waiting to be sent.
    :param sender: an opaque tag identifying who queued the command. Passed back in CommandSentEvent.
    :param text: the command text, e.g. "FLAPS_SWITCH INC\\n". The newline is part of the text.
    """
    def __init__(self, sender, text: str):
        self.sender = sender
        self.text = text

    def encode(self) -> bytes:
        """ the datagram payload. Characters outside ASCII are replaced with '?'.

        >>> OutboundCommand(None, "UFC_1 1\\n").encode()
        b'UFC_1 1\\n'
        >>> OutboundCommand(None, "NAME été\\n").encode()
        b'NAME ?t?\\n'
        """
        return self.text.encode('ascii', errors='replace')


def is_blank(text) -> bool:
    """
    >>> is_blank(None), is_blank(''), is_blank(' \\t\\n'), is_blank('X 1\\n')
    (True, True, True, False)
    """
    return text is None or not str(text).strip()


class CommandDispatcher(AsyncLoop):
    """
    An unbounded FIFO of OutboundCommand instances, drained by one background thread that sends each
    command as a single datagram and then fires CommandSentEvent on command_sent.

    Failed sends are logged and the next command is processed. Commands queued while the dispatcher is stopped
    are kept and sent once it is started again.
    """

    def __init__(self, log=logger):
        super().__init__(name='dcsbios-dispatcher', log=log)
        self.commands = queue.Queue()
        self.command_sent = EventSource()
        self.sock = None
        self.endpoint = None

    def enqueue(self, sender, text) -> bool:
        """
        Queues a command for sending. Blank commands are silently dropped.
        :return: True if the command was queued.
        """
        if is_blank(text):
            return False
        self.commands.put(OutboundCommand(sender, str(text)))
        return True

    def enqueue_all(self, sender, texts) -> int:
        """
        Queues each command in order.
        :return: the number of commands queued.
        """
        if texts is None:
            return 0
        return sum(1 for text in texts if self.enqueue(sender, text))

    @property
    def pending(self) -> int:
        """ the approximate number of commands waiting to be sent """
        return self.commands.qsize()

    def start(self, sock=None, endpoint=None):
        """
        Starts sending commands.
        :param sock: the socket to send on
        :param endpoint: the UdpEndpoint commands are sent to
        """
        if sock is not None:
            self.sock = sock
            self.endpoint = endpoint
        super().start()

    def stop(self, timeout=None):
        """ stops the consumer. Queued commands are kept; a wake marker the consumer did not take is removed. """
        super().stop(timeout)
        with self.commands.mutex:
            kept = [c for c in self.commands.queue if c is not _WAKE]
            self.commands.queue.clear()
            self.commands.queue.extend(kept)

    def _wake(self):
        self.commands.put(_WAKE)

    def loop(self):
        try:
            command = self.commands.get(timeout=DEQUEUE_TIMEOUT)
        except queue.Empty:
            return
        if command is _WAKE:
            return
        self.send(command)

    def send(self, command: OutboundCommand):
        """ sends a command synchronously on the calling thread and notifies command_sent. """
        sock = self.sock
        if sock is None:
            raise TransportNotRunningError("no socket to send %r" % command.text)
        self.logger.debug("sending command: %r", command.text)
        sock.sendto(command.encode(), self.endpoint.address)
        try:
            self.command_sent.fire(CommandSentEvent(command.sender, command.text))
        except Exception as e:
            self.logger.error("command_sent handler failed for %r: %s", command.text, e, exc_info=e)

    def exception_handler(self, e):
        self.logger.error("failed to send command: %s", e, exc_info=e)
