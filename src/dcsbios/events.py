"""
Events raised by the transport to its collaborators. Control updates are delivered as
dcsbios.protocol.stream.ControlUpdate instances.
"""
from dcsbios.support.mixins import CommonEqualityMixin, ReprMixin


class TransportEvent(CommonEqualityMixin, ReprMixin):
    """ base class for transport events. """
    def __init__(self, transport):
        self.transport = transport


class ConnectionActiveEvent(TransportEvent):
    """ A datagram arrived from the simulator. Fired once per datagram as a liveness pulse. """


class BulkDataEvent(TransportEvent):
    """ The raw bytes of a received datagram, fired only when pass-through is enabled. """
    def __init__(self, transport, data: bytes):
        super().__init__(transport)
        self.data = data


class CommandSentEvent(CommonEqualityMixin, ReprMixin):
    """ A queued command was sent to the simulator. """
    def __init__(self, sender, command: str):
        self.sender = sender
        self.command = command
