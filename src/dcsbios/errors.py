class DcsBiosError(Exception):
    """ Base class for errors raised by this package. """


class TransportError(DcsBiosError):
    """ Indicates the transport could not perform an operation on its sockets. """


class TransportNotRunningError(TransportError):
    """ The operation needs a running session. """
