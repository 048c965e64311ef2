import ipaddress
import logging
import select
import socket
import struct

logger = logging.getLogger(__name__)

DEFAULT_RECEIVE_IP = '239.255.50.10'
DEFAULT_RECEIVE_PORT = 5010
DEFAULT_SEND_IP = '127.0.0.1'
DEFAULT_SEND_PORT = 7778

MAX_DATAGRAM_SIZE = 65535


def resolve_ip(value, default):
    """
    Returns the given IPv4 address, or the default if the value is empty or not an address.

    >>> resolve_ip('239.255.50.11', DEFAULT_RECEIVE_IP)
    '239.255.50.11'
    >>> resolve_ip('', DEFAULT_RECEIVE_IP)
    '239.255.50.10'
    >>> resolve_ip('not.an.address', DEFAULT_SEND_IP)
    '127.0.0.1'
    """
    if not value:
        return default
    try:
        return str(ipaddress.IPv4Address(str(value).strip()))
    except ValueError:
        logger.warning("invalid address '%s', using %s", value, default)
        return default


def resolve_port(value, default):
    """
    Returns the port if it is in range, otherwise the default.

    >>> resolve_port(5011, DEFAULT_RECEIVE_PORT)
    5011
    >>> resolve_port(0, DEFAULT_RECEIVE_PORT)
    5010
    >>> resolve_port('7779', DEFAULT_SEND_PORT)
    7779
    >>> resolve_port(70000, DEFAULT_SEND_PORT)
    7778
    """
    try:
        port = int(value)
    except (TypeError, ValueError):
        return default
    return port if 0 < port <= 0xFFFF else default


class UdpEndpoint:
    """
    Describes one side of a UDP conversation.
    """
    def __init__(self, ip_address, port):
        self.ip_address = ip_address
        self.port = port

    @property
    def address(self):
        """ the (host, port) pair used with the socket api """
        return self.ip_address, self.port

    def __eq__(self, other):
        return isinstance(other, UdpEndpoint) and self.address == other.address

    def __hash__(self):
        return hash(self.address)

    def __str__(self):
        return "%s:%d" % self.address

    __repr__ = __str__


def multicast_membership(group_ip) -> bytes:
    """ the ip_mreq structure used to join a multicast group on any interface """
    return struct.pack("=4sl", socket.inet_aton(group_ip), socket.INADDR_ANY)


def open_multicast_receiver(endpoint: UdpEndpoint, timeout=0.2) -> socket.socket:
    """
    Opens a socket that receives datagrams sent to a multicast group.
    The socket binds to any interface on the endpoint's port, with address reuse so several
    listeners on one machine can share the export stream.
    :param endpoint: the multicast group and port
    :param timeout: the receive timeout in seconds
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(timeout)
        sock.bind(('', endpoint.port))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, multicast_membership(endpoint.ip_address))
    except BaseException:
        sock.close()
        raise
    logger.info("listening for multicast group %s", endpoint)
    return sock


def open_sender() -> socket.socket:
    """ Opens the socket used to send commands. Broadcast is enabled so the target may be a broadcast address. """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    except BaseException:
        sock.close()
        raise
    return sock


def data_available(sock: socket.socket) -> bool:
    """ determines if a datagram can be read from the socket without blocking. """
    readable, _, _ = select.select([sock], [], [], 0)
    return bool(readable)
