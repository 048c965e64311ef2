"""
Decodes the DCS-BIOS export stream.

The simulator exports cockpit state as a sequence of frames:

    55 55 55 55 | address (uint16 LE) | length (uint16 LE) | length bytes of data

Frames do not line up with datagrams. A datagram can hold several frames and a frame can be split over
several datagrams, so the decoder keeps its state between calls and resumes exactly where the previous
chunk stopped.
"""
import struct

from dcsbios.support.events import EventSource
from dcsbios.support.mixins import CommonEqualityMixin, ReprMixin

SYNC_BYTE = 0x55
SYNC_LENGTH = 4
SYNC_MARKER = bytes([SYNC_BYTE] * SYNC_LENGTH)
HEADER_LENGTH = 4

_header = struct.Struct('<HH')


class ControlUpdate(CommonEqualityMixin, ReprMixin):
    """ The new data for the cockpit control at a given address. """

    def __init__(self, address: int, data: bytes=b''):
        self.address = address
        self.data = bytes(data)


class Phase:
    """ The decoder phases """
    seek_sync = 0
    header = 1
    payload = 2


def encode_frame(address: int, data: bytes=b'') -> bytes:
    """ Encodes a single frame, including the sync marker.

    >>> encode_frame(0x10, b'\\x01\\x02').hex()
    '55555555100002000102'
    """
    return SYNC_MARKER + _header.pack(address, len(data)) + bytes(data)


def decode_header(buf) -> tuple:
    """ Decodes the address and length from a 4 byte header.

    >>> decode_header(bytes([0x10, 0x00, 0x02, 0x00]))
    (16, 2)
    >>> decode_header(bytes([0x34, 0x12, 0xff, 0xff]))
    (4660, 65535)
    """
    return _header.unpack(bytes(buf))


class ProtocolDecoder:
    """
    A stateful parser that turns chunks of the export stream into ControlUpdate instances.

    Bytes that are not preceded by a sync marker are discarded; finding the next sync marker is the only
    recovery from corrupt input, so the decoder never raises for malformed data.

    add_array() must only be called from one thread at a time. Updates are fired on `updates` synchronously
    from within that call.
    """

    def __init__(self):
        self.updates = EventSource()
        self.reset()

    def reset(self):
        """ discards any partially decoded frame and starts searching for the next sync marker. """
        self.phase = Phase.seek_sync
        self._sync_count = 0
        self._header = bytearray()
        self._address = 0
        self._payload = bytearray()
        self._remaining = 0

    def add_array(self, chunk) -> int:
        """
        Decodes a chunk of the stream, firing each completed update.
        :return: the number of updates fired.
        """
        updates = self.decode(chunk)
        self.updates.fire_all(updates)
        return len(updates)

    def decode(self, chunk) -> list:
        """
        Feeds a chunk of raw bytes through the decoder. The whole chunk is consumed before returning.
        :param chunk: the bytes received. Not retained after the call.
        :return: a list of the ControlUpdate for each frame completed by this chunk, in stream order.
        """
        updates = []
        data = memoryview(bytes(chunk))
        pos = 0
        end = len(data)
        while pos < end:
            if self.phase == Phase.seek_sync:
                pos = self._seek_sync(data, pos, end)
                continue
            if self.phase == Phase.header:
                pos, update = self._read_header(data, pos, end)
            else:
                pos, update = self._read_payload(data, pos, end)
            if update is not None:
                updates.append(update)
        return updates

    def _seek_sync(self, data, pos, end):
        while pos < end:
            b = data[pos]
            if b == SYNC_BYTE:
                self._sync_count += 1
                pos += 1
            elif self._sync_count >= SYNC_LENGTH:
                # this byte starts the header, so it is left for the header phase to consume
                self._sync_count = 0
                self._header.clear()
                self.phase = Phase.header
                break
            else:
                self._sync_count = 0
                pos += 1
        return pos

    def _read_header(self, data, pos, end):
        take = min(HEADER_LENGTH - len(self._header), end - pos)
        self._header += data[pos:pos + take]
        pos += take
        update = None
        if len(self._header) == HEADER_LENGTH:
            self._address, length = decode_header(self._header)
            self._header.clear()
            if length:
                self._payload = bytearray()
                self._remaining = length
                self.phase = Phase.payload
            else:
                update = ControlUpdate(self._address)
                self.phase = Phase.seek_sync
        return pos, update

    def _read_payload(self, data, pos, end):
        take = min(self._remaining, end - pos)
        self._payload += data[pos:pos + take]
        self._remaining -= take
        pos += take
        update = None
        if not self._remaining:
            update = ControlUpdate(self._address, self._payload)
            self._payload = bytearray()
            self.phase = Phase.seek_sync
        return pos, update
