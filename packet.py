import itertools
from enum import Enum

from config import DEFAULT_TTL

_packet_uids = itertools.count()

PROTOCOL_UDP = 17


class SocketErrno(Enum):
    ERROR_NOTERROR = 0
    ERROR_NOROUTETOHOST = 1


class TimestampTag:
    """Send time of the originator, carried out of band with the packet."""

    def __init__(self, timestamp):
        self.timestamp = timestamp

    def get_timestamp(self):
        return self.timestamp

    def __repr__(self):
        return f"TimestampTag({self.timestamp})"


class Packet:
    """
    Opaque payload of a fixed size with attachable tags.
    Tags are keyed by their type and travel with the packet across hops.
    """

    def __init__(self, size):
        self.uid = next(_packet_uids)
        self.size = size
        self._tags = {}

    def add_packet_tag(self, tag):
        self._tags[type(tag)] = tag

    def peek_packet_tag(self, tag_type):
        return self._tags.get(tag_type)

    def get_size(self):
        return self.size

    def __repr__(self):
        return f"Packet(uid={self.uid}, size={self.size})"


class Ipv4Header:
    def __init__(self, source, destination, protocol=PROTOCOL_UDP, ttl=DEFAULT_TTL,
                 source_port=None, destination_port=None):
        self.source = source
        self.destination = destination
        self.protocol = protocol
        self.ttl = ttl
        # Transport ports ride along with the header; this stack has no separate UDP header.
        self.source_port = source_port
        self.destination_port = destination_port

    def __repr__(self):
        return f"Ipv4Header({self.source} -> {self.destination}, ttl={self.ttl})"


class Ipv4Route:
    def __init__(self, destination=None, source=None, gateway=None, output_device=None):
        self.destination = destination
        self.source = source
        self.gateway = gateway
        self.output_device = output_device

    def __repr__(self):
        return f"Ipv4Route(dst={self.destination}, src={self.source}, gw={self.gateway})"
