import random

from config import ADAPTIVE_DROP_RATE
from ipv4 import INTERFACE_NOT_FOUND
from packet import Ipv4Route, SocketErrno
from policy import PacketPolicyEngine
from trust_model import TrustModel
from utils import setup_logger

logger = setup_logger("BlackholeAodv")


class RoutingProtocol:
    """Contract every per-node routing protocol implements for the IPv4 stack."""

    def route_output(self, packet, header, oif=None):
        raise NotImplementedError("Subclasses must implement route_output")

    def route_input(self, packet, header, idev, ucb=None, mcb=None, lcb=None, ecb=None):
        raise NotImplementedError("Subclasses must implement route_input")

    def notify_interface_up(self, interface):
        pass

    def notify_interface_down(self, interface):
        pass

    def notify_add_address(self, interface, address):
        pass

    def notify_remove_address(self, interface, address):
        pass

    def set_ipv4(self, ipv4):
        self.ipv4 = ipv4

    def print_routing_table(self, stream):
        pass


class BlackholeAodv(RoutingProtocol):
    """
    Trust-aware routing adapter. It observes the packets it is asked to
    forward, keeps a trust table and blacklist of destinations, and
    preferentially drops traffic towards blacklisted destinations.
    It never originates routes.
    """

    def __init__(self, node_id=None, drop_probability=ADAPTIVE_DROP_RATE, malicious=False, seed=None):
        self.node_id = node_id
        self.ipv4 = None
        self.trust_model = TrustModel(owner_id=node_id)
        self.rng = random.Random(seed)
        self.engine = PacketPolicyEngine(self.trust_model, rng=self.rng, malicious=malicious)
        self.engine.set_drop_probability(drop_probability)
        logger.info(f"BlackholeAodv initialized on node {node_id} with drop probability = {self.engine.drop_probability}")

    # Configuration and trust queries

    @property
    def malicious(self):
        return self.engine.malicious

    def set_drop_probability(self, probability):
        return self.engine.set_drop_probability(probability)

    def get_drop_probability(self):
        return self.engine.drop_probability

    def initialize_trust_scores(self, total_nodes):
        self.trust_model.initialize_trust_scores(total_nodes)

    def update_trust_score(self, node_id, dropped):
        return self.trust_model.update_trust_score(node_id, dropped)

    def get_trust_score(self, node_id):
        return self.trust_model.get_trust_score(node_id)

    def get_trust_scores(self):
        return self.trust_model.get_trust_scores()

    def get_blacklisted_nodes(self):
        return self.trust_model.get_blacklisted_nodes()

    def get_total_dropped_packets(self):
        return self.engine.total_dropped_packets

    def get_total_forwarded_packets(self):
        return self.engine.total_forwarded_packets

    # Routing protocol contract

    def route_output(self, packet, header, oif=None):
        logger.warning("BlackholeAodv: RouteOutput called but not supported.")
        return None, SocketErrno.ERROR_NOROUTETOHOST

    def route_input(self, packet, header, idev, ucb=None, mcb=None, lcb=None, ecb=None):
        return self.engine.decide(self.ipv4, packet, header, idev, ucb, mcb, lcb, ecb)

    def notify_interface_up(self, interface):
        logger.info(f"Interface {interface} is up.")

    def notify_interface_down(self, interface):
        logger.info(f"Interface {interface} is down.")

    def notify_add_address(self, interface, address):
        logger.info(f"Address added to interface {interface}: {address}")

    def notify_remove_address(self, interface, address):
        logger.info(f"Address removed from interface {interface}: {address}")

    def set_ipv4(self, ipv4):
        self.ipv4 = ipv4
        logger.info(f"IPv4 set for BlackholeAodv on node {self.node_id}.")

    def print_routing_table(self, stream):
        stream.write("Routing table not maintained by BlackholeAodv.\n")


class ReactiveRouting(RoutingProtocol):
    """
    Default protocol of honest nodes. Next hops are resolved on demand
    through route_discovery(node_id, destination_address), which returns
    the next hop address or None.
    """

    def __init__(self, node_id, route_discovery):
        self.node_id = node_id
        self.route_discovery = route_discovery
        self.ipv4 = None

    def route_output(self, packet, header, oif=None):
        if self.ipv4 is None or self.ipv4.get_n_interfaces() == 0:
            return None, SocketErrno.ERROR_NOROUTETOHOST
        next_hop = self.route_discovery(self.node_id, header.destination)
        if next_hop is None:
            return None, SocketErrno.ERROR_NOROUTETOHOST
        return Ipv4Route(
            destination=header.destination,
            source=self.ipv4.get_address(0, 0).get_local(),
            gateway=next_hop,
            output_device=self.ipv4.get_net_device(0),
        ), SocketErrno.ERROR_NOTERROR

    def route_input(self, packet, header, idev, ucb=None, mcb=None, lcb=None, ecb=None):
        if self.ipv4 is None:
            return False
        interface = self.ipv4.get_interface_for_device(idev)
        if interface == INTERFACE_NOT_FOUND:
            return False

        if self.ipv4.is_destination_address(header.destination, interface):
            if lcb is None:
                return False
            lcb(packet, header, interface)
            return True

        route, errno = self.route_output(packet, header)
        if route is None or ucb is None:
            if ecb is not None:
                ecb(packet, header, errno)
            return False
        ucb(route, packet, header)
        return True

    def print_routing_table(self, stream):
        stream.write(f"Node {self.node_id}: routes resolved on demand.\n")


class RecordingRoutingProtocol(RoutingProtocol):
    """
    Records every call made through the routing protocol contract and
    optionally delegates to an inner protocol.
    """

    def __init__(self, inner=None):
        self.inner = inner
        self.ipv4 = None
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))

    def calls_named(self, name):
        return [args for call, args in self.calls if call == name]

    def route_output(self, packet, header, oif=None):
        self._record("route_output", packet, header, oif)
        if self.inner is None:
            return None, SocketErrno.ERROR_NOROUTETOHOST
        return self.inner.route_output(packet, header, oif)

    def route_input(self, packet, header, idev, ucb=None, mcb=None, lcb=None, ecb=None):
        self._record("route_input", packet, header, idev)
        if self.inner is None:
            return False
        return self.inner.route_input(packet, header, idev, ucb, mcb, lcb, ecb)

    def notify_interface_up(self, interface):
        self._record("notify_interface_up", interface)
        if self.inner is not None:
            self.inner.notify_interface_up(interface)

    def notify_interface_down(self, interface):
        self._record("notify_interface_down", interface)
        if self.inner is not None:
            self.inner.notify_interface_down(interface)

    def notify_add_address(self, interface, address):
        self._record("notify_add_address", interface, address)
        if self.inner is not None:
            self.inner.notify_add_address(interface, address)

    def notify_remove_address(self, interface, address):
        self._record("notify_remove_address", interface, address)
        if self.inner is not None:
            self.inner.notify_remove_address(interface, address)

    def set_ipv4(self, ipv4):
        self._record("set_ipv4", ipv4)
        self.ipv4 = ipv4
        if self.inner is not None:
            self.inner.set_ipv4(ipv4)

    def print_routing_table(self, stream):
        self._record("print_routing_table", stream)
        if self.inner is not None:
            self.inner.print_routing_table(stream)
