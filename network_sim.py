import math
import random
from collections import deque

import networkx as nx
import simpy

from config import (
    GRID_WIDTH,
    GRID_SPACING,
    RADIO_RANGE,
    DATA_RATE_BPS,
    PROPAGATION_SPEED,
    HEADER_OVERHEAD,
    NETWORK_BASE,
)
from ipv4 import Ipv4, Ipv4AddressHelper
from packet import Ipv4Header, Ipv4Route
from routing import ReactiveRouting
from utils import setup_logger

logger = setup_logger("NetworkSim")


class WifiNetDevice:
    """Ad-hoc wireless device. Transmissions leave the device one at a time."""

    def __init__(self, env, node):
        self.node = node
        self.tx_queue = simpy.Resource(env, capacity=1)

    def __repr__(self):
        return f"WifiNetDevice(node={self.node.node_id})"


class UdpSocket:
    def __init__(self, node):
        self.node = node
        self.local_port = None
        self.peer = None  # (address, port)
        self.rx_queue = deque()
        self.recv_callback = None

    def bind(self, port):
        if port in self.node.sockets:
            logger.error(f"Port {port} already bound on node {self.node.node_id}")
            return -1
        self.local_port = port
        self.node.sockets[port] = self
        return 0

    def connect(self, address, port):
        if self.local_port is None:
            self.bind(self.node.allocate_ephemeral_port())
        self.peer = (address, port)
        return 0

    def get_peer_name(self):
        return self.peer

    def set_recv_callback(self, callback):
        self.recv_callback = callback

    def send(self, packet):
        """
        Hands the packet to the stack towards the connected peer.

        Returns:
            Number of bytes submitted, or -1 if it could not be sent
        """
        if self.peer is None:
            logger.error(f"Socket on node {self.node.node_id} is not connected")
            return -1
        address, port = self.peer
        if not self.node.network.originate(self.node, packet, address, self.local_port, port):
            return -1
        return packet.get_size()

    def recv(self):
        if not self.rx_queue:
            return None
        return self.rx_queue.popleft()

    def deliver(self, packet, header):
        self.rx_queue.append(packet)
        if self.recv_callback is not None:
            self.recv_callback(self)


class Node:
    def __init__(self, network, node_id, position):
        self.network = network
        self.node_id = node_id
        self.position = position
        self.device = None
        self.ipv4 = None
        self.sockets = {}  # {port: UdpSocket}
        self._next_ephemeral_port = 49153

    def allocate_ephemeral_port(self):
        port = self._next_ephemeral_port
        self._next_ephemeral_port += 1
        return port

    def get_address(self):
        if self.ipv4 is None or self.ipv4.get_n_interfaces() == 0 or not self.ipv4.interfaces[0].addresses:
            return None
        return self.ipv4.get_address(0, 0).get_local()

    def receive(self, packet, header, device):
        """Inbound path: every packet goes through the node's routing protocol."""
        handled = self.ipv4.routing_protocol.route_input(
            packet, header, device,
            ucb=lambda route, pkt, hdr: self.network.ip_forward(self, route, pkt, hdr),
            mcb=None,
            lcb=self.local_deliver,
            ecb=self._route_error,
        )
        if not handled:
            self.network.record_drop(self, packet, header)

    def local_deliver(self, packet, header, interface):
        self.network.record_rx(self, packet, header)
        socket = self.sockets.get(header.destination_port)
        if socket is None:
            logger.debug(f"No socket bound to port {header.destination_port} on node {self.node_id}")
            return
        socket.deliver(packet, header)

    def _route_error(self, packet, header, errno):
        logger.debug(f"Node {self.node_id}: no route for {header.destination} ({errno.name})")

    def __repr__(self):
        return f"Node({self.node_id})"


class NetworkSimulation:
    def __init__(self, env, radio_range=RADIO_RANGE, data_rate=DATA_RATE_BPS, loss_probability=0.0, seed=None):
        self.env = env
        self.graph = nx.Graph()
        self.nodes = []
        self.radio_range = radio_range
        self.data_rate = data_rate
        self.loss_probability = loss_probability
        self.rng = random.Random(seed)
        self.flow_monitor = None

        self._address_to_node = {}
        self._route_cache = {}  # {(node_id, dest_node_id): next_hop_node_id}

    # Topology

    def create_grid_topology(self, num_nodes=10, grid_width=GRID_WIDTH, spacing=GRID_SPACING):
        """Places nodes row first on a stationary grid and links every pair within radio range."""
        self.graph = nx.Graph()
        self.nodes = []
        for node_id in range(num_nodes):
            position = ((node_id % grid_width) * spacing, (node_id // grid_width) * spacing)
            self.graph.add_node(node_id, pos=position)
            self.nodes.append(Node(self, node_id, position))

        for u in range(num_nodes):
            for v in range(u + 1, num_nodes):
                distance = self.distance(u, v)
                if distance <= self.radio_range:
                    self.graph.add_edge(u, v, weight=distance)

        self._route_cache.clear()
        logger.info(f"Grid topology created with {num_nodes} nodes and {len(self.graph.edges())} links")

    def distance(self, u, v):
        (x1, y1), (x2, y2) = self.graph.nodes[u]['pos'], self.graph.nodes[v]['pos']
        return math.hypot(x2 - x1, y2 - y1)

    def get_node(self, node_id):
        return self.nodes[node_id]

    def install_internet_stack(self):
        """Gives every node a wireless device, an IPv4 binding and the default reactive routing."""
        for node in self.nodes:
            node.device = WifiNetDevice(self.env, node)
            node.ipv4 = Ipv4(node)
            node.ipv4.add_interface(node.device)
            node.ipv4.set_routing_protocol(ReactiveRouting(node.node_id, self.lookup_next_hop))

    def assign_addresses(self, network=NETWORK_BASE):
        helper = Ipv4AddressHelper(network)
        addresses = helper.assign(node.device for node in self.nodes)
        for node, address in zip(self.nodes, addresses):
            self._address_to_node[address] = node.node_id
        return addresses

    def node_for_address(self, address):
        return self._address_to_node.get(address)

    # Route discovery

    def lookup_next_hop(self, node_id, destination):
        """Returns the next hop address towards destination, or None if unreachable."""
        dest_node_id = self.node_for_address(destination)
        if dest_node_id is None:
            return None
        next_hop = self._next_hop_node(node_id, dest_node_id)
        if next_hop is None:
            return None
        return self.nodes[next_hop].get_address()

    def _next_hop_node(self, node_id, dest_node_id):
        key = (node_id, dest_node_id)
        if key not in self._route_cache:
            try:
                path = nx.shortest_path(self.graph, source=node_id, target=dest_node_id)
            except nx.NetworkXNoPath:
                path = None
            self._route_cache[key] = path[1] if path and len(path) > 1 else None
            logger.debug(f"Route discovery {node_id} -> {dest_node_id}: next hop {self._route_cache[key]}")
        return self._route_cache[key]

    # Packet path

    def originate(self, node, packet, destination, source_port, destination_port):
        source = node.get_address()
        if source is None:
            logger.error(f"Node {node.node_id} has no address, cannot send")
            return False
        header = Ipv4Header(source, destination, source_port=source_port, destination_port=destination_port)
        if self.flow_monitor is not None:
            self.flow_monitor.record_tx(packet, header, self.env.now)

        if destination == source:
            node.local_deliver(packet, header, 0)
            return True

        route = Ipv4Route(destination=destination, source=source, output_device=node.device)
        return self.ip_forward(node, route, packet, header)

    def ip_forward(self, node, route, packet, header):
        """Unicast forward callback handed to the routing protocols."""
        if header.source != node.get_address():
            header.ttl -= 1
            if header.ttl <= 0:
                logger.debug(f"TTL expired for packet {packet.uid} at node {node.node_id}")
                self.record_drop(node, packet, header)
                return False
            if self.flow_monitor is not None:
                self.flow_monitor.record_forward(packet)

        dest_node_id = self.node_for_address(route.destination)
        next_hop = self._next_hop_node(node.node_id, dest_node_id) if dest_node_id is not None else None
        if next_hop is None:
            logger.debug(f"No route from node {node.node_id} to {route.destination}")
            self.record_drop(node, packet, header)
            return False

        self.env.process(self._transmit(node, self.nodes[next_hop], packet, header))
        return True

    def transmission_time(self, packet):
        return (packet.get_size() + HEADER_OVERHEAD) * 8 / self.data_rate

    def _transmit(self, sender, receiver, packet, header):
        with sender.device.tx_queue.request() as request:
            yield request
            yield self.env.timeout(self.transmission_time(packet))

        yield self.env.timeout(self.distance(sender.node_id, receiver.node_id) / PROPAGATION_SPEED)

        if self.loss_probability > 0 and self.rng.random() < self.loss_probability:
            logger.debug(f"Packet {packet.uid} lost on link {sender.node_id}->{receiver.node_id}")
            self.record_drop(sender, packet, header)
            return

        receiver.receive(packet, header, receiver.device)

    def record_rx(self, node, packet, header):
        if self.flow_monitor is not None:
            self.flow_monitor.record_rx(packet, header, self.env.now)

    def record_drop(self, node, packet, header):
        logger.debug(f"Packet {packet.uid} dropped at node {node.node_id}")
        if self.flow_monitor is not None:
            self.flow_monitor.record_drop(packet, node.node_id)

    def create_udp_socket(self, node_id):
        return UdpSocket(self.nodes[node_id])
