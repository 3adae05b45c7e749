import ipaddress

from config import NETWORK_BASE
from utils import setup_logger

logger = setup_logger("NetworkSim")

INTERFACE_NOT_FOUND = -1


def node_id_from_address(address, network=NETWORK_BASE):
    """
    Maps an address onto a node id using its host bits.
    Addresses are handed out from .1 upward, so 10.1.1.1 is node 0.
    """
    net = ipaddress.ip_network(network)
    return (int(ipaddress.ip_address(address)) & int(net.hostmask)) - 1


class Ipv4InterfaceAddress:
    def __init__(self, local, mask):
        self.local = ipaddress.ip_address(local)
        self.mask = ipaddress.ip_address(mask)

    def get_local(self):
        return self.local

    def get_broadcast(self):
        network = ipaddress.ip_network(f"{self.local}/{self.mask}", strict=False)
        return network.broadcast_address

    def __repr__(self):
        return f"{self.local}/{self.mask}"


class Ipv4Interface:
    def __init__(self, device):
        self.device = device
        self.addresses = []
        self.up = False


class Ipv4:
    """IPv4 binding of a node: its interfaces, addresses and routing protocol."""

    def __init__(self, node):
        self.node = node
        self.interfaces = []
        self.routing_protocol = None

    def add_interface(self, device):
        self.interfaces.append(Ipv4Interface(device))
        return len(self.interfaces) - 1

    def get_n_interfaces(self):
        return len(self.interfaces)

    def get_interface_for_device(self, device):
        for index, interface in enumerate(self.interfaces):
            if interface.device is device:
                return index
        return INTERFACE_NOT_FOUND

    def get_net_device(self, interface):
        return self.interfaces[interface].device

    def get_address(self, interface, address_index):
        return self.interfaces[interface].addresses[address_index]

    def is_destination_address(self, address, interface):
        address = ipaddress.ip_address(address)
        for addr in self.interfaces[interface].addresses:
            if address == addr.local or address == addr.get_broadcast():
                return True
        return False

    def add_address(self, interface, address):
        self.interfaces[interface].addresses.append(address)
        if self.routing_protocol is not None:
            self.routing_protocol.notify_add_address(interface, address)

    def remove_address(self, interface, address_index):
        address = self.interfaces[interface].addresses.pop(address_index)
        if self.routing_protocol is not None:
            self.routing_protocol.notify_remove_address(interface, address)
        return address

    def set_up(self, interface):
        self.interfaces[interface].up = True
        if self.routing_protocol is not None:
            self.routing_protocol.notify_interface_up(interface)

    def set_down(self, interface):
        self.interfaces[interface].up = False
        if self.routing_protocol is not None:
            self.routing_protocol.notify_interface_down(interface)

    def set_routing_protocol(self, routing_protocol):
        self.routing_protocol = routing_protocol
        routing_protocol.set_ipv4(self)


class Ipv4AddressHelper:
    """Hands out consecutive host addresses of a network to devices."""

    def __init__(self, network=NETWORK_BASE):
        self.network = ipaddress.ip_network(network)
        self._hosts = self.network.hosts()

    def assign(self, devices):
        assigned = []
        for device in devices:
            ipv4 = device.node.ipv4
            interface = ipv4.get_interface_for_device(device)
            if interface == INTERFACE_NOT_FOUND:
                interface = ipv4.add_interface(device)
            try:
                local = next(self._hosts)
            except StopIteration:
                logger.error(f"Address pool {self.network} exhausted at node {device.node.node_id}")
                break
            ipv4.add_address(interface, Ipv4InterfaceAddress(local, self.network.netmask))
            ipv4.set_up(interface)
            assigned.append(local)
        return assigned
