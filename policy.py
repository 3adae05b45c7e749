import random

from config import ADAPTIVE_DROP_RATE
from ipv4 import INTERFACE_NOT_FOUND, node_id_from_address
from packet import Ipv4Route
from trust_model import TrustModel
from utils import setup_logger

logger = setup_logger("BlackholeAodv")


class PacketPolicyEngine:
    def __init__(self, trust_model=None, drop_probability=ADAPTIVE_DROP_RATE, malicious=False, rng=None):
        """
        Decides, for every inbound packet, whether to drop it, deliver it
        locally or forward it, consulting the trust table and blacklist.

        Args:
            trust_model: TrustModel owned by this node
            drop_probability: Drop chance for blacklisted destinations, or
                for every transit packet when malicious
            malicious: Drop transit traffic unconditionally instead of
                only traffic towards blacklisted destinations
            rng: random.Random stream for the uniform [0, 1) draws
        """
        self.trust_model = trust_model if trust_model is not None else TrustModel()
        self.drop_probability = drop_probability
        self.malicious = malicious
        self.rng = rng if rng is not None else random.Random()

        self.total_dropped_packets = 0
        self.total_forwarded_packets = 0

    def set_drop_probability(self, probability):
        if probability < 0.0 or probability > 1.0:
            logger.warning(f"Invalid drop probability {probability}. Retaining current value = {self.drop_probability}")
            return False
        self.drop_probability = probability
        logger.info(f"Drop probability updated to {self.drop_probability}")
        return True

    def decide(self, ipv4, packet, header, idev, ucb=None, mcb=None, lcb=None, ecb=None):
        """
        Runs the ordered decision procedure for one packet. At most one
        callback is invoked.

        Returns:
            True if the packet was delivered or forwarded, False if dropped
        """
        # 1. Bound checks
        if ipv4 is None:
            logger.error("IPv4 object not set! Dropping packet.")
            return False

        interface = ipv4.get_interface_for_device(idev)
        if interface == INTERFACE_NOT_FOUND:
            logger.error("Invalid interface index for the incoming device! Dropping packet.")
            return False

        dest_node_id = node_id_from_address(header.destination)

        # 2. Blacklist pre-filter
        if self.trust_model.is_blacklisted(dest_node_id):
            if self.rng.random() < self.drop_probability:
                self.total_dropped_packets += 1
                self._observe(dest_node_id, dropped=True)
                logger.debug(f"Packet {packet.uid} dropped, destination Node {dest_node_id} is blacklisted")
                return False
            logger.debug(f"Blacklisted Node {dest_node_id} served (adaptive behavior).")

        # 3. Local delivery
        if ipv4.is_destination_address(header.destination, interface):
            if lcb is None:
                logger.error("LocalDeliverCallback not set! Packet cannot be delivered.")
                return False
            lcb(packet, header, interface)
            logger.debug(f"Packet {packet.uid} delivered locally to Node {dest_node_id}")
            return True

        # 4. Forward
        if ucb is None:
            # 5. No forward callback available
            logger.error("UnicastForwardCallback not set! Packet cannot be forwarded.")
            return False

        if self.malicious and self.rng.random() < self.drop_probability:
            self.total_dropped_packets += 1
            logger.debug(f"Blackhole dropped packet {packet.uid} from {header.source} to {header.destination}")
            return False

        route = Ipv4Route(
            destination=header.destination,
            source=ipv4.get_address(interface, 0).get_local(),
            output_device=ipv4.get_net_device(interface),
        )
        ucb(route, packet, header)
        self.total_forwarded_packets += 1
        self._observe(dest_node_id, dropped=False)
        logger.debug(f"Packet {packet.uid} forwarded towards Node {dest_node_id}")
        return True

    def _observe(self, node_id, dropped):
        # A blackhole's own table plays no part in mitigation.
        if self.malicious:
            return
        self.trust_model.update_trust_score(node_id, dropped)
