import numpy as np

from config import PACKET_SIZE
from packet import TimestampTag


class MetricsContext:
    """
    Counters of one simulation run plus the global trust view.
    Passed by reference to the callbacks that update it.
    """

    def __init__(self, packet_size=PACKET_SIZE):
        self.packet_size = packet_size
        self.total_sent_packets = 0
        self.total_received_packets = 0
        self.total_delay = 0.0
        self.global_trust_scores = {}  # {node_id: score}, written by the aggregator only

    def record_sent(self):
        self.total_sent_packets += 1

    def record_received(self, packet, now):
        self.total_received_packets += 1
        timestamp = packet.peek_packet_tag(TimestampTag)
        if timestamp is not None:
            self.total_delay += now - timestamp.get_timestamp()

    @property
    def lost_packets(self):
        return self.total_sent_packets - self.total_received_packets

    def packet_loss_ratio(self):
        if self.total_sent_packets == 0:
            return 0.0
        return self.lost_packets / self.total_sent_packets * 100.0

    def packet_delivery_ratio(self):
        if self.total_sent_packets == 0:
            return 0.0
        return self.total_received_packets / self.total_sent_packets * 100.0

    def average_throughput(self, sim_time):
        """Kbps of payload received over the whole run."""
        return (self.total_received_packets * self.packet_size * 8) / (sim_time * 1000.0)

    def average_delay(self):
        """Mean end-to-end delay in seconds, or -1 when nothing was received."""
        if self.total_received_packets == 0:
            return -1.0
        return self.total_delay / self.total_received_packets

    def mean_global_trust(self):
        if not self.global_trust_scores:
            return 1.0
        return float(np.mean(list(self.global_trust_scores.values())))

    def summary(self, nodes, sim_time):
        return {
            'nodes': nodes,
            'sim_time': sim_time,
            'sent': self.total_sent_packets,
            'received': self.total_received_packets,
            'lost': self.lost_packets,
            'loss_ratio': self.packet_loss_ratio(),
            'delivery_ratio': self.packet_delivery_ratio(),
            'throughput_kbps': self.average_throughput(sim_time),
            'average_delay': self.average_delay(),
            'mean_trust': self.mean_global_trust(),
        }

    def format_report(self, nodes, sim_time):
        lines = [
            "",
            "-------- Simulation Results --------",
            f"Total Nodes: {nodes}",
            f"Simulation Time: {sim_time:g} seconds",
            f"Sent Packets: {self.total_sent_packets}",
            f"Received Packets: {self.total_received_packets}",
            f"Lost Packets: {self.lost_packets}",
            f"Packet Loss Ratio: {self.packet_loss_ratio():g}%",
            f"Packet Delivery Ratio: {self.packet_delivery_ratio():g}%",
            f"Average Throughput: {self.average_throughput(sim_time):g} Kbps",
            f"Average End-to-End Delay: {self.average_delay():g} seconds",
            "-------- Global Trust Scores --------",
        ]
        for node_id in sorted(self.global_trust_scores):
            lines.append(f"Node {node_id}: Trust Score = {self.global_trust_scores[node_id]:g}")
        return "\n".join(lines)
