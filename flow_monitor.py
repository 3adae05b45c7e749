import xml.etree.ElementTree as ET

from config import FLOWMON_FILE
from utils import setup_logger

logger = setup_logger("FlowMonitor")


class FlowStats:
    def __init__(self):
        self.time_first_tx = None
        self.time_last_tx = None
        self.time_first_rx = None
        self.time_last_rx = None
        self.delay_sum = 0.0
        self.jitter_sum = 0.0
        self.last_delay = None
        self.tx_bytes = 0
        self.rx_bytes = 0
        self.tx_packets = 0
        self.rx_packets = 0
        self.lost_packets = 0
        self.times_forwarded = 0
        self.drops_by_node = {}  # {node_id: count}


class FlowMonitor:
    """
    Per-flow statistics keyed by the (source, destination, protocol, ports)
    five-tuple, written out as XML at the end of a run.
    """

    def __init__(self):
        self.flows = {}  # {flow_id: FlowStats}
        self.classifier = {}  # {five_tuple: flow_id}
        self._packet_flows = {}  # {packet uid: (flow_id, tx time)}

    def _classify(self, header):
        five_tuple = (header.source, header.destination, header.protocol,
                      header.source_port, header.destination_port)
        if five_tuple not in self.classifier:
            flow_id = len(self.classifier) + 1
            self.classifier[five_tuple] = flow_id
            self.flows[flow_id] = FlowStats()
        return self.classifier[five_tuple]

    def record_tx(self, packet, header, now):
        flow_id = self._classify(header)
        stats = self.flows[flow_id]
        if stats.time_first_tx is None:
            stats.time_first_tx = now
        stats.time_last_tx = now
        stats.tx_packets += 1
        stats.tx_bytes += packet.get_size()
        self._packet_flows[packet.uid] = (flow_id, now)

    def record_forward(self, packet):
        tracked = self._packet_flows.get(packet.uid)
        if tracked is not None:
            self.flows[tracked[0]].times_forwarded += 1

    def record_rx(self, packet, header, now):
        tracked = self._packet_flows.pop(packet.uid, None)
        if tracked is None:
            return
        flow_id, tx_time = tracked
        stats = self.flows[flow_id]
        delay = now - tx_time
        if stats.time_first_rx is None:
            stats.time_first_rx = now
        stats.time_last_rx = now
        stats.delay_sum += delay
        if stats.last_delay is not None:
            stats.jitter_sum += abs(delay - stats.last_delay)
        stats.last_delay = delay
        stats.rx_packets += 1
        stats.rx_bytes += packet.get_size()

    def record_drop(self, packet, node_id):
        tracked = self._packet_flows.pop(packet.uid, None)
        if tracked is None:
            return
        stats = self.flows[tracked[0]]
        stats.lost_packets += 1
        stats.drops_by_node[node_id] = stats.drops_by_node.get(node_id, 0) + 1

    def get_flow_stats(self):
        return self.flows

    def to_xml(self):
        root = ET.Element("FlowMonitor")
        flow_stats = ET.SubElement(root, "FlowStats")
        for flow_id, stats in sorted(self.flows.items()):
            flow = ET.SubElement(flow_stats, "Flow", {
                "flowId": str(flow_id),
                "timeFirstTxPacket": _ns(stats.time_first_tx),
                "timeFirstRxPacket": _ns(stats.time_first_rx),
                "timeLastTxPacket": _ns(stats.time_last_tx),
                "timeLastRxPacket": _ns(stats.time_last_rx),
                "delaySum": _ns(stats.delay_sum),
                "jitterSum": _ns(stats.jitter_sum),
                "txBytes": str(stats.tx_bytes),
                "rxBytes": str(stats.rx_bytes),
                "txPackets": str(stats.tx_packets),
                "rxPackets": str(stats.rx_packets),
                "lostPackets": str(stats.lost_packets),
                "timesForwarded": str(stats.times_forwarded),
            })
            for node_id, count in sorted(stats.drops_by_node.items()):
                ET.SubElement(flow, "packetsDropped", {"node": str(node_id), "number": str(count)})

        classifier = ET.SubElement(root, "Ipv4FlowClassifier")
        for five_tuple, flow_id in sorted(self.classifier.items(), key=lambda item: item[1]):
            source, destination, protocol, source_port, destination_port = five_tuple
            ET.SubElement(classifier, "Flow", {
                "flowId": str(flow_id),
                "sourceAddress": str(source),
                "destinationAddress": str(destination),
                "protocol": str(protocol),
                "sourcePort": str(source_port),
                "destinationPort": str(destination_port),
            })
        return ET.ElementTree(root)

    def serialize_to_xml_file(self, path=FLOWMON_FILE):
        try:
            tree = self.to_xml()
            ET.indent(tree)
            tree.write(path, encoding="utf-8", xml_declaration=True)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to serialize FlowMonitor results: {e}")
            return False
        logger.info(f"FlowMonitor results successfully serialized to {path}.")
        return True


def _ns(seconds):
    if seconds is None:
        return "+0ns"
    return f"{seconds * 1e9:+.1f}ns"
