import xml.etree.ElementTree as ET

from flow_monitor import FlowMonitor
from packet import PROTOCOL_UDP, Ipv4Header, Packet


def header():
    return Ipv4Header("10.1.1.2", "10.1.1.10", source_port=49153, destination_port=9)


def test_flow_statistics():
    monitor = FlowMonitor()
    packets = [Packet(1024) for _ in range(3)]
    for i, packet in enumerate(packets):
        monitor.record_tx(packet, header(), i * 0.1)

    monitor.record_forward(packets[0])
    monitor.record_rx(packets[0], header(), 0.01)
    monitor.record_rx(packets[1], header(), 0.13)
    monitor.record_drop(packets[2], 5)

    stats = monitor.get_flow_stats()[1]
    assert len(monitor.get_flow_stats()) == 1
    assert stats.tx_packets == 3 and stats.rx_packets == 2 and stats.lost_packets == 1
    assert stats.tx_bytes == 3072 and stats.rx_bytes == 2048
    assert abs(stats.delay_sum - 0.04) < 1e-9
    assert abs(stats.jitter_sum - 0.02) < 1e-9
    assert stats.times_forwarded == 1
    assert stats.drops_by_node == {5: 1}


def test_serialize_to_xml(tmp_path):
    monitor = FlowMonitor()
    packet = Packet(1024)
    monitor.record_tx(packet, header(), 0.0)
    monitor.record_rx(packet, header(), 0.5)

    path = tmp_path / "flowmon-results.xml"
    assert monitor.serialize_to_xml_file(path)

    root = ET.parse(path).getroot()
    flow = root.find("FlowStats/Flow")
    assert flow.get("flowId") == "1"
    assert flow.get("rxPackets") == "1"
    assert flow.get("delaySum") == "+500000000.0ns"
    classified = root.find("Ipv4FlowClassifier/Flow")
    assert classified.get("destinationAddress") == "10.1.1.10"
    assert classified.get("destinationPort") == "9"
    assert classified.get("protocol") == str(PROTOCOL_UDP)


def test_serialization_failure_is_reported(tmp_path):
    monitor = FlowMonitor()
    assert monitor.serialize_to_xml_file(tmp_path) is False
