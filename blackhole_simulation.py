import argparse
import logging
import sys

import networkx as nx
import simpy

from aggregator import GlobalTrustAggregator
from config import (
    SIM_NODES,
    SIM_TIME,
    TRAFFIC_RATE,
    BLACKHOLE_NODES,
    MALICIOUS_DROP_RATE,
    ADAPTIVE_DROP_RATE,
    RADIO_RANGE,
    PACKET_SIZE,
    UDP_PORT,
    SIM_SEED,
    TRUST_LOG_INTERVAL,
    AGGREGATION_INTERVAL,
    TRUST_LOG_FILE,
    FLOWMON_FILE,
    TOPOLOGY_PLOT_FILE,
    TRUST_PLOT_FILE,
    SCENARIOS,
)
from flow_monitor import FlowMonitor
from metrics import MetricsContext
from network_sim import NetworkSimulation
from packet import Packet, TimestampTag
from routing import BlackholeAodv
from trust_logger import TrustLogger, periodic_trust_logging
from utils import setup_logger, set_log_level

logger = setup_logger("EnhancedBlackholeSimulation")


def _stream_seed(seed, node_id):
    return None if seed is None else seed + node_id


def install_blackhole_routing(net_sim, blackhole_nodes, drop_probability, seed=None):
    """
    Replaces the routing protocol of each listed node with a malicious
    BlackholeAodv. Out-of-range ids and nodes without IPv4 are skipped.

    Returns:
        {node_id: BlackholeAodv} for the nodes actually configured
    """
    total_nodes = len(net_sim.nodes)
    installed = {}
    for node_id in blackhole_nodes:
        if node_id < 0 or node_id >= total_nodes:
            logger.error(f"Blackhole node index out of range: {node_id}")
            continue

        node = net_sim.get_node(node_id)
        if node.ipv4 is None:
            logger.error(f"IPv4 object not set for Node {node_id}")
            continue

        routing = BlackholeAodv(node_id=node_id, malicious=True, seed=_stream_seed(seed, node_id))
        routing.initialize_trust_scores(total_nodes)
        routing.set_drop_probability(drop_probability)
        node.ipv4.set_routing_protocol(routing)
        installed[node_id] = routing
    return installed


def install_mitigation_routing(net_sim, exclude=(), drop_probability=ADAPTIVE_DROP_RATE, seed=None):
    """Gives every node not in exclude a mitigation-capable BlackholeAodv."""
    total_nodes = len(net_sim.nodes)
    installed = {}
    for node in net_sim.nodes:
        if node.node_id in exclude or node.ipv4 is None:
            continue
        routing = BlackholeAodv(node_id=node.node_id, drop_probability=drop_probability,
                                seed=_stream_seed(seed, node.node_id))
        routing.initialize_trust_scores(total_nodes)
        node.ipv4.set_routing_protocol(routing)
        installed[node.node_id] = routing
    return installed


def traffic_gen(env, socket, metrics, count, interval, packet_size=PACKET_SIZE):
    """SimPy process: constant bit rate UDP stream, every packet tagged with its send time."""
    for _ in range(count):
        packet = Packet(packet_size)
        packet.add_packet_tag(TimestampTag(env.now))
        if socket.send(packet) >= 0:
            metrics.record_sent()
        yield env.timeout(interval)


def make_receive_callback(env, metrics):
    def receive_packet(socket):
        while True:
            packet = socket.recv()
            if packet is None:
                break
            metrics.record_received(packet, env.now)
            peer = socket.get_peer_name()
            if peer is not None:
                logger.debug(f"Packet received from IP: {peer[0]}")
    return receive_packet


def run_simulation(nodes=SIM_NODES, sim_time=SIM_TIME, traffic_rate=TRAFFIC_RATE,
                   blackhole_nodes=BLACKHOLE_NODES, drop_probability=MALICIOUS_DROP_RATE,
                   mitigation=True, seed=SIM_SEED, loss_probability=0.0, radio_range=RADIO_RANGE,
                   trust_log_path=TRUST_LOG_FILE, flowmon_path=FLOWMON_FILE, print_report=True):
    """
    Runs one blackhole scenario on a stationary grid with a CBR flow from
    node 1 to node N-1.

    Args:
        nodes: Number of simulated nodes
        sim_time: Simulated seconds; events past this boundary are discarded
        traffic_rate: Packets per second sent by the source
        blackhole_nodes: Ids of malicious nodes
        drop_probability: Drop probability of the malicious nodes
        mitigation: Install mitigation-capable adapters on the honest nodes
        seed: Base seed of the random streams (None for unseeded)
        loss_probability: Per-link loss of the wireless channel
        trust_log_path: CSV trust log, None to disable
        flowmon_path: Flow monitor XML, None to disable

    Returns:
        dict with metrics, summary, report, net_sim, routing, aggregator and flow_monitor,
        or None if the CBR flow cannot be set up
    """
    if nodes < 2:
        logger.error(f"At least 2 nodes are needed for the CBR flow, got {nodes}")
        return None

    env = simpy.Environment()
    metrics = MetricsContext(packet_size=PACKET_SIZE)

    net_sim = NetworkSimulation(env, radio_range=radio_range, loss_probability=loss_probability, seed=seed)
    net_sim.create_grid_topology(num_nodes=nodes)
    net_sim.install_internet_stack()

    routing = install_blackhole_routing(net_sim, blackhole_nodes, drop_probability, seed=seed)
    if mitigation:
        routing.update(install_mitigation_routing(net_sim, exclude=routing.keys(), seed=seed))

    addresses = net_sim.assign_addresses()
    if len(addresses) < nodes:
        logger.error(f"Only {len(addresses)} of {nodes} nodes received an address, cannot run the CBR flow")
        return None

    flow_monitor = FlowMonitor()
    net_sim.flow_monitor = flow_monitor

    source_socket = net_sim.create_udp_socket(1)
    source_socket.connect(addresses[nodes - 1], UDP_PORT)

    recv_socket = net_sim.create_udp_socket(nodes - 1)
    recv_socket.bind(UDP_PORT)
    recv_socket.set_recv_callback(make_receive_callback(env, metrics))

    interval = 1.0 / traffic_rate
    env.process(traffic_gen(env, source_socket, metrics, int(traffic_rate * sim_time), interval))

    aggregator = GlobalTrustAggregator(metrics)
    env.process(aggregator.run(env, net_sim.nodes, AGGREGATION_INTERVAL))
    if trust_log_path is not None:
        env.process(periodic_trust_logging(env, net_sim.nodes, TrustLogger(trust_log_path), TRUST_LOG_INTERVAL))

    logger.info("Starting simulation...")
    env.run(until=sim_time)
    logger.info("Simulation finished.")

    report = metrics.format_report(nodes, sim_time)
    if print_report:
        print(report)

    if flowmon_path is not None:
        flow_monitor.serialize_to_xml_file(flowmon_path)

    return {
        'metrics': metrics,
        'summary': metrics.summary(nodes, sim_time),
        'report': report,
        'net_sim': net_sim,
        'routing': routing,
        'aggregator': aggregator,
        'flow_monitor': flow_monitor,
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Trust-based blackhole mitigation simulation")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default="mitigation",
                        help="Parameter preset (default: mitigation)")
    parser.add_argument("--seed", type=int, default=SIM_SEED, help="Base seed of the random streams")
    parser.add_argument("--plot", action="store_true", help="Save topology and trust history plots")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Simulation log verbosity")
    args = parser.parse_args(argv)

    set_log_level(getattr(logging, args.log_level))

    result = run_simulation(seed=args.seed, **SCENARIOS[args.scenario])
    if result is None:
        return 1

    if args.plot:
        import matplotlib
        matplotlib.use("Agg")
        from visualization import visualize_network, plot_trust_history

        net_sim = result['net_sim']
        blackholes = [n for n, r in result['routing'].items() if r.malicious]
        try:
            cbr_route = nx.shortest_path(net_sim.graph, 1, len(net_sim.nodes) - 1)
        except nx.NetworkXNoPath:
            cbr_route = None
        visualize_network(net_sim.graph, result['metrics'].global_trust_scores,
                          blackhole_nodes=blackholes, path=cbr_route, filename=TOPOLOGY_PLOT_FILE)
        plot_trust_history(TRUST_LOG_FILE, filename=TRUST_PLOT_FILE)
    return 0


if __name__ == "__main__":
    sys.exit(main())
