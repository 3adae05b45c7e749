import simpy

from aggregator import GlobalTrustAggregator
from metrics import MetricsContext
from network_sim import NetworkSimulation
from routing import BlackholeAodv


def build_nodes():
    env = simpy.Environment()
    net_sim = NetworkSimulation(env)
    net_sim.create_grid_topology(num_nodes=3)
    net_sim.install_internet_stack()
    first, second = BlackholeAodv(node_id=0), BlackholeAodv(node_id=1)
    net_sim.get_node(0).ipv4.set_routing_protocol(first)
    net_sim.get_node(1).ipv4.set_routing_protocol(second)
    return env, net_sim.nodes, first, second


def test_initial_then_delta_records_without_duplicates():
    _, nodes, first, second = build_nodes()
    metrics = MetricsContext()
    aggregator = GlobalTrustAggregator(metrics)

    first.update_trust_score(2, dropped=True)
    second.update_trust_score(0, dropped=False)
    assert aggregator.update(nodes, 5.0) == 2
    assert metrics.global_trust_scores == {0: 1.0, 2: 0.8}

    first.update_trust_score(2, dropped=True)
    assert aggregator.update(nodes, 10.0) == 1
    assert metrics.global_trust_scores[2] == 0.6

    assert aggregator.update(nodes, 15.0) == 0

    second.update_trust_score(0, dropped=True)
    assert aggregator.update(nodes, 20.0) == 1

    assert aggregator.history == [
        (5.0, 2, None, 0.8),
        (5.0, 0, None, 1.0),
        (10.0, 2, 0.8, 0.6),
        (20.0, 0, 1.0, 0.8),
    ]
    assert len(set(aggregator.history)) == len(aggregator.history)


def test_nodes_without_adapter_are_skipped():
    _, nodes, first, _ = build_nodes()
    metrics = MetricsContext()
    GlobalTrustAggregator(metrics).update(nodes[2:], 5.0)
    assert metrics.global_trust_scores == {}


def test_periodic_aggregation_starts_at_first_interval():
    env, nodes, first, _ = build_nodes()
    first.initialize_trust_scores(3)
    metrics = MetricsContext()
    aggregator = GlobalTrustAggregator(metrics)

    env.process(aggregator.run(env, nodes, interval=5.0))
    env.run(until=4.9)
    assert metrics.global_trust_scores == {}

    env.run(until=5.1)
    assert metrics.global_trust_scores == {0: 1.0, 1: 1.0, 2: 1.0}
    assert {record[0] for record in aggregator.history} == {5.0}
