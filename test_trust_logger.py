import simpy

from network_sim import NetworkSimulation
from routing import BlackholeAodv
from trust_logger import TrustLogger, periodic_trust_logging, read_trust_log


def make_routing():
    routing = BlackholeAodv(node_id=0)
    routing.initialize_trust_scores(3)
    for _ in range(4):
        routing.update_trust_score(2, dropped=True)
    return routing


def test_rows_and_header(tmp_path):
    path = tmp_path / "trust_scores.csv"
    trust_logger = TrustLogger(path)
    routing = make_routing()

    assert trust_logger.log_trust_scores(routing, 5.0)
    assert trust_logger.log_trust_scores(routing, 10.0)

    lines = path.read_text().splitlines()
    assert lines[:5] == [
        "Time,NodeID,TrustScore",
        "5,0,1",
        "5,1,1",
        "5,2,0.2",
        "5,BlacklistedNode,2",
    ]
    assert lines.count("Time,NodeID,TrustScore") == 1
    assert lines[5:] == ["10,0,1", "10,1,1", "10,2,0.2", "10,BlacklistedNode,2"]


def test_sink_is_append_only(tmp_path):
    path = tmp_path / "trust_scores.csv"
    path.write_text("Time,NodeID,TrustScore\n1,0,1\n")
    TrustLogger(path).log_trust_scores(make_routing(), 2.5)

    lines = path.read_text().splitlines()
    assert lines[:2] == ["Time,NodeID,TrustScore", "1,0,1"]
    assert lines[-1] == "2.5,BlacklistedNode,2"


def test_unwritable_sink_is_not_fatal(tmp_path):
    trust_logger = TrustLogger(tmp_path / "missing" / "trust_scores.csv")
    assert trust_logger.log_trust_scores(make_routing(), 5.0) is False
    assert trust_logger.rows_written == 0


def test_read_trust_log_splits_row_shapes(tmp_path):
    path = tmp_path / "trust_scores.csv"
    trust_logger = TrustLogger(path)
    trust_logger.log_trust_scores(make_routing(), 5.0)

    trust_df, blacklist_df = read_trust_log(path)
    assert list(trust_df["NodeID"]) == [0, 1, 2]
    assert list(trust_df["TrustScore"]) == [1.0, 1.0, 0.2]
    assert list(blacklist_df["NodeID"]) == [2]
    assert list(blacklist_df["Time"]) == [5.0]


def test_periodic_logging_fires_every_interval(tmp_path):
    env = simpy.Environment()
    net_sim = NetworkSimulation(env)
    net_sim.create_grid_topology(num_nodes=3)
    net_sim.install_internet_stack()
    net_sim.get_node(1).ipv4.set_routing_protocol(make_routing())

    path = tmp_path / "trust_scores.csv"
    env.process(periodic_trust_logging(env, net_sim.nodes, TrustLogger(path), interval=5.0))
    env.run(until=12.0)

    trust_df, blacklist_df = read_trust_log(path)
    assert sorted(trust_df["Time"].unique()) == [5.0, 10.0]
    assert len(trust_df) == 6
    assert len(blacklist_df) == 2


def test_second_logger_does_not_repeat_header(tmp_path):
    path = tmp_path / "trust_scores.csv"
    TrustLogger(path).log_trust_scores(make_routing(), 5.0)
    TrustLogger(path).log_trust_scores(make_routing(), 5.0)

    lines = path.read_text().splitlines()
    assert lines[0] == "Time,NodeID,TrustScore"
    assert lines.count("Time,NodeID,TrustScore") == 1
    assert len(lines) == 9
