from config import AGGREGATION_INTERVAL
from routing import BlackholeAodv
from utils import setup_logger

logger = setup_logger("GlobalTrust")


class GlobalTrustAggregator:
    def __init__(self, metrics):
        """
        Folds every node's trust table into the process-wide view held by
        metrics.global_trust_scores. The view is a monitor only; routing
        decisions never read it.
        """
        self.metrics = metrics
        self.history = []  # [(time, node_id, previous or None, score)]

    def update(self, nodes, now=0.0):
        """
        Reads each node's snapshot in turn. A first observation of an id is
        recorded as "initial", a changed score as a delta.

        Returns:
            Number of records emitted during this pass
        """
        logger.info("Updating Global Trust Scores")
        global_scores = self.metrics.global_trust_scores
        emitted = 0
        for node in nodes:
            routing = node.ipv4.routing_protocol if node.ipv4 is not None else None
            if not isinstance(routing, BlackholeAodv):
                continue

            for node_id, score in sorted(routing.get_trust_scores().items()):
                if node_id not in global_scores:
                    global_scores[node_id] = score
                    self.history.append((now, node_id, None, score))
                    emitted += 1
                    logger.info(f"Node {node_id} added with initial Trust Score = {score:g}")
                elif global_scores[node_id] != score:
                    previous = global_scores[node_id]
                    global_scores[node_id] = score
                    self.history.append((now, node_id, previous, score))
                    emitted += 1
                    logger.info(f"Node {node_id} Trust Score updated from {previous:g} to {score:g}")
        return emitted

    def run(self, env, nodes, interval=AGGREGATION_INTERVAL):
        """SimPy process: aggregates every interval, first at t=interval."""
        while True:
            yield env.timeout(interval)
            self.update(nodes, env.now)
