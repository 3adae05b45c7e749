from types import MappingProxyType

from config import (
    INITIAL_TRUST,
    TRUST_THRESHOLD,
    RECOVERY_THRESHOLD,
    TRUST_PENALTY,
    TRUST_REWARD,
    SCORE_PRECISION,
)
from utils import setup_logger

logger = setup_logger("BlackholeAodv")


class TrustModel:
    def __init__(self, owner_id=None, trust_threshold=TRUST_THRESHOLD,
                 recovery_threshold=RECOVERY_THRESHOLD, penalty=TRUST_PENALTY, reward=TRUST_REWARD):
        """
        Per-node trust table with a hysteresis blacklist.

        Args:
            owner_id: Id of the node that owns this table (never blacklisted by itself)
            trust_threshold: Score below which a peer enters the blacklist (0.3)
            recovery_threshold: Score at which a blacklisted peer is released (0.6)
            penalty: Subtracted from the score on an observed drop (0.2)
            reward: Added to the score on an observed forward (0.1)
        """
        if not trust_threshold < recovery_threshold:
            raise ValueError(
                f"trust_threshold ({trust_threshold}) must be below recovery_threshold ({recovery_threshold})"
            )
        self.owner_id = owner_id
        self.trust_threshold = trust_threshold
        self.recovery_threshold = recovery_threshold
        self.penalty = penalty
        self.reward = reward

        self.trust_scores = {}  # {node_id: score in [0, 1]}
        self.blacklisted_nodes = set()

    def initialize_trust_scores(self, total_nodes):
        """Seeds entries 0..total_nodes-1 with full trust."""
        for node_id in range(total_nodes):
            self.trust_scores[node_id] = INITIAL_TRUST
            self.blacklisted_nodes.discard(node_id)
        logger.info(f"Initialized trust scores for {total_nodes} nodes.")

    def get_trust_score(self, node_id):
        return self.trust_scores.get(node_id, INITIAL_TRUST)

    def get_trust_scores(self):
        """Read-only view of the table, used by the aggregator and the logger."""
        return MappingProxyType(self.trust_scores)

    def get_blacklisted_nodes(self):
        return frozenset(self.blacklisted_nodes)

    def is_blacklisted(self, node_id):
        return node_id in self.blacklisted_nodes

    def update_trust_score(self, node_id, dropped):
        """
        Penalizes a drop (-0.2) or rewards a forward (+0.1) and reconciles
        blacklist membership.

        Returns:
            The new trust score
        """
        score = self.adjust_trust_score(node_id, -self.penalty if dropped else self.reward)
        logger.debug(f"Node {node_id} {'penalized' if dropped else 'rewarded'}. Trust Score = {score}")
        return score

    def adjust_trust_score(self, node_id, delta):
        """Applies an arbitrary delta, clamps to [0, 1] and reconciles the blacklist."""
        current = self.trust_scores.get(node_id, INITIAL_TRUST)
        score = round(min(1.0, max(0.0, current + delta)), SCORE_PRECISION)
        self.trust_scores[node_id] = score
        self._reconcile_blacklist(node_id, score)
        return score

    def _reconcile_blacklist(self, node_id, score):
        if node_id == self.owner_id:
            return

        if score < self.trust_threshold:
            if node_id not in self.blacklisted_nodes:
                self.blacklisted_nodes.add(node_id)
                logger.info(f"Node {node_id} added to blacklist (trust {score}).")
        elif score >= self.recovery_threshold:
            if node_id in self.blacklisted_nodes:
                self.blacklisted_nodes.remove(node_id)
                logger.info(f"Node {node_id} removed from blacklist (trust {score}).")
        # Between the two thresholds membership is left as it is.
