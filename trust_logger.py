import csv

import pandas as pd

from config import TRUST_LOG_FILE, TRUST_LOG_INTERVAL
from routing import BlackholeAodv
from utils import setup_logger

logger = setup_logger("TrustLogger")

CSV_HEADER = ["Time", "NodeID", "TrustScore"]
BLACKLIST_MARKER = "BlacklistedNode"


class TrustLogger:
    """
    Append-only CSV sink of trust tables.
    Rows are `time,node_id,score` for trust entries and
    `time,BlacklistedNode,node_id` for blacklist members.
    """

    def __init__(self, path=TRUST_LOG_FILE):
        self.path = path
        self.rows_written = 0

    def log_trust_scores(self, routing, now):
        """Appends one snapshot of a node's trust table. Returns False if the sink could not be written."""
        try:
            with open(self.path, "a", newline="", buffering=1) as trust_log:
                writer = csv.writer(trust_log, lineterminator="\n")
                # Append mode leaves the position at the end, so 0 means a fresh file
                if trust_log.tell() == 0:
                    writer.writerow(CSV_HEADER)

                for node_id, score in sorted(routing.get_trust_scores().items()):
                    logger.debug(f"Node {node_id}: Trust Score = {score}")
                    writer.writerow([f"{now:g}", node_id, f"{score:g}"])
                    self.rows_written += 1
                for node_id in sorted(routing.get_blacklisted_nodes()):
                    logger.debug(f"Blacklisted Node: {node_id}")
                    writer.writerow([f"{now:g}", BLACKLIST_MARKER, node_id])
                    self.rows_written += 1
        except OSError as e:
            logger.error(f"Failed to open {self.path} for writing: {e}")
            return False
        return True


def periodic_trust_logging(env, nodes, trust_logger, interval=TRUST_LOG_INTERVAL):
    """SimPy process: logs every node's trust table each interval, first at t=interval."""
    while True:
        yield env.timeout(interval)
        logger.info(f"Logging trust scores at {env.now:g} seconds")
        for node in nodes:
            routing = node.ipv4.routing_protocol if node.ipv4 is not None else None
            if isinstance(routing, BlackholeAodv):
                trust_logger.log_trust_scores(routing, env.now)
            else:
                logger.debug(f"BlackholeAodv object not found for Node {node.node_id}")


def read_trust_log(path=TRUST_LOG_FILE):
    """
    Loads a trust log into two DataFrames.

    Returns:
        (trust_df with Time/NodeID/TrustScore, blacklist_df with Time/NodeID)
    """
    raw = pd.read_csv(path, dtype=str)
    # Files concatenated from separate runs can carry extra header lines
    raw = raw[raw["Time"] != "Time"]

    is_blacklist = raw["NodeID"] == BLACKLIST_MARKER
    trust_df = pd.DataFrame({
        "Time": raw.loc[~is_blacklist, "Time"].astype(float),
        "NodeID": raw.loc[~is_blacklist, "NodeID"].astype(int),
        "TrustScore": raw.loc[~is_blacklist, "TrustScore"].astype(float),
    }).reset_index(drop=True)
    blacklist_df = pd.DataFrame({
        "Time": raw.loc[is_blacklist, "Time"].astype(float),
        "NodeID": raw.loc[is_blacklist, "TrustScore"].astype(int),
    }).reset_index(drop=True)
    return trust_df, blacklist_df
