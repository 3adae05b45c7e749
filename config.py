## trust model properties
INITIAL_TRUST = 1.0  # every peer starts fully trusted
TRUST_THRESHOLD = 0.3  # blacklist threshold
RECOVERY_THRESHOLD = 0.6  # recovery threshold, must stay above TRUST_THRESHOLD
TRUST_PENALTY = 0.2  # subtracted on an observed drop
TRUST_REWARD = 0.1  # added on an observed forward
SCORE_PRECISION = 9  # decimal places kept after each update


## routing instance properties
ADAPTIVE_DROP_RATE = 0.05  # mitigation-capable nodes
MALICIOUS_DROP_RATE = 0.9  # blackhole nodes


## network properties
GRID_WIDTH = 10  # nodes per row
GRID_SPACING = 50.0  # meters between grid neighbours
RADIO_RANGE = 100.0  # unit-disk transmission range in meters
DATA_RATE_BPS = 6e6  # OfdmRate6Mbps
PROPAGATION_SPEED = 3e8  # m/s
HEADER_OVERHEAD = 62  # IPv4 + UDP + 802.11 MAC bytes added to every payload
DEFAULT_TTL = 64
NETWORK_BASE = "10.1.1.0/24"
UDP_PORT = 9
PACKET_SIZE = 1024  # payload bytes


## simulation properties
SIM_NODES = 10
SIM_TIME = 50.0  # seconds
TRAFFIC_RATE = 128  # packets per second
BLACKHOLE_NODES = (10,)
TRUST_LOG_INTERVAL = 5.0  # seconds, also the first firing time
AGGREGATION_INTERVAL = 5.0  # seconds, also the first firing time
SIM_SEED = 42


## output files
TRUST_LOG_FILE = "trust_scores.csv"
FLOWMON_FILE = "flowmon-results.xml"
TOPOLOGY_PLOT_FILE = "network_topology.png"
TRUST_PLOT_FILE = "trust_history.png"


## scenario presets
SCENARIOS = {
    # 10 nodes in one row, trust mitigation on every honest node
    'mitigation': {
        'nodes': SIM_NODES,
        'sim_time': SIM_TIME,
        'traffic_rate': TRAFFIC_RATE,
        'blackhole_nodes': BLACKHOLE_NODES,
        'drop_probability': MALICIOUS_DROP_RATE,
        'mitigation': True,
    },
    # large saturated grid with several blackholes and no mitigation
    'attack': {
        'nodes': 200,
        'sim_time': 10.0,
        'traffic_rate': 1024,
        'blackhole_nodes': (10, 15, 25, 35, 40, 55),
        'drop_probability': 1.0,
        'mitigation': False,
    },
}
