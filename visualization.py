import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import networkx as nx
import numpy as np

from config import TRUST_THRESHOLD, RECOVERY_THRESHOLD, TOPOLOGY_PLOT_FILE, TRUST_PLOT_FILE
from trust_logger import read_trust_log


def visualize_network(graph, trust_scores=None, blackhole_nodes=(), path=None,
                      filename=TOPOLOGY_PLOT_FILE, return_fig=False):
    """
    Draws the grid at its real positions.
    - Blacklisted-band trust (< 0.3) -> Red
    - Hysteresis band (0.3 - 0.6) -> Orange
    - Trusted -> Green
    Configured blackholes get a thick black border.

    Args:
        trust_scores: {node_id: score}, usually the global trust view
        path: List of node ids to highlight, e.g. the CBR route
    """
    trust_scores = trust_scores or {}
    fig = plt.figure(figsize=(12, 10))
    pos = nx.get_node_attributes(graph, 'pos')

    node_colors = []
    for node in graph.nodes():
        trust = trust_scores.get(node, 1.0)
        if trust < TRUST_THRESHOLD:
            node_colors.append('#FF4444')  # Red
        elif trust < RECOVERY_THRESHOLD:
            node_colors.append('#FFAA00')  # Orange
        else:
            node_colors.append('#44FF44')  # Green

    line_widths = [3.0 if node in blackhole_nodes else 1.0 for node in graph.nodes()]

    nx.draw_networkx_edges(graph, pos, alpha=0.2, edge_color='gray', style='dashed')
    nx.draw_networkx_nodes(graph, pos, node_color=node_colors, node_size=500,
                           edgecolors='black', linewidths=line_widths)
    nx.draw_networkx_labels(graph, pos, font_size=9)

    legend_patches = [
        mpatches.Patch(color='#44FF44', label='Trusted'),
        mpatches.Patch(color='#FFAA00', label='Suspect'),
        mpatches.Patch(color='#FF4444', label='Below blacklist threshold'),
    ]

    if path and len(path) > 1:
        path_edges = list(zip(path[:-1], path[1:]))
        nx.draw_networkx_edges(graph, pos, edgelist=path_edges, edge_color='blue', width=2.5)
        legend_patches.append(mpatches.Patch(color='blue', label='CBR Route'))

    plt.legend(handles=legend_patches, loc='upper right')
    plt.title("Network Topology (trust view)")
    plt.axis('off')

    if return_fig:
        return fig

    plt.savefig(filename)
    plt.close(fig)
    return filename


def plot_trust_history(csv_path, filename=TRUST_PLOT_FILE, return_fig=False):
    """
    Plots the mean logged trust per node over time, with the two
    thresholds drawn as reference lines.
    """
    trust_df, blacklist_df = read_trust_log(csv_path)

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    if not trust_df.empty:
        history = trust_df.groupby(["Time", "NodeID"])["TrustScore"].mean().unstack("NodeID")
        for node_id in history.columns:
            ax1.plot(history.index, history[node_id], marker='o', markersize=3, label=f"Node {node_id}")
    ax1.axhline(TRUST_THRESHOLD, color='red', linestyle='--', label='Blacklist threshold')
    ax1.axhline(RECOVERY_THRESHOLD, color='green', linestyle='--', label='Recovery threshold')
    ax1.set_ylabel('Trust Score')
    ax1.set_ylim(-0.05, 1.05)
    ax1.legend(loc='lower left', fontsize='small', ncol=2)

    if not blacklist_df.empty:
        counts = blacklist_df.groupby("Time")["NodeID"].nunique()
        ax2.bar(counts.index, counts.values, width=1.0, color='tab:red')
        ax2.set_yticks(np.arange(0, counts.max() + 1))
    ax2.set_xlabel('Simulation Time (s)')
    ax2.set_ylabel('Blacklisted Nodes')

    plt.suptitle('Trust Scores Over Time')
    plt.tight_layout()

    if return_fig:
        return fig

    plt.savefig(filename)
    plt.close(fig)
    return filename
