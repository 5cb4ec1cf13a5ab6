
from typing import Dict, List, Optional
import numpy as np
import networkx as nx
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle
from matplotlib.ticker import MaxNLocator
import plotly.graph_objects as go

from cooccurrence_graph import CoOccurrenceGraph, DistanceType, StatsEntry
from generated_data import Tag
from network_layout import NetworkLayout


def build_graph(graph: CoOccurrenceGraph, tags: Optional[List[Tag]] = None) -> nx.Graph:
    """
    NetworkX view of a co-occurrence graph, keyed by node id.

    Nodes carry `name` (tag name when given) and `lists` (participation);
    edges carry `occurs` and the direct itemset / tagset distances.
    """
    names: Dict[int, str] = {t.id: t.name for t in tags} if tags else {}
    occ = graph.occurrence_dense()

    G = nx.Graph()
    for rc in graph.active_rcs().tolist():
        node = graph.to_id(rc)
        G.add_node(node, name=names.get(node, str(node)), lists=int(graph.participation[rc]))

    rows, cols = np.nonzero(np.triu(occ, 1))
    for r, c in zip(rows.tolist(), cols.tolist()):
        u, v = graph.to_id(r), graph.to_id(c)
        G.add_edge(u, v, occurs=int(occ[r, c]),
                   itemset=graph.distance(DistanceType.ITEMSET_JACCARD, u, v),
                   tagset=graph.distance(DistanceType.TAGSET_JACCARD, u, v))
    return G


def plot_layout(layout: NetworkLayout,
                ax: Optional[plt.Axes] = None,
                cell: float = 0.25,
                show_labels: bool = False,
                title: Optional[str] = None):
    """
    Static drawing of a layout on its grid: islands outlined blue, regions
    green, edges cyan, nodes as black dots at the centre of their cell.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(max(layout.width * cell, 4), max(layout.height * cell, 3)))
    ax.set_aspect("equal")
    ax.axis("off")

    for island in layout.islands():
        ax.add_patch(Rectangle((island.xpos, island.ypos), island.width, island.height,
                               fill=False, edgecolor="blue", linewidth=1.2))
    for region in layout.regions():
        ax.add_patch(Rectangle((region.xpos, region.ypos), region.width, region.height,
                               fill=False, edgecolor="green", linewidth=0.8, linestyle="--"))

    for edge in layout.edges():
        ax.plot([edge.n1_xpos + 0.5, edge.n2_xpos + 0.5], [edge.n1_ypos + 0.5, edge.n2_ypos + 0.5],
                color="cyan", linewidth=0.6, zorder=1)

    nodes = layout.nodes()
    xs = [n.xpos + 0.5 for n in nodes]
    ys = [n.ypos + 0.5 for n in nodes]
    ax.scatter(xs, ys, s=12, color="black", zorder=2)
    if show_labels:
        for n, x, y in zip(nodes, xs, ys):
            ax.text(x, y, layout.tags[n.id].name if n.id in layout.tags else str(n.id),
                    fontsize=5, ha="center", va="bottom")

    ax.set_xlim(0, layout.width)
    ax.set_ylim(layout.height, 0)  # row 0 at the top
    if title:
        ax.set_title(title)
    return ax


def plot_histogram(entries: List[StatsEntry],
                   ax: Optional[plt.Axes] = None,
                   title: Optional[str] = None):
    """Bar per bin, bar height = count, bin bounds on the x axis."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 3.5))
    lows = np.array([e.low_bound for e in entries], dtype=float)
    widths = np.array([e.high_bound - e.low_bound for e in entries], dtype=float)
    counts = [e.count for e in entries]

    ax.bar(lows, counts, width=widths, align="edge", color="black", edgecolor="white")
    ax.yaxis.set_major_locator(MaxNLocator(integer=True))
    ax.set_xlabel("distance")
    ax.set_ylabel("pairs")
    for spine in ("top", "right"):
        ax.spines[spine].set_visible(False)
    if title:
        ax.set_title(title)
    return ax


def plot_distance_histograms(graph: CoOccurrenceGraph, bins: int, save_path=None):
    """One histogram panel per distance metric."""
    fig, axes = plt.subplots(1, len(DistanceType), figsize=(5 * len(DistanceType), 3.5))
    for ax, kind in zip(np.atleast_1d(axes), DistanceType):
        plot_histogram(graph.histogram(kind, bins), ax=ax, title=kind.value.replace("_", " "))
    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, dpi=220, bbox_inches="tight")
    return fig


def plot_layout_interactive(layout: NetworkLayout):
    """
    Plotly version of plot_layout. Hover on a node shows its tag, region and
    grid position; pan is the default drag mode.
    """
    traces = []

    for island in layout.islands():
        x0, y0 = island.xpos, island.ypos
        x1, y1 = x0 + island.width, y0 + island.height
        traces.append(go.Scatter(x=[x0, x1, x1, x0, x0], y=[y0, y0, y1, y1, y0], mode="lines",
                                 line=dict(color="blue", width=1.5), hoverinfo="skip",
                                 showlegend=False))
    for region in layout.regions():
        x0, y0 = region.xpos, region.ypos
        x1, y1 = x0 + region.width, y0 + region.height
        traces.append(go.Scatter(x=[x0, x1, x1, x0, x0], y=[y0, y0, y1, y1, y0], mode="lines",
                                 line=dict(color="green", width=1, dash="dash"), hoverinfo="skip",
                                 showlegend=False))

    edge_x, edge_y = [], []
    for edge in layout.edges():
        edge_x += [edge.n1_xpos + 0.5, edge.n2_xpos + 0.5, None]
        edge_y += [edge.n1_ypos + 0.5, edge.n2_ypos + 0.5, None]
    traces.append(go.Scatter(x=edge_x, y=edge_y, mode="lines",
                             line=dict(color="cyan", width=1),
                             hoverinfo="skip", showlegend=False, name="edges"))

    nodes = layout.nodes()
    names = [f"{layout.tags[n.id].name if n.id in layout.tags else n.id}<br>"
             f"region {n.region_id}, island {n.island_id}<br>({n.xpos}, {n.ypos})" for n in nodes]
    traces.append(go.Scatter(
        x=[n.xpos + 0.5 for n in nodes], y=[n.ypos + 0.5 for n in nodes], mode="markers",
        marker=dict(symbol="circle", size=8, color="black"),
        name="nodes", hovertext=names, hovertemplate="%{hovertext}<extra></extra>"
    ))

    fig = go.Figure(traces)
    fig.update_layout(
        template="none",
        dragmode="pan",
        hovermode="closest",
        xaxis=dict(visible=False, scaleanchor="y", scaleratio=1),
        yaxis=dict(visible=False, autorange="reversed"),
        margin=dict(l=10, r=10, t=30, b=10)
    )
    return fig
