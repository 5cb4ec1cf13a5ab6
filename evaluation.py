
import numpy as np
import networkx as nx
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import shortest_path
from typing import List, Dict, Tuple

from cooccurrence_graph import CoOccurrenceGraph, DistanceType, IslandStat


def compare_island_stats(graph: CoOccurrenceGraph, tol: float = 1e-9) -> List[str]:
    """
    Differences between island_stats() and islands_from_distance_matrix().
    Empty when the two agree.
    """
    raw = {s.id: s for s in graph.island_stats()}
    derived = {s.id: s for s in graph.islands_from_distance_matrix()}
    if raw.keys() != derived.keys():
        return [f"island ids differ: {sorted(raw)} vs {sorted(derived)}"]

    fields = ["nodes", "num_with_many", "num_with_max", "num_with_4_adj", "num_with_3_adj",
              "num_with_2_adj", "num_with_1_adj", "min_adjacent", "max_adjacent"]
    diffs = []
    for island_id, a in raw.items():
        b = derived[island_id]
        for field in fields:
            if getattr(a, field) != getattr(b, field):
                diffs.append(f"island {island_id} {field}: {getattr(a, field)} vs {getattr(b, field)}")
        if abs(a.avg_adjacent - b.avg_adjacent) > tol:
            diffs.append(f"island {island_id} avg_adjacent: {a.avg_adjacent} vs {b.avg_adjacent}")
    return diffs


def compare_connect_stats(graph: CoOccurrenceGraph, tol: float = 1e-9) -> List[str]:
    """
    Differences between node_connect_stats() and connect_stats_from_distance_matrix()
    on the fields both define the same way. num_below_avg is left out (the two
    count differently) and num_no_connect only agrees when every node is active.
    """
    raw = {s.id: s for s in graph.node_connect_stats()}
    derived = {s.id: s for s in graph.connect_stats_from_distance_matrix()}
    if raw.keys() != derived.keys():
        return [f"node ids differ: {sorted(raw)} vs {sorted(derived)}"]

    fully_active = bool(np.all(graph.participation > 0))
    exact = ["num_adjacent", "num_indirect", "adj_nodes", "adj_num_common"]
    if fully_active:
        exact.append("num_no_connect")
    close = ["min_adj_tagset", "max_adj_tagset", "avg_adj_tagset"]

    diffs = []
    for node, a in raw.items():
        b = derived[node]
        for field in exact:
            if getattr(a, field) != getattr(b, field):
                diffs.append(f"node {node} {field}: {getattr(a, field)} vs {getattr(b, field)}")
        for field in close:
            if abs(getattr(a, field) - getattr(b, field)) > tol:
                diffs.append(f"node {node} {field}: {getattr(a, field)} vs {getattr(b, field)}")
        for peer, d in a.adj_tagset_distance.items():
            if abs(d - b.adj_tagset_distance.get(peer, np.inf)) > tol:
                diffs.append(f"node {node} tagset distance to {peer}: {d} vs {b.adj_tagset_distance.get(peer)}")
    return diffs


def check_path_lengths(graph: CoOccurrenceGraph) -> List[Tuple[int, int, float, float]]:
    """
    (id1, id2, recorded, expected) for every pair whose path length differs
    from an unweighted shortest path computed by scipy. Unreachable pairs are
    expected to be recorded as 0.
    """
    adjacency = (graph.occurrence_dense() > 0).astype(float)
    expected = shortest_path(csr_matrix(adjacency), unweighted=True, directed=False)
    expected[np.isinf(expected)] = 0.0
    recorded = graph.distance_matrix(DistanceType.PATH_LENGTH).to_dense()

    rows, cols = np.nonzero(np.triu(recorded != expected, 1))
    return [(graph.to_id(r), graph.to_id(c), float(recorded[r, c]), float(expected[r, c]))
            for r, c in zip(rows.tolist(), cols.tolist())]


def to_networkx(graph: CoOccurrenceGraph) -> nx.Graph:
    """Active nodes (by id) with an edge per co-occurring pair, weighted by occurrence count."""
    G = nx.Graph()
    G.add_nodes_from(graph.to_id(rc) for rc in graph.active_rcs().tolist())
    occ = graph.occurrence_dense()
    rows, cols = np.nonzero(np.triu(occ, 1))
    for r, c in zip(rows.tolist(), cols.tolist()):
        G.add_edge(graph.to_id(r), graph.to_id(c), occurs=int(occ[r, c]))
    return G


def check_components(graph: CoOccurrenceGraph) -> bool:
    """True when the union-find partition matches networkx connected components."""
    ours = sorted(sorted(c) for c in graph.connected_components())
    theirs = sorted(sorted(c) for c in nx.connected_components(to_networkx(graph)))
    return ours == theirs


def island_summary(islands: List[IslandStat]) -> Dict[str, float]:
    """Headline numbers for a list of islands."""
    sizes = np.array([len(i.nodes) for i in islands]) if islands else np.zeros(0)
    return {
        "islands": len(islands),
        "nodes": int(sizes.sum()),
        "largest": int(sizes.max()) if len(sizes) else 0,
        "singletons": int(np.sum(sizes == 1)),
        "mean_size": float(sizes.mean()) if len(sizes) else 0.0,
    }
