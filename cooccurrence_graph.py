import numpy as np
from enum import Enum
from typing import NamedTuple, List, Tuple, Dict, Set, Optional, Iterable
import logging

from symmetric_matrix import SymmetricMatrix, SubscriptBounds, CountOverflow

logger = logging.getLogger(__name__)


"""
NODE IDS
-----------------------------------------------------
- id : external node identifier, e.g. a 1-based tag id.
- rc : zero-based row/column in the occurrence and distance matrices.
       rc = id + adjustment, id = rc - adjustment.

Public methods take and return ids; helpers with rc in their name work on rows.

DISTANCES
-----------------------------------------------------
- path length     : fewest co-occurrence hops.
- itemset Jaccard : 1 - |lists with both| / |lists with either| for direct pairs.
- tagset Jaccard  : 1 - |N[a] & N[b]| / |N[a] | N[b]| for direct pairs, where N[x]
                    is x's neighbours plus x itself.
Indirect pairs are extended by relaxation through intermediate nodes. A stored
0 means "no path"; direct Jaccard distances are floored at MIN_DISTANCE so they
never collide with that sentinel.
"""

MIN_DISTANCE = float(np.nextafter(0.0, 1.0))


class DistanceType(Enum):
    PATH_LENGTH = "path_length"
    ITEMSET_JACCARD = "itemset_jaccard"
    TAGSET_JACCARD = "tagset_jaccard"


def node_pair(a: int, b: int) -> Tuple[int, int]:
    """Return a consistent undirected pair (a, b) with a <= b."""
    return (a, b) if a <= b else (b, a)


class DisjointSet:
    """Union-find over 0..n-1 with path compression and union by size."""
    def __init__(self, n: int):
        self.parent = list(range(n))
        self.size = [1] * n

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: int, b: int) -> int:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return ra
        if self.size[ra] < self.size[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        self.size[ra] += self.size[rb]
        return ra

    def groups(self, members: Iterable[int]) -> List[List[int]]:
        """Partition `members` by root; each group sorted, groups ordered by their first member."""
        by_root: Dict[int, List[int]] = {}
        for m in sorted(members):
            by_root.setdefault(self.find(m), []).append(m)
        return sorted(by_root.values(), key=lambda g: g[0])


class StatsEntry:
    """
    Range, count, mean and standard deviation of a set of distances.

    Values are pushed one at a time (Welford's running mean / variance sum);
    `finish()` turns the variance sum into a population standard deviation.
    """
    def __init__(self, id: int = 0, low_bound: float = np.inf, high_bound: float = 0.0,
                 count: int = 0, mean: float = 0.0, std: float = 0.0):
        self.id = id
        self.low_bound = low_bound
        self.high_bound = high_bound
        self.count = count
        self.mean = mean
        self.std = std

    def push(self, value: float):
        value = float(value)
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.std += delta * (value - self.mean)

    def track_range(self, value: float):
        if value < self.low_bound:
            self.low_bound = float(value)
        if value > self.high_bound:
            self.high_bound = float(value)

    def finish(self):
        self.std = float(np.sqrt(self.std / self.count)) if self.count else 0.0

    def __repr__(self):
        return (f"StatsEntry(id={self.id}, low={self.low_bound:.4g}, high={self.high_bound:.4g}, "
                f"count={self.count}, mean={self.mean:.4g}, std={self.std:.4g})")


class IslandStat:
    """Node count and degree distribution of one connected component."""
    def __init__(self, id: int, nodes: Set[int], min_adjacent: int, max_adjacent: int = 0):
        self.id = id # lowest node in the island
        self.nodes = nodes
        self.num_with_many = 0 # more than 4 neighbours
        self.num_with_max = 0
        self.num_with_4_adj = 0
        self.num_with_3_adj = 0
        self.num_with_2_adj = 0
        self.num_with_1_adj = 0
        self.min_adjacent = min_adjacent
        self.max_adjacent = max_adjacent
        self.avg_adjacent = 0.0

    @property
    def size(self) -> int:
        return len(self.nodes)

    def record_degree(self, neighbors: int):
        if neighbors == 1:
            self.num_with_1_adj += 1
        elif neighbors == 2:
            self.num_with_2_adj += 1
        elif neighbors == 3:
            self.num_with_3_adj += 1
        elif neighbors == 4:
            self.num_with_4_adj += 1
        elif neighbors > 4:
            self.num_with_many += 1
        if neighbors < self.min_adjacent:
            self.min_adjacent = neighbors
        if neighbors > self.max_adjacent:
            self.max_adjacent = neighbors
            self.num_with_max = 1
        elif neighbors == self.max_adjacent:
            self.num_with_max += 1
        self.avg_adjacent += neighbors / len(self.nodes)

    def __str__(self):
        return (f"Island {self.id}: {len(self.nodes)} nodes, adjacent min={self.min_adjacent} "
                f"max={self.max_adjacent} (x{self.num_with_max}) avg={self.avg_adjacent:.3f}, "
                f"1/2/3/4/many={self.num_with_1_adj}/{self.num_with_2_adj}/{self.num_with_3_adj}/"
                f"{self.num_with_4_adj}/{self.num_with_many}")


class NodeConnectStat(NamedTuple):
    id: int
    num_no_connect: int # unreachable
    num_adjacent: int # co-occur directly
    num_indirect: int # reachable through other nodes
    min_adj_tagset: float
    max_adj_tagset: float
    avg_adj_tagset: float
    num_below_avg: int
    adj_nodes: Set[int]
    adj_num_common: Dict[int, int] # neighbour -> neighbours in common
    adj_tagset_distance: Dict[int, float] # neighbour -> tagset distance


class DistanceErrorEntry(NamedTuple):
    pair: Tuple[int, int]
    n1: int
    n2: int
    recorded_distance: float
    minimum_distance: float


class CoOccurrenceGraph:
    """
    Undirected graph built from co-occurrence lists (e.g. the tag set of one item).

    pair_occurs[a, b]  : number of lists containing both a and b (diagonal unused)
    participation[a]   : number of lists containing a
    list_occurrences   : sorted tuple of ids -> number of times that list was added

    Distances and statistics are derived lazily: `add()` bumps `version` and the
    next query recomputes if the computed version is behind. Not safe for
    concurrent add() and queries.
    """
    def __init__(self, n_nodes: int, adjustment: int = 0):
        self.n_nodes = int(n_nodes)
        self.adjustment = int(adjustment)
        self.pair_occurs = SymmetricMatrix(self.n_nodes, dtype=np.int16)
        self.participation = np.zeros(self.n_nodes, dtype=int)
        self.num_lists_added = 0
        self.list_occurrences: Dict[Tuple[int, ...], int] = {}
        self._components = DisjointSet(self.n_nodes)

        self.version = 0
        self._computed_version = -1
        self._distances: Dict[DistanceType, SymmetricMatrix] = {
            kind: SymmetricMatrix(self.n_nodes, dtype=float) for kind in DistanceType}
        self._dense: Dict[DistanceType, np.ndarray] = {
            kind: np.zeros((self.n_nodes, self.n_nodes)) for kind in DistanceType}
        self._stats: Dict[DistanceType, StatsEntry] = {kind: StatsEntry() for kind in DistanceType}
        self._num_common: Dict[Tuple[int, int], int] = {}

    # ---- ids ----

    def to_rc(self, node_id: int) -> int:
        return node_id + self.adjustment

    def to_id(self, rc: int) -> int:
        return rc - self.adjustment

    def _checked_rc(self, node_id: int) -> int:
        rc = self.to_rc(node_id)
        if not 0 <= rc < self.n_nodes:
            raise SubscriptBounds(rc, rc, self.n_nodes)
        return rc

    # ---- input ----

    def add(self, node_set: Iterable[int]):
        """
        Record one co-occurrence list. Raises SubscriptBounds for an id out of
        range and CountOverflow when a pair count is already at the int16 limit;
        either way the graph is left unchanged.
        """
        rcs = sorted({self._checked_rc(n) for n in node_set})
        limit = self.pair_occurs.max_value
        for i, r in enumerate(rcs):
            for c in rcs[i + 1:]:
                if self.pair_occurs[r, c] >= limit:
                    raise CountOverflow(r, c, limit)
        for i, r in enumerate(rcs):
            self.participation[r] += 1
            for c in rcs[i + 1:]:
                self.pair_occurs[r, c] += 1
            if i > 0:
                self._components.union(rcs[0], r)

        key = tuple(self.to_id(r) for r in rcs)
        self.list_occurrences[key] = self.list_occurrences.get(key, 0) + 1
        self.num_lists_added += 1
        self.version += 1

    @property
    def unique_lists(self) -> int:
        return len(self.list_occurrences)

    def list_count(self, node_set: Iterable[int]) -> int:
        """How many times exactly this list was added."""
        return self.list_occurrences.get(tuple(sorted(set(node_set))), 0)

    def num_lists(self, node_id: int) -> int:
        return int(self.participation[self._checked_rc(node_id)])

    def num_coinciding(self, node_id: int) -> int:
        """Number of distinct nodes that co-occur with this one."""
        return int(np.count_nonzero(self.occurrence_dense()[self._checked_rc(node_id)]))

    def occurrence_dense(self) -> np.ndarray:
        """pair_occurs as a full n x n int array with a zero diagonal."""
        occ = self.pair_occurs.to_dense().astype(int)
        np.fill_diagonal(occ, 0)
        return occ

    def active_rcs(self) -> np.ndarray:
        return np.flatnonzero(self.participation > 0)

    def component_rcs(self) -> List[List[int]]:
        return self._components.groups(self.active_rcs().tolist())

    def connected_components(self) -> List[List[int]]:
        return [[self.to_id(rc) for rc in group] for group in self.component_rcs()]

    # ---- derived distances ----

    @property
    def is_current(self) -> bool:
        return self._computed_version == self.version

    def _ensure_current(self, force: bool = False):
        if force or not self.is_current:
            self._recompute()

    def _recompute(self):
        n = self.n_nodes
        occ = self.occurrence_dense()
        adjacent = occ > 0
        path = np.zeros((n, n))
        itemset = np.zeros((n, n))
        tagset = np.zeros((n, n))
        self._num_common = {}

        total_extended = 0
        for group in self.component_rcs():
            idx = np.asarray(group)
            sub_adj = adjacent[np.ix_(idx, idx)]
            sub_occ = occ[np.ix_(idx, idx)]
            parts = self.participation[idx]

            p = np.where(sub_adj, 1.0, 0.0)

            union = parts[:, None] + parts[None, :] - sub_occ
            with np.errstate(divide="ignore", invalid="ignore"):
                item_d = np.where(sub_adj, np.maximum(1.0 - sub_occ / union, MIN_DISTANCE), 0.0)

            closed = (sub_adj | np.eye(len(idx), dtype=bool)).astype(int)
            inter = closed @ closed.T
            sizes = closed.sum(axis=1)
            either = sizes[:, None] + sizes[None, :] - inter
            tag_d = np.where(sub_adj, np.maximum(1.0 - inter / either, MIN_DISTANCE), 0.0)

            rows, cols = np.nonzero(np.triu(sub_adj, 1))
            for r, c in zip(rows.tolist(), cols.tolist()):
                self._num_common[(group[r], group[c])] = int(inter[r, c])

            p, item_d, tag_d, extended = self._relax(p, item_d, tag_d)
            total_extended += extended

            grid = np.ix_(idx, idx)
            path[grid] = p
            itemset[grid] = item_d
            tagset[grid] = tag_d

        self._dense = {DistanceType.PATH_LENGTH: path,
                       DistanceType.ITEMSET_JACCARD: itemset,
                       DistanceType.TAGSET_JACCARD: tagset}
        for kind, dense in self._dense.items():
            self._distances[kind].set_from_dense(dense)
        self._stats = {kind: self._summarise(dense) for kind, dense in self._dense.items()}
        self._computed_version = self.version
        logger.debug("Recomputed distances at version %d: %d indirect pairs extended.",
                     self.version, total_extended)

    def _relax(self, path: np.ndarray, itemset: np.ndarray, tagset: np.ndarray):
        """
        Extend distances to pairs that never co-occur, within one component.

        Each pass reads the distances as they stood when the pass began, so a
        pair first reached in pass k gets its true path length. Each metric
        takes its own minimum over the intermediates with both legs known.
        Stops after n_nodes - 2 passes or a pass with no change.
        """
        m = path.shape[0]
        extended = 0
        for n_pass in range(max(self.n_nodes - 2, 0)):
            known = path > 0
            unknown = np.triu(~known, 1)
            if not unknown.any():
                break
            new_path, new_item, new_tag = path.copy(), itemset.copy(), tagset.copy()
            changed = 0
            for a in np.flatnonzero(unknown.any(axis=1)):
                bs = np.flatnonzero(unknown[a])
                via = known[a][None, :] & known[bs]
                reachable = via.any(axis=1)
                if not reachable.any():
                    continue
                bs, via = bs[reachable], via[reachable]
                for old, new in ((path, new_path), (itemset, new_item), (tagset, new_tag)):
                    best = np.where(via, old[a][None, :] + old[bs], np.inf).min(axis=1)
                    new[a, bs] = best
                    new[bs, a] = best
                changed += len(bs)
            path, itemset, tagset = new_path, new_item, new_tag
            extended += changed
            logger.debug("Relaxation pass %d over %d nodes: %d pairs extended.", n_pass + 1, m, changed)
            if not changed:
                break
        return path, itemset, tagset, extended

    def _active_pair_values(self, dense: np.ndarray) -> np.ndarray:
        """Upper-triangle values over pairs of nodes that appear in some list, row-major."""
        active = self.participation > 0
        rows, cols = np.triu_indices(self.n_nodes, 1)
        keep = active[rows] & active[cols]
        return dense[rows[keep], cols[keep]]

    def _summarise(self, dense: np.ndarray) -> StatsEntry:
        stats = StatsEntry()
        for value in self._active_pair_values(dense).tolist():
            stats.track_range(value)
            stats.push(value)
        stats.finish()
        if stats.count == 0:
            stats.low_bound = 0.0
            stats.high_bound = 0.0
        return stats

    def distance_matrix(self, kind: DistanceType) -> SymmetricMatrix:
        self._ensure_current()
        return self._distances[kind]

    def distance(self, kind: DistanceType, node1: int, node2: int) -> float:
        """Distance between two ids; inf when there is no path."""
        self._ensure_current()
        d = self._dense[kind][self._checked_rc(node1), self._checked_rc(node2)]
        return float(d) if d > 0.0 else np.inf

    def distance_stats(self, kind: DistanceType, force: bool = False) -> StatsEntry:
        self._ensure_current(force)
        return self._stats[kind]

    def num_common_tags(self) -> Dict[Tuple[int, int], int]:
        """Neighbours in common (counting the pair itself) for every directly linked pair of ids."""
        self._ensure_current()
        return {node_pair(self.to_id(a), self.to_id(b)): n for (a, b), n in self._num_common.items()}

    def histogram(self, kind: DistanceType, bins: int) -> List[StatsEntry]:
        """
        Split [low, high] of the metric into `bins` equal buckets (width 1/bins when
        low == high) and summarise every active pair's distance in its bucket.
        Bucket counts add up to distance_stats(kind).count.
        """
        if bins < 1:
            raise ValueError(f"Histogram needs at least one bin, got {bins}")
        base = self.distance_stats(kind)
        low, high = base.low_bound, base.high_bound
        interval = 1.0 / bins if high == low else (high - low) / bins

        entries = [StatsEntry(id=i + 1, low_bound=low + i * interval) for i in range(bins)]
        for i in range(bins - 1):
            entries[i].high_bound = entries[i + 1].low_bound
        entries[-1].high_bound = high if high != low else low + bins * interval

        values = self._active_pair_values(self._dense[kind])
        if len(values):
            slots = np.clip(((values - low) / interval).astype(int), 0, bins - 1)
            for value, slot in zip(values.tolist(), slots.tolist()):
                entries[slot].push(value)
        for entry in entries:
            entry.finish()
        return entries

    # ---- statistics from the distance matrices ----

    def islands_from_distance_matrix(self, adjust_ids: bool = True) -> List[IslandStat]:
        """Islands read off the path-length matrix, in order of their lowest node."""
        mat = self._current_dense(DistanceType.PATH_LENGTH)
        convert = self.to_id if adjust_ids else int
        islands: List[IslandStat] = []
        owner: Dict[int, IslandStat] = {}
        for n1 in self.active_rcs().tolist():
            neighbors = int(np.count_nonzero(mat[n1] == 1))
            island = owner.get(n1)
            if island is None:
                members = [m for m in range(self.n_nodes) if m == n1 or mat[n1, m] != 0]
                island = IslandStat(convert(n1), {convert(m) for m in members}, min_adjacent=neighbors)
                for m in members:
                    owner[m] = island
                islands.append(island)
            island.record_degree(neighbors)
        return islands

    def connect_stats_from_distance_matrix(self, adjust_ids: bool = True) -> List[NodeConnectStat]:
        """
        Per-node connectivity read off the path-length and tagset matrices.

        Only nodes that appear in some list are counted, as subjects or peers.
        num_below_avg counts every reachable peer whose tagset distance is at
        most the average over direct neighbours.
        """
        path = self._current_dense(DistanceType.PATH_LENGTH)
        tag = self._dense[DistanceType.TAGSET_JACCARD]
        convert = self.to_id if adjust_ids else int
        active = self.active_rcs().tolist()

        stats = []
        for n1 in active:
            not_connected = direct = indirect = 0
            min_tag, max_tag, sum_tag = 1.0, 0.0, 0.0
            adj_nodes: Set[int] = set()
            adj_common: Dict[int, int] = {}
            adj_tag: Dict[int, float] = {}
            for n2 in active:
                if n2 == n1:
                    continue
                d = path[n1, n2]
                if d == 0:
                    not_connected += 1
                elif d == 1:
                    direct += 1
                    t = float(tag[n1, n2])
                    sum_tag += t
                    min_tag = min(min_tag, t)
                    max_tag = max(max_tag, t)
                    peer = convert(n2)
                    adj_nodes.add(peer)
                    adj_common[peer] = self._num_common[node_pair(n1, n2)]
                    adj_tag[peer] = t
                else:
                    indirect += 1
            avg_tag = sum_tag / direct if direct else 0.0
            below = sum(1 for n2 in active
                        if n2 != n1 and path[n1, n2] != 0 and tag[n1, n2] <= avg_tag)
            stats.append(NodeConnectStat(convert(n1), not_connected, direct, indirect,
                                         min_tag, max_tag, avg_tag, below,
                                         adj_nodes, adj_common, adj_tag))
        return stats

    def _current_dense(self, kind: DistanceType) -> np.ndarray:
        self._ensure_current()
        return self._dense[kind]

    # ---- statistics from raw occurrence ----

    def island_stats(self) -> List[IslandStat]:
        """Islands from the component partition and raw co-occurrence, sorted by id."""
        adjacent = self.occurrence_dense() > 0
        islands = []
        for group in self.component_rcs():
            island = IslandStat(self.to_id(group[0]), {self.to_id(rc) for rc in group},
                                min_adjacent=self.n_nodes)
            for rc in group:
                island.record_degree(int(np.count_nonzero(adjacent[rc])))
            islands.append(island)
        return sorted(islands, key=lambda s: s.id)

    def node_connect_stats(self) -> List[NodeConnectStat]:
        """
        Per-node connectivity from raw co-occurrence and the component partition.

        num_no_connect counts every graph node outside the component, active or
        not; num_below_avg counts direct neighbours strictly below the average.
        """
        adjacent = self.occurrence_dense() > 0
        stats = []
        for group in self.component_rcs():
            idx = np.asarray(group)
            sub_adj = adjacent[np.ix_(idx, idx)]
            closed = (sub_adj | np.eye(len(idx), dtype=bool)).astype(int)
            inter = closed @ closed.T
            sizes = closed.sum(axis=1)
            for i, node in enumerate(group):
                adj_common: Dict[int, int] = {}
                adj_tag: Dict[int, float] = {}
                min_tag, max_tag, sum_tag = 1.0, 0.0, 0.0
                for j in np.flatnonzero(sub_adj[i]).tolist():
                    both = int(inter[i, j])
                    either = int(sizes[i] + sizes[j] - both)
                    dist = max(1.0 - both / either, MIN_DISTANCE)
                    peer = self.to_id(group[j])
                    adj_common[peer] = both
                    adj_tag[peer] = dist
                    min_tag = min(min_tag, dist)
                    max_tag = max(max_tag, dist)
                    sum_tag += dist
                num_adjacent = len(adj_tag)
                avg_tag = sum_tag / num_adjacent if num_adjacent else 0.0
                below = sum(1 for d in adj_tag.values() if d < avg_tag)
                stats.append(NodeConnectStat(self.to_id(node), self.n_nodes - len(group),
                                             num_adjacent, len(group) - num_adjacent - 1,
                                             min_tag, max_tag, avg_tag, below,
                                             set(adj_tag), adj_common, adj_tag))
        return sorted(stats, key=lambda s: s.id)

    # ---- audit ----

    def validate_distance_matrix(self, kind: DistanceType) -> List[DistanceErrorEntry]:
        """
        Pairs that never co-occur whose recorded distance is not the minimum
        over intermediates of dist(a, m) + dist(m, b).
        """
        mat = self._current_dense(kind)
        adjacent = self.occurrence_dense() > 0
        errors = []
        for n1 in range(self.n_nodes - 1):
            for n2 in range(n1 + 1, self.n_nodes):
                if adjacent[n1, n2]:
                    continue
                via = (mat[n1] != 0) & (mat[n2] != 0)
                via[[n1, n2]] = False
                if not via.any():
                    continue
                minimum = float((mat[n1] + mat[n2])[via].min())
                if minimum >= self.n_nodes:
                    continue
                if mat[n1, n2] != minimum:
                    a, b = self.to_id(n1), self.to_id(n2)
                    errors.append(DistanceErrorEntry((a, b), a, b, float(mat[n1, n2]), minimum))
        return errors

    def __str__(self):
        return (f"CoOccurrenceGraph(nodes={self.n_nodes}, adjustment={self.adjustment}, "
                f"lists={self.num_lists_added}, unique={self.unique_lists}, "
                f"islands={len(self.component_rcs())}, version={self.version})")
