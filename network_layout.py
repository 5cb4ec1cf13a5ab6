import numpy as np
from typing import NamedTuple, List, Tuple, Dict, Set, Optional, Iterable
import logging

from config import (ASPECT_RATIO, MIN_SPLIT_THRESHOLD, MAX_SPLIT_THRESHOLD, GRID_MARGIN,
                    MIN_SCALE_FACTOR, NODE_SEARCH_RADIUS)
from cooccurrence_graph import CoOccurrenceGraph, IslandStat, NodeConnectStat, node_pair
from generated_data import Tag

logger = logging.getLogger(__name__)


"""
Grid layout of a co-occurrence graph.

The grid is `cols` x `rows` cells (cols/rows ~ aspect ratio) plus a margin.
Each island gets a vertical slice of the grid, left to right by island id,
as wide as its share of the nodes plus padding for column overflow. Large,
well connected islands are split into regions around seed nodes; every
region gets a slice of its island. Nodes fill their region column by column.

A layout reads the graph once, at construction. Build a new layout after
adding to the graph.
"""


class IslandEntry(NamedTuple):
    id: int
    nodes: Set[int]
    width: int
    height: int
    xpos: int
    ypos: int
    min_regions: int
    max_regions: int
    max_adjacent: int


class RegionEntry(NamedTuple):
    id: int
    island_id: int
    interior_nodes: Set[int]
    exterior_nodes: Set[int] # neighbours of members that lie outside the region
    width: int
    height: int
    xpos: int
    ypos: int


class NodeEntry(NamedTuple):
    id: int
    region_id: int
    island_id: int
    interior_links: Set[int]
    exterior_links: Set[int]
    xpos: int
    ypos: int


class EdgeEntry(NamedTuple):
    pair: Tuple[int, int]
    island_id: int
    n1_region: int
    n2_region: int
    n1_xpos: int
    n1_ypos: int
    n2_xpos: int
    n2_ypos: int


class RegionSplit(NamedTuple):
    """Outcome of splitting an island: split=False means one region covering the island."""
    split: bool
    regions: List[Tuple[int, Set[int]]] # (region id, members), ordered by id


class NodeHit(NamedTuple):
    node: Optional[NodeEntry]
    tag: Optional[Tag]
    matches: int # nodes within the search radius
    grid_x: float
    grid_y: float


def region_limits(island: IslandStat) -> Tuple[int, int]:
    """(min_regions, max_regions) for an island."""
    size = len(island.nodes)
    num_hubs = island.num_with_3_adj + island.num_with_4_adj + island.num_with_many
    if size < MAX_SPLIT_THRESHOLD or num_hubs < int(np.ceil(size / MAX_SPLIT_THRESHOLD)):
        return 1, 1
    max_regions = max(island.num_with_max, int(np.ceil(size / MIN_SPLIT_THRESHOLD)))
    min_regions = min(max_regions, int(np.ceil(size / MAX_SPLIT_THRESHOLD)))
    return min_regions, max_regions


def select_seeds(nodes: Iterable[int], degree: Dict[int, int], max_adjacent: int,
                 min_regions: int, max_regions: int) -> List[int]:
    """
    Nodes with degree at or above the highest threshold that gives between
    min_regions and max_regions seeds. Empty if no threshold does.
    """
    nodes = sorted(nodes)
    for threshold in range(max_adjacent, 0, -1):
        seeds = [n for n in nodes if degree[n] >= threshold]
        if len(seeds) > max_regions:
            break
        if len(seeds) >= min_regions:
            return seeds
    return []


def split_island(island: IslandStat, connect: Dict[int, NodeConnectStat], min_regions: int,
                 max_regions: int, capacity: int = MAX_SPLIT_THRESHOLD) -> RegionSplit:
    """
    Partition an island into regions grown from seed nodes.

    Non-seeds adjacent to a seed join the nearest seed (tagset distance) that
    still has room, in node id order; `capacity` counts the seed. Nodes with
    no seed neighbour then join the region of their nearest already placed
    neighbour, repeated until nothing changes. If any node is left over the
    island stays whole. Ties go to the lower node id. A region's id is its
    lowest member.
    """
    whole = RegionSplit(False, [(island.id, set(island.nodes))])
    if max_regions <= 1:
        return whole

    degree = {n: connect[n].num_adjacent for n in island.nodes}
    seeds = select_seeds(island.nodes, degree, island.max_adjacent, min_regions, max_regions)
    if not seeds:
        logger.info("Island %d: no seed threshold gives %d..%d regions; kept whole.",
                    island.id, min_regions, max_regions)
        return whole
    logger.debug("Island %d: %d seeds %s", island.id, len(seeds), seeds)

    region_of: Dict[int, int] = {s: s for s in seeds}
    size = {s: 1 for s in seeds}

    def nearest(node: int, candidates: Iterable[int]) -> Optional[int]:
        dists = connect[node].adj_tagset_distance
        return min(candidates, key=lambda c: (dists[c], c), default=None)

    seed_set = set(seeds)
    for node in sorted(island.nodes):
        if node in region_of or not connect[node].adj_nodes & seed_set:
            continue
        seed = nearest(node, (s for s in seeds if s in connect[node].adj_nodes and size[s] < capacity))
        if seed is not None:
            region_of[node] = seed
            size[seed] += 1

    changed = True
    while changed:
        changed = False
        for node in sorted(island.nodes):
            if node in region_of or connect[node].adj_nodes & seed_set:
                continue
            peer = nearest(node, (p for p in connect[node].adj_nodes if p in region_of))
            if peer is not None:
                region = region_of[peer]
                region_of[node] = region
                size[region] += 1
                changed = True

    if len(region_of) < len(island.nodes):
        logger.info("Island %d: %d of %d nodes could not be placed in a region; kept whole.",
                    island.id, len(island.nodes) - len(region_of), len(island.nodes))
        return whole

    members: Dict[int, Set[int]] = {s: set() for s in seeds}
    for node, seed in region_of.items():
        members[seed].add(node)
    return RegionSplit(True, sorted((min(m), m) for m in members.values()))


def scale_factor(grid_width: int, grid_height: int, display_width: float,
                 display_height: float) -> float:
    """Display units per grid cell so the whole grid fits, but never below MIN_SCALE_FACTOR."""
    return max(MIN_SCALE_FACTOR, min(display_width / grid_width, display_height / grid_height))


class NetworkLayout:
    """
    Islands, regions, nodes and edges of a graph laid out on an integer grid.

    islands()/regions()/nodes()/edges() recompute on every call until
    cache_results() freezes them.
    """
    def __init__(self, graph: CoOccurrenceGraph, tags: Iterable[Tag], aspect_ratio: float = ASPECT_RATIO):
        self.tags: Dict[int, Tag] = {t.id: t for t in tags}
        self.aspect_ratio = aspect_ratio
        self.island_stats: List[IslandStat] = graph.island_stats()
        self.connect_stats: Dict[int, NodeConnectStat] = {s.id: s for s in graph.node_connect_stats()}

        self.num_nodes = sum(len(i.nodes) for i in self.island_stats)
        self.cols = int(np.ceil(np.sqrt(self.num_nodes * aspect_ratio)))
        self.rows = int(np.ceil(np.sqrt(self.num_nodes / aspect_ratio)))

        # island id -> (core width, padding)
        self._island_widths: Dict[int, Tuple[int, int]] = {}
        for island in self.island_stats:
            size = len(island.nodes)
            core = int(np.ceil(self.cols * size / self.num_nodes))
            self._island_widths[island.id] = (core, size // MIN_SPLIT_THRESHOLD)

        self.width = 2 * GRID_MARGIN + sum(c + p for c, p in self._island_widths.values())
        self.height = self.rows + 2 * GRID_MARGIN

        self._cached: Optional[Tuple[List[IslandEntry], List[RegionEntry],
                                     List[NodeEntry], List[EdgeEntry]]] = None

    def __str__(self):
        return (f"NetworkLayout({self.num_nodes} nodes, {len(self.island_stats)} islands, "
                f"grid {self.width}x{self.height}, cached={self.is_cached})")

    @property
    def is_cached(self) -> bool:
        return self._cached is not None

    def cache_results(self):
        if self._cached is None:
            islands = self._compute_islands()
            regions = self._compute_regions(islands)
            nodes = self._compute_nodes(islands, regions)
            edges = self._compute_edges(nodes)
            self._cached = (islands, regions, nodes, edges)

    def islands(self) -> List[IslandEntry]:
        if self._cached is not None:
            return self._cached[0]
        return self._compute_islands()

    def regions(self) -> List[RegionEntry]:
        if self._cached is not None:
            return self._cached[1]
        return self._compute_regions(self._compute_islands())

    def nodes(self) -> List[NodeEntry]:
        if self._cached is not None:
            return self._cached[2]
        islands = self._compute_islands()
        return self._compute_nodes(islands, self._compute_regions(islands))

    def edges(self) -> List[EdgeEntry]:
        if self._cached is not None:
            return self._cached[3]
        return self._compute_edges(self.nodes())

    def _compute_islands(self) -> List[IslandEntry]:
        entries = []
        xpos = GRID_MARGIN
        for island in self.island_stats:
            core, pad = self._island_widths[island.id]
            min_regions, max_regions = region_limits(island)
            entries.append(IslandEntry(island.id, set(island.nodes), core + pad, self.rows,
                                       xpos, GRID_MARGIN, min_regions, max_regions,
                                       island.max_adjacent))
            xpos += core + pad
        return entries

    def _compute_regions(self, islands: List[IslandEntry]) -> List[RegionEntry]:
        stats = {s.id: s for s in self.island_stats}
        entries = []
        for island in islands:
            outcome = split_island(stats[island.id], self.connect_stats,
                                   island.min_regions, island.max_regions)
            core, _ = self._island_widths[island.id]
            xpos = island.xpos
            for region_id, members in outcome.regions:
                exterior = set()
                for node in members:
                    exterior |= self.connect_stats[node].adj_nodes - members
                width = max(1, int(np.ceil(core * len(members) / len(island.nodes))))
                entries.append(RegionEntry(region_id, island.id, members, exterior,
                                           width, island.height, xpos, island.ypos))
                xpos += width
        return entries

    def _compute_nodes(self, islands: List[IslandEntry], regions: List[RegionEntry]) -> List[NodeEntry]:
        region_of = {n: r.id for r in regions for n in r.interior_nodes}
        entries = []
        shift = 0
        island_id = None
        for region in regions:
            if region.island_id != island_id:
                island_id = region.island_id
                shift = 0
            xpos = region.xpos + shift
            for k, node in enumerate(sorted(region.interior_nodes)):
                links = self.connect_stats[node].adj_nodes
                interior = {n for n in links if region_of[n] == region.id}
                entries.append(NodeEntry(node, region.id, region.island_id, interior, links - interior,
                                         xpos + k // region.height, region.ypos + k % region.height))
            used = -(-len(region.interior_nodes) // region.height)
            shift += max(0, used - region.width)
        return sorted(entries, key=lambda e: e.id)

    def _compute_edges(self, nodes: List[NodeEntry]) -> List[EdgeEntry]:
        by_id = {n.id: n for n in nodes}
        entries = []
        for n1 in nodes:
            for peer in sorted(n1.interior_links | n1.exterior_links):
                if peer < n1.id:
                    continue
                n2 = by_id[peer]
                entries.append(EdgeEntry(node_pair(n1.id, n2.id), n1.island_id, n1.region_id, n2.region_id,
                                         n1.xpos, n1.ypos, n2.xpos, n2.ypos))
        return sorted(entries, key=lambda e: e.pair)

    def scale_factor(self, display_width: float, display_height: float) -> float:
        return scale_factor(self.width, self.height, display_width, display_height)

    def locate_node(self, display_x: float, display_y: float, factor: float, scale: float = 1.0,
                    offset: Tuple[float, float] = (0.0, 0.0),
                    radius: float = NODE_SEARCH_RADIUS) -> NodeHit:
        """
        The node drawn nearest a display point (e.g. a tap), searching `radius`
        grid units. Nodes are drawn centred in their cell, hence the half-cell shift.
        Later nodes win ties.
        """
        grid_x = (display_x / scale - offset[0]) / factor - 0.5
        grid_y = (display_y / scale - offset[1]) / factor - 0.5
        best: Optional[NodeEntry] = None
        best_dist = np.inf
        matches = 0
        for entry in self.nodes():
            dist = np.hypot(grid_x - entry.xpos, grid_y - entry.ypos)
            if dist < radius:
                matches += 1
                if dist <= best_dist:
                    best, best_dist = entry, dist
        tag = self.tags.get(best.id) if best is not None else None
        return NodeHit(best, tag, matches, grid_x, grid_y)
