"""Tests for the co-occurrence graph: counts, components, distances and statistics."""

import numpy as np
import pytest

from cooccurrence_graph import (CoOccurrenceGraph, DistanceType, DisjointSet, MIN_DISTANCE,
                                node_pair)
from generated_data import DataParameters, generate
from symmetric_matrix import CountOverflow, SubscriptBounds

TEST1_LISTS = [{0, 2}, {0, 1, 3}, {2, 3}, {3, 4}]
TEST1A_LISTS = [{1, 3}, {1, 2, 4}, {3, 4}, {4, 5}]
TEST1_NEIGHBOURS = [3, 2, 2, 4, 1]
TEST1_PARTICIPATION = [2, 1, 2, 3, 1]
TEST2_LISTS = [{5, 6}, {4, 6}, {5, 7}]
TEST3_LISTS = [{0, 1, 2, 3, 4}, {5, 6, 7, 8}, {9, 10, 11}, {12, 13}, {13, 14},
               {0, 1}, {2, 3}, {4, 5}, {6, 7}, {8}, {9}, {15}]


def build(n_nodes: int, lists, adjustment: int = 0) -> CoOccurrenceGraph:
    graph = CoOccurrenceGraph(n_nodes, adjustment=adjustment)
    for node_set in lists:
        graph.add(node_set)
    return graph


@pytest.fixture
def graph3() -> CoOccurrenceGraph:
    return build(16, TEST3_LISTS)


def test_connection_counts() -> None:
    graph = build(5, TEST1_LISTS)
    assert graph.num_lists_added == len(TEST1_LISTS)
    for n in range(5):
        assert graph.num_coinciding(n) == TEST1_NEIGHBOURS[n]
        assert graph.num_lists(n) == TEST1_PARTICIPATION[n]


def test_adjustment_maps_ids_to_rows() -> None:
    graph = build(5, TEST1A_LISTS, adjustment=-1)
    assert graph.num_lists_added == len(TEST1A_LISTS)
    for n in range(1, 6):
        assert graph.num_coinciding(n) == TEST1_NEIGHBOURS[n - 1]
        assert graph.num_lists(n) == TEST1_PARTICIPATION[n - 1]
    assert graph.to_rc(1) == 0
    assert graph.to_id(4) == 5


def test_pair_counts_are_symmetric_and_counted_once_per_list() -> None:
    graph = build(5, [{0, 1, 3}, {0, 1}, {1, 0}])
    assert graph.pair_occurs[0, 1] == 3
    assert graph.pair_occurs[1, 0] == 3
    assert graph.pair_occurs[3, 0] == 1
    assert graph.pair_occurs[2, 4] == 0


def test_unique_lists() -> None:
    graph = build(5, [{0, 1}, {1, 0}, {2, 3, 4}, set()])
    assert graph.num_lists_added == 4
    assert graph.unique_lists == 3
    assert graph.list_count([1, 0]) == 2
    assert graph.list_count({4, 3, 2}) == 1
    assert graph.list_count({0, 4}) == 0


def test_out_of_range_ids_are_rejected_without_side_effects() -> None:
    graph = build(3, [{0, 1}])
    version = graph.version
    with pytest.raises(SubscriptBounds):
        graph.add({1, 3})
    assert graph.version == version
    assert graph.num_lists(1) == 1
    assert graph.num_lists_added == 1
    with pytest.raises(IndexError):
        graph.distance(DistanceType.PATH_LENGTH, 0, 5)


def test_pair_count_at_limit_is_rejected_without_side_effects() -> None:
    graph = build(4, [{0, 1}, {2, 3}])
    graph.pair_occurs[0, 1] = graph.pair_occurs.max_value
    version = graph.version
    with pytest.raises(CountOverflow) as info:
        graph.add({0, 1, 2})
    assert (info.value.row, info.value.col, info.value.limit) == (0, 1, 32767)
    assert isinstance(info.value, OverflowError)
    assert graph.pair_occurs[0, 1] == 32767
    assert graph.pair_occurs[0, 2] == 0
    assert graph.num_lists(0) == 1
    assert graph.num_lists_added == 2
    assert graph.version == version
    assert graph.list_count({0, 1, 2}) == 0
    graph.add({2, 3})
    assert graph.pair_occurs[2, 3] == 2


def test_components() -> None:
    graph = build(8, TEST1_LISTS + TEST2_LISTS)
    assert graph.connected_components() == [[0, 1, 2, 3, 4, 5, 6, 7]]
    graph3 = build(16, TEST3_LISTS)
    assert graph3.connected_components() == [
        [0, 1, 2, 3, 4, 5, 6, 7, 8], [9, 10, 11], [12, 13, 14], [15]]


def test_disjoint_set() -> None:
    ds = DisjointSet(6)
    ds.union(0, 1)
    ds.union(2, 3)
    ds.union(1, 3)
    assert ds.find(0) == ds.find(2)
    assert ds.find(4) != ds.find(0)
    assert ds.groups(range(6)) == [[0, 1, 2, 3], [4], [5]]


def test_node_pair() -> None:
    assert node_pair(5, 2) == (2, 5)
    assert node_pair(2, 5) == (2, 5)


def test_distances_through_intermediates() -> None:
    graph = build(8, TEST1_LISTS + TEST2_LISTS)
    stats = graph.distance_stats(DistanceType.PATH_LENGTH)
    assert stats.count == 28
    assert graph.distance(DistanceType.PATH_LENGTH, 0, 7) == 5
    assert graph.distance(DistanceType.TAGSET_JACCARD, 0, 4) == pytest.approx(0.867, abs=0.001)
    assert graph.distance(DistanceType.ITEMSET_JACCARD, 0, 4) == pytest.approx(1.5, abs=0.01)
    assert graph.distance(DistanceType.TAGSET_JACCARD, 1, 5) == pytest.approx(2.067, abs=0.01)


def test_direct_distances() -> None:
    graph = build(5, TEST1_LISTS)
    # 0 and 3 share one of four lists; closed neighbourhoods {0,1,2,3} and {0,1,2,3,4}
    assert graph.distance(DistanceType.PATH_LENGTH, 0, 3) == 1
    assert graph.distance(DistanceType.ITEMSET_JACCARD, 0, 3) == pytest.approx(0.75)
    assert graph.distance(DistanceType.TAGSET_JACCARD, 0, 3) == pytest.approx(0.2)
    assert graph.num_common_tags()[(0, 3)] == 4


def test_identical_lists_floor_at_min_distance() -> None:
    """Pairs that always appear together keep a positive distance."""
    graph = build(3, [{0, 1}, {0, 1}, {2}])
    assert graph.distance(DistanceType.ITEMSET_JACCARD, 0, 1) == MIN_DISTANCE
    assert graph.distance(DistanceType.TAGSET_JACCARD, 0, 1) == MIN_DISTANCE
    assert graph.distance(DistanceType.PATH_LENGTH, 0, 2) == np.inf
    assert graph.distance(DistanceType.TAGSET_JACCARD, 1, 2) == np.inf


def test_stats_small_graph() -> None:
    graph = build(7, TEST1_LISTS)
    stats = graph.distance_stats(DistanceType.PATH_LENGTH, force=True)
    assert stats.count == 10
    assert stats.low_bound == 1.0
    assert stats.high_bound == 2.0
    # six direct pairs and four at two hops
    assert stats.mean == pytest.approx(1.4)
    assert stats.std == pytest.approx(np.std([1] * 6 + [2] * 4))


def test_stats_include_disconnected_active_pairs(graph3: CoOccurrenceGraph) -> None:
    stats = graph3.distance_stats(DistanceType.PATH_LENGTH)
    assert stats.count == 16 * 15 // 2
    assert stats.low_bound == 0.0


def test_lazy_recompute_follows_version() -> None:
    graph = build(4, [{0, 1}])
    assert graph.distance(DistanceType.PATH_LENGTH, 0, 2) == np.inf
    assert graph.is_current
    graph.add({1, 2})
    assert not graph.is_current
    assert graph.distance(DistanceType.PATH_LENGTH, 0, 2) == 2
    assert graph.is_current


def test_zero_nodes() -> None:
    graph = CoOccurrenceGraph(0)
    stats = graph.distance_stats(DistanceType.ITEMSET_JACCARD)
    assert stats.count == 0
    hist = graph.histogram(DistanceType.ITEMSET_JACCARD, 1)
    assert len(hist) == 1
    assert hist[0].count == 0
    hist = graph.histogram(DistanceType.PATH_LENGTH, 4)
    assert [e.count for e in hist] == [0, 0, 0, 0]
    assert hist[0].low_bound == 0.0
    assert hist[-1].high_bound == pytest.approx(1.0)


@pytest.mark.parametrize("kind", list(DistanceType))
@pytest.mark.parametrize("bins", [1, 3, 10])
def test_histogram_counts_add_up(graph3: CoOccurrenceGraph, kind: DistanceType, bins: int) -> None:
    hist = graph3.histogram(kind, bins)
    assert len(hist) == bins
    assert [e.id for e in hist] == list(range(1, bins + 1))
    assert sum(e.count for e in hist) == graph3.distance_stats(kind).count
    for left, right in zip(hist, hist[1:]):
        assert left.high_bound == pytest.approx(right.low_bound)


def test_histogram_bins() -> None:
    graph = build(8, TEST1_LISTS + TEST2_LISTS)
    hist = graph.histogram(DistanceType.PATH_LENGTH, 5)
    assert hist[0].low_bound == 1.0
    assert hist[-1].high_bound == 5.0
    # path lengths 1..5 fall one value per bin
    assert all(e.std == 0.0 for e in hist)
    assert [e.mean for e in hist if e.count] == [1.0, 2.0, 3.0, 4.0, 5.0]


def test_histogram_needs_a_bin() -> None:
    graph = build(3, [{0, 1}])
    with pytest.raises(ValueError):
        graph.histogram(DistanceType.PATH_LENGTH, 0)


def test_generated_default_data_uses_every_tag() -> None:
    data = generate(DataParameters())
    graph = build(data.num_tags, [it.tag_set for it in data.items], adjustment=-1)
    used = data.num_tags - data.num_unused_tags
    assert graph.distance_stats(DistanceType.PATH_LENGTH).count == used * (used - 1) // 2


def test_island_stats(graph3: CoOccurrenceGraph) -> None:
    islands = graph3.island_stats()
    assert len(islands) == 4
    first = islands[0]
    assert first.id == 0
    assert first.nodes == set(range(9))
    assert first.max_adjacent == 5
    assert first.min_adjacent == 3
    assert first.avg_adjacent == pytest.approx(34 / 9)
    assert first.num_with_1_adj == 0
    assert first.num_with_2_adj == 0
    assert first.num_with_3_adj == 3
    assert first.num_with_4_adj == 5
    assert first.num_with_many == 1
    assert first.num_with_max == 1
    assert [i.id for i in islands] == [0, 9, 12, 15]
    assert islands[1].nodes == {9, 10, 11}
    assert islands[2].nodes == {12, 13, 14}
    assert islands[3].nodes == {15}
    assert islands[3].min_adjacent == 0


def test_islands_from_distance_matrix(graph3: CoOccurrenceGraph) -> None:
    islands = graph3.islands_from_distance_matrix()
    assert [i.id for i in islands] == [0, 9, 12, 15]
    assert islands[0].nodes == set(range(9))
    assert islands[0].max_adjacent == 5
    assert islands[0].avg_adjacent == pytest.approx(34 / 9)
    assert islands[2].num_with_2_adj == 1
    assert islands[2].num_with_1_adj == 2


def test_islands_from_distance_matrix_row_ids() -> None:
    graph = build(5, TEST1A_LISTS, adjustment=-1)
    assert graph.islands_from_distance_matrix()[0].nodes == {1, 2, 3, 4, 5}
    assert graph.islands_from_distance_matrix(adjust_ids=False)[0].nodes == {0, 1, 2, 3, 4}


def test_validate_path_lengths(graph3: CoOccurrenceGraph) -> None:
    assert graph3.validate_distance_matrix(DistanceType.PATH_LENGTH) == []


def test_validate_long_chain() -> None:
    """Paths much longer than two hops are still exact."""
    graph = build(12, [{i, i + 1} for i in range(11)])
    assert graph.validate_distance_matrix(DistanceType.PATH_LENGTH) == []
    assert graph.distance(DistanceType.PATH_LENGTH, 0, 11) == 11


def test_node_connect_stats(graph3: CoOccurrenceGraph) -> None:
    stats = graph3.node_connect_stats()
    assert len(stats) == 16
    assert stats[0].id == 0

    s1 = stats[1]
    assert s1.num_no_connect == 7
    assert s1.num_adjacent == 4
    assert s1.num_indirect == 4
    assert s1.min_adj_tagset == pytest.approx(0.0, abs=0.01)
    assert s1.max_adj_tagset == pytest.approx(0.17, abs=0.01)
    assert s1.avg_adj_tagset == pytest.approx(0.04, abs=0.01)
    assert s1.num_below_avg == 3
    assert s1.adj_nodes == {0, 2, 3, 4}
    assert s1.adj_num_common[4] == 5
    assert s1.adj_tagset_distance[4] == pytest.approx(0.17, abs=0.01)

    s4 = stats[4]
    assert s4.num_no_connect == 7
    assert s4.num_adjacent == 5
    assert s4.num_indirect == 3
    assert s4.min_adj_tagset == pytest.approx(0.17, abs=0.01)
    assert s4.max_adj_tagset == pytest.approx(0.78, abs=0.01)
    assert s4.avg_adj_tagset == pytest.approx(0.29, abs=0.01)
    assert s4.num_below_avg == 4
    assert s4.adj_nodes == {0, 1, 2, 3, 5}
    assert s4.adj_num_common[5] == 2
    assert s4.adj_tagset_distance[5] == pytest.approx(0.78, abs=0.01)

    s5 = stats[5]
    assert s5.num_no_connect == 7
    assert s5.num_adjacent == 4
    assert s5.num_indirect == 4
    assert s5.min_adj_tagset == pytest.approx(0.20, abs=0.01)
    assert s5.max_adj_tagset == pytest.approx(0.78, abs=0.01)
    assert s5.avg_adj_tagset == pytest.approx(0.35, abs=0.01)
    assert s5.num_below_avg == 3
    assert s5.adj_nodes == {4, 6, 7, 8}
    assert s5.adj_num_common[6] == 4
    assert s5.adj_tagset_distance[6] == pytest.approx(0.20, abs=0.01)

    s15 = stats[15]
    assert s15.adj_nodes == set()
    assert s15.avg_adj_tagset == 0.0
    assert s15.num_no_connect == 15


def test_connect_stats_from_distance_matrix(graph3: CoOccurrenceGraph) -> None:
    stats = {s.id: s for s in graph3.connect_stats_from_distance_matrix()}
    assert len(stats) == 16
    s4 = stats[4]
    assert s4.num_adjacent == 5
    assert s4.num_indirect == 3
    assert s4.num_no_connect == 7
    assert s4.adj_nodes == {0, 1, 2, 3, 5}
    assert s4.adj_num_common[5] == 2
    assert s4.avg_adj_tagset == pytest.approx(0.29, abs=0.01)
    assert stats[15].num_adjacent == 0
    assert stats[15].avg_adj_tagset == 0.0
