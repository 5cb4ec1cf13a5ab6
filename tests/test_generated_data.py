"""Tests for the deterministic item / tag generator."""

import pytest

from generated_data import DataParameters, generate, items_by_cardinality, round_half_away

STD_PROPORTIONS = (0.0, 0.2, 0.4, 0.2, 0.1, 0.1)
STD_AVG = 0.2
STD_MAX = 0.3


def std_params(num_items: int, num_tags: int, **kwargs) -> DataParameters:
    fields = dict(num_items=num_items, num_tags=num_tags, force_unused_tags=False,
                  cardinality_proportions=STD_PROPORTIONS, avg_tag_frequency=STD_AVG,
                  max_tag_frequency=STD_MAX)
    fields.update(kwargs)
    return DataParameters(**fields)


def test_defaults() -> None:
    data = generate()
    assert data.saved == DataParameters()
    assert data.num_items == 100
    assert len(data.items) == 100
    assert data.tags[0].name == "Tag 1"
    assert data.items[0].name == "Item 1"


def test_requested_cardinalities_are_built() -> None:
    data = generate(std_params(100, 50))
    assert data.num_items_by_cardinality == [0, 20, 40, 20, 10, 10]
    assert data.built_items_by_cardinality == data.num_items_by_cardinality


def test_too_few_tags_is_raised() -> None:
    """500 tag assignments at 20% average frequency need 100 tags."""
    data = generate(std_params(200, 80))
    items = data.items
    assert data.num_tags == 100
    assert data.saved.num_tags == 80
    assert items[19].tag_set == {96, 97, 98, 99, 100}
    assert items[20].tag_set == {1, 2, 3, 4}
    assert items[40].tag_set == {81, 82, 83}
    assert items[80].tag_set == {1, 2}
    assert items[160].tag_set == {61}


def test_low_frequency_tags_run_out() -> None:
    """Once every tag reaches its target, the remaining items stay short or empty."""
    data = generate(std_params(1000, 200, avg_tag_frequency=0.01, max_tag_frequency=0.10))
    items = data.items
    assert items[99].tag_set == {96, 97, 98, 99, 100}
    assert items[199].tag_set == {97, 98, 99, 100}
    assert items[399].tag_set == {106, 107, 108}
    assert items[799].tag_set == {3, 4}
    assert items[839].tag_set == {4}
    assert items[840].tag_set == set()
    assert items[999].tag_set == set()
    assert sum(data.built_items_by_cardinality) == 1000
    assert data.built_items_by_cardinality[0] > data.num_items_by_cardinality[0]


def test_tag_count_covers_average_frequency() -> None:
    data = generate(std_params(1000, 200, avg_tag_frequency=0.10, max_tag_frequency=0.20))
    assert data.num_tags == 250


def test_tiny_collection() -> None:
    data = generate(std_params(10, 15))
    assert data.num_tags == 15
    assert [set(it.tag_set) for it in data.items] == [
        {1, 2, 3, 4, 5}, {6, 7, 8, 9}, {10, 11, 12}, {13, 14, 15},
        {1, 2}, {3, 4}, {5, 6}, {7, 8}, {9}, {10},
    ]
    assert [it.id for it in data.items] == list(range(1, 11))


def test_tiers_and_targets() -> None:
    data = generate(std_params(10, 15))
    assert data.tier_sizes() == (1, 13, 1)
    targets = [t.target for t in data.tag_stats]
    assert targets == [3] + [2] * 13 + [1]


def test_occurrences_never_pass_target() -> None:
    data = generate(std_params(1000, 200, avg_tag_frequency=0.01, max_tag_frequency=0.10))
    for stat in data.tag_stats:
        assert stat.occurs <= stat.target
        assert sum(stat.occurs_by_cardinality) == stat.occurs
        assert len(stat.occurs_by_cardinality) == 5


def test_tag_stats_match_items() -> None:
    data = generate(std_params(200, 80))
    counts = {t.id: 0 for t in data.tags}
    for item in data.items:
        for tag_id in item.tag_set:
            counts[tag_id] += 1
    assert counts == {s.id: s.occurs for s in data.tag_stats}


def test_determinism() -> None:
    params = std_params(300, 40, avg_tag_frequency=0.05, max_tag_frequency=0.15)
    first = generate(params)
    second = generate(params)
    assert first.items == second.items
    assert first.tags == second.tags
    assert [repr(s) for s in first.tag_stats] == [repr(s) for s in second.tag_stats]


@pytest.mark.parametrize("num_items,proportions", [
    (3, STD_PROPORTIONS),
    (7, (0.5, 0.5)),
    (101, (0.1, 0.3, 0.3, 0.3)),
    (250, (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0)),
    (55, (0.01, 0.01, 0.98)),
])
def test_all_items_built(num_items: int, proportions) -> None:
    data = generate(std_params(num_items, 10, cardinality_proportions=proportions))
    assert len(data.items) == num_items
    assert sum(data.num_items_by_cardinality) == num_items
    assert sum(data.built_items_by_cardinality) == num_items


def test_forced_unused_tags() -> None:
    data = generate(std_params(10, 15, force_unused_tags=True))
    assert data.num_unused_tags == 2
    assert [s.target for s in data.tag_stats[-2:]] == [0, 0]
    used = set().union(*(it.tag_set for it in data.items))
    assert not used & {14, 15}


def test_parameter_corrections() -> None:
    data = generate(std_params(1, 10, avg_tag_frequency=1.5, max_tag_frequency=0.01))
    assert data.num_items == 3
    assert data.avg_frequency == 0.05
    assert data.max_frequency == 0.05
    assert data.saved.num_items == 1


def test_max_below_average_uses_average() -> None:
    data = generate(std_params(100, 10, avg_tag_frequency=0.2, max_tag_frequency=0.1))
    assert data.max_frequency == 0.2


def test_proportions_without_weight() -> None:
    """An all-zero table means items without tags."""
    data = generate(std_params(20, 5, cardinality_proportions=(0.0, 0.0)))
    assert data.num_items_by_cardinality == [20]
    assert all(it.tag_set == frozenset() for it in data.items)


def test_no_tags_at_all() -> None:
    data = generate(std_params(5, 0, cardinality_proportions=(1.0,)))
    assert data.num_tags == 0
    assert data.tags == []
    assert len(data.items) == 5


def test_small_nonzero_proportion_gets_an_item() -> None:
    assert items_by_cardinality([0.0, 0.64, 0.32, 0.04], 10) == [0, 6, 3, 1]
    # the running total is clamped before the floor can apply
    assert items_by_cardinality([0.98, 0.01, 0.01], 10) == [10, 0, 0]


def test_rounding_is_half_away_from_zero() -> None:
    assert round_half_away(2.5) == 3
    assert round_half_away(0.5) == 1
    assert round_half_away(2.4999) == 2
    assert round_half_away(-1.5) == -2
