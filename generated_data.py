import numpy as np
from typing import NamedTuple, List, Tuple, FrozenSet, Optional, Sequence
import logging

from config import (DEFAULT_NUM_ITEMS, DEFAULT_NUM_TAGS, DEFAULT_FORCE_UNUSED_TAGS,
                    DEFAULT_CARDINALITY_PROPORTIONS, DEFAULT_AVG_TAG_FREQUENCY,
                    DEFAULT_MAX_TAG_FREQUENCY, MIN_NUM_ITEMS, FALLBACK_AVG_TAG_FREQUENCY,
                    NUM_FORCED_UNUSED_TAGS)

logger = logging.getLogger(__name__)


"""
Deterministic synthetic data: a set of items, each carrying a set of tags.

Parameters ask for a number of items, a number of tags, the proportion of
items for each tag-set cardinality (index = cardinality) and the average and
maximum share of items that any one tag may appear on. Parameters that cannot
be honoured are corrected, never rejected; the corrected values are kept on
the GeneratedCollection next to the requested parameters.

Tags are split into frequency tiers (max, avg, min = avg/2, unused) and handed
out round-robin from a moving cursor, highest cardinality items first, until
each tag reaches its target occurrence count.
"""


class DataParameters(NamedTuple):
    num_items: int = DEFAULT_NUM_ITEMS
    num_tags: int = DEFAULT_NUM_TAGS
    force_unused_tags: bool = DEFAULT_FORCE_UNUSED_TAGS
    cardinality_proportions: Tuple[float, ...] = DEFAULT_CARDINALITY_PROPORTIONS
    avg_tag_frequency: float = DEFAULT_AVG_TAG_FREQUENCY
    max_tag_frequency: float = DEFAULT_MAX_TAG_FREQUENCY


class Tag(NamedTuple):
    id: int
    name: str

    @classmethod
    def numbered(cls, tag_id: int) -> "Tag":
        return cls(tag_id, f"Tag {tag_id}")


class Item(NamedTuple):
    id: int
    name: str
    tag_set: FrozenSet[int]

    @property
    def cardinality(self) -> int:
        return len(self.tag_set)


class TagOccurrence:
    """Target and actual number of items carrying one tag."""
    def __init__(self, tag_id: int, target: int, num_cardinalities: int):
        self.id = tag_id
        self.target = target
        self.occurs = 0
        # index = cardinality - 1 of the item the tag was assigned to
        self.occurs_by_cardinality = [0] * num_cardinalities

    @property
    def available(self) -> bool:
        return self.target > self.occurs

    def record(self, cardinality: int):
        self.occurs += 1
        self.occurs_by_cardinality[cardinality - 1] += 1

    def __repr__(self):
        return (f"TagOccurrence(id={self.id}, target={self.target}, occurs={self.occurs}, "
                f"by_cardinality={self.occurs_by_cardinality})")


def round_half_away(x: float) -> int:
    """Round to nearest integer, halves away from zero (np.round rounds halves to even)."""
    return int(np.sign(x) * np.floor(abs(x) + 0.5))


def truncate(x: float) -> int:
    """int() that is not fooled by products like 0.29 * 100 = 28.999999999999996."""
    return int(round(x, 9))


def normalise_proportions(proportions: Sequence[float]) -> List[float]:
    props = [max(float(p), 0.0) for p in proportions]
    total = sum(props)
    if not props or total <= 0.0:
        logger.info("Cardinality proportions %s have no weight; every item gets no tags.",
                    list(proportions))
        return [1.0]
    if any(p < 0.0 for p in proportions):
        logger.info("Negative cardinality proportions in %s treated as 0.", list(proportions))
    return [p / total for p in props]


def items_by_cardinality(proportions: Sequence[float], num_items: int) -> List[int]:
    """
    Number of items to build for each cardinality.

    Every non-zero proportion gets at least one item; the running total never
    passes num_items; items left over after rounding get no tags.
    """
    counts = [0] * len(proportions)
    total = 0
    for card, p in enumerate(proportions):
        if p == 0.0:
            continue
        n = max(round_half_away(p * num_items), 1)
        n = min(n, num_items - total)
        counts[card] = n
        total += n
    if total < num_items:
        counts[0] += num_items - total
    return counts


class GeneratedCollection:
    """
    Items and tags generated from DataParameters.

    saved                       : the parameters as given
    num_items, num_tags, ...    : the parameters after correction
    num_items_by_cardinality    : requested item count per cardinality
    built_items_by_cardinality  : item count per actual tag-set size
    tags, items, tag_stats      : results; ids are 1-based
    """
    def __init__(self, parameters: Optional[DataParameters] = None):
        if parameters is None:
            parameters = DataParameters()
        self.saved = parameters

        self.num_unused_tags = NUM_FORCED_UNUSED_TAGS if parameters.force_unused_tags else 0
        self.num_items = parameters.num_items
        if self.num_items < MIN_NUM_ITEMS:
            logger.info("num_items %d raised to %d.", self.num_items, MIN_NUM_ITEMS)
            self.num_items = MIN_NUM_ITEMS

        self.avg_frequency = float(parameters.avg_tag_frequency)
        if not 0.0 < self.avg_frequency < 1.0:
            logger.info("avg_tag_frequency %s outside (0, 1); using %s.",
                        self.avg_frequency, FALLBACK_AVG_TAG_FREQUENCY)
            self.avg_frequency = FALLBACK_AVG_TAG_FREQUENCY

        self.max_frequency = float(parameters.max_tag_frequency)
        if not (0.0 < self.max_frequency < 1.0 and self.max_frequency >= self.avg_frequency):
            logger.info("max_tag_frequency %s invalid for avg %s; using the average.",
                        self.max_frequency, self.avg_frequency)
            self.max_frequency = self.avg_frequency
        self.min_frequency = self.avg_frequency / 2.0

        proportions = normalise_proportions(parameters.cardinality_proportions)
        self.num_items_by_cardinality = items_by_cardinality(proportions, self.num_items)

        num_wanted = sum(card * n for card, n in enumerate(self.num_items_by_cardinality))
        min_required = self.num_unused_tags + round_half_away(num_wanted * self.avg_frequency)
        self.num_tags = max(parameters.num_tags, min_required)
        if self.num_tags != parameters.num_tags:
            logger.info("num_tags raised from %d to %d to cover %d tag assignments.",
                        parameters.num_tags, self.num_tags, num_wanted)

        self.tag_stats = self._tag_targets()
        self.tags = [Tag.numbered(t.id) for t in self.tag_stats]
        self.items = self._build_items()

        self.built_items_by_cardinality = [0] * len(self.num_items_by_cardinality)
        for item in self.items:
            self.built_items_by_cardinality[item.cardinality] += 1

        num_short = sum(self.num_items_by_cardinality[c] - self.built_items_by_cardinality[c]
                        for c in range(1, len(self.num_items_by_cardinality))
                        if self.num_items_by_cardinality[c] > self.built_items_by_cardinality[c])
        if num_short:
            logger.info("%d items were built with fewer tags than requested.", num_short)

    @property
    def num_cardinalities(self) -> int:
        """Non-zero cardinalities."""
        return len(self.num_items_by_cardinality) - 1

    def tier_sizes(self) -> Tuple[int, int, int]:
        """Number of (max, avg, min) frequency tags."""
        used = self.num_tags - self.num_unused_tags
        mult = round_half_away(self.max_frequency / self.min_frequency)
        num_max = (used // 2) // (mult + 1)
        num_min = num_max
        num_avg = used - num_max - num_min
        return num_max, num_avg, num_min

    def _tag_targets(self) -> List[TagOccurrence]:
        num_max, num_avg, num_min = self.tier_sizes()
        stats = []
        for tag_id in range(1, self.num_tags + 1):
            if tag_id <= num_max:
                target = truncate(self.max_frequency * self.num_items)
            elif tag_id <= num_max + num_avg:
                target = truncate(self.avg_frequency * self.num_items)
            elif tag_id <= num_max + num_avg + num_min:
                target = truncate(self.min_frequency * self.num_items)
            else:
                target = 0
            stats.append(TagOccurrence(tag_id, target, self.num_cardinalities))
        return stats

    def _next_available(self, cursor: int, stop: int) -> int:
        """
        Step the cursor forward (wrapping) until it sits on an available tag.
        Returns -1 if it comes back to `stop` first.
        """
        n = len(self.tag_stats)
        while True:
            cursor = (cursor + 1) % n
            if cursor == stop:
                return -1
            if self.tag_stats[cursor].available:
                return cursor

    def _build_items(self) -> List[Item]:
        n_tags = len(self.tag_stats)
        cursor = next((i for i, t in enumerate(self.tag_stats) if t.available), n_tags - 1)

        items = []
        item_id = 0
        for card in range(len(self.num_items_by_cardinality) - 1, -1, -1):
            for _ in range(self.num_items_by_cardinality[card]):
                item_id += 1
                tag_set = set()
                if card > 0 and n_tags > 0 and self.tag_stats[cursor].available:
                    start = cursor
                    for _ in range(card):
                        stat = self.tag_stats[cursor]
                        stat.record(card)
                        tag_set.add(stat.id)
                        nxt = self._next_available(cursor, start)
                        if nxt < 0:
                            # wrapped to where this item started: item stays short
                            cursor = start
                            break
                        cursor = nxt
                items.append(Item(item_id, f"Item {item_id}", frozenset(tag_set)))

                if n_tags > 0 and not self.tag_stats[cursor].available:
                    nxt = self._next_available(cursor, cursor)
                    if nxt >= 0:
                        cursor = nxt
        return items

    def __str__(self):
        return (f"GeneratedCollection(items={self.num_items}, tags={self.num_tags}, "
                f"unused={self.num_unused_tags}, avg={self.avg_frequency}, max={self.max_frequency}, "
                f"by_cardinality={self.num_items_by_cardinality})")


def generate(parameters: Optional[DataParameters] = None) -> GeneratedCollection:
    return GeneratedCollection(parameters)
