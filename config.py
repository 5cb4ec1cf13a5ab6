
# Generator defaults (used by the CLI when no option is given)
DEFAULT_NUM_ITEMS = 100
DEFAULT_NUM_TAGS = 10
DEFAULT_FORCE_UNUSED_TAGS = False
# index = cardinality of an item's tag set, value = proportion of items
DEFAULT_CARDINALITY_PROPORTIONS = (0.0, 0.2, 0.4, 0.2, 0.1, 0.1)
DEFAULT_AVG_TAG_FREQUENCY = 0.1
DEFAULT_MAX_TAG_FREQUENCY = 0.2

# generator corrections: bad parameters are replaced, never rejected
MIN_NUM_ITEMS = 3
FALLBACK_AVG_TAG_FREQUENCY = 0.05
NUM_FORCED_UNUSED_TAGS = 2 # extra tags with target 0 when unused tags are forced

# layout
ASPECT_RATIO = 2.5 # grid columns / rows
MIN_SPLIT_THRESHOLD = 20 # nodes per region we aim for; also island padding divisor
MAX_SPLIT_THRESHOLD = 50 # islands below this are never split; also region capacity
GRID_MARGIN = 1 # empty cells around the whole grid

# display helpers
MIN_SCALE_FACTOR = 10.0 # smallest display units per grid cell
NODE_SEARCH_RADIUS = 5.0 # grid units searched around a tap

# reporting
HISTOGRAM_BINS = (4, 5, 10, 20, 50, 100)
DEFAULT_BINS = 10
