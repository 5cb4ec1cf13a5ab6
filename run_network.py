import argparse
import sys
from pathlib import Path
import logging
from datetime import datetime
import matplotlib.pyplot as plt
import networkx as nx

import data_processing, evaluation
from config import (DEFAULT_NUM_ITEMS, DEFAULT_NUM_TAGS, DEFAULT_CARDINALITY_PROPORTIONS,
                    DEFAULT_AVG_TAG_FREQUENCY, DEFAULT_MAX_TAG_FREQUENCY, DEFAULT_BINS, HISTOGRAM_BINS,
                    ASPECT_RATIO)
from generated_data import DataParameters, generate
from cooccurrence_graph import CoOccurrenceGraph, DistanceType
from network_layout import NetworkLayout
from plotting import build_graph, plot_layout, plot_distance_histograms, plot_layout_interactive

HERE = Path(__file__).resolve().parent
ROOT = HERE  # repo root
sys.path.append(str(ROOT))

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate tagged items, analyse the tag co-occurrence graph and lay it out.")
    parser.add_argument("--num-items", type=int, default=DEFAULT_NUM_ITEMS, help="Number of items to generate.")
    parser.add_argument("--num-tags", type=int, default=DEFAULT_NUM_TAGS,
                        help="Requested number of tags (raised if too few for the frequencies).")
    parser.add_argument("--force-unused-tags", action="store_true",
                        help="Add two tags that are never assigned.")
    parser.add_argument("--proportions", type=float, nargs="+", default=list(DEFAULT_CARDINALITY_PROPORTIONS),
                        help="Proportion of items per tag-set size, starting at size 0.")
    parser.add_argument("--avg-freq", type=float, default=DEFAULT_AVG_TAG_FREQUENCY,
                        help="Average share of items carrying a tag.")
    parser.add_argument("--max-freq", type=float, default=DEFAULT_MAX_TAG_FREQUENCY,
                        help="Maximum share of items carrying a tag.")
    parser.add_argument("--bins", type=int, default=DEFAULT_BINS, choices=HISTOGRAM_BINS, help="Histogram bins.")
    parser.add_argument("--aspect", type=float, default=ASPECT_RATIO, help="Layout grid aspect ratio (cols/rows).")
    parser.add_argument("--plot", action="store_true", help="Save layout and histogram plots and show the interactive layout.")
    parser.add_argument("--export", action="store_true", help="Write CSV tables of the results.")
    parser.add_argument("--log-dir", type=Path, default=ROOT / "logs", help="Folder for the run log pair.")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO"],
                        help="Lowest level written to the main log and the console.")
    parser.add_argument("--quiet", action="store_true", help="Log to files only.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    main_log, imp_log = setup_logging(args.log_dir, run_tag=f"items{args.num_items}-tags{args.num_tags}",
                                      level=getattr(logging, args.log_level), console=not args.quiet)
    logger.info("Logging to %s", main_log)
    logger.info("Important log at %s", imp_log)

    params = DataParameters(num_items=args.num_items, num_tags=args.num_tags,
                            force_unused_tags=args.force_unused_tags,
                            cardinality_proportions=tuple(args.proportions),
                            avg_tag_frequency=args.avg_freq, max_tag_frequency=args.max_freq)

    data = generate(params)
    logger.important("Generated: %s", data)
    logger.important("Items by cardinality (requested): %s", data.num_items_by_cardinality)
    logger.important("Items by cardinality (built):     %s", data.built_items_by_cardinality)

    # tag ids are 1-based, matrix rows 0-based
    graph = CoOccurrenceGraph(data.num_tags, adjustment=-1)
    for item in data.items:
        graph.add(item.tag_set)
    logger.important("Graph: %s", graph)

    logger.important("")
    logger.important("Distance stats:")
    for kind in DistanceType:
        logger.important("  %s: %s", kind.value, graph.distance_stats(kind))

    errors = graph.validate_distance_matrix(DistanceType.PATH_LENGTH)
    if errors:
        logger.warning("%d path lengths are not minimal, first: %s", len(errors), errors[0])
    if not evaluation.check_components(graph):
        logger.warning("Connected components disagree with networkx.")
    for diff in evaluation.compare_island_stats(graph):
        logger.info("Island statistics differ: %s", diff)

    islands = graph.island_stats()
    logger.important("")
    logger.important("Islands: %s", evaluation.island_summary(islands))
    for island in islands:
        logger.important("  %s", island)

    layout = NetworkLayout(graph, data.tags, aspect_ratio=args.aspect)
    layout.cache_results()
    logger.important("")
    logger.important("Layout: %s", layout)
    logger.important("  %d regions, %d nodes, %d edges",
                     len(layout.regions()), len(layout.nodes()), len(layout.edges()))

    base_tag = f"items{data.num_items}-tags{data.num_tags}"

    if args.export:
        frames = {
            "tags": data_processing.tags_frame(data),
            "items": data_processing.items_frame(data),
            "tag_stats": data_processing.tag_stats_frame(data),
            "cardinality": data_processing.cardinality_frame(data),
            "distance_stats": data_processing.distance_summary_frame(graph).reset_index(names="metric"),
            "island_stats": data_processing.island_stats_frame(islands),
            "node_connect": data_processing.node_connect_frame(graph.node_connect_stats()),
        }
        for kind in DistanceType:
            frames[f"histogram_{kind.value}"] = data_processing.histogram_frame(graph, kind, args.bins)
        frames.update(data_processing.layout_frames(layout))
        paths = data_processing.write_frames(frames, ROOT / "output" / base_tag)
        logger.important("Wrote %d tables to %s", len(paths), paths[0].parent)
        graphml = paths[0].parent / "graph.graphml"
        nx.write_graphml(build_graph(graph, data.tags), graphml)
        logger.important("Wrote graph to %s", graphml)

    if args.plot:
        plot_folder = Path(ROOT / "plots" / base_tag)
        plot_folder.mkdir(parents=True, exist_ok=True)

        ax = plot_layout(layout, title=base_tag)
        ax.figure.savefig(plot_folder / "layout.png", dpi=220, bbox_inches="tight")
        plt.close(ax.figure)
        fig = plot_distance_histograms(graph, args.bins, save_path=plot_folder / "histograms.png")
        plt.close(fig)
        logger.important("Plots saved to %s", plot_folder)

        fig = plot_layout_interactive(layout)
        fig.show()


IMPORTANT = 25 # between INFO and WARNING


def _important(self, msg, *args, **kwargs):
    kwargs.setdefault("extra", {})["important"] = True
    if self.isEnabledFor(IMPORTANT):
        self._log(IMPORTANT, msg, args, **kwargs)


class StarFilter(logging.Filter):
    """Adds the `star` field: a marker on important records, empty otherwise."""
    def filter(self, record):
        record.star = " *" if getattr(record, "important", False) else ""
        return True


class ImportantOnly(logging.Filter):
    def filter(self, record):
        return getattr(record, "important", False)


def setup_logging(log_dir=None, run_tag: str = "run", level=logging.INFO, console: bool = True):
    """
    Install the run handlers on the root logger and return the two log paths.

    <log_dir>/<run_tag>-<timestamp>.log gets every record at `level` or above,
    starred when logged through `logger.important`; the -important.log twin
    gets only those. Earlier root handlers are closed and replaced.
    """
    log_dir = Path(log_dir) if log_dir is not None else ROOT / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    main_log_path = log_dir / f"{run_tag}-{stamp}.log"
    imp_log_path = log_dir / f"{run_tag}-{stamp}-important.log"

    logging.addLevelName(IMPORTANT, "IMPORTANT")
    logging.Logger.important = _important

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    main_fh = logging.FileHandler(main_log_path, encoding="utf-8")
    main_fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s]%(star)s %(name)s: %(message)s"))
    main_fh.addFilter(StarFilter())
    root.addHandler(main_fh)

    imp_fh = logging.FileHandler(imp_log_path, encoding="utf-8")
    imp_fh.setFormatter(logging.Formatter("%(asctime)s %(name)s: %(message)s"))
    imp_fh.addFilter(ImportantOnly())
    root.addHandler(imp_fh)

    if console:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("[%(levelname)s]%(star)s %(message)s"))
        ch.addFilter(StarFilter())
        root.addHandler(ch)

    return main_log_path, imp_log_path


if __name__ == "__main__":
    main()
