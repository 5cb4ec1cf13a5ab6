
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional

from generated_data import GeneratedCollection
from cooccurrence_graph import CoOccurrenceGraph, DistanceType, StatsEntry, IslandStat, NodeConnectStat
from network_layout import NetworkLayout

HERE = Path(__file__).resolve().parent
ROOT = HERE  # repo root


def tags_frame(data: GeneratedCollection) -> pd.DataFrame:
    return pd.DataFrame([t._asdict() for t in data.tags], columns=["id", "name"])


def items_frame(data: GeneratedCollection) -> pd.DataFrame:
    """One row per item; tag ids as a sorted, space separated string."""
    rows = [{"id": it.id, "name": it.name, "cardinality": it.cardinality,
             "tags": " ".join(str(t) for t in sorted(it.tag_set))} for it in data.items]
    return pd.DataFrame(rows, columns=["id", "name", "cardinality", "tags"])


def tag_stats_frame(data: GeneratedCollection) -> pd.DataFrame:
    """Target and actual occurrences per tag, with one column per item cardinality."""
    rows = []
    for stat in data.tag_stats:
        row = {"id": stat.id, "target": stat.target, "occurs": stat.occurs}
        for i, n in enumerate(stat.occurs_by_cardinality):
            row[f"card_{i + 1}"] = n
        rows.append(row)
    columns = ["id", "target", "occurs"] + [f"card_{i + 1}" for i in range(data.num_cardinalities)]
    return pd.DataFrame(rows, columns=columns)


def cardinality_frame(data: GeneratedCollection) -> pd.DataFrame:
    """Requested vs built item counts per cardinality."""
    return pd.DataFrame({
        "cardinality": np.arange(len(data.num_items_by_cardinality)),
        "requested": data.num_items_by_cardinality,
        "built": data.built_items_by_cardinality,
    })


def stats_frame(entries: List[StatsEntry]) -> pd.DataFrame:
    return pd.DataFrame([{"id": e.id, "low_bound": e.low_bound, "high_bound": e.high_bound,
                          "count": e.count, "mean": e.mean, "std": e.std} for e in entries],
                        columns=["id", "low_bound", "high_bound", "count", "mean", "std"])


def distance_summary_frame(graph: CoOccurrenceGraph) -> pd.DataFrame:
    """distance_stats() of every metric, indexed by metric name."""
    df = stats_frame([graph.distance_stats(kind) for kind in DistanceType])
    df.index = [kind.value for kind in DistanceType]
    return df.drop(columns="id")


def histogram_frame(graph: CoOccurrenceGraph, kind: DistanceType, bins: int) -> pd.DataFrame:
    return stats_frame(graph.histogram(kind, bins))


def island_stats_frame(islands: List[IslandStat]) -> pd.DataFrame:
    rows = [{"id": s.id, "size": len(s.nodes), "min_adjacent": s.min_adjacent,
             "max_adjacent": s.max_adjacent, "avg_adjacent": s.avg_adjacent,
             "num_with_max": s.num_with_max, "num_with_1_adj": s.num_with_1_adj,
             "num_with_2_adj": s.num_with_2_adj, "num_with_3_adj": s.num_with_3_adj,
             "num_with_4_adj": s.num_with_4_adj, "num_with_many": s.num_with_many} for s in islands]
    return pd.DataFrame(rows)


def node_connect_frame(stats: List[NodeConnectStat]) -> pd.DataFrame:
    """Per-node connectivity; the per-neighbour maps are left out."""
    columns = ["id", "num_no_connect", "num_adjacent", "num_indirect", "min_adj_tagset",
               "max_adj_tagset", "avg_adj_tagset", "num_below_avg"]
    return pd.DataFrame([{c: getattr(s, c) for c in columns} for s in stats], columns=columns)


def _set_to_str(values) -> str:
    return " ".join(str(v) for v in sorted(values))


def layout_frames(layout: NetworkLayout) -> Dict[str, pd.DataFrame]:
    """islands / regions / nodes / edges of a layout, one frame each, sets flattened to strings."""
    frames = {}
    for name, entries in (("islands", layout.islands()), ("regions", layout.regions()),
                          ("nodes", layout.nodes()), ("edges", layout.edges())):
        rows = []
        for entry in entries:
            row = entry._asdict()
            for key, value in row.items():
                if isinstance(value, (set, frozenset)):
                    row[key] = _set_to_str(value)
            if name == "edges":
                row["n1"], row["n2"] = row.pop("pair")
            rows.append(row)
        frames[name] = pd.DataFrame(rows)
    return frames


def write_frames(frames: Dict[str, pd.DataFrame], folder: Optional[Path] = None) -> List[Path]:
    """Write each frame to <folder>/<name>.csv; returns the paths written."""
    folder = Path(folder) if folder is not None else ROOT / "output"
    folder.mkdir(parents=True, exist_ok=True)
    paths = []
    for name, df in frames.items():
        path = folder / f"{name}.csv"
        df.to_csv(path, index=False)
        paths.append(path)
    return paths
