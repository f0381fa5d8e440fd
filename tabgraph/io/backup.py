from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import polars as pl

from ..core._helpers import BOOKKEEPING_COLS, _owner_kind
from ..core._History import ActionLogEntry

if TYPE_CHECKING:
    from ..core.graph import Graph

BACKUP_EXT = ".tabgraph"
FORMAT_VERSION = "1.0.0"


def backup_name(graph) -> str:
    """Directory name for a fresh backup: ``<graph_name>_<UTC timestamp>.tabgraph``."""
    stem = graph.graph_info.get("graph_name") or "graph"
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{stem}_{stamp}_v{graph._version}{BACKUP_EXT}"


def write_backup(graph, directory: str | Path, *, compression="zstd") -> Path:
    """Write a full snapshot of ``graph`` into a new directory under ``directory``.

    Parameters
    ----------
    directory : str | Path
        Parent directory; created if missing.
    compression : str, default "zstd"
        Parquet compression codec.

    Returns
    -------
    Path
        The backup directory.

    Notes
    -----
    Layout::

        manifest.json          graph_info, counts, version, table owners
        vertices.parquet       vertex_attributes (row order = vertex order)
        edges.parquet          edge_id, from, to, rel (row order = edge order)
        edge_attributes.parquet
        tables/<df_id>.parquet attached tables, bookkeeping columns included
        history.ndjson         action log

    """
    root = Path(directory) / backup_name(graph)
    root.mkdir(parents=True, exist_ok=False)

    entries = graph.tables.entries()
    manifest = {
        "format": "tabgraph",
        "version": FORMAT_VERSION,
        "created": datetime.now(UTC).isoformat(),
        "graph_version": graph._version,
        "history_enabled": graph._history_enabled,
        "next_ids": {"vertex": graph._next_vertex_id, "edge": graph._next_edge_id},
        "graph_info": {k: _json_safe(v) for k, v in graph.graph_info.items()},
        "counts": {
            "vertices": graph.number_of_vertices(),
            "edges": graph.number_of_edges(),
            "tables": len(entries),
        },
        "tables": [
            {"df_id": df_id, "owner_kind": kind.value, "owner_id": owner}
            for df_id, kind, owner, _table in entries
        ],
        "issued_ids": sorted(graph.tables.issued_ids),
    }
    (root / "manifest.json").write_text(json.dumps(manifest, indent=2))

    graph.vertex_attributes.write_parquet(root / "vertices.parquet", compression=compression)
    graph.edge_attributes.write_parquet(root / "edge_attributes.parquet", compression=compression)
    edges = graph.edges()
    pl.DataFrame(
        {
            "edge_id": edges,
            "from": [graph.edge_definitions[e][0] for e in edges],
            "to": [graph.edge_definitions[e][1] for e in edges],
            "rel": [graph.edge_definitions[e][2] for e in edges],
        },
        schema={"edge_id": pl.Int64, "from": pl.Int64, "to": pl.Int64, "rel": pl.Utf8},
    ).write_parquet(root / "edges.parquet", compression=compression)

    tables_dir = root / "tables"
    tables_dir.mkdir()
    for df_id, _kind, _owner, table in entries:
        table.write_parquet(tables_dir / f"{df_id}.parquet", compression=compression)

    with open(root / "history.ndjson", "w", encoding="utf-8") as f:
        for evt in graph.history():
            f.write(json.dumps(evt.to_dict(), ensure_ascii=False) + "\n")

    return root


def read_backup(path: str | Path) -> Graph:
    """Restore a graph written by :func:`write_backup`.

    Raises
    ------
    FileNotFoundError
        If ``path`` or its manifest is missing.
    ValueError
        If the manifest is not a tabgraph backup.

    """
    from ..core.graph import Graph

    root = Path(path)
    if not (root / "manifest.json").exists():
        raise FileNotFoundError(f"{path} is not a backup directory (no manifest.json)")
    manifest = json.loads((root / "manifest.json").read_text())
    if manifest.get("format") != "tabgraph":
        raise ValueError(f"{path}: unknown backup format {manifest.get('format')!r}")

    info = manifest["graph_info"]
    G = Graph(
        directed=info.get("directed", True),
        graph_name=info.get("graph_name"),
        write_backups=info.get("write_backups", False),
        backup_dir=info.get("backup_dir"),
        history=False,
    )

    # structure (history off so nothing is logged)
    vertices = pl.read_parquet(root / "vertices.parquet")
    for vid in vertices.get_column("vertex_id").to_list():
        G.add_vertex(vid)
    for eid, src, tgt, rel in pl.read_parquet(root / "edges.parquet").iter_rows():
        G.add_edge(src, tgt, rel=rel, edge_id=eid)
    G.vertex_attributes = vertices
    G.edge_attributes = pl.read_parquet(root / "edge_attributes.parquet")

    for rec in manifest["tables"]:
        table = pl.read_parquet(root / "tables" / f"{rec['df_id']}.parquet")
        G.tables.insert(
            rec["df_id"],
            _owner_kind(rec["owner_kind"]),
            rec["owner_id"],
            table.drop(list(BOOKKEEPING_COLS)),
        )

    history_path = root / "history.ndjson"
    if history_path.exists():
        with open(history_path, encoding="utf-8") as f:
            G._history = [ActionLogEntry(**json.loads(line)) for line in f if line.strip()]

    # ids evicted before the backup stay retired
    G.tables.issued_ids.update(manifest.get("issued_ids", []))
    G.graph_info.update(info)
    G._next_vertex_id = manifest["next_ids"]["vertex"]
    G._next_edge_id = manifest["next_ids"]["edge"]
    G._version = manifest["graph_version"]
    G._history_enabled = manifest["history_enabled"]
    return G


def _json_safe(v):
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    return str(v)
