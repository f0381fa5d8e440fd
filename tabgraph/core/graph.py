import warnings
from datetime import UTC, datetime

import numpy as np
import polars as pl
import scipy.sparse as sp

from ._Annotation import AttributesClass
from ._helpers import DF_ID_ATTR, OwnerKind
from ._History import History
from ._Ids import IdMinter
from ._Tables import TablesClass
from ._TableStore import TableStore

# ===================================


class Graph(AttributesClass, History, TablesClass):
    """Property graph whose vertices and edges can each carry one attached table.

    Vertices and edges are integer IDs kept in insertion order. Structure lives
    in a DOK (Dictionary Of Keys) incidence matrix; scalar attributes live in
    Polars DF (DataFrame) tables keyed by ``vertex_id`` / ``edge_id``; attached
    tables live in a :class:`TableStore` and are referenced from the owner's
    ``df_id`` attribute. Every public mutation is recorded in the action log.

    Parameters
    --
    directed : bool, default True
    graph_name : str, optional
    write_backups : bool, default False
        Write a backup directory after each table attach/detach.
    backup_dir : str | Path, optional
        Where backups go. Required for backups to be written.
    history : bool, default True
        Record the action log.
    rng : numpy.random.Generator | int, optional
        Random source (or seed) for ``df_id`` minting.

    Notes
    -
    - Incidence columns encode orientation: +1 on source, -1 on target for
      directed graphs; +1 on both endpoints otherwise.
    - Attributes are **pure**: structural keys are filtered out so attribute tables
      contain only user data.

    """

    # Constants (Attribute helpers)
    _vertex_RESERVED = {"vertex_id"}
    _EDGE_RESERVED = {"edge_id", "from", "to"}

    # Construction

    def __init__(
        self,
        directed=True,
        graph_name=None,
        write_backups=False,
        backup_dir=None,
        history=True,
        rng=None,
        n: int = 0,
        e: int = 0,
    ):
        self.directed = bool(directed)

        # Vertex mappings
        self.entity_to_idx = {}  # vertex_id -> row index
        self.idx_to_entity = {}  # row index -> vertex_id

        # Edge mappings
        self.edge_to_idx = {}  # edge_id -> column index
        self.idx_to_edge = {}  # column index -> edge_id
        self.edge_definitions = {}  # edge_id -> (from, to, rel)

        self._num_entities = 0
        self._num_edges = 0
        self._next_vertex_id = 1
        self._next_edge_id = 1

        # pre-size the incidence matrix to capacity (no zeros allocated in DOK)
        n = int(n) if n and n > 0 else 0
        e = int(e) if e and e > 0 else 0
        self._matrix = sp.dok_matrix((n, e), dtype=np.float32)

        # Attribute storage using polars DataFrames
        self.vertex_attributes = pl.DataFrame(schema={"vertex_id": pl.Int64})
        self.edge_attributes = pl.DataFrame(schema={"edge_id": pl.Int64})

        # Attached tables
        self.tables = TableStore()
        self._id_minter = IdMinter(rng)

        # Graph-level configuration
        self.graph_info = {
            "graph_name": graph_name,
            "graph_time": datetime.now(UTC).isoformat(timespec="seconds"),
            "directed": self.directed,
            "write_backups": bool(write_backups),
            "backup_dir": backup_dir,
        }

        # History and Timeline
        self._history_enabled = bool(history)
        self._history = []  # list[ActionLogEntry]
        self._version = 0
        self._install_history_hooks()  # wrap mutating methods

    def _grow_to(self, rows: int, cols: int):
        r, c = self._matrix.shape
        if rows > r or cols > c:
            # geometric bump, minimum step 8
            new_rows = max(rows, r + max(8, r >> 1)) if rows > r else r
            new_cols = max(cols, c + max(8, c >> 1)) if cols > c else c
            self._matrix.resize((new_rows, new_cols))

    # Build graph

    def add_vertex(self, vertex_id=None, type=None, label=None, **attributes):
        """Add a vertex.

        Parameters
        --
        vertex_id : int, optional
            Explicit ID. Defaults to the next free integer (starting at 1).
        type, label : str, optional
            Stored as ordinary attributes when given.
        **attributes
            Pure vertex attributes to store.

        Returns
        ---
        int
            The vertex ID.

        Raises
        --
        ValueError
            If ``vertex_id`` already exists or is not an integer.

        """
        if vertex_id is None:
            vertex_id = self._next_vertex_id
        if isinstance(vertex_id, bool) or not isinstance(vertex_id, (int, np.integer)):
            raise ValueError(f"Vertex IDs must be integers, got {vertex_id!r}")
        vertex_id = int(vertex_id)
        if vertex_id in self.entity_to_idx:
            raise ValueError(f"Vertex {vertex_id} already exists")

        idx = self._num_entities
        self.entity_to_idx[vertex_id] = idx
        self.idx_to_entity[idx] = vertex_id
        self._num_entities = idx + 1
        self._next_vertex_id = max(self._next_vertex_id, vertex_id + 1)
        self._grow_to(self._num_entities, self._matrix.shape[1])

        self.vertex_attributes = self.vertex_attributes.vstack(
            pl.DataFrame({"vertex_id": [vertex_id]}, schema={"vertex_id": pl.Int64}).select(
                [
                    pl.col("vertex_id") if c == "vertex_id" else pl.lit(None).cast(t).alias(c)
                    for c, t in self.vertex_attributes.schema.items()
                ]
            )
        )

        attrs = {k: v for k, v in (("type", type), ("label", label)) if v is not None}
        attrs.update(attributes)
        attrs = {k: v for k, v in attrs.items() if k not in self._vertex_RESERVED}
        if attrs:
            self.vertex_attributes = self._upsert_row(self.vertex_attributes, vertex_id, attrs)
        return vertex_id

    def add_vertices(self, vertices, **attributes):
        """Add several vertices.

        Parameters
        --
        vertices : int | Iterable[int]
            A count of new auto-numbered vertices, or explicit IDs.
        **attributes
            Shared attributes applied to every new vertex.

        Returns
        ---
        list[int]

        """
        if isinstance(vertices, (int, np.integer)) and not isinstance(vertices, bool):
            ids = [None] * int(vertices)
        else:
            ids = list(vertices)
        # use the unwrapped method so the batch logs once
        add = getattr(self.add_vertex, "__wrapped__", self.add_vertex)
        return [add(v, **attributes) for v in ids]

    def add_edge(self, source, target, rel=None, edge_id=None, **attributes):
        """Add an edge between two existing vertices.

        Parameters
        --
        source, target : int
        rel : str, optional
            Relationship label, stored as the ``rel`` attribute.
        edge_id : int, optional
            Explicit ID. Defaults to the next free integer (starting at 1).
        **attributes
            Pure edge attributes.

        Returns
        ---
        int
            The edge ID.

        Raises
        --
        KeyError
            If an endpoint is not a vertex.

        """
        for v in (source, target):
            if v not in self.entity_to_idx:
                raise KeyError(f"Vertex {v} not found")
        if edge_id is None:
            edge_id = self._next_edge_id
        edge_id = int(edge_id)
        if edge_id in self.edge_to_idx:
            raise ValueError(f"Edge {edge_id} already exists")

        col = self._num_edges
        self.edge_to_idx[edge_id] = col
        self.idx_to_edge[col] = edge_id
        self._num_edges = col + 1
        self._next_edge_id = max(self._next_edge_id, edge_id + 1)
        self.edge_definitions[edge_id] = (source, target, rel)
        self._grow_to(self._matrix.shape[0], self._num_edges)

        s, t = self.entity_to_idx[source], self.entity_to_idx[target]
        if self.directed:
            self._matrix[s, col] = 1.0
            if t != s:
                self._matrix[t, col] = -1.0
        else:
            self._matrix[s, col] = 1.0
            self._matrix[t, col] = 1.0

        self.edge_attributes = self.edge_attributes.vstack(
            pl.DataFrame({"edge_id": [edge_id]}, schema={"edge_id": pl.Int64}).select(
                [
                    pl.col("edge_id") if c == "edge_id" else pl.lit(None).cast(tp).alias(c)
                    for c, tp in self.edge_attributes.schema.items()
                ]
            )
        )
        attrs = {"rel": rel} if rel is not None else {}
        attrs.update({k: v for k, v in attributes.items() if k not in self._EDGE_RESERVED})
        if attrs:
            self.edge_attributes = self._upsert_row(self.edge_attributes, edge_id, attrs)
        return edge_id

    # Remove

    def remove_edge(self, edge_id):
        """Remove an edge, its attributes and its attached table.

        Raises
        --
        KeyError
            If the edge is not found.

        """
        self._remove_edge(edge_id)

    def _remove_edge(self, edge_id):
        if edge_id not in self.edge_to_idx:
            raise KeyError(f"Edge {edge_id} not found")

        col_idx = self.edge_to_idx[edge_id]

        # Rebuild DOK with columns > col_idx shifted left by 1
        M_old = self._matrix
        rows, cols = M_old.shape
        M_new = sp.dok_matrix((rows, cols - 1), dtype=M_old.dtype)
        for (r, c), v in M_old.items():
            if c == col_idx:
                continue
            M_new[r, c - 1 if c > col_idx else c] = v
        self._matrix = M_new

        # mappings (preserve relative order of remaining edges)
        del self.edge_to_idx[edge_id]
        for old_idx in range(col_idx + 1, self._num_edges):
            eid = self.idx_to_edge.pop(old_idx)
            self.idx_to_edge[old_idx - 1] = eid
            self.edge_to_idx[eid] = old_idx - 1
        self.idx_to_edge.pop(self._num_edges - 1, None)
        self._num_edges -= 1

        self.edge_definitions.pop(edge_id, None)
        self.edge_attributes = self.edge_attributes.filter(pl.col("edge_id") != edge_id)
        self.tables.drop_owner(OwnerKind.EDGE, edge_id)

    def remove_vertex(self, vertex_id):
        """Remove a vertex, its incident edges, and every table attached to them.

        Raises
        --
        KeyError
            If the vertex is not found.

        """
        if vertex_id not in self.entity_to_idx:
            raise KeyError(f"Vertex {vertex_id} not found")

        for eid, (src, tgt, _rel) in list(self.edge_definitions.items()):
            if vertex_id in (src, tgt):
                self._remove_edge(eid)

        entity_idx = self.entity_to_idx[vertex_id]

        # row removal: rebuild DOK with rows-1 and shift indices
        M_old = self._matrix
        rows, cols = M_old.shape
        M_new = sp.dok_matrix((rows - 1, cols), dtype=M_old.dtype)
        for (r, c), v in M_old.items():
            if r == entity_idx:
                continue
            M_new[r - 1 if r > entity_idx else r, c] = v
        self._matrix = M_new

        del self.entity_to_idx[vertex_id]
        for old_idx in range(entity_idx + 1, self._num_entities):
            ent_id = self.idx_to_entity.pop(old_idx)
            self.idx_to_entity[old_idx - 1] = ent_id
            self.entity_to_idx[ent_id] = old_idx - 1
        self.idx_to_entity.pop(self._num_entities - 1, None)
        self._num_entities -= 1

        self.vertex_attributes = self.vertex_attributes.filter(pl.col("vertex_id") != vertex_id)
        self.tables.drop_owner(OwnerKind.NODE, vertex_id)

    # Queries

    def vertices(self):
        """All vertex IDs in insertion order."""
        return [self.idx_to_entity[i] for i in range(self._num_entities)]

    def edges(self):
        """All edge IDs in insertion order."""
        return [self.idx_to_edge[i] for i in range(self._num_edges)]

    def number_of_vertices(self):
        return self._num_entities

    def number_of_edges(self):
        return self._num_edges

    def has_vertex(self, vertex_id) -> bool:
        if isinstance(vertex_id, (bool, np.bool_)):
            return False
        try:
            return vertex_id in self.entity_to_idx
        except TypeError:
            return False

    def has_edge(self, edge_id) -> bool:
        if isinstance(edge_id, (bool, np.bool_)):
            return False
        try:
            return edge_id in self.edge_to_idx
        except TypeError:
            return False

    def has_vertices(self) -> bool:
        return self._num_entities > 0

    def has_edges(self) -> bool:
        return self._num_edges > 0

    def edge_endpoints(self, edge_id):
        """``(from, to)`` of an edge."""
        if edge_id not in self.edge_definitions:
            raise KeyError(f"Edge {edge_id} not found")
        src, tgt, _rel = self.edge_definitions[edge_id]
        return src, tgt

    def degree(self, vertex_id):
        """Number of incident edges of a vertex (0 if absent)."""
        if vertex_id not in self.entity_to_idx:
            return 0
        row = self._matrix.getrow(self.entity_to_idx[vertex_id])
        return len(row.nonzero()[1])

    def incidence_matrix(self):
        """Incidence matrix trimmed to the logical shape, as CSR [Compressed Sparse Row]."""
        return self._matrix.tocsr()[: self._num_entities, : self._num_edges]

    # Validation

    def is_valid(self) -> bool:
        """Structural validity check.

        Vertex IDs are unique integers, edges join existing vertices, index maps
        agree with the incidence matrix shape, attribute tables hold exactly
        one row per element, and every stored table's owner exists.
        """
        if len(self.entity_to_idx) != self._num_entities or len(self.edge_to_idx) != self._num_edges:
            return False
        if any(isinstance(v, bool) or not isinstance(v, int) for v in self.entity_to_idx):
            return False
        rows, cols = self._matrix.shape
        if rows < self._num_entities or cols < self._num_edges:
            return False
        for src, tgt, _rel in self.edge_definitions.values():
            if src not in self.entity_to_idx or tgt not in self.entity_to_idx:
                return False
        audit = self.audit_attributes()
        if any(audit.values()):
            return False
        for kind, owner in (self.tables.owner_of(i) for i in self.tables):
            exists = self.has_vertex(owner) if kind is OwnerKind.NODE else self.has_edge(owner)
            if not exists:
                return False
        return True

    def audit_tables(self):
        """Cross-check ``df_id`` attributes against the table store.

        Returns
        ---
        dict
            {
            'dangling_vertex_df_ids': list[int],   # df_id set but no such table
            'dangling_edge_df_ids': list[int],
            'mismatched_owners': list[str],        # table owned by someone else
            'unreferenced_tables': list[str],      # table whose owner's df_id differs
            }

        """
        out = {
            "dangling_vertex_df_ids": [],
            "dangling_edge_df_ids": [],
            "mismatched_owners": [],
            "unreferenced_tables": [],
        }
        for kind, attrs, key, bucket in (
            (OwnerKind.NODE, self.vertex_attributes, "vertex_id", "dangling_vertex_df_ids"),
            (OwnerKind.EDGE, self.edge_attributes, "edge_id", "dangling_edge_df_ids"),
        ):
            if DF_ID_ATTR not in attrs.columns:
                continue
            for owner, df_id in attrs.select(key, DF_ID_ATTR).iter_rows():
                if df_id is None:
                    continue
                if df_id not in self.tables:
                    out[bucket].append(owner)
                elif self.tables.owner_of(df_id) != (kind, owner):
                    out["mismatched_owners"].append(df_id)
        for df_id in self.tables:
            kind, owner = self.tables.owner_of(df_id)
            getter = self.get_attr_vertex if kind is OwnerKind.NODE else self.get_attr_edge
            if getter(owner, DF_ID_ATTR) != df_id:
                out["unreferenced_tables"].append(df_id)
        return out

    # Backups

    def _maybe_backup(self, stacklevel: int = 3):
        """INTERNAL: post-mutation backup hook, gated by ``graph_info['write_backups']``.

        The mutation has already happened when this runs, so a backup that
        cannot be written is reported as a warning and never raised.
        ``stacklevel`` is passed to ``warnings.warn`` and should point at the
        public mutator's caller.
        """
        if not self.graph_info.get("write_backups"):
            return None
        backup_dir = self.graph_info.get("backup_dir")
        if backup_dir is None:
            warnings.warn(
                "write_backups is set but no backup_dir is configured; skipping backup",
                stacklevel=stacklevel,
            )
            return None
        from ..io.backup import write_backup

        try:
            return write_backup(self, backup_dir)
        except OSError as exc:
            warnings.warn(f"Backup to {backup_dir} failed: {exc}", stacklevel=stacklevel)
            return None

    # Copy

    def copy(self, history: bool = False):
        """Deep copy of the graph, attached tables included.

        Parameters
        ----------
        history : bool
            If True, copy the action log and version counter.
            If False, the new graph starts with a clean history.

        """
        new = Graph(
            directed=self.directed,
            history=self._history_enabled,
            n=self._num_entities,
            e=self._num_edges,
        )
        new._matrix = self._matrix.copy()

        new._num_entities = self._num_entities
        new.entity_to_idx = self.entity_to_idx.copy()
        new.idx_to_entity = self.idx_to_entity.copy()
        new._next_vertex_id = self._next_vertex_id

        new._num_edges = self._num_edges
        new.edge_to_idx = self.edge_to_idx.copy()
        new.idx_to_edge = self.idx_to_edge.copy()
        new.edge_definitions = dict(self.edge_definitions)
        new._next_edge_id = self._next_edge_id

        new.vertex_attributes = self.vertex_attributes.clone()
        new.edge_attributes = self.edge_attributes.clone()

        new.tables = self.tables.copy()
        new._id_minter = self._id_minter
        new.graph_info = dict(self.graph_info)

        if history:
            # entries are immutable, a shallow list copy is enough
            new._history = list(self._history)
            new._version = self._version
        return new

    def __repr__(self):
        name = self.graph_info.get("graph_name")
        head = f"Graph '{name}'" if name else "Graph"
        return (
            f"{head}(vertices={self._num_entities}, edges={self._num_edges}, "
            f"tables={len(self.tables)}, directed={self.directed})"
        )

    def __len__(self):
        return self._num_entities
