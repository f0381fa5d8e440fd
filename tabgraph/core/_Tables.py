import polars as pl

from ._errors import (
    EmptyGraphError,
    InvalidGraphError,
    MultipleTargetsError,
    UnknownEdgeError,
    UnknownVertexError,
)
from ._helpers import (
    BOOKKEEPING_COLS,
    DF_ID_ATTR,
    OWNER_ID_COL,
    OWNER_KIND_COL,
    OwnerKind,
    _as_id_list,
    _public_table,
    to_polars_frame,
)


class TablesClass:
    # Dataframes attached to vertices and edges

    def set_df_as_node_attr(self, node, df):
        """Bind a dataframe to one vertex as its table attribute.

        A fresh 8-character ``df_id`` is minted, the table is stored with the
        bookkeeping columns ``df_id``, ``node_edge`` and ``id`` in front of its
        own columns, any table previously bound to the vertex is dropped, and
        the vertex's ``df_id`` attribute is set to the new id.

        Parameters
        --
        node : int
            Target vertex ID. A one-element sequence is accepted.
        df : polars.DataFrame | pandas.DataFrame | pyarrow.Table | dict
            Table to bind.

        Returns
        ---
        Graph
            The graph (mutated).

        Raises
        --
        InvalidGraphError
            The graph fails validation.
        EmptyGraphError
            The graph has no vertices.
        MultipleTargetsError
            More than one vertex ID was given.
        UnknownVertexError
            The vertex ID is not in the graph.

        Notes
        -
        All checks run before any mutation. The store is updated before the
        vertex attribute, and the attribute write's own history entry is
        replaced by a single ``set_df_as_node_attr`` entry.

        """
        return self._set_df_as_attr(OwnerKind.NODE, node, df, "set_df_as_node_attr")

    def set_df_as_vertex_attr(self, vertex, df):
        """Alias of :meth:`set_df_as_node_attr`."""
        return self._set_df_as_attr(OwnerKind.NODE, vertex, df, "set_df_as_vertex_attr")

    def set_df_as_edge_attr(self, edge, df):
        """Bind a dataframe to one edge as its table attribute.

        Same protocol as :meth:`set_df_as_node_attr`, with owner kind ``edge``
        and ``UnknownEdgeError`` for a missing edge.
        """
        return self._set_df_as_attr(OwnerKind.EDGE, edge, df, "set_df_as_edge_attr")

    def _set_df_as_attr(self, kind: OwnerKind, target, df, fcn_name: str):
        started = self._start_clock()
        owner_id = self._check_single_target(kind, target, fcn_name)
        table = to_polars_frame(df)

        df_id = self._id_minter.mint_unique(self.tables.issued_ids)
        self.tables.replace_for_owner(kind, owner_id, df_id, table)

        if kind is OwnerKind.NODE:
            self.set_vertex_attrs(owner_id, **{DF_ID_ATTR: df_id})
        else:
            self.set_edge_attrs(owner_id, **{DF_ID_ATTR: df_id})

        self._replace_last_event(
            fcn_name,
            {kind.value: owner_id, DF_ID_ATTR: df_id, "shape": list(table.shape)},
            started=started,
        )
        self._maybe_backup(stacklevel=4)
        return self

    def _check_single_target(self, kind: OwnerKind, target, fcn_name: str) -> int:
        """INTERNAL: Validate graph + single existing target; return the target ID."""
        if not self.is_valid():
            raise InvalidGraphError(fcn_name, "The graph object is not valid")

        if kind is OwnerKind.NODE:
            if not self.has_vertices():
                raise EmptyGraphError(fcn_name, "The graph contains no nodes")
        elif not self.has_edges():
            raise EmptyGraphError(fcn_name, "The graph contains no edges")

        ids = _as_id_list(target)
        if len(ids) > 1:
            raise MultipleTargetsError(fcn_name, f"Only one {kind.value} can be specified")

        if kind is OwnerKind.NODE:
            if not ids or not self.has_vertex(ids[0]):
                raise UnknownVertexError(
                    fcn_name, "The value given for `node` does not correspond to a node ID"
                )
        elif not ids or not self.has_edge(ids[0]):
            raise UnknownEdgeError(
                fcn_name, "The value given for `edge` does not correspond to an edge ID"
            )
        return int(ids[0])

    def remove_df_attr(self, node=None, edge=None):
        """Detach the table bound to a vertex or an edge and null its ``df_id``.

        Exactly one of ``node`` / ``edge`` must be given. Returns the graph.
        Detaching from an element with no table is a no-op that still logs.
        """
        if (node is None) == (edge is None):
            raise ValueError("Give exactly one of `node` or `edge`")
        fcn_name = "remove_df_attr"
        started = self._start_clock()
        kind = OwnerKind.NODE if node is not None else OwnerKind.EDGE
        owner_id = self._check_single_target(kind, node if node is not None else edge, fcn_name)

        old_id = self.tables.drop_owner(kind, owner_id)
        if kind is OwnerKind.NODE:
            self.set_vertex_attrs(owner_id, **{DF_ID_ATTR: None})
        else:
            self.set_edge_attrs(owner_id, **{DF_ID_ATTR: None})
        self._replace_last_event(
            fcn_name, {kind.value: owner_id, DF_ID_ATTR: old_id}, started=started
        )
        self._maybe_backup(stacklevel=3)
        return self

    # Reading

    def get_df_for_node(self, node):
        """The caller's columns of the table bound to ``node``, or None."""
        return self._owner_payload(OwnerKind.NODE, node)

    def get_df_for_edge(self, edge):
        """The caller's columns of the table bound to ``edge``, or None."""
        return self._owner_payload(OwnerKind.EDGE, edge)

    def _owner_payload(self, kind, owner_id):
        df_id = self.tables.find_owner_entry(kind, owner_id)
        if df_id is None:
            return None
        return self.tables.get(df_id).drop(list(BOOKKEEPING_COLS))

    def get_attr_dfs(self, node_id=None, edge_id=None, return_format: str = "single_tbl"):
        """Collect the tables bound to vertices and/or edges.

        Parameters
        --
        node_id, edge_id : int | Iterable[int] | None
            Owners to collect. When both are None, every stored table is returned.
        return_format : {"single_tbl", "list"}
            ``"single_tbl"`` stacks everything into one DF (columns missing in
            some tables are null); ``"list"`` returns one DF per table.

        Returns
        ---
        polars.DataFrame | list[polars.DataFrame]
            Bookkeeping columns use their public names (``df_id``, ``node_edge``,
            ``id``). In the single-table form the owner's ``type`` and ``label``
            attributes are added after ``id`` when the graph carries them.
            Unknown IDs are ignored.

        """
        if return_format not in ("single_tbl", "list"):
            raise ValueError("`return_format` must be 'single_tbl' or 'list'")

        if node_id is None and edge_id is None:
            wanted = None
        else:
            wanted = {(OwnerKind.NODE, i) for i in _as_id_list(node_id)}
            wanted |= {(OwnerKind.EDGE, i) for i in _as_id_list(edge_id)}

        # vertices first, then edges, each by owner id
        picked = [
            table
            for _df_id, kind, owner, table in sorted(
                self.tables.entries(), key=lambda e: (e[1] is OwnerKind.EDGE, e[2])
            )
            if wanted is None or (kind, owner) in wanted
        ]

        if return_format == "list":
            return [_public_table(t) for t in picked]
        if not picked:
            return _public_table(self.tables.to_frame().clear())

        out = pl.concat(picked, how="diagonal_relaxed")
        out = self._join_owner_labels(out)
        return _public_table(out)

    def _join_owner_labels(self, out: pl.DataFrame) -> pl.DataFrame:
        """INTERNAL: add owner ``type``/``label`` columns right after ``id__``."""
        extra = [c for c in ("type", "label") if c not in out.columns]
        parts = []
        for kind, attrs, key in (
            ("node", self.vertex_attributes, "vertex_id"),
            ("edge", self.edge_attributes, "edge_id"),
        ):
            cols = [c for c in extra if c in attrs.columns]
            if not cols:
                continue
            parts.append(
                attrs.select(
                    pl.lit(kind).alias(OWNER_KIND_COL),
                    pl.col(key).cast(pl.Int64).alias(OWNER_ID_COL),
                    *[pl.col(c).cast(pl.Utf8) for c in cols],
                )
            )
        if not parts:
            return out
        labels = pl.concat(parts, how="diagonal_relaxed")
        joined = out.join(labels, on=[OWNER_KIND_COL, OWNER_ID_COL], how="left", maintain_order="left")
        lead = out.columns[:3] + [c for c in extra if c in labels.columns]
        return joined.select(lead + out.columns[3:])


def set_df_as_node_attr(graph, node, df):
    """Functional form of :meth:`Graph.set_df_as_node_attr`.

    Works on a copy (history included) and returns it; ``graph`` itself is
    left unchanged, whether the call succeeds or raises.
    """
    return graph.copy(history=True).set_df_as_node_attr(node, df)


def set_df_as_edge_attr(graph, edge, df):
    """Functional form of :meth:`Graph.set_df_as_edge_attr`; returns a modified copy."""
    return graph.copy(history=True).set_df_as_edge_attr(edge, df)
