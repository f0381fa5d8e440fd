from collections import Counter

import polars as pl


class AttributesClass:
    # Attributes

    def set_vertex_attrs(self, vertex_id, **attrs):
        """Upsert pure vertex attributes (non-structural) into the vertex DF [DataFrame].

        Parameters
        --
        vertex_id : int
        **attrs
            Key/value attributes. Structural keys are ignored.

        Raises
        --
        KeyError
            If the vertex does not exist.

        """
        if vertex_id not in self.entity_to_idx:
            raise KeyError(f"Vertex {vertex_id} not found")
        clean = {k: v for k, v in attrs.items() if k not in self._vertex_RESERVED}
        if clean:
            self.vertex_attributes = self._upsert_row(self.vertex_attributes, vertex_id, clean)

    def get_attr_vertex(self, vertex_id, key, default=None):
        """Get a single vertex attribute (scalar) or default if missing.

        Parameters
        --
        vertex_id : int
        key : str
        default : Any, optional

        Returns
        ---
        Any

        """
        df = self.vertex_attributes
        if key not in df.columns:
            return default
        rows = df.filter(pl.col("vertex_id") == vertex_id)
        if rows.height == 0:
            return default
        val = rows.get_column(key)[0]
        return default if val is None else val

    def set_edge_attrs(self, edge_id, **attrs):
        """Upsert pure edge attributes (non-structural) into the edge DF.

        Parameters
        --
        edge_id : int
        **attrs
            Key/value attributes. Structural keys are ignored.

        Raises
        --
        KeyError
            If the edge does not exist.

        """
        if edge_id not in self.edge_to_idx:
            raise KeyError(f"Edge {edge_id} not found")
        # keep attributes table pure: strip structural keys
        clean = {k: v for k, v in attrs.items() if k not in self._EDGE_RESERVED}
        if clean:
            self.edge_attributes = self._upsert_row(self.edge_attributes, edge_id, clean)

    def get_attr_edge(self, edge_id, key, default=None):
        """Get a single edge attribute (scalar) or default if missing."""
        df = self.edge_attributes
        if key not in df.columns:
            return default
        rows = df.filter(pl.col("edge_id") == edge_id)
        if rows.height == 0:
            return default
        val = rows.get_column(key)[0]
        return default if val is None else val

    def get_vertex_attrs(self, vertex) -> dict:
        """Return the full attribute dict for a single vertex ({} if not found)."""
        for row in self.vertex_attributes.filter(pl.col("vertex_id") == vertex).iter_rows(
            named=True
        ):
            return dict(row)
        return {}

    def get_edge_attrs(self, edge) -> dict:
        """Return the full attribute dict for a single edge ({} if not found)."""
        for row in self.edge_attributes.filter(pl.col("edge_id") == edge).iter_rows(named=True):
            return dict(row)
        return {}

    ## Bulk attributes

    def get_attr_vertices(self, vertices=None) -> dict:
        """Retrieve vertex attributes as ``{vertex_id: attribute_dict}``.

        Parameters
        --
        vertices : Iterable[int] | None, optional
            Restrict to these vertex IDs. All vertices when None.

        """
        df = self.vertex_attributes
        if vertices is not None:
            df = df.filter(pl.col("vertex_id").is_in(list(vertices)))
        return {row["vertex_id"]: row for row in df.iter_rows(named=True)}

    def get_attr_edges(self, edges=None) -> dict:
        """Retrieve edge attributes as ``{edge_id: attribute_dict}``."""
        df = self.edge_attributes
        if edges is not None:
            df = df.filter(pl.col("edge_id").is_in(list(edges)))
        return {row["edge_id"]: row for row in df.iter_rows(named=True)}

    def get_vertices_by_attr(self, key: str, value) -> list:
        """Vertex IDs whose attribute ``key`` equals ``value`` ([] if the column is missing)."""
        df = self.vertex_attributes
        if key not in df.columns:
            return []
        return df.filter(pl.col(key) == value).get_column("vertex_id").to_list()

    def audit_attributes(self):
        """Audit attribute tables for extra/missing/duplicate rows.

        Returns
        ---
        dict
            {
            'extra_vertex_rows': list[int],
            'extra_edge_rows': list[int],
            'missing_vertex_rows': list[int],
            'missing_edge_rows': list[int],
            'duplicate_vertex_rows': list[int],
            'duplicate_edge_rows': list[int],
            }

        """
        vertex_ids = set(self.entity_to_idx)
        edge_ids = set(self.edge_to_idx)

        na = Counter(self.vertex_attributes.get_column("vertex_id").to_list())
        ea = Counter(self.edge_attributes.get_column("edge_id").to_list())

        return {
            "extra_vertex_rows": [i for i in na if i not in vertex_ids],
            "extra_edge_rows": [i for i in ea if i not in edge_ids],
            "missing_vertex_rows": [i for i in vertex_ids if i not in na],
            "missing_edge_rows": [i for i in edge_ids if i not in ea],
            "duplicate_vertex_rows": sorted(i for i, c in na.items() if c > 1),
            "duplicate_edge_rows": sorted(i for i, c in ea.items() if c > 1),
        }

    def _pl_dtype_for_value(self, v):
        """INTERNAL: Infer an appropriate Polars dtype for a Python value.

        Returns
        ---
        polars.datatypes.DataType
            One of ``pl.Null``, ``pl.Boolean``, ``pl.Int64``, ``pl.Float64``,
            ``pl.Utf8``, ``pl.Binary`` or ``pl.List(inner)``.

        """
        if v is None:
            return pl.Null
        if isinstance(v, bool):
            return pl.Boolean
        if isinstance(v, int):
            return pl.Int64
        if isinstance(v, float):
            return pl.Float64
        if isinstance(v, (bytes, bytearray)):
            return pl.Binary
        if isinstance(v, (list, tuple)):
            inner = self._pl_dtype_for_value(v[0]) if len(v) else pl.Utf8
            return pl.List(pl.Utf8 if inner == pl.Null else inner)
        return pl.Utf8

    def _ensure_attr_columns(self, df: pl.DataFrame, attrs: dict) -> pl.DataFrame:
        """INTERNAL: Create/align attribute columns and dtypes to accept ``attrs``.

        Notes
        -
        - New columns are created with the inferred dtype.
        - A ``Null`` column is cast to the inferred dtype on first non-null write.
        - Mixed numeric dtypes upcast to Float64/Int64; other conflicts upcast to ``Utf8``.

        """
        schema = df.schema
        for col, val in attrs.items():
            target = self._pl_dtype_for_value(val)
            if col not in schema:
                df = df.with_columns(pl.lit(None).cast(target).alias(col))
                continue
            cur = schema[col]
            if cur == pl.Null and target != pl.Null:
                df = df.with_columns(pl.col(col).cast(target))
            elif cur != target and target != pl.Null:
                if cur.is_numeric() and target.is_numeric():
                    supertype = pl.Float64 if pl.Float64 in (cur, target) else pl.Int64
                    df = df.with_columns(pl.col(col).cast(supertype))
                else:
                    df = df.with_columns(pl.col(col).cast(pl.Utf8))
        return df

    def _upsert_row(self, df: pl.DataFrame, idx, attrs: dict) -> pl.DataFrame:
        """INTERNAL: Upsert a row keyed by ``vertex_id`` or ``edge_id``.

        Keys

        - ``vertex_attributes``  - key: ``vertex_id``
        - ``edge_attributes``    - key: ``edge_id``
        """
        if not isinstance(attrs, dict) or not attrs:
            return df

        if "vertex_id" in df.columns:
            key_col = "vertex_id"
        elif "edge_id" in df.columns:
            key_col = "edge_id"
        else:
            raise ValueError("Cannot infer key column from DataFrame schema")

        df = self._ensure_attr_columns(df, attrs)
        cond = pl.col(key_col) == pl.lit(idx)

        if df.filter(cond).height > 0:
            # cast literals to column dtypes; update in place
            schema = df.schema
            upds = [
                pl.when(cond).then(pl.lit(v).cast(schema[k])).otherwise(pl.col(k)).alias(k)
                for k, v in attrs.items()
            ]
            return df.with_columns(upds)

        # build a single row aligned to df schema
        new_row = dict.fromkeys(df.columns)
        new_row[key_col] = idx
        new_row.update(attrs)
        to_append = pl.DataFrame([new_row]).select(
            [pl.col(c).cast(df.schema[c]) for c in df.columns]
        )
        return df.vstack(to_append)
