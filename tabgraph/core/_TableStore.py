import polars as pl

from ._errors import DuplicateTableIdError
from ._helpers import (
    BOOKKEEPING_COLS,
    DF_ID_COL,
    OWNER_ID_COL,
    OWNER_KIND_COL,
    OwnerKind,
    _owner_kind,
)


class TableStore:
    """Side-table of dataframes attached to graph elements.

    Every stored table carries three leading bookkeeping columns
    (``df_id__``, ``node_edge__``, ``id__``) followed by the caller's columns.
    Two dicts are kept in sync on every insert/evict:

    - ``df_id -> table``
    - ``(owner_kind, owner_id) -> df_id``

    so an owner has at most one table and owner lookups are O(1). Ids that were
ever stored are remembered in ``issued_ids`` so they are never handed out again.
    """

    def __init__(self):
        self._tables = {}  # df_id -> pl.DataFrame (insertion ordered)
        self._owner_index = {}  # (OwnerKind, owner_id) -> df_id
        self._owners = {}  # df_id -> (OwnerKind, owner_id)
        self._issued = set()  # every df_id ever stored, evicted ones included

    # ==================== Mutation ====================

    def insert(self, df_id: str, owner_kind, owner_id: int, table: pl.DataFrame) -> None:
        """Store ``table`` under ``df_id`` for the given owner.

        Raises
        --
        DuplicateTableIdError
            If ``df_id`` is already stored, or the owner already has a table.
        ValueError
            If ``table`` uses a bookkeeping column name.

        """
        kind = _owner_kind(owner_kind)
        self._check_free_id(df_id)
        key = (kind, owner_id)
        if key in self._owner_index:
            raise DuplicateTableIdError(
                f"{kind.value} {owner_id} already owns table '{self._owner_index[key]}'"
            )
        self._put(df_id, key, _tag(table, df_id, kind, owner_id))

    def evict(self, df_id: str) -> None:
        """Remove the table stored under ``df_id``; raises KeyError if absent."""
        if df_id not in self._tables:
            raise KeyError(f"Table id '{df_id}' not found")
        del self._tables[df_id]
        key = self._owners.pop(df_id)
        self._owner_index.pop(key, None)

    def replace_for_owner(self, owner_kind, owner_id: int, new_id: str, table: pl.DataFrame):
        """Evict the owner's current table (if any), then insert the new one.

        The new table is checked and tagged first, so a rejected table leaves
        the owner's current entry in place.

        Returns
        ---
        str | None
            The evicted table id, or None if the owner had no table.

        """
        kind = _owner_kind(owner_kind)
        self._check_free_id(new_id)
        tagged = _tag(table, new_id, kind, owner_id)
        old_id = self.find_owner_entry(kind, owner_id)
        if old_id is not None:
            self.evict(old_id)
        self._put(new_id, (kind, owner_id), tagged)
        return old_id

    def _check_free_id(self, df_id: str) -> None:
        if df_id in self._tables:
            raise DuplicateTableIdError(f"Table id '{df_id}' already stored")

    def _put(self, df_id: str, key, tagged: pl.DataFrame) -> None:
        self._tables[df_id] = tagged
        self._owner_index[key] = df_id
        self._owners[df_id] = key
        self._issued.add(df_id)

    def drop_owner(self, owner_kind, owner_id: int):
        """Evict the owner's table if it has one. Returns the evicted id or None."""
        old_id = self.find_owner_entry(owner_kind, owner_id)
        if old_id is not None:
            self.evict(old_id)
        return old_id

    # ==================== Lookup ====================

    def find_owner_entry(self, owner_kind, owner_id: int):
        """Return the table id owned by ``(owner_kind, owner_id)``, or None."""
        return self._owner_index.get((_owner_kind(owner_kind), owner_id))

    def get(self, df_id: str):
        """Return the stored (tagged) table, or None."""
        return self._tables.get(df_id)

    def owner_of(self, df_id: str) -> tuple[OwnerKind, int]:
        if df_id not in self._owners:
            raise KeyError(f"Table id '{df_id}' not found")
        return self._owners[df_id]

    def ids(self) -> list[str]:
        return list(self._tables)

    @property
    def issued_ids(self) -> set:
        """Every id this store has held, including evicted ones."""
        return self._issued

    def entries(self, owner_kind=None) -> list[tuple[str, OwnerKind, int, pl.DataFrame]]:
        """List ``(df_id, owner_kind, owner_id, table)`` tuples in insertion order."""
        kind = None if owner_kind is None else _owner_kind(owner_kind)
        out = []
        for df_id, table in self._tables.items():
            k, oid = self._owners[df_id]
            if kind is None or k is kind:
                out.append((df_id, k, oid, table))
        return out

    def to_frame(self) -> pl.DataFrame:
        """All stored tables stacked into one DF; missing columns are null."""
        if not self._tables:
            return pl.DataFrame(
                schema={DF_ID_COL: pl.Utf8, OWNER_KIND_COL: pl.Utf8, OWNER_ID_COL: pl.Int64}
            )
        return pl.concat(list(self._tables.values()), how="diagonal_relaxed")

    def copy(self) -> "TableStore":
        new = TableStore()
        new._tables = {k: v.clone() for k, v in self._tables.items()}
        new._owner_index = dict(self._owner_index)
        new._owners = dict(self._owners)
        new._issued = set(self._issued)
        return new

    def __contains__(self, df_id) -> bool:
        return df_id in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def __iter__(self):
        return iter(list(self._tables))

    def __repr__(self):
        n_nodes = sum(1 for k, _ in self._owners.values() if k is OwnerKind.NODE)
        return f"TableStore(tables={len(self)}, node_tables={n_nodes}, edge_tables={len(self) - n_nodes})"


def _tag(table: pl.DataFrame, df_id: str, kind: OwnerKind, owner_id: int) -> pl.DataFrame:
    """Prefix the bookkeeping columns ahead of the caller's columns."""
    clash = [c for c in BOOKKEEPING_COLS if c in table.columns]
    if clash:
        raise ValueError(f"Table uses reserved column name(s): {clash}")
    tagged = table.with_columns(
        pl.lit(df_id, dtype=pl.Utf8).alias(DF_ID_COL),
        pl.lit(kind.value, dtype=pl.Utf8).alias(OWNER_KIND_COL),
        pl.lit(owner_id, dtype=pl.Int64).alias(OWNER_ID_COL),
    )
    return tagged.select([*BOOKKEEPING_COLS, *table.columns])
