from enum import Enum

import narwhals as nw
import numpy as np
import polars as pl


class OwnerKind(Enum):
    NODE = "node"
    EDGE = "edge"


# Reserved attribute holding the id of an element's attached table
DF_ID_ATTR = "df_id"

# Bookkeeping columns prefixed to every stored table (internal names)
DF_ID_COL = "df_id__"
OWNER_KIND_COL = "node_edge__"
OWNER_ID_COL = "id__"
BOOKKEEPING_COLS = (DF_ID_COL, OWNER_KIND_COL, OWNER_ID_COL)

_OWNER_ALIASES = {
    "node": OwnerKind.NODE,
    "vertex": OwnerKind.NODE,
    "edge": OwnerKind.EDGE,
}


def _owner_kind(kind) -> OwnerKind:
    """Normalize an owner kind given as enum member or string."""
    if isinstance(kind, OwnerKind):
        return kind
    try:
        return _OWNER_ALIASES[str(kind).lower()]
    except KeyError:
        raise ValueError(f"Unknown owner kind {kind!r}; expected 'node' or 'edge'") from None


def _public_table(df):
    """Strip the trailing '__' from bookkeeping columns for display."""
    return df.rename({c: c[:-2] for c in BOOKKEEPING_COLS if c in df.columns})


def _as_id_list(ids) -> list:
    """Flatten a scalar, sequence, set, ndarray or Series of ids into a list."""
    if ids is None:
        return []
    if isinstance(ids, (str, bytes)):
        return [ids]
    if isinstance(ids, pl.Series):
        return ids.to_list()
    if isinstance(ids, np.ndarray):
        return ids.ravel().tolist()
    if isinstance(ids, (list, tuple, set, frozenset, range)):
        return list(ids)
    if isinstance(ids, np.generic):
        return [ids.item()]
    if hasattr(ids, "to_list"):
        # pandas / narwhals Series
        return list(ids.to_list())
    return [ids]


def to_polars_frame(df) -> pl.DataFrame:
    """Normalize any eager dataframe (or dict of columns) into a Polars DF [DataFrame].

    Parameters
    --
    df : polars.DataFrame | pandas.DataFrame | pyarrow.Table | dict
        Anything Narwhals can wrap eagerly, or a column mapping.

    Returns
    ---
    polars.DataFrame

    Raises
    --
    TypeError
        If the object is not a supported dataframe.

    """
    if isinstance(df, pl.DataFrame):
        return df.clone()
    if isinstance(df, dict):
        return pl.DataFrame(df)
    try:
        ndf = nw.from_native(df, eager_only=True)
    except TypeError:
        raise TypeError(
            f"Expected an eager dataframe (polars, pandas, pyarrow) or a dict, got {type(df).__name__}"
        ) from None
    native = nw.to_native(ndf)
    if isinstance(native, pl.DataFrame):
        return native
    # pandas / pyarrow go through Arrow
    return pl.from_arrow(ndf.to_arrow())
