# tabgraph/__init__.py
"""tabgraph: property graphs with dataframes attached to vertices and edges."""

from __future__ import annotations

from importlib import import_module
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import Any

# Lazily exposed submodules (imported on first attribute access)
_lazy_submodules = {
    "io": "tabgraph.io",
}

# Curated top-level symbols (lazy). name -> (module, attribute)
_lazy_symbols: dict[str, tuple[str, str]] = {
    # Core
    "Graph": ("tabgraph.core.graph", "Graph"),
    "TableStore": ("tabgraph.core._TableStore", "TableStore"),
    "IdMinter": ("tabgraph.core._Ids", "IdMinter"),
    "mint_df_id": ("tabgraph.core._Ids", "mint_df_id"),
    "ActionLogEntry": ("tabgraph.core._History", "ActionLogEntry"),
    "OwnerKind": ("tabgraph.core._helpers", "OwnerKind"),
    # Attach
    "set_df_as_node_attr": ("tabgraph.core._Tables", "set_df_as_node_attr"),
    "set_df_as_edge_attr": ("tabgraph.core._Tables", "set_df_as_edge_attr"),
    # Errors
    "TabGraphError": ("tabgraph.core._errors", "TabGraphError"),
    "InvalidGraphError": ("tabgraph.core._errors", "InvalidGraphError"),
    "EmptyGraphError": ("tabgraph.core._errors", "EmptyGraphError"),
    "MultipleTargetsError": ("tabgraph.core._errors", "MultipleTargetsError"),
    "UnknownVertexError": ("tabgraph.core._errors", "UnknownVertexError"),
    "UnknownEdgeError": ("tabgraph.core._errors", "UnknownEdgeError"),
    "DuplicateTableIdError": ("tabgraph.core._errors", "DuplicateTableIdError"),
    "IdentifierCollisionError": ("tabgraph.core._errors", "IdentifierCollisionError"),
    # Backups
    "write_backup": ("tabgraph.io.backup", "write_backup"),
    "read_backup": ("tabgraph.io.backup", "read_backup"),
}

__all__ = sorted(set(list(_lazy_submodules) + list(_lazy_symbols)))


def __getattr__(name: str) -> Any:  # PEP 562: lazy attribute resolution
    if name in _lazy_submodules:
        return import_module(_lazy_submodules[name])
    if name in _lazy_symbols:
        mod, attr = _lazy_symbols[name]
        return getattr(import_module(mod), attr)
    raise AttributeError(name)


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + list(__all__))


try:
    __version__ = _pkg_version("tabgraph")
except PackageNotFoundError:
    __version__ = "0.0.0"
