"""Shared fixtures and helpers for graph/table tests."""

import pathlib
import shutil
import sys
import tempfile
from pathlib import Path

import polars as pl
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]  # project root
sys.path.insert(0, str(ROOT))

from tabgraph.core.graph import Graph  # noqa: E402

# ======================================================================
# FIXTURES
# ======================================================================


@pytest.fixture
def graph4():
    """Four vertices (1..4) and three edges, no tables attached."""
    G = Graph(directed=True, rng=42)
    G.add_vertices(4, type="basic")
    G.set_vertex_attrs(1, value=3.5)
    G.set_vertex_attrs(2, value=2.6)
    G.add_edge(1, 4, rel="leading_to")
    G.add_edge(2, 3, rel="leading_to")
    G.add_edge(3, 1, rel="leading_to")
    return G


@pytest.fixture
def df_ab():
    return pl.DataFrame({"a": ["one", "two", "three"], "b": [1.0, 2.0, 3.0]})


@pytest.fixture
def df_cd():
    return pl.DataFrame({"c": ["four", "five", "six"], "d": [4.0, 5.0, 6.0]})


@pytest.fixture
def tmpdir_fixture():
    """Temporary directory for file I/O (input/output) tests."""
    tmpdir = Path(tempfile.mkdtemp())
    yield tmpdir
    shutil.rmtree(tmpdir)


# ======================================================================
# HELPERS
# ======================================================================


def tables_owned_by(G, kind, owner):
    """Stored table ids whose owner is ``(kind, owner)``."""
    return [df_id for df_id, k, o, _t in G.tables.entries() if k.value == kind and o == owner]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
