import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]  # project root
sys.path.insert(0, str(ROOT))

import json

import polars as pl
import pytest

from tabgraph.core._History import ActionLogEntry
from tabgraph.core.graph import Graph


class TestActionLog:
    def test_fixture_log(self, graph4):
        log = graph4.history()
        assert [e.function_used for e in log] == [
            "add_vertices",
            "set_vertex_attrs",
            "set_vertex_attrs",
            "add_edge",
            "add_edge",
            "add_edge",
        ]
        assert [e.version for e in log] == [1, 2, 3, 4, 5, 6]
        first = log[0]
        assert first.details["vertices"] == 4
        assert first.details["type"] == "basic"
        assert first.details["result"] == [1, 2, 3, 4]

    def test_attach_logs_one_entry(self, graph4, df_ab):
        before = len(graph4.history())
        graph4.set_df_as_node_attr(2, df_ab)
        log = graph4.history()
        assert len(log) == before + 1
        last = log[-1]
        assert isinstance(last, ActionLogEntry)
        assert last.function_used == "set_df_as_node_attr"
        assert last.nodes == 4
        assert last.edges == 3
        assert last.duration >= 0
        assert last.time_modified.endswith("Z")
        assert last.details == {
            "node": 2,
            "df_id": graph4.get_attr_vertex(2, "df_id"),
            "shape": [3, 2],
        }
        # no set_vertex_attrs entry survives the attach
        assert log[-2].function_used == "add_edge"

    def test_versions_increase_and_may_skip(self, graph4, df_ab):
        graph4.set_df_as_node_attr(1, df_ab)
        graph4.set_df_as_edge_attr(1, df_ab)
        versions = [e.version for e in graph4.history()]
        assert versions == sorted(set(versions))
        assert versions[-2:] == [8, 10]

    def test_edge_attach_and_detach_entries(self, graph4, df_ab):
        graph4.set_df_as_edge_attr(3, df_ab)
        assert graph4.last_action().function_used == "set_df_as_edge_attr"
        assert graph4.last_action().details["edge"] == 3
        df_id = graph4.last_action().details["df_id"]
        graph4.remove_df_attr(edge=3)
        last = graph4.last_action()
        assert last.function_used == "remove_df_attr"
        assert last.details == {"edge": 3, "df_id": df_id}

    def test_failed_attach_logs_nothing(self, graph4, df_ab):
        before = graph4.history()
        with pytest.raises(KeyError):
            graph4.set_df_as_node_attr(42, df_ab)
        assert graph4.history() == before

    def test_remove_vertex_logs_once(self, graph4):
        graph4.remove_vertex(1)
        last = graph4.last_action()
        assert last.function_used == "remove_vertex"
        assert (last.nodes, last.edges) == (3, 1)
        assert len(graph4.history()) == 7

    def test_disabled_history(self, df_ab):
        G = Graph(history=False)
        G.add_vertices(2)
        G.set_df_as_node_attr(1, df_ab)
        assert G.history() == []
        assert G._version == 0
        assert G.get_df_for_node(1).equals(df_ab)

    def test_toggle_history(self, graph4, df_ab):
        graph4.enable_history(False)
        graph4.set_df_as_node_attr(1, df_ab)
        assert len(graph4.history()) == 6
        graph4.enable_history(True)
        graph4.set_df_as_node_attr(1, df_ab)
        assert len(graph4.history()) == 7

    def test_mark_and_clear(self, graph4):
        graph4.mark("checkpoint")
        assert graph4.last_action().function_used == "mark"
        assert graph4.last_action().details == {"label": "checkpoint"}
        graph4.clear_history()
        assert graph4.history() == []
        assert graph4.last_action() is None
        graph4.mark("after")
        assert graph4.last_action().version == 8

    def test_attach_after_clear(self, graph4, df_ab):
        graph4.clear_history()
        graph4.set_df_as_node_attr(1, df_ab)
        assert [e.function_used for e in graph4.history()] == ["set_df_as_node_attr"]

    def test_entries_are_immutable(self, graph4):
        with pytest.raises(AttributeError):
            graph4.last_action().version = 0


class TestHistoryExport:
    def test_as_df(self, graph4, df_ab):
        graph4.set_df_as_node_attr(1, df_ab)
        df = graph4.history(as_df=True)
        assert df.columns == [
            "version",
            "function_used",
            "time_modified",
            "duration",
            "nodes",
            "edges",
            "details",
        ]
        assert df.height == 7
        details = json.loads(df.get_column("details")[-1])
        assert details["node"] == 1

    def test_export_formats(self, graph4, tmpdir_fixture):
        assert graph4.export_history(tmpdir_fixture / "h.ndjson") == 6
        lines = (tmpdir_fixture / "h.ndjson").read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0])["function_used"] == "add_vertices"

        assert graph4.export_history(tmpdir_fixture / "h.json") == 6
        assert len(json.loads((tmpdir_fixture / "h.json").read_text(encoding="utf-8"))) == 6

        assert graph4.export_history(tmpdir_fixture / "h.csv") == 6
        assert pl.read_csv(tmpdir_fixture / "h.csv").height == 6

        assert graph4.export_history(tmpdir_fixture / "h.parquet") == 6
        assert pl.read_parquet(tmpdir_fixture / "h.parquet").height == 6

        assert graph4.export_history(tmpdir_fixture / "h.log") == 6
        assert (tmpdir_fixture / "h.log.parquet").exists()

    def test_export_empty(self, tmpdir_fixture):
        assert Graph().export_history(tmpdir_fixture / "none.parquet") == 0
        assert not (tmpdir_fixture / "none.parquet").exists()
