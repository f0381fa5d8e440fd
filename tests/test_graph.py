# test_graph.py
import os
import sys
import unittest

import polars as pl

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tabgraph.core.graph import Graph


class TestGraphBasics(unittest.TestCase):
    def setUp(self):
        self.g = Graph(directed=True)  # default directed

    def test_add_vertex_and_attributes(self):
        v1 = self.g.add_vertex(color="red", value=3)
        v2 = self.g.add_vertex()  # no attrs
        self.assertEqual((v1, v2), (1, 2))
        self.assertEqual(self.g.number_of_vertices(), 2)
        # row exists even if no attrs were passed
        self.assertIn(2, self.g.vertex_attributes.select("vertex_id").to_series().to_list())
        self.assertEqual(self.g.get_attr_vertex(1, "color"), "red")
        self.assertEqual(self.g.get_attr_vertex(1, "value"), 3)
        self.assertIsNone(self.g.get_attr_vertex(2, "color"))

    def test_type_and_label_are_plain_attributes(self):
        vid = self.g.add_vertex(type="gene", label="TP53")
        self.assertEqual(self.g.get_vertex_attrs(vid), {"vertex_id": vid, "type": "gene", "label": "TP53"})
        self.assertEqual(self.g.get_vertices_by_attr("type", "gene"), [vid])

    def test_explicit_ids_and_next_id(self):
        self.g.add_vertex(10)
        self.assertEqual(self.g.add_vertex(), 11)
        with self.assertRaises(ValueError):
            self.g.add_vertex(10)
        with self.assertRaises(ValueError):
            self.g.add_vertex("a")
        with self.assertRaises(ValueError):
            self.g.add_vertex(True)

    def test_add_vertices_count_and_ids(self):
        self.assertEqual(self.g.add_vertices(3), [1, 2, 3])
        self.assertEqual(self.g.add_vertices([7, 8], type="x"), [7, 8])
        self.assertEqual(self.g.vertices(), [1, 2, 3, 7, 8])
        self.assertEqual(self.g.get_attr_vertex(8, "type"), "x")

    def test_add_edge_directed_matrix_signs(self):
        self.g.add_vertices(2)
        eid = self.g.add_edge(1, 2, rel="binds", weight=2.5)
        self.assertEqual(eid, 1)
        self.assertEqual(self.g.edge_endpoints(eid), (1, 2))
        col = self.g.edge_to_idx[eid]
        self.assertEqual(self.g._matrix[self.g.entity_to_idx[1], col], 1.0)
        self.assertEqual(self.g._matrix[self.g.entity_to_idx[2], col], -1.0)
        self.assertEqual(self.g.get_attr_edge(eid, "rel"), "binds")
        self.assertEqual(self.g.get_attr_edge(eid, "weight"), 2.5)
        self.assertIsNone(self.g.get_attr_edge(eid, "from"))  # structural, not stored

    def test_undirected_matrix_signs(self):
        g = Graph(directed=False)
        g.add_vertices(2)
        g.add_edge(1, 2)
        M = g.incidence_matrix().toarray()
        self.assertEqual(M[:, 0].tolist(), [1.0, 1.0])

    def test_self_loop(self):
        self.g.add_vertex()
        self.g.add_edge(1, 1)
        self.assertEqual(self.g.incidence_matrix().toarray().tolist(), [[1.0]])
        self.assertEqual(self.g.degree(1), 1)

    def test_add_edge_unknown_endpoint(self):
        self.g.add_vertex()
        with self.assertRaises(KeyError):
            self.g.add_edge(1, 5)
        self.assertEqual(self.g.number_of_edges(), 0)

    def test_incidence_matrix_shape_after_growth(self):
        self.g.add_vertices(20)
        for i in range(1, 20):
            self.g.add_edge(i, i + 1)
        M = self.g.incidence_matrix()
        self.assertEqual(M.shape, (20, 19))
        self.assertEqual(self.g.degree(1), 1)
        self.assertEqual(self.g.degree(10), 2)
        self.assertEqual(self.g.degree(99), 0)


class TestGraphRemoval(unittest.TestCase):
    def setUp(self):
        self.g = Graph()
        self.g.add_vertices(3)
        self.e1 = self.g.add_edge(1, 2)
        self.e2 = self.g.add_edge(2, 3)

    def test_remove_edge_shifts_columns(self):
        self.g.remove_edge(self.e1)
        self.assertEqual(self.g.edges(), [self.e2])
        self.assertEqual(self.g.edge_to_idx[self.e2], 0)
        M = self.g.incidence_matrix().toarray()
        self.assertEqual(M[:, 0].tolist(), [0.0, 1.0, -1.0])
        self.assertTrue(self.g.is_valid())
        with self.assertRaises(KeyError):
            self.g.remove_edge(self.e1)

    def test_remove_vertex_drops_incident_edges(self):
        self.g.remove_vertex(2)
        self.assertEqual(self.g.vertices(), [1, 3])
        self.assertEqual(self.g.number_of_edges(), 0)
        self.assertEqual(self.g.incidence_matrix().shape, (2, 0))
        self.assertTrue(self.g.is_valid())
        with self.assertRaises(KeyError):
            self.g.remove_vertex(2)

    def test_ids_not_reused(self):
        self.g.remove_vertex(3)
        self.assertEqual(self.g.add_vertex(), 4)


class TestValidation(unittest.TestCase):
    def test_empty_graph_is_valid(self):
        g = Graph()
        self.assertTrue(g.is_valid())
        self.assertFalse(g.has_vertices())
        self.assertFalse(g.has_edges())

    def test_audit_attributes_reports_orphans(self):
        g = Graph()
        g.add_vertices(2)
        g.vertex_attributes = g.vertex_attributes.vstack(
            pl.DataFrame({"vertex_id": [9]}, schema={"vertex_id": pl.Int64})
        )
        audit = g.audit_attributes()
        self.assertEqual(audit["extra_vertex_rows"], [9])
        self.assertFalse(g.is_valid())

    def test_missing_edge_endpoint_invalid(self):
        g = Graph()
        g.add_vertices(2)
        g.add_edge(1, 2)
        g.edge_definitions[1] = (1, 42, None)
        self.assertFalse(g.is_valid())

    def test_audit_tables_dangling_pointer(self):
        g = Graph()
        g.add_vertices(2)
        g.set_df_as_node_attr(1, {"a": [1]})
        g.set_vertex_attrs(2, df_id="XXXXXXXX")
        audit = g.audit_tables()
        self.assertEqual(audit["dangling_vertex_df_ids"], [2])
        self.assertEqual(audit["unreferenced_tables"], [])
        # pointers are not part of structural validity
        self.assertTrue(g.is_valid())

    def test_has_vertex_tolerates_unhashable(self):
        g = Graph()
        g.add_vertex()
        self.assertFalse(g.has_vertex([1]))
        self.assertTrue(g.has_vertex(1))


class TestCopy(unittest.TestCase):
    def setUp(self):
        self.g = Graph(graph_name="orig")
        self.g.add_vertices(2)
        self.g.add_edge(1, 2)
        self.g.set_df_as_node_attr(1, {"a": [1, 2]})

    def test_copy_is_independent(self):
        h = self.g.copy()
        h.set_df_as_node_attr(2, {"b": [3]})
        h.remove_df_attr(node=1)
        self.assertEqual(len(self.g.tables), 1)
        self.assertIsNotNone(self.g.get_df_for_node(1))
        self.assertIsNone(self.g.get_attr_vertex(2, "df_id"))
        self.assertEqual(h.graph_info["graph_name"], "orig")

    def test_copy_history_flag(self):
        self.assertEqual(self.g.copy().history(), [])
        h = self.g.copy(history=True)
        self.assertEqual(h.history(), self.g.history())
        h.mark("x")
        self.assertEqual(h.last_action().version, self.g._version + 1)
        self.assertNotEqual(self.g.last_action().function_used, "mark")

    def test_repr(self):
        self.assertEqual(repr(self.g), "Graph 'orig'(vertices=2, edges=1, tables=1, directed=True)")
        self.assertEqual(len(self.g), 2)


if __name__ == "__main__":
    unittest.main()
