"""Tests for the NetworkX view of the character store."""

import pytest


class TestGraphView:
    """Tests for get_graph and its invalidation."""

    def test_nodes_and_placeholders(self, village_store):
        """Test registered characters and unregistered targets both become nodes."""
        graph = village_store.get_graph()
        assert set(graph.nodes) == {"Blacksmith", "Mayor", "Innkeeper", "Alchemist"}
        assert graph.nodes["Alchemist"]["placeholder"] is True
        assert graph.nodes["Mayor"]["placeholder"] is False
        assert graph.edges["Mayor", "Blacksmith"]["label"] == "Respectful"

    def test_edge_target_uses_registered_spelling(self, store):
        """Test a lowercase relationship key attaches to the registered node."""
        store.create({"name": "Mayor"})
        store.create({"name": "Guard", "relationships": {"mayor": "Loyal"}})
        graph = store.get_graph()
        assert graph.has_edge("Guard", "Mayor")
        assert "mayor" not in graph

    def test_cached_until_write(self, village_store, village_ids):
        """Test the graph is reused until a write invalidates it."""
        first = village_store.get_graph()
        assert village_store.get_graph() is first

        village_store.update_relationship(village_ids["Innkeeper"], "Blacksmith", "Customer")

        rebuilt = village_store.get_graph()
        assert rebuilt is not first
        assert rebuilt.has_edge("Innkeeper", "Blacksmith")


class TestGraphQueries:
    """Tests for find_path and most_connected."""

    def test_find_path_through_intermediate(self, village_store):
        """Test a chain of relationships is found by name."""
        assert village_store.find_path("Innkeeper", "alchemist") == ["Innkeeper", "Mayor", "Alchemist"]

    def test_find_path_by_id(self, village_store, village_ids):
        """Test ids resolve to node names."""
        assert village_store.find_path(village_ids["Blacksmith"], "Mayor") == ["Blacksmith", "Mayor"]

    @pytest.mark.parametrize(("source", "target"), [("Alchemist", "Mayor"), ("Mayor", "Wizard")])
    def test_no_path(self, village_store, source, target):
        """Test a missing path or node gives an empty list."""
        assert village_store.find_path(source, target) == []

    def test_most_connected_excludes_placeholders(self, village_store):
        """Test the degree ranking covers registered characters only."""
        ranking = village_store.most_connected()
        assert ranking[0] == ("Mayor", 4)
        assert "Alchemist" not in dict(ranking)
        assert len(village_store.most_connected(limit=1)) == 1
