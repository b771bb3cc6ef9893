"""Tests for RelationshipDiscoveryService."""

import logging

import pytest

from src.memory.relationship_types import (
    NONE_LABEL,
    CharacterDiscovery,
    LookupFailure,
    RelationshipLookup,
    RelationshipNetwork,
    ResolvedEdge,
    UnresolvedEdge,
)
from src.services.discovery_service import RelationshipDiscoveryService


@pytest.fixture
def discovery(tmp_settings, village_store):
    """Discovery service over the village cast."""
    return RelationshipDiscoveryService(tmp_settings, village_store)


def _by_name(discovery_result: CharacterDiscovery):
    return {r.character_name: r for r in discovery_result.relationships}


class TestInit:
    """Tests for service construction."""

    def test_requires_store(self, tmp_settings):
        """Test a missing store is rejected."""
        with pytest.raises(ValueError, match="store"):
            RelationshipDiscoveryService(tmp_settings, None)  # type: ignore[arg-type]


class TestRelationshipBetween:
    """Tests for pairwise lookups."""

    def test_conflicting_pair(self, discovery):
        """Test differing labels in both directions are conflicting."""
        lookup = discovery.relationship_between("Blacksmith", "Mayor")
        assert isinstance(lookup, RelationshipLookup)
        assert (lookup.a_to_b, lookup.b_to_a) == ("Distrustful", "Respectful")
        assert lookup.is_conflicting
        assert not lookup.is_mutual

    def test_mutual_pair(self, discovery, village_store, village_ids):
        """Test equal labels in both directions are mutual."""
        village_store.update_relationship(village_ids["Mayor"], "Innkeeper", "Friendly")
        lookup = discovery.relationship_between(village_ids["Innkeeper"], "mayor")
        assert lookup.is_mutual
        assert not lookup.is_conflicting

    def test_one_sided_pair(self, discovery):
        """Test a single defined direction is neither mutual nor conflicting."""
        lookup = discovery.relationship_between("Innkeeper", "Mayor")
        assert (lookup.a_to_b, lookup.b_to_a) == ("Friendly", NONE_LABEL)
        assert not lookup.is_mutual
        assert not lookup.is_conflicting

    def test_differing_labels_conflict(self, store, tmp_settings):
        """Test two defined labels that differ count as conflicting even when both are friendly."""
        store.create({"name": "Blacksmith", "relationships": {"Mayor": "Respectful"}})
        store.create({"name": "Mayor", "relationships": {"Blacksmith": "Reliable"}})

        lookup = RelationshipDiscoveryService(tmp_settings, store).relationship_between("Blacksmith", "Mayor")

        assert (lookup.a_to_b, lookup.b_to_a) == ("Respectful", "Reliable")
        assert lookup.is_conflicting
        assert not lookup.is_mutual

    def test_case_sensitive_labels_conflict(self, store, tmp_settings):
        """Test labels differing only in case are compared literally."""
        store.create({"name": "Guard", "relationships": {"Captain": "Loyal"}})
        store.create({"name": "Captain", "relationships": {"Guard": "loyal"}})
        lookup = RelationshipDiscoveryService(tmp_settings, store).relationship_between("Guard", "Captain")
        assert lookup.is_conflicting

    def test_same_character(self, discovery):
        """Test a character has no relationship with itself."""
        lookup = discovery.relationship_between("Mayor", "MAYOR")
        assert (lookup.a_to_b, lookup.b_to_a) == (NONE_LABEL, NONE_LABEL)
        assert not lookup.has_direct

    @pytest.mark.parametrize(
        ("a", "b", "a_found", "b_found"),
        [("Wizard", "Mayor", False, True), ("Mayor", "Wizard", True, False), ("Wizard", "Witch", False, False)],
    )
    def test_not_found(self, discovery, a, b, a_found, b_found):
        """Test unknown characters give a failure naming the missing side."""
        result = discovery.relationship_between(a, b)
        assert isinstance(result, LookupFailure)
        assert (result.a_found, result.b_found) == (a_found, b_found)
        assert result.message.startswith("Character(s) not found:")


class TestDiscoverFor:
    """Tests for single-character discovery."""

    def test_blacksmith(self, discovery):
        """Test direct conflict with the Mayor and an indirect link to the Innkeeper."""
        result = discovery.discover_for("Blacksmith")
        found = _by_name(result)

        assert found["Mayor"].direct.is_conflicting
        assert found["Mayor"].indirect == []
        assert found["Innkeeper"].direct is None
        [link] = found["Innkeeper"].indirect
        assert (link.through, link.target_to_common, link.other_to_common) == ("Mayor", "Distrustful", "Friendly")
        assert result.future == []
        assert (result.stats.total_candidates, result.stats.direct, result.stats.indirect) == (2, 1, 1)
        assert result.stats.conflicting == 1

    def test_future_edges(self, discovery):
        """Test unregistered targets are reported as future edges."""
        result = discovery.discover_for("Mayor")
        assert [(f.name, f.label, f.is_placeholder) for f in result.future] == [("Alchemist", "Suspicious", True)]
        assert result.stats.future == 1
        assert "Alchemist" not in _by_name(result)

    def test_incoming_only_counts_as_direct(self, discovery):
        """Test an edge pointing at the target alone is a direct relationship."""
        found = _by_name(discovery.discover_for("Mayor"))
        direct = found["Innkeeper"].direct
        assert (direct.target_to_other, direct.other_to_target) == (NONE_LABEL, "Friendly")

    def test_indirect_only_without_direct(self, discovery, village_store, village_ids):
        """Test a direct relationship suppresses shared-third-party links."""
        village_store.update_relationship(village_ids["Innkeeper"], "Blacksmith", "Customer")
        found = _by_name(discovery.discover_for("Innkeeper"))
        assert found["Blacksmith"].direct.target_to_other == "Customer"
        assert found["Blacksmith"].indirect == []

    def test_indirect_link_through_shared_acquaintance(self, store, tmp_settings):
        """Test two characters who both know the Mayor are linked through the Mayor."""
        store.create({"name": "Innkeeper", "relationships": {"Mayor": "Distrustful"}})
        store.create({"name": "Blacksmith", "relationships": {"Mayor": "Respectful"}})

        result = RelationshipDiscoveryService(tmp_settings, store).discover_for("Innkeeper")
        found = _by_name(result)

        assert found["Blacksmith"].direct is None
        [link] = found["Blacksmith"].indirect
        assert (link.through, link.target_to_common, link.other_to_common) == (
            "Mayor",
            "Distrustful",
            "Respectful",
        )
        assert result.stats.indirect == 1

    def test_one_link_per_shared_name(self, store, tmp_settings):
        """Test every shared third party gives its own link, matched case-insensitively."""
        store.create({"name": "Guard", "relationships": {"Thief": "Hostile", "Dragon": "Afraid"}})
        store.create({"name": "Cook", "relationships": {"thief": "Wary", "DRAGON": "Curious"}})
        store.create({"name": "Thief"})
        service = RelationshipDiscoveryService(tmp_settings, store)

        found = _by_name(service.discover_for("Guard"))

        links = {link.through: link.other_to_common for link in found["Cook"].indirect}
        assert links == {"Thief": "Wary", "Dragon": "Curious"}
        assert found["Thief"].direct is not None
        assert found["Thief"].indirect == []

    def test_unrelated_characters_omitted(self, discovery, village_store):
        """Test characters with no link of any kind are not listed."""
        village_store.create({"name": "Hermit"})
        result = discovery.discover_for("Hermit")
        assert result.relationships == []
        assert result.stats.total_candidates == 3

    def test_self_and_none_edges_ignored(self, store, tmp_settings):
        """Test self edges and 'none' labels do not produce results."""
        store.create({"name": "Guard", "relationships": {"guard": "Proud", "Cook": "none"}})
        store.create({"name": "Cook"})
        result = RelationshipDiscoveryService(tmp_settings, store).discover_for("Guard")
        assert result.relationships == []
        assert result.future == []

    def test_unknown(self, discovery):
        """Test an unknown character gives a LookupFailure."""
        result = discovery.discover_for("Wizard")
        assert isinstance(result, LookupFailure)
        assert result.message == "Character not found: Wizard"


class TestRelationshipNetwork:
    """Tests for the network view."""

    def test_contexts_attached(self, discovery):
        """Test direct and indirect entries carry context snapshots."""
        network = discovery.relationship_network("Innkeeper")
        assert isinstance(network, RelationshipNetwork)

        [direct] = network.direct
        assert direct.character_name == "Mayor"
        assert direct.context.current_state == "Worried about taxes"

        [indirect] = network.indirect
        assert indirect.character_name == "Blacksmith"
        assert indirect.context.location == "Forge"
        assert indirect.through_context is not None
        assert indirect.through_context.location == "Town Hall"

    def test_unregistered_intermediate(self, store, tmp_settings):
        """Test an unregistered common name gives no through context."""
        store.create({"name": "Knight", "relationships": {"Dragon": "Hunting"}})
        store.create({"name": "Farmer", "relationships": {"Dragon": "Terrified"}})
        network = RelationshipDiscoveryService(tmp_settings, store).relationship_network("Knight")

        [indirect] = network.indirect
        assert indirect.link.through == "Dragon"
        assert indirect.through_context is None
        assert [f.name for f in network.future] == ["Dragon"]

    def test_unknown(self, discovery):
        """Test an unknown character gives a LookupFailure."""
        assert isinstance(discovery.relationship_network("Wizard"), LookupFailure)


class TestDiscoverAll:
    """Tests for population discovery."""

    def test_totals(self, discovery, caplog):
        """Test totals are the sum of the per-character stats."""
        with caplog.at_level(logging.INFO, logger="src.services.discovery_service"):
            result = discovery.discover_all()

        assert (result.total_characters, result.successful, result.failed) == (3, 3, 0)
        assert result.total_direct == 4
        assert result.total_indirect == 2
        assert result.total_future == 1
        assert result.total_conflicting == 2
        assert result.total_mutual == 0
        assert result.total_direct == sum(c.stats.direct for c in result.per_character)
        assert all(c.processing_time_ms >= 0 for c in result.per_character)
        assert "Discovered relationships for 3/3 character(s)" in caplog.text

    def test_vanished_character_counts_as_failure(self, discovery, village_store, monkeypatch):
        """Test an id listed but missing from the snapshot is counted as failed."""
        ids = village_store.list_ids()
        monkeypatch.setattr(village_store, "list_ids", lambda: [*ids, "ghost"])

        result = discovery.discover_all()

        assert (result.total_characters, result.successful, result.failed) == (4, 3, 1)

    def test_empty_store(self, tmp_settings, store):
        """Test an empty store gives zero totals."""
        result = RelationshipDiscoveryService(tmp_settings, store).discover_all()
        assert (result.total_characters, result.successful, result.per_character) == (0, 0, [])


class TestResolveEdges:
    """Tests for resolve_edges."""

    def test_resolved_and_unresolved(self, discovery, village_ids):
        """Test edges are split into registered and placeholder targets."""
        edges = discovery.resolve_edges("Mayor")
        resolved = [e for e in edges if isinstance(e, ResolvedEdge)]
        unresolved = [e for e in edges if isinstance(e, UnresolvedEdge)]
        assert [(e.target_id, e.label) for e in resolved] == [(village_ids["Blacksmith"], "Respectful")]
        assert [(e.target_name, e.label) for e in unresolved] == [("Alchemist", "Suspicious")]

    def test_edge_resolves_after_registration(self, discovery, village_store):
        """Test a future edge resolves once the character is registered."""
        village_store.create({"name": "alchemist"})
        assert all(e.kind == "resolved" for e in discovery.resolve_edges("Mayor"))

    def test_unknown(self, discovery):
        """Test an unknown character gives a LookupFailure."""
        assert isinstance(discovery.resolve_edges("Wizard"), LookupFailure)


class TestDetectMentions:
    """Tests for detect_mentions."""

    def test_whole_word_case_insensitive(self, discovery):
        """Test names are matched as whole words in any case."""
        scan = discovery.detect_mentions("Innkeeper", "Have you seen the MAYOR or the blacksmith?")
        assert sorted(m.character_name for m in scan.mentioned) == ["Blacksmith", "Mayor"]
        assert [m.character_name for m in scan.related] == ["Mayor"]

    def test_partial_word_ignored(self, discovery):
        """Test a name inside a longer word is not a mention."""
        scan = discovery.detect_mentions("Innkeeper", "The mayoral election is close")
        assert scan.mentioned == []

    def test_speaker_not_mentioned(self, discovery):
        """Test the speaker's own name is skipped."""
        scan = discovery.detect_mentions("Mayor", "As Mayor I must ask")
        assert scan.mentioned == []

    def test_unknown_speaker(self, discovery):
        """Test an unknown speaker gives a LookupFailure."""
        assert isinstance(discovery.detect_mentions("Wizard", "hello"), LookupFailure)
