"""
Tests for the analysis pipeline, end to end from raw rows.
"""

import pytest

from cdr_network.core.carrier_profiles import GENERIC_COLUMNS
from cdr_network.core.exceptions import EmptyNetworkError, NoInputFilesError
from cdr_network.core.network_analyzer import (
    NetworkAnalyzer, analyze_files, count_components, generate_statistics,
)
from cdr_network.core.network_builder import ContactEdge, NetworkNode, Role
from cdr_network.utils.config import Config

from conftest import generic_row

A, B, C = "1000000001", "3000000003", "2000000002"


@pytest.fixture
def two_files():
    file_a = [list(GENERIC_COLUMNS)] + [
        generic_row(A, C, "01-02-2024", f"1{i}:00:00", "60") for i in range(3)
    ]
    file_b = [list(GENERIC_COLUMNS)] + [
        generic_row(B, C, "02-02-2024", "10:00:00", "30"),
        generic_row(B, C, "02-02-2024", "11:00:00", "30"),
        generic_row(B, A, "03-02-2024", "12:00:00", "90"),
    ]
    return [("a.csv", file_a), ("b.csv", file_b)]


class TestEndToEnd:
    """Two uploaded files sharing one contact."""

    def test_common_contact(self, two_files, memory_logger):
        """The number both accounts called is common."""
        result = analyze_files(two_files, event_hook=memory_logger)
        assert result.common_contacts == [C]

    def test_full_network_shape(self, two_files, memory_logger):
        """Three nodes, three edges with aggregated counts."""
        full = analyze_files(two_files, event_hook=memory_logger).full_network
        by_id = {n.id: n for n in full.nodes}
        assert set(by_id) == {A, B, C}
        assert by_id[C].role == Role.EXTERNAL_CONTACT

        edges = {frozenset((e.source, e.target)): e for e in full.edges}
        assert edges[frozenset((A, B))].weight == 1
        assert edges[frozenset((A, C))].call_count == 3
        assert edges[frozenset((B, C))].call_count == 2

    def test_statistics(self, two_files, memory_logger):
        """Counts per role, components and density."""
        stats = analyze_files(two_files, event_hook=memory_logger).full_network.statistics
        assert stats['total_nodes'] == 3
        assert stats['total_edges'] == 3
        assert stats['operatives'] == 2
        assert stats['external_contacts'] == 1
        assert stats['clusters'] == 1
        assert stats['network_density'] == pytest.approx(1.0)

    def test_internal_network(self, two_files, memory_logger):
        """The internal view keeps account nodes and the edges between them."""
        internal = analyze_files(two_files, event_hook=memory_logger).internal_network
        assert {n.id for n in internal.nodes} == {A, B}
        assert [(e.source, e.target) for e in internal.edges] == [(B, A)]
        assert internal.statistics['network_density'] == pytest.approx(1.0)

    def test_internal_network_independent_of_file_order(self, two_files, memory_logger):
        """An account first met as a contact still belongs to the internal view."""
        internal = analyze_files(list(reversed(two_files)), event_hook=memory_logger).internal_network
        assert {n.id for n in internal.nodes} == {A, B}
        assert [(e.source, e.target) for e in internal.edges] == [(B, A)]
        assert internal.statistics['total_edges'] == 1
        assert internal.statistics['clusters'] == 1

    def test_suspicious_patterns(self, two_files, memory_logger):
        """Daytime traffic only flags the shared contact."""
        patterns = analyze_files(two_files, event_hook=memory_logger).suspicious_patterns
        assert [(p.pattern_type, p.nodes) for p in patterns] == [
            ("High Night Activity", []), ("Common External Contacts", [C]),
        ]

    def test_threaded_normalization_matches_serial(self, two_files, memory_logger):
        """Concurrent normalization keeps input order and results."""
        serial = analyze_files(two_files, event_hook=memory_logger).to_dict()
        threaded = analyze_files(two_files, event_hook=memory_logger, max_workers=2).to_dict()
        assert serial == threaded

    def test_to_dict_is_plain(self, two_files, memory_logger):
        """Serialized result uses plain containers."""
        data = analyze_files(two_files, event_hook=memory_logger).to_dict()
        assert set(data) == {'internal_network', 'full_network', 'common_contacts', 'suspicious_patterns'}
        assert data['full_network']['statistics']['total_nodes'] == 3
        assert data['full_network']['nodes'][0]['type'] == "internal"

    def test_progress_reported(self, two_files, memory_logger):
        """Progress callback sees the stages in order and finishes at 100."""
        seen = []
        analyzer = NetworkAnalyzer(event_hook=memory_logger, progress_callback=lambda p, m: seen.append(p))
        analyzer.analyze_files(two_files)
        assert seen == sorted(seen)
        assert seen[-1] == 100


class TestStructuralErrors:
    """Tests for inputs the pipeline cannot analyze."""

    def test_no_files(self, memory_logger):
        """Zero files raises NoInputFilesError."""
        with pytest.raises(NoInputFilesError):
            analyze_files([], event_hook=memory_logger)

    def test_no_valid_records(self, memory_logger):
        """Files without usable records raise EmptyNetworkError."""
        with pytest.raises(EmptyNetworkError):
            analyze_files([("empty.csv", [list(GENERIC_COLUMNS)])], event_hook=memory_logger)

    def test_config_drives_calibration(self, two_files, memory_logger):
        """Calibration values come from the configuration."""
        config = Config()
        config.set('network', 'promote_late_accounts', 'true')
        analyzer = NetworkAnalyzer.from_config(config, event_hook=memory_logger)
        assert analyzer.calibration.promote_late_accounts


class TestStatisticsHelpers:
    """Tests for statistics over arbitrary node and edge lists."""

    def test_components(self):
        """Disconnected pairs are separate clusters."""
        nodes = [NetworkNode(id=x, node_type="internal") for x in "ABCD"]
        edges = [ContactEdge(source="A", target="B"), ContactEdge(source="C", target="D")]
        assert count_components(nodes, edges) == 2

    def test_edges_outside_node_set_ignored(self):
        """Edges to nodes not in the list add neither nodes nor links."""
        nodes = [NetworkNode(id=x, node_type="internal") for x in "AB"]
        edges = [ContactEdge(source="A", target="Z"), ContactEdge(source="B", target="Z")]
        assert count_components(nodes, edges) == 2

    def test_density_over_pairs(self):
        """Density is edges over unordered pairs."""
        nodes = [NetworkNode(id=x, node_type="internal") for x in "ABCD"]
        edges = [ContactEdge(source="A", target="B"), ContactEdge(source="C", target="D"),
                 ContactEdge(source="B", target="C")]
        stats = generate_statistics(nodes, edges)
        assert stats['network_density'] == pytest.approx(0.5)
        assert stats['clusters'] == 1

    def test_density_zero_for_single_node(self):
        """Density is zero below two nodes."""
        stats = generate_statistics([NetworkNode(id="A", node_type="internal")], [])
        assert stats['network_density'] == 0.0
        assert stats['clusters'] == 1

    def test_empty(self):
        """No nodes at all."""
        stats = generate_statistics([], [])
        assert stats['total_nodes'] == 0
        assert stats['clusters'] == 0
