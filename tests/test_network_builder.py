"""
Tests for contact graph construction.
"""

from datetime import datetime

import numpy as np
import pytest

from cdr_network.core.exceptions import EmptyNetworkError
from cdr_network.core.network_builder import (
    CITY_COORDS, EXTERNAL, INTERNAL, NetworkBuilder, extract_location,
)
from cdr_network.core.records import Direction
from cdr_network.utils.config import Calibration

from conftest import make_cdr, make_record


@pytest.fixture
def builder(memory_logger):
    return NetworkBuilder(event_hook=memory_logger)


class TestNodes:
    """Tests for node creation and counters."""

    def test_account_internal_counterparty_external(self, builder):
        """Accounts are internal, counterparties external."""
        graph = builder.build([make_cdr("A", [make_record("A", "B")])])
        assert graph.nodes["A"].node_type == INTERNAL
        assert graph.nodes["B"].node_type == EXTERNAL
        assert graph.account_numbers == ["A"]

    def test_account_counters(self, builder):
        """Direction, night and duration counters accumulate."""
        records = [
            make_record("A", "B", hour=23, duration=100, direction=Direction.INCOMING),
            make_record("A", "C", hour=10, duration=50),
            make_record("A", "B", hour=2, duration=30),
        ]
        node = builder.build([make_cdr("A", records)]).nodes["A"]
        assert node.call_count == 3
        assert node.total_duration == 180
        assert node.metadata.incoming_calls == 1
        assert node.metadata.outgoing_calls == 2
        assert node.metadata.night_calls == 2
        assert node.unique_contacts == 2
        assert node.metadata.avg_call_duration == 60

    def test_counterparty_counters(self, builder):
        """Counterparties count calls and duration too."""
        records = [make_record("A", "B", duration=10), make_record("A", "B", duration=20)]
        peer = builder.build([make_cdr("A", records)]).nodes["B"]
        assert peer.call_count == 2
        assert peer.total_duration == 30

    def test_self_and_empty_counterparty_skipped(self, builder, memory_logger):
        """Records without a usable counterparty are not folded."""
        records = [make_record("A", "A"), make_record("A", ""), make_record("A", "B")]
        graph = builder.build([make_cdr("A", records)])
        assert set(graph.nodes) == {"A", "B"}
        assert graph.nodes["A"].call_count == 1
        assert memory_logger.events("network.file_folded")[0]['fields']['skipped'] == 2

    def test_identifiers_collected_in_order(self, builder):
        """IMEI, IMSI and cell ids are kept as ordered unique lists."""
        records = [
            make_record("A", "B", device_imei="111", first_cell_id="C1", last_cell_id="C2"),
            make_record("A", "B", device_imei="222", first_cell_id="C2"),
            make_record("A", "B", device_imei="111", subscriber_imsi="404"),
        ]
        meta = builder.build([make_cdr("A", records)]).nodes["A"].metadata
        assert meta.imei == ["111", "222"]
        assert meta.imsi == ["404"]
        assert meta.cell_ids == ["C1", "C2"]

    def test_late_account_stays_external_by_default(self, builder):
        """A number first seen as a contact keeps its external tag."""
        files = [make_cdr("A", [make_record("A", "B")]), make_cdr("B", [make_record("B", "C")])]
        graph = builder.build(files)
        assert graph.nodes["B"].node_type == EXTERNAL

    def test_late_account_promoted_when_enabled(self, memory_logger):
        """With promotion on, the later account becomes internal."""
        builder = NetworkBuilder(Calibration(promote_late_accounts=True), memory_logger)
        files = [make_cdr("A", [make_record("A", "B")]), make_cdr("B", [make_record("B", "C")])]
        graph = builder.build(files)
        assert graph.nodes["B"].node_type == INTERNAL
        assert len(memory_logger.events("network.account_promoted")) == 1

    def test_duplicate_account_warns(self, builder, memory_logger):
        """Two files for one account are folded together with a warning."""
        files = [make_cdr("A", [make_record("A", "B")], "a1.csv"),
                 make_cdr("A", [make_record("A", "C")], "a2.csv")]
        graph = builder.build(files)
        assert graph.account_numbers == ["A"]
        assert graph.nodes["A"].unique_contacts == 2
        assert memory_logger.get_messages('WARNING')[0]['event'] == "network.duplicate_account"


class TestEdges:
    """Tests for edge folding."""

    def test_single_edge_per_pair(self, builder):
        """Records in either orientation fold into one edge."""
        files = [
            make_cdr("A", [make_record("A", "B"), make_record("A", "B")]),
            make_cdr("B", [make_record("B", "A")]),
        ]
        graph = builder.build(files)
        assert len(graph.edges) == 1
        edge = graph.find_edge("B", "A")
        assert edge.source == "A"
        assert edge.call_count == 3
        assert edge.weight == 3
        assert edge.bidirectional

    def test_fold_order_does_not_change_count(self, builder):
        """Reversed file order gives the same call count."""
        a = make_cdr("A", [make_record("A", "B"), make_record("A", "B")])
        b = make_cdr("B", [make_record("B", "A")])
        assert builder.build([a, b]).find_edge("A", "B").call_count == \
            builder.build([b, a]).find_edge("A", "B").call_count == 3

    def test_one_way_edge_not_bidirectional(self, builder):
        """Only outgoing calls from one side leave the edge one-way."""
        graph = builder.build([make_cdr("A", [make_record("A", "B"), make_record("A", "B")])])
        assert not graph.find_edge("A", "B").bidirectional

    def test_both_directions_in_one_file(self, builder):
        """Incoming and outgoing records from one account make it two-way."""
        records = [make_record("A", "B"), make_record("A", "B", direction=Direction.INCOMING)]
        assert builder.build([make_cdr("A", records)]).find_edge("A", "B").bidirectional

    def test_duration_and_timestamps(self, builder):
        """Totals, average and first/last call are maintained."""
        records = [
            make_record("A", "B", day=5, hour=9, duration=30),
            make_record("A", "B", day=2, hour=9, duration=90),
            make_record("A", "B", day=7, hour=9, duration=60),
        ]
        edge = builder.build([make_cdr("A", records)]).find_edge("A", "B")
        assert edge.total_duration == 180
        assert edge.avg_duration == 60
        assert edge.first_call == datetime(2024, 1, 2, 9, 0)
        assert edge.last_call == datetime(2024, 1, 7, 9, 0)

    @pytest.mark.parametrize("hours,expected", [
        ([23, 1, 2, 3], "night"),
        ([10, 11, 12, 13], "day"),
        ([23, 1, 10, 11], "mixed"),
    ])
    def test_day_time_classification(self, builder, hours, expected):
        """Night share above 0.7 is night, below 0.3 is day."""
        records = [make_record("A", "B", hour=h) for h in hours]
        edge = builder.build([make_cdr("A", records)]).find_edge("A", "B")
        assert edge.day_time == expected

    def test_edge_to_dict(self, builder):
        """Serialized edge carries identity and metadata."""
        data = builder.build([make_cdr("A", [make_record("A", "B", hour=22)])]).find_edge("A", "B").to_dict()
        assert data['id'] == "A-B"
        assert data['metadata']['first_call'] == "2024-01-01 22:00:00"
        assert data['metadata']['night_calls'] == 1
        assert data['metadata']['day_time'] == "night"


class TestEmptyNetwork:
    """Tests for inputs that produce no nodes."""

    def test_no_records_raises(self, builder):
        """Zero nodes is a structural error."""
        with pytest.raises(EmptyNetworkError):
            builder.build([make_cdr("A", [])])

    def test_only_invalid_records_raises(self, builder):
        """An all-invalid file creates no nodes."""
        with pytest.raises(EmptyNetworkError):
            builder.build([make_cdr("A", [make_record("A", "A")])])


class TestLocation:
    """Tests for the address to coordinate lookup."""

    def test_coordinates_in_address(self):
        """Explicit coordinates win."""
        loc = extract_location("Tower 12, 17.4239, 78.4738 Hyderabad")
        assert (loc.lat, loc.lng) == (17.4239, 78.4738)
        assert not loc.approximate

    def test_city_lookup(self):
        """Known city names map to the city centre."""
        loc = extract_location("Andheri East, MUMBAI")
        assert (loc.lat, loc.lng) == CITY_COORDS['mumbai']
        assert loc.approximate

    def test_random_fallback_is_seeded(self):
        """Unknown places get reproducible jitter around the default centre."""
        first = extract_location("Village Road", np.random.default_rng(7))
        second = extract_location("Village Road", np.random.default_rng(7))
        assert (first.lat, first.lng) == (second.lat, second.lng)
        assert 15 < first.lat < 26

    def test_empty_address(self):
        """No address, no location."""
        assert extract_location("") is None

    def test_account_node_located_from_first_address(self, builder):
        """The first record with an address sets the account location."""
        records = [make_record("A", "B"), make_record("A", "B", address="Salt Lake, Kolkata"),
                   make_record("A", "B", address="Pune")]
        node = builder.build([make_cdr("A", records)]).nodes["A"]
        assert (node.location.lat, node.location.lng) == CITY_COORDS['kolkata']
