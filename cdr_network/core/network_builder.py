#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Contact graph construction

Folds normalized records from several files into one graph. Nodes are
phone numbers, edges aggregate every record between an unordered pair of
numbers. The graph is owned by a single build and never shared.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from cdr_network.core.exceptions import EmptyNetworkError
from cdr_network.core.records import Direction, is_night_time
from cdr_network.utils.config import Calibration
from cdr_network.utils.logger import make_emitter

INTERNAL = "internal"
EXTERNAL = "external"


class Role(str, Enum):
    UNCLASSIFIED = "unclassified"
    LEADER = "leader"
    BROKER = "broker"
    OPERATIVE = "operative"
    EXTERNAL_CONTACT = "external-contact"


ROLE_LABELS = {
    Role.UNCLASSIFIED: "Unknown",
    Role.LEADER: "Leader (High Influence)",
    Role.BROKER: "Broker (Network Bridge)",
    Role.OPERATIVE: "Operative (End User)",
    Role.EXTERNAL_CONTACT: "External Contact",
}

# Rough city centres; not a geocoder
CITY_COORDS = {
    'hyderabad': (17.3850, 78.4867),
    'mumbai': (19.0760, 72.8777),
    'delhi': (28.7041, 77.1025),
    'bangalore': (12.9716, 77.5946),
    'bengaluru': (12.9716, 77.5946),
    'chennai': (13.0827, 80.2707),
    'kolkata': (22.5726, 88.3639),
    'pune': (18.5204, 73.8567),
    'ahmedabad': (23.0225, 72.5714),
}
DEFAULT_CENTRE = (20.5937, 78.9629)
COORD_PATTERN = re.compile(r"(-?\d{1,3}\.\d+)\s*,\s*(-?\d{1,3}\.\d+)")


@dataclass
class Location:
    lat: float
    lng: float
    address: str
    approximate: bool = False


@dataclass
class Centrality:
    degree: float = 0
    betweenness: float = 0.0
    closeness: float = 0.0
    eigenvector: float = 0.0


@dataclass
class NodeMetadata:
    incoming_calls: int = 0
    outgoing_calls: int = 0
    avg_call_duration: float = 0.0
    night_calls: int = 0
    provider: str = ""
    imei: List[str] = field(default_factory=list)
    imsi: List[str] = field(default_factory=list)
    cell_ids: List[str] = field(default_factory=list)
    influence_score: float = 0.0


@dataclass
class NetworkNode:
    id: str
    node_type: str
    role: Role = Role.UNCLASSIFIED
    call_count: int = 0
    total_duration: int = 0
    unique_contacts: int = 0
    centrality: Centrality = field(default_factory=Centrality)
    location: Optional[Location] = None
    metadata: NodeMetadata = field(default_factory=NodeMetadata)

    @property
    def label(self):
        return self.id

    @property
    def is_internal(self):
        return self.node_type == INTERNAL

    def to_dict(self):
        return {
            'id': self.id,
            'label': self.label,
            'type': self.node_type,
            'role': self.role.value,
            'role_label': ROLE_LABELS[self.role],
            'call_count': self.call_count,
            'total_duration': self.total_duration,
            'unique_contacts': self.unique_contacts,
            'centrality': vars(self.centrality).copy(),
            'location': vars(self.location).copy() if self.location else None,
            'metadata': {
                'incoming_calls': self.metadata.incoming_calls,
                'outgoing_calls': self.metadata.outgoing_calls,
                'avg_call_duration': self.metadata.avg_call_duration,
                'night_calls': self.metadata.night_calls,
                'provider': self.metadata.provider,
                'imei': list(self.metadata.imei),
                'imsi': list(self.metadata.imsi),
                'cell_ids': list(self.metadata.cell_ids),
                'influence_score': self.metadata.influence_score,
            },
        }


@dataclass
class ContactEdge:
    source: str
    target: str
    weight: int = 0
    call_count: int = 0
    total_duration: int = 0
    avg_duration: float = 0.0
    bidirectional: bool = False
    first_call: Optional[datetime] = None
    last_call: Optional[datetime] = None
    night_calls: int = 0
    day_time: str = "day"
    callers: Set[str] = field(default_factory=set, repr=False)

    @property
    def id(self):
        return f"{self.source}-{self.target}"

    def other(self, number):
        return self.target if number == self.source else self.source

    def to_dict(self):
        return {
            'id': self.id,
            'source': self.source,
            'target': self.target,
            'weight': self.weight,
            'call_count': self.call_count,
            'total_duration': self.total_duration,
            'avg_duration': self.avg_duration,
            'bidirectional': self.bidirectional,
            'metadata': {
                'first_call': self.first_call.strftime("%Y-%m-%d %H:%M:%S") if self.first_call else "",
                'last_call': self.last_call.strftime("%Y-%m-%d %H:%M:%S") if self.last_call else "",
                'night_calls': self.night_calls,
                'day_time': self.day_time,
            },
        }


@dataclass
class NetworkGraph:
    """Node/edge arena for one analysis run"""
    nodes: Dict[str, NetworkNode] = field(default_factory=dict)
    edges: Dict[Tuple[str, str], ContactEdge] = field(default_factory=dict)
    account_numbers: List[str] = field(default_factory=list)

    def find_edge(self, a, b) -> Optional[ContactEdge]:
        return self.edges.get((a, b)) or self.edges.get((b, a))

    def internal_nodes(self) -> List[NetworkNode]:
        return [n for n in self.nodes.values() if n.is_internal]


def is_outgoing(record):
    """'out' anywhere in the raw type text, else the normalized direction"""
    text = (record.call_type or record.direction.value).lower()
    return 'out' in text or record.direction is Direction.OUTGOING


def extract_location(address, rng=None) -> Optional[Location]:
    """Coordinates in the address text, else a city centre, else a random point"""
    if not address:
        return None
    m = COORD_PATTERN.search(address)
    if m:
        return Location(lat=float(m.group(1)), lng=float(m.group(2)), address=address)
    lowered = address.lower()
    for city, (lat, lng) in CITY_COORDS.items():
        if city in lowered:
            return Location(lat=lat, lng=lng, address=address, approximate=True)
    rng = rng if rng is not None else np.random.default_rng()
    lat = DEFAULT_CENTRE[0] + float(rng.uniform(-5.0, 5.0))
    lng = DEFAULT_CENTRE[1] + float(rng.uniform(-5.0, 5.0))
    return Location(lat=round(lat, 4), lng=round(lng, 4), address=address, approximate=True)


class NetworkBuilder:
    def __init__(self, calibration=None, event_hook=None):
        self.calibration = calibration or Calibration()
        self.emit = make_emitter(event_hook)

    def is_night(self, record):
        cal = self.calibration
        return is_night_time(record.time, cal.night_start_hour, cal.night_end_hour)

    def classify_day_time(self, edge):
        ratio = edge.night_calls / max(1, edge.call_count)
        if ratio > self.calibration.edge_night_ratio:
            return "night"
        if ratio < self.calibration.edge_day_ratio:
            return "day"
        return "mixed"

    def _account_node(self, graph, account, provider):
        node = graph.nodes.get(account)
        if node is None:
            node = NetworkNode(id=account, node_type=INTERNAL)
            graph.nodes[account] = node
        elif node.node_type == EXTERNAL and self.calibration.promote_late_accounts:
            node.node_type = INTERNAL
            self.emit('network.account_promoted', account=account)
        if not node.metadata.provider:
            node.metadata.provider = provider
        return node

    def _counterparty_node(self, graph, number):
        node = graph.nodes.get(number)
        if node is None:
            node = NetworkNode(id=number, node_type=EXTERNAL)
            graph.nodes[number] = node
        return node

    def fold_edge(self, graph, record, night):
        account, other = record.account_number, record.counterparty_number
        duration = record.duration_seconds
        when = record.start_dt
        edge = graph.find_edge(account, other)
        if edge is None:
            edge = ContactEdge(source=account, target=other, first_call=when, last_call=when)
            graph.edges[(account, other)] = edge
        else:
            if when is not None:
                edge.first_call = when if edge.first_call is None else min(edge.first_call, when)
                edge.last_call = when if edge.last_call is None else max(edge.last_call, when)

        edge.call_count += 1
        edge.weight += 1
        edge.total_duration += duration
        edge.avg_duration = edge.total_duration / edge.call_count
        if night:
            edge.night_calls += 1
        edge.day_time = self.classify_day_time(edge)

        if is_outgoing(record):
            edge.callers.add(account)
        elif record.direction is Direction.INCOMING:
            edge.callers.add(other)
        if account == edge.target or len(edge.callers) > 1:
            edge.bidirectional = True
        return edge

    def fold_record(self, graph, record, node, contacts, rng):
        other = record.counterparty_number
        duration = record.duration_seconds
        night = self.is_night(record)

        contacts.add(other)
        node.call_count += 1
        node.total_duration += duration
        if is_outgoing(record):
            node.metadata.outgoing_calls += 1
        else:
            node.metadata.incoming_calls += 1
        if night:
            node.metadata.night_calls += 1

        meta = node.metadata
        for bucket, value in ((meta.imei, record.device_imei), (meta.imsi, record.subscriber_imsi),
                              (meta.cell_ids, record.first_cell_id), (meta.cell_ids, record.last_cell_id)):
            if value and value not in bucket:
                bucket.append(value)

        if node.location is None and record.first_cell_address:
            node.location = extract_location(record.first_cell_address, rng)

        peer = self._counterparty_node(graph, other)
        peer.call_count += 1
        peer.total_duration += duration

        self.fold_edge(graph, record, night)

    def build(self, files) -> NetworkGraph:
        """Fold files in the given order into a fresh graph"""
        graph = NetworkGraph()
        contacts: Dict[str, Set[str]] = {}
        rng = np.random.default_rng(self.calibration.location_seed)

        for cdr in files:
            account = cdr.account_number
            if account in graph.account_numbers:
                self.emit('network.duplicate_account', account=account, file=cdr.file_name)
            else:
                graph.account_numbers.append(account)

            account_contacts = contacts.setdefault(account, set())
            folded = skipped = 0
            node = None
            for record in cdr.records:
                other = record.counterparty_number
                if not other or other == account:
                    skipped += 1
                    continue
                if node is None:
                    node = self._account_node(graph, account, cdr.provider)
                self.fold_record(graph, record, node, account_contacts, rng)
                folded += 1

            if node is not None:
                node.unique_contacts = len(account_contacts)
                node.metadata.avg_call_duration = node.total_duration / max(1, node.call_count)
            self.emit('network.file_folded', file=cdr.file_name, account=account,
                      records=folded, skipped=skipped)

        if not graph.nodes:
            raise EmptyNetworkError()
        self.emit('network.built', nodes=len(graph.nodes), edges=len(graph.edges))
        return graph
