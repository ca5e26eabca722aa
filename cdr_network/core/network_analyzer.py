#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Network analysis pipeline

raw files -> format detection + normalization (per file) -> reports (per
file) and graph build -> centrality/roles -> cross-file correlation.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List

import networkx as nx

from cdr_network.core.cdr_processor import CDRNormalizer
from cdr_network.core.correlator import detect_suspicious_patterns, find_common_contacts
from cdr_network.core.exceptions import NoInputFilesError
from cdr_network.core.network_builder import NetworkBuilder, Role
from cdr_network.core.report_generator import ReportGenerator
from cdr_network.core.role_classifier import RoleClassifier
from cdr_network.utils.config import Calibration, Config
from cdr_network.utils.logger import PerformanceLogger, make_emitter


@dataclass
class NetworkData:
    nodes: list = field(default_factory=list)
    edges: list = field(default_factory=list)
    statistics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self):
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
            'statistics': dict(self.statistics),
        }


@dataclass
class NetworkAnalysisResult:
    internal_network: NetworkData
    full_network: NetworkData
    common_contacts: List[str] = field(default_factory=list)
    suspicious_patterns: list = field(default_factory=list)

    def to_dict(self):
        return {
            'internal_network': self.internal_network.to_dict(),
            'full_network': self.full_network.to_dict(),
            'common_contacts': list(self.common_contacts),
            'suspicious_patterns': [p.to_dict() for p in self.suspicious_patterns],
        }


def to_nx_graph(nodes, edges) -> nx.Graph:
    """Undirected view of the given nodes; edges leaving the node set are dropped"""
    G = nx.Graph()
    G.add_nodes_from(n.id for n in nodes)
    G.add_edges_from((e.source, e.target) for e in edges
                     if G.has_node(e.source) and G.has_node(e.target))
    return G


def count_components(nodes, edges):
    return nx.number_connected_components(to_nx_graph(nodes, edges))


def generate_statistics(nodes, edges):
    G = to_nx_graph(nodes, edges)
    return {
        'total_nodes': G.number_of_nodes(),
        'total_edges': G.number_of_edges(),
        'leaders': sum(1 for x in nodes if x.role == Role.LEADER),
        'brokers': sum(1 for x in nodes if x.role == Role.BROKER),
        'operatives': sum(1 for x in nodes if x.role == Role.OPERATIVE),
        'external_contacts': sum(1 for x in nodes if x.role == Role.EXTERNAL_CONTACT),
        'clusters': nx.number_connected_components(G),
        'network_density': nx.density(G),
    }


def network_data(nodes, edges):
    return NetworkData(nodes=list(nodes), edges=list(edges), statistics=generate_statistics(nodes, edges))


class NetworkAnalyzer:
    def __init__(self, calibration=None, event_hook=None, progress_callback=None, max_workers=1):
        self.calibration = calibration or Calibration()
        self.event_hook = event_hook
        self.emit = make_emitter(event_hook)
        self.progress_callback = progress_callback
        self.max_workers = max(1, int(max_workers or 1))

    @classmethod
    def from_config(cls, config=None, **kwargs):
        return cls(calibration=Calibration.from_config(config or Config()), **kwargs)

    def update_progress(self, percent, message=""):
        if self.progress_callback:
            self.progress_callback(percent, message)

    def normalize_files(self, files):
        """Detect and normalize each (file_name, rows) pair, results in input order"""
        normalizer = CDRNormalizer(self.calibration, self.event_hook)
        files = list(files)
        if self.max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(files))) as executor:
                return list(executor.map(lambda item: normalizer.process_file(*item), files))
        return [normalizer.process_file(name, rows) for name, rows in files]

    def generate_reports(self, normalized):
        generator = ReportGenerator(self.calibration, self.event_hook)
        return [generator.generate(cdr) for cdr in normalized]

    def analyze_network(self, normalized) -> NetworkAnalysisResult:
        """Build, classify and correlate the contact network of normalized files"""
        if not normalized:
            raise NoInputFilesError()

        self.update_progress(40, "Building contact network")
        graph = NetworkBuilder(self.calibration, self.event_hook).build(normalized)

        self.update_progress(60, "Classifying roles")
        RoleClassifier(self.calibration, self.event_hook).run(graph)

        self.update_progress(80, "Correlating files")
        common = find_common_contacts(normalized)
        nodes = list(graph.nodes.values())
        edges = list(graph.edges.values())
        # Uploaded accounts, whatever node type they were created with
        internal_ids = set(graph.account_numbers)
        internal_nodes = [n for n in nodes if n.id in internal_ids]
        internal_edges = [e for e in edges if e.source in internal_ids and e.target in internal_ids]

        result = NetworkAnalysisResult(
            internal_network=network_data(internal_nodes, internal_edges),
            full_network=network_data(nodes, edges),
            common_contacts=common,
            suspicious_patterns=detect_suspicious_patterns(nodes, common, self.calibration),
        )
        self.emit('network.analyzed', nodes=len(nodes), edges=len(edges),
                  common_contacts=len(common), patterns=len(result.suspicious_patterns))
        self.update_progress(100, "Network analysis complete")
        return result

    def analyze_files(self, files) -> NetworkAnalysisResult:
        files = list(files or [])
        if not files:
            raise NoInputFilesError()
        with PerformanceLogger(f"network analysis of {len(files)} files"):
            self.update_progress(10, "Normalizing files")
            return self.analyze_network(self.normalize_files(files))


def analyze_files(files, config=None, event_hook=None, max_workers=1) -> NetworkAnalysisResult:
    """Run the full pipeline over an ordered list of (file_name, rows) pairs"""
    analyzer = NetworkAnalyzer.from_config(config, event_hook=event_hook, max_workers=max_workers)
    return analyzer.analyze_files(files)


def analyze_network(normalized, calibration=None, event_hook=None) -> NetworkAnalysisResult:
    return NetworkAnalyzer(calibration, event_hook).analyze_network(normalized)
