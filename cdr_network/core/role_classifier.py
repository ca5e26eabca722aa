#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Centrality proxies and role assignment

The centrality values are cheap local approximations computed from edge
counts and weights, not graph-theoretic betweenness or eigenvector scores.
"""

import math
from collections import defaultdict

from cdr_network.core.network_builder import Role
from cdr_network.utils.config import Calibration
from cdr_network.utils.logger import make_emitter


class RoleClassifier:
    def __init__(self, calibration=None, event_hook=None):
        self.calibration = calibration or Calibration()
        self.emit = make_emitter(event_hook)

    def compute_centrality(self, graph):
        """Fill in degree, betweenness, closeness and eigenvector for every node"""
        cal = self.calibration
        touching = defaultdict(list)
        for edge in graph.edges.values():
            touching[edge.source].append(edge)
            touching[edge.target].append(edge)

        n = len(graph.nodes)
        for node in graph.nodes.values():
            degree = len(touching[node.id])
            node.centrality.degree = degree
            node.centrality.betweenness = degree * cal.betweenness_factor
            node.centrality.closeness = degree / max(1, n - 1)

        # second pass: needs every neighbour's degree
        for node in graph.nodes.values():
            node.centrality.eigenvector = float(sum(
                graph.nodes[edge.other(node.id)].centrality.degree * edge.weight
                for edge in touching[node.id]
            ))

    def influence(self, node):
        cal = self.calibration
        c = node.centrality
        return (c.degree * cal.weight_degree
                + c.betweenness * cal.weight_betweenness
                + c.closeness * cal.weight_closeness
                + c.eigenvector * cal.weight_eigenvector)

    def is_leader(self, node, rank, leader_slots):
        cal = self.calibration
        calls = max(1, node.call_count)
        return (rank < leader_slots
                and node.metadata.incoming_calls / calls > cal.leader_min_incoming_ratio
                and node.metadata.night_calls / calls > cal.leader_min_night_ratio
                and node.unique_contacts > cal.leader_min_unique_contacts)

    def is_broker(self, node):
        cal = self.calibration
        incoming_ratio = node.metadata.incoming_calls / max(1, node.call_count)
        return (node.centrality.betweenness > cal.broker_min_betweenness
                and cal.broker_min_incoming_ratio < incoming_ratio < cal.broker_max_incoming_ratio
                and node.unique_contacts > cal.broker_min_unique_contacts)

    def classify(self, graph):
        internal = graph.internal_nodes()
        if not internal:
            return graph

        for node in internal:
            node.metadata.influence_score = self.influence(node)

        # stable sort keeps build order for equal scores
        ranked = sorted(internal, key=lambda n: n.metadata.influence_score, reverse=True)
        leader_slots = math.ceil(len(ranked) * self.calibration.leader_top_fraction)

        for rank, node in enumerate(ranked):
            if self.is_leader(node, rank, leader_slots):
                node.role = Role.LEADER
            elif self.is_broker(node):
                node.role = Role.BROKER
            else:
                node.role = Role.OPERATIVE

        for node in graph.nodes.values():
            if not node.is_internal:
                node.role = Role.EXTERNAL_CONTACT

        self.emit('network.classified', internal=len(internal),
                  leaders=sum(1 for n in internal if n.role == Role.LEADER),
                  brokers=sum(1 for n in internal if n.role == Role.BROKER))
        return graph

    def run(self, graph):
        self.compute_centrality(graph)
        return self.classify(graph)
