#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Cross-file correlation: shared contacts and suspicious patterns"""

from dataclasses import dataclass, field
from typing import Dict, List, Set

from cdr_network.utils.config import Calibration


@dataclass
class SuspiciousPattern:
    pattern_type: str
    description: str
    nodes: List[str] = field(default_factory=list)
    severity: str = "medium"

    def to_dict(self):
        return {
            'type': self.pattern_type,
            'description': self.description,
            'nodes': list(self.nodes),
            'severity': self.severity,
        }


def find_common_contacts(files) -> List[str]:
    """Counterparties reached from at least two distinct accounts, first-seen order"""
    if len(files) < 2:
        return []

    contacts_by_account: Dict[str, Set[str]] = {}
    first_seen: Dict[str, int] = {}
    for cdr in files:
        seen = contacts_by_account.setdefault(cdr.account_number, set())
        for record in cdr.records:
            number = record.counterparty_number
            if not number or number == cdr.account_number:
                continue
            seen.add(number)
            first_seen.setdefault(number, len(first_seen))

    counts: Dict[str, int] = {}
    for numbers in contacts_by_account.values():
        for number in numbers:
            counts[number] = counts.get(number, 0) + 1

    common = [n for n, c in counts.items() if c >= 2]
    return sorted(common, key=first_seen.__getitem__)


def detect_suspicious_patterns(nodes, common_contacts, calibration=None) -> List[SuspiciousPattern]:
    calibration = calibration or Calibration()
    night_nodes = [
        node.id for node in nodes
        if node.metadata.night_calls / max(1, node.call_count) > calibration.suspicious_night_ratio
    ]
    # Both entries are always present; an empty node list means nothing was found
    return [
        SuspiciousPattern(
            pattern_type="High Night Activity",
            description=f"Numbers with unusually high night-time activity: {len(night_nodes)}",
            nodes=night_nodes,
            severity="high",
        ),
        SuspiciousPattern(
            pattern_type="Common External Contacts",
            description=f"Numbers contacted by multiple accounts: {len(common_contacts)}",
            nodes=list(common_contacts),
            severity="medium",
        ),
    ]
