#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration management for the CDR Network Analyzer
"""

import configparser
import os
import logging
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SETTINGS = {
    'processing': {
        'night_start_hour': '18',
        'night_end_hour': '6',
        'header_scan_rows': '20',
    },
    'report': {
        'top_n': '10',
        'likely_location_count': '5',
    },
    'network': {
        # influence = weighted sum of the four centrality proxies
        'weight_degree': '0.2',
        'weight_betweenness': '0.3',
        'weight_closeness': '0.2',
        'weight_eigenvector': '0.3',
        'betweenness_factor': '0.5',
        'leader_top_fraction': '0.1',
        'leader_min_incoming_ratio': '0.6',
        'leader_min_night_ratio': '0.4',
        'leader_min_unique_contacts': '5',
        'broker_min_betweenness': '2',
        'broker_min_incoming_ratio': '0.3',
        'broker_max_incoming_ratio': '0.7',
        'broker_min_unique_contacts': '3',
        'edge_night_ratio': '0.7',
        'edge_day_ratio': '0.3',
        'suspicious_night_ratio': '0.6',
        'promote_late_accounts': 'false',
        'location_seed': '7',
    },
    'logging': {
        'level': 'INFO',
    },
}


class Config:
    def __init__(self, config_file=None):
        self.config_file = config_file
        self.config = configparser.ConfigParser()
        self.load()

    def load(self):
        """Load configuration from file, or defaults when no file is set"""
        self.create_default_config()
        if not self.config_file:
            return
        try:
            if os.path.exists(self.config_file):
                self.config.read(self.config_file, encoding='utf-8')
                logging.info(f"Configuration loaded from {self.config_file}")
            else:
                self.save()
                logging.info(f"Created default configuration at {self.config_file}")
        except (configparser.Error, OSError) as e:
            logging.error(f"Error loading configuration: {e}")
            self.create_default_config()

    def create_default_config(self):
        """Create default configuration in memory"""
        self.config.clear()
        for section, values in DEFAULT_SETTINGS.items():
            self.config[section] = dict(values)

    def get(self, section, option, fallback=None):
        return self.config.get(section, option, fallback=fallback)

    def getint(self, section, option, fallback=None):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except ValueError:
            logging.warning(f"Invalid integer for {section}.{option}, using {fallback}")
            return fallback

    def getfloat(self, section, option, fallback=None):
        try:
            return self.config.getfloat(section, option, fallback=fallback)
        except ValueError:
            logging.warning(f"Invalid number for {section}.{option}, using {fallback}")
            return fallback

    def getboolean(self, section, option, fallback=None):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except ValueError:
            logging.warning(f"Invalid boolean for {section}.{option}, using {fallback}")
            return fallback

    def set(self, section, option, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, option, str(value))

    def save(self):
        """Save configuration to file"""
        if not self.config_file:
            return
        try:
            Path(self.config_file).parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                self.config.write(f)
            logging.debug(f"Configuration saved to {self.config_file}")
        except OSError as e:
            logging.error(f"Error saving configuration: {e}")

    def get_section_items(self, section):
        if not self.config.has_section(section):
            return {}
        return dict(self.config.items(section))


@dataclass(frozen=True)
class Calibration:
    """Heuristic constants for one analysis run."""
    night_start_hour: int = 18
    night_end_hour: int = 6
    header_scan_rows: int = 20
    top_n: int = 10
    likely_location_count: int = 5
    weight_degree: float = 0.2
    weight_betweenness: float = 0.3
    weight_closeness: float = 0.2
    weight_eigenvector: float = 0.3
    betweenness_factor: float = 0.5
    leader_top_fraction: float = 0.1
    leader_min_incoming_ratio: float = 0.6
    leader_min_night_ratio: float = 0.4
    leader_min_unique_contacts: int = 5
    broker_min_betweenness: float = 2.0
    broker_min_incoming_ratio: float = 0.3
    broker_max_incoming_ratio: float = 0.7
    broker_min_unique_contacts: int = 3
    edge_night_ratio: float = 0.7
    edge_day_ratio: float = 0.3
    suspicious_night_ratio: float = 0.6
    promote_late_accounts: bool = False
    location_seed: int = 7

    @classmethod
    def from_config(cls, config):
        d = cls()
        p, r, n = 'processing', 'report', 'network'
        return cls(
            night_start_hour=config.getint(p, 'night_start_hour', d.night_start_hour),
            night_end_hour=config.getint(p, 'night_end_hour', d.night_end_hour),
            header_scan_rows=config.getint(p, 'header_scan_rows', d.header_scan_rows),
            top_n=config.getint(r, 'top_n', d.top_n),
            likely_location_count=config.getint(r, 'likely_location_count', d.likely_location_count),
            weight_degree=config.getfloat(n, 'weight_degree', d.weight_degree),
            weight_betweenness=config.getfloat(n, 'weight_betweenness', d.weight_betweenness),
            weight_closeness=config.getfloat(n, 'weight_closeness', d.weight_closeness),
            weight_eigenvector=config.getfloat(n, 'weight_eigenvector', d.weight_eigenvector),
            betweenness_factor=config.getfloat(n, 'betweenness_factor', d.betweenness_factor),
            leader_top_fraction=config.getfloat(n, 'leader_top_fraction', d.leader_top_fraction),
            leader_min_incoming_ratio=config.getfloat(n, 'leader_min_incoming_ratio', d.leader_min_incoming_ratio),
            leader_min_night_ratio=config.getfloat(n, 'leader_min_night_ratio', d.leader_min_night_ratio),
            leader_min_unique_contacts=config.getint(n, 'leader_min_unique_contacts', d.leader_min_unique_contacts),
            broker_min_betweenness=config.getfloat(n, 'broker_min_betweenness', d.broker_min_betweenness),
            broker_min_incoming_ratio=config.getfloat(n, 'broker_min_incoming_ratio', d.broker_min_incoming_ratio),
            broker_max_incoming_ratio=config.getfloat(n, 'broker_max_incoming_ratio', d.broker_max_incoming_ratio),
            broker_min_unique_contacts=config.getint(n, 'broker_min_unique_contacts', d.broker_min_unique_contacts),
            edge_night_ratio=config.getfloat(n, 'edge_night_ratio', d.edge_night_ratio),
            edge_day_ratio=config.getfloat(n, 'edge_day_ratio', d.edge_day_ratio),
            suspicious_night_ratio=config.getfloat(n, 'suspicious_night_ratio', d.suspicious_night_ratio),
            promote_late_accounts=config.getboolean(n, 'promote_late_accounts', d.promote_late_accounts),
            location_seed=config.getint(n, 'location_seed', d.location_seed),
        )
