#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
CDR Network Analyzer - Main Entry Point
Command-line front end: per-file reports and the cross-file contact network
"""

import sys
import json
import logging
import argparse
from pathlib import Path

import numpy as np

from cdr_network.core.exceptions import NetworkAnalysisError
from cdr_network.core.network_analyzer import NetworkAnalyzer
from cdr_network.utils.config import Calibration, Config
from cdr_network.utils.file_handler import FileHandler
from cdr_network.utils.logger import MemoryLogger, setup_logger


def _json_default(value):
    if isinstance(value, np.generic):
        return value.item()
    return str(value)


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog='cdr-network',
        description="Normalize carrier CDR exports and analyze the contact network across them.",
    )
    parser.add_argument('files', nargs='+', help="CDR export files (CSV).")
    parser.add_argument('--config', default=None, help="INI configuration file (created with defaults if missing).")
    parser.add_argument('--log-level', default=None, help="Override the configured log level.")
    parser.add_argument('--log-dir', default=None, help="Also write a dated log file into this directory.")
    parser.add_argument('--output', default=None, help="Write reports and network as JSON to this path.")
    parser.add_argument('--network-only', action='store_true', help="Skip the per-file report tables.")
    parser.add_argument('--workers', type=int, default=1, help="Normalize files on this many threads.")
    parser.add_argument('--trace', action='store_true', help="Print every pipeline event after the run.")
    return parser.parse_args(argv)


class CDRNetworkApp:
    def __init__(self, args):
        self.args = args
        self.config = Config(args.config)
        self.trace = MemoryLogger() if args.trace else None

    def setup_logging(self):
        """Setup application logging"""
        log_level = self.args.log_level or self.config.get('logging', 'level', fallback='INFO')
        setup_logger(log_level, log_dir=self.args.log_dir)

    def load_files(self):
        files = []
        for path in self.args.files:
            errors, warnings = FileHandler.validate_csv_file(path)
            for w in warnings:
                logging.warning(f"{path}: {w}")
            if errors:
                logging.error(f"Skipping {path}: {'; '.join(errors)}")
                continue
            info = FileHandler.get_file_info(path)
            logging.info(f"Loading {info['name']} ({info['size_mb']:.2f} MB)")
            files.append((info['name'], FileHandler.load_raw_rows(path)))
        return files

    def print_summary(self, reports, result):
        for report in reports:
            summary = report.summary[0]
            print(f"{report.file_name}: {report.account_number} ({report.provider}) "
                  f"{summary['Total Events']} events, {len(report.contacts)} contacts")

        stats = result.full_network.statistics
        print(f"Network: {stats['total_nodes']} nodes, {stats['total_edges']} edges, "
              f"{stats['clusters']} clusters, density {stats['network_density']:.4f}")
        print(f"Roles: {stats['leaders']} leaders, {stats['brokers']} brokers, "
              f"{stats['operatives']} operatives, {stats['external_contacts']} external contacts")
        if result.common_contacts:
            print(f"Common contacts: {', '.join(result.common_contacts)}")
        for pattern in result.suspicious_patterns:
            if not pattern.nodes:
                continue
            print(f"[{pattern.severity.upper()}] {pattern.pattern_type}: {pattern.description}")

    def write_output(self, reports, result):
        out_path = Path(self.args.output)
        FileHandler.safe_create_directory(out_path.parent)
        payload = {
            'reports': [r.to_dict() for r in reports],
            'network': result.to_dict(),
        }
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, default=_json_default)
        logging.info(f"Results written to {out_path}")

    def run(self):
        self.setup_logging()
        logging.info("Starting CDR Network Analyzer")

        analyzer = NetworkAnalyzer(
            calibration=Calibration.from_config(self.config),
            event_hook=self.trace,
            max_workers=self.args.workers,
        )
        try:
            normalized = analyzer.normalize_files(self.load_files())
            reports = [] if self.args.network_only else analyzer.generate_reports(normalized)
            result = analyzer.analyze_network(normalized)
        except NetworkAnalysisError as e:
            logging.error(f"Network analysis failed: {e}")
            return 1
        finally:
            if self.trace is not None:
                print(self.trace.to_string(), file=sys.stderr)

        self.print_summary(reports, result)
        if self.args.output:
            self.write_output(reports, result)
        return 0


def main(argv=None):
    """Main entry point"""
    if argv is None:
        argv = sys.argv[1:]
    app = CDRNetworkApp(_parse_args(argv))
    try:
        return app.run()
    except Exception:
        logging.exception("Unexpected error during analysis")
        return 1


if __name__ == "__main__":
    sys.exit(main())
