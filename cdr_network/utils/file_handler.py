#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
File handling utilities for the CDR Network Analyzer
"""

import os
import csv
import logging
from pathlib import Path

CDR_INDICATORS = [
    'calling party', 'called party', 'a party', 'b party', 'target no', 'msisdn',
    'call date', 'call time', 'duration', 'imei', 'cell',
]


class FileHandler:
    @staticmethod
    def validate_csv_file(file_path):
        """Validate CSV file format and structure"""
        errors = []
        warnings = []

        if not os.path.exists(file_path):
            errors.append("File does not exist")
            return errors, warnings

        file_size = os.path.getsize(file_path)
        if file_size == 0:
            errors.append("File is empty")
            return errors, warnings

        if file_size > 500 * 1024 * 1024:  # 500MB
            warnings.append("Large file size may cause slow processing")

        if not str(file_path).lower().endswith('.csv'):
            warnings.append("File does not have .csv extension")

        try:
            with open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
                first_lines = [f.readline() for _ in range(10)]
        except OSError as e:
            errors.append(f"Error reading file: {e}")
            return errors, warnings

        if not any(',' in line for line in first_lines):
            errors.append("File does not appear to be comma-separated")

        content = ''.join(first_lines).lower()
        if not any(indicator in content for indicator in CDR_INDICATORS):
            warnings.append("File may not contain CDR data")

        return errors, warnings

    @staticmethod
    def load_raw_rows(file_path):
        """Read every line of a CSV export as an index-keyed row, metadata lines included"""
        try:
            with open(file_path, 'r', encoding='utf-8', errors='ignore', newline='') as f:
                return [dict(enumerate(row)) for row in csv.reader(f)]
        except OSError as e:
            logging.error(f"Error loading file {file_path}: {e}")
            raise

    @staticmethod
    def get_file_info(file_path):
        """Get basic information about a file"""
        try:
            stat = os.stat(file_path)
        except OSError as e:
            logging.error(f"Error getting file info for {file_path}: {e}")
            return None
        return {
            'path': str(file_path),
            'name': os.path.basename(file_path),
            'size': stat.st_size,
            'size_mb': stat.st_size / (1024 * 1024),
            'modified': stat.st_mtime,
            'readable': os.access(file_path, os.R_OK),
        }

    @staticmethod
    def safe_create_directory(dir_path):
        """Safely create directory if it doesn't exist"""
        try:
            Path(dir_path).mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logging.error(f"Error creating directory {dir_path}: {e}")
            return False
