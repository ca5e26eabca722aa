#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Structural failures of a network analysis run"""


class NetworkAnalysisError(Exception):
    """Raised when no analysis can be produced from the supplied files."""


class NoInputFilesError(NetworkAnalysisError):
    def __init__(self, message="No CDR files were supplied for analysis"):
        super().__init__(message)


class EmptyNetworkError(NetworkAnalysisError):
    def __init__(self, message="No valid call records were found in the supplied files"):
        super().__init__(message)
