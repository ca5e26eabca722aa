"""CDR Network Analyzer: carrier CDR normalization, reports and contact network analysis"""

__version__ = "1.0.0"
