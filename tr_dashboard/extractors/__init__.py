"""
Row extractors: uploaded CSV files and paginated backend tables.
"""

from .backend_extractor import BackendExtractor
from .csv_extractor import CsvExtractor, detect_delimiter

__all__ = ['BackendExtractor', 'CsvExtractor', 'detect_delimiter']
