"""Consolidate pipe-delimited ``.asc`` extract files into one Excel workbook."""

from __future__ import annotations

from .aggregator import AggregationResult, aggregate_folders, create_combined_identifier
from .parser import ParsedFile, parse_table
from .pipeline import ConversionResult, convert_archive, convert_folders
from .workbook import build_workbook

__all__ = [
    'AggregationResult',
    'ConversionResult',
    'ParsedFile',
    'aggregate_folders',
    'build_workbook',
    'convert_archive',
    'convert_folders',
    'create_combined_identifier',
    'parse_table',
]

__version__ = '1.0.0'
