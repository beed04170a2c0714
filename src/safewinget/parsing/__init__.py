"""
Parsers for winget console output.
"""

from safewinget.parsing.cleaning import clean_output
from safewinget.parsing.details import parse_details
from safewinget.parsing.mapper import map_row, map_rows
from safewinget.parsing.table import TableParser, parse_table

__all__ = [
    "TableParser",
    "clean_output",
    "map_row",
    "map_rows",
    "parse_details",
    "parse_table",
]
