"""
Cross-source aggregation
========================

Merges the tables of every source folder into one mapping of section code to
records.  Each record receives a synthetic ``No_Pedimento`` key built from the
payment year, customs section, patente and pedimento number of the row.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .parser import ParsedFile, Record, parse_table
from .sections import (
    CUSTOMS_SECTION_ALIASES,
    IDENTIFIER_FIELD,
    PATENTE_ALIASES,
    PAYMENT_DATE_ALIASES,
    PEDIMENTO_ALIASES,
    first_value,
    is_known_section,
    order_section_codes,
)

LOGGER = logging.getLogger(__name__)

NO_DATA_MESSAGE = 'No valid data found in the ASC files.'
FALLBACK_IDENTIFIER = 'SIN_IDENTIFICADOR'

FolderMap = Mapping[str, Mapping[str, str]]
SectionMap = Dict[str, List[Record]]


@dataclass
class AggregationResult:
    """Merged section map plus the bookkeeping shown to the user."""

    section_map: SectionMap = field(default_factory=dict)
    error: Optional[str] = None
    files_processed: int = 0
    skipped_files: Dict[str, str] = field(default_factory=dict)
    unknown_codes: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def section_counts(self) -> Dict[str, int]:
        """Row count per section in worksheet order."""
        return {code: len(self.section_map[code]) for code in order_section_codes(self.section_map)}


# ---------------------------------------------------------------------------
# Composite identifier
# ---------------------------------------------------------------------------

def create_combined_identifier(record: Mapping[str, str]) -> str:
    """Build the ``No_Pedimento`` value of a record.

    The identifier joins with ``-`` whichever of these parts are present:
    the two digit year of the real payment date (``2025-03-05 ...`` gives
    ``25``), the customs section, the patente and the pedimento number.
    A record with none of them yields an empty string.  Any unexpected
    failure yields ``FALLBACK_IDENTIFIER``.
    """
    try:
        parts = []
        payment_date = first_value(record, PAYMENT_DATE_ALIASES)
        if payment_date and len(payment_date) >= 4:
            parts.append(payment_date[2:4])
        for aliases in (CUSTOMS_SECTION_ALIASES, PATENTE_ALIASES, PEDIMENTO_ALIASES):
            value = first_value(record, aliases)
            if value:
                parts.append(value)
        return '-'.join(parts)
    except Exception as exc:
        LOGGER.warning("Could not build identifier for record: %s", exc)
        return FALLBACK_IDENTIFIER


def with_identifier(record: Mapping[str, str]) -> Record:
    """Return a copy of ``record`` with ``No_Pedimento`` as its first key."""
    tagged: Record = {IDENTIFIER_FIELD: create_combined_identifier(record)}
    for key, value in record.items():
        if key != IDENTIFIER_FIELD:
            tagged[key] = value
    return tagged


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def flatten_folders(folder_map: FolderMap) -> Dict[str, str]:
    """Collapse ``folder -> file -> text`` into ``folder/file -> text``."""
    flat: Dict[str, str] = {}
    for folder, files in folder_map.items():
        for filename, content in files.items():
            flat[f'{folder}/{filename}'] = content
    return flat


def parse_all(files: Mapping[str, str], max_workers: Optional[int] = None) -> List[ParsedFile]:
    """Parse every file, optionally on a thread pool.

    Results come back in input order whatever the completion order, so the
    merge that follows is deterministic.
    """
    items = list(files.items())
    if not max_workers or max_workers <= 1 or len(items) <= 1:
        return [parse_table(name, content) for name, content in items]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda item: parse_table(*item), items))


def merge_parsed(parsed_files: List[ParsedFile]) -> AggregationResult:
    """Fold parse results into a section map, in file then row order."""
    result = AggregationResult()
    section_map = result.section_map
    unknown: Dict[str, None] = {}
    for parsed in parsed_files:
        result.messages.extend(parsed.warnings)
        if parsed.filename_section:
            section_map.setdefault(parsed.filename_section, [])
        if parsed.skipped:
            result.skipped_files[parsed.filename] = parsed.skipped_reason
            result.messages.append(f'Skipped {parsed.filename}: {parsed.skipped_reason}')
            continue
        result.files_processed += 1
        for code, record in parsed.rows:
            section_map.setdefault(code, []).append(with_identifier(record))
        for code in parsed.section_codes():
            if not is_known_section(code):
                unknown.setdefault(code, None)
        result.messages.append(f'Parsed {parsed.filename}: {len(parsed.rows)} rows')
    result.unknown_codes = list(unknown)

    if not section_map:
        result.error = NO_DATA_MESSAGE
        result.messages.append('No sections found in parsed data')
        LOGGER.warning(NO_DATA_MESSAGE)
    else:
        for code, count in result.section_counts().items():
            result.messages.append(f'Section {code}: {count} rows')
    return result


def aggregate_folders(folder_map: FolderMap, max_workers: Optional[int] = None) -> AggregationResult:
    """Parse and merge every file of every folder.

    Parameters
    ----------
    folder_map : Mapping[str, Mapping[str, str]]
        ``folder name -> (file name -> file text)``.  ``main`` holds the files
        found at the top of the archive.
    max_workers : int, optional
        Size of the parse thread pool; ``None`` parses sequentially.

    Returns
    -------
    AggregationResult
        ``error`` is set only when no section at all was found.
    """
    files = flatten_folders(folder_map)
    LOGGER.info("Parsing %d files from %d folders", len(files), len(folder_map))
    return merge_parsed(parse_all(files, max_workers=max_workers))
