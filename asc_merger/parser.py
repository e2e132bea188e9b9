"""
Section resolution and row parsing
==================================

Turns the text of one ``.asc`` table into ``(section code, record)`` pairs.
The first line of a table is its header; every following non-blank line is a
data row.  Fields are separated by ``|`` and a trailing ``|`` at the end of a
line is ignored.

The section code of a file is taken from its name when the name ends with
``_<3 digits>.asc``; otherwise it is read row by row from a section column
(``code``, ``section``, ``seccion`` ...).  Files that resolve to no section
are skipped, never fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .sections import (
    SECTION_COLUMN_ALIASES,
    find_alias,
    is_known_section,
    section_from_filename,
)

LOGGER = logging.getLogger(__name__)

DELIMITER = '|'

Record = Dict[str, str]


@dataclass
class ParsedFile:
    """Result of parsing a single table file."""

    filename: str
    rows: List[Tuple[str, Record]] = field(default_factory=list)
    # Section code taken from the file name; registered even without rows.
    filename_section: Optional[str] = None
    section_column: Optional[str] = None
    skipped_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    def section_codes(self) -> List[str]:
        """Section codes this file contributes to, in first-seen order."""
        codes: Dict[str, None] = {}
        if self.filename_section:
            codes[self.filename_section] = None
        for code, _ in self.rows:
            codes.setdefault(code, None)
        return list(codes)

    def warn(self, message: str) -> None:
        LOGGER.warning(message)
        self.warnings.append(message)


# ---------------------------------------------------------------------------
# Low level helpers
# ---------------------------------------------------------------------------

def normalize_lines(content: str) -> List[str]:
    """Split ``content`` into lines without the trailing delimiter."""
    lines = []
    for line in content.splitlines():
        if line.rstrip().endswith(DELIMITER):
            line = line.rstrip()[:-1]
        lines.append(line)
    return lines


def split_fields(line: str) -> List[str]:
    return [value.strip() for value in line.split(DELIMITER)]


def read_records(lines: List[str]) -> Tuple[List[str], List[Record], int]:
    """Read the header and data rows of a delimited table.

    Returns
    -------
    Tuple[List[str], List[Record], int]
        The header, one record per data row and the number of extra fields
        that were dropped because a row was longer than the header.

    Short rows produce records without the missing trailing keys.  When a
    header name repeats, the first column keeps the name.
    """
    body = [line for line in lines if line.strip()]
    if not body:
        return [], [], 0
    header = split_fields(body[0])
    positions: List[Tuple[int, str]] = []
    seen = set()
    for idx, name in enumerate(header):
        if name in seen:
            continue
        seen.add(name)
        positions.append((idx, name))

    records: List[Record] = []
    dropped = 0
    for line in body[1:]:
        values = split_fields(line)
        if len(values) > len(header):
            dropped += len(values) - len(header)
        record: Record = {}
        for idx, name in positions:
            if idx >= len(values):
                break
            record[name] = values[idx]
        records.append(record)
    return header, records, dropped


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def parse_table(filename: str, content: Optional[str]) -> ParsedFile:
    """Parse one table and tag each row with its section code.

    Parameters
    ----------
    filename : str
        Name of the file, possibly prefixed with its folder.  Used for the
        filename based section lookup and in log messages.
    content : str
        Decoded text of the file.

    Returns
    -------
    ParsedFile
        ``rows`` holds the ``(code, record)`` pairs in file order.  When the
        file cannot contribute anything ``skipped_reason`` explains why.
    """
    result = ParsedFile(filename=filename, filename_section=section_from_filename(filename))
    if content is None or not content.strip():
        result.skipped_reason = 'empty file'
        LOGGER.warning("File %s is empty.", filename)
        return result

    try:
        header, records, dropped = read_records(normalize_lines(content))
    except Exception as exc:
        # The filename code is still registered so its sheet is not lost.
        result.skipped_reason = f'unparsable file: {exc}'
        LOGGER.warning("Could not parse %s: %s", filename, exc)
        return result
    if dropped:
        LOGGER.debug("Dropped %d fields beyond the header in %s", dropped, filename)

    if result.filename_section:
        code = result.filename_section
        if not is_known_section(code):
            result.warn(f"Unknown section code \"{code}\" in file {filename}. Processing anyway.")
        result.rows = [(code, record) for record in records]
        if not records:
            LOGGER.info("File %s has no data rows; section %s kept as empty sheet.", filename, code)
        return result

    column = find_alias(header, SECTION_COLUMN_ALIASES)
    if column is None:
        result.skipped_reason = 'no section code column'
        LOGGER.warning(
            "File %s doesn't have a section code column. Expected headers: %s.",
            filename, ', '.join(repr(alias) for alias in SECTION_COLUMN_ALIASES),
        )
        return result
    result.section_column = column

    unknown = set()
    for row_no, record in enumerate(records, start=1):
        code = record.get(column, '')
        if not code:
            result.warn(f"Data row {row_no} of {filename} has no section code. Skipping.")
            continue
        if not is_known_section(code) and code not in unknown:
            unknown.add(code)
            result.warn(f"Unknown section code \"{code}\" in file {filename}. Processing anyway.")
        result.rows.append((code, record))

    if not result.rows:
        result.skipped_reason = 'no data rows'
        LOGGER.warning("File %s contains no valid data rows.", filename)
    return result
