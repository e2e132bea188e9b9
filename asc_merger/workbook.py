"""
Workbook serialisation
======================

Writes a section map to an ``.xlsx`` document held in memory.  Each section
becomes one worksheet named ``"<code> <label>"``.  Worksheets follow the
fixed section priority order, then any other codes in the order they were
found.  Every populated sheet gets a frozen header row with an autofilter and
columns sized to their content.

The columns of a sheet are the keys of the first record of its section.
Keys that only appear in later records are not written; missing keys are
written as empty cells.
"""

from __future__ import annotations

import io
import logging
import unicodedata
from typing import Iterable, List, Mapping, Sequence, Set, Tuple

import pandas as pd

from .sections import order_section_codes, sanitize_sheet_name, sheet_label, unique_sheet_name

LOGGER = logging.getLogger(__name__)

XLSX_MIME = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# Cell text is written verbatim, never turned into formulas or hyperlinks
WRITER_OPTIONS = {'options': {'strings_to_formulas': False, 'strings_to_urls': False}}

MIN_COLUMN_WIDTH = 10
MAX_COLUMN_WIDTH = 60
COLUMN_PADDING = 2

WIDE_CHARS = frozenset('MWmw@%&#')
NARROW_CHARS = frozenset("iljtfrI.,;:|!'`() ")

# Relative width of a character compared with a digit
ACCENTED_WEIGHT = 1.15
WIDE_WEIGHT = 1.5
NARROW_WEIGHT = 0.6
DIGIT_WEIGHT = 1.0
LETTER_WEIGHT = 1.1
OTHER_WEIGHT = 1.0


# ---------------------------------------------------------------------------
# Column sizing
# ---------------------------------------------------------------------------

def char_weight(ch: str) -> float:
    if ch in WIDE_CHARS:
        return WIDE_WEIGHT
    if ch in NARROW_CHARS:
        return NARROW_WEIGHT
    if ch.isdigit():
        return DIGIT_WEIGHT
    if ch.isalpha():
        if not ch.isascii() or unicodedata.combining(ch):
            return ACCENTED_WEIGHT
        return LETTER_WEIGHT
    return OTHER_WEIGHT


def text_width(text: str) -> float:
    return sum(char_weight(ch) for ch in str(text))


def column_width(values: Iterable[str]) -> float:
    """Width of a column holding ``values`` (header included), clamped."""
    widest = max((text_width(value) for value in values), default=0.0)
    return min(max(widest + COLUMN_PADDING, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)


# ---------------------------------------------------------------------------
# Sheet construction
# ---------------------------------------------------------------------------

def section_frame(records: Sequence[Mapping[str, str]]) -> pd.DataFrame:
    """Tabulate ``records`` using the first record's keys as columns."""
    if not records:
        return pd.DataFrame()
    headers = list(records[0].keys())
    if not headers:
        return pd.DataFrame()
    rows = [[record.get(header, '') for header in headers] for record in records]
    return pd.DataFrame(rows, columns=headers, dtype=object)


def sheet_names(section_map: Mapping[str, Sequence[Mapping[str, str]]]) -> List[Tuple[str, str]]:
    """``(code, sheet name)`` pairs in the order the sheets are written.

    Codes whose sanitised names clash get a numbered suffix so no section
    overwrites another.
    """
    used: Set[str] = set()
    return [
        (code, unique_sheet_name(sanitize_sheet_name(sheet_label(code)), used))
        for code in order_section_codes(section_map)
    ]


def write_section(writer: pd.ExcelWriter, name: str, records: Sequence[Mapping[str, str]]) -> None:
    df = section_frame(records)
    df.to_excel(writer, sheet_name=name, index=False)
    if df.columns.empty:
        return
    worksheet = writer.sheets[name]
    worksheet.freeze_panes(1, 0)
    worksheet.set_zoom(90)
    worksheet.autofilter(0, 0, len(df), len(df.columns) - 1)
    for i, col in enumerate(df.columns):
        worksheet.set_column(i, i, column_width([col] + df[col].astype(str).tolist()))


def write_error_sheet(writer: pd.ExcelWriter, name: str, lines: List[str]) -> None:
    pd.DataFrame([[line] for line in lines]).to_excel(writer, sheet_name=name, index=False, header=False)
    writer.sheets[name].set_column(0, 0, MAX_COLUMN_WIDTH)


def error_workbook(error: Exception) -> bytes:
    """Single sheet workbook describing a failure to build the real one."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='xlsxwriter', engine_kwargs=WRITER_OPTIONS) as writer:
        write_error_sheet(writer, 'Error', ['Error creating Excel file', str(error)])
    return buffer.getvalue()


def build_workbook(section_map: Mapping[str, Sequence[Mapping[str, str]]]) -> bytes:
    """Serialise ``section_map`` to the bytes of an ``.xlsx`` workbook.

    A section whose sheet cannot be built is replaced by an ``Error_<code>``
    sheet and the remaining sections are still written.  If the workbook as
    a whole cannot be produced, a workbook holding a single ``Error`` sheet
    is returned instead.
    """
    try:
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='xlsxwriter', engine_kwargs=WRITER_OPTIONS) as writer:
            planned = sheet_names(section_map)
            used = {name.lower() for _, name in planned}
            for code, name in planned:
                try:
                    write_section(writer, name, section_map[code])
                except Exception as exc:
                    LOGGER.warning("Error creating sheet for section %s: %s", code, exc)
                    write_error_sheet(
                        writer,
                        unique_sheet_name(sanitize_sheet_name(f'Error_{code}'), used),
                        ['Error processing this section', str(exc)],
                    )
        return buffer.getvalue()
    except Exception as exc:
        LOGGER.exception("Error generating Excel file")
        return error_workbook(exc)

