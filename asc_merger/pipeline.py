"""End-to-end conversion: folder map or ZIP archive in, workbook bytes out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .aggregator import FolderMap, aggregate_folders
from .archive import ArchiveSource, folder_map_from_zip, suggest_base_name
from .workbook import build_workbook

LOGGER = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Outcome of a conversion.

    ``workbook`` is ``None`` exactly when ``error`` reports that no data was
    found; a workbook is produced in every other case.
    """

    workbook: Optional[bytes]
    file_name: str
    error: Optional[str] = None
    section_counts: Dict[str, int] = field(default_factory=dict)
    unknown_codes: List[str] = field(default_factory=list)
    skipped_files: Dict[str, str] = field(default_factory=dict)
    messages: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary_lines(self) -> List[str]:
        return [f'Section {code}: {count} rows' for code, count in self.section_counts.items()]


def convert_folders(folder_map: FolderMap, base_name: str = 'merged_data',
                    max_workers: Optional[int] = None) -> ConversionResult:
    """Merge every table of ``folder_map`` into one workbook.

    The suggested file name is ``<base_name>.xlsx``.  When no section code is
    resolved from any file the result carries the no-data error and no
    workbook.
    """
    file_name = f'{base_name}.xlsx'
    aggregation = aggregate_folders(folder_map, max_workers=max_workers)
    result = ConversionResult(
        workbook=None,
        file_name=file_name,
        error=aggregation.error,
        unknown_codes=aggregation.unknown_codes,
        skipped_files=aggregation.skipped_files,
        messages=list(aggregation.messages),
    )
    if not aggregation.ok:
        return result
    result.section_counts = aggregation.section_counts()
    LOGGER.info("Generating %s with %d sheets", file_name, len(result.section_counts))
    result.workbook = build_workbook(aggregation.section_map)
    return result


def convert_archive(source: ArchiveSource, archive_name: Optional[str] = None,
                    max_workers: Optional[int] = None) -> ConversionResult:
    """Convert a ZIP archive.  Raises ``ArchiveError`` if it holds no tables."""
    if archive_name is None and isinstance(source, str):
        archive_name = source
    folder_map = folder_map_from_zip(source)
    LOGGER.info("Organized files into %d folders: %s", len(folder_map), ', '.join(folder_map))
    return convert_folders(folder_map, base_name=suggest_base_name(archive_name), max_workers=max_workers)
