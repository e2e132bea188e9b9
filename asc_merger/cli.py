"""
Command line interface
======================

Usage example (from a shell)::

    asc-merger pedimentos.zip --output pedimentos.xlsx
    asc-merger extract_dir/ other.zip --workers 4 --summary

Each input is a ZIP archive or a directory of ``.asc`` files.  When several
inputs are given their folders are merged, each prefixed with the name of
the input it came from.  Exit status is 0 on success, 1 when no data was
found and 2 when an input could not be processed.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable, Optional

from .aggregator import FolderMap
from .archive import DEFAULT_BASE_NAME, folder_map_from_directory, folder_map_from_zip, suggest_base_name
from .exceptions import AscMergerError
from .pipeline import convert_folders

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_DATA = 1
EXIT_ERROR = 2


def configure_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='asc-merger',
        description='Merge pipe-delimited .asc tables into one Excel workbook, one sheet per section code',
    )
    parser.add_argument('inputs', nargs='+', help='ZIP archives or directories containing .asc files')
    parser.add_argument('-o', '--output', default='', help='Path of the Excel file to write (default: <input name>.xlsx)')
    parser.add_argument('--workers', type=int, default=None, help='Parse files on this many threads')
    parser.add_argument('--summary', action='store_true', help='Print the row count of every section')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Increase logging verbosity')
    return parser


def load_input(path: str) -> FolderMap:
    if os.path.isdir(path):
        return folder_map_from_directory(path)
    if not os.path.isfile(path):
        raise AscMergerError(f'Input not found: {path}')
    return folder_map_from_zip(path)


def load_inputs(paths: Iterable[str]) -> FolderMap:
    """Folder map of all inputs; folders are prefixed when there are several.

    Inputs sharing a name get ``#2``, ``#3`` ... appended to their prefix so
    their folders stay apart.
    """
    paths = list(paths)
    if len(paths) == 1:
        return load_input(paths[0])
    merged: FolderMap = {}
    used = set()
    for path in paths:
        base = suggest_base_name(path.rstrip('/\\'))
        prefix = base
        n = 2
        while prefix in used:
            prefix = f'{base}#{n}'
            n += 1
        used.add(prefix)
        for folder, files in load_input(path).items():
            merged.setdefault(f'{prefix}/{folder}', {}).update(files)
    return merged


def default_base_name(paths: list) -> str:
    if len(paths) == 1:
        return suggest_base_name(paths[0].rstrip('/\\'))
    return DEFAULT_BASE_NAME


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point.  Parses arguments, converts the inputs and writes the workbook."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        folder_map = load_inputs(args.inputs)
    except AscMergerError as exc:
        LOGGER.error(str(exc))
        print(f"Processing error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    LOGGER.info("Organized files into %d folders: %s", len(folder_map), ', '.join(folder_map))

    result = convert_folders(folder_map, base_name=default_base_name(args.inputs), max_workers=args.workers)
    if not result.ok:
        print(f"No data found: {result.error}", file=sys.stderr)
        for message in result.messages:
            print(f"  {message}", file=sys.stderr)
        return EXIT_NO_DATA

    output = args.output or result.file_name
    try:
        with open(output, 'wb') as f:
            f.write(result.workbook)
    except OSError as exc:
        LOGGER.error("Could not write %s: %s", output, exc)
        print(f"Processing error: could not write {output}: {exc}", file=sys.stderr)
        return EXIT_ERROR

    if args.summary:
        for line in result.summary_lines():
            print(line)
    if result.unknown_codes:
        print(f"Unknown section codes included: {', '.join(result.unknown_codes)}")
    print(f"Excel file \"{output}\" has been created with {len(result.section_counts)} sheets.")
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
