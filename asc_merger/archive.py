"""
Archive traversal
=================

Builds the ``folder -> (file -> text)`` mapping consumed by the aggregator
from a ZIP archive (nested archives included) or from a directory tree.

Placement rules:

* files at the top of the archive go to folder ``main``;
* files inside a directory go to the folder named by the first path
  component, the rest of the path becomes the file name;
* files inside a nested archive go to a folder named after that archive
  (its path without the ``.zip`` suffix).

Only ``.asc`` members are read.  When an archive or a directory tree holds
none, text-like files (``.txt``, ``.csv``, ``.dat`` or names containing
``asc``) are taken instead, provided the first of them looks pipe delimited.
"""

from __future__ import annotations

import io
import logging
import os
import zipfile
from typing import BinaryIO, Callable, Dict, List, Optional, Union

import chardet

from .exceptions import ArchiveError

LOGGER = logging.getLogger(__name__)

MAIN_FOLDER = 'main'
DEFAULT_BASE_NAME = 'merged_data'
TABLE_SUFFIX = '.asc'
ARCHIVE_SUFFIX = '.zip'
TEXT_SUFFIXES = ('.txt', '.csv', '.dat')
MAX_NESTING = 5
SAMPLE_SIZE = 20000

FolderMap = Dict[str, Dict[str, str]]
ArchiveSource = Union[str, bytes, bytearray, BinaryIO]


# ---------------------------------------------------------------------------
# Encoding detection
# ---------------------------------------------------------------------------

def detect_encoding(raw: bytes) -> str:
    """Guess the character encoding of ``raw``.

    ``chardet`` inspects a sample of the bytes.  ASCII results and low
    confidence guesses fall back to latin-1, the usual encoding of these
    extracts; latin-1 also accepts any byte sequence.
    """
    if not raw:
        return 'latin-1'
    result = chardet.detect(raw[:SAMPLE_SIZE])
    enc = result.get('encoding') or 'latin-1'
    confidence = result.get('confidence') or 0.0
    if confidence < 0.7 or enc.lower() in {'ascii'}:
        return 'latin-1'
    if enc.lower().replace('-', '') in {'utf8', 'utf8sig'}:
        return 'utf-8-sig'
    return enc


def decode_bytes(raw: bytes) -> str:
    encoding = detect_encoding(raw)
    try:
        return raw.decode(encoding, errors='ignore')
    except LookupError:
        # chardet can name encodings Python has no codec for
        LOGGER.warning("Unknown encoding %s, decoding as latin-1", encoding)
        return raw.decode('latin-1', errors='ignore')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def suggest_base_name(archive_name: Optional[str]) -> str:
    """Output name for ``archive_name``: the name without its ``.zip`` suffix."""
    if not archive_name:
        return DEFAULT_BASE_NAME
    base = os.path.basename(archive_name.replace('\\', '/'))
    if base.lower().endswith(ARCHIVE_SUFFIX):
        base = base[:-len(ARCHIVE_SUFFIX)]
    return base or DEFAULT_BASE_NAME


def is_junk(path: str) -> bool:
    name = path.rsplit('/', 1)[-1]
    return path.startswith('__MACOSX/') or name.startswith('._') or not name


def is_text_candidate(path: str) -> bool:
    lower = path.lower()
    if lower.endswith(ARCHIVE_SUFFIX):
        return False
    return lower.endswith(TEXT_SUFFIXES) or 'asc' in lower.rsplit('/', 1)[-1]


def place(path: str, nested_folder: Optional[str]) -> tuple:
    """Return the ``(folder, file name)`` a member is stored under."""
    if nested_folder:
        return nested_folder, path
    parts = path.split('/')
    if len(parts) > 1:
        return parts[0], '/'.join(parts[1:])
    return MAIN_FOLDER, path


def strip_archive_suffix(path: str) -> str:
    return path[:-len(ARCHIVE_SUFFIX)] if path.lower().endswith(ARCHIVE_SUFFIX) else path


# ---------------------------------------------------------------------------
# ZIP archives
# ---------------------------------------------------------------------------

class _ZipWalker:
    """Collects table files from an archive and the archives nested in it."""

    def __init__(self) -> None:
        self.folder_map: FolderMap = {}
        self.text_candidates = 0
        self.members_seen = 0

    def add(self, folder: str, name: str, text: str) -> None:
        self.folder_map.setdefault(folder, {})[name] = text

    def walk(self, zf: zipfile.ZipFile, nested_folder: Optional[str] = None, depth: int = 0) -> None:
        members = [info for info in zf.infolist() if not info.is_dir() and not is_junk(info.filename)]
        self.members_seen += len(members)
        tables = [info for info in members if info.filename.lower().endswith(TABLE_SUFFIX)]
        nested = [info for info in members if info.filename.lower().endswith(ARCHIVE_SUFFIX)]
        LOGGER.debug(
            "Archive %s: %d members, %d .asc files, %d nested archives",
            nested_folder or '<root>', len(members), len(tables), len(nested),
        )
        paths = [info.filename for info in tables]
        if not paths:
            paths = self.pipe_delimited_candidates([info.filename for info in members], zf.read)

        for path in paths:
            try:
                text = decode_bytes(zf.read(path))
            except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
                LOGGER.warning("Error extracting file %s: %s", path, exc)
                continue
            folder, name = place(path, nested_folder)
            self.add(folder, name, text)

        for info in nested:
            if depth >= MAX_NESTING:
                LOGGER.warning("Skipping %s: archives nested deeper than %d levels", info.filename, MAX_NESTING)
                continue
            inner_name = strip_archive_suffix(info.filename)
            folder = f'{nested_folder}/{inner_name}' if nested_folder else inner_name
            try:
                with zipfile.ZipFile(io.BytesIO(zf.read(info))) as inner:
                    self.walk(inner, folder, depth + 1)
            except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
                LOGGER.warning("Could not open nested archive %s: %s", info.filename, exc)

    def pipe_delimited_candidates(self, paths: List[str], read: Callable[[str], bytes]) -> List[str]:
        """Text-like ``paths`` to read as tables, or nothing if the first is not pipe delimited."""
        candidates = [path for path in paths if is_text_candidate(path)]
        self.text_candidates += len(candidates)
        if not candidates:
            return []
        sample = decode_bytes(read(candidates[0])[:SAMPLE_SIZE])
        first_line = sample.split('\n', 1)[0][:100]
        LOGGER.info("Sample from %s: %r", candidates[0], first_line)
        if '|' not in first_line:
            return []
        LOGGER.info("This looks like pipe-delimited data! Treating %d files as ASC tables.", len(candidates))
        return candidates


def folder_map_from_zip(source: ArchiveSource) -> FolderMap:
    """Read every table of a ZIP archive into a folder map.

    Parameters
    ----------
    source : str, bytes or file object
        Path of the archive, its raw bytes or an open binary stream.

    Raises
    ------
    ArchiveError
        If the archive is unreadable or holds no table file.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    walker = _ZipWalker()
    try:
        with zipfile.ZipFile(source) as zf:
            walker.walk(zf)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveError(f'Error extracting ZIP file: {exc}') from exc

    if not walker.folder_map:
        if walker.text_candidates:
            raise ArchiveError(
                f'No .asc files found, but found {walker.text_candidates} text files. '
                'Check if they need to be renamed with .asc extension.'
            )
        raise ArchiveError(
            'No .asc files found in the ZIP file. Please ensure your ZIP contains .asc files '
            'or check subdirectories.'
        )
    LOGGER.info(
        "Extracted %d files into %d folders",
        sum(len(files) for files in walker.folder_map.values()), len(walker.folder_map),
    )
    return walker.folder_map


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------

def folder_map_from_directory(directory: str) -> FolderMap:
    """Read the ``.asc`` files (and ZIP archives) under ``directory``.

    Falls back to pipe-delimited text files when the tree holds no table.
    """
    if not os.path.isdir(directory):
        raise ArchiveError(f'Directory not found: {directory}')

    def read(rel: str) -> bytes:
        with open(os.path.join(directory, *rel.split('/')), 'rb') as f:
            return f.read()

    walker = _ZipWalker()
    others: List[str] = []
    for root_dir, dirs, files in os.walk(directory):
        dirs.sort()
        for filename in sorted(files):
            path = os.path.join(root_dir, filename)
            rel = os.path.relpath(path, directory).replace(os.sep, '/')
            lower = filename.lower()
            if lower.endswith(TABLE_SUFFIX):
                folder, name = place(rel, None)
                walker.add(folder, name, decode_bytes(read(rel)))
            elif lower.endswith(ARCHIVE_SUFFIX):
                try:
                    with zipfile.ZipFile(path) as zf:
                        walker.walk(zf, strip_archive_suffix(rel), 1)
                except zipfile.BadZipFile as exc:
                    LOGGER.warning("Could not open archive %s: %s", rel, exc)
            elif not is_junk(rel):
                others.append(rel)

    if not walker.folder_map:
        for rel in walker.pipe_delimited_candidates(others, read):
            folder, name = place(rel, None)
            walker.add(folder, name, decode_bytes(read(rel)))
    if not walker.folder_map:
        if walker.text_candidates:
            raise ArchiveError(
                f'No .asc files found in {directory}, but found {walker.text_candidates} text files. '
                'Check if they need to be renamed with .asc extension.'
            )
        raise ArchiveError(f'No .asc files found in {directory}')
    return walker.folder_map
