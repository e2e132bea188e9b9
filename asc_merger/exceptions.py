"""Exception hierarchy for the ASC merger."""

from __future__ import annotations


class AscMergerError(Exception):
    """Base exception for all merger errors."""


class ArchiveError(AscMergerError):
    """The input archive or directory could not be read or holds no tables."""
