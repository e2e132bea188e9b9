"""
Section tables
==============

Fixed lookup tables for the customs extract files handled by the merger:
the known section codes (in the order their worksheets are emitted), the
label shown next to each code in the sheet name, the column headers that
may carry a per-row section code, and the field aliases used to build the
composite ``No_Pedimento`` identifier.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Mapping, Optional, Set, Tuple


# ---------------------------------------------------------------------------
# Known section codes
# ---------------------------------------------------------------------------

# Priority order of the worksheets.  Codes found in the data but missing from
# this tuple are appended after it in the order they were first seen.
KNOWN_SECTION_CODES: Tuple[str, ...] = (
    '501', '502', '503', '504', '505', '506', '507', '508', '509', '510',
    '511', '512', '520', '701', '702', '551', '552', '553', '554', '555',
    '556', '557', '558',
)

SECTION_LABELS: Dict[str, str] = {
    '501': 'Datos Generales',
    '502': 'Transporte',
    '503': 'Guias',
    '504': 'Contenedores',
    '505': 'Facturas',
    '506': 'Fechas',
    '507': 'Identificadores',
    '508': 'Cuentas Aduaneras',
    '509': 'Tasas Pedimento',
    '510': 'Contribuciones Pedimento',
    '511': 'Observaciones Pedimento',
    '512': 'Descargos',
    '520': 'Destinatarios',
    '701': 'Rectificaciones',
    '702': 'Diferencias Contribuciones',
    '551': 'Partidas',
    '552': 'Mercancias',
    '553': 'Permisos Partida',
    '554': 'Identificadores Partida',
    '555': 'Cuentas Garantia Partida',
    '556': 'Tasas Partida',
    '557': 'Contribuciones Partida',
    '558': 'Observaciones Partida',
}


# ---------------------------------------------------------------------------
# Column and field aliases
# ---------------------------------------------------------------------------

# Compared case-insensitively against the header row.
SECTION_COLUMN_ALIASES: Tuple[str, ...] = (
    'section', 'sectioncode', 'section_code', 'code',
    'seccion', 'seccionaduanera', 'seccion_aduanera',
)

# Compared exactly, first match wins.
PAYMENT_DATE_ALIASES: Tuple[str, ...] = ('FechaPagoReal', 'fechaPagoReal', 'FECHA_PAGO_REAL')
CUSTOMS_SECTION_ALIASES: Tuple[str, ...] = (
    'seccionAduanera', 'seccion', 'aduana', 'SECCION', 'ADUANA',
    'SECCION_ADUANERA', 'ClaveDoc', 'SeccionAd',
)
PATENTE_ALIASES: Tuple[str, ...] = ('patente', 'PATENTE', 'Patente')
PEDIMENTO_ALIASES: Tuple[str, ...] = (
    'pedimento', 'PEDIMENTO', 'Pedimento', 'numeroPedimento',
    'pedimentoNumero', 'Pediment',
)

IDENTIFIER_FIELD = 'No_Pedimento'

# ``<anything>_501.asc`` / ``<anything>_501.ASC``
FILENAME_SECTION_PATTERN = re.compile(r'_(\d{3})\.asc$', re.IGNORECASE)

# Excel limits
MAX_SHEET_NAME_LENGTH = 31
INVALID_SHEET_CHARS = re.compile(r'[\[\]\*\?/\\:]')


def is_known_section(code: str) -> bool:
    return code in SECTION_LABELS


def section_from_filename(filename: str) -> Optional[str]:
    """Return the section code encoded in ``filename`` or ``None``.

    Only the final path component is inspected, so folder prefixes added by
    the aggregator do not interfere with the match.
    """
    base = filename.replace('\\', '/').rsplit('/', 1)[-1]
    match = FILENAME_SECTION_PATTERN.search(base)
    return match.group(1) if match else None


def find_alias(keys: Iterable[str], aliases: Iterable[str]) -> Optional[str]:
    """Return the first key of ``keys`` matching an entry of ``aliases``, ignoring case.

    Aliases are tried in order, so the alias list defines the priority when a
    header carries more than one of the candidate names.  The returned value
    is the key exactly as it appears in ``keys``.
    """
    folded: Dict[str, str] = {}
    for key in keys:
        folded.setdefault(key.lower(), key)
    for alias in aliases:
        if alias.lower() in folded:
            return folded[alias.lower()]
    return None


def first_value(record: Mapping[str, str], aliases: Iterable[str]) -> Optional[str]:
    """Return the first non-empty value stored under one of ``aliases``."""
    for alias in aliases:
        value = record.get(alias)
        if value:
            return value
    return None


def sheet_label(code: str) -> str:
    """Human readable sheet title for ``code`` before sanitising."""
    label = SECTION_LABELS.get(code)
    if label is None:
        return f'Section {code}'
    return f'{code} {label}'


def sanitize_sheet_name(name: str) -> str:
    """Truncate ``name`` to the Excel limit and replace forbidden characters."""
    return INVALID_SHEET_CHARS.sub('_', name[:MAX_SHEET_NAME_LENGTH])


def unique_sheet_name(name: str, used: Set[str]) -> str:
    """Return ``name``, or ``name (2)``, ``name (3)`` ... if it is taken.

    Excel compares sheet names case-insensitively, so ``used`` holds lower
    cased names.  The chosen name is added to it.
    """
    candidate = name
    n = 2
    while candidate.lower() in used:
        suffix = f' ({n})'
        candidate = name[:MAX_SHEET_NAME_LENGTH - len(suffix)] + suffix
        n += 1
    used.add(candidate.lower())
    return candidate


def order_section_codes(codes: Iterable[str]) -> list:
    """Known codes first in priority order, then the rest in encounter order."""
    codes = list(dict.fromkeys(codes))
    present = set(codes)
    ordered = [code for code in KNOWN_SECTION_CODES if code in present]
    ordered.extend(code for code in codes if code not in SECTION_LABELS)
    return ordered
