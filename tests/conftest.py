import io
import zipfile

import openpyxl
import pytest


def build_zip(members):
    """Return the bytes of a ZIP archive holding ``members`` (name -> str/bytes)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in members.items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            zf.writestr(name, data)
    return buffer.getvalue()


def load_workbook(data):
    return openpyxl.load_workbook(io.BytesIO(data))


def sheet_values(ws):
    return [list(row) for row in ws.iter_rows(values_only=True)]


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def read_workbook():
    return load_workbook


@pytest.fixture
def customs_record():
    return {
        "FechaPagoReal": "2025-03-05 11:58:12",
        "seccion": "4",
        "patente": "3456",
        "pedimento": "0012345",
    }
