import pytest

from asc_merger import workbook
from asc_merger.sections import SECTION_LABELS, sanitize_sheet_name, sheet_label, unique_sheet_name
from asc_merger.workbook import (
    MAX_COLUMN_WIDTH,
    MIN_COLUMN_WIDTH,
    build_workbook,
    column_width,
    section_frame,
    sheet_names,
    text_width,
)

from conftest import sheet_values

FORBIDDEN = set('[]*?/\\:')


def test_sheet_order_puts_known_codes_first():
    section_map = {"999": [], "551": [], "501": [], "701": [], "123": []}

    assert sheet_names(section_map) == [
        ("501", "501 Datos Generales"),
        ("701", "701 Rectificaciones"),
        ("551", "551 Partidas"),
        ("999", "Section 999"),
        ("123", "Section 123"),
    ]


def test_known_sheet_names_fit_excel_limits():
    for code in SECTION_LABELS:
        name = sanitize_sheet_name(sheet_label(code))
        assert name.startswith(f"{code} ")
        assert len(name) <= 31
        assert not FORBIDDEN & set(name)


def test_sanitize_truncates_and_replaces():
    assert sanitize_sheet_name("a/b:c*d?e[f]g\\h") == "a_b_c_d_e_f_g_h"
    assert sanitize_sheet_name("x" * 40) == "x" * 31


def test_unique_sheet_name_numbers_clashes():
    used = set()

    assert unique_sheet_name("Section a_b", used) == "Section a_b"
    assert unique_sheet_name("SECTION A_B", used) == "SECTION A_B (2)"
    assert unique_sheet_name("x" * 31, used) == "x" * 31
    assert unique_sheet_name("x" * 31, used) == "x" * 27 + " (2)"


def test_frame_columns_come_from_first_record():
    records = [
        {"No_Pedimento": "1", "a": "x", "b": "y"},
        {"No_Pedimento": "2", "b": "z", "extra": "dropped"},
    ]

    df = section_frame(records)

    assert list(df.columns) == ["No_Pedimento", "a", "b"]
    assert df.values.tolist() == [["1", "x", "y"], ["2", "", "z"]]


def test_column_width_is_clamped():
    assert column_width(["id"]) == MIN_COLUMN_WIDTH
    assert column_width(["x" * 200]) == MAX_COLUMN_WIDTH
    assert column_width([]) == MIN_COLUMN_WIDTH


def test_character_weights():
    assert text_width("MMMM") > text_width("aaaa") > text_width("iiii")
    assert text_width("ááá") > text_width("aaa")
    assert text_width("1234") == 4.0


def test_workbook_contents(read_workbook):
    section_map = {
        "502": [{"No_Pedimento": "", "medio": "AEREO"}],
        "501": [
            {"No_Pedimento": "25-4-3456-0012345", "pedimento": "0012345", "importe": "10"},
            {"No_Pedimento": "25-4-3456-0012346", "pedimento": "0012346", "nuevo": "x"},
        ],
    }

    wb = read_workbook(build_workbook(section_map))

    assert wb.sheetnames == ["501 Datos Generales", "502 Transporte"]
    ws = wb["501 Datos Generales"]
    rows = sheet_values(ws)
    assert rows[0] == ["No_Pedimento", "pedimento", "importe"]
    assert rows[1] == ["25-4-3456-0012345", "0012345", "10"]
    assert rows[2][:2] == ["25-4-3456-0012346", "0012346"]
    assert rows[2][2] in (None, "")
    assert ws.auto_filter.ref == "A1:C3"
    assert ws.freeze_panes == "A2"
    assert ws.column_dimensions["A"].width > ws.column_dimensions["C"].width


def test_empty_section_yields_empty_sheet(read_workbook):
    wb = read_workbook(build_workbook({"503": [], "501": [{"No_Pedimento": "", "a": "1"}]}))

    assert wb.sheetnames == ["501 Datos Generales", "503 Guias"]
    assert all(value is None for row in sheet_values(wb["503 Guias"]) for value in row)


def test_failed_section_becomes_error_sheet(monkeypatch, read_workbook):
    original = workbook.section_frame

    def flaky_frame(records):
        if records and records[0].get("a") == "bad":
            raise ValueError("cannot tabulate")
        return original(records)

    monkeypatch.setattr(workbook, "section_frame", flaky_frame)

    wb = read_workbook(build_workbook({"501": [{"a": "bad"}], "502": [{"a": "ok"}]}))

    assert wb.sheetnames == ["Error_501", "502 Transporte"]
    assert sheet_values(wb["Error_501"]) == [["Error processing this section"], ["cannot tabulate"]]
    assert sheet_values(wb["502 Transporte"]) == [["a"], ["ok"]]


def test_codes_with_clashing_sheet_names_keep_their_rows(read_workbook):
    wb = read_workbook(build_workbook({"a/b": [{"x": "1"}], "a:b": [{"x": "2"}], "a*b": [{"x": "3"}]}))

    assert wb.sheetnames == ["Section a_b", "Section a_b (2)", "Section a_b (3)"]
    assert [sheet_values(ws) for ws in wb.worksheets] == [[["x"], ["1"]], [["x"], ["2"]], [["x"], ["3"]]]


def test_whole_workbook_failure_yields_error_workbook(monkeypatch, read_workbook):
    def broken(section_map):
        raise RuntimeError("writer exploded")

    monkeypatch.setattr(workbook, "sheet_names", broken)

    wb = read_workbook(build_workbook({"501": [{"a": "1"}]}))

    assert wb.sheetnames == ["Error"]
    assert sheet_values(wb["Error"]) == [["Error creating Excel file"], ["writer exploded"]]


@pytest.mark.parametrize("value", ["0012345", "2025-03-05 11:58:12", "1.50"])
def test_values_are_written_as_text(value, read_workbook):
    wb = read_workbook(build_workbook({"501": [{"v": value}]}))

    assert sheet_values(wb["501 Datos Generales"])[1] == [value]


def test_formula_like_text_is_not_evaluated(read_workbook):
    wb = read_workbook(build_workbook({"501": [{"obs": "=SUM(A1:A2)", "url": "http://example.com"}]}))

    assert sheet_values(wb["501 Datos Generales"])[1] == ["=SUM(A1:A2)", "http://example.com"]
