from asc_merger.parser import normalize_lines, parse_table, read_records


def test_filename_section_applies_to_every_row():
    content = "patente | pedimento |\n3456 | 0012345 |\n3456|0012346|\n"

    result = parse_table("main/datos_501.asc", content)

    assert not result.skipped
    assert result.filename_section == "501"
    assert [code for code, _ in result.rows] == ["501", "501"]
    assert result.rows[0][1] == {"patente": "3456", "pedimento": "0012345"}
    assert result.rows[1][1] == {"patente": "3456", "pedimento": "0012346"}


def test_filename_section_wins_over_section_column():
    result = parse_table("x_502.ASC", "code|value\n501|10\n")

    assert [code for code, _ in result.rows] == ["502"]
    assert result.section_column is None


def test_empty_and_blank_files_are_skipped():
    assert parse_table("a_501.asc", "").skipped_reason == "empty file"
    assert parse_table("a_501.asc", "  \n\t\n").skipped_reason == "empty file"
    assert parse_table("a_501.asc", None).skipped


def test_header_only_file_keeps_filename_section():
    """A named file with no data rows still registers its section."""
    result = parse_table("folder/empty_503.asc", "a|b|c|\n")

    assert not result.skipped
    assert result.rows == []
    assert result.section_codes() == ["503"]


def test_section_column_splits_rows_and_keeps_unknown_codes():
    result = parse_table("mixed.asc", "code|value\n501|10\n999|20\n")

    assert result.section_column == "code"
    assert result.rows == [
        ("501", {"code": "501", "value": "10"}),
        ("999", {"code": "999", "value": "20"}),
    ]
    assert any('"999"' in warning for warning in result.warnings)


def test_section_column_is_case_insensitive():
    result = parse_table("mixed.asc", "SeccionAduanera|dato\n551|x\n")

    assert result.section_column == "SeccionAduanera"
    assert result.section_codes() == ["551"]


def test_rows_without_section_value_are_skipped():
    result = parse_table("mixed.asc", "section|value\n|10\n505|20\n")

    assert [code for code, _ in result.rows] == ["505"]
    assert len(result.warnings) == 1


def test_file_without_section_source_is_skipped():
    result = parse_table("notes.asc", "a|b\n1|2\n")

    assert result.skipped_reason == "no section code column"
    assert result.rows == []
    assert result.section_codes() == []


def test_file_with_only_empty_section_values_is_skipped():
    result = parse_table("mixed.asc", "code|value\n|10\n")

    assert result.skipped_reason == "no data rows"


def test_ragged_rows_produce_partial_records():
    header, records, dropped = read_records(normalize_lines("a|b|c\n1|2\n\n4|5|6|7\n"))

    assert header == ["a", "b", "c"]
    assert records == [{"a": "1", "b": "2"}, {"a": "4", "b": "5", "c": "6"}]
    assert dropped == 1


def test_trailing_delimiter_is_dropped():
    assert normalize_lines("a|b|\r\n1|2|  \n") == ["a|b", "1|2"]


def test_repeated_header_keeps_first_column():
    _, records, _ = read_records(["a|a|b", "1|2|3"])

    assert records == [{"a": "1", "b": "3"}]
