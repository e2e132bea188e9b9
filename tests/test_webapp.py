from asc_merger.webapp import convert_upload


def test_conversion_is_kept_in_session_state(make_zip, read_workbook):
    state = {}

    convert_upload(state, "lote.zip", make_zip({"a_501.asc": "a\n1\n"}))

    result = state["result"]
    assert state["archive_error"] is None
    assert result.ok
    assert result.file_name == "lote.xlsx"
    assert "Parsed main/a_501.asc: 1 rows" in result.messages
    assert read_workbook(result.workbook).sheetnames == ["501 Datos Generales"]


def test_unreadable_upload_replaces_previous_result(make_zip):
    state = {}
    convert_upload(state, "lote.zip", make_zip({"a_501.asc": "a\n1\n"}))

    convert_upload(state, "bad.zip", b"not a zip")

    assert state["result"] is None
    assert "Error extracting ZIP file" in state["archive_error"]

    convert_upload(state, "lote.zip", make_zip({"a_501.asc": "a\n1\n"}))

    assert state["archive_error"] is None
    assert state["result"].ok
