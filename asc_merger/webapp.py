"""
Streamlit web application
=========================

Launch with::

    streamlit run asc_merger/webapp.py

Upload a ZIP archive of ``.asc`` tables and download the merged workbook.
The last conversion is kept in the session state, so the page can be
redrawn (for instance when the debugging checkbox is ticked) without
converting again.
"""

from __future__ import annotations

from typing import MutableMapping

from asc_merger.exceptions import ArchiveError
from asc_merger.pipeline import convert_archive
from asc_merger.workbook import XLSX_MIME


def convert_upload(state: MutableMapping, name: str, data: bytes) -> None:
    """Convert an uploaded archive and store the outcome in ``state``.

    ``state['result']`` receives the :class:`ConversionResult`, or ``None``
    when the archive could not be read, in which case ``state['archive_error']``
    holds the message.
    """
    try:
        state['result'] = convert_archive(data, archive_name=name)
        state['archive_error'] = None
    except ArchiveError as exc:
        state['result'] = None
        state['archive_error'] = str(exc)


def run_streamlit_app() -> None:
    """Build the upload page and run the conversion on demand."""
    # Import streamlit lazily so that library and command-line use do not require it
    import streamlit as st

    st.set_page_config(page_title="ZIP to Excel Converter", layout="centered")
    st.title("ZIP to Excel Converter")
    st.write("Convert a ZIP of ASC tables into an Excel workbook with one sheet per section code.")
    st.caption(
        "Files may sit at the top of the archive, in folders or in nested ZIPs. "
        "Files with the same section code from different folders are combined into the same sheet."
    )

    uploaded = st.file_uploader("Select a ZIP file", type=["zip"], accept_multiple_files=False)
    if st.button("Convert") and uploaded is not None:
        with st.spinner("Processing archive..."):
            convert_upload(st.session_state, uploaded.name, uploaded.getvalue())

    if st.session_state.get('archive_error'):
        st.error(f"Processing error: {st.session_state['archive_error']}")
        return
    result = st.session_state.get('result')
    if result is None:
        return

    if not result.ok:
        st.error(f"No data found: {result.error}")
    else:
        st.success(f"Excel file \"{result.file_name}\" has been created with {len(result.section_counts)} sheets.")
        st.download_button(
            label="Download Excel file",
            data=result.workbook,
            file_name=result.file_name,
            mime=XLSX_MIME,
        )
        if result.unknown_codes:
            st.warning(f"Unknown section codes included: {', '.join(result.unknown_codes)}")
        st.table({'Rows': result.section_counts})

    if result.messages and st.checkbox("Show debugging info"):
        st.code("\n".join(result.messages))


if __name__ == '__main__':
    run_streamlit_app()
