import pytest

from sheetgen.utils.files import (
    CSV_CONTENT_TYPE,
    XLSX_CONTENT_TYPE,
    build_content_disposition,
    get_export_content_type,
    sanitize_download_basename,
)


def test_export_content_types():
    assert get_export_content_type("xlsx") == XLSX_CONTENT_TYPE
    assert get_export_content_type("csv") == CSV_CONTENT_TYPE
    with pytest.raises(ValueError):
        get_export_content_type("pdf")


@pytest.mark.parametrize(
    "title, expected",
    [
        ('Q1: "Sales" / Report?', "Q1 Sales Report"),
        ("  Budget   2026  ", "Budget 2026"),
        (None, "spreadsheet"),
        ("<>|*", "spreadsheet"),
        ("..hidden..", "hidden"),
    ],
)
def test_sanitize_download_basename(title, expected):
    assert sanitize_download_basename(title) == expected


def test_sanitize_download_basename_caps_length():
    assert sanitize_download_basename("a" * 150, max_length=100) == "a" * 100


def test_content_disposition_has_ascii_fallback_and_utf8_name():
    header = build_content_disposition("Relatório Financeiro", "xlsx")

    assert header == (
        'attachment; filename="Relatorio Financeiro.xlsx"; '
        "filename*=UTF-8''Relat%C3%B3rio%20Financeiro.xlsx"
    )


def test_content_disposition_replaces_unfoldable_characters():
    header = build_content_disposition("报表", "csv")

    assert header.startswith('attachment; filename="__.csv"')
    assert "filename*=UTF-8''%E6%8A%A5%E8%A1%A8.csv" in header
