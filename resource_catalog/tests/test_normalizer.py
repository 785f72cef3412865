"""Tests for worksheet row normalization."""

from datetime import date, datetime

from resource_catalog.models.schemas import SHEET_HEADERS, ResourceType, TagColor
from resource_catalog.services.normalizer import (
    cell_to_text,
    normalize_headers,
    normalize_rows,
    repair_asset_url,
)

DRIVE_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz0123456"


def test_rows_without_title_are_dropped(sample_rows):
    resources = normalize_rows(sample_rows)

    titles = [r.title for r in resources]
    assert titles == ["Appunti di Reti", "Untitled row id", "Clean Code"]


def test_missing_id_is_derived_from_row_number(sample_rows):
    first = normalize_rows(sample_rows)
    second = normalize_rows(sample_rows)

    # second data row sits on worksheet row 3
    assert first[1].id == "row_3"
    assert [r.id for r in first] == [r.id for r in second]


def test_type_and_color_are_coerced(sample_rows):
    resources = {r.id: r for r in normalize_rows(sample_rows)}

    assert resources["row_3"].type == ResourceType.NOTE
    assert resources["row_3"].category_color == TagColor.GRAY
    assert resources["b1"].type == ResourceType.BOOK
    assert resources["b1"].category_color == TagColor.GREEN


def test_headers_match_case_insensitively():
    values = [
        ["  ID ", "Title", "DATEADDED", "CategoryColor", "coverimage"],
        ["x1", "Fisica 1", "05/03/2024", "Red", "https://example.com/c.png"],
    ]

    [resource] = normalize_rows(values)

    assert resource.id == "x1"
    assert resource.date_added == "05/03/2024"
    assert resource.category_color == TagColor.RED
    assert resource.cover_image == "https://example.com/c.png"


def test_extra_columns_are_ignored_and_order_kept():
    headers = ["notes"] + list(SHEET_HEADERS)
    values = [
        headers,
        ["internal", "z9", "Last", "", "", "", "", "", "", "", "", ""],
        ["internal", "z1", "First?", "", "", "", "", "", "", "", "", ""],
    ]

    resources = normalize_rows(values)

    assert [r.id for r in resources] == ["z9", "z1"]


def test_empty_worksheet_yields_nothing():
    assert normalize_rows([]) == []
    assert normalize_rows([list(SHEET_HEADERS)]) == []


def test_short_rows_fill_missing_cells():
    [resource] = normalize_rows([list(SHEET_HEADERS), ["s1", "Short"]])

    assert resource.url == ""
    assert resource.type == ResourceType.NOTE


def test_cell_to_text_renders_spreadsheet_values():
    assert cell_to_text(None) == ""
    assert cell_to_text(2023.0) == "2023"
    assert cell_to_text(2.5) == "2.5"
    assert cell_to_text(7) == "7"
    assert cell_to_text(True) == "true"
    assert cell_to_text(date(2024, 1, 9)) == "09/01/2024"
    assert cell_to_text(datetime(2024, 1, 9, 13, 30)) == "09/01/2024"


def test_numeric_year_cell_becomes_text():
    [resource] = normalize_rows([list(SHEET_HEADERS), ["n1", "Analisi", "", "", 2021.0]])

    assert resource.year == "2021"


def test_normalize_headers():
    assert normalize_headers([" Id", "TITLE", None]) == ["id", "title", ""]


class TestRepairAssetUrl:
    def test_legacy_drive_link_is_rewritten(self):
        url = f"https://drive.google.com/file/d/{DRIVE_ID}/view?usp=sharing"

        assert repair_asset_url(url) == f"https://drive.google.com/uc?export=view&id={DRIVE_ID}"

    def test_repair_is_idempotent(self):
        url = f"https://drive.google.com/open?id={DRIVE_ID}"

        once = repair_asset_url(url)

        assert repair_asset_url(once) == once

    def test_other_values_pass_through(self):
        assert repair_asset_url("") == ""
        assert repair_asset_url("📘") == "📘"
        assert repair_asset_url("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"
        assert repair_asset_url("https://example.com/a.png") == "https://example.com/a.png"

    def test_drive_link_without_file_id_is_kept(self):
        url = "https://drive.google.com/drive/my-drive"

        assert repair_asset_url(url) == url

    def test_icon_and_cover_are_repaired_on_read(self):
        legacy = f"https://drive.google.com/file/d/{DRIVE_ID}/view"
        row = ["d1", "Drive", "", "", "", "", "", "", "", legacy, legacy]

        [resource] = normalize_rows([list(SHEET_HEADERS), row])

        assert "export=view" in resource.icon
        assert "export=view" in resource.cover_image
