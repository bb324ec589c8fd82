"""Tests for header normalization and column mapping."""

import pytest

from shipment_etl.mapping import ColumnMapping, apply_overrides, resolve_destination
from shipment_etl.normalizer import (
    ColumnNormalizer,
    is_unnamed,
    normalize_header,
)


@pytest.mark.parametrize(
    "header, expected",
    [
        ("機種\n(Model)", "機種"),
        ("機種\r\nModel", "機種"),
        ("  客戶   工單 ", "客戶 工單"),
        ("備註_2", "備註"),
        ("箱數 (pcs)", "箱數"),
        ("箱數（台）", "箱數"),
        ("G.W.(kgs)", "G.W.(kgs)"),
        ("N.W.(kgs)_1", "N.W.(kgs)"),
        ("機種 型號", "機種"),
        ("長寬高 cm", "長寬高"),
        ("Carton Size", "Carton Size"),
    ],
)
def test_normalize_header(header, expected):
    assert normalize_header(header) == expected


def test_unnamed_detection():
    assert is_unnamed("", "")
    assert is_unnamed("Column12", "Column12")
    assert is_unnamed("C8", "C8", position=8)
    assert is_unnamed("c8", "c8", position=8)
    assert not is_unnamed("C8", "C8", position=3)
    assert not is_unnamed("Q1", "Q1", position=1)
    assert not is_unnamed("PO12", "PO12")
    assert not is_unnamed("機種", "機種")
    assert not is_unnamed("Carton Size", "Carton Size")


def test_weight_duplicates_get_full_then_tail_suffix():
    headers = ["G.W.(kgs)", "N.W.(kgs)", "G.W.(kgs)_1", "N.W.(kgs)_1"]

    mapping = ColumnNormalizer().build_mapping(headers)

    assert list(mapping.values()) == ["G.W.(kgs)滿", "N.W.(kgs)滿", "G.W.(kgs)尾", "N.W.(kgs)尾"]


def test_third_weight_column_also_maps_to_tail():
    mapping = ColumnNormalizer().build_mapping(["G.W.(kgs)", "G.W.(kgs)_1", "G.W.(kgs)_2"])

    assert mapping["G.W.(kgs)_2"] == "G.W.(kgs)尾"


def test_mapping_is_deterministic_across_batches():
    normalizer = ColumnNormalizer()
    headers = ["機種", "G.W.(kgs)", "G.W.(kgs)_1", "客戶料號", "C5"]

    assert dict(normalizer.build_mapping(headers)) == dict(normalizer.build_mapping(headers))


def test_unnamed_column_after_part_number_becomes_remarks():
    mapping = ColumnNormalizer().build_mapping(["客戶料號", "Column9", "機種"])

    assert mapping["Column9"] == "備註"
    assert mapping["機種"] == "機種"


def test_named_column_after_part_number_is_left_alone():
    mapping = ColumnNormalizer().build_mapping(["客戶料號", "Notes"])

    assert mapping["Notes"] == "Notes"


def test_grid_placeholder_after_part_number_becomes_remarks():
    mapping = ColumnNormalizer().build_mapping(["機種", "客戶料號", "C3"])

    assert mapping["C3"] == "備註"


def test_short_alphanumeric_header_after_part_number_keeps_its_name():
    mapping = ColumnNormalizer().build_mapping(["客戶料號", "SKU1", "Q1"])

    assert mapping["SKU1"] == "SKU1"
    assert mapping["Q1"] == "Q1"


def test_column_mapping_is_case_insensitive():
    mapping = ColumnMapping({"Remarks": "備註"})

    assert mapping["REMARKS"] == "備註"
    assert "remarks" in mapping
    mapping["REMARKS"] = "Notes"
    assert list(mapping) == ["Remarks"]
    assert mapping.sources_for("notes") == ["Remarks"]


def test_resolve_destination_forward_then_reverse():
    forward = {"Model": "機種"}
    assert resolve_destination("model", forward) == "機種"
    assert resolve_destination("機種", forward) == "Model"
    assert resolve_destination("Other", forward) == "Other"
    assert resolve_destination("Other", None) == "Other"


def test_overrides_replace_derived_destinations():
    mapping = ColumnMapping({"Carton Size": "Carton Size", "機種": "機種"})

    result = apply_overrides(mapping, {"carton size": "長寬高", "absent": "x"})

    assert result["Carton Size"] == "長寬高"
    assert "absent" not in result
    assert mapping["Carton Size"] == "Carton Size"
