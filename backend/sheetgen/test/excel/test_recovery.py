import json

import pytest

from sheetgen.excel.recovery import (
    ScanState,
    close_at_last_boundary,
    close_open_structures,
    extract_balanced_object,
    next_scan_state,
    recover,
    scan_structure,
    strip_code_fence,
)


def test_fenced_json_recovers_same_object_as_direct_parse(envelope_json):
    raw = f"```json\n{envelope_json}\n```"

    assert recover(raw) == json.loads(envelope_json)


def test_bare_fence_without_language_tag_is_stripped():
    assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  ```JSON\n{"a": 1}```  ') == '{"a": 1}'


def test_object_surrounded_by_prose_is_extracted():
    raw = 'Here is your spreadsheet: {"a": [1, 2], "b": "x}"} Let me know!'

    assert recover(raw) == {"a": [1, 2], "b": "x}"}


def test_extract_balanced_object_ignores_braces_inside_strings():
    text = 'prefix {"a": "{not a brace", "b": {"c": "}"}} suffix'

    assert extract_balanced_object(text) == '{"a": "{not a brace", "b": {"c": "}"}}'
    assert extract_balanced_object('{"a": 1') is None
    assert extract_balanced_object("no object here") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"a": [1, 2, ', {"a": [1, 2]}),
        ('{"a": [1, 2', {"a": [1, 2]}),
        ('{"a": 1, "b": {"c": 2', {"a": 1, "b": {"c": 2}}),
        ('{"a": 1, "b"', {"a": 1}),
        ('{"a": 1, "b": tr', {"a": 1}),
        ('```json\n{"rows": [{"k": 1}, {"k": 2}', {"rows": [{"k": 1}, {"k": 2}]}),
        (r'{"a": "say \"hi\"", "b": [1', {"a": 'say "hi"', "b": [1]}),
    ],
)
def test_truncated_outside_string_is_recovered(raw, expected):
    assert recover(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        '{"a": "hel',
        '{"a": 1, "b": "unfinished',
        r'{"a": "escaped quote \"',
    ],
)
def test_truncated_inside_string_is_not_recovered(raw):
    assert recover(raw) is None


@pytest.mark.parametrize("raw", [None, "", "   ", 42, "I cannot help with that.", "[1, 2, 3]"])
def test_unrecoverable_input_returns_none(raw):
    assert recover(raw) is None


def test_recover_never_returns_non_object_json():
    assert recover('"just a string"') is None


def test_scan_structure_tracks_pending_closers_and_string_state():
    scan = scan_structure('{"a": [1, {"b": 2')
    assert scan.pending_closers == ("}", "]", "}")
    assert scan.ended_in_string is False

    assert scan_structure('{"a": "x').ended_in_string is True
    assert scan_structure('{"a": "x\\').ended_in_string is True


def test_close_helpers_refuse_to_repair_inside_string():
    assert close_open_structures('{"a": "x') is None
    assert close_at_last_boundary('{"a": "x') is None
    assert close_open_structures('{"a": [1') == '{"a": [1]}'
    assert close_at_last_boundary('{"a": 1, "b"') == '{"a": 1}'


def test_next_scan_state_transitions():
    assert next_scan_state(ScanState.NORMAL, '"') is ScanState.IN_STRING
    assert next_scan_state(ScanState.NORMAL, "{") is ScanState.NORMAL
    assert next_scan_state(ScanState.IN_STRING, "\\") is ScanState.ESCAPED
    assert next_scan_state(ScanState.ESCAPED, '"') is ScanState.IN_STRING
    assert next_scan_state(ScanState.IN_STRING, '"') is ScanState.NORMAL
