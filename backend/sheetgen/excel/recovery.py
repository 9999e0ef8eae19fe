"""
Best-effort recovery of a JSON object from raw text returned by an LLM.

The text may be wrapped in markdown fences, surrounded by prose, or cut off
mid-document. Recovery is purely syntactic: it never invents field values.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from sheetgen.env import SRC_LOG_LEVELS

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["EXCEL"])

_LEADING_FENCE = re.compile(r"^```(?:json(?![A-Za-z0-9_]))?[ \t]*\r?\n?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\r?\n?[ \t]*```$")

_CLOSER_FOR = {"{": "}", "[": "]"}


class ScanState(Enum):
    NORMAL = "normal"
    IN_STRING = "in_string"
    ESCAPED = "escaped"


def next_scan_state(state: ScanState, ch: str) -> ScanState:
    if state is ScanState.ESCAPED:
        return ScanState.IN_STRING
    if state is ScanState.IN_STRING:
        if ch == "\\":
            return ScanState.ESCAPED
        if ch == '"':
            return ScanState.NORMAL
        return ScanState.IN_STRING
    if ch == '"':
        return ScanState.IN_STRING
    return ScanState.NORMAL


@dataclass(frozen=True)
class StructureScan:
    pending_closers: Tuple[str, ...]
    ended_in_string: bool
    # Last position where the text can be cut and still close cleanly:
    # right after an opener, or just before a separating comma.
    boundary_index: int
    boundary_closers: Tuple[str, ...]


def strip_code_fence(raw: str) -> str:
    text = (raw or "").strip()
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def extract_balanced_object(text: str) -> Optional[str]:
    """
    Return the first top-level ``{...}`` block, or None when it never closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    state = ScanState.NORMAL
    depth = 0
    for index in range(start, len(text)):
        ch = text[index]
        if state is ScanState.NORMAL:
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        state = next_scan_state(state, ch)
    return None


def scan_structure(text: str) -> StructureScan:
    state = ScanState.NORMAL
    stack: list[str] = []
    boundary_index = 0
    boundary_closers: Tuple[str, ...] = ()

    for index, ch in enumerate(text):
        if state is ScanState.NORMAL:
            if ch in _CLOSER_FOR:
                stack.append(_CLOSER_FOR[ch])
                boundary_index = index + 1
                boundary_closers = tuple(stack)
            elif ch in ("}", "]"):
                if stack and stack[-1] == ch:
                    stack.pop()
            elif ch == "," and stack:
                boundary_index = index
                boundary_closers = tuple(stack)
        state = next_scan_state(state, ch)

    return StructureScan(
        pending_closers=tuple(stack),
        ended_in_string=state is not ScanState.NORMAL,
        boundary_index=boundary_index,
        boundary_closers=boundary_closers,
    )


def close_open_structures(text: str) -> Optional[str]:
    """
    Append the closers still pending at the end of ``text``.

    Returns None when the text ends inside a string literal, which cannot be
    repaired without guessing its content.
    """
    scan = scan_structure(text)
    if scan.ended_in_string:
        return None
    return text + "".join(reversed(scan.pending_closers))


def close_at_last_boundary(text: str) -> Optional[str]:
    """
    Drop the trailing incomplete member and close what remains.

    Handles truncation after a comma, a dangling key, or a partial literal.
    """
    scan = scan_structure(text)
    if scan.ended_in_string or not scan.boundary_closers:
        return None
    return text[: scan.boundary_index] + "".join(reversed(scan.boundary_closers))


def _parse_object(candidate: Optional[str]) -> Optional[Dict[str, Any]]:
    if not candidate:
        return None
    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    if isinstance(parsed, dict):
        return parsed
    return None


def _object_region(text: str) -> Optional[str]:
    extracted = extract_balanced_object(text)
    if extracted is not None:
        return extracted
    start = text.find("{")
    return text[start:] if start != -1 else None


def _recover(raw: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    if not isinstance(raw, str) or not raw.strip():
        return None, None

    normalized = strip_code_fence(raw)
    if "{" not in normalized:
        return None, None

    parsed = _parse_object(normalized)
    if parsed is not None:
        return parsed, "direct"

    extracted = extract_balanced_object(normalized)
    parsed = _parse_object(extracted)
    if parsed is not None:
        return parsed, "extract"

    seen: set[str] = set()
    for step, source in (
        ("repair_normalized", normalized),
        ("repair_extracted", _object_region(normalized)),
    ):
        if not source or source in seen:
            continue
        seen.add(source)
        for repair in (close_open_structures, close_at_last_boundary):
            parsed = _parse_object(repair(source))
            if parsed is not None:
                return parsed, f"{step}:{repair.__name__}"

    return None, None


def recover(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Recover a JSON object from untrusted text. Never raises; returns None when
    no candidate parses to an object.
    """
    try:
        parsed, step = _recover(raw)
    except Exception as e:
        log.warning(f"Structured text recovery aborted: {e}")
        return None

    if parsed is None:
        log.debug("Structured text recovery found no parseable object")
    else:
        log.debug(f"Structured text recovered via {step}")
    return parsed
