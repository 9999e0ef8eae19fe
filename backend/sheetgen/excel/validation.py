"""
Two-phase validation of recovered spreadsheet schemas.

Structural validation turns the untyped recovered object into typed models;
semantic validation layers key, formula safety, and sheet-reference rules on top.
Both phases are exhaustive and report every issue they find.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Pattern, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from sheetgen.env import SRC_LOG_LEVELS

from .errors import FailureKind
from .generation_spec import FormulaCell, SemanticIssue, SpreadsheetSchema

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["EXCEL"])

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

DUPLICATE_COLUMN_KEY = "DUPLICATE_COLUMN_KEY"
UNKNOWN_ROW_KEY = "UNKNOWN_ROW_KEY"
UNSAFE_FORMULA = "UNSAFE_FORMULA"
UNKNOWN_SHEET_REFERENCE = "UNKNOWN_SHEET_REFERENCE"

# 'Quoted Sheet'!A1 (with '' as an escaped quote) or BareSheet!A1
SHEET_REFERENCE_PATTERN = re.compile(r"(?:'((?:[^']|'')+)'|([A-Za-z0-9_.]+))!")
FORMULA_STRING_LITERAL = re.compile(r'"(?:[^"]|"")*"')


@dataclass(frozen=True)
class FormulaSafetyPolicy:
    blocked_patterns: Tuple[Pattern[str], ...]
    control_characters: Pattern[str] = re.compile(r"[\x00-\x1f\x7f]")

    def is_dangerous(self, raw_formula: str) -> bool:
        formula = (raw_formula or "").strip()
        if not formula:
            return True
        if self.control_characters.search(formula):
            return True
        normalized = formula[1:].strip() if formula.startswith("=") else formula
        if not normalized:
            return True
        return any(pattern.search(normalized) for pattern in self.blocked_patterns)


DEFAULT_FORMULA_POLICY = FormulaSafetyPolicy(
    blocked_patterns=(
        re.compile(r"\b(?:WEBSERVICE|FILTERXML|RTD|REGISTER|CALL|EXEC|SHELL)\s*\(", re.IGNORECASE),
        re.compile(r"\bcmd\|", re.IGNORECASE),
        re.compile(r"\bpowershell\b", re.IGNORECASE),
    )
)


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """
    Outcome of one pipeline stage: either a value or the issues that stopped it.
    """

    value: Optional[T] = None
    issues: Tuple[SemanticIssue, ...] = field(default_factory=tuple)
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.value is not None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, failure: FailureKind, issues: Sequence[SemanticIssue]) -> "StageResult[T]":
        return cls(failure=failure, issues=tuple(issues))


def format_issue_path(loc: Sequence[Union[str, int]]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or "$"


def _structural_issues(error: ValidationError) -> List[SemanticIssue]:
    issues = []
    for entry in error.errors(include_url=False):
        issues.append(
            SemanticIssue(
                code=FailureKind.STRUCTURAL_INVALID.value,
                path=format_issue_path(entry.get("loc", ())),
                message=entry.get("msg", "Invalid value"),
            )
        )
    return issues


def validate_structure(
    obj: Any, model: Type[ModelT] = SpreadsheetSchema
) -> StageResult[ModelT]:
    if not isinstance(obj, dict):
        return StageResult.failed(
            FailureKind.STRUCTURAL_INVALID,
            [
                SemanticIssue(
                    code=FailureKind.STRUCTURAL_INVALID.value,
                    path="$",
                    message="Expected a JSON object at the top level.",
                )
            ],
        )
    try:
        return StageResult.success(model.model_validate(obj))
    except ValidationError as e:
        issues = _structural_issues(e)
        log.debug(f"Structural validation failed with {len(issues)} issue(s)")
        return StageResult.failed(FailureKind.STRUCTURAL_INVALID, issues)


def extract_sheet_references(formula: str) -> List[str]:
    references: List[str] = []
    # Text inside string literals ("Hello!") is not a sheet qualifier.
    unquoted = FORMULA_STRING_LITERAL.sub("", formula or "")
    for match in SHEET_REFERENCE_PATTERN.finditer(unquoted):
        quoted, bare = match.group(1), match.group(2)
        name = (quoted.replace("''", "'") if quoted is not None else bare or "").strip()
        if name and name not in references:
            references.append(name)
    return references


def validate_semantics(
    schema: SpreadsheetSchema,
    policy: FormulaSafetyPolicy = DEFAULT_FORMULA_POLICY,
) -> List[SemanticIssue]:
    issues: List[SemanticIssue] = []
    sheet_names = {sheet.name for sheet in schema.sheets}

    for sheet_index, sheet in enumerate(schema.sheets):
        column_keys: set[str] = set()

        for column_index, column in enumerate(sheet.columns):
            if column.key in column_keys:
                issues.append(
                    SemanticIssue(
                        code=DUPLICATE_COLUMN_KEY,
                        path=f"sheets[{sheet_index}].columns[{column_index}].key",
                        message=f'Key "{column.key}" is duplicated in sheet "{sheet.name}".',
                    )
                )
                continue
            column_keys.add(column.key)

        for row_index, row in enumerate(sheet.rows):
            for row_key, value in row.items():
                cell_path = f"sheets[{sheet_index}].rows[{row_index}].{row_key}"
                if row_key not in column_keys:
                    issues.append(
                        SemanticIssue(
                            code=UNKNOWN_ROW_KEY,
                            path=cell_path,
                            message=f'Key "{row_key}" is not a column of sheet "{sheet.name}".',
                        )
                    )

                if not isinstance(value, FormulaCell):
                    continue

                if policy.is_dangerous(value.formula):
                    issues.append(
                        SemanticIssue(
                            code=UNSAFE_FORMULA,
                            path=f"{cell_path}.formula",
                            message="Formula contains a pattern blocked for security reasons.",
                        )
                    )
                    continue

                for referenced_sheet in extract_sheet_references(value.formula):
                    if referenced_sheet not in sheet_names:
                        issues.append(
                            SemanticIssue(
                                code=UNKNOWN_SHEET_REFERENCE,
                                path=f"{cell_path}.formula",
                                message=f'Formula references sheet "{referenced_sheet}" which does not exist.',
                            )
                        )

    if issues:
        log.debug(f"Semantic validation found {len(issues)} issue(s)")
    return issues


def validate_schema(
    obj: Any, policy: FormulaSafetyPolicy = DEFAULT_FORMULA_POLICY
) -> StageResult[SpreadsheetSchema]:
    """
    Run both phases on a client-supplied schema object.
    """
    structural = validate_structure(obj, SpreadsheetSchema)
    if not structural.ok:
        return structural
    issues = validate_semantics(structural.value, policy)
    if issues:
        return StageResult.failed(FailureKind.SEMANTIC_INVALID, issues)
    return structural


def format_semantic_issues(issues: Sequence[SemanticIssue], limit: int = 5) -> str:
    if not issues:
        return ""
    return " | ".join(f"{issue.path}: {issue.message}" for issue in list(issues)[:limit])
