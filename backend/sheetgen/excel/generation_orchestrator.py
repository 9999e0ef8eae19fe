"""
Bounded generate -> recover -> validate -> repair pipeline for LLM spreadsheets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from sheetgen.env import (
    SPREADSHEET_REPAIR_MAX_ISSUES,
    SPREADSHEET_REPAIR_SOURCE_MAX_CHARS,
    SRC_LOG_LEVELS,
)

from .errors import FailureKind, RepairExhaustedError
from .generation_spec import (
    GenerationEnvelope,
    SemanticIssue,
    SpreadsheetMode,
    SpreadsheetSchema,
)
from .prompts import build_generation_prompt, build_repair_prompt
from .recovery import recover
from .validation import (
    DEFAULT_FORMULA_POLICY,
    FormulaSafetyPolicy,
    StageResult,
    validate_semantics,
    validate_structure,
)

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["EXCEL"])

TextGenerator = Callable[[str], Awaitable[str]]

# One generation call plus one repair call.
MAX_COLLABORATOR_CALLS = 2

_RECOVERY_FAILED_ISSUE = SemanticIssue(
    code=FailureKind.RECOVERY_FAILED.value,
    path="$",
    message="The response did not contain a parseable JSON object.",
)


@dataclass
class CompiledSpreadsheet:
    schema: SpreadsheetSchema
    followUp: str
    suggestions: List[str]
    mode: Optional[SpreadsheetMode]
    attempts: int


class SpreadsheetPipelineOrchestrator:
    """
    Implements bounded compilation:
    generate -> recover -> validate structure -> validate semantics,
    then exactly one repair call on failure before failing terminally.
    """

    def __init__(
        self,
        generate_text: TextGenerator,
        policy: FormulaSafetyPolicy = DEFAULT_FORMULA_POLICY,
        repair_source_max_chars: int = SPREADSHEET_REPAIR_SOURCE_MAX_CHARS,
        repair_max_issues: int = SPREADSHEET_REPAIR_MAX_ISSUES,
    ):
        self.generate_text = generate_text
        self.policy = policy
        self.repair_source_max_chars = repair_source_max_chars
        self.repair_max_issues = repair_max_issues

    async def compile(self, user_prompt: str) -> CompiledSpreadsheet:
        raw = await self.generate_text(build_generation_prompt(user_prompt))
        result = self.evaluate(raw)
        if result.ok:
            log.info("Spreadsheet compiled on first attempt")
            return self._compiled(result.value, attempts=1)

        log.warning(
            f"Spreadsheet attempt 1 failed ({result.failure.value}, {len(result.issues)} issue(s)); requesting repair"
        )
        repair_prompt = build_repair_prompt(
            user_prompt=user_prompt,
            previous_response=raw,
            issues=result.issues,
            max_source_chars=self.repair_source_max_chars,
            max_issues=self.repair_max_issues,
        )
        repaired_raw = await self.generate_text(repair_prompt)
        repaired = self.evaluate(repaired_raw)
        if repaired.ok:
            log.info("Spreadsheet compiled after repair")
            return self._compiled(repaired.value, attempts=MAX_COLLABORATOR_CALLS)

        log.error(
            f"Spreadsheet repair failed ({repaired.failure.value}, {len(repaired.issues)} issue(s))"
        )
        raise RepairExhaustedError(repaired.failure, repaired.issues)

    def evaluate(self, raw: str) -> StageResult[GenerationEnvelope]:
        recovered = recover(raw)
        if recovered is None:
            return StageResult.failed(FailureKind.RECOVERY_FAILED, [_RECOVERY_FAILED_ISSUE])

        structural = validate_structure(recovered, GenerationEnvelope)
        if not structural.ok:
            return structural

        issues = validate_semantics(structural.value.workbook, self.policy)
        if issues:
            return StageResult.failed(FailureKind.SEMANTIC_INVALID, issues)
        return structural

    def _compiled(self, envelope: GenerationEnvelope, attempts: int) -> CompiledSpreadsheet:
        return CompiledSpreadsheet(
            schema=envelope.workbook,
            followUp=envelope.followUp,
            suggestions=list(envelope.suggestions),
            mode=envelope.mode,
            attempts=attempts,
        )
