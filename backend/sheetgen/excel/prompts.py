"""
Prompt templates for spreadsheet generation and the single repair attempt.
"""

from typing import Sequence

from .generation_spec import MAX_COLUMNS_PER_SHEET, MAX_ROWS_PER_SHEET, MAX_SHEETS, SemanticIssue

RESPONSE_SHAPE = """{
  "schema": {
    "title": "...",
    "description": "...",
    "metadata": { "locale": "en-US", "currency": "USD", "mode": "standard" },
    "theme": { "headerBg": "#1F4E79", "headerText": "#FFFFFF", "rowEvenBg": "#F1F5F9", "rowOddBg": "#FFFFFF", "borderColor": "#E2E8F0" },
    "sheets": [{
      "name": "...",
      "showTitle": true,
      "autoFilter": true,
      "freezePanes": { "x": 0 },
      "columns": [
        { "header": "...", "key": "k1", "width": 20, "format": "currency", "alignment": "right" }
      ],
      "rows": [
        { "k1": 150.50, "k2": { "formula": "SUM(A2:A21)" } }
      ]
    }]
  },
  "followUp": "...",
  "suggestions": ["...", "..."]
}"""

GENERATION_PROMPT_TEMPLATE = """User request: "{user_prompt}"

GOAL: produce a complete, polished spreadsheet for this request.
Fill it with at least 20 rows of realistic data. Do not use placeholders such as "Item 1" or "Value A".

RULES:
1. LANGUAGE: detect the language of the request and write every title, header and value in that language.
2. DESIGN: choose an elegant hex color palette. The header must have strong contrast.
3. DATA: generate dense, plausible data (real-looking names, dates and amounts).
4. FORMULAS: use Excel formulas for computed fields (totals, averages, discounts, ratios),
   written as {{"formula": "SUM(B2:B21)"}} with English function names.
   Never use WEBSERVICE, FILTERXML, RTD, REGISTER, CALL, EXEC, SHELL or any external command.
5. FORMATS: set "format" to one of "currency", "date", "percentage", "number", "text".
6. LIMITS: at most {max_sheets} sheets, {max_columns} columns and {max_rows} rows per sheet.
   Every row key must be the "key" of a column of the same sheet; column keys are unique.
7. Only reference sheets that exist in the schema.

Answer with a single JSON object, no markdown, in this shape:
{response_shape}
"""

REPAIR_PROMPT_TEMPLATE = """Your previous answer to the request below could not be used.

User request: "{user_prompt}"

Problems found (sheet paths such as sheets[0].rows[2] are inside "schema"):
{issue_lines}

Previous answer{truncation_note}:
<<<
{previous_response}
>>>

Return the corrected, complete JSON object only, with no markdown and no commentary,
in this shape:
{response_shape}
"""


def build_generation_prompt(user_prompt: str) -> str:
    return GENERATION_PROMPT_TEMPLATE.format(
        user_prompt=user_prompt.strip(),
        max_sheets=MAX_SHEETS,
        max_columns=MAX_COLUMNS_PER_SHEET,
        max_rows=MAX_ROWS_PER_SHEET,
        response_shape=RESPONSE_SHAPE,
    )


def format_issue_lines(issues: Sequence[SemanticIssue], max_issues: int) -> str:
    if not issues:
        return "- The answer did not contain a parseable JSON object."
    lines = [f"- [{issue.code}] {issue.path}: {issue.message}" for issue in issues[:max_issues]]
    remaining = len(issues) - max_issues
    if remaining > 0:
        lines.append(f"- ... and {remaining} more issue(s) of the same kind.")
    return "\n".join(lines)


def build_repair_prompt(
    user_prompt: str,
    previous_response: str,
    issues: Sequence[SemanticIssue],
    max_source_chars: int,
    max_issues: int,
) -> str:
    previous_response = previous_response or ""
    truncated = len(previous_response) > max_source_chars
    return REPAIR_PROMPT_TEMPLATE.format(
        user_prompt=user_prompt.strip(),
        issue_lines=format_issue_lines(issues, max_issues),
        truncation_note=f" (first {max_source_chars} characters)" if truncated else "",
        previous_response=previous_response[:max_source_chars],
        response_shape=RESPONSE_SHAPE,
    )
