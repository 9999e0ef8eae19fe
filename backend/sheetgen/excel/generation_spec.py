"""
Schema models for LLM-generated spreadsheets.

Recovered JSON is an untyped ``dict`` until it passes through these models; the
renderer only ever receives a validated ``SpreadsheetSchema``.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StringConstraints,
)

ColumnFormat = Literal["currency", "date", "percentage", "number", "text"]
ColumnAlignment = Literal["left", "center", "right"]
SpreadsheetMode = Literal["standard", "corporate"]
ExportFormat = Literal["xlsx", "csv"]

HEX_COLOR_PATTERN = r"^#?[A-Fa-f0-9]{6}([A-Fa-f0-9]{2})?$"

MAX_SHEETS = 8
MAX_COLUMNS_PER_SHEET = 200
MAX_ROWS_PER_SHEET = 10000

FiniteFloat = Annotated[float, Field(strict=True, allow_inf_nan=False)]


def reject_illegal_characters(value: str) -> str:
    if ILLEGAL_CHARACTERS_RE.search(value):
        raise ValueError("Text contains control characters that cannot be stored in a spreadsheet")
    return value


# Text that ends up in worksheet cells or workbook properties.
WorkbookText = AfterValidator(reject_illegal_characters)

CellText = Annotated[str, StringConstraints(strict=True, max_length=20000), WorkbookText]
RowKey = Annotated[str, StringConstraints(min_length=1, max_length=120)]
HexColor = Annotated[str, StringConstraints(pattern=HEX_COLOR_PATTERN, max_length=9)]

# StrictBool first: a JSON ``true`` must never be read as the integer 1.
PrimitiveValue = Union[StrictBool, StrictInt, FiniteFloat, CellText, None]


class FormulaCell(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    formula: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1024)
    ]
    result: Optional[PrimitiveValue] = None


CellValue = Union[PrimitiveValue, FormulaCell]


class SpreadsheetColumn(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    header: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120), WorkbookText
    ]
    key: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
    width: Optional[float] = Field(default=None, ge=5, le=300, strict=True)
    format: Optional[ColumnFormat] = None
    alignment: Optional[ColumnAlignment] = None


class SpreadsheetFreezePanes(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    x: Optional[StrictInt] = Field(default=None, ge=0, le=20)


class SpreadsheetSheet(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=80), WorkbookText
    ]
    showTitle: Optional[StrictBool] = None
    autoFilter: Optional[StrictBool] = None
    freezePanes: Optional[SpreadsheetFreezePanes] = None
    columns: List[SpreadsheetColumn] = Field(min_length=1, max_length=MAX_COLUMNS_PER_SHEET)
    rows: List[Dict[RowKey, CellValue]] = Field(
        default_factory=list, max_length=MAX_ROWS_PER_SHEET
    )


class SpreadsheetTheme(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    headerBg: Optional[HexColor] = None
    headerText: Optional[HexColor] = None
    rowEvenBg: Optional[HexColor] = None
    rowOddBg: Optional[HexColor] = None
    borderColor: Optional[HexColor] = None


class SpreadsheetMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    locale: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=32)]] = None
    currency: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=8)]] = None
    fiscalYearStartMonth: Optional[StrictInt] = Field(default=None, ge=1, le=12)
    businessUnit: Optional[
        Annotated[str, StringConstraints(strip_whitespace=True, max_length=120)]
    ] = None
    mode: Optional[SpreadsheetMode] = None


class SpreadsheetSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    schemaVersion: Annotated[str, StringConstraints(pattern=r"^\d+\.\d+$")] = "1.0"
    title: Optional[
        Annotated[str, StringConstraints(strip_whitespace=True, max_length=150), WorkbookText]
    ] = None
    description: Optional[
        Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
    ] = None
    metadata: Optional[SpreadsheetMetadata] = None
    theme: Optional[SpreadsheetTheme] = None
    sheets: List[SpreadsheetSheet] = Field(min_length=1, max_length=MAX_SHEETS)


class GenerationEnvelope(BaseModel):
    """
    Shape the text-generation collaborator is asked to answer with.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    workbook: SpreadsheetSchema = Field(alias="schema")
    followUp: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=400)]
    suggestions: List[
        Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    ] = Field(min_length=1, max_length=8)
    mode: Optional[SpreadsheetMode] = None


class SemanticIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    path: str
    message: str


class SpreadsheetProcessRequest(BaseModel):
    prompt: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=3000)]


class SpreadsheetProcessResponse(BaseModel):
    status: Literal["success"] = "success"
    schema_: Dict[str, Any] = Field(alias="schema")
    followUp: str
    suggestions: List[str]
    mode: Optional[SpreadsheetMode] = None
    attempts: int = Field(ge=1, le=2)

    model_config = ConfigDict(populate_by_name=True)


class SpreadsheetDownloadRequest(BaseModel):
    format: ExportFormat = "xlsx"
    schema_: Dict[str, Any] = Field(alias="schema")

    model_config = ConfigDict(populate_by_name=True)
