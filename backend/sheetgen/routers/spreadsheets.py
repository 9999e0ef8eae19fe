"""
Spreadsheet generation and download API endpoints
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from sheetgen.constants import ERROR_MESSAGES
from sheetgen.credits import GENERATION_COST, CreditLedger, InsufficientCreditsError
from sheetgen.env import (
    SPREADSHEET_COMPILE_TIMEOUT_SECONDS,
    SPREADSHEET_ISSUE_DISPLAY_LIMIT,
    SRC_LOG_LEVELS,
)
from sheetgen.excel.errors import RenderError, RepairExhaustedError, UnsupportedExportError
from sheetgen.excel.generation_orchestrator import SpreadsheetPipelineOrchestrator, TextGenerator
from sheetgen.excel.generation_spec import (
    SpreadsheetDownloadRequest,
    SpreadsheetProcessRequest,
    SpreadsheetProcessResponse,
)
from sheetgen.excel.validation import format_semantic_issues, validate_schema
from sheetgen.excel.workbook_renderer import SpreadsheetRenderer, ensure_exportable
from sheetgen.providers.gemini import TextGenerationError
from sheetgen.utils.files import build_content_disposition, get_export_content_type

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["ROUTERS"])

ACCOUNT_ID_HEADER = "X-Account-Id"

router = APIRouter()


############################
# Dependencies
############################


def get_text_generator(request: Request) -> TextGenerator:
    generator = getattr(request.app.state, "text_generator", None)
    if generator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ERROR_MESSAGES.GENERATION_UNAVAILABLE,
        )
    return generator


def get_credit_ledger(request: Request) -> CreditLedger:
    ledger = getattr(request.app.state, "credit_ledger", None)
    if ledger is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ERROR_MESSAGES.GENERATION_UNAVAILABLE,
        )
    return ledger


def get_account_id(request: Request) -> str:
    account_id = getattr(request.state, "account_id", None) or request.headers.get(
        ACCOUNT_ID_HEADER
    )
    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ERROR_MESSAGES.UNAUTHORIZED,
        )
    return account_id


async def _refund(ledger: CreditLedger, account_id: str):
    try:
        await ledger.credit(account_id, GENERATION_COST)
    except Exception as e:
        log.error(f"Failed to refund {GENERATION_COST} credit(s) to {account_id}: {e}")


############################
# ProcessSpreadsheet
############################


@router.post("/process")
async def process_spreadsheet(
    form_data: SpreadsheetProcessRequest,
    generate_text: TextGenerator = Depends(get_text_generator),
    ledger: CreditLedger = Depends(get_credit_ledger),
    account_id: str = Depends(get_account_id),
) -> SpreadsheetProcessResponse:
    """
    Compile a natural-language request into a validated spreadsheet schema.

    One credit is consumed up front and refunded when compilation fails.
    """
    try:
        await ledger.consume(account_id, GENERATION_COST)
    except InsufficientCreditsError:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=ERROR_MESSAGES.INSUFFICIENT_CREDITS,
        )

    orchestrator = SpreadsheetPipelineOrchestrator(generate_text)
    try:
        compiled = await asyncio.wait_for(
            orchestrator.compile(form_data.prompt),
            timeout=SPREADSHEET_COMPILE_TIMEOUT_SECONDS,
        )
    except RepairExhaustedError as e:
        await _refund(ledger, account_id)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=ERROR_MESSAGES.GENERATION_FAILED(
                format_semantic_issues(e.issues, SPREADSHEET_ISSUE_DISPLAY_LIMIT)
            ),
        )
    except asyncio.TimeoutError:
        await _refund(ledger, account_id)
        log.warning(f"Spreadsheet compilation timed out after {SPREADSHEET_COMPILE_TIMEOUT_SECONDS}s")
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=ERROR_MESSAGES.GENERATION_TIMEOUT,
        )
    except TextGenerationError as e:
        await _refund(ledger, account_id)
        log.error(f"Text generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=ERROR_MESSAGES.GENERATION_PROVIDER_ERROR,
        )
    except Exception as e:
        await _refund(ledger, account_id)
        log.exception(f"Unexpected error compiling spreadsheet: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=ERROR_MESSAGES.DEFAULT(),
        )

    return SpreadsheetProcessResponse(
        schema=compiled.schema.model_dump(mode="json", exclude_none=True),
        followUp=compiled.followUp,
        suggestions=compiled.suggestions,
        mode=compiled.mode,
        attempts=compiled.attempts,
    )


############################
# DownloadSpreadsheet
############################


@router.post("/download")
async def download_spreadsheet(form_data: SpreadsheetDownloadRequest) -> Response:
    """
    Validate a client-supplied schema and return it rendered as xlsx or csv.
    """
    try:
        result = validate_schema(form_data.schema_)
        if not result.ok:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=ERROR_MESSAGES.INVALID_SPREADSHEET_SCHEMA(
                    format_semantic_issues(result.issues, SPREADSHEET_ISSUE_DISPLAY_LIMIT)
                ),
            )
        schema = result.value

        try:
            ensure_exportable(schema, form_data.format)
        except UnsupportedExportError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=ERROR_MESSAGES.CSV_SINGLE_SHEET_ONLY,
            )

        renderer = SpreadsheetRenderer()
        try:
            payload = await asyncio.to_thread(renderer.render_to_bytes, schema, form_data.format)
        except RenderError as e:
            log.error(f"Error rendering spreadsheet: {e}")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=ERROR_MESSAGES.RENDER_FAILED,
            )

        log.info(f"Rendered {form_data.format} download ({len(payload)} bytes, {len(schema.sheets)} sheet(s))")
        return Response(
            content=payload,
            media_type=get_export_content_type(form_data.format),
            headers={
                "Content-Disposition": build_content_disposition(schema.title, form_data.format)
            },
        )

    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error rendering spreadsheet download: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=ERROR_MESSAGES.DEFAULT(),
        )
