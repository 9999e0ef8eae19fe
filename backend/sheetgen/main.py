import logging
from typing import Optional

from fastapi import FastAPI

from sheetgen.credits import CreditLedger
from sheetgen.env import GEMINI_API_KEY, SRC_LOG_LEVELS
from sheetgen.excel.generation_orchestrator import TextGenerator
from sheetgen.providers.gemini import GeminiTextGenerator
from sheetgen.routers import spreadsheets

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["MAIN"])


def create_app(
    text_generator: Optional[TextGenerator] = None,
    credit_ledger: Optional[CreditLedger] = None,
) -> FastAPI:
    app = FastAPI(
        title="sheetgen",
        description="Compiles natural-language requests into styled spreadsheets.",
    )

    if text_generator is None and GEMINI_API_KEY:
        text_generator = GeminiTextGenerator()
    if text_generator is None:
        log.warning("No text generator configured; /process will be unavailable")
    if credit_ledger is None:
        log.warning("No credit ledger configured; /process will be unavailable")

    app.state.text_generator = text_generator
    app.state.credit_ledger = credit_ledger

    app.include_router(
        spreadsheets.router, prefix="/api/v1/spreadsheets", tags=["spreadsheets"]
    )

    @app.get("/health")
    async def healthcheck():
        return {"status": True}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8080)
