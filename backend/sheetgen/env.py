import logging
import os
import sys
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

SHEETGEN_DIR = Path(__file__).parent
BACKEND_DIR = SHEETGEN_DIR.parent
BASE_DIR = BACKEND_DIR.parent

load_dotenv(find_dotenv(str(BASE_DIR / ".env")))


####################################
# LOGGING
####################################

GLOBAL_LOG_LEVEL = os.environ.get("GLOBAL_LOG_LEVEL", "").upper()
if GLOBAL_LOG_LEVEL in logging.getLevelNamesMapping():
    logging.basicConfig(stream=sys.stdout, level=GLOBAL_LOG_LEVEL, force=True)
else:
    GLOBAL_LOG_LEVEL = "INFO"

log = logging.getLogger(__name__)
log.info(f"GLOBAL_LOG_LEVEL: {GLOBAL_LOG_LEVEL}")

log_sources = [
    "MAIN",
    "EXCEL",
    "PROVIDERS",
    "ROUTERS",
]

SRC_LOG_LEVELS = {}

for source in log_sources:
    log_env_var = source + "_LOG_LEVEL"
    SRC_LOG_LEVELS[source] = os.environ.get(log_env_var, "").upper()
    if SRC_LOG_LEVELS[source] not in logging.getLevelNamesMapping():
        SRC_LOG_LEVELS[source] = GLOBAL_LOG_LEVEL
    log.info(f"{log_env_var}: {SRC_LOG_LEVELS[source]}")

log.setLevel(SRC_LOG_LEVELS["MAIN"])


####################################
# TEXT GENERATION (GEMINI)
####################################

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_API_BASE_URL = os.environ.get(
    "GEMINI_API_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")

try:
    GEMINI_TEMPERATURE = float(os.environ.get("GEMINI_TEMPERATURE", "0.2"))
except ValueError:
    GEMINI_TEMPERATURE = 0.2

try:
    GEMINI_TIMEOUT_SECONDS = int(os.environ.get("GEMINI_TIMEOUT_SECONDS", "120"))
except ValueError:
    GEMINI_TIMEOUT_SECONDS = 120


####################################
# SPREADSHEET PIPELINE
####################################

try:
    SPREADSHEET_COMPILE_TIMEOUT_SECONDS = int(
        os.environ.get("SPREADSHEET_COMPILE_TIMEOUT_SECONDS", "180")
    )
except ValueError:
    SPREADSHEET_COMPILE_TIMEOUT_SECONDS = 180

try:
    SPREADSHEET_REPAIR_SOURCE_MAX_CHARS = int(
        os.environ.get("SPREADSHEET_REPAIR_SOURCE_MAX_CHARS", "12000")
    )
except ValueError:
    SPREADSHEET_REPAIR_SOURCE_MAX_CHARS = 12000

try:
    SPREADSHEET_REPAIR_MAX_ISSUES = int(
        os.environ.get("SPREADSHEET_REPAIR_MAX_ISSUES", "20")
    )
except ValueError:
    SPREADSHEET_REPAIR_MAX_ISSUES = 20

try:
    SPREADSHEET_ISSUE_DISPLAY_LIMIT = int(
        os.environ.get("SPREADSHEET_ISSUE_DISPLAY_LIMIT", "5")
    )
except ValueError:
    SPREADSHEET_ISSUE_DISPLAY_LIMIT = 5

SPREADSHEET_DOCUMENT_CREATOR = os.environ.get("SPREADSHEET_DOCUMENT_CREATOR", "sheetgen")
