from enum import Enum


class ERROR_MESSAGES(str, Enum):
    def __str__(self) -> str:
        return super().__str__()

    DEFAULT = (
        lambda err="": f'{"Something went wrong :/" if err == "" else "[ERROR: " + str(err) + "]"}'
    )
    UNAUTHORIZED = "401 Unauthorized"
    NOT_FOUND = "We could not find what you're looking for :/"
    INSUFFICIENT_CREDITS = "Not enough credits to generate a spreadsheet. Top up your balance and try again."
    GENERATION_UNAVAILABLE = "The spreadsheet generator is not configured."
    GENERATION_FAILED = (
        lambda err="": f"The generated spreadsheet could not be validated after one repair attempt. {err}".strip()
    )
    GENERATION_TIMEOUT = "Spreadsheet generation took too long. Please try again."
    GENERATION_PROVIDER_ERROR = "The text generation service failed to respond. Please try again."
    INVALID_SPREADSHEET_SCHEMA = (
        lambda err="": f"The spreadsheet schema is invalid. {err}".strip()
    )
    CSV_SINGLE_SHEET_ONLY = "CSV export supports a single sheet only. Use xlsx for multi-sheet spreadsheets."
    RENDER_FAILED = "The spreadsheet could not be rendered."
