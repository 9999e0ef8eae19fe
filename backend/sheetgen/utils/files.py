import re
import unicodedata
from typing import Optional
from urllib.parse import quote

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_CONTENT_TYPE = "text/csv; charset=utf-8"

EXPORT_CONTENT_TYPES = {
    "xlsx": XLSX_CONTENT_TYPE,
    "csv": CSV_CONTENT_TYPE,
}

_RESERVED_FILENAME_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")


def get_export_content_type(export_format: str) -> str:
    try:
        return EXPORT_CONTENT_TYPES[export_format]
    except KeyError:
        raise ValueError(f"Unsupported export format: {export_format}")


def sanitize_download_basename(
    title: Optional[str], default: str = "spreadsheet", max_length: int = 100
) -> str:
    """
    Turn a spreadsheet title into a filesystem-safe base name (no extension).
    """
    name = _RESERVED_FILENAME_CHARS.sub("", title or "")
    name = _WHITESPACE.sub(" ", name).strip().strip(".").strip()
    name = name[:max_length].rstrip()
    return name or default


def build_content_disposition(title: Optional[str], extension: str) -> str:
    """
    Build an ``attachment`` Content-Disposition header with an ASCII fallback
    ``filename`` and an RFC 5987 ``filename*`` for the full UTF-8 name.
    """
    filename = f"{sanitize_download_basename(title)}.{extension}"
    folded = unicodedata.normalize("NFKD", filename)
    ascii_name = "".join(
        ch if ord(ch) < 128 else "_" for ch in folded if not unicodedata.combining(ch)
    )
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
