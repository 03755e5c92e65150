from __future__ import annotations

import logging
import re
import unicodedata
from typing import Optional


log = logging.getLogger(__name__)

BIRTH_YEAR_PIVOT = 25

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
_YEAR_RE = re.compile(r"\d{2,4}")
_AGE_CLASS_RE = re.compile(r"([NM](?:14|18|23|40|50|60|70))")
_AGE_CLASS_STRIP_RE = re.compile(r"[MN](?:14|18|23|40|50|60|70)(?!\d)", re.IGNORECASE)
_WEIGHT_CLASS_RE = re.compile(r"^-?(?P<num>\d+(?:[.,]\d+)?)(?P<plus>\+)?")
_PREFIXED_WEIGHT_CLASS_RE = re.compile(r"^[MN]\s*(?P<num>\d+(?:[.,]\d+)?)(?P<plus>\+)?", re.IGNORECASE)

_SITE_SUFFIX_RE = re.compile(r"\s+-\s+[A-Za-zÄÖÅäöå\s]+$", re.IGNORECASE)
_DATE_RANGE_TOKEN_RE = re.compile(r"(\d{1,2}\.(?:\d{1,2}\.)?\s*[–-]\s*\d{1,2}\.\d{1,2}\.\d{2,4})")
_DATE_TOKEN_RE = re.compile(r"(\d{1,2}\.\d{1,2}\.\d{2,4})")
_DATE_RANGE_RE = re.compile(
    r"^(?P<d1>\d{1,2})\.(?P<m1>\d{1,2})?\.?\s*[-–]\s*(?P<d2>\d{1,2})\.(?P<m2>\d{1,2})\.(?P<y>\d{2,4})$"
)
_DATE_SINGLE_RE = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{2,4}$")
_LIKELY_RANGE_RE = re.compile(r"(\d{1,2}\.\s*[-–]\s*\d{1,2}\.\d{1,2}\.\d{2,4})")
_LETTER_RE = re.compile(r"[A-Za-zÄÖÅäöå]")

# Cells meaning "nothing here".
_BLANK_MARKERS = ("", "-", "\u2013")


def norm_cell(text: Optional[str]) -> str:
    s = (text or "").replace("\u00a0", " ").replace("\r", " ").replace("\n", " ").strip()
    return re.sub(r"\s+", " ", s)


def fold_text(text: Optional[str]) -> str:
    """Lower-case, whitespace-collapsed and NFC-composed, so "ä" typed as a + combining mark still matches."""
    return unicodedata.normalize("NFC", norm_cell(text)).lower()


def parse_number(text: Optional[str]) -> float:
    """Parse a leading decimal-comma number; anything unparseable is 0."""
    s = (text or "").strip().replace(",", ".", 1)
    if s in _BLANK_MARKERS:
        return 0.0
    m = _NUMBER_RE.match(s)
    if not m:
        log.debug("Unparseable number %r, using 0", text)
        return 0.0
    return float(m.group(0))


def parse_birth_year(text: Optional[str], *, pivot: int = BIRTH_YEAR_PIVOT) -> int:
    s = (text or "").strip()
    if not s:
        return 0
    m = _YEAR_RE.search(s)
    if not m:
        return 0
    year = int(m.group(0))
    if 0 <= year < 100:
        year += 2000 if year <= pivot else 1900
    return year


def extract_age_class(text: Optional[str]) -> Optional[str]:
    m = _AGE_CLASS_RE.search(norm_cell(text).upper())
    return m.group(1) if m else None


def normalize_weight_class(text: Optional[str]) -> str:
    """Signed weight class: "74" -> "-74", "84+" -> "84+", "M74" -> "-74"."""
    raw = norm_cell(text)
    cleaned = _AGE_CLASS_STRIP_RE.sub("", raw).strip()
    m = _WEIGHT_CLASS_RE.match(cleaned) or _PREFIXED_WEIGHT_CLASS_RE.match(raw)
    if not m:
        return ""
    numeric = m.group("num").replace(",", ".")
    return f"{numeric}+" if m.group("plus") else f"-{numeric}"


def clean_date(value: Optional[str]) -> str:
    if not value:
        return ""
    return _SITE_SUFFIX_RE.sub("", value).strip()


def extract_date_from_text(value: str) -> str:
    cleaned = clean_date(value)
    m = _DATE_RANGE_TOKEN_RE.search(cleaned)
    if m:
        return m.group(1)
    m = _DATE_TOKEN_RE.search(cleaned)
    if m:
        return m.group(1)
    return ""


def extract_location_from_text(value: str, date_only: str) -> str:
    s = value.replace(date_only, "")
    s = re.sub(r"\s+-\s+Suomen Voimanostoliitto ry$", "", s, flags=re.IGNORECASE)
    s = re.sub(r"[–-]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    if not s or not _LETTER_RE.search(s):
        return ""
    return s


def is_likely_date(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(_DATE_TOKEN_RE.search(value) or _LIKELY_RANGE_RE.search(value))


def parse_date_range(date_text: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Return (start, end) in the source's d.m.yyyy form; "1.-2.3.2025" -> ("1.3.2025", "2.3.2025")."""
    if not date_text:
        return (None, None)
    s = re.sub(r"\s+", " ", date_text).strip()
    m = _DATE_RANGE_RE.match(s)
    if m:
        month = m.group("m1") or m.group("m2")
        start = f"{m.group('d1')}.{month}.{m.group('y')}"
        end = f"{m.group('d2')}.{m.group('m2')}.{m.group('y')}"
        return (start, end)
    if _DATE_SINGLE_RE.match(s):
        return (s, s)
    return (None, None)


def format_number(value: float) -> str:
    """150.0 -> "150", 152.5 -> "152.5"."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(value)
