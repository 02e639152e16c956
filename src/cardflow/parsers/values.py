"""Lenient date and amount parsing shared by normalizers and validators."""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %b %y",
    "%b %d, %Y",
    "%Y-%m-%dT%H:%M:%S",
]
DAY_FIRST_FORMATS = ["%d/%m/%Y", "%d/%m/%y", "%d-%m-%Y", "%d.%m.%Y", "%d.%m.%y"]
MONTH_FIRST_FORMATS = ["%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y"]

NUMERIC_DATE_RE = re.compile(r"^\s*(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})\s*$")


def _formats(day_first: bool) -> List[str]:
    # The preferred order only decides dates where both readings are valid
    if day_first:
        return DATE_FORMATS + DAY_FIRST_FORMATS + MONTH_FIRST_FORMATS
    return DATE_FORMATS + MONTH_FIRST_FORMATS + DAY_FIRST_FORMATS


def infer_day_first(values: Iterable[Any], default: bool = True) -> bool:
    """
    Guess whether numeric dates in one file are day-first or month-first.

    A first component above 12 means day-first, a second one above 12 means
    month-first. Returns default when every date is ambiguous.
    """
    for value in values:
        if not isinstance(value, str):
            continue
        match = NUMERIC_DATE_RE.match(value)
        if not match:
            continue
        first, second = int(match.group(1)), int(match.group(2))
        if first > 12:
            return True
        if second > 12:
            return False
    return default


def parse_date(value: Any, day_first: bool = True) -> Optional[date]:
    """
    Parse a date in any of the common statement formats.

    Two-digit years are mapped to the 2000s. Ambiguous numeric dates such
    as 05/10/2025 are read day-first unless day_first is False. Returns None
    when the value cannot be read as a calendar date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    for fmt in _formats(day_first):
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if fmt.endswith("%y") and parsed.year < 2000:
            parsed = parsed.replace(year=parsed.year + 2000)
        return parsed.date()

    # Spreadsheet cells read as text may carry a time part
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a monetary amount, keeping its sign.

    Accepts currency symbols and both "1,234.56" and "1.234,56" grouping.
    Returns None when no number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        return result if result.is_finite() else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    negative = text.startswith("-") or text.endswith("-") or (text.startswith("(") and text.endswith(")"))
    cleaned = re.sub(r"[^0-9.,]", "", text)
    if not cleaned or not re.search(r"\d", cleaned):
        return None

    if "," in cleaned and "." in cleaned:
        # The right-most separator is the decimal mark
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) in (1, 2) and cleaned.count(",") == 1:
            cleaned = f"{head}.{tail}"
        else:
            cleaned = cleaned.replace(",", "")
    elif cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = head.replace(".", "") + "." + tail

    try:
        result = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -result if negative else result
