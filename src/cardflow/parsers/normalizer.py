"""Header normalization for tabular statement rows."""
from typing import Dict, Iterable, Optional

from .models import NormalizedRow, RawRecord
from .values import infer_day_first, parse_amount, parse_date

# Column name fragments per field, matched case-insensitively in header order
DATE_ALIASES = ("date", "data", "fecha", "datum")
MERCHANT_ALIASES = ("merchant", "description", "descricao", "descrição", "name", "estabelecimento", "payee")
AMOUNT_ALIASES = ("amount", "valor", "value", "total", "importe")
CURRENCY_ALIASES = ("currency", "moeda", "moneda")
DESCRIPTION_ALIASES = ("desc", "memo", "note", "detail")


def _first_match(columns, aliases) -> Optional[str]:
    for column in columns:
        lower = str(column).strip().lower()
        if any(alias in lower for alias in aliases):
            return column
    return None


def detect_columns(record: RawRecord) -> Dict[str, Optional[str]]:
    """
    Map each fixed field to the record column that most likely holds it.

    Args:
        record: A raw record (only its keys are inspected)

    Returns:
        Dict with keys date, merchant, description, amount, currency
    """
    columns = list(record.keys())
    detected = {
        "date": _first_match(columns, DATE_ALIASES),
        "merchant": _first_match(columns, MERCHANT_ALIASES),
        "amount": _first_match(columns, AMOUNT_ALIASES),
        "currency": _first_match(columns, CURRENCY_ALIASES),
    }
    detected["description"] = _first_match(columns, DESCRIPTION_ALIASES)
    return detected


def normalize_record(record: RawRecord, default_currency: str = "USD", day_first: bool = True) -> NormalizedRow:
    """Convert a raw record into a NormalizedRow with optional fields."""
    columns = detect_columns(record)

    def cell(field: str) -> str:
        column = columns[field]
        if column is None or record.get(column) is None:
            return ""
        return str(record[column]).strip()

    merchant = cell("merchant")
    description = cell("description") or merchant
    currency = cell("currency").upper()
    if len(currency) != 3 or not currency.isalpha():
        currency = default_currency

    return NormalizedRow(
        date=parse_date(cell("date"), day_first),
        merchant=merchant,
        description=description,
        amount=parse_amount(cell("amount")),
        currency=currency,
    )


def infer_records_day_first(records: Iterable[RawRecord], default: bool = True) -> bool:
    """Decide day-first or month-first once for a whole file from its date column."""
    values = []
    for record in records:
        column = detect_columns(record)["date"]
        if column is not None:
            values.append(record.get(column))
    return infer_day_first(values, default)
