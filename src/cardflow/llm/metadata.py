"""Merging of per-batch statement metadata fragments."""
import re
from dataclasses import replace
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Optional

from .models import StatementMetadata
from cardflow.parsers.values import parse_amount, parse_date
from cardflow.utils.logger import get_logger

logger = get_logger()

DUE_DATE_OFFSET = timedelta(days=15)

# StatementMetadata field -> (accepted fragment keys, parser)
DATE_FIELDS = {
    "statement_date": ("statementDate", "statement_date"),
    "due_date": ("dueDate", "due_date"),
    "period_start": ("periodStart", "period_start"),
    "period_end": ("periodEnd", "period_end"),
}
AMOUNT_FIELDS = {
    "total_amount": ("totalAmount", "total_amount"),
    "minimum_payment": ("minimumPayment", "minimum_payment"),
    "previous_balance": ("previousBalance", "previous_balance"),
}
TEXT_FIELDS = {
    "card_last_four": ("cardNumber", "card_number", "cardLastFour"),
    "card_holder": ("cardHolder", "card_holder"),
}


def _lookup(fragment: Dict[str, Any], keys) -> Any:
    for key in keys:
        if fragment.get(key) is not None:
            return fragment[key]
    return None


def _last_four(value: Any) -> Optional[str]:
    digits = re.sub(r"\D", "", str(value))
    return digits[-4:] if len(digits) >= 4 else None


class MetadataMerger:
    """Combines statement metadata fragments, last non-null value wins."""

    def merge(self, accumulated: StatementMetadata, fragment: Optional[Dict[str, Any]]) -> StatementMetadata:
        """
        Overlay a fragment on the accumulated metadata.

        Absent, null or unparseable fragment values leave the accumulated
        value untouched.
        """
        if not fragment:
            return accumulated

        updates: Dict[str, Any] = {}
        for field, keys in DATE_FIELDS.items():
            raw = _lookup(fragment, keys)
            value = parse_date(raw)
            if value is not None:
                updates[field] = value
            elif raw is not None:
                logger.warning(f"Ignoring unparseable {keys[0]}: {raw!r}")

        for field, keys in AMOUNT_FIELDS.items():
            raw = _lookup(fragment, keys)
            value = parse_amount(raw)
            if value is not None:
                updates[field] = value
            elif raw is not None:
                logger.warning(f"Ignoring unparseable {keys[0]}: {raw!r}")

        last_four = _lookup(fragment, TEXT_FIELDS["card_last_four"])
        if last_four is not None and _last_four(last_four):
            updates["card_last_four"] = _last_four(last_four)

        holder = _lookup(fragment, TEXT_FIELDS["card_holder"])
        if holder is not None and str(holder).strip():
            updates["card_holder"] = str(holder).strip()

        return replace(accumulated, **updates) if updates else accumulated

    def merge_all(self, fragments: Iterable[Optional[Dict[str, Any]]]) -> StatementMetadata:
        """Merge fragments in processing order."""
        merged = StatementMetadata()
        for fragment in fragments:
            merged = self.merge(merged, fragment)
        return merged

    def finalize(
        self,
        merged: StatementMetadata,
        transaction_dates: Iterable[date],
        today: Optional[date] = None,
    ) -> StatementMetadata:
        """
        Derive statement fields still missing after all batches.

        Args:
            merged: Metadata merged from every batch
            transaction_dates: Dates of all successfully extracted transactions
            today: Reference date for imports without any dates

        Returns:
            Metadata with period, statement date and due date always set
        """
        today = today or date.today()
        dates = list(transaction_dates)

        period_start = merged.period_start or (min(dates) if dates else today)
        period_end = merged.period_end or (max(dates) if dates else today)
        statement_date = merged.statement_date or period_end
        due_date = merged.due_date or statement_date + DUE_DATE_OFFSET

        return replace(
            merged,
            period_start=period_start,
            period_end=period_end,
            statement_date=statement_date,
            due_date=due_date,
        )
