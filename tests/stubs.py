"""Test doubles for the understanding service and statement store."""
import json
import sqlite3
from typing import List, Optional, Union

from cardflow.parsers.pdf import PDFProcessor
from cardflow.storage.sqlite_store import SQLiteStatementStore
from cardflow.utils.exceptions import LLMError, PersistenceError


class StubService:
    """Returns scripted responses in call order and records every prompt."""

    def __init__(self, responses: List[Union[str, Exception]]):
        self.responses = list(responses)
        self.prompts: List[str] = []
        self.documents = []

    def generate(self, prompt, document=None):
        self.prompts.append(prompt)
        self.documents.append(document)
        if not self.responses:
            raise LLMError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FixedTextPDFProcessor(PDFProcessor):
    """Skips real PDF parsing."""

    def __init__(self, text=None):
        self.text = text

    def extract_text(self, data, name="document.pdf"):
        return self.text


class FlakyStore(SQLiteStatementStore):
    """SQLite store whose transaction writes fail for chosen merchants."""

    def __init__(self, db_path, failing_merchants=()):
        super().__init__(db_path)
        self.failing_merchants = set(failing_merchants)

    def create_transaction(self, statement_id, import_batch_id, card_id, transaction, category_id, **kwargs):
        if transaction.merchant in self.failing_merchants:
            raise PersistenceError(f"simulated write failure for {transaction.merchant}")
        return super().create_transaction(statement_id, import_batch_id, card_id, transaction, category_id, **kwargs)


class LockedCategoryStore(SQLiteStatementStore):
    """SQLite store whose category lookups hit a locked database for chosen slugs."""

    def __init__(self, db_path, locked_slugs=()):
        self.locked = False
        self.locked_slugs = set(locked_slugs)
        super().__init__(db_path)

    def _connect(self):
        if self.locked:
            raise sqlite3.OperationalError("database is locked")
        return super()._connect()

    def find_category_by_slug(self, slug):
        self.locked = slug in self.locked_slugs
        try:
            return super().find_category_by_slug(slug)
        finally:
            self.locked = False


def transaction_entry(day: int, merchant: str, amount: float, category: str = "food", **extra) -> dict:
    entry = {
        "date": f"2025-10-{day:02d}",
        "merchant": merchant,
        "description": f"{merchant} purchase",
        "amount": amount,
        "currency": "USD",
        "category": category,
        "confidence": 0.9,
        "explanation": "test",
    }
    entry.update(extra)
    return entry


def response_json(entries: list, statement: Optional[dict] = None, fenced: bool = False) -> str:
    payload = {"transactions": entries}
    if statement is not None:
        payload["statement"] = statement
    text = json.dumps(payload)
    return f"```json\n{text}\n```" if fenced else text


def csv_bytes(rows: List[dict]) -> bytes:
    header = list(rows[0].keys())
    lines = [",".join(header)]
    for row in rows:
        lines.append(",".join(str(row[column]) for column in header))
    return ("\n".join(lines) + "\n").encode("utf-8")
