"""Statement persistence."""
from .models import Card, Category, ImportBatchRecord, StatementRecord, TransactionRecord
from .ports import StatementStore
from .sqlite_store import SQLiteStatementStore

__all__ = [
    "Card",
    "Category",
    "ImportBatchRecord",
    "StatementRecord",
    "TransactionRecord",
    "StatementStore",
    "SQLiteStatementStore",
]
