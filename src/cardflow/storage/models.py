"""Records returned by the statement store."""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional


@dataclass
class Card:
    id: int
    name: str
    issuer: str = "Unknown"
    currency: str = "USD"
    last_four: Optional[str] = None
    holder: Optional[str] = None


@dataclass
class Category:
    id: int
    slug: str
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class TransactionRecord:
    id: int
    statement_id: int
    date: date
    merchant: str
    description: str
    amount: Decimal
    currency: str
    category_slug: Optional[str] = None
    category_name: Optional[str] = None
    merchant_clean: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    ai_confidence: Optional[float] = None
    ai_explanation: Optional[str] = None


@dataclass
class StatementRecord:
    id: int
    card_id: int
    card_name: str
    import_batch_id: Optional[int]
    statement_date: date
    due_date: date
    period_start: date
    period_end: date
    total_amount: Decimal
    transaction_count: int
    status: str
    minimum_payment: Optional[Decimal] = None
    previous_balance: Optional[Decimal] = None
    transactions: List[TransactionRecord] = field(default_factory=list)


@dataclass
class ImportBatchRecord:
    id: int
    file_name: str
    file_type: str
    file_size: int
    status: str
    row_count: int = 0
    imported_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
