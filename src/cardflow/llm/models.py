"""Data models for extraction and classification."""
from dataclasses import dataclass, field
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator

from cardflow.parsers.models import WholeDocument
from cardflow.parsers.values import parse_amount, parse_date

DEFAULT_CATEGORY = "other"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_EXPLANATION = "Auto-classified"
DEFAULT_CURRENCY = "USD"


class UnderstandingService(Protocol):
    """External text-understanding service returning free-form text."""

    def generate(self, prompt: str, document: Optional[WholeDocument] = None) -> str:
        """
        Send an instruction, optionally with a whole document attached.

        Raises:
            LLMError: On transport failure or timeout
        """


class ExtractedTransaction(BaseModel):
    """A validated debit extracted from a statement."""
    model_config = ConfigDict(frozen=True)

    date: dt.date
    merchant: str
    description: str
    amount: Decimal
    currency: str
    category: str = DEFAULT_CATEGORY
    confidence: float = DEFAULT_CONFIDENCE
    explanation: str = DEFAULT_EXPLANATION

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("description"):
            data["description"] = data.get("merchant")
        if not data.get("currency"):
            context = info.context or {}
            data["currency"] = context.get("default_currency", DEFAULT_CURRENCY)
        return data

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> dt.date:
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"unparseable date {value!r}")
        return parsed

    @field_validator("merchant", mode="before")
    @classmethod
    def _check_merchant(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("merchant is empty")
        return str(value).strip()

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Decimal:
        # Debits are magnitudes; the sign convention of the source is not trusted
        parsed = parse_amount(value)
        if parsed is None:
            raise ValueError(f"unparseable amount {value!r}")
        if parsed == 0:
            raise ValueError("amount is zero")
        return abs(parsed)

    @field_validator("currency", mode="before")
    @classmethod
    def _check_currency(cls, value: Any, info: ValidationInfo) -> str:
        code = str(value).strip().upper()
        if len(code) == 3 and code.isalpha():
            return code
        context = info.context or {}
        return context.get("default_currency", DEFAULT_CURRENCY)

    @field_validator("category", mode="before")
    @classmethod
    def _clean_category(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_CATEGORY
        return str(value).strip().lower()

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE
        if confidence != confidence:  # NaN
            return DEFAULT_CONFIDENCE
        return min(1.0, max(0.0, confidence))

    @field_validator("explanation", mode="before")
    @classmethod
    def _default_explanation(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_EXPLANATION
        return str(value).strip()


@dataclass(frozen=True)
class StatementMetadata:
    """Statement-level fields merged across batches."""
    statement_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    period_start: Optional[dt.date] = None
    period_end: Optional[dt.date] = None
    total_amount: Optional[Decimal] = None
    minimum_payment: Optional[Decimal] = None
    previous_balance: Optional[Decimal] = None
    card_last_four: Optional[str] = None
    card_holder: Optional[str] = None


class FailureReason(Enum):
    """Why a batch produced no transactions."""
    INVALID_RESPONSE_FORMAT = "invalid_response_format"
    MALFORMED_JSON = "malformed_json"
    MISSING_TRANSACTIONS_FIELD = "missing_transactions_field"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class ExtractionSuccess:
    """Batch parsed; some entries may have been dropped."""
    transactions: List[ExtractedTransaction]
    metadata: Dict[str, Any] = field(default_factory=dict)
    dropped: List[str] = field(default_factory=list)  # One diagnostic per dropped entry

    @property
    def entry_count(self) -> int:
        return len(self.transactions) + len(self.dropped)


@dataclass(frozen=True)
class ExtractionFailure:
    """Batch-fatal extraction failure."""
    reason: FailureReason
    detail: str = ""

    def describe(self) -> str:
        return f"{self.reason.value}: {self.detail}" if self.detail else self.reason.value


ExtractionOutcome = Union[ExtractionSuccess, ExtractionFailure]


@dataclass(frozen=True)
class ClassificationResult:
    """Category assignment for a single transaction."""
    category: str
    tags: List[str]
    confidence: float
    explanation: str
    merchant_clean: Optional[str] = None


@dataclass(frozen=True)
class CategoryTotal:
    """Per-category aggregate."""
    count: int
    total: Decimal
