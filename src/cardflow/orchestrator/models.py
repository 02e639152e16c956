"""Import state, report and result models."""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from cardflow.llm.models import CategoryTotal, StatementMetadata

STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
STATUS_FAILED = "failed"


class ImportState(Enum):
    PENDING = "pending"
    PARSING = "parsing"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportReport:
    """Final per-import tally; immutable once built."""
    total_rows: int = 0
    imported_count: int = 0
    error_count: int = 0
    skipped_count: int = 0  # Rows the service left out (headers, totals, payments)
    errors: Tuple[str, ...] = ()

    @property
    def status(self) -> str:
        """Import-batch status; error when every attempted row failed."""
        return STATUS_ERROR if self.error_count == self.total_rows else STATUS_COMPLETED


@dataclass
class ReportBuilder:
    """Accumulates outcomes while an import runs."""
    total_rows: int = 0
    imported_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)

    def record_error(self, message: str, count: int = 1) -> None:
        self.error_count += count
        self.errors.append(message)

    def finalize(self) -> ImportReport:
        return ImportReport(
            total_rows=self.total_rows,
            imported_count=self.imported_count,
            error_count=self.error_count,
            skipped_count=self.skipped_count,
            errors=tuple(self.errors),
        )


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one import returned to the caller."""
    state: ImportState
    report: ImportReport
    statement_id: Optional[int] = None
    import_batch_id: Optional[int] = None
    metadata: Optional[StatementMetadata] = None
    total_amount: Optional[Decimal] = None
    transaction_count: Optional[int] = None
    category_breakdown: Optional[Dict[str, CategoryTotal]] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state is ImportState.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Caller-facing report shape."""
        result: Dict[str, Any] = {
            "success": self.success,
            "imported": self.report.imported_count,
            "errors": self.report.error_count,
            "total": self.report.total_rows,
        }
        if self.error_message:
            result["error"] = "Failed to import file"
            result["details"] = self.error_message
        if self.import_batch_id is not None:
            result["importBatchId"] = self.import_batch_id
        if self.statement_id is not None:
            result["statementId"] = self.statement_id
        if self.metadata is not None and self.metadata.period_start and self.metadata.period_end:
            result["period"] = {
                "start": self.metadata.period_start.isoformat(),
                "end": self.metadata.period_end.isoformat(),
            }
        if self.total_amount is not None:
            result["totalAmount"] = str(self.total_amount)
        if self.transaction_count is not None:
            result["transactionCount"] = self.transaction_count
        if self.category_breakdown is not None:
            result["categoryBreakdown"] = {
                slug: {"count": item.count, "total": str(item.total)}
                for slug, item in self.category_breakdown.items()
            }
        return result
