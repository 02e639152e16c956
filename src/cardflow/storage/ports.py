"""Persistence collaborator used by the import pipeline."""
from decimal import Decimal
from typing import List, Optional, Protocol

from cardflow.llm.models import ExtractedTransaction, StatementMetadata
from .models import Card, Category


class StatementStore(Protocol):
    """
    Writes cards, statements, transactions and import batches.

    Write failures raise PersistenceError; callers treat a failed
    transaction write as non-fatal for the import.
    """

    def find_or_create_card(self, name: str, currency: str = "USD") -> Card:
        """Return the card with this name, creating it if missing."""

    def update_card_details(self, card_id: int, last_four: Optional[str], holder: Optional[str]) -> None:
        """Fill card number/holder when the statement reveals them."""

    def create_import_batch(self, file_name: str, file_type: str, file_size: int) -> int:
        """Create an import batch in "processing" status and return its id."""

    def create_statement(self, card_id: int, import_batch_id: int, metadata: StatementMetadata, status: str = "processing") -> int:
        """Create a statement from finalized metadata and return its id."""

    def find_category_by_slug(self, slug: str) -> Optional[Category]:
        """Look up a category."""

    def create_transaction(
        self,
        statement_id: int,
        import_batch_id: int,
        card_id: int,
        transaction: ExtractedTransaction,
        category_id: Optional[int],
        tags: Optional[List[str]] = None,
        merchant_clean: Optional[str] = None,
        raw_data: Optional[str] = None,
    ) -> int:
        """Insert one transaction linked to its statement and import batch."""

    def update_statement_totals(self, statement_id: int, total_amount: Decimal, transaction_count: int, status: str) -> None:
        """Store statement aggregates once all rows were attempted."""

    def update_import_batch(
        self,
        batch_id: int,
        status: str,
        row_count: int,
        imported_count: int,
        error_count: int,
        errors: List[str],
    ) -> None:
        """Finalize an import batch."""
