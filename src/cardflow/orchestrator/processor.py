"""Import pipeline: decode, batch, extract, merge metadata, persist.

Batches run strictly in order so that metadata merging (last value wins) and
the error list are reproducible. A failed batch or row is recorded in the
report and never stops the import; only undecodable input and unexpected
exceptions fail it. Rows persisted before a failure stay persisted.
"""
import json
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from .models import ImportResult, ImportState, ReportBuilder, STATUS_FAILED
from cardflow.llm.aggregator import Aggregator
from cardflow.llm.classifier import TransactionClassifier
from cardflow.llm.extractor import ExtractionClient
from cardflow.llm.metadata import MetadataMerger
from cardflow.llm.models import DEFAULT_CURRENCY, ExtractedTransaction, ExtractionFailure, StatementMetadata
from cardflow.parsers.batching import BatchPlanner
from cardflow.parsers.models import Rows, RowSet, UploadedFile
from cardflow.parsers.normalizer import infer_records_day_first, normalize_record
from cardflow.parsers.source import RowSource
from cardflow.storage.ports import StatementStore
from cardflow.utils.logger import get_logger, set_import_context
from cardflow.utils.exceptions import ParseError, PersistenceError

logger = get_logger()

MODE_AI = "ai"
MODE_ROWS = "rows"


@dataclass
class PendingTransaction:
    """An extracted transaction waiting to be written."""
    transaction: ExtractedTransaction
    tags: List[str] = field(default_factory=list)
    merchant_clean: Optional[str] = None
    raw_data: Optional[str] = None


class ImportOrchestrator:
    """Drives one statement file through the whole import pipeline."""

    def __init__(
        self,
        extraction_client: ExtractionClient,
        store: StatementStore,
        row_source: Optional[RowSource] = None,
        planner: Optional[BatchPlanner] = None,
        classifier: Optional[TransactionClassifier] = None,
        merger: Optional[MetadataMerger] = None,
        aggregator: Optional[Aggregator] = None,
        default_currency: str = DEFAULT_CURRENCY,
        day_first: bool = True,
        clock: Callable[[], date] = date.today,
    ):
        self.extraction_client = extraction_client
        self.store = store
        self.row_source = row_source or RowSource()
        self.planner = planner or BatchPlanner()
        self.classifier = classifier or TransactionClassifier(None)
        self.merger = merger or MetadataMerger()
        self.aggregator = aggregator or Aggregator()
        self.default_currency = default_currency
        self.day_first = day_first
        self.clock = clock

    def run_import(self, upload: UploadedFile, card_name: str = "Default Card", mode: str = MODE_AI) -> ImportResult:
        """
        Import one statement file.

        Args:
            upload: The statement file
            card_name: Card the statement belongs to (created if missing)
            mode: "ai" for batch extraction, "rows" for per-row classification
                  of tabular input

        Returns:
            ImportResult in COMPLETED or FAILED state
        """
        if mode not in (MODE_AI, MODE_ROWS):
            raise ValueError(f"Unknown import mode: {mode}")

        set_import_context(uuid.uuid4().hex[:8])
        builder = ReportBuilder()
        state = ImportState.PENDING
        import_batch_id = None

        try:
            state = self._transition(state, ImportState.PARSING)
            try:
                row_set = self.row_source.extract(upload)
            except ParseError as e:
                logger.error(f"Cannot decode {upload.file_name}: {e}")
                self._transition(state, ImportState.FAILED)
                return ImportResult(state=ImportState.FAILED, report=builder.finalize(), error_message=str(e))

            import_batch_id = self.store.create_import_batch(upload.file_name, upload.content_type, upload.size)

            state = self._transition(state, ImportState.EXTRACTING)
            if mode == MODE_ROWS and not isinstance(row_set, Rows):
                logger.info("Whole documents cannot be classified row by row; using batch extraction")
            if mode == MODE_ROWS and isinstance(row_set, Rows):
                pending = self._classify_rows(row_set, builder)
                merged = StatementMetadata()
            else:
                pending, merged = self._extract_batches(row_set, builder)

            state = self._transition(state, ImportState.PERSISTING)
            result = self._persist(pending, merged, builder, card_name, import_batch_id)

            self._transition(state, ImportState.COMPLETED)
            return result

        except Exception as e:
            logger.exception(f"Import of {upload.file_name} failed during {state.value}: {e}")
            self._transition(state, ImportState.FAILED)
            report = builder.finalize()
            if import_batch_id is not None:
                self._mark_batch_failed(import_batch_id, report, str(e))
            return ImportResult(
                state=ImportState.FAILED,
                report=report,
                import_batch_id=import_batch_id,
                error_message=str(e),
            )
        finally:
            set_import_context(None)

    def _transition(self, current: ImportState, target: ImportState) -> ImportState:
        logger.info(f"Import state: {current.value} -> {target.value}")
        return target

    def _extract_batches(self, row_set: RowSet, builder: ReportBuilder) -> Tuple[List[PendingTransaction], StatementMetadata]:
        """Run every planned batch through the extraction client, in order."""
        batches = self.planner.plan(row_set)
        merged = StatementMetadata()
        pending: List[PendingTransaction] = []

        logger.info(f"Processing {len(batches)} batch(es)")
        for batch in batches:
            label = f"Batch {batch.index + 1}/{len(batches)}"
            outcome = self.extraction_client.extract(batch)

            if isinstance(outcome, ExtractionFailure):
                builder.total_rows += batch.row_count
                builder.record_error(f"{label} failed ({outcome.describe()})", count=batch.row_count)
                continue

            for message in outcome.dropped:
                builder.record_error(f"{label}: {message}")

            if batch.is_document:
                builder.total_rows += outcome.entry_count
            else:
                builder.total_rows += max(batch.row_count, outcome.entry_count)
                builder.skipped_count += max(0, batch.row_count - outcome.entry_count)

            merged = self.merger.merge(merged, outcome.metadata)
            pending.extend(PendingTransaction(txn) for txn in outcome.transactions)

        return pending, merged

    def _classify_rows(self, rows: Rows, builder: ReportBuilder) -> List[PendingTransaction]:
        """Normalize and classify each record on its own."""
        pending: List[PendingTransaction] = []
        builder.total_rows = len(rows.records)
        day_first = infer_records_day_first(rows.records, self.day_first)

        for position, record in enumerate(rows.records, 1):
            raw = json.dumps(dict(record), ensure_ascii=False, default=str)
            row = normalize_record(record, self.default_currency, day_first)
            if not row.merchant or row.amount is None or row.amount == 0 or row.date is None:
                builder.record_error(f"Invalid row {position}: {raw}")
                continue
            if row.amount < 0:
                # Payments and refunds are not debits
                logger.debug(f"Skipping credit row {position}: {row.merchant} {row.amount}")
                builder.skipped_count += 1
                continue

            classification = self.classifier.classify(row.merchant, row.description, row.amount, row.currency, row.date)
            try:
                transaction = ExtractedTransaction.model_validate(
                    {
                        "date": row.date,
                        "merchant": row.merchant,
                        "description": row.description,
                        "amount": row.amount,
                        "currency": row.currency,
                        "category": classification.category,
                        "confidence": classification.confidence,
                        "explanation": classification.explanation,
                    },
                    context={"default_currency": self.default_currency},
                )
            except ValidationError as e:
                builder.record_error(f"Invalid row {position}: {e.error_count()} validation error(s) ({raw})")
                continue

            pending.append(PendingTransaction(
                transaction=transaction,
                tags=classification.tags,
                merchant_clean=classification.merchant_clean,
                raw_data=raw,
            ))

        return pending

    def _persist(
        self,
        pending: List[PendingTransaction],
        merged: StatementMetadata,
        builder: ReportBuilder,
        card_name: str,
        import_batch_id: int,
    ) -> ImportResult:
        """Write card, statement and transactions; each row independently."""
        metadata = self.merger.finalize(merged, [item.transaction.date for item in pending], self.clock())
        statement_id = None
        imported: List[ExtractedTransaction] = []

        if pending:
            currency = pending[0].transaction.currency
            card = self.store.find_or_create_card(card_name, currency)
            if metadata.card_last_four or metadata.card_holder:
                self.store.update_card_details(card.id, metadata.card_last_four, metadata.card_holder)

            statement_id = self.store.create_statement(card.id, import_batch_id, metadata)
            logger.info(
                f"Created statement {statement_id} for {card_name}: "
                f"{metadata.period_start} to {metadata.period_end}, due {metadata.due_date}"
            )

            category_ids = {}
            try:
                for item in pending:
                    txn = item.transaction
                    try:
                        if txn.category not in category_ids:
                            category = self.store.find_category_by_slug(txn.category)
                            category_ids[txn.category] = category.id if category else None
                        self.store.create_transaction(
                            statement_id,
                            import_batch_id,
                            card.id,
                            txn,
                            category_ids[txn.category],
                            tags=item.tags,
                            merchant_clean=item.merchant_clean,
                            raw_data=item.raw_data,
                        )
                    except PersistenceError as e:
                        builder.record_error(f"Failed to save {txn.date} {txn.merchant} {txn.amount}: {e}")
                        logger.warning(f"Failed to save transaction {txn.merchant}: {e}")
                        continue
                    imported.append(txn)
                    builder.imported_count += 1
            except Exception:
                self._mark_statement_failed(statement_id, imported)
                raise

        report = builder.finalize()
        total_amount = metadata.total_amount if metadata.total_amount is not None else self.aggregator.total(imported)

        if statement_id is not None:
            self.store.update_statement_totals(statement_id, total_amount, len(imported), report.status)
        self.store.update_import_batch(
            import_batch_id,
            report.status,
            report.total_rows,
            report.imported_count,
            report.error_count,
            list(report.errors),
        )

        logger.info(
            f"Import finished ({report.status}): {report.imported_count} imported, "
            f"{report.error_count} errors, {report.skipped_count} skipped of {report.total_rows}"
        )

        return ImportResult(
            state=ImportState.COMPLETED,
            report=report,
            statement_id=statement_id,
            import_batch_id=import_batch_id,
            metadata=metadata,
            total_amount=total_amount if statement_id is not None else None,
            transaction_count=len(imported) if statement_id is not None else None,
            category_breakdown=self.aggregator.breakdown(imported) if statement_id is not None else None,
        )

    def _mark_batch_failed(self, import_batch_id: int, report, message: str) -> None:
        try:
            self.store.update_import_batch(
                import_batch_id,
                STATUS_FAILED,
                report.total_rows,
                report.imported_count,
                report.error_count,
                list(report.errors) + [message],
            )
        except PersistenceError as e:
            logger.error(f"Could not mark import batch {import_batch_id} as failed: {e}")

    def _mark_statement_failed(self, statement_id: int, imported: List[ExtractedTransaction]) -> None:
        try:
            self.store.update_statement_totals(statement_id, self.aggregator.total(imported), len(imported), STATUS_FAILED)
        except PersistenceError as e:
            logger.error(f"Could not mark statement {statement_id} as failed: {e}")
