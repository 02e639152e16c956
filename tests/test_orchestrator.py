"""End-to-end tests for the import orchestrator."""
import unittest
import tempfile
import shutil
from datetime import date
from decimal import Decimal
from pathlib import Path

from cardflow.llm.extractor import ExtractionClient
from cardflow.orchestrator.models import ImportState
from cardflow.orchestrator.processor import ImportOrchestrator, MODE_ROWS
from cardflow.parsers.batching import BatchPlanner
from cardflow.parsers.models import UploadedFile
from cardflow.parsers.source import RowSource
from cardflow.storage.sqlite_store import SQLiteStatementStore

from stubs import FixedTextPDFProcessor, FlakyStore, LockedCategoryStore, StubService, csv_bytes, response_json, transaction_entry

TODAY = date(2025, 12, 1)


def csv_upload(count):
    rows = [
        {"Date": f"2025-10-{(i % 28) + 1:02d}", "Description": f"MERCHANT {i}", "Amount": f"{i + 1}.00"}
        for i in range(count)
    ]
    return UploadedFile("statement.csv", "text/csv", csv_bytes(rows))


def entries(count, start=0):
    return [transaction_entry((i % 28) + 1, f"MERCHANT {i}", i + 1) for i in range(start, start + count)]


class BrokenStatementStore(SQLiteStatementStore):
    def create_statement(self, *args, **kwargs):
        raise RuntimeError("disk on fire")


class CrashingWriteStore(SQLiteStatementStore):
    """Raises a non-storage error on the second transaction write."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.writes = 0

    def create_transaction(self, *args, **kwargs):
        self.writes += 1
        if self.writes == 2:
            raise RuntimeError("encoder crashed")
        return super().create_transaction(*args, **kwargs)


class TestImportOrchestrator(unittest.TestCase):
    """Test ImportOrchestrator.run_import."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = Path(tempfile.mkdtemp())
        self.db_path = self.test_dir / "cardflow.db"
        self.store = SQLiteStatementStore(self.db_path)

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def build(self, responses, store=None, batch_size=50, day_first=True):
        self.service = StubService(responses)
        return ImportOrchestrator(
            extraction_client=ExtractionClient(self.service),
            store=store or self.store,
            row_source=RowSource(pdf_processor=FixedTextPDFProcessor("STATEMENT TEXT")),
            planner=BatchPlanner(batch_size),
            day_first=day_first,
            clock=lambda: TODAY,
        )

    def assertBalanced(self, report):
        self.assertEqual(
            report.imported_count + report.error_count + report.skipped_count,
            report.total_rows,
        )

    def test_failed_batch_does_not_stop_import(self):
        """120 rows in batches of 50; the middle batch returns garbage."""
        orchestrator = self.build([response_json(entries(50)), "not json {", response_json(entries(20, 100))])
        result = orchestrator.run_import(csv_upload(120), card_name="Visa Gold")

        self.assertTrue(result.success)
        report = result.report
        self.assertEqual(report.total_rows, 120)
        self.assertEqual(report.imported_count, 70)
        self.assertEqual(report.error_count, 50)
        self.assertEqual(report.status, "completed")
        self.assertBalanced(report)
        self.assertEqual(len(self.service.prompts), 3)
        self.assertIn("Batch 2/3 failed", report.errors[0])
        self.assertIn("malformed_json", report.errors[0])

        statement = self.store.get_statement(result.statement_id)
        self.assertEqual(statement.transaction_count, 70)
        self.assertEqual(len(statement.transactions), 70)
        self.assertEqual(statement.status, "completed")

        batch = self.store.get_import_batch(result.import_batch_id)
        self.assertEqual((batch.row_count, batch.imported_count, batch.error_count), (120, 70, 50))

    def test_skipped_rows_and_dropped_entries(self):
        """Rows the service leaves out are skipped; invalid entries are errors."""
        response = response_json(entries(3) + [{"date": "bad", "merchant": "X", "amount": 1}])
        result = self.build([response]).run_import(csv_upload(6))

        report = result.report
        self.assertEqual(report.total_rows, 6)
        self.assertEqual(report.imported_count, 3)
        self.assertEqual(report.error_count, 1)
        self.assertEqual(report.skipped_count, 2)
        self.assertBalanced(report)

    def test_statement_metadata_and_totals(self):
        statement = {"statementDate": "2025-10-23", "minimumPayment": "35.00", "cardNumber": "**** 4321"}
        responses = [
            response_json(entries(2), statement={"totalAmount": 999}),
            response_json(entries(2, 2), statement=statement),
        ]
        result = self.build(responses, batch_size=2).run_import(csv_upload(4), card_name="Visa Gold")

        self.assertEqual(result.metadata.statement_date, date(2025, 10, 23))
        self.assertEqual(result.metadata.due_date, date(2025, 11, 7))
        self.assertEqual(result.metadata.period_start, date(2025, 10, 1))
        self.assertEqual(result.metadata.period_end, date(2025, 10, 4))
        self.assertEqual(result.total_amount, Decimal("999"))
        self.assertEqual(result.transaction_count, 4)
        self.assertEqual(result.category_breakdown["food"].count, 4)

        card = self.store.find_or_create_card("Visa Gold")
        self.assertEqual(card.last_four, "4321")

        output = result.to_dict()
        self.assertEqual(output["period"], {"start": "2025-10-01", "end": "2025-10-04"})
        self.assertEqual(output["totalAmount"], "999")
        self.assertEqual(output["categoryBreakdown"]["food"], {"count": 4, "total": "10"})

    def test_total_summed_without_metadata(self):
        result = self.build([response_json(entries(3))]).run_import(csv_upload(3))
        self.assertEqual(result.total_amount, Decimal("6"))

    def test_all_batches_fail(self):
        """Every row failing gives status error and no statement."""
        orchestrator = self.build(["<html>502</html>", "<html>502</html>"])
        result = orchestrator.run_import(csv_upload(60))

        self.assertTrue(result.success)
        self.assertEqual(result.report.error_count, 60)
        self.assertEqual(result.report.total_rows, 60)
        self.assertEqual(result.report.status, "error")
        self.assertIsNone(result.statement_id)
        self.assertEqual(self.store.list_statements(), [])
        self.assertEqual(self.store.get_import_batch(result.import_batch_id).status, "error")

    def test_persistence_failure_is_per_row(self):
        store = FlakyStore(self.db_path, failing_merchants={"MERCHANT 1"})
        result = self.build([response_json(entries(3))], store=store).run_import(csv_upload(3))

        report = result.report
        self.assertEqual(report.imported_count, 2)
        self.assertEqual(report.error_count, 1)
        self.assertIn("MERCHANT 1", report.errors[0])
        self.assertBalanced(report)
        self.assertEqual(self.store.get_statement(result.statement_id).transaction_count, 2)

    def test_document_input(self):
        """A PDF is sent once, whole, and counted by returned entries."""
        statement = {"periodStart": "2025-09-24", "periodEnd": "2025-10-23"}
        upload = UploadedFile("statement.pdf", "application/pdf", b"%PDF-1.4 fake")
        result = self.build([response_json(entries(4), statement=statement)]).run_import(upload)

        self.assertEqual(len(self.service.prompts), 1)
        self.assertEqual(self.service.documents[0].file_name, "statement.pdf")
        self.assertEqual(result.report.total_rows, 4)
        self.assertEqual(result.report.imported_count, 4)
        self.assertEqual(result.metadata.period_start, date(2025, 9, 24))
        self.assertEqual(result.metadata.statement_date, date(2025, 10, 23))

    def test_document_failure_counts_one(self):
        upload = UploadedFile("statement.pdf", "application/pdf", b"%PDF-1.4 fake")
        result = self.build(['{"statement": {}}']).run_import(upload)

        self.assertEqual(result.report.total_rows, 1)
        self.assertEqual(result.report.error_count, 1)
        self.assertEqual(result.report.status, "error")

    def test_unsupported_format(self):
        """Undecodable input fails before anything is written."""
        result = self.build([]).run_import(UploadedFile("notes.txt", "text/plain", b"hello"))

        self.assertFalse(result.success)
        self.assertEqual(result.state, ImportState.FAILED)
        self.assertEqual(result.report.total_rows, 0)
        self.assertIsNone(result.import_batch_id)
        self.assertEqual(self.service.prompts, [])
        self.assertEqual(result.to_dict()["error"], "Failed to import file")

    def test_unexpected_error_fails_import(self):
        store = BrokenStatementStore(self.db_path)
        result = self.build([response_json(entries(2))], store=store).run_import(csv_upload(2))

        self.assertEqual(result.state, ImportState.FAILED)
        self.assertIn("disk on fire", result.error_message)
        batch = self.store.get_import_batch(result.import_batch_id)
        self.assertEqual(batch.status, "failed")
        self.assertIn("disk on fire", batch.errors[-1])

    def test_rows_mode_classifies_each_row(self):
        rows = [
            {"Date": "2025-10-01", "Description": "UBER TRIP", "Amount": "12.50"},
            {"Date": "2025-10-02", "Description": "NETFLIX.COM", "Amount": "15.99"},
            {"Date": "2025-10-03", "Description": "REFUND", "Amount": "n/a"},
        ]
        upload = UploadedFile("statement.csv", "text/csv", csv_bytes(rows))
        result = self.build([]).run_import(upload, mode=MODE_ROWS)

        report = result.report
        self.assertEqual(report.total_rows, 3)
        self.assertEqual(report.imported_count, 2)
        self.assertEqual(report.error_count, 1)
        self.assertIn("Invalid row 3", report.errors[0])

        txns = self.store.get_statement(result.statement_id).transactions
        self.assertEqual({t.merchant: t.category_slug for t in txns}, {"UBER TRIP": "transport", "NETFLIX.COM": "subscriptions"})
        self.assertEqual(self.service.prompts, [])

    def test_category_lookup_failure_is_per_row(self):
        """A locked database during one category lookup costs only that row."""
        store = LockedCategoryStore(self.db_path, locked_slugs={"transport"})
        response = response_json([
            transaction_entry(1, "MERCHANT 0", 1),
            transaction_entry(2, "MERCHANT 1", 2, category="transport"),
        ])
        result = self.build([response], store=store).run_import(csv_upload(2))

        self.assertEqual(result.state, ImportState.COMPLETED)
        report = result.report
        self.assertEqual(report.imported_count, 1)
        self.assertEqual(report.error_count, 1)
        self.assertIn("MERCHANT 1", report.errors[0])
        self.assertIn("database is locked", report.errors[0])
        self.assertBalanced(report)

        statement = self.store.get_statement(result.statement_id)
        self.assertEqual(statement.status, "completed")
        self.assertEqual(statement.transaction_count, 1)

    def test_unexpected_row_error_marks_statement_failed(self):
        store = CrashingWriteStore(self.db_path)
        result = self.build([response_json(entries(3))], store=store).run_import(csv_upload(3))

        self.assertEqual(result.state, ImportState.FAILED)
        self.assertIn("encoder crashed", result.error_message)

        statements = self.store.list_statements()
        self.assertEqual(len(statements), 1)
        self.assertEqual(statements[0].status, "failed")
        self.assertEqual(statements[0].transaction_count, 1)
        self.assertEqual(self.store.get_import_batch(result.import_batch_id).status, "failed")

    def test_rows_mode_skips_credits(self):
        """Payments and refunds are not imported as debits."""
        rows = [
            {"Date": "2025-10-01", "Description": "UBER TRIP", "Amount": "12.50"},
            {"Date": "2025-10-02", "Description": "PAYMENT THANK YOU", "Amount": "-500.00"},
        ]
        upload = UploadedFile("statement.csv", "text/csv", csv_bytes(rows))
        result = self.build([]).run_import(upload, mode=MODE_ROWS)

        report = result.report
        self.assertEqual(report.total_rows, 2)
        self.assertEqual(report.imported_count, 1)
        self.assertEqual(report.skipped_count, 1)
        self.assertEqual(report.error_count, 0)
        self.assertBalanced(report)
        self.assertEqual(result.total_amount, Decimal("12.50"))

        txns = self.store.get_statement(result.statement_id).transactions
        self.assertEqual([t.merchant for t in txns], ["UBER TRIP"])

    def test_rows_mode_reads_month_first_file(self):
        """A day above 12 in the second position marks the file month-first."""
        rows = [
            {"Date": "10/24/2025", "Description": "UBER TRIP", "Amount": "12.50"},
            {"Date": "10/05/2025", "Description": "NETFLIX.COM", "Amount": "15.99"},
        ]
        upload = UploadedFile("statement.csv", "text/csv", csv_bytes(rows))
        result = self.build([]).run_import(upload, mode=MODE_ROWS)

        self.assertEqual(result.report.imported_count, 2)
        txns = self.store.get_statement(result.statement_id).transactions
        self.assertEqual(
            {t.merchant: t.date for t in txns},
            {"UBER TRIP": date(2025, 10, 24), "NETFLIX.COM": date(2025, 10, 5)},
        )

    def test_rows_mode_reads_day_first_file(self):
        rows = [
            {"Date": "24/10/2025", "Description": "UBER TRIP", "Amount": "12.50"},
            {"Date": "05/10/2025", "Description": "NETFLIX.COM", "Amount": "15.99"},
        ]
        upload = UploadedFile("statement.csv", "text/csv", csv_bytes(rows))
        result = self.build([], day_first=False).run_import(upload, mode=MODE_ROWS)

        txns = self.store.get_statement(result.statement_id).transactions
        self.assertEqual(
            {t.merchant: t.date for t in txns},
            {"UBER TRIP": date(2025, 10, 24), "NETFLIX.COM": date(2025, 10, 5)},
        )

    def test_rows_mode_ambiguous_dates_follow_configured_order(self):
        rows = [{"Date": "05/10/2025", "Description": "UBER TRIP", "Amount": "12.50"}]
        upload = UploadedFile("statement.csv", "text/csv", csv_bytes(rows))

        result = self.build([], day_first=False).run_import(upload, mode=MODE_ROWS)
        txn = self.store.get_statement(result.statement_id).transactions[0]
        self.assertEqual(txn.date, date(2025, 5, 10))

        result = self.build([]).run_import(upload, mode=MODE_ROWS)
        txn = self.store.get_statement(result.statement_id).transactions[0]
        self.assertEqual(txn.date, date(2025, 10, 5))


if __name__ == "__main__":
    unittest.main()
