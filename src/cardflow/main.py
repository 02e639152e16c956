"""Command-line entry point."""
import sys
import json
import argparse
from pathlib import Path
from typing import List

from cardflow.config.settings import AppSettings
from cardflow.gemini.service import GeminiService
from cardflow.llm.classifier import TransactionClassifier
from cardflow.llm.extractor import ExtractionClient
from cardflow.orchestrator.processor import ImportOrchestrator, MODE_AI, MODE_ROWS
from cardflow.parsers.batching import BatchPlanner
from cardflow.parsers.models import UploadedFile
from cardflow.storage.models import StatementRecord, TransactionRecord
from cardflow.storage.sqlite_store import SQLiteStatementStore
from cardflow.utils.logger import get_logger
from cardflow.utils.exceptions import CardFlowError

logger = get_logger()


def _load_settings() -> AppSettings:
    """Load configuration, exiting on problems."""
    try:
        settings = AppSettings.load()
    except CardFlowError as e:
        logger.critical(str(e))
        sys.exit(1)
    logger.setLevel(settings.log_level.upper())
    return settings


def _build_orchestrator(settings: AppSettings, store: SQLiteStatementStore, batch_size: int) -> ImportOrchestrator:
    is_valid, message = settings.validate()
    if not is_valid:
        logger.critical(f"Invalid configuration: {message}")
        sys.exit(1)

    service = GeminiService(
        api_key=settings.gemini_api_key,
        model_name=settings.llm_model_name,
        timeout_seconds=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
        backoff_factor=settings.llm_backoff_factor,
    )
    return ImportOrchestrator(
        extraction_client=ExtractionClient(
            service,
            default_currency=settings.default_currency,
            send_pdf_as_text=settings.llm_send_pdf_as_text,
        ),
        store=store,
        planner=BatchPlanner(batch_size),
        classifier=TransactionClassifier(service),
        default_currency=settings.default_currency,
        day_first=settings.day_first,
    )


def import_command(args, settings: AppSettings, store: SQLiteStatementStore) -> int:
    """Import a statement file and print the report."""
    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {path}")
        return 1

    batch_size = settings.batch_size if args.batch_size is None else args.batch_size
    orchestrator = _build_orchestrator(settings, store, batch_size)
    result = orchestrator.run_import(
        UploadedFile.from_path(path),
        card_name=args.card or settings.default_card_name,
        mode=args.mode,
    )

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    if args.verbose and result.report.errors:
        print("\nErrors:")
        for message in result.report.errors:
            print(f"  - {message}")
    return 0 if result.success else 1


def statements_command(args, store: SQLiteStatementStore) -> int:
    statements = store.list_statements(card_id=args.card_id, status=args.status)
    if not statements:
        print("No statements found.")
        return 0
    _print_statement_table(statements)
    return 0


def statement_command(args, store: SQLiteStatementStore) -> int:
    statement = store.get_statement(args.id)
    if statement is None:
        print(f"Statement {args.id} not found.")
        return 1

    print(f"\nStatement #{statement.id} - {statement.card_name}")
    print(f"Period:    {statement.period_start} to {statement.period_end}")
    print(f"Closed on: {statement.statement_date}   Due: {statement.due_date}")
    print(f"Total:     {statement.total_amount} ({statement.transaction_count} transactions)")
    if statement.minimum_payment is not None:
        print(f"Minimum:   {statement.minimum_payment}")
    _print_transaction_table(statement.transactions)
    return 0


def delete_statement_command(args, store: SQLiteStatementStore) -> int:
    if store.delete_statement(args.id):
        print(f"✓ Deleted statement {args.id}")
        return 0
    print(f"Statement {args.id} not found.")
    return 1


def transactions_command(args, store: SQLiteStatementStore) -> int:
    transactions, total = store.list_transactions(
        limit=args.limit,
        offset=args.offset,
        category_slug=args.category,
        search=args.search,
    )
    print(f"\nShowing {len(transactions)} of {total} transactions")
    _print_transaction_table(transactions)
    return 0


def categorize_command(args, store: SQLiteStatementStore) -> int:
    tags = args.tags.split(",") if args.tags else None
    if store.update_transaction_category(args.id, args.category, tags):
        print(f"✓ Transaction {args.id} moved to {args.category}")
        return 0
    print(f"Transaction {args.id} not found.")
    return 1


def _print_statement_table(statements: List[StatementRecord]) -> None:
    print(f"\nTotal: {len(statements)} statements")
    print(f"{'ID':<6} {'Card':<20} {'Period':<25} {'Due':<12} {'Total':>12} {'Txns':>6} {'Status':<10}")
    print("-" * 96)
    for s in statements:
        period = f"{s.period_start} - {s.period_end}"
        print(
            f"{s.id:<6} {s.card_name[:20]:<20} {period:<25} {str(s.due_date):<12} "
            f"{str(s.total_amount):>12} {s.transaction_count:>6} {s.status:<10}"
        )


def _print_transaction_table(transactions: List[TransactionRecord]) -> None:
    if not transactions:
        print("No transactions.")
        return
    print(f"\n{'ID':<6} {'Date':<12} {'Merchant':<30} {'Amount':>12} {'Cur':<4} {'Category':<14}")
    print("-" * 82)
    for t in transactions:
        print(
            f"{t.id:<6} {str(t.date):<12} {t.merchant[:30]:<30} {str(t.amount):>12} "
            f"{t.currency:<4} {(t.category_slug or '-'):<14}"
        )


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CardFlow credit card statement importer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_import = subparsers.add_parser("import", help="Import a CSV, XLSX or PDF statement")
    p_import.add_argument("file", help="Statement file")
    p_import.add_argument("--card", help="Card name (default from config)")
    p_import.add_argument("--mode", choices=[MODE_AI, MODE_ROWS], default=MODE_AI,
                          help="ai: batch extraction (default); rows: classify each row")
    p_import.add_argument("--batch-size", type=positive_int, help="Rows per extraction batch")
    p_import.add_argument("-v", "--verbose", action="store_true", help="Print every error")

    p_statements = subparsers.add_parser("statements", help="List statements")
    p_statements.add_argument("--card-id", type=int)
    p_statements.add_argument("--status")

    p_statement = subparsers.add_parser("statement", help="Show one statement")
    p_statement.add_argument("id", type=int)

    p_delete = subparsers.add_parser("delete-statement", help="Delete a statement and its transactions")
    p_delete.add_argument("id", type=int)

    p_txns = subparsers.add_parser("transactions", help="List transactions")
    p_txns.add_argument("--search")
    p_txns.add_argument("--category")
    p_txns.add_argument("--limit", type=int, default=50)
    p_txns.add_argument("--offset", type=int, default=0)

    p_cat = subparsers.add_parser("categorize", help="Change a transaction's category")
    p_cat.add_argument("id", type=int)
    p_cat.add_argument("category", help="Category slug")
    p_cat.add_argument("--tags", help="Comma-separated tags")

    return parser


def main(argv=None):
    """Main entry point for the CardFlow CLI."""
    args = build_parser().parse_args(argv)
    settings = _load_settings()

    try:
        store = SQLiteStatementStore(Path(settings.database_file))

        if args.command == "import":
            code = import_command(args, settings, store)
        elif args.command == "statements":
            code = statements_command(args, store)
        elif args.command == "statement":
            code = statement_command(args, store)
        elif args.command == "delete-statement":
            code = delete_statement_command(args, store)
        elif args.command == "transactions":
            code = transactions_command(args, store)
        else:
            code = categorize_command(args, store)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        code = 130
    except CardFlowError as e:
        logger.critical(f"Fatal error: {e}")
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
