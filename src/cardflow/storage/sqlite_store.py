"""SQLite statement store."""
import json
import sqlite3
from contextlib import closing
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Tuple

from .models import Card, Category, ImportBatchRecord, StatementRecord, TransactionRecord
from cardflow.llm.categories import load_categories
from cardflow.llm.models import ExtractedTransaction, StatementMetadata
from cardflow.utils.logger import get_logger
from cardflow.utils.exceptions import PersistenceError

logger = get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    issuer TEXT NOT NULL DEFAULT 'Unknown',
    currency TEXT NOT NULL DEFAULT 'USD',
    last_four TEXT,
    holder TEXT,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    color TEXT,
    icon TEXT,
    description TEXT
);
CREATE TABLE IF NOT EXISTS import_batches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    file_name TEXT,
    file_type TEXT,
    file_size INTEGER,
    row_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    imported_count INTEGER NOT NULL DEFAULT 0,
    error_count INTEGER NOT NULL DEFAULT 0,
    errors TEXT,
    created_at TEXT,
    completed_at TEXT
);
CREATE TABLE IF NOT EXISTS statements (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    card_id INTEGER NOT NULL REFERENCES cards(id),
    import_batch_id INTEGER REFERENCES import_batches(id) ON DELETE SET NULL,
    statement_date TEXT NOT NULL,
    due_date TEXT NOT NULL,
    period_start TEXT NOT NULL,
    period_end TEXT NOT NULL,
    total_amount TEXT NOT NULL DEFAULT '0',
    minimum_payment TEXT,
    previous_balance TEXT,
    transaction_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    statement_id INTEGER NOT NULL REFERENCES statements(id) ON DELETE CASCADE,
    import_batch_id INTEGER REFERENCES import_batches(id) ON DELETE SET NULL,
    card_id INTEGER NOT NULL REFERENCES cards(id),
    category_id INTEGER REFERENCES categories(id),
    date TEXT NOT NULL,
    merchant TEXT NOT NULL,
    merchant_clean TEXT,
    description TEXT,
    amount TEXT NOT NULL,
    currency TEXT NOT NULL,
    tags TEXT,
    ai_confidence REAL,
    ai_explanation TEXT,
    ai_processed INTEGER NOT NULL DEFAULT 1,
    raw_data TEXT,
    created_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_transactions_statement ON transactions(statement_id);
CREATE INDEX IF NOT EXISTS idx_statements_card ON statements(card_id);
"""

TRANSACTION_SELECT = """
    SELECT t.*, c.slug AS category_slug, c.name AS category_name
    FROM transactions t LEFT JOIN categories c ON c.id = t.category_id
"""


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SQLiteStatementStore:
    """Stores imported statements in a local SQLite database."""

    def __init__(self, db_path: Path):
        """
        Initialize the store, creating tables and seeding categories.

        Args:
            db_path: Database file (parent directories are created)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self):
        with closing(self._connect()) as conn, conn:
            conn.executescript(SCHEMA)
            for category in load_categories():
                conn.execute(
                    "INSERT OR IGNORE INTO categories (slug, name, color, icon, description) VALUES (?, ?, ?, ?, ?)",
                    (category["slug"], category["name"], category.get("color"), category.get("icon"), category.get("description")),
                )

    def _write(self, sql: str, params: tuple) -> int:
        """Run one write statement and return lastrowid."""
        try:
            with closing(self._connect()) as conn, conn:
                return conn.execute(sql, params).lastrowid
        except sqlite3.Error as e:
            raise PersistenceError(f"Database write failed: {e}")

    def _fetch_one(self, sql: str, params=()) -> Optional[sqlite3.Row]:
        try:
            with closing(self._connect()) as conn:
                return conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database read failed: {e}")

    def _fetch_all(self, sql: str, params=()) -> List[sqlite3.Row]:
        try:
            with closing(self._connect()) as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database read failed: {e}")

    # --- Import pipeline writes -------------------------------------------------

    def find_or_create_card(self, name: str, currency: str = "USD") -> Card:
        row = self._fetch_one("SELECT * FROM cards WHERE name = ?", (name,))
        if row:
            return _row_to_card(row)

        card_id = self._write(
            "INSERT INTO cards (name, issuer, currency, created_at) VALUES (?, 'Unknown', ?, ?)",
            (name, currency, _now()),
        )
        logger.info(f"Created card '{name}' (id {card_id})")
        return Card(id=card_id, name=name, currency=currency)

    def update_card_details(self, card_id: int, last_four: Optional[str], holder: Optional[str]) -> None:
        self._write(
            "UPDATE cards SET last_four = COALESCE(last_four, ?), holder = COALESCE(holder, ?) WHERE id = ?",
            (last_four, holder, card_id),
        )

    def create_import_batch(self, file_name: str, file_type: str, file_size: int) -> int:
        return self._write(
            "INSERT INTO import_batches (file_name, file_type, file_size, status, created_at) "
            "VALUES (?, ?, ?, 'processing', ?)",
            (file_name, file_type, file_size, _now()),
        )

    def create_statement(self, card_id: int, import_batch_id: int, metadata: StatementMetadata, status: str = "processing") -> int:
        return self._write(
            """
            INSERT INTO statements (
                card_id, import_batch_id, statement_date, due_date, period_start, period_end,
                total_amount, minimum_payment, previous_balance, status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                card_id,
                import_batch_id,
                _iso(metadata.statement_date),
                _iso(metadata.due_date),
                _iso(metadata.period_start),
                _iso(metadata.period_end),
                str(metadata.total_amount if metadata.total_amount is not None else Decimal("0")),
                str(metadata.minimum_payment) if metadata.minimum_payment is not None else None,
                str(metadata.previous_balance) if metadata.previous_balance is not None else None,
                status,
                _now(),
            ),
        )

    def find_category_by_slug(self, slug: str) -> Optional[Category]:
        row = self._fetch_one("SELECT * FROM categories WHERE slug = ?", (slug,))
        return _row_to_category(row) if row else None

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
        return self._write(
            """
            INSERT INTO transactions (
                statement_id, import_batch_id, card_id, category_id, date, merchant, merchant_clean,
                description, amount, currency, tags, ai_confidence, ai_explanation, raw_data, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                statement_id,
                import_batch_id,
                card_id,
                category_id,
                transaction.date.isoformat(),
                transaction.merchant,
                merchant_clean or transaction.merchant,
                transaction.description,
                str(transaction.amount),
                transaction.currency,
                ",".join(tags or []),
                transaction.confidence,
                transaction.explanation,
                raw_data,
                _now(),
            ),
        )

    def update_statement_totals(self, statement_id: int, total_amount: Decimal, transaction_count: int, status: str) -> None:
        self._write(
            "UPDATE statements SET total_amount = ?, transaction_count = ?, status = ? WHERE id = ?",
            (str(total_amount), transaction_count, status, statement_id),
        )

    def update_import_batch(
        self,
        batch_id: int,
        status: str,
        row_count: int,
        imported_count: int,
        error_count: int,
        errors: List[str],
    ) -> None:
        self._write(
            """
            UPDATE import_batches
            SET status = ?, row_count = ?, imported_count = ?, error_count = ?, errors = ?, completed_at = ?
            WHERE id = ?
            """,
            (
                status,
                row_count,
                imported_count,
                error_count,
                json.dumps(errors, ensure_ascii=False) if errors else None,
                _now(),
                batch_id,
            ),
        )

    # --- Queries and maintenance ------------------------------------------------

    def get_import_batch(self, batch_id: int) -> Optional[ImportBatchRecord]:
        row = self._fetch_one("SELECT * FROM import_batches WHERE id = ?", (batch_id,))
        if not row:
            return None
        return ImportBatchRecord(
            id=row["id"],
            file_name=row["file_name"],
            file_type=row["file_type"],
            file_size=row["file_size"],
            status=row["status"],
            row_count=row["row_count"],
            imported_count=row["imported_count"],
            error_count=row["error_count"],
            errors=json.loads(row["errors"]) if row["errors"] else [],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
        )

    def list_categories(self) -> List[Category]:
        rows = self._fetch_all("SELECT * FROM categories ORDER BY id")
        return [_row_to_category(row) for row in rows]

    def list_statements(self, card_id: Optional[int] = None, status: Optional[str] = None) -> List[StatementRecord]:
        """Statements newest first, optionally filtered by card and status."""
        sql = "SELECT s.*, c.name AS card_name FROM statements s JOIN cards c ON c.id = s.card_id WHERE 1 = 1"
        params: list = []
        if card_id is not None:
            sql += " AND s.card_id = ?"
            params.append(card_id)
        if status:
            sql += " AND s.status = ?"
            params.append(status)
        sql += " ORDER BY s.statement_date DESC, s.id DESC"

        rows = self._fetch_all(sql, params)
        return [_row_to_statement(row) for row in rows]

    def get_statement(self, statement_id: int) -> Optional[StatementRecord]:
        """Statement with its transactions, newest first."""
        row = self._fetch_one(
            "SELECT s.*, c.name AS card_name FROM statements s JOIN cards c ON c.id = s.card_id WHERE s.id = ?",
            (statement_id,),
        )
        if not row:
            return None
        txn_rows = self._fetch_all(
            TRANSACTION_SELECT + " WHERE t.statement_id = ? ORDER BY t.date DESC, t.id DESC",
            (statement_id,),
        )

        statement = _row_to_statement(row)
        statement.transactions = [_row_to_transaction(txn) for txn in txn_rows]
        return statement

    def delete_statement(self, statement_id: int) -> bool:
        """Delete a statement, its transactions and its import batch."""
        try:
            with closing(self._connect()) as conn, conn:
                row = conn.execute("SELECT import_batch_id FROM statements WHERE id = ?", (statement_id,)).fetchone()
                if not row:
                    return False
                conn.execute("DELETE FROM statements WHERE id = ?", (statement_id,))
                if row["import_batch_id"] is not None:
                    conn.execute("DELETE FROM import_batches WHERE id = ?", (row["import_batch_id"],))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete statement {statement_id}: {e}")

        logger.info(f"Deleted statement {statement_id}")
        return True

    def list_transactions(
        self,
        limit: int = 50,
        offset: int = 0,
        category_slug: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[TransactionRecord], int]:
        """Page through transactions, newest first; returns (page, total matches)."""
        where = " WHERE 1 = 1"
        params: list = []
        if category_slug:
            where += " AND c.slug = ?"
            params.append(category_slug)
        if search:
            where += " AND (t.merchant LIKE ? OR t.merchant_clean LIKE ? OR t.description LIKE ?)"
            pattern = f"%{search}%"
            params.extend([pattern, pattern, pattern])

        total = self._fetch_one(
            "SELECT COUNT(*) FROM transactions t LEFT JOIN categories c ON c.id = t.category_id" + where,
            params,
        )[0]
        rows = self._fetch_all(
            TRANSACTION_SELECT + where + " ORDER BY t.date DESC, t.id DESC LIMIT ? OFFSET ?",
            params + [limit, offset],
        )
        return [_row_to_transaction(row) for row in rows], total

    def update_transaction_category(self, transaction_id: int, category_slug: str, tags: Optional[List[str]] = None) -> bool:
        """Re-categorize a transaction; returns False if it does not exist."""
        category = self.find_category_by_slug(category_slug)
        if category is None:
            raise PersistenceError(f"Unknown category: {category_slug}")

        try:
            with closing(self._connect()) as conn, conn:
                if tags is None:
                    cursor = conn.execute(
                        "UPDATE transactions SET category_id = ? WHERE id = ?", (category.id, transaction_id)
                    )
                else:
                    cursor = conn.execute(
                        "UPDATE transactions SET category_id = ?, tags = ? WHERE id = ?",
                        (category.id, ",".join(tags), transaction_id),
                    )
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update transaction {transaction_id}: {e}")


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        name=row["name"],
        issuer=row["issuer"],
        currency=row["currency"],
        last_four=row["last_four"],
        holder=row["holder"],
    )


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(id=row["id"], slug=row["slug"], name=row["name"], color=row["color"], icon=row["icon"])


def _row_to_statement(row: sqlite3.Row) -> StatementRecord:
    return StatementRecord(
        id=row["id"],
        card_id=row["card_id"],
        card_name=row["card_name"],
        import_batch_id=row["import_batch_id"],
        statement_date=date.fromisoformat(row["statement_date"]),
        due_date=date.fromisoformat(row["due_date"]),
        period_start=date.fromisoformat(row["period_start"]),
        period_end=date.fromisoformat(row["period_end"]),
        total_amount=Decimal(row["total_amount"]),
        transaction_count=row["transaction_count"],
        status=row["status"],
        minimum_payment=_decimal(row["minimum_payment"]),
        previous_balance=_decimal(row["previous_balance"]),
    )


def _row_to_transaction(row: sqlite3.Row) -> TransactionRecord:
    return TransactionRecord(
        id=row["id"],
        statement_id=row["statement_id"],
        date=date.fromisoformat(row["date"]),
        merchant=row["merchant"],
        description=row["description"],
        amount=Decimal(row["amount"]),
        currency=row["currency"],
        category_slug=row["category_slug"],
        category_name=row["category_name"],
        merchant_clean=row["merchant_clean"],
        tags=[tag for tag in (row["tags"] or "").split(",") if tag],
        ai_confidence=row["ai_confidence"],
        ai_explanation=row["ai_explanation"],
    )
