"""Local lists storage using SQLite"""

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Dict, Any, Set, Union

from .models import LocalListRecord, LocalListItemRecord

logger = logging.getLogger(__name__)

LISTS_TABLE = "lists"
LIST_ITEMS_TABLE = "list_items"

DEFAULT_BATCH_SIZE = 100


class BatchApplyError(Exception):
    """Raised when a batch of operations could not be applied"""


@dataclass
class InsertOperation:
    """Insert a row, optionally replacing a row with the same primary key"""

    table: str
    values: Dict[str, Any] = field(default_factory=dict)
    replace: bool = False


@dataclass
class UpdateOperation:
    """Update the row identified by key_column = key"""

    table: str
    key_column: str
    key: Any
    values: Dict[str, Any] = field(default_factory=dict)


Operation = Union[InsertOperation, UpdateOperation]


class StateManager:
    """Manages the local lists database"""

    def __init__(self, db_path: str = "hexlists.db"):
        """
        Initialize StateManager with SQLite database

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self._initialize_database()

    def _initialize_database(self) -> None:
        """Initialize SQLite database with schema"""
        try:
            logger.info(f"Initializing database at {self.db_path}")

            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row

            schema_sql = """
            CREATE TABLE IF NOT EXISTS lists (
                list_id TEXT PRIMARY KEY,
                list_name TEXT NOT NULL,
                list_order INTEGER DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS list_items (
                list_item_id TEXT PRIMARY KEY,
                item_ref_id INTEGER NOT NULL,
                item_type INTEGER NOT NULL,
                list_id TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_list_items_list_id ON list_items(list_id);
            CREATE INDEX IF NOT EXISTS idx_list_items_ref ON list_items(item_ref_id, item_type);
            """

            self.conn.executescript(schema_sql)
            self.conn.commit()

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def close(self) -> None:
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Database connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_list_ids(self) -> Optional[Set[str]]:
        """
        Get all list ids in the local database

        Returns:
            Set of list ids (empty if there are no lists), or None if the
            query could not be run
        """
        if self.conn is None:
            logger.error("Failed to query list ids: database is closed")
            return None

        try:
            cursor = self.conn.execute(f"SELECT list_id FROM {LISTS_TABLE}")
            return {row[0] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            logger.error(f"Failed to query list ids: {e}")
            return None

    def _execute_operation(self, cursor: sqlite3.Cursor, operation: Operation) -> None:
        columns = list(operation.values.keys())
        params = [operation.values[c] for c in columns]

        if isinstance(operation, InsertOperation):
            verb = "INSERT OR REPLACE" if operation.replace else "INSERT"
            placeholders = ", ".join("?" for _ in columns)
            cursor.execute(
                f"{verb} INTO {operation.table} ({', '.join(columns)}) VALUES ({placeholders})",
                params
            )
        elif isinstance(operation, UpdateOperation):
            if not columns:
                return
            assignments = ", ".join(f"{c} = ?" for c in columns)
            cursor.execute(
                f"UPDATE {operation.table} SET {assignments} WHERE {operation.key_column} = ?",
                params + [operation.key]
            )
        else:
            raise TypeError(f"Unknown operation type: {type(operation).__name__}")

    def apply_batch(self, operations: List[Operation]) -> None:
        """
        Apply operations in a single transaction

        Args:
            operations: Insert and update operations to apply in order

        Raises:
            BatchApplyError: If any operation fails or a value can not be stored,
                the transaction is rolled back
        """
        if not operations:
            return
        if self.conn is None:
            raise BatchApplyError("Database is closed")

        try:
            with self.conn:
                cursor = self.conn.cursor()
                for operation in operations:
                    self._execute_operation(cursor, operation)
        except (sqlite3.Error, OverflowError, TypeError) as e:
            raise BatchApplyError(f"Failed to apply {len(operations)} operations: {e}") from e

    def apply_in_small_batches(self, operations: List[Operation], batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        """
        Apply operations in chunks of at most batch_size, one transaction each

        Chunks committed before a failing chunk are not rolled back.

        Raises:
            BatchApplyError: If a chunk fails
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        for start in range(0, len(operations), batch_size):
            chunk = operations[start:start + batch_size]
            self.apply_batch(chunk)
            logger.debug(f"Applied operations {start + 1}-{start + len(chunk)} of {len(operations)}")

    def get_lists(self) -> List[LocalListRecord]:
        """Get all local lists ordered by list order, then name"""
        try:
            cursor = self.conn.execute(
                f"SELECT list_id, list_name, list_order FROM {LISTS_TABLE} "
                "ORDER BY list_order, list_name"
            )
            return [
                LocalListRecord(
                    list_id=row['list_id'],
                    name=row['list_name'],
                    order=row['list_order'] or 0
                )
                for row in cursor.fetchall()
            ]
        except Exception as e:
            logger.error(f"Failed to get lists: {e}")
            raise

    def get_list_items(self, list_id: str) -> List[LocalListItemRecord]:
        """Get all items of a local list"""
        try:
            cursor = self.conn.execute(
                f"SELECT list_item_id, item_ref_id, item_type, list_id FROM {LIST_ITEMS_TABLE} "
                "WHERE list_id = ? ORDER BY item_type, item_ref_id",
                (list_id,)
            )
            return [
                LocalListItemRecord(
                    list_item_id=row['list_item_id'],
                    item_ref_id=row['item_ref_id'],
                    item_type=row['item_type'],
                    list_id=row['list_id']
                )
                for row in cursor.fetchall()
            ]
        except Exception as e:
            logger.error(f"Failed to get items of list {list_id}: {e}")
            raise

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get statistics about the local lists

        Returns:
            Dictionary with list and item counts
        """
        try:
            cursor = self.conn.cursor()

            cursor.execute(f"SELECT COUNT(*) as total FROM {LISTS_TABLE}")
            total_lists = cursor.fetchone()['total']

            cursor.execute(f"SELECT COUNT(*) as total FROM {LIST_ITEMS_TABLE}")
            total_items = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT list_id, COUNT(*) as count FROM {LIST_ITEMS_TABLE}
                GROUP BY list_id
            """)
            items_per_list = {row['list_id']: row['count'] for row in cursor.fetchall()}

            return {
                'total_lists': total_lists,
                'total_items': total_items,
                'items_per_list': items_per_list
            }

        except Exception as e:
            logger.error(f"Failed to get statistics: {e}")
            raise
