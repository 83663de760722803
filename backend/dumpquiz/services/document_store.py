"""Key-value document store on top of SQLAlchemy.

Items are JSON documents addressed by (partition key, sort key) inside a
named logical table. Like hosted document stores, a single item may not
exceed a byte ceiling; callers that hold large payloads must split them.
"""
import json
import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import ITEM_SIZE_LIMIT_BYTES
from ..models import StoreItem

logger = logging.getLogger(__name__)

ItemFilter = Callable[[dict], bool]


class StoreError(Exception):
    """Base class for document store failures."""


class StoreUnavailableError(StoreError):
    """The backing database could not be reached or refused the operation."""


class ItemTooLargeError(StoreError):
    """An item exceeds the per-item size ceiling."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Item of {size} bytes exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit


def item_size(item: dict) -> int:
    """Size of an item as stored: compact UTF-8 JSON."""
    return len(json.dumps(item, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


class DocumentStore:
    """One logical table of the document store."""

    def __init__(self, db: Session, table: str, max_item_bytes: int = ITEM_SIZE_LIMIT_BYTES):
        self.db = db
        self.table = table
        self.max_item_bytes = max_item_bytes

    def put(self, partition_key: str, sort_key: str, item: dict) -> None:
        """Create or fully replace an item."""
        size = item_size(item)
        if size > self.max_item_bytes:
            raise ItemTooLargeError(size, self.max_item_bytes)

        try:
            row = self.db.get(StoreItem, (self.table, partition_key, sort_key))
            if row:
                row.body = item
            else:
                self.db.add(StoreItem(
                    table_name=self.table,
                    partition_key=partition_key,
                    sort_key=sort_key,
                    body=item,
                ))
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("put", partition_key, sort_key, e)

    def get(self, partition_key: str, sort_key: str) -> Optional[dict]:
        """Fetch an item, or None if it does not exist."""
        try:
            row = self.db.get(StoreItem, (self.table, partition_key, sort_key))
        except SQLAlchemyError as e:
            self._fail("get", partition_key, sort_key, e)
        return dict(row.body) if row else None

    def query(self, partition_key: str, item_filter: Optional[ItemFilter] = None) -> List[dict]:
        """All items of a partition, ordered by sort key, optionally filtered."""
        try:
            rows = self.db.query(StoreItem).filter(
                StoreItem.table_name == self.table,
                StoreItem.partition_key == partition_key,
            ).order_by(StoreItem.sort_key).all()
        except SQLAlchemyError as e:
            self._fail("query", partition_key, None, e)
        items = [dict(r.body) for r in rows]
        if item_filter:
            items = [i for i in items if item_filter(i)]
        return items

    def scan(self, item_filter: Optional[ItemFilter] = None) -> List[dict]:
        """All items of the table across partitions."""
        try:
            rows = self.db.query(StoreItem).filter(
                StoreItem.table_name == self.table
            ).order_by(StoreItem.partition_key, StoreItem.sort_key).all()
        except SQLAlchemyError as e:
            self._fail("scan", None, None, e)
        items = [dict(r.body) for r in rows]
        if item_filter:
            items = [i for i in items if item_filter(i)]
        return items

    def delete(self, partition_key: str, sort_key: str) -> None:
        """Delete an item. Deleting a missing item is a no-op."""
        try:
            row = self.db.get(StoreItem, (self.table, partition_key, sort_key))
            if row:
                self.db.delete(row)
                self.db.commit()
        except SQLAlchemyError as e:
            self._fail("delete", partition_key, sort_key, e)

    def _fail(self, operation: str, partition_key, sort_key, error: Exception):
        self.db.rollback()
        logger.error(f"Store {operation} failed on {self.table} ({partition_key}, {sort_key}): {error}")
        raise StoreUnavailableError(f"Document store {operation} failed") from error


def has_attribute(name: str) -> ItemFilter:
    """Filter keeping items that carry the given attribute."""
    return lambda item: name in item
