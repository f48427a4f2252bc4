"""
Transactional document store.

A small Firestore-style API over the documents table:

    store.get(path)                     -> dict | None
    store.query(collection, filters, order_by, limit) -> list[dict]
    store.atomic(body)                  -> whatever body returns

Documents are returned as plain dicts with their id under
"id". Inside atomic(), `body(txn)` reads through txn.get()
and buffers writes with txn.set/update/delete. Nothing is
written until the body returns; then every document the body
read is checked against its current version and the writes
are flushed with versioned UPDATEs against the instances that
were read. Documents that were read but not written are checked
a second time after the first flush, once the database write
lock is held. If anything changed in between, the attempt is
thrown away and body runs again on a fresh snapshot.

Because body may run several times, it must only touch the
store through txn. Do not log from it, and do not mutate
outer variables that are read after atomic() returns; return
values instead.
"""
from __future__ import annotations

import copy
import operator
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fincontrol.config import get_settings
from fincontrol.errors import NotFoundError, TransactionAborted
from fincontrol.models.document import Document

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class _ServerTimestamp:
    """Placeholder resolved to the commit time when a write is flushed."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def server_timestamp() -> _ServerTimestamp:
    return SERVER_TIMESTAMP


class TransactionConflict(Exception):
    """A document read or written by the attempt changed underneath it."""


_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
}


def split_path(path: str) -> tuple[str, str]:
    """Return (collection, doc_id) for a document path."""
    collection, _, doc_id = path.rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"Invalid document path '{path}'")
    return collection, doc_id


def _snapshot(doc: Document | None) -> dict | None:
    if doc is None:
        return None
    data = copy.deepcopy(doc.data)
    data["id"] = doc.doc_id
    return data


def _resolve(data: dict, now: str) -> dict:
    resolved = {}
    for key, value in data.items():
        if key == "id":
            continue
        if value is SERVER_TIMESTAMP:
            value = now
        elif isinstance(value, dict):
            value = _resolve(value, now)
        resolved[key] = value
    return resolved


def _matches(data: dict, filters) -> bool:
    for field, op, expected in filters:
        value = data.get(field)
        if op not in ("==", "!=", "in") and value is None:
            return False
        try:
            if not _OPERATORS[op](value, expected):
                return False
        except TypeError:
            return False
    return True


def _sort_key(value):
    # None sorts first and never gets compared against a value
    return (0, 0) if value is None else (1, value)


class DocumentTransaction:
    """Handle passed to an atomic body. Reads first, then writes."""

    def __init__(self, session: Session):
        self._session = session
        self._reads: dict[str, int | None] = {}
        # Strong references keep the identity map from dropping the
        # instances, so flushed UPDATEs carry the version that was read.
        self._docs: dict[str, Document | None] = {}
        self._writes: list[tuple[str, str, dict | None]] = []

    def get(self, path: str) -> dict | None:
        if self._writes:
            raise RuntimeError("All reads must happen before writes")
        doc = self._session.get(Document, path)
        self._docs[path] = doc
        self._reads[path] = doc.version if doc is not None else None
        return _snapshot(doc)

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self._writes.append(("merge" if merge else "set", path, data))

    def update(self, path: str, fields: dict) -> None:
        self._writes.append(("update", path, fields))

    def delete(self, path: str) -> None:
        self._writes.append(("delete", path, None))

    def commit(self) -> None:
        self._check_reads()
        if not self._writes:
            self._session.rollback()
            return
        written = self._flush_writes()
        # The first flushed statement holds the database write lock, so
        # a version seen now cannot change before the commit below.
        self._check_reads(exclude=written, lock=True)
        self._session.commit()

    def _check_reads(self, exclude=(), lock: bool = False) -> None:
        for path, version in self._reads.items():
            if path in exclude:
                continue
            stmt = select(Document.version).where(Document.path == path)
            if lock:
                stmt = stmt.with_for_update()
            current = self._session.execute(stmt).scalar_one_or_none()
            if current != version:
                raise TransactionConflict(path)

    def _flush_writes(self) -> set[str]:
        now = datetime.now(timezone.utc).isoformat()
        for kind, path, data in self._writes:
            if path in self._docs:
                doc = self._docs[path]
            else:
                doc = self._session.get(Document, path)
            if kind == "delete":
                if doc is not None:
                    self._session.delete(doc)
                self._docs[path] = None
                self._session.flush()
                continue

            fields = _resolve(data, now)
            if doc is None:
                if kind == "update":
                    raise NotFoundError(f"Document {path} not found")
                collection, doc_id = split_path(path)
                doc = Document(
                    path=path,
                    collection=collection,
                    doc_id=doc_id,
                    data=fields,
                )
                self._session.add(doc)
            elif kind == "set":
                doc.data = fields
            else:
                doc.data = {**doc.data, **fields}
            self._docs[path] = doc
            # Later writes to the same path must see this one
            self._session.flush()
        return {path for _, path, _ in self._writes}


class DocumentStore:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_attempts: int | None = None,
    ):
        self.session_factory = session_factory
        self.max_attempts = (
            max_attempts or get_settings().TRANSACTION_MAX_ATTEMPTS
        )

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def get(self, path: str) -> dict | None:
        with self.session_factory() as session:
            return _snapshot(session.get(Document, path))

    def query(
        self,
        collection: str,
        filters: list[tuple[str, str, Any]] | None = None,
        order_by: list[tuple[str, str]] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """
        Return documents of one collection matching every filter.

        Filters are (field, op, value) with op in ==, !=, <, <=,
        >, >=, in. order_by is a list of (field, "asc"|"desc").
        Per-user collections are small, so filtering happens on
        the loaded rows.
        """
        with self.session_factory() as session:
            rows = session.execute(
                select(Document).where(Document.collection == collection)
            ).scalars().all()
            docs = [_snapshot(row) for row in rows]

        docs = [d for d in docs if _matches(d, filters or [])]
        for field, direction in reversed(order_by or []):
            docs.sort(
                key=lambda d: _sort_key(d.get(field)),
                reverse=direction == "desc",
            )
        if limit is not None:
            docs = docs[:limit]
        return docs

    def atomic(self, body: Callable[[DocumentTransaction], T]) -> T:
        """
        Run body inside an optimistic multi-document transaction.

        body may be invoked more than once; see the module
        docstring. Domain errors raised by body abort the attempt
        with nothing written and propagate unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            session = self.session_factory()
            try:
                txn = DocumentTransaction(session)
                result = body(txn)
                try:
                    txn.commit()
                except (StaleDataError, IntegrityError) as e:
                    raise TransactionConflict(str(e)) from e
                return result
            except TransactionConflict as e:
                session.rollback()
                logger.debug("atomic_conflict", attempt=attempt, detail=str(e))
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        logger.warning("atomic_aborted", attempts=self.max_attempts)
        raise TransactionAborted(
            f"Gave up after {self.max_attempts} conflicting attempts"
        )
