# driver_onboarding/store.py
"""
Document store on top of SQLAlchemy.

Records are JSON documents addressed by slash-separated paths
("drivers/{uid}", "drivers/{uid}/documents/{TYPE}", "plates/{PLATE}").
Plain writes are merge-upserts. Multi-record atomicity goes through
run_transaction(): the attempt function reads, then buffers writes; on
commit every touched path is compared against the version it was read at.
A version mismatch rolls back and re-runs the attempt with backoff.
"""
from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .models.record import StoredRecord
from .services.exceptions import StaleRecordError, TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SET = "set"
_DELETE = "delete"


def split_path(path: str) -> Tuple[str, str]:
    parts = str(path or "").strip("/").split("/")
    if len(parts) < 2 or len(parts) % 2 or any(not p.strip() for p in parts):
        raise ValueError(f"Invalid record path: {path!r}")
    return "/".join(parts[:-1]), parts[-1]


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def locked_version_query(path: str):
    """Version of a record, share-locked until commit where the database supports it."""
    return (
        select(StoredRecord.version)
        .where(StoredRecord.path == path)
        .with_for_update(read=True)
    )


class Transaction:
    """Handed to a transaction attempt. Reads first, then writes."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self.reads: Dict[str, Optional[int]] = {}
        self.read_data: Dict[str, Optional[Dict[str, Any]]] = {}
        self.writes: List[Tuple[str, str, Optional[Dict[str, Any]], bool]] = []

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        if self.writes:
            raise RuntimeError("Transaction reads must happen before writes.")
        split_path(path)
        if path not in self.reads:
            row = self._session.execute(
                select(StoredRecord.version, StoredRecord.data).where(StoredRecord.path == path)
            ).one_or_none()
            self.reads[path] = row.version if row else None
            self.read_data[path] = dict(row.data or {}) if row else None
        data = self.read_data[path]
        return copy.deepcopy(data) if data is not None else None

    def set(self, path: str, data: Dict[str, Any], merge: bool = True) -> None:
        split_path(path)
        self.writes.append((_SET, path, copy.deepcopy(data), merge))

    def delete(self, path: str) -> None:
        split_path(path)
        self.writes.append((_DELETE, path, None, False))


class WriteBatch:
    """Writes collected by DocumentStore.batch() and committed together."""

    def __init__(self) -> None:
        self.ops: List[Tuple[str, str, Optional[Dict[str, Any]], bool]] = []

    def set(self, path: str, data: Dict[str, Any], merge: bool = True) -> None:
        split_path(path)
        self.ops.append((_SET, path, copy.deepcopy(data), merge))

    def delete(self, path: str) -> None:
        split_path(path)
        self.ops.append((_DELETE, path, None, False))


class DocumentStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        max_attempts: int = 5,
        backoff_sec: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session_factory = session_factory
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_sec = max(0.0, float(backoff_sec))
        self._sleep = sleep

    # ---------- reads ----------

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        split_path(path)
        with self._session_factory() as session:
            data = session.execute(
                select(StoredRecord.data).where(StoredRecord.path == path)
            ).scalar_one_or_none()
        return dict(data) if data is not None else None

    def list_collection(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        collection = str(collection or "").strip("/")
        with self._session_factory() as session:
            rows = session.execute(
                select(StoredRecord.doc_id, StoredRecord.data)
                .where(StoredRecord.collection == collection)
                .order_by(StoredRecord.doc_id)
            ).all()
        return [(r.doc_id, dict(r.data or {})) for r in rows]

    # ---------- writes ----------

    def set(self, path: str, data: Dict[str, Any], merge: bool = True) -> None:
        with self.batch() as b:
            b.set(path, data, merge=merge)

    def delete(self, path: str) -> None:
        with self.batch() as b:
            b.delete(path)

    @contextmanager
    def batch(self) -> Iterator[WriteBatch]:
        b = WriteBatch()
        yield b
        if not b.ops:
            return

        def replay(tx: Transaction) -> None:
            for op, path, data, merge in b.ops:
                if op == _DELETE:
                    tx.delete(path)
                else:
                    tx.set(path, data, merge=merge)

        self.run_transaction(replay)

    def run_transaction(self, attempt: Callable[[Transaction], T]) -> T:
        """
        Run attempt(tx) and commit its buffered writes atomically.
        Exceptions from attempt propagate and nothing is written.
        """
        for n in range(1, self.max_attempts + 1):
            with self._session_factory() as session:
                tx = Transaction(session)
                result = attempt(tx)
                try:
                    self._commit(session, tx)
                    session.commit()
                except StaleRecordError as e:
                    session.rollback()
                    if n >= self.max_attempts:
                        logger.warning("transaction gave up after %s attempts: %s", n, e)
                        raise TransactionConflictError(
                            "The record was changed by someone else. Please try again."
                        ) from e
                    delay = self.backoff_sec * (2 ** (n - 1))
                    logger.warning("transaction conflict on attempt %s (%s), retrying in %.3fs", n, e.path, delay)
                    self._sleep(delay)
                    continue
                except Exception:
                    session.rollback()
                    raise
                return result
        raise AssertionError("unreachable")

    # ---------- commit ----------

    def _commit(self, session: Session, tx: Transaction) -> None:
        written = {path for _, path, _, _ in tx.writes}

        # paths that were only read must still be at the version we saw,
        # and stay there until commit
        for path, version in tx.reads.items():
            if path in written:
                continue
            current = session.execute(locked_version_query(path)).scalar_one_or_none()
            if current != version:
                raise StaleRecordError(path)

        # fold the writes per path, in first-write order
        final: Dict[str, Tuple[Optional[int], Optional[Dict[str, Any]]]] = {}
        for op, path, data, merge in tx.writes:
            if path in final:
                expected, current = final[path]
            elif path in tx.reads:
                expected, current = tx.reads[path], tx.read_data[path]
            else:
                row = session.execute(
                    select(StoredRecord.version, StoredRecord.data).where(StoredRecord.path == path)
                ).one_or_none()
                expected = row.version if row else None
                current = dict(row.data or {}) if row else None

            if op == _DELETE:
                final[path] = (expected, None)
            elif merge and current is not None:
                final[path] = (expected, deep_merge(current, data))
            else:
                final[path] = (expected, data)

        for path, (expected, data) in final.items():
            self._write_row(session, path, expected, data)

    def _write_row(self, session: Session, path: str, expected: Optional[int], data: Optional[Dict[str, Any]]) -> None:
        if data is None:
            if expected is None:
                current = session.execute(
                    select(StoredRecord.version).where(StoredRecord.path == path)
                ).scalar_one_or_none()
                if current is not None:
                    raise StaleRecordError(path)
                return
            res = session.execute(
                delete(StoredRecord)
                .where(StoredRecord.path == path, StoredRecord.version == expected)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise StaleRecordError(path)
            return

        if expected is None:
            collection, doc_id = split_path(path)
            # a concurrent insert of the same path fails on the primary key
            try:
                session.execute(
                    insert(StoredRecord).values(
                        path=path, collection=collection, doc_id=doc_id, data=data, version=1,
                    )
                )
            except IntegrityError as e:
                raise StaleRecordError(path) from e
            return

        res = session.execute(
            update(StoredRecord)
            .where(StoredRecord.path == path, StoredRecord.version == expected)
            .values(data=data, version=expected + 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise StaleRecordError(path)
