"""
SQLAlchemy-backed document store for running the service outside Firebase.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend.store import (
    ObservableStore,
    QueryFilter,
    StoreError,
    StoredDocument,
    WriteBatch,
    apply_write,
    collect_changes,
    is_document_path,
    parent_collection,
    run_query,
)


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


class SqlDocumentStore(ObservableStore):
    """
    Stores each document as a JSON row keyed by its full path. Accepts any
    SQLAlchemy URL (e.g., Postgres or SQLite for tests). A batch is applied in
    a single database transaction.

    Timestamps are stored as ISO-8601 strings.
    """

    def __init__(self, database_url: str):
        super().__init__()
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, path: str) -> StoredDocument:
        path = path.strip("/")
        try:
            with self.Session() as session:
                row = session.get(DocumentRow, path)
                return StoredDocument(path=path, data=dict(row.data) if row else None)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
    ) -> List[StoredDocument]:
        collection_path = collection_path.strip("/")
        stmt = select(DocumentRow).where(DocumentRow.collection == collection_path)
        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
                documents = [
                    StoredDocument(path=row.path, data=dict(row.data)) for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to query {collection_path}: {e}") from e
        # Rows come back in insertion order; filtering happens in Python so the
        # semantics match the in-memory store exactly.
        return run_query(documents, filters, order_by)

    def commit(self, batch: WriteBatch) -> None:
        if not batch.operations:
            return
        now = datetime.now(timezone.utc)
        originals: Dict[str, Optional[dict]] = {}
        staged: Dict[str, Optional[dict]] = {}
        try:
            with self.Session() as session:
                for op in batch.operations:
                    path = op.path.strip("/")
                    if path not in staged:
                        row = session.get(DocumentRow, path, with_for_update=True)
                        current = dict(row.data) if row else None
                        originals[path] = current
                        staged[path] = current
                    staged[path] = apply_write(staged[path], op, now)

                for path, data in staged.items():
                    row = session.get(DocumentRow, path)
                    if data is None:
                        if row:
                            session.delete(row)
                        continue
                    data = _json_safe(data)
                    staged[path] = data
                    if row:
                        row.data = data
                        row.updated_at = time.time()
                    else:
                        session.add(
                            DocumentRow(
                                path=path,
                                collection=parent_collection(path),
                                data=data,
                                updated_at=time.time(),
                            )
                        )
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Batch commit failed: {e}") from e
        self._emit(collect_changes(originals, staged))

    def put(self, path: str, data: dict) -> None:
        """Writes one document directly, without notifying listeners."""
        if not is_document_path(path):
            raise ValueError(f"Not a document path: {path!r}")
        path = path.strip("/")
        with self.Session() as session:
            row = session.get(DocumentRow, path)
            if row:
                row.data = _json_safe(data)
                row.updated_at = time.time()
            else:
                session.add(
                    DocumentRow(
                        path=path,
                        collection=parent_collection(path),
                        data=_json_safe(data),
                        updated_at=time.time(),
                    )
                )
            session.commit()


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    path = Column(String, primary_key=True)
    collection = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)
