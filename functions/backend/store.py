"""
Document store abstraction for Firestore and an in-memory test implementation.

Every operation in this package reads with `get`/`query` and writes through a
`WriteBatch` handed to `commit`, so a store only has to provide those three
calls. A batch is all-or-nothing: either every write in it is applied or none
is.
"""

from __future__ import annotations

import copy
import logging
import operator
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

logger = logging.getLogger(__name__)

AUTO_ID_LENGTH = 20


class StoreError(Exception):
    """A read or write against the document store failed."""


class DocumentNotFoundError(StoreError):
    """An update targeted a document that does not exist."""


class InvalidPathError(ValueError):
    """A collection or document path is malformed."""


def split_path(path: str) -> List[str]:
    if not isinstance(path, str) or not path.strip("/"):
        raise InvalidPathError(f"Invalid path: {path!r}")
    segments = path.strip("/").split("/")
    if any(not segment for segment in segments):
        raise InvalidPathError(f"Invalid path: {path!r}")
    return segments


def is_document_path(path: str) -> bool:
    try:
        return len(split_path(path)) % 2 == 0
    except InvalidPathError:
        return False


def _check_document_path(path: str) -> None:
    if not is_document_path(path):
        raise InvalidPathError(f"Not a document path: {path!r}")


def _check_collection_path(path: str) -> None:
    if len(split_path(path)) % 2 != 1:
        raise InvalidPathError(f"Not a collection path: {path!r}")


def parent_collection(path: str) -> str:
    return "/".join(split_path(path)[:-1])


def document_id(path: str) -> str:
    return split_path(path)[-1]


def new_document_id() -> str:
    return uuid.uuid4().hex[:AUTO_ID_LENGTH]


@dataclass(frozen=True)
class StoredDocument:
    """A point-in-time read of one document. `data` is None if it is missing."""

    path: str
    data: Optional[dict]

    @property
    def id(self) -> str:
        return document_id(self.path)

    @property
    def exists(self) -> bool:
        return self.data is not None


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
    "array-contains": lambda value, item: isinstance(value, list) and item in value,
}


@dataclass(frozen=True)
class QueryFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported query operator: {self.op}")

    def matches(self, data: dict) -> bool:
        # Firestore never matches documents that lack the filtered field.
        if self.field not in data:
            return False
        try:
            return _OPERATORS[self.op](data[self.field], self.value)
        except TypeError:
            return False


class WriteKind(Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteOperation:
    kind: WriteKind
    path: str
    data: Optional[dict] = None
    merge: bool = False


class WriteBatch:
    """Collects writes to be committed atomically by `DocumentStore.commit`."""

    def __init__(self):
        self.operations: List[WriteOperation] = []

    def set(self, path: str, data: dict, *, merge: bool = False) -> None:
        _check_document_path(path)
        self.operations.append(
            WriteOperation(WriteKind.SET, path, dict(data), merge=merge)
        )

    def create(self, collection_path: str, data: dict) -> str:
        """Adds a document with a generated id and returns its path."""
        _check_collection_path(collection_path)
        path = f"{collection_path.strip('/')}/{new_document_id()}"
        self.set(path, data)
        return path

    def update(self, path: str, data: dict) -> None:
        _check_document_path(path)
        self.operations.append(WriteOperation(WriteKind.UPDATE, path, dict(data)))

    def delete(self, path: str) -> None:
        _check_document_path(path)
        self.operations.append(WriteOperation(WriteKind.DELETE, path))

    def __len__(self) -> int:
        return len(self.operations)


class EventKind(Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class DocumentChange:
    """A committed change to one document, as delivered to trigger handlers."""

    path: str
    kind: EventKind
    before: Optional[dict]
    after: Optional[dict]
    params: Dict[str, str] = field(default_factory=dict)


ChangeListener = Callable[[DocumentChange], None]


class DocumentStore(Protocol):
    """Interface for document database access."""

    def get(self, path: str) -> StoredDocument:
        ...

    def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
    ) -> List[StoredDocument]:
        ...

    def commit(self, batch: WriteBatch) -> None:
        ...


def resolve_server_timestamps(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {key: resolve_server_timestamps(item, now) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_server_timestamps(item, now) for item in value]
    return value


def apply_write(
    existing: Optional[dict], op: WriteOperation, now: datetime
) -> Optional[dict]:
    """Returns the document contents after applying `op` to `existing`."""
    if op.kind is WriteKind.DELETE:
        return None
    data = resolve_server_timestamps(op.data, now)
    if op.kind is WriteKind.SET:
        if op.merge and existing is not None:
            return {**existing, **data}
        return data
    if existing is None:
        raise DocumentNotFoundError(f"No document to update: {op.path}")
    return {**existing, **data}


def run_query(
    documents: Iterable[StoredDocument],
    filters: Sequence[QueryFilter] = (),
    order_by: Optional[str] = None,
) -> List[StoredDocument]:
    matched = [
        doc for doc in documents if all(f.matches(doc.data) for f in filters)
    ]
    if order_by:
        matched = [doc for doc in matched if order_by in doc.data]
        matched.sort(key=lambda doc: doc.data[order_by])
    return matched


def collect_changes(
    originals: Dict[str, Optional[dict]], finals: Dict[str, Optional[dict]]
) -> List[DocumentChange]:
    changes: List[DocumentChange] = []
    for path, before in originals.items():
        after = finals.get(path)
        if before == after:
            continue
        if before is None:
            kind = EventKind.CREATED
        elif after is None:
            kind = EventKind.DELETED
        else:
            kind = EventKind.UPDATED
        changes.append(
            DocumentChange(
                path=path,
                kind=kind,
                before=copy.deepcopy(before),
                after=copy.deepcopy(after),
            )
        )
    return changes


class ObservableStore:
    """
    Base for self-hosted stores that report committed changes to listeners,
    standing in for the platform's document triggers.
    """

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, changes: List[DocumentChange]) -> None:
        for change in changes:
            for listener in list(self._listeners):
                listener(change)


class InMemoryDocumentStore(ObservableStore):
    """Simple in-memory document database for development and tests."""

    def __init__(self, documents: Optional[Dict[str, dict]] = None):
        super().__init__()
        self.documents: Dict[str, dict] = {}
        self._lock = threading.RLock()
        for path, data in (documents or {}).items():
            _check_document_path(path)
            self.documents[path.strip("/")] = copy.deepcopy(data)

    def get(self, path: str) -> StoredDocument:
        _check_document_path(path)
        with self._lock:
            data = self.documents.get(path.strip("/"))
            return StoredDocument(path=path, data=copy.deepcopy(data))

    def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
    ) -> List[StoredDocument]:
        _check_collection_path(collection_path)
        collection_path = collection_path.strip("/")
        with self._lock:
            documents = [
                StoredDocument(path=path, data=copy.deepcopy(data))
                for path, data in self.documents.items()
                if parent_collection(path) == collection_path
            ]
        return run_query(documents, filters, order_by)

    def commit(self, batch: WriteBatch) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            originals: Dict[str, Optional[dict]] = {}
            staged: Dict[str, Optional[dict]] = {}
            # Stage every write first so a failing one leaves nothing applied.
            for op in batch.operations:
                path = op.path.strip("/")
                if path not in staged:
                    current = self.documents.get(path)
                    originals[path] = copy.deepcopy(current)
                    staged[path] = current
                staged[path] = apply_write(staged[path], op, now)

            for path, data in staged.items():
                if data is None:
                    self.documents.pop(path, None)
                else:
                    self.documents[path] = data
            changes = collect_changes(originals, staged)
        self._emit(changes)

    def reset(self) -> None:
        """Clear all stored documents (useful in tests)."""
        with self._lock:
            self.documents.clear()


class FirestoreDocumentStore:
    """Firestore-backed implementation used by the deployed functions."""

    def __init__(self, client=None):
        self.client = client if client is not None else firestore.client()

    def get(self, path: str) -> StoredDocument:
        try:
            snapshot = self.client.document(path).get()
        except exceptions.GoogleAPICallError as e:
            raise StoreError(f"Failed to read {path}: {e}") from e
        return StoredDocument(
            path=path, data=snapshot.to_dict() if snapshot.exists else None
        )

    def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
    ) -> List[StoredDocument]:
        query = self.client.collection(collection_path)
        for query_filter in filters:
            query = query.where(
                filter=FieldFilter(
                    query_filter.field, query_filter.op, query_filter.value
                )
            )
        if order_by:
            query = query.order_by(order_by)
        try:
            snapshots = list(query.stream())
        except exceptions.GoogleAPICallError as e:
            raise StoreError(f"Failed to query {collection_path}: {e}") from e
        return [
            StoredDocument(path=f"{collection_path}/{snapshot.id}", data=snapshot.to_dict())
            for snapshot in snapshots
        ]

    def commit(self, batch: WriteBatch) -> None:
        if not batch.operations:
            return
        firestore_batch = self.client.batch()
        for op in batch.operations:
            doc_ref = self.client.document(op.path)
            if op.kind is WriteKind.SET:
                firestore_batch.set(doc_ref, op.data, merge=op.merge)
            elif op.kind is WriteKind.UPDATE:
                firestore_batch.update(doc_ref, op.data)
            else:
                firestore_batch.delete(doc_ref)
        try:
            firestore_batch.commit()
        except exceptions.NotFound as e:
            raise DocumentNotFoundError(str(e)) from e
        except exceptions.GoogleAPICallError as e:
            raise StoreError(f"Batch commit failed: {e}") from e
        logger.debug("Committed batch of %d writes", len(batch))
