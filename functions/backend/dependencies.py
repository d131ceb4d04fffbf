"""
Dependency wiring shared by the Firebase functions and the FastAPI app.
"""

from __future__ import annotations

import firebase_admin

from backend.config import get_settings
from backend.db import SqlDocumentStore
from backend.identity import (
    FirebaseIdentityProvider,
    IdentityProvider,
    InMemoryIdentityProvider,
)
from backend.locks import DateLock, InMemoryDateLock, RedisDateLock
from backend.mail import EmailTransport, InMemoryEmailTransport, SendGridEmailTransport
from backend.notifications import handle_stock_requisition_created
from backend.ordering import handle_inventory_item_updated
from backend.store import (
    DocumentStore,
    EventKind,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    ObservableStore,
)
from backend.triggers import TriggerDispatcher
from shared.firebase_constants import INVENTORY_ITEM_DOCUMENT, STOCK_REQUISITION_DOCUMENT

_document_store: DocumentStore | None = None
_identity_provider: IdentityProvider | None = None
_email_transport: EmailTransport | None = None
_date_lock: DateLock | None = None
_trigger_dispatcher: TriggerDispatcher | None = None


def _ensure_firebase_app() -> None:
    try:
        firebase_admin.get_app()
    except ValueError:
        firebase_admin.initialize_app()


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    elif settings.database_url:
        _document_store = SqlDocumentStore(settings.database_url)
    else:
        _ensure_firebase_app()
        _document_store = FirestoreDocumentStore()
    return _document_store


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider:
        return _identity_provider

    if get_settings().use_in_memory_backends:
        _identity_provider = InMemoryIdentityProvider()
    else:
        _ensure_firebase_app()
        _identity_provider = FirebaseIdentityProvider()
    return _identity_provider


def get_email_transport() -> EmailTransport:
    global _email_transport
    if _email_transport:
        return _email_transport

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.sendgrid_api_key:
        _email_transport = InMemoryEmailTransport(
            sender_email=settings.sender_email, sender_name=settings.company_name
        )
    else:
        _email_transport = SendGridEmailTransport(
            api_key=settings.sendgrid_api_key,
            sender_email=settings.sender_email,
            sender_name=settings.company_name,
        )
    return _email_transport


def get_date_lock() -> DateLock:
    """
    Return the lock serializing list generation per date. Without Redis the
    lock only covers this process.
    """
    global _date_lock
    if _date_lock:
        return _date_lock

    settings = get_settings()
    if settings.redis_url:
        _date_lock = RedisDateLock(
            url=settings.redis_url,
            timeout_seconds=settings.generation_lock_timeout_seconds,
            wait_seconds=settings.generation_lock_wait_seconds,
        )
    else:
        _date_lock = InMemoryDateLock(
            wait_seconds=settings.generation_lock_wait_seconds
        )
    return _date_lock


def build_trigger_dispatcher(store: DocumentStore) -> TriggerDispatcher:
    dispatcher = TriggerDispatcher(store)
    dispatcher.register(
        STOCK_REQUISITION_DOCUMENT,
        EventKind.CREATED,
        handle_stock_requisition_created,
    )
    dispatcher.register(
        INVENTORY_ITEM_DOCUMENT,
        EventKind.UPDATED,
        handle_inventory_item_updated,
    )
    return dispatcher


def get_trigger_dispatcher() -> TriggerDispatcher:
    global _trigger_dispatcher
    if _trigger_dispatcher:
        return _trigger_dispatcher
    _trigger_dispatcher = build_trigger_dispatcher(get_document_store())
    return _trigger_dispatcher


def reset_dependencies() -> None:
    """Drop every cached client (useful in tests)."""
    global _document_store, _identity_provider, _email_transport
    global _date_lock, _trigger_dispatcher
    _document_store = None
    _identity_provider = None
    _email_transport = None
    _date_lock = None
    _trigger_dispatcher = None


def get_triggering_document_store() -> DocumentStore:
    """
    Return the document store with the trigger dispatcher subscribed to it, so
    commits made through the HTTP API fire the same handlers the platform
    triggers run. Stores that cannot report changes (Firestore) are returned
    as-is; their triggers are delivered by the platform.
    """
    store = get_document_store()
    if get_settings().dispatch_triggers_in_process and isinstance(store, ObservableStore):
        store.subscribe(get_trigger_dispatcher().dispatch)
    return store
