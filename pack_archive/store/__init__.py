"""Document store selection and wiring."""
import logging
from typing import Optional

from flask import Flask, current_app, has_app_context

from pack_archive.exceptions import ConfigurationError
from pack_archive.store.base import Collection, DocumentStore
from pack_archive.store.memory import MemoryDocumentStore
from pack_archive.store.rate_limited import RateLimitedStore

logger = logging.getLogger(__name__)

STORE_KINDS = ('sql', 'memory')

_store: Optional[DocumentStore] = None


def build_store(app: Flask) -> DocumentStore:
    """Create the store configured by DOCUMENT_STORE, rate limited if asked to."""
    kind = app.config.get('DOCUMENT_STORE', 'sql')
    if kind == 'sql':
        from pack_archive.database import get_session
        from pack_archive.store.sql import SqlDocumentStore
        store = SqlDocumentStore(get_session())
    elif kind == 'memory':
        store = MemoryDocumentStore()
    else:
        raise ConfigurationError(f"Unknown DOCUMENT_STORE '{kind}', expected one of {STORE_KINDS}")

    rate = app.config.get('STORE_RATE_LIMIT_PER_SECOND', 0)
    if rate:
        store = RateLimitedStore(
            store, rate, max_delay_ms=app.config.get('STORE_RATE_LIMIT_MAX_DELAY_MS', 2000)
        )
        logger.info(f"[STORE] Rate limited to {rate} requests/s")

    logger.info(f"[STORE] Using {kind} document store")
    return store


def init_store(app: Flask) -> None:
    """Initialize document store singleton."""
    global _store
    _store = build_store(app)
    app.extensions['document_store'] = _store


def get_store() -> DocumentStore:
    """Get document store instance (the current app's when one is active)."""
    if has_app_context() and 'document_store' in current_app.extensions:
        return current_app.extensions['document_store']
    if _store is None:
        raise RuntimeError("Document store not initialized.")
    return _store


__all__ = ['Collection', 'DocumentStore', 'init_store', 'get_store', 'build_store']
