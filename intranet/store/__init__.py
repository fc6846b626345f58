"""
Record Store Gateway.

``get_store()`` returns the process-wide store configured by
``RECORD_STORE_BACKEND``.
"""

from django.conf import settings
from django.utils.module_loading import import_string

from .base import (
    DELETE_FIELD, SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Document, Filter,
    Increment, RecordStore, where,
)

_store = None


def get_store():
    global _store
    if _store is None:
        backend = import_string(settings.RECORD_STORE_BACKEND)
        _store = backend()
    return _store


def reset_store():
    global _store
    _store = None


__all__ = [
    "ArrayRemove", "ArrayUnion", "DELETE_FIELD", "Document", "Filter",
    "Increment", "RecordStore", "SERVER_TIMESTAMP", "get_store",
    "reset_store", "where",
]
