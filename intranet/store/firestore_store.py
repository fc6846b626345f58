"""
Record store backed by Google Cloud Firestore.

Maps the gateway contract onto the Firestore client: transforms become
Firestore sentinels, queries become ``where`` / ``order_by`` / ``limit``
chains and subscriptions become ``on_snapshot`` watches.
"""

import enum
import logging

from django.conf import settings
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..errors import AlreadyInState, NotFound
from .base import (
    DELETE_FIELD, SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Document,
    Increment, RecordStore,
)

logger = logging.getLogger(__name__)


def to_firestore(value):
    """Translate gateway sentinels and transforms into Firestore ones."""
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if value is DELETE_FIELD:
        return firestore.DELETE_FIELD
    if isinstance(value, ArrayUnion):
        return firestore.ArrayUnion(value.values)
    if isinstance(value, ArrayRemove):
        return firestore.ArrayRemove(value.values)
    if isinstance(value, Increment):
        return firestore.Increment(value.amount)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {key: to_firestore(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_firestore(item) for item in value]
    return value


class FirestoreRecordStore(RecordStore):

    def __init__(self, client=None):
        self.client = client or firestore.Client(project=settings.FIRESTORE_PROJECT_ID)

    def _snapshot_to_document(self, snapshot):
        return Document(id=snapshot.id, data=snapshot.to_dict() or {})

    def _build_query(self, collection, filters, order_by, descending, limit=None):
        query = self.client.collection(collection)
        for f in filters:
            value = f.value.value if isinstance(f.value, enum.Enum) else f.value
            query = query.where(filter=FieldFilter(f.field, f.op, value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return query

    def get(self, collection, doc_id):
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return self._snapshot_to_document(snapshot)

    def query(self, collection, filters=(), order_by=None, descending=False, limit=None):
        query = self._build_query(collection, filters, order_by, descending, limit)
        return [self._snapshot_to_document(snapshot) for snapshot in query.stream()]

    def create(self, collection, data, doc_id=None):
        reference = self.client.collection(collection)
        reference = reference.document(doc_id) if doc_id else reference.document()
        try:
            reference.create(to_firestore(data))
        except google_exceptions.AlreadyExists:
            raise AlreadyInState(f"Документ {collection}/{reference.id} уже существует")
        return reference.id

    def update(self, collection, doc_id, changes):
        try:
            self.client.collection(collection).document(doc_id).update(to_firestore(changes))
        except google_exceptions.NotFound:
            raise NotFound(f"Документ {collection}/{doc_id} не найден")

    def set(self, collection, doc_id, data, merge=False):
        self.client.collection(collection).document(doc_id).set(to_firestore(data), merge=merge)

    def delete(self, collection, doc_id):
        self.client.collection(collection).document(doc_id).delete()

    def subscribe(self, collection, filters, callback, order_by=None, descending=False):
        query = self._build_query(collection, list(filters), order_by, descending)

        def on_snapshot(snapshots, changes, read_time):
            callback([self._snapshot_to_document(snapshot) for snapshot in snapshots])

        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe
