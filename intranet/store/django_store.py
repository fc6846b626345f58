"""
Record store backed by the Django ORM.

Each document is a ``Record`` row. Mutations lock the row with
``select_for_update()`` inside ``transaction.atomic()`` so field transforms
(array union/remove, increments) never lose concurrent updates.
Subscriptions are driven by ``post_save`` / ``post_delete`` signals.
"""

import enum
import logging
import re
import uuid
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models.signals import post_delete, post_save

from ..errors import AlreadyInState, NotFound
from ..models import Record
from .base import (
    Document, RecordStore, apply_changes, filter_documents, sort_documents,
)

logger = logging.getLogger(__name__)

DATE_KEY = "$date"
_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ============================================================================
# JSON ENCODING
# ============================================================================

def encode(value):
    """Make a document value JSON-safe, tagging datetimes."""
    if isinstance(value, datetime):
        return {DATE_KEY: value.isoformat()}
    if isinstance(value, dict):
        return {key: encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    return value


def decode(value):
    if isinstance(value, dict):
        if len(value) == 1 and DATE_KEY in value:
            return datetime.fromisoformat(value[DATE_KEY])
        return {key: decode(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode(item) for item in value]
    return value


def new_document_id():
    return uuid.uuid4().hex


# ============================================================================
# STORE
# ============================================================================

class DjangoRecordStore(RecordStore):

    def _to_document(self, record):
        return Document(id=record.doc_id, data=decode(record.data))

    def _locked(self, collection, doc_id):
        return (Record.objects.select_for_update()
                .filter(collection=collection, doc_id=doc_id).first())

    def get(self, collection, doc_id):
        record = Record.objects.filter(collection=collection, doc_id=doc_id).first()
        return self._to_document(record) if record else None

    def query(self, collection, filters=(), order_by=None, descending=False, limit=None):
        filters = list(filters)
        records = Record.objects.filter(collection=collection)

        # String equality on top-level fields narrows the scan in SQL;
        # every filter is still evaluated on the decoded document below.
        for f in filters:
            value = f.value.value if isinstance(f.value, enum.Enum) else f.value
            if f.op == "==" and isinstance(value, str) and _SIMPLE_FIELD.match(f.field):
                records = records.filter(**{f"data__{f.field}": value})

        documents = filter_documents(
            (self._to_document(record) for record in records.iterator()), filters
        )
        if order_by:
            documents = sort_documents(documents, order_by, descending)
        if limit is not None:
            documents = documents[:limit]
        return documents

    def create(self, collection, data, doc_id=None):
        doc_id = doc_id or new_document_id()
        document = apply_changes({}, data, self.now())
        try:
            with transaction.atomic():
                Record.objects.create(
                    collection=collection, doc_id=doc_id, data=encode(document)
                )
        except IntegrityError:
            raise AlreadyInState(f"Документ {collection}/{doc_id} уже существует")
        return doc_id

    def update(self, collection, doc_id, changes):
        with transaction.atomic():
            record = self._locked(collection, doc_id)
            if record is None:
                raise NotFound(f"Документ {collection}/{doc_id} не найден")
            record.data = encode(apply_changes(decode(record.data), changes, self.now()))
            record.save(update_fields=['data', 'updated_at'])

    def set(self, collection, doc_id, data, merge=False):
        now = self.now()
        with transaction.atomic():
            record = self._locked(collection, doc_id)
            if record is None:
                try:
                    with transaction.atomic():
                        Record.objects.create(
                            collection=collection, doc_id=doc_id,
                            data=encode(apply_changes({}, data, now)),
                        )
                    return
                except IntegrityError:
                    # Lost a race with a concurrent insert; fall through to update
                    record = self._locked(collection, doc_id)
            base = decode(record.data) if merge else {}
            record.data = encode(apply_changes(base, data, now))
            record.save(update_fields=['data', 'updated_at'])

    def delete(self, collection, doc_id):
        Record.objects.filter(collection=collection, doc_id=doc_id).delete()

    def subscribe(self, collection, filters, callback, order_by=None, descending=False):
        filters = list(filters)
        dispatch_uid = f"record-subscription-{uuid.uuid4().hex}"

        def deliver():
            callback(self.query(collection, filters, order_by=order_by, descending=descending))

        def on_change(sender, instance, **kwargs):
            if instance.collection == collection:
                deliver()

        post_save.connect(on_change, sender=Record, weak=False, dispatch_uid=dispatch_uid)
        post_delete.connect(on_change, sender=Record, weak=False, dispatch_uid=dispatch_uid)
        logger.debug(f"Subscribed {dispatch_uid} to {collection}")
        deliver()

        def unsubscribe():
            post_save.disconnect(sender=Record, dispatch_uid=dispatch_uid)
            post_delete.disconnect(sender=Record, dispatch_uid=dispatch_uid)

        return unsubscribe
