"""
================================================================================
CORPNET - DATABASE MODELS
================================================================================

@file        models.py
@description Relational backing for the document record store

MODULE PURPOSE
================================================================================
The corporate network keeps its data as schemaless documents grouped in
named collections (users, posts, comments, chats, messages, notifications,
moderationActions, userStatus). When the record store runs on Django
(``intranet.store.django_store.DjangoRecordStore``) every document is one
``Record`` row:

    Record(collection="users", doc_id="<uid>", data={...fields...})

Authentication identities stay in ``django.contrib.auth``; the profile
document of an account lives in ``users`` under ``str(user.pk)``.

DATA ENCODING
================================================================================
``data`` is a JSON column. Datetimes are stored as ``{"$date": "<iso>"}``
so they keep microsecond precision and timezone, and come back as aware
``datetime`` objects (see ``intranet.store.django_store``).
"""

from django.db import models


class Record(models.Model):
    """
    One document of the record store.

    Fields:
        collection: Collection name (``users``, ``posts``...)
        doc_id: Document id, unique within the collection
        data: Document fields (JSON)
        created_at / updated_at: Row bookkeeping, not part of the document
    """

    collection = models.CharField(max_length=64, db_index=True)
    doc_id = models.CharField(max_length=255)
    data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['collection', 'doc_id']
        constraints = [
            models.UniqueConstraint(
                fields=['collection', 'doc_id'],
                name='unique_document_per_collection',
            ),
        ]
        indexes = [
            models.Index(fields=['collection', '-updated_at'], name='record_collection_updated_idx'),
        ]

    def __str__(self):
        return f"{self.collection}/{self.doc_id}"
