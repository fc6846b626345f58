"""
Tests for the Firestore record store against a mocked client.
"""
from unittest import mock

from django.test import SimpleTestCase
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from intranet.errors import AlreadyInState, NotFound
from intranet.schema import NotificationType
from intranet.store import (
    DELETE_FIELD, SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Increment, where,
)
from intranet.store.firestore_store import FirestoreRecordStore, to_firestore


class ToFirestoreTest(SimpleTestCase):

    def test_sentinels(self):
        self.assertIs(to_firestore(SERVER_TIMESTAMP), firestore.SERVER_TIMESTAMP)
        self.assertIs(to_firestore(DELETE_FIELD), firestore.DELETE_FIELD)

    def test_transforms(self):
        union = to_firestore(ArrayUnion(["a"]))
        self.assertIsInstance(union, firestore.ArrayUnion)
        self.assertEqual(list(union.values), ["a"])
        self.assertIsInstance(to_firestore(ArrayRemove(["a"])), firestore.ArrayRemove)
        self.assertIsInstance(to_firestore(Increment(-1)), firestore.Increment)

    def test_nested_values_and_enums(self):
        converted = to_firestore({
            "type": NotificationType.LIKE,
            "lastMessage": {"timestamp": SERVER_TIMESTAMP, "text": "hi"},
        })
        self.assertEqual(converted["type"], "like")
        self.assertIs(converted["lastMessage"]["timestamp"], firestore.SERVER_TIMESTAMP)
        self.assertEqual(converted["lastMessage"]["text"], "hi")


class FirestoreRecordStoreTest(SimpleTestCase):

    def setUp(self):
        self.client = mock.MagicMock()
        self.store = FirestoreRecordStore(client=self.client)
        self.reference = self.client.collection.return_value.document.return_value

    def test_get_existing(self):
        snapshot = self.reference.get.return_value
        snapshot.exists = True
        snapshot.id = "alice"
        snapshot.to_dict.return_value = {"displayName": "Alice"}

        document = self.store.get("users", "alice")

        self.client.collection.assert_called_with("users")
        self.assertEqual(document.id, "alice")
        self.assertEqual(document["displayName"], "Alice")

    def test_get_missing(self):
        self.reference.get.return_value.exists = False
        self.assertIsNone(self.store.get("users", "ghost"))

    def test_update_missing_maps_to_not_found(self):
        self.reference.update.side_effect = google_exceptions.NotFound("no document")
        with self.assertRaises(NotFound):
            self.store.update("users", "ghost", {"blocked": True})

    def test_create_existing_maps_to_already_in_state(self):
        self.reference.create.side_effect = google_exceptions.AlreadyExists("exists")
        with self.assertRaises(AlreadyInState):
            self.store.create("users", {"displayName": "A"}, doc_id="a")

    def test_set_converts_transforms(self):
        self.store.set("userStatus", "alice", {"lastSeen": SERVER_TIMESTAMP}, merge=True)
        self.reference.set.assert_called_once_with(
            {"lastSeen": firestore.SERVER_TIMESTAMP}, merge=True
        )

    def test_query_chain(self):
        collection = self.client.collection.return_value
        chained = collection.where.return_value.order_by.return_value.limit.return_value
        chained.stream.return_value = []

        result = self.store.query(
            "notifications", [where("recipientId", "==", "alice")],
            order_by="createdAt", descending=True, limit=5,
        )

        self.assertEqual(result, [])
        field_filter = collection.where.call_args.kwargs["filter"]
        self.assertEqual(field_filter.field_path, "recipientId")
        self.assertEqual(field_filter.value, "alice")
        collection.where.return_value.order_by.assert_called_once_with(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        collection.where.return_value.order_by.return_value.limit.assert_called_once_with(5)

    def test_subscribe_returns_unsubscribe(self):
        collection = self.client.collection.return_value
        watch = collection.where.return_value.on_snapshot.return_value

        unsubscribe = self.store.subscribe("chats", [where("participants", "array-contains", "a")], mock.Mock())

        self.assertEqual(unsubscribe, watch.unsubscribe)
