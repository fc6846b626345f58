"""
Tests for private chats and messages.

Key coverage:
1. Private chat reuse
2. send_message updates lastMessage and notifies in private chats
3. Only the sender edits or deletes a message
4. Reading marks only other participants' messages
"""
from unittest import mock

from django.core import mail
from django.test import TestCase

from intranet.errors import InvalidArgument, NotFound, PermissionDenied
from intranet.schema import CHATS, MESSAGES, NOTIFICATIONS
from intranet.services import chat, messages, notifications
from intranet.services.files import FileUploadResult
from intranet.store import get_store, where

from .factories import make_user


class MessagingTest(TestCase):

    def setUp(self):
        self.store = get_store()
        self.alice = make_user("alice", "Alice")
        self.bob = make_user("bob", "Bob")
        self.carol = make_user("carol", "Carol")
        self.chat_id = messages.create_private_chat("alice", "bob")

    def message_notifications(self, recipient_id):
        return self.store.query(NOTIFICATIONS, [
            where("type", "==", "message"), where("recipientId", "==", recipient_id),
        ])

    def test_private_chat_is_reused(self):
        self.assertEqual(messages.create_private_chat("bob", "alice"), self.chat_id)
        self.assertNotEqual(messages.create_private_chat("alice", "carol"), self.chat_id)

    def test_private_chat_with_self_rejected(self):
        with self.assertRaises(InvalidArgument):
            messages.create_private_chat("alice", "alice")

    def test_send_message(self):
        message_id = messages.send_message(self.chat_id, self.alice, text="Привет")

        message = self.store.get(MESSAGES, message_id)
        self.assertEqual(message["text"], "Привет")
        self.assertFalse(message["read"])
        self.assertFalse(message["isSystemMessage"])

        last_message = self.store.get(CHATS, self.chat_id)["lastMessage"]
        self.assertEqual(last_message["text"], "Привет")
        self.assertEqual(last_message["senderId"], "alice")
        self.assertGreaterEqual(last_message["timestamp"], message["timestamp"])

        [notification] = self.message_notifications("bob")
        self.assertEqual(notification["senderId"], "alice")
        self.assertEqual(notification["message"], "Новое сообщение")

    def test_repeated_messages_keep_one_unread_notification(self):
        messages.send_message(self.chat_id, self.alice, text="one")
        messages.send_message(self.chat_id, self.alice, text="two")
        self.assertEqual(len(self.message_notifications("bob")), 1)

    def test_file_message_summary(self):
        upload = FileUploadResult(
            url="https://cdn/x.png", file_name="x.png", file_type="image/png",
            file_size=10, is_image=True, is_video=False,
        )
        message_id = messages.send_message(self.chat_id, self.alice, file=upload)

        self.assertEqual(self.store.get(MESSAGES, message_id)["fileUrl"], "https://cdn/x.png")
        last_message = self.store.get(CHATS, self.chat_id)["lastMessage"]
        self.assertEqual(last_message["text"], "Отправил(а) изображение")

    def test_only_first_unread_message_is_mailed(self):
        messages.send_message(self.chat_id, self.alice, text="one")
        messages.send_message(self.chat_id, self.alice, text="two")
        [message] = mail.outbox
        self.assertEqual(message.to, ["bob@corp.example"])
        self.assertIn("one", message.body)

        messages.mark_chat_messages_read(self.chat_id, "bob")
        notifications.mark_all_notifications_as_read("bob")
        messages.send_message(self.chat_id, self.alice, text="three")
        self.assertEqual(len(mail.outbox), 2)

    def test_empty_message_rejected(self):
        with self.assertRaises(InvalidArgument):
            messages.send_message(self.chat_id, self.alice, text="  ")

    def test_non_participant_cannot_send(self):
        with self.assertRaises(PermissionDenied):
            messages.send_message(self.chat_id, self.carol, text="hi")

    def test_group_messages_do_not_notify(self):
        group_id = chat.create_group_chat("alice", "Team", ["bob"])
        messages.send_message(group_id, self.alice, text="all hands")
        self.assertEqual(self.message_notifications("bob"), [])

    def test_notification_failure_does_not_fail_send(self):
        with mock.patch(
            "intranet.services.messages.create_message_notification",
            side_effect=RuntimeError("store down"),
        ):
            message_id = messages.send_message(self.chat_id, self.alice, text="still sent")
        self.assertIsNotNone(self.store.get(MESSAGES, message_id))

    def test_edit_and_delete_own_message(self):
        message_id = messages.send_message(self.chat_id, self.alice, text="typo")
        messages.edit_message(message_id, "alice", "fixed")

        message = self.store.get(MESSAGES, message_id)
        self.assertEqual(message["text"], "fixed")
        self.assertTrue(message["edited"])

        with self.assertRaises(PermissionDenied):
            messages.edit_message(message_id, "bob", "hijack")
        with self.assertRaises(PermissionDenied):
            messages.delete_message(message_id, "bob")

        messages.delete_message(message_id, "alice")
        self.assertIsNone(self.store.get(MESSAGES, message_id))

    def test_system_messages_cannot_be_edited(self):
        group_id = chat.create_group_chat("alice", "Team", ["bob"])
        [system_message] = messages.get_chat_messages(group_id)
        with self.assertRaises(PermissionDenied):
            messages.edit_message(system_message.id, "system", "changed")

    def test_edit_missing_message(self):
        with self.assertRaises(NotFound):
            messages.edit_message("ghost", "alice", "text")

    def test_mark_read(self):
        messages.send_message(self.chat_id, self.alice, text="one")
        messages.send_message(self.chat_id, self.alice, text="two")
        own = messages.send_message(self.chat_id, self.bob, text="mine")

        self.assertEqual(messages.mark_chat_messages_read(self.chat_id, "bob"), 2)
        self.assertFalse(self.store.get(MESSAGES, own)["read"])
        self.assertEqual(messages.mark_chat_messages_read(self.chat_id, "bob"), 0)

        with self.assertRaises(PermissionDenied):
            messages.mark_chat_messages_read(self.chat_id, "carol")

    def test_chat_messages_in_order(self):
        messages.send_message(self.chat_id, self.alice, text="one")
        messages.send_message(self.chat_id, self.bob, text="two")
        self.assertEqual(
            [m["text"] for m in messages.get_chat_messages(self.chat_id)], ["one", "two"]
        )
