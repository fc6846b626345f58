"""
Tests for the notification dispatcher.

Key coverage:
1. Self-notifications are dropped (except moderation)
2. Like/follow dedup-refresh keeps exactly one record
3. Message notifications: one unread per pair, a new one after read
4. Batch mark/delete operations
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from intranet.schema import NOTIFICATIONS, NotificationType
from intranet.services import notifications
from intranet.store import get_store, where


class NotificationTestCase(TestCase):

    def setUp(self):
        self.store = get_store()

    def all_notifications(self, **match):
        filters = [where(key, "==", value) for key, value in match.items()]
        return self.store.query(NOTIFICATIONS, filters)

    def age(self, notification_id, hours=1):
        """Push createdAt into the past so a refresh is observable."""
        old = timezone.now() - timedelta(hours=hours)
        self.store.update(NOTIFICATIONS, notification_id, {"createdAt": old})
        return old


class CreateNotificationTest(NotificationTestCase):

    def test_inserts_unread_with_timestamp(self):
        notification_id = notifications.create_notification({
            "type": NotificationType.COMMENT, "senderId": "s", "recipientId": "r",
        })
        notification = self.store.get(NOTIFICATIONS, notification_id)
        self.assertFalse(notification["read"])
        self.assertEqual(notification["type"], "comment")
        self.assertIsNotNone(notification["createdAt"])

    def test_self_notification_is_dropped(self):
        result = notifications.create_notification({
            "type": NotificationType.LIKE, "senderId": "u", "recipientId": "u",
        })
        self.assertIsNone(result)
        self.assertEqual(self.all_notifications(), [])

    def test_self_moderation_notification_is_kept(self):
        result = notifications.create_moderation_notification(
            "u", "u", "Admin", None, "Вы получили предупреждение", "test"
        )
        self.assertIsNotNone(result)
        notification = self.store.get(NOTIFICATIONS, result)
        self.assertEqual(notification["title"], "Вы получили предупреждение")
        self.assertEqual(notification["reason"], "test")

    def test_system_notification(self):
        notification_id = notifications.create_system_notification("r", "Добро пожаловать")
        notification = self.store.get(NOTIFICATIONS, notification_id)
        self.assertEqual(notification["type"], "system")
        self.assertEqual(notification["senderId"], "system")
        self.assertEqual(notification["message"], "Добро пожаловать")


class LikeFollowDedupTest(NotificationTestCase):

    def test_repeated_like_keeps_one_record_and_refreshes_it(self):
        first = notifications.create_like_notification("s", "Sam", None, "r", "p1")
        old = self.age(first)
        self.store.update(NOTIFICATIONS, first, {"read": True})

        second = notifications.create_like_notification("s", "Sam", None, "r", "p1")

        self.assertEqual(first, second)
        likes = self.all_notifications(type="like", senderId="s", recipientId="r")
        self.assertEqual(len(likes), 1)
        self.assertGreater(likes[0]["createdAt"], old)
        self.assertFalse(likes[0]["read"])

    def test_likes_on_different_posts_are_separate(self):
        notifications.create_like_notification("s", "Sam", None, "r", "p1")
        notifications.create_like_notification("s", "Sam", None, "r", "p2")
        self.assertEqual(len(self.all_notifications(type="like")), 2)

    def test_self_like_is_dropped(self):
        self.assertIsNone(notifications.create_like_notification("r", "R", None, "r", "p1"))
        self.assertEqual(self.all_notifications(), [])

    def test_repeated_follow_keeps_one_record(self):
        first = notifications.create_follow_notification("s", "Sam", None, "r")
        old = self.age(first)
        notifications.create_follow_notification("s", "Sam", None, "r")

        follows = self.all_notifications(type="follow")
        self.assertEqual(len(follows), 1)
        self.assertGreater(follows[0]["createdAt"], old)


class MessageNotificationTest(NotificationTestCase):

    def test_unread_message_notification_is_refreshed(self):
        first = notifications.create_message_notification("s", "Sam", None, "r")
        old = self.age(first)
        second = notifications.create_message_notification("s", "Sam", None, "r")

        self.assertEqual(first, second)
        unread = self.all_notifications(type="message", read=False)
        self.assertEqual(len(unread), 1)
        self.assertGreater(unread[0]["createdAt"], old)
        self.assertEqual(unread[0]["message"], "Новое сообщение")

    def test_new_record_after_read(self):
        first = notifications.create_message_notification("s", "Sam", None, "r")
        notifications.mark_notification_as_read(first)

        second = notifications.create_message_notification("s", "Sam", None, "r")

        self.assertNotEqual(first, second)
        self.assertEqual(len(self.all_notifications(type="message")), 2)
        self.assertEqual(len(self.all_notifications(type="message", read=False)), 1)


class CommentNotificationTest(NotificationTestCase):

    def test_every_comment_inserts(self):
        notifications.create_comment_notification("s", "Sam", None, "r", "p1", "first")
        notifications.create_comment_notification("s", "Sam", None, "r", "p1", "second")
        self.assertEqual(len(self.all_notifications(type="comment")), 2)

    def test_long_comment_is_truncated(self):
        text = "x" * 80
        notification_id = notifications.create_comment_notification("s", "Sam", None, "r", "p1", text)
        self.assertEqual(self.store.get(NOTIFICATIONS, notification_id)["message"], "x" * 50 + "...")

    def test_short_comment_is_kept(self):
        notification_id = notifications.create_comment_notification("s", "Sam", None, "r", "p1", "ok")
        self.assertEqual(self.store.get(NOTIFICATIONS, notification_id)["message"], "ok")


class BatchOperationsTest(NotificationTestCase):

    def setUp(self):
        super().setUp()
        notifications.create_comment_notification("a", "A", None, "r", "p1", "one")
        notifications.create_comment_notification("b", "B", None, "r", "p1", "two")
        notifications.create_comment_notification("a", "A", None, "other", "p2", "three")

    def test_mark_all_as_read(self):
        self.assertEqual(notifications.count_unread("r"), 2)
        self.assertTrue(notifications.mark_all_notifications_as_read("r"))
        self.assertEqual(notifications.count_unread("r"), 0)
        self.assertEqual(notifications.count_unread("other"), 1)

    def test_mark_missing_notification_returns_false(self):
        self.assertFalse(notifications.mark_notification_as_read("missing"))

    def test_delete_all(self):
        self.assertTrue(notifications.delete_all_notifications("r"))
        self.assertEqual(notifications.get_notifications("r"), [])
        self.assertEqual(len(notifications.get_notifications("other")), 1)

    def test_delete_one(self):
        notification_id = notifications.get_notifications("other")[0].id
        self.assertTrue(notifications.delete_notification(notification_id))
        self.assertIsNone(self.store.get(NOTIFICATIONS, notification_id))

    def test_get_notifications_newest_first(self):
        first = self.all_notifications(message="one")[0]
        self.age(first.id)
        items = notifications.get_notifications("r")
        self.assertEqual([item["message"] for item in items], ["two", "one"])
        unread = notifications.get_notifications("r", unread_only=True, limit=1)
        self.assertEqual(len(unread), 1)
