"""
================================================================================
NOTIFICATION DISPATCHER
================================================================================

Creates, de-duplicates, reads, marks and deletes notification records for a
recipient.

DEDUPLICATION RULES
================================================================================
- like / follow: at most one record per (sender, recipient, type[, post]).
  The record lives under a deterministic id, so a repeated event refreshes
  ``createdAt`` and clears ``read`` instead of inserting a second record.
- message: at most one UNREAD record per (sender, recipient). Once the
  recipient reads it, the next message inserts a fresh record.
- comment: always inserts.
- Self-notifications (sender == recipient) are dropped, except moderation.

Batch operations (mark all, delete all) are a query followed by one write
per record and report a single boolean for the whole batch.
"""

import hashlib
import logging

from ..schema import (
    NOTIFICATIONS, SYSTEM_SENDER_ID, SYSTEM_SENDER_NAME, NotificationType,
    truncate_preview,
)
from ..store import SERVER_TIMESTAMP, get_store, where

logger = logging.getLogger(__name__)

NEW_MESSAGE_TEXT = "Новое сообщение"


# ============================================================================
# CREATION
# ============================================================================

def create_notification(data):
    """
    Insert a notification with ``read=False`` and a server timestamp.

    Returns the new id, or ``None`` when the notification would go to its
    own sender (allowed only for moderation notices).
    """
    if (data.get("senderId") == data.get("recipientId")
            and data.get("type") != NotificationType.MODERATION):
        return None

    payload = dict(data)
    payload["read"] = False
    payload["createdAt"] = SERVER_TIMESTAMP
    notification_id = get_store().create(NOTIFICATIONS, payload)
    logger.debug(f"Notification {notification_id} ({data.get('type')}) -> {data.get('recipientId')}")
    return notification_id


def create_moderation_notification(recipient_id, admin_id, admin_name, admin_photo_url,
                                   title, reason, additional_info=""):
    return create_notification({
        "type": NotificationType.MODERATION,
        "senderId": admin_id,
        "senderName": admin_name,
        "senderPhotoURL": admin_photo_url,
        "recipientId": recipient_id,
        "title": title,
        "reason": reason,
        "additionalInfo": additional_info,
        "message": title,
    })


def dedup_notification_id(notification_type, sender_id, recipient_id, post_id=None):
    """Deterministic id for like/follow notifications of one (sender, recipient[, post])."""
    key = "\x1f".join(str(part) for part in (sender_id, recipient_id, post_id or ""))
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
    return f"{notification_type}-{digest}"


def _refresh_or_create(notification_id, data):
    if data["senderId"] == data["recipientId"]:
        return None
    payload = dict(data)
    payload["read"] = False
    payload["createdAt"] = SERVER_TIMESTAMP
    get_store().set(NOTIFICATIONS, notification_id, payload, merge=True)
    return notification_id


def create_like_notification(sender_id, sender_name, sender_photo_url, recipient_id, post_id):
    notification_id = dedup_notification_id(NotificationType.LIKE, sender_id, recipient_id, post_id)
    return _refresh_or_create(notification_id, {
        "type": NotificationType.LIKE,
        "senderId": sender_id,
        "senderName": sender_name,
        "senderPhotoURL": sender_photo_url,
        "recipientId": recipient_id,
        "postId": post_id,
    })


def create_follow_notification(sender_id, sender_name, sender_photo_url, recipient_id):
    notification_id = dedup_notification_id(NotificationType.FOLLOW, sender_id, recipient_id)
    return _refresh_or_create(notification_id, {
        "type": NotificationType.FOLLOW,
        "senderId": sender_id,
        "senderName": sender_name,
        "senderPhotoURL": sender_photo_url,
        "recipientId": recipient_id,
    })


def find_unread_message_notification(sender_id, recipient_id):
    unread = get_store().query(
        NOTIFICATIONS,
        [
            where("type", "==", NotificationType.MESSAGE),
            where("senderId", "==", sender_id),
            where("recipientId", "==", recipient_id),
            where("read", "==", False),
        ],
        order_by="createdAt", descending=True, limit=1,
    )
    return unread[0] if unread else None


def create_message_notification(sender_id, sender_name, sender_photo_url, recipient_id):
    existing = find_unread_message_notification(sender_id, recipient_id)
    if existing is not None:
        get_store().update(NOTIFICATIONS, existing.id, {"createdAt": SERVER_TIMESTAMP})
        return existing.id

    return create_notification({
        "type": NotificationType.MESSAGE,
        "senderId": sender_id,
        "senderName": sender_name,
        "senderPhotoURL": sender_photo_url,
        "recipientId": recipient_id,
        "message": NEW_MESSAGE_TEXT,
    })


def create_comment_notification(sender_id, sender_name, sender_photo_url, recipient_id,
                                post_id, comment_text, comment_id=None):
    return create_notification({
        "type": NotificationType.COMMENT,
        "senderId": sender_id,
        "senderName": sender_name,
        "senderPhotoURL": sender_photo_url,
        "recipientId": recipient_id,
        "postId": post_id,
        "commentId": comment_id,
        "message": truncate_preview(comment_text),
    })


def create_system_notification(recipient_id, message):
    return create_notification({
        "type": NotificationType.SYSTEM,
        "senderId": SYSTEM_SENDER_ID,
        "senderName": SYSTEM_SENDER_NAME,
        "senderPhotoURL": None,
        "recipientId": recipient_id,
        "message": message,
    })


# ============================================================================
# READ SIDE
# ============================================================================

def get_notifications(recipient_id, unread_only=False, limit=None):
    filters = [where("recipientId", "==", recipient_id)]
    if unread_only:
        filters.append(where("read", "==", False))
    return get_store().query(
        NOTIFICATIONS, filters, order_by="createdAt", descending=True, limit=limit
    )


def count_unread(recipient_id):
    return get_store().count(
        NOTIFICATIONS,
        [where("recipientId", "==", recipient_id), where("read", "==", False)],
    )


# ============================================================================
# MARK & DELETE
# ============================================================================

def mark_notification_as_read(notification_id):
    try:
        get_store().update(NOTIFICATIONS, notification_id, {"read": True})
    except Exception:
        logger.exception(f"Failed to mark notification {notification_id} as read")
        return False
    return True


def mark_all_notifications_as_read(recipient_id):
    store = get_store()
    try:
        unread = store.query(
            NOTIFICATIONS,
            [where("recipientId", "==", recipient_id), where("read", "==", False)],
        )
        for notification in unread:
            store.update(NOTIFICATIONS, notification.id, {"read": True})
    except Exception:
        logger.exception(f"Failed to mark notifications of {recipient_id} as read")
        return False
    return True


def delete_notification(notification_id):
    try:
        get_store().delete(NOTIFICATIONS, notification_id)
    except Exception:
        logger.exception(f"Failed to delete notification {notification_id}")
        return False
    return True


def delete_all_notifications(recipient_id):
    store = get_store()
    try:
        for notification in store.query(NOTIFICATIONS, [where("recipientId", "==", recipient_id)]):
            store.delete(NOTIFICATIONS, notification.id)
    except Exception:
        logger.exception(f"Failed to delete notifications of {recipient_id}")
        return False
    return True
