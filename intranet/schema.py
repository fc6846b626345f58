"""
Collection names, enumerations and shared constants for the record store.

The record store is schemaless; the names below are the contract every
service and every client reads and writes against.
"""

from django.conf import settings
from django.db import models


# ============================================================================
# COLLECTIONS
# ============================================================================

USERS = "users"
POSTS = "posts"
COMMENTS = "comments"
CHATS = "chats"
MESSAGES = "messages"
NOTIFICATIONS = "notifications"
MODERATION_ACTIONS = "moderationActions"
USER_STATUS = "userStatus"

ALL_COLLECTIONS = (
    USERS, POSTS, COMMENTS, CHATS, MESSAGES,
    NOTIFICATIONS, MODERATION_ACTIONS, USER_STATUS,
)


# ============================================================================
# ENUMERATIONS
# ============================================================================

class NotificationType(models.TextChoices):
    LIKE = "like", "Like"
    COMMENT = "comment", "Comment"
    FOLLOW = "follow", "Follow"
    MESSAGE = "message", "Message"
    MODERATION = "moderation", "Moderation"
    SYSTEM = "system", "System"


class ModerationType(models.TextChoices):
    WARNING = "warning", "Warning"
    BLOCK = "block", "Block"
    UNBLOCK = "unblock", "Unblock"
    POST_DELETION = "post_deletion", "Post deletion"
    COMMENT_DELETION = "comment_deletion", "Comment deletion"


class ChatType(models.TextChoices):
    PRIVATE = "private", "Private"
    GROUP = "group", "Group"


# ============================================================================
# SHARED CONSTANTS
# ============================================================================

SYSTEM_SENDER_ID = "system"
SYSTEM_SENDER_NAME = "Система"
DEFAULT_USER_NAME = "Пользователь"


def truncate_preview(text, length=None):
    """Cut ``text`` to the notification preview length, marking the cut with '...'."""
    length = length or settings.NOTIFICATION_PREVIEW_LENGTH
    text = text or ""
    if len(text) > length:
        return text[:length] + "..."
    return text
