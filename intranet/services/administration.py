"""
================================================================================
ADMINISTRATION
================================================================================

Admin-only user management: approval queue, rejection, account deletion
with cascade, admin role toggling and platform statistics.

DELETE CASCADE ORDER
================================================================================
    posts -> comments -> notifications (received) -> chats containing the
    user -> login identity -> profile document

Each step is a separate write; a failure leaves the earlier steps applied.
"""

import logging

from ..schema import (
    CHATS, COMMENTS, MESSAGES, NOTIFICATIONS, POSTS, USERS,
)
from ..store import get_store, where
from .auth import delete_account
from .email import send_approval_email
from .notifications import create_system_notification

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "Пользователь не найден"
APPROVAL_MESSAGE = (
    "Ваш аккаунт подтвержден администратором. "
    "Добро пожаловать в корпоративную сеть!"
)


def get_all_users(actor):
    actor.require_admin()
    return get_store().query(USERS, order_by="createdAt", descending=True)


def get_pending_users(actor):
    actor.require_admin()
    return get_store().query(
        USERS, [where("approved", "==", False)], order_by="createdAt", descending=True
    )


def approve_user(actor, user_id):
    actor.require_admin()
    store = get_store()
    user = store.get_or_raise(USERS, user_id, USER_NOT_FOUND)

    store.update(USERS, user_id, {"approved": True})
    create_system_notification(user_id, APPROVAL_MESSAGE)
    if user.get("email"):
        send_approval_email(user.get("email"), user.get("displayName") or "")

    logger.info(f"User {user_id} approved by {actor.user_id}")


def reject_user(actor, user_id):
    actor.require_admin()
    store = get_store()
    store.get_or_raise(USERS, user_id, USER_NOT_FOUND)

    delete_account(user_id)
    store.delete(USERS, user_id)
    logger.info(f"User {user_id} rejected by {actor.user_id}")


def delete_user(actor, user_id):
    """Delete a user and everything they own. Returns a summary dict."""
    actor.require_admin()
    store = get_store()
    store.get_or_raise(USERS, user_id, USER_NOT_FOUND)

    posts = store.query(POSTS, [where("authorId", "==", user_id)])
    for post in posts:
        store.delete(POSTS, post.id)

    comments = store.query(COMMENTS, [where("authorId", "==", user_id)])
    for comment in comments:
        store.delete(COMMENTS, comment.id)

    notifications = store.query(NOTIFICATIONS, [where("recipientId", "==", user_id)])
    for notification in notifications:
        store.delete(NOTIFICATIONS, notification.id)

    chats = store.query(CHATS, [where("participants", "array-contains", user_id)])
    for chat in chats:
        store.delete(CHATS, chat.id)

    try:
        delete_account(user_id)
    except Exception:
        logger.error(f"Could not delete login identity of {user_id}", exc_info=True)

    store.delete(USERS, user_id)

    logger.info(
        f"User {user_id} deleted by {actor.user_id}: {len(posts)} posts, "
        f"{len(comments)} comments, {len(notifications)} notifications, {len(chats)} chats"
    )
    return {
        "success": True,
        "message": "Пользователь и все его данные успешно удалены",
        "deleted": {
            "posts": len(posts),
            "comments": len(comments),
            "notifications": len(notifications),
            "chats": len(chats),
        },
    }


def toggle_admin_role(actor, user_id, is_admin):
    actor.require_admin()
    store = get_store()
    store.get_or_raise(USERS, user_id, USER_NOT_FOUND)
    store.update(USERS, user_id, {"isAdmin": bool(is_admin)})
    logger.info(f"User {user_id} admin={bool(is_admin)} set by {actor.user_id}")


def get_platform_stats(actor):
    actor.require_admin()
    store = get_store()
    users = store.query(USERS)
    return {
        "totalUsers": len(users),
        "pendingUsers": sum(1 for user in users if not user.get("approved")),
        "totalAdmins": sum(1 for user in users if user.get("isAdmin")),
        "totalPosts": store.count(POSTS),
        "totalMessages": store.count(MESSAGES),
    }
