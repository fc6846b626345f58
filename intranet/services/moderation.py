"""
================================================================================
MODERATION WORKFLOW
================================================================================

Administrative actions against users and content. Each action:

    1. validates the actor (admin) and the target
    2. mutates the target document(s)
    3. appends an audit record to ``moderationActions``
    4. notifies the affected user

Content deletions snapshot the content into the audit record and notify the
author BEFORE deleting, so the notification can quote what was removed.
The steps are sequential writes without a transaction: a failure part way
leaves the earlier writes in place.

BLOCK EXPIRY
================================================================================
``blockedUntil`` is informational. A block stays in force until an admin
unblocks the user; ``release_expired_blocks`` lifts every block whose
``blockedUntil`` has passed (run by the ``release_expired_blocks`` command).
"""

import logging
from datetime import timedelta

from ..errors import InvalidArgument, PermissionDenied
from ..schema import COMMENTS, MODERATION_ACTIONS, POSTS, USERS, ModerationType, truncate_preview
from ..store import SERVER_TIMESTAMP, Increment, get_store, where
from .notifications import create_moderation_notification

logger = logging.getLogger(__name__)

# User-facing texts
USER_NOT_FOUND = "Пользователь не найден"
CANNOT_BLOCK_ADMIN = "Нельзя заблокировать администратора"
CANNOT_WARN_ADMIN = "Нельзя вынести предупреждение администратору"
REASON_REQUIRED = "Укажите причину"
BLOCKED_TITLE = "Ваш аккаунт заблокирован"
UNBLOCKED_TITLE = "Ваш аккаунт разблокирован"
WARNING_TITLE = "Вы получили предупреждение"
WARNING_INFO = "Повторные нарушения могут привести к блокировке аккаунта"
POST_DELETED_TITLE = "Ваш пост был удален администратором"
COMMENT_DELETED_TITLE = "Ваш комментарий был удален администратором"
CONTENT_UNAVAILABLE = "содержимое недоступно"
PERMANENT_BLOCK_INFO = "Блокировка постоянная"
EXPIRED_BLOCK_REASON = "Срок блокировки истёк"


def _require_reason(reason):
    reason = (reason or "").strip()
    if not reason:
        raise InvalidArgument(REASON_REQUIRED)
    return reason


def _notify(actor, recipient_id, title, reason, additional_info=""):
    create_moderation_notification(
        recipient_id=recipient_id,
        admin_id=actor.user_id,
        admin_name=actor.display_name,
        admin_photo_url=actor.photo_url,
        title=title,
        reason=reason,
        additional_info=additional_info,
    )


def _record_action(action_type, user_id, actor, reason, **extra):
    data = {
        "type": action_type,
        "userId": user_id,
        "adminId": actor.user_id,
        "adminName": actor.display_name,
        "reason": reason,
        "createdAt": SERVER_TIMESTAMP,
        "read": False,
    }
    data.update(extra)
    return get_store().create(MODERATION_ACTIONS, data)


def block_duration_info(duration_days):
    if duration_days > 0:
        return f"Срок блокировки: {duration_days} дней"
    return PERMANENT_BLOCK_INFO


# ============================================================================
# USER ACTIONS
# ============================================================================

def block_user(actor, user_id, reason, duration_days=0):
    """
    Block ``user_id``. ``duration_days=0`` means a permanent block.

    Returns the id of the ``block`` moderation action.
    """
    actor.require_admin()
    reason = _require_reason(reason)
    if duration_days < 0:
        raise InvalidArgument("Срок блокировки не может быть отрицательным")

    store = get_store()
    user = store.get_or_raise(USERS, user_id, USER_NOT_FOUND)
    if user.get("isAdmin"):
        raise PermissionDenied(CANNOT_BLOCK_ADMIN)

    blocked_until = store.now() + timedelta(days=duration_days) if duration_days > 0 else None

    store.update(USERS, user_id, {
        "blocked": True,
        "blockedAt": SERVER_TIMESTAMP,
        "blockedBy": actor.user_id,
        "blockedReason": reason,
        "blockedUntil": blocked_until,
        "adminName": actor.display_name,
    })
    action_id = _record_action(ModerationType.BLOCK, user_id, actor, reason, expiresAt=blocked_until)
    _notify(actor, user_id, BLOCKED_TITLE, reason, block_duration_info(duration_days))

    logger.info(f"User {user_id} blocked by {actor.user_id} for {duration_days or 'unlimited'} days")
    return action_id


def unblock_user(actor, user_id, reason):
    actor.require_admin()
    reason = _require_reason(reason)

    store = get_store()
    store.get_or_raise(USERS, user_id, USER_NOT_FOUND)
    store.update(USERS, user_id, {
        "blocked": False,
        "blockedAt": None,
        "blockedBy": None,
        "blockedReason": None,
        "blockedUntil": None,
    })
    action_id = _record_action(ModerationType.UNBLOCK, user_id, actor, reason)
    _notify(actor, user_id, UNBLOCKED_TITLE, reason)

    logger.info(f"User {user_id} unblocked by {actor.user_id}")
    return action_id


def warn_user(actor, user_id, reason):
    actor.require_admin()
    reason = _require_reason(reason)

    store = get_store()
    user = store.get_or_raise(USERS, user_id, USER_NOT_FOUND)
    if user.get("isAdmin"):
        raise PermissionDenied(CANNOT_WARN_ADMIN)

    store.update(USERS, user_id, {
        "warnings": Increment(1),
        "lastWarningAt": SERVER_TIMESTAMP,
        "lastWarningBy": actor.user_id,
        "lastWarningReason": reason,
    })
    action_id = _record_action(ModerationType.WARNING, user_id, actor, reason)
    _notify(actor, user_id, WARNING_TITLE, reason, WARNING_INFO)

    logger.info(f"User {user_id} warned by {actor.user_id}")
    return action_id


# ============================================================================
# CONTENT ACTIONS
# ============================================================================

def delete_post_with_reason(actor, post_id, reason):
    actor.require_admin()
    reason = _require_reason(reason)

    store = get_store()
    post = store.get_or_raise(POSTS, post_id, "Пост не найден")
    author_id = post.get("authorId")
    store.get_or_raise(USERS, author_id, "Автор поста не найден")

    preview = truncate_preview(post.get("content")) or CONTENT_UNAVAILABLE
    action_id = _record_action(
        ModerationType.POST_DELETION, author_id, actor, reason,
        contentId=post_id, contentSnapshot=post.data,
    )
    _notify(
        actor, author_id, POST_DELETED_TITLE, reason,
        f'Текст поста: "{preview}". {WARNING_INFO}.',
    )
    store.delete(POSTS, post_id)

    logger.info(f"Post {post_id} of {author_id} deleted by {actor.user_id}")
    return action_id


def delete_comment_with_reason(actor, comment_id, reason):
    actor.require_admin()
    reason = _require_reason(reason)

    store = get_store()
    comment = store.get_or_raise(COMMENTS, comment_id, "Комментарий не найден")
    author_id = comment.get("authorId")
    store.get_or_raise(USERS, author_id, "Автор комментария не найден")

    preview = truncate_preview(comment.get("text")) or CONTENT_UNAVAILABLE
    action_id = _record_action(
        ModerationType.COMMENT_DELETION, author_id, actor, reason,
        contentId=comment_id, contentSnapshot=comment.data,
    )
    _notify(
        actor, author_id, COMMENT_DELETED_TITLE, reason,
        f'Текст комментария: "{preview}". {WARNING_INFO}.',
    )
    store.delete(COMMENTS, comment_id)

    post_id = comment.get("postId")
    if post_id and store.get(POSTS, post_id) is not None:
        store.update(POSTS, post_id, {"commentsCount": Increment(-1)})

    logger.info(f"Comment {comment_id} of {author_id} deleted by {actor.user_id}")
    return action_id


# ============================================================================
# HISTORY & BLOCK STATE
# ============================================================================

def get_user_moderation_history(user_id):
    return get_store().query(
        MODERATION_ACTIONS, [where("userId", "==", user_id)],
        order_by="createdAt", descending=True,
    )


def is_block_active(user, now=None):
    """True while ``user`` is blocked and the block has no passed ``blockedUntil``."""
    if not user.get("blocked"):
        return False
    blocked_until = user.get("blockedUntil")
    if blocked_until is None:
        return True
    now = now or get_store().now()
    return blocked_until > now


def release_expired_blocks(actor):
    """Unblock every user whose ``blockedUntil`` has passed. Returns their ids."""
    actor.require_admin()
    store = get_store()
    now = store.now()

    released = []
    for user in store.query(USERS, [where("blocked", "==", True)]):
        if user.get("blockedUntil") is None or is_block_active(user, now):
            continue
        unblock_user(actor, user.id, EXPIRED_BLOCK_REASON)
        released.append(user.id)

    if released:
        logger.info(f"Released {len(released)} expired blocks")
    return released
