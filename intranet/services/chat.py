"""
================================================================================
CHAT MEMBERSHIP WORKFLOW
================================================================================

Group chat creation and membership changes. Every mutation validates the
caller against the chat's ``admins``, changes ``participants`` / ``admins``
with array union/remove transforms and then posts a system message into
the chat describing what happened.

Invariants:
    admins ⊆ participants (removal drops the user from both arrays)
    participants holds each user once (additions use ArrayUnion)

System messages have ``senderId="system"``, ``isSystemMessage=True`` and
``read=True`` so they never count as unread.
"""

import logging

from ..errors import AlreadyInState, InvalidArgument, NotFound, PermissionDenied
from ..schema import CHATS, DEFAULT_USER_NAME, MESSAGES, SYSTEM_SENDER_ID, USERS, ChatType
from ..store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, get_store, where

logger = logging.getLogger(__name__)

CHAT_NOT_FOUND = "Чат не найден"
NOT_A_GROUP = "Это не групповой чат"
NOT_CHAT_ADMIN = "У вас нет прав для выполнения этого действия"
ALREADY_MEMBER = "Пользователь уже в чате"
NOT_A_MEMBER = "Пользователь не является участником чата"
ALREADY_ADMIN = "Пользователь уже является администратором"


# ============================================================================
# HELPERS
# ============================================================================

def get_user_name(user_id):
    """Display name of ``user_id``; falls back to a generic name."""
    user = get_store().get(USERS, user_id) if user_id else None
    if user is None:
        return DEFAULT_USER_NAME
    return user.get("displayName") or DEFAULT_USER_NAME


def post_system_message(chat_id, text):
    return get_store().create(MESSAGES, {
        "chatId": chat_id,
        "senderId": SYSTEM_SENDER_ID,
        "text": text,
        "timestamp": SERVER_TIMESTAMP,
        "read": True,
        "edited": False,
        "isSystemMessage": True,
    })


def _get_group_chat(chat_id):
    chat = get_store().get_or_raise(CHATS, chat_id, CHAT_NOT_FOUND)
    if chat.get("type") != ChatType.GROUP:
        raise InvalidArgument(NOT_A_GROUP)
    return chat


def _require_chat_admin(chat, user_id):
    if user_id not in (chat.get("admins") or []):
        raise PermissionDenied(NOT_CHAT_ADMIN)


def empty_last_message():
    return {"text": "", "senderId": "", "timestamp": SERVER_TIMESTAMP}


# ============================================================================
# GROUP CHATS
# ============================================================================

def create_group_chat(creator_id, name, participant_ids, photo_url=None):
    """Create a group chat administered by ``creator_id``. Returns the chat id."""
    name = (name or "").strip()
    if not name:
        raise InvalidArgument("Укажите название чата")

    participants = []
    for user_id in list(participant_ids) + [creator_id]:
        if user_id and user_id not in participants:
            participants.append(user_id)

    chat_id = get_store().create(CHATS, {
        "type": ChatType.GROUP,
        "name": name,
        "participants": participants,
        "admins": [creator_id],
        "createdBy": creator_id,
        "photoURL": photo_url or None,
        "createdAt": SERVER_TIMESTAMP,
        "lastMessage": empty_last_message(),
    })
    post_system_message(chat_id, f"{name} создан")

    logger.info(f"Group chat {chat_id} created by {creator_id} with {len(participants)} participants")
    return chat_id


def add_user_to_group_chat(chat_id, user_id, by_admin_id):
    chat = _get_group_chat(chat_id)
    _require_chat_admin(chat, by_admin_id)
    if user_id in (chat.get("participants") or []):
        raise AlreadyInState(ALREADY_MEMBER)

    get_store().update(CHATS, chat_id, {"participants": ArrayUnion(user_id)})
    post_system_message(
        chat_id, f"{get_user_name(by_admin_id)} добавил(а) {get_user_name(user_id)} в чат"
    )
    logger.info(f"User {user_id} added to chat {chat_id} by {by_admin_id}")


def remove_user_from_group_chat(chat_id, user_id, by_id, is_leaving=False):
    chat = _get_group_chat(chat_id)
    if user_id != by_id:
        _require_chat_admin(chat, by_id)
    leaving = is_leaving or user_id == by_id
    if user_id not in (chat.get("participants") or []):
        raise NotFound(NOT_A_MEMBER)

    admins = chat.get("admins") or []
    changes = {"participants": ArrayRemove(user_id)}
    if user_id in admins:
        changes["admins"] = ArrayRemove(user_id)
    get_store().update(CHATS, chat_id, changes)

    user_name = get_user_name(user_id)
    if leaving:
        text = f"{user_name} покинул(а) чат"
    else:
        text = f"{get_user_name(by_id)} удалил(а) {user_name} из чата"
    post_system_message(chat_id, text)

    if admins and set(admins) == {user_id}:
        logger.warning(f"Group chat {chat_id} has no admins left")
    logger.info(f"User {user_id} removed from chat {chat_id} by {by_id}")


def make_user_admin(chat_id, user_id, by_admin_id):
    chat = _get_group_chat(chat_id)
    _require_chat_admin(chat, by_admin_id)
    if user_id not in (chat.get("participants") or []):
        raise NotFound(NOT_A_MEMBER)
    if user_id in (chat.get("admins") or []):
        raise AlreadyInState(ALREADY_ADMIN)

    get_store().update(CHATS, chat_id, {"admins": ArrayUnion(user_id)})
    post_system_message(
        chat_id, f"{get_user_name(by_admin_id)} назначил(а) {get_user_name(user_id)} администратором"
    )
    logger.info(f"User {user_id} promoted in chat {chat_id} by {by_admin_id}")


def update_group_chat(chat_id, by_admin_id, name=None, photo_url=None):
    """
    Rename the chat and/or change its photo.

    Only fields that differ from the current state are written. Returns
    ``False`` (and writes nothing) when nothing changed.
    """
    chat = _get_group_chat(chat_id)
    _require_chat_admin(chat, by_admin_id)

    changes = {}
    if name is not None:
        name = name.strip()
        if name and name != chat.get("name"):
            changes["name"] = name
    if photo_url is not None and photo_url != chat.get("photoURL"):
        changes["photoURL"] = photo_url

    if not changes:
        return False

    get_store().update(CHATS, chat_id, changes)

    admin_name = get_user_name(by_admin_id)
    if "name" in changes:
        post_system_message(chat_id, f'{admin_name} Название чата изменено на "{changes["name"]}"')
    else:
        post_system_message(chat_id, f"{admin_name} Аватар чата был обновлен")
    return True


# ============================================================================
# READ SIDE
# ============================================================================

def get_chat_info(chat_id):
    return get_store().get_or_raise(CHATS, chat_id, CHAT_NOT_FOUND)


def get_user_chats(user_id):
    return get_store().query(
        CHATS, [where("participants", "array-contains", user_id)],
        order_by="lastMessage.timestamp", descending=True,
    )
