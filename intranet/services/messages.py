"""
Private chats and chat messages.

Sending a message writes the message, refreshes the chat's ``lastMessage``
snapshot and, in private chats, notifies the other participant. Only the
first message of an unread run is also mailed.
"""

import logging

from ..errors import InvalidArgument, NotFound, PermissionDenied
from ..schema import CHATS, MESSAGES, ChatType
from ..store import SERVER_TIMESTAMP, get_store, where
from .chat import CHAT_NOT_FOUND, empty_last_message
from .email import email_user, send_message_notification
from .notifications import create_message_notification, find_unread_message_notification

logger = logging.getLogger(__name__)

MESSAGE_NOT_FOUND = "Сообщение не найдено"
NOT_A_PARTICIPANT = "Вы не являетесь участником этого чата"


def file_summary(file_type):
    if (file_type or "").startswith("image/"):
        return "Отправил(а) изображение"
    if (file_type or "").startswith("video/"):
        return "Отправил(а) видео"
    return "Отправил(а) файл"


def create_private_chat(user_id, other_user_id):
    """Return the private chat between two users, creating it on first use."""
    if user_id == other_user_id:
        raise InvalidArgument("Нельзя создать чат с самим собой")

    store = get_store()
    for chat in store.query(CHATS, [
        where("type", "==", ChatType.PRIVATE),
        where("participants", "array-contains", user_id),
    ]):
        if other_user_id in (chat.get("participants") or []):
            return chat.id

    return store.create(CHATS, {
        "type": ChatType.PRIVATE,
        "participants": [user_id, other_user_id],
        "createdAt": SERVER_TIMESTAMP,
        "lastMessage": empty_last_message(),
    })


def send_message(chat_id, sender, text="", file=None):
    """
    Post a message from ``sender`` (an Actor) into ``chat_id``.

    ``file`` is an optional ``FileUploadResult`` already stored in the blob
    store. Returns the message id.
    """
    text = (text or "").strip()
    if not text and file is None:
        raise InvalidArgument("Сообщение не может быть пустым")

    store = get_store()
    chat = store.get_or_raise(CHATS, chat_id, CHAT_NOT_FOUND)
    participants = chat.get("participants") or []
    if sender.user_id not in participants:
        raise PermissionDenied(NOT_A_PARTICIPANT)

    message = {
        "chatId": chat_id,
        "senderId": sender.user_id,
        "text": text,
        "timestamp": SERVER_TIMESTAMP,
        "read": False,
        "edited": False,
        "isSystemMessage": False,
    }
    if file is not None:
        message.update({
            "fileUrl": file.url,
            "fileName": file.file_name,
            "fileType": file.file_type,
        })
    message_id = store.create(MESSAGES, message)

    store.update(CHATS, chat_id, {
        "lastMessage": {
            "text": text or file_summary(file.file_type),
            "senderId": sender.user_id,
            "timestamp": SERVER_TIMESTAMP,
        },
    })

    if chat.get("type") == ChatType.PRIVATE:
        for recipient_id in participants:
            if recipient_id == sender.user_id:
                continue
            try:
                first_unread = find_unread_message_notification(sender.user_id, recipient_id) is None
                create_message_notification(
                    sender.user_id, sender.display_name, sender.photo_url, recipient_id
                )
                if first_unread:
                    email_user(
                        recipient_id, send_message_notification,
                        sender.display_name, text or file_summary(file.file_type),
                    )
            except Exception:
                logger.warning(f"Message notification to {recipient_id} failed", exc_info=True)

    return message_id


def _get_own_message(message_id, user_id):
    message = get_store().get_or_raise(MESSAGES, message_id, MESSAGE_NOT_FOUND)
    if message.get("isSystemMessage") or message.get("senderId") != user_id:
        raise PermissionDenied("Можно изменять только свои сообщения")
    return message


def edit_message(message_id, editor_id, text):
    text = (text or "").strip()
    if not text:
        raise InvalidArgument("Сообщение не может быть пустым")
    _get_own_message(message_id, editor_id)
    get_store().update(MESSAGES, message_id, {"text": text, "edited": True})


def delete_message(message_id, user_id):
    _get_own_message(message_id, user_id)
    get_store().delete(MESSAGES, message_id)


def get_chat_messages(chat_id):
    return get_store().query(
        MESSAGES, [where("chatId", "==", chat_id)], order_by="timestamp"
    )


def mark_chat_messages_read(chat_id, reader_id):
    """Mark messages of other participants as read. Returns how many changed."""
    store = get_store()
    chat = store.get(CHATS, chat_id)
    if chat is None:
        raise NotFound(CHAT_NOT_FOUND)
    if reader_id not in (chat.get("participants") or []):
        raise PermissionDenied(NOT_A_PARTICIPANT)

    unread = store.query(MESSAGES, [
        where("chatId", "==", chat_id),
        where("read", "==", False),
        where("senderId", "!=", reader_id),
    ])
    for message in unread:
        store.update(MESSAGES, message.id, {"read": True})
    return len(unread)
