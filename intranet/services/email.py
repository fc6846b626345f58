"""
Outbound email provider.

``send_email`` first tries Django's configured mail backend and, when that
fails, posts the message to the HTTP form relay at ``EMAIL_RELAY_URL``.
Delivery is best effort: failures are logged and reported as ``False``,
never raised.

``email_user`` resolves a profile's address for the activity mails sent by
the like, comment and message flows; ``EMAIL_ACTIVITY_NOTIFICATIONS`` turns
those off.
"""

import logging

import requests
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import escape, linebreaks

from ..schema import SYSTEM_SENDER_NAME, USERS, truncate_preview
from ..store import get_store

logger = logging.getLogger(__name__)


def _send_with_django(to, subject, body, from_name):
    message = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=f"{from_name} <{settings.DEFAULT_FROM_EMAIL}>",
        to=[to],
    )
    message.attach_alternative(linebreaks(escape(body)), "text/html")
    try:
        return message.send(fail_silently=False) > 0
    except Exception as e:
        logger.warning(f"Mail backend failed for {to}: {e}")
        return False


def _send_with_relay(to, subject, body, from_name):
    relay_url = settings.EMAIL_RELAY_URL
    if not relay_url:
        return False
    try:
        response = requests.post(
            f"{relay_url.rstrip('/')}/{to}",
            data={
                "_subject": subject,
                "name": from_name,
                "message": body,
                "_captcha": "false",
                "_template": "table",
            },
            headers={"Accept": "application/json"},
            timeout=settings.EMAIL_RELAY_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Email relay failed for {to}: {e}")
        return False
    return True


def send_email(to, subject, body, from_name=SYSTEM_SENDER_NAME):
    if not to:
        return False
    if _send_with_django(to, subject, body, from_name):
        return True
    if _send_with_relay(to, subject, body, from_name):
        return True
    logger.warning(f"Email to {to} was not delivered: {subject}")
    return False


def send_message_notification(to, sender_name, message_text):
    return send_email(
        to,
        f"Новое сообщение от {sender_name}",
        f"{sender_name} отправил(а) вам сообщение:\n\n{truncate_preview(message_text)}",
    )


def send_comment_notification(to, commenter_name, comment_text):
    return send_email(
        to,
        f"{commenter_name} прокомментировал(а) ваш пост",
        f"{commenter_name} оставил(а) комментарий:\n\n{truncate_preview(comment_text)}",
    )


def send_like_notification(to, liker_name):
    return send_email(
        to,
        f"{liker_name} оценил(а) ваш пост",
        f"{liker_name} поставил(а) отметку «Нравится» вашему посту.",
    )


def send_approval_email(to, display_name):
    return send_email(
        to,
        "Ваша учетная запись подтверждена",
        f"Здравствуйте, {display_name}!\n\n"
        "Ваш аккаунт подтвержден администратором. "
        "Добро пожаловать в корпоративную сеть!",
    )


def email_user(user_id, send, *args):
    """Call ``send(<email of user_id>, *args)`` if activity mails are enabled."""
    if not settings.EMAIL_ACTIVITY_NOTIFICATIONS:
        return False
    profile = get_store().get(USERS, user_id)
    if profile is None or not profile.get("email"):
        return False
    return send(profile["email"], *args)
