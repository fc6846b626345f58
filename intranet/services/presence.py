"""
Online presence.

``userStatus/<uid>`` holds ``{online, lastSeen}``. A user counts as online
only while flagged online AND seen within ``ONLINE_THRESHOLD_SECONDS``, so a
client that vanished without signing out drops offline by itself.
"""

import logging
from datetime import timedelta

from django.conf import settings

from ..schema import USER_STATUS
from ..store import SERVER_TIMESTAMP, get_store

logger = logging.getLogger(__name__)


def _write_status(user_id, online):
    try:
        get_store().set(
            USER_STATUS, user_id,
            {"online": online, "lastSeen": SERVER_TIMESTAMP},
            merge=True,
        )
    except Exception:
        logger.warning(f"Could not update presence for {user_id}", exc_info=True)
        return False
    return True


def set_user_online(user_id):
    return _write_status(user_id, True)


def set_user_offline(user_id):
    return _write_status(user_id, False)


def status_from_document(document, now=None):
    if document is None:
        return {"online": False, "lastSeen": None}
    last_seen = document.get("lastSeen")
    now = now or get_store().now()
    threshold = timedelta(seconds=settings.ONLINE_THRESHOLD_SECONDS)
    fresh = last_seen is not None and now - last_seen <= threshold
    return {"online": bool(document.get("online")) and fresh, "lastSeen": last_seen}


def get_user_online_status(user_id):
    return status_from_document(get_store().get(USER_STATUS, user_id))


def subscribe_to_user_status(user_id, callback):
    """Call ``callback(status)`` now and whenever the user's status changes."""

    def on_change(documents):
        document = next((doc for doc in documents if doc.id == user_id), None)
        callback(status_from_document(document))

    return get_store().subscribe(USER_STATUS, [], on_change)
