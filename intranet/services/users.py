"""User profiles and the follow graph."""

import logging

from ..errors import InvalidArgument
from ..schema import USERS
from ..store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, get_store
from .notifications import create_follow_notification

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "Пользователь не найден"
SEARCH_SCAN_LIMIT = 100


def create_user_profile(uid, display_name, email):
    """Profile document written at registration; waits for admin approval."""
    get_store().set(USERS, uid, {
        "uid": uid,
        "displayName": display_name,
        "email": email,
        "photoURL": "",
        "bio": "",
        "followers": [],
        "following": [],
        "approved": False,
        "isAdmin": False,
        "blocked": False,
        "warnings": 0,
        "createdAt": SERVER_TIMESTAMP,
    })
    return uid


def get_user(user_id):
    return get_store().get_or_raise(USERS, user_id, USER_NOT_FOUND)


def search_users(term):
    term = (term or "").strip().lower()
    if not term:
        return []
    users = get_store().query(USERS, limit=SEARCH_SCAN_LIMIT)
    return [
        user for user in users
        if term in (user.get("displayName") or "").lower()
        or term in (user.get("email") or "").lower()
    ]


def _resolve_users(user_ids):
    store = get_store()
    users = []
    for user_id in dict.fromkeys(user_ids or ()):
        user = store.get(USERS, user_id)
        if user is not None:
            users.append(user)
    return users


def get_followers(user_id):
    return _resolve_users(get_user(user_id).get("followers"))


def get_following(user_id):
    return _resolve_users(get_user(user_id).get("following"))


def toggle_follow(actor, target_id):
    """Follow or unfollow ``target_id``. Returns True when now following."""
    if actor.user_id == target_id:
        raise InvalidArgument("Нельзя подписаться на самого себя")

    store = get_store()
    target = get_user(target_id)

    if actor.user_id in (target.get("followers") or []):
        store.update(USERS, target_id, {"followers": ArrayRemove(actor.user_id)})
        store.update(USERS, actor.user_id, {"following": ArrayRemove(target_id)})
        return False

    store.update(USERS, target_id, {"followers": ArrayUnion(actor.user_id)})
    store.update(USERS, actor.user_id, {"following": ArrayUnion(target_id)})
    try:
        create_follow_notification(actor.user_id, actor.display_name, actor.photo_url, target_id)
    except Exception:
        logger.warning(f"Follow notification to {target_id} failed", exc_info=True)
    return True


def update_profile(actor, display_name=None, bio=None, photo_url=None):
    changes = {}
    if display_name is not None:
        display_name = display_name.strip()
        if not display_name:
            raise InvalidArgument("Имя не может быть пустым")
        changes["displayName"] = display_name
    if bio is not None:
        changes["bio"] = bio.strip()
    if photo_url is not None:
        changes["photoURL"] = photo_url
    if changes:
        get_store().update(USERS, actor.user_id, changes)
    return changes
