"""
================================================================================
CORPNET - CUSTOM MIDDLEWARE
================================================================================

@file        middleware.py
@description Blocked-account gate and presence tracking

MODULE PURPOSE
================================================================================
1. BlockedUserMiddleware
   - Answers 403 with the block details for every request of a blocked user
   - Answers 403 {"approved": false} while an account awaits approval
   - Leaves logout, login and the Django admin reachable
   - A block whose ``blockedUntil`` has passed stays in force until an
     admin unblocks the user; the response then carries ``expired=true``

2. UpdateLastSeenMiddleware
   - Marks authenticated users online in ``userStatus``
   - Cache-throttled: one store write per ``LAST_SEEN_WRITE_INTERVAL``
     seconds per user

ERROR HANDLING
================================================================================
Presence writes are best effort and never break the request. The block
check reads the profile document; store errors propagate.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse
from django.utils import timezone

from .schema import USERS
from .services.auth import uid_for
from .services.moderation import BLOCKED_TITLE, is_block_active
from .services.presence import set_user_online
from .store import get_store

logger = logging.getLogger(__name__)

# URL names reachable while blocked or awaiting approval
BLOCK_EXEMPT_URL_NAMES = {"login", "logout", "me"}

PENDING_APPROVAL = "Ваш аккаунт ожидает подтверждения администратором"


# ============================================================================
# BLOCKED USER GATE
# ============================================================================

class BlockedUserMiddleware:
    """
    Refuse service to blocked accounts and to accounts awaiting approval.

    Runs in ``process_view`` so the resolved URL name is known and exempt
    endpoints can be let through.

    Response for a blocked user:
        403 {"error": "Ваш аккаунт заблокирован", "blocked": true,
             "reason": ..., "blockedUntil": ..., "expired": false}

    Response for an account without an approved profile:
        403 {"error": "Ваш аккаунт ожидает подтверждения администратором",
             "approved": false}
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_view(self, request, view_func, view_args, view_kwargs):
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            return None

        match = request.resolver_match
        if match and ('admin' in match.namespaces or match.url_name in BLOCK_EXEMPT_URL_NAMES):
            return None

        profile = get_store().get(USERS, uid_for(user))
        if profile is not None and profile.get("blocked"):
            return self.blocked_response(request, profile)
        if profile is None or profile.get("approved") is not True:
            return JsonResponse({"error": PENDING_APPROVAL, "approved": False}, status=403)
        return None

    def blocked_response(self, request, profile):
        logger.debug(f"Refusing request of blocked user {profile.id} to {request.path}")
        return JsonResponse({
            "error": BLOCKED_TITLE,
            "blocked": True,
            "reason": profile.get("blockedReason"),
            "blockedUntil": profile.get("blockedUntil"),
            "expired": not is_block_active(profile),
        }, status=403)


# ============================================================================
# LAST SEEN / PRESENCE TRACKING
# ============================================================================

class UpdateLastSeenMiddleware:
    """
    Keep ``userStatus/<uid>`` fresh for authenticated users.

    Caching Strategy:
        Key: "last_seen_update_{uid}" holds the time of the last write;
        a new write happens only after LAST_SEEN_WRITE_INTERVAL seconds.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if getattr(request, 'user', None) and request.user.is_authenticated:
            uid = uid_for(request.user)
            now = timezone.now()
            interval = settings.LAST_SEEN_WRITE_INTERVAL

            cache_key = f"last_seen_update_{uid}"
            last_update = cache.get(cache_key)

            if not last_update or (now - last_update) > timedelta(seconds=interval):
                if set_user_online(uid):
                    cache.set(cache_key, now, interval)

        return self.get_response(request)
