import json
import logging
from datetime import datetime, time
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .actors import Actor
from .errors import InvalidArgument, PermissionDenied, ServiceError
from .schema import NOTIFICATIONS, USERS
from .services import (
    administration, auth, chat, files, messages, moderation, notifications,
    posts, presence, users,
)
from .store import get_store

# Logger
logger = logging.getLogger(__name__)


def service_errors(view):
    """Turn service exceptions into JSON error responses."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ServiceError as e:
            return JsonResponse({"error": e.message}, status=e.status)
    return wrapper


def _body(request):
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            raise InvalidArgument("Некорректный JSON")
        if not isinstance(data, dict):
            raise InvalidArgument("Некорректный JSON")
        return data
    return request.POST.dict()


def _actor(request):
    return auth.verify(request) or Actor(user_id=auth.uid_for(request.user))


def _docs(documents):
    return [document.to_dict() for document in documents]


def _int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _datetime_param(value, end_of_day=False):
    """Aware datetime from an ISO datetime or a plain ``YYYY-MM-DD`` date."""
    if not value:
        return None
    try:
        parsed = parse_datetime(value)
        if parsed is None:
            day = parse_date(value)
            if day is not None:
                parsed = datetime.combine(day, time.max if end_of_day else time.min)
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidArgument(f"Некорректная дата: {value}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _own_notification(request, notification_id):
    notification = get_store().get(NOTIFICATIONS, notification_id)
    if notification is None or notification.get("recipientId") != _actor(request).user_id:
        return None
    return notification


def _require_participant(actor, chat_id):
    info = chat.get_chat_info(chat_id)
    if actor.user_id not in (info.get("participants") or []):
        raise PermissionDenied(messages.NOT_A_PARTICIPANT)
    return info


# ============================================================================
# AUTH
# ============================================================================

@csrf_exempt
@require_POST
@service_errors
def register(request):
    data = _body(request)
    uid = auth.register(data.get("email"), data.get("password"), data.get("displayName"))
    return JsonResponse({"uid": uid, "approved": False}, status=201)


@csrf_exempt
@require_POST
@service_errors
def login_view(request):
    data = _body(request)
    profile = auth.sign_in(request, data.get("email"), data.get("password"))
    return JsonResponse({"user": profile.to_dict() if profile else None})


@csrf_exempt
@require_POST
def logout_view(request):
    auth.sign_out(request)
    return JsonResponse({"message": "Logged out"})


@csrf_exempt
@require_POST
@service_errors
def password_reset(request):
    auth.send_password_reset(_body(request).get("email"), request=request)
    return JsonResponse({"message": "Письмо для сброса пароля отправлено"})


@login_required
@require_GET
def me(request):
    actor = _actor(request)
    profile = get_store().get(USERS, actor.user_id)
    return JsonResponse({
        "user": profile.to_dict() if profile else None,
        "blockActive": bool(profile) and moderation.is_block_active(profile),
    })


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@login_required
@require_GET
def notification_list(request):
    actor = _actor(request)
    unread_only = request.GET.get("unread") == "1"
    items = notifications.get_notifications(
        actor.user_id, unread_only=unread_only, limit=_int(request.GET.get("limit"), 50)
    )
    return JsonResponse({
        "notifications": _docs(items),
        "unread": notifications.count_unread(actor.user_id),
    })


@csrf_exempt
@login_required
@require_POST
def mark_notification_read(request, notification_id):
    if _own_notification(request, notification_id) is None:
        return JsonResponse({"success": False, "error": "Notification not found."}, status=404)
    success = notifications.mark_notification_as_read(notification_id)
    return JsonResponse({"success": success}, status=200 if success else 500)


@csrf_exempt
@login_required
@require_POST
def mark_all_notifications_read(request):
    success = notifications.mark_all_notifications_as_read(_actor(request).user_id)
    return JsonResponse({"success": success}, status=200 if success else 500)


@csrf_exempt
@login_required
@require_POST
def delete_notification(request, notification_id):
    if _own_notification(request, notification_id) is None:
        return JsonResponse({"success": False, "error": "Notification not found."}, status=404)
    success = notifications.delete_notification(notification_id)
    return JsonResponse({"success": success}, status=200 if success else 500)


@csrf_exempt
@login_required
@require_POST
def clear_all_notifications(request):
    success = notifications.delete_all_notifications(_actor(request).user_id)
    return JsonResponse({"success": success}, status=200 if success else 500)


# ============================================================================
# MODERATION
# ============================================================================

@csrf_exempt
@login_required
@require_POST
@service_errors
def block_user(request, user_id):
    data = _body(request)
    action_id = moderation.block_user(
        _actor(request), user_id, data.get("reason"), _int(data.get("durationDays"), 0)
    )
    return JsonResponse({"actionId": action_id})


@csrf_exempt
@login_required
@require_POST
@service_errors
def unblock_user(request, user_id):
    action_id = moderation.unblock_user(_actor(request), user_id, _body(request).get("reason"))
    return JsonResponse({"actionId": action_id})


@csrf_exempt
@login_required
@require_POST
@service_errors
def warn_user(request, user_id):
    action_id = moderation.warn_user(_actor(request), user_id, _body(request).get("reason"))
    return JsonResponse({"actionId": action_id})


@csrf_exempt
@login_required
@require_POST
@service_errors
def moderate_post(request, post_id):
    action_id = moderation.delete_post_with_reason(
        _actor(request), post_id, _body(request).get("reason")
    )
    return JsonResponse({"actionId": action_id})


@csrf_exempt
@login_required
@require_POST
@service_errors
def moderate_comment(request, comment_id):
    action_id = moderation.delete_comment_with_reason(
        _actor(request), comment_id, _body(request).get("reason")
    )
    return JsonResponse({"actionId": action_id})


@login_required
@require_GET
@service_errors
def moderation_history(request, user_id):
    actor = _actor(request)
    if actor.user_id != user_id:
        actor.require_admin()
    return JsonResponse({"actions": _docs(moderation.get_user_moderation_history(user_id))})


@csrf_exempt
@login_required
@require_POST
@service_errors
def release_expired_blocks(request):
    released = moderation.release_expired_blocks(_actor(request))
    return JsonResponse({"released": released})


# ============================================================================
# CHATS
# ============================================================================

@login_required
@require_GET
def chat_list(request):
    return JsonResponse({"chats": _docs(chat.get_user_chats(_actor(request).user_id))})


@csrf_exempt
@login_required
@require_POST
@service_errors
def create_private_chat(request):
    chat_id = messages.create_private_chat(_actor(request).user_id, _body(request).get("userId"))
    return JsonResponse({"chatId": chat_id})


@csrf_exempt
@login_required
@require_POST
@service_errors
def create_group_chat(request):
    data = _body(request)
    chat_id = chat.create_group_chat(
        _actor(request).user_id, data.get("name"),
        data.get("participants") or [], data.get("photoURL"),
    )
    return JsonResponse({"chatId": chat_id}, status=201)


@login_required
@require_GET
@service_errors
def chat_detail(request, chat_id):
    info = _require_participant(_actor(request), chat_id)
    return JsonResponse({"chat": info.to_dict()})


@csrf_exempt
@login_required
@require_POST
@service_errors
def add_chat_member(request, chat_id):
    chat.add_user_to_group_chat(chat_id, _body(request).get("userId"), _actor(request).user_id)
    return JsonResponse({"success": True})


@csrf_exempt
@login_required
@require_POST
@service_errors
def remove_chat_member(request, chat_id, user_id):
    chat.remove_user_from_group_chat(chat_id, user_id, _actor(request).user_id)
    return JsonResponse({"success": True})


@csrf_exempt
@login_required
@require_POST
@service_errors
def leave_chat(request, chat_id):
    actor = _actor(request)
    chat.remove_user_from_group_chat(chat_id, actor.user_id, actor.user_id, is_leaving=True)
    return JsonResponse({"success": True})


@csrf_exempt
@login_required
@require_POST
@service_errors
def make_chat_admin(request, chat_id, user_id):
    chat.make_user_admin(chat_id, user_id, _actor(request).user_id)
    return JsonResponse({"success": True})


@csrf_exempt
@login_required
@require_POST
@service_errors
def update_chat(request, chat_id):
    data = _body(request)
    changed = chat.update_group_chat(
        chat_id, _actor(request).user_id, name=data.get("name"), photo_url=data.get("photoURL")
    )
    return JsonResponse({"updated": changed})


@csrf_exempt
@login_required
@service_errors
def chat_messages(request, chat_id):
    if request.method not in ("GET", "POST"):
        return JsonResponse({"error": "GET or POST request required"}, status=405)

    actor = _actor(request)
    _require_participant(actor, chat_id)
    if request.method == "POST":
        upload = request.FILES.get("file")
        result = files.upload_file(upload, folder=f"chats/{chat_id}") if upload else None
        message_id = messages.send_message(
            chat_id, actor, text=_body(request).get("text", ""), file=result
        )
        return JsonResponse({"messageId": message_id}, status=201)
    return JsonResponse({"messages": _docs(messages.get_chat_messages(chat_id))})


@csrf_exempt
@login_required
@require_POST
@service_errors
def mark_chat_read(request, chat_id):
    count = messages.mark_chat_messages_read(chat_id, _actor(request).user_id)
    return JsonResponse({"marked": count})


@csrf_exempt
@login_required
@require_POST
@service_errors
def edit_message(request, message_id):
    messages.edit_message(message_id, _actor(request).user_id, _body(request).get("text"))
    return JsonResponse({"message": "Message updated"})


@csrf_exempt
@login_required
@require_POST
@service_errors
def delete_message(request, message_id):
    messages.delete_message(message_id, _actor(request).user_id)
    return JsonResponse({"message": "Message deleted"})


# ============================================================================
# POSTS, LIKES & COMMENTS
# ============================================================================

@login_required
@require_GET
@service_errors
def post_list(request):
    params = request.GET
    if any(key in params for key in ("from", "to", "author", "popular", "attachments")):
        items = posts.filter_posts(
            date_from=_datetime_param(params.get("from")),
            date_to=_datetime_param(params.get("to"), end_of_day=True),
            author_id=params.get("author") or None,
            popular=params.get("popular") == "1",
            with_attachments=params.get("attachments") == "1",
            limit=_int(params.get("limit"), 20),
        )
    else:
        items = posts.get_posts(
            limit=_int(params.get("limit"), 10), start_after=params.get("after") or None
        )
    return JsonResponse({"posts": _docs(items)})


@csrf_exempt
@login_required
@require_POST
@service_errors
def new_post(request):
    data = _body(request)
    attachments = request.FILES.getlist("files")
    for attachment in attachments:
        files.validate_file(attachment)
    uploads = [files.upload_file(f, folder="posts") for f in attachments]
    tags = data.get("tags") or []
    if isinstance(tags, str):
        tags = tags.split(",")
    post_id = posts.create_post(_actor(request), data.get("content"), tags=tags, files=uploads)
    return JsonResponse({"message": "Posted!", "post_id": post_id}, status=201)


@login_required
@require_GET
def posts_by_tag(request, tag):
    return JsonResponse({"posts": _docs(posts.search_posts_by_tag(tag))})


@login_required
@require_GET
def post_detail(request, post_id):
    post = posts.get_post(post_id)
    if post is None:
        return JsonResponse({"error": posts.POST_NOT_FOUND}, status=404)
    return JsonResponse({"post": post.to_dict()})


@csrf_exempt
@login_required
@require_POST
@service_errors
def delete_post(request, post_id):
    posts.delete_own_post(post_id, _actor(request))
    return JsonResponse({"message": "Post deleted"})


@csrf_exempt
@login_required
@require_POST
@service_errors
def toggle_like(request, post_id):
    liked = posts.toggle_like(post_id, _actor(request))
    return JsonResponse({"liked": liked})


@csrf_exempt
@login_required
@service_errors
def post_comments(request, post_id):
    if request.method == "POST":
        comment_id = posts.add_comment(post_id, _actor(request), _body(request).get("text"))
        return JsonResponse({"commentId": comment_id}, status=201)
    if request.method == "GET":
        return JsonResponse({"comments": _docs(posts.get_post_comments(post_id))})
    return JsonResponse({"error": "GET or POST request required"}, status=405)


@csrf_exempt
@login_required
@require_POST
@service_errors
def delete_comment(request, comment_id):
    posts.delete_own_comment(comment_id, _actor(request))
    return JsonResponse({"status": "success", "message": "Comment deleted"})


# ============================================================================
# USERS & PROFILE
# ============================================================================

@login_required
@require_GET
def search_users(request):
    return JsonResponse({"users": _docs(users.search_users(request.GET.get("q", "")))})


@login_required
@require_GET
@service_errors
def user_detail(request, user_id):
    user = users.get_user(user_id)
    return JsonResponse({
        "user": user.to_dict(),
        "status": presence.get_user_online_status(user_id),
    })


@login_required
@require_GET
@service_errors
def user_followers(request, user_id):
    return JsonResponse({
        "followers": _docs(users.get_followers(user_id)),
        "following": _docs(users.get_following(user_id)),
    })


@csrf_exempt
@login_required
@require_POST
@service_errors
def toggle_follow(request, user_id):
    following = users.toggle_follow(_actor(request), user_id)
    return JsonResponse({"following": following})


@csrf_exempt
@login_required
@require_POST
@service_errors
def edit_profile(request):
    data = _body(request)
    photo_url = data.get("photoURL")
    upload = request.FILES.get("photo")
    if upload:
        result = files.upload_file(upload, folder="avatars")
        if not result.is_image:
            raise InvalidArgument("Аватар должен быть изображением")
        photo_url = result.url
    changes = users.update_profile(
        _actor(request), display_name=data.get("displayName"),
        bio=data.get("bio"), photo_url=photo_url,
    )
    return JsonResponse({"updated": sorted(changes)})


@login_required
@require_GET
def user_status(request, user_id):
    return JsonResponse(presence.get_user_online_status(user_id))


@csrf_exempt
@login_required
@require_POST
@service_errors
def upload(request):
    upload_file = request.FILES.get("file")
    if upload_file is None:
        raise InvalidArgument("Файл не передан")
    result = files.upload_file(upload_file, folder=request.POST.get("folder") or "uploads")
    return JsonResponse(result.to_dict(), status=201)


# ============================================================================
# ADMINISTRATION
# ============================================================================

@login_required
@require_GET
@service_errors
def admin_users(request):
    return JsonResponse({"users": _docs(administration.get_all_users(_actor(request)))})


@login_required
@require_GET
@service_errors
def admin_pending_users(request):
    return JsonResponse({"users": _docs(administration.get_pending_users(_actor(request)))})


@csrf_exempt
@login_required
@require_POST
@service_errors
def admin_approve_user(request, user_id):
    administration.approve_user(_actor(request), user_id)
    return JsonResponse({"success": True})


@csrf_exempt
@login_required
@require_POST
@service_errors
def admin_reject_user(request, user_id):
    administration.reject_user(_actor(request), user_id)
    return JsonResponse({"success": True})


@csrf_exempt
@login_required
@require_POST
@service_errors
def admin_delete_user(request, user_id):
    return JsonResponse(administration.delete_user(_actor(request), user_id))


@csrf_exempt
@login_required
@require_POST
@service_errors
def admin_toggle_role(request, user_id):
    is_admin = bool(_body(request).get("isAdmin"))
    administration.toggle_admin_role(_actor(request), user_id, is_admin)
    return JsonResponse({"isAdmin": is_admin})


@login_required
@require_GET
@service_errors
def admin_stats(request):
    return JsonResponse(administration.get_platform_stats(_actor(request)))
