"""
Posts, likes and comments.

Author name and photo are copied onto posts and comments at write time and
are never re-synchronized when the profile changes.
"""

import logging

from ..errors import InvalidArgument, NotFound, PermissionDenied
from ..schema import COMMENTS, NOTIFICATIONS, POSTS, NotificationType
from ..store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Increment, get_store, where
from .email import email_user, send_comment_notification, send_like_notification
from .notifications import (
    create_comment_notification, create_like_notification, dedup_notification_id,
)

logger = logging.getLogger(__name__)

POST_NOT_FOUND = "Пост не найден"
COMMENT_NOT_FOUND = "Комментарий не найден"


def normalize_tags(tags):
    result = []
    for tag in tags or ():
        tag = str(tag).strip().lstrip("#").lower()
        if tag and tag not in result:
            result.append(tag)
    return result


# ============================================================================
# POSTS
# ============================================================================

def create_post(author, content, tags=(), files=()):
    content = (content or "").strip()
    files = list(files or ())
    if not content and not files:
        raise InvalidArgument("Пост не может быть пустым")

    post_id = get_store().create(POSTS, {
        "authorId": author.user_id,
        "authorName": author.display_name,
        "authorPhotoURL": author.photo_url,
        "content": content,
        "tags": normalize_tags(tags),
        "fileUrls": [f.url for f in files],
        "fileTypes": [f.file_type for f in files],
        "likes": [],
        "commentsCount": 0,
        "createdAt": SERVER_TIMESTAMP,
    })
    logger.info(f"Post {post_id} created by {author.user_id}")
    return post_id


def get_post(post_id):
    return get_store().get(POSTS, post_id)


def get_posts(limit=10, start_after=None):
    """Newest posts first; ``start_after`` is the id of the last post already shown."""
    posts = get_store().query(POSTS, order_by="createdAt", descending=True)
    if start_after:
        ids = [post.id for post in posts]
        if start_after in ids:
            posts = posts[ids.index(start_after) + 1:]
    return posts[:limit]


def search_posts_by_tag(tag, limit=20):
    tags = normalize_tags([tag])
    if not tags:
        return []
    return get_store().query(
        POSTS, [where("tags", "array-contains", tags[0])],
        order_by="createdAt", descending=True, limit=limit,
    )


def filter_posts(date_from=None, date_to=None, author_id=None, popular=False,
                 with_attachments=False, limit=20):
    filters = []
    if date_from:
        filters.append(where("createdAt", ">=", date_from))
    if date_to:
        filters.append(where("createdAt", "<=", date_to))
    if author_id:
        filters.append(where("authorId", "==", author_id))

    posts = get_store().query(POSTS, filters, order_by="createdAt", descending=True)
    if with_attachments:
        posts = [post for post in posts if post.get("fileUrls")]
    if popular:
        posts = sorted(posts, key=lambda post: len(post.get("likes") or []), reverse=True)
    return posts[:limit]


def delete_own_post(post_id, actor):
    store = get_store()
    post = store.get_or_raise(POSTS, post_id, POST_NOT_FOUND)
    if post.get("authorId") != actor.user_id:
        raise PermissionDenied("Можно удалять только свои посты")
    store.delete(POSTS, post_id)


# ============================================================================
# LIKES
# ============================================================================

def toggle_like(post_id, actor):
    """Like or unlike ``post_id``. Returns True when the post is now liked."""
    store = get_store()
    post = store.get_or_raise(POSTS, post_id, POST_NOT_FOUND)

    if actor.user_id in (post.get("likes") or []):
        store.update(POSTS, post_id, {"likes": ArrayRemove(actor.user_id)})
        return False

    store.update(POSTS, post_id, {"likes": ArrayUnion(actor.user_id)})
    author_id = post.get("authorId")
    if author_id and author_id != actor.user_id:
        try:
            first_like = store.get(NOTIFICATIONS, dedup_notification_id(
                NotificationType.LIKE, actor.user_id, author_id, post_id
            )) is None
            create_like_notification(
                actor.user_id, actor.display_name, actor.photo_url, author_id, post_id
            )
            if first_like:
                email_user(author_id, send_like_notification, actor.display_name)
        except Exception:
            logger.warning(f"Like notification for post {post_id} failed", exc_info=True)
    return True


# ============================================================================
# COMMENTS
# ============================================================================

def add_comment(post_id, actor, text):
    text = (text or "").strip()
    if not text:
        raise InvalidArgument("Комментарий не может быть пустым")

    store = get_store()
    post = store.get_or_raise(POSTS, post_id, POST_NOT_FOUND)
    comment_id = store.create(COMMENTS, {
        "postId": post_id,
        "authorId": actor.user_id,
        "authorName": actor.display_name,
        "authorPhotoURL": actor.photo_url,
        "text": text,
        "createdAt": SERVER_TIMESTAMP,
    })
    store.update(POSTS, post_id, {"commentsCount": Increment(1)})

    author_id = post.get("authorId")
    if author_id and author_id != actor.user_id:
        try:
            create_comment_notification(
                actor.user_id, actor.display_name, actor.photo_url, author_id, post_id, text,
                comment_id=comment_id,
            )
            email_user(author_id, send_comment_notification, actor.display_name, text)
        except Exception:
            logger.warning(f"Comment notification for post {post_id} failed", exc_info=True)
    return comment_id


def get_post_comments(post_id):
    return get_store().query(COMMENTS, [where("postId", "==", post_id)], order_by="createdAt")


def delete_own_comment(comment_id, actor):
    store = get_store()
    comment = store.get(COMMENTS, comment_id)
    if comment is None:
        raise NotFound(COMMENT_NOT_FOUND)
    if comment.get("authorId") != actor.user_id:
        raise PermissionDenied("Можно удалять только свои комментарии")

    store.delete(COMMENTS, comment_id)
    post_id = comment.get("postId")
    if post_id and store.get(POSTS, post_id) is not None:
        store.update(POSTS, post_id, {"commentsCount": Increment(-1)})
