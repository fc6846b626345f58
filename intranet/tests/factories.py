"""Helpers that seed the record store for tests."""

from intranet.actors import Actor
from intranet.schema import COMMENTS, POSTS, USERS
from intranet.store import SERVER_TIMESTAMP, get_store


def make_user(user_id, name=None, is_admin=False, **fields):
    name = name or user_id.title()
    data = {
        "uid": user_id,
        "displayName": name,
        "email": f"{user_id}@corp.example",
        "photoURL": f"https://img.example/{user_id}.png",
        "bio": "",
        "followers": [],
        "following": [],
        "approved": True,
        "isAdmin": is_admin,
        "blocked": False,
        "warnings": 0,
        "createdAt": SERVER_TIMESTAMP,
    }
    data.update(fields)
    get_store().set(USERS, user_id, data)
    return Actor(
        user_id=user_id, display_name=name,
        photo_url=data["photoURL"], is_admin=is_admin,
    )


def make_post(author, content="Hello team", **fields):
    data = {
        "authorId": author.user_id,
        "authorName": author.display_name,
        "authorPhotoURL": author.photo_url,
        "content": content,
        "tags": [],
        "fileUrls": [],
        "fileTypes": [],
        "likes": [],
        "commentsCount": 0,
        "createdAt": SERVER_TIMESTAMP,
    }
    data.update(fields)
    return get_store().create(POSTS, data)


def make_comment(post_id, author, text="Nice post"):
    return get_store().create(COMMENTS, {
        "postId": post_id,
        "authorId": author.user_id,
        "authorName": author.display_name,
        "authorPhotoURL": author.photo_url,
        "text": text,
        "createdAt": SERVER_TIMESTAMP,
    })
