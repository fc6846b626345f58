"""
================================================================================
CORPNET - URL CONFIGURATION
================================================================================

@file        urls.py
@description JSON endpoints of the intranet app, mounted under /api/

URL STRUCTURE
================================================================================
1. Authentication      auth/register, auth/login, auth/logout, auth/me,
                       auth/password-reset (+ Django's confirm view)
2. Notifications       notifications/...
3. Moderation          moderation/... (admin only)
4. Chats & Messages    chats/..., messages/...
5. Posts & Comments    posts/..., comments/...
6. Users & Profile     users/..., profile/, files/upload/
7. Administration      admin-panel/... (admin only)

All mutating endpoints are POST; reads are GET. Errors are returned as
{"error": "<message>"} with the matching HTTP status.
"""

from django.contrib.auth import views as auth_views
from django.urls import path

from . import views

urlpatterns = [

    # ========================================================================
    # AUTHENTICATION
    # ========================================================================

    path("auth/register/", views.register, name="register"),
    path("auth/login/", views.login_view, name="login"),
    path("auth/logout/", views.logout_view, name="logout"),
    path("auth/me/", views.me, name="me"),
    path("auth/password-reset/", views.password_reset, name="password_reset"),
    path(
        "auth/reset/<uidb64>/<token>/",
        auth_views.PasswordResetConfirmView.as_view(success_url="/api/auth/reset/done/"),
        name="password_reset_confirm",
    ),
    path(
        "auth/reset/done/",
        auth_views.PasswordResetCompleteView.as_view(),
        name="password_reset_complete",
    ),

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    path("notifications/", views.notification_list, name="notifications"),
    path("notifications/read-all/", views.mark_all_notifications_read, name="mark_all_notifications_read"),
    path("notifications/clear/", views.clear_all_notifications, name="clear_all_notifications"),
    path("notifications/<str:notification_id>/read/", views.mark_notification_read, name="mark_notification_read"),
    path("notifications/<str:notification_id>/delete/", views.delete_notification, name="delete_notification"),

    # ========================================================================
    # MODERATION
    # ========================================================================

    path("moderation/users/<str:user_id>/block/", views.block_user, name="block_user"),
    path("moderation/users/<str:user_id>/unblock/", views.unblock_user, name="unblock_user"),
    path("moderation/users/<str:user_id>/warn/", views.warn_user, name="warn_user"),
    path("moderation/users/<str:user_id>/history/", views.moderation_history, name="moderation_history"),
    path("moderation/posts/<str:post_id>/delete/", views.moderate_post, name="moderate_post"),
    path("moderation/comments/<str:comment_id>/delete/", views.moderate_comment, name="moderate_comment"),
    path("moderation/release-expired/", views.release_expired_blocks, name="release_expired_blocks"),

    # ========================================================================
    # CHATS & MESSAGES
    # ========================================================================

    path("chats/", views.chat_list, name="chats"),
    path("chats/private/", views.create_private_chat, name="create_private_chat"),
    path("chats/group/", views.create_group_chat, name="create_group_chat"),
    path("chats/<str:chat_id>/", views.chat_detail, name="chat_detail"),
    path("chats/<str:chat_id>/update/", views.update_chat, name="update_chat"),
    path("chats/<str:chat_id>/leave/", views.leave_chat, name="leave_chat"),
    path("chats/<str:chat_id>/members/", views.add_chat_member, name="add_chat_member"),
    path("chats/<str:chat_id>/members/<str:user_id>/remove/", views.remove_chat_member, name="remove_chat_member"),
    path("chats/<str:chat_id>/admins/<str:user_id>/", views.make_chat_admin, name="make_chat_admin"),
    path("chats/<str:chat_id>/messages/", views.chat_messages, name="chat_messages"),
    path("chats/<str:chat_id>/read/", views.mark_chat_read, name="mark_chat_read"),
    path("messages/<str:message_id>/edit/", views.edit_message, name="edit_message"),
    path("messages/<str:message_id>/delete/", views.delete_message, name="delete_message"),

    # ========================================================================
    # POSTS & COMMENTS
    # ========================================================================

    path("posts/", views.post_list, name="posts"),
    path("posts/new/", views.new_post, name="new_post"),
    path("posts/tag/<str:tag>/", views.posts_by_tag, name="posts_by_tag"),
    path("posts/<str:post_id>/", views.post_detail, name="post_detail"),
    path("posts/<str:post_id>/delete/", views.delete_post, name="delete_post"),
    path("posts/<str:post_id>/like/", views.toggle_like, name="toggle_like"),
    path("posts/<str:post_id>/comments/", views.post_comments, name="post_comments"),
    path("comments/<str:comment_id>/delete/", views.delete_comment, name="delete_comment"),

    # ========================================================================
    # USERS & PROFILE
    # ========================================================================

    path("users/search/", views.search_users, name="search_users"),
    path("users/<str:user_id>/", views.user_detail, name="user_detail"),
    path("users/<str:user_id>/follows/", views.user_followers, name="user_followers"),
    path("users/<str:user_id>/follow/", views.toggle_follow, name="toggle_follow"),
    path("users/<str:user_id>/status/", views.user_status, name="user_status"),
    path("profile/", views.edit_profile, name="edit_profile"),
    path("files/upload/", views.upload, name="upload"),

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    path("admin-panel/users/", views.admin_users, name="admin_users"),
    path("admin-panel/pending/", views.admin_pending_users, name="admin_pending_users"),
    path("admin-panel/stats/", views.admin_stats, name="admin_stats"),
    path("admin-panel/users/<str:user_id>/approve/", views.admin_approve_user, name="admin_approve_user"),
    path("admin-panel/users/<str:user_id>/reject/", views.admin_reject_user, name="admin_reject_user"),
    path("admin-panel/users/<str:user_id>/delete/", views.admin_delete_user, name="admin_delete_user"),
    path("admin-panel/users/<str:user_id>/role/", views.admin_toggle_role, name="admin_toggle_role"),
]
