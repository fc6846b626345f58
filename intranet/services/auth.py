"""
Authentication provider backed by ``django.contrib.auth``.

A Django user is the login identity; its profile document lives in
``users/<str(user.pk)>``. Sign-in does not enforce approval or blocks: the
profile is returned and the caller (middleware, client) decides.
"""

import logging

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model, login, logout
from django.contrib.auth.forms import PasswordResetForm
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction

from ..actors import Actor
from ..errors import AlreadyInState, InvalidArgument, PermissionDenied
from ..schema import USERS
from ..store import get_store
from .presence import set_user_offline, set_user_online
from .users import create_user_profile

logger = logging.getLogger(__name__)


def uid_for(user):
    return str(user.pk)


def register(email, password, display_name):
    """Create the login identity and its pending profile. Returns the uid."""
    email = (email or "").strip().lower()
    display_name = (display_name or "").strip()
    if not display_name:
        raise InvalidArgument("Укажите имя")
    try:
        validate_email(email)
        validate_password(password)
    except ValidationError as e:
        raise InvalidArgument(" ".join(e.messages))

    User = get_user_model()
    if User.objects.filter(username=email).exists():
        raise AlreadyInState("Пользователь с таким email уже существует")

    with transaction.atomic():
        user = User.objects.create_user(username=email, email=email, password=password)
        uid = create_user_profile(uid_for(user), display_name, email)

    logger.info(f"Registered user {uid} <{email}>")
    return uid


def sign_in(request, email, password):
    """Log the request in and return the profile document."""
    email = (email or "").strip().lower()
    user = authenticate(request, username=email, password=password)
    if user is None:
        raise PermissionDenied("Неверный email или пароль")

    login(request, user)
    uid = uid_for(user)
    set_user_online(uid)
    return get_store().get(USERS, uid)


def sign_out(request):
    if request.user.is_authenticated:
        set_user_offline(uid_for(request.user))
    logout(request)


def verify(request):
    """Actor for an authenticated request, ``None`` for anonymous ones."""
    if not request.user.is_authenticated:
        return None
    uid = uid_for(request.user)
    profile = get_store().get(USERS, uid)
    if profile is None:
        return Actor(user_id=uid)
    return Actor.from_user(profile)


def send_password_reset(email, request=None):
    form = PasswordResetForm({"email": email or ""})
    if not form.is_valid():
        raise InvalidArgument("Некорректный email")

    options = {"from_email": settings.DEFAULT_FROM_EMAIL}
    if request is None:
        options["domain_override"] = settings.SITE_DOMAIN
    else:
        options["request"] = request
        options["use_https"] = request.is_secure()
    form.save(**options)
    return True


def delete_account(uid):
    """Remove the login identity for ``uid``. Returns False if there was none."""
    if not str(uid).isdigit():
        return False
    deleted, _ = get_user_model().objects.filter(pk=uid).delete()
    return deleted > 0
