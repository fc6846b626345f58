"""
Tests for the authentication provider and online presence.
"""
from datetime import timedelta
from unittest import mock

from django.contrib.auth.models import AnonymousUser, User
from django.core import mail
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone

from intranet.errors import AlreadyInState, InvalidArgument
from intranet.schema import USER_STATUS, USERS
from intranet.services import auth, presence
from intranet.store import get_store

from .factories import make_user


class RegisterTest(TestCase):

    def test_register_creates_pending_profile(self):
        uid = auth.register(" New@Corp.Example ", "s3cret-pass", " New Hire ")

        user = User.objects.get(pk=uid)
        self.assertEqual(user.email, "new@corp.example")
        profile = get_store().get(USERS, uid)
        self.assertEqual(profile["displayName"], "New Hire")
        self.assertFalse(profile["approved"])

    def test_invalid_input(self):
        with self.assertRaises(InvalidArgument):
            auth.register("not-an-email", "s3cret-pass", "Name")
        with self.assertRaises(InvalidArgument):
            auth.register("a@corp.example", "123", "Name")
        with self.assertRaises(InvalidArgument):
            auth.register("a@corp.example", "s3cret-pass", " ")
        self.assertFalse(User.objects.exists())

    def test_duplicate_email(self):
        auth.register("a@corp.example", "s3cret-pass", "A")
        with self.assertRaises(AlreadyInState):
            auth.register("A@corp.example", "s3cret-pass", "A again")

    def test_delete_account(self):
        uid = auth.register("a@corp.example", "s3cret-pass", "A")
        self.assertTrue(auth.delete_account(uid))
        self.assertFalse(auth.delete_account(uid))
        self.assertFalse(auth.delete_account("firestore-style-id"))


class VerifyTest(TestCase):

    def test_anonymous_request(self):
        request = RequestFactory().get("/")
        request.user = AnonymousUser()
        self.assertIsNone(auth.verify(request))

    def test_actor_carries_admin_flag(self):
        account = User.objects.create_user(username="admin@corp.example", password="pw-123456")
        make_user(str(account.pk), "Admin", is_admin=True)
        request = RequestFactory().get("/")
        request.user = account

        actor = auth.verify(request)

        self.assertEqual(actor.user_id, str(account.pk))
        self.assertTrue(actor.is_admin)
        self.assertEqual(actor.display_name, "Admin")


@override_settings(SITE_DOMAIN="intranet.corp.example")
class PasswordResetTest(TestCase):

    def test_reset_mail_sent_for_known_user(self):
        auth.register("a@corp.example", "s3cret-pass", "A")
        self.assertTrue(auth.send_password_reset("a@corp.example"))
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("intranet.corp.example", mail.outbox[0].body)

    def test_unknown_user_sends_nothing(self):
        self.assertTrue(auth.send_password_reset("nobody@corp.example"))
        self.assertEqual(mail.outbox, [])

    def test_invalid_email(self):
        with self.assertRaises(InvalidArgument):
            auth.send_password_reset("nope")


class PresenceTest(TestCase):

    def setUp(self):
        self.store = get_store()

    def test_online_then_offline(self):
        presence.set_user_online("alice")
        self.assertTrue(presence.get_user_online_status("alice")["online"])
        presence.set_user_offline("alice")
        status = presence.get_user_online_status("alice")
        self.assertFalse(status["online"])
        self.assertIsNotNone(status["lastSeen"])

    @override_settings(ONLINE_THRESHOLD_SECONDS=300)
    def test_stale_status_is_offline(self):
        self.store.set(USER_STATUS, "alice", {
            "online": True, "lastSeen": timezone.now() - timedelta(minutes=10),
        })
        self.assertFalse(presence.get_user_online_status("alice")["online"])

    def test_unknown_user(self):
        self.assertEqual(presence.get_user_online_status("ghost"), {"online": False, "lastSeen": None})

    def test_store_failure_is_swallowed(self):
        with mock.patch.object(self.store, "set", side_effect=RuntimeError("down")):
            self.assertFalse(presence.set_user_online("alice"))

    def test_subscription_reports_changes(self):
        seen = []
        unsubscribe = presence.subscribe_to_user_status("alice", seen.append)
        presence.set_user_online("alice")
        unsubscribe()
        presence.set_user_offline("alice")

        self.assertTrue(seen[-1]["online"])
        self.assertFalse(seen[0]["online"])
