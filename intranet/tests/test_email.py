"""
Tests for outbound email: Django backend first, HTTP relay as fallback.
"""
from smtplib import SMTPException
from unittest import mock

import requests
from django.core import mail
from django.test import TestCase, override_settings

from intranet.services import email


class SendEmailTest(TestCase):

    def test_sent_through_mail_backend(self):
        self.assertTrue(email.send_email("alice@corp.example", "Hello", "Body <b>text</b>"))

        [message] = mail.outbox
        self.assertEqual(message.to, ["alice@corp.example"])
        self.assertEqual(message.subject, "Hello")
        html, mime_type = message.alternatives[0]
        self.assertEqual(mime_type, "text/html")
        self.assertIn("&lt;b&gt;", html)

    def test_empty_recipient(self):
        self.assertFalse(email.send_email("", "Hello", "Body"))
        self.assertEqual(mail.outbox, [])

    def test_message_notification_is_truncated(self):
        email.send_message_notification("bob@corp.example", "Alice", "x" * 80)
        body = mail.outbox[0].body
        self.assertIn("x" * 50 + "...", body)
        self.assertNotIn("x" * 51, body)
        self.assertEqual(mail.outbox[0].subject, "Новое сообщение от Alice")


@mock.patch(
    "intranet.services.email.EmailMultiAlternatives.send",
    side_effect=SMTPException("smtp down"),
)
class RelayFallbackTest(TestCase):

    @override_settings(EMAIL_RELAY_URL="https://relay.example/ajax/")
    def test_relay_used_when_backend_fails(self, _send):
        with mock.patch("intranet.services.email.requests.post") as post:
            post.return_value.raise_for_status.return_value = None
            self.assertTrue(email.send_like_notification("alice@corp.example", "Bob"))

        url = post.call_args[0][0]
        self.assertEqual(url, "https://relay.example/ajax/alice@corp.example")
        self.assertEqual(post.call_args.kwargs["data"]["_subject"], "Bob оценил(а) ваш пост")

    @override_settings(EMAIL_RELAY_URL="https://relay.example/ajax")
    def test_relay_failure_is_reported(self, _send):
        with mock.patch(
            "intranet.services.email.requests.post",
            side_effect=requests.ConnectionError("offline"),
        ):
            self.assertFalse(email.send_email("alice@corp.example", "Hi", "Body"))

    @override_settings(EMAIL_RELAY_URL="")
    def test_no_relay_configured(self, _send):
        with mock.patch("intranet.services.email.requests.post") as post:
            self.assertFalse(email.send_email("alice@corp.example", "Hi", "Body"))
        post.assert_not_called()
