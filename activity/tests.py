import json
import time
from unittest.mock import patch

import jwt
from django.conf import settings
from django.test import TestCase
from django.urls import reverse

from .models import ActivityLog
from .services import log_activity


def _bearer(sub="user-1", email="user@example.com"):
    token = jwt.encode(
        {"sub": sub, "email": email, "aud": "authenticated", "exp": int(time.time()) + 300},
        settings.AUTH_JWT["SECRET"],
        algorithm="HS256",
    )
    return {"HTTP_AUTHORIZATION": f"Bearer {token}"}


class LogActivityTests(TestCase):
    def test_truncates_long_fields(self):
        entry = log_activity("a" * 150, "d" * 600, metadata={"k": "v"})
        entry.refresh_from_db()
        self.assertEqual(len(entry.action), 100)
        self.assertEqual(len(entry.description), 500)
        self.assertEqual(entry.metadata, {"k": "v"})

    def test_write_failure_is_logged_and_swallowed(self):
        with patch("activity.services.ActivityLog.objects.create", side_effect=RuntimeError("db down")):
            with self.assertLogs("activity.services", level="ERROR") as cm:
                self.assertIsNone(log_activity("payment_received"))
        self.assertIn("payment_received", cm.output[0])
        self.assertFalse(ActivityLog.objects.exists())


class LogActivityViewTests(TestCase):
    def _post(self, payload, **extra):
        return self.client.post(reverse("activity:log"), data=json.dumps(payload), content_type="application/json", **extra)

    def test_requires_authentication(self):
        resp = self._post({"action": "viewed_pricing"})
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(ActivityLog.objects.exists())

    def test_rejects_missing_action(self):
        resp = self._post({"description": "no action"}, **_bearer())
        self.assertEqual(resp.status_code, 400)

    def test_records_entry_for_bearer_identity(self):
        resp = self._post(
            {"action": "viewed_pricing", "description": "opened pricing", "metadata": {"section": "hero"}},
            REMOTE_ADDR="203.0.113.5",
            **_bearer(sub="abc", email="abc@example.com"),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True})
        entry = ActivityLog.objects.get()
        self.assertEqual(entry.actor_id, "abc")
        self.assertEqual(entry.user_email, "abc@example.com")
        self.assertEqual(entry.ip_address, "203.0.113.5")
        self.assertEqual(entry.metadata, {"section": "hero"})
