import json
from datetime import timedelta
from io import StringIO

from django.conf import settings
from django.contrib.auth.hashers import make_password
from django.core.exceptions import ImproperlyConfigured
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from activity.models import ActivityLog

from .models import RateLimit
from .services import (
    check_and_consume,
    check_rate_limit,
    record_failed_attempt,
    verify_admin_password,
)
from .views import ADMIN_SESSION_KEY

PASSWORD = "correct horse battery"
IP = "203.0.113.10"


class RateLimiterTests(TestCase):
    def test_fresh_address_allowed(self):
        status = check_rate_limit(IP)
        self.assertTrue(status.allowed)
        self.assertEqual(status.attempts_remaining, 5)
        self.assertIsNone(status.retry_after_seconds)

    def test_lock_after_max_failures(self):
        now = timezone.now()
        for expected_remaining in (4, 3, 2, 1):
            status = record_failed_attempt(IP, now=now)
            self.assertTrue(status.allowed)
            self.assertEqual(status.attempts_remaining, expected_remaining)

        status = record_failed_attempt(IP, now=now)
        self.assertFalse(status.allowed)
        self.assertEqual(status.retry_after_seconds, 15 * 60)

        later = now + timedelta(minutes=5)
        status = check_rate_limit(IP, now=later)
        self.assertFalse(status.allowed)
        self.assertEqual(status.retry_after_seconds, 10 * 60)

    def test_expired_lock_deletes_record(self):
        now = timezone.now()
        for _ in range(5):
            record_failed_attempt(IP, now=now)
        status = check_rate_limit(IP, now=now + timedelta(minutes=15, seconds=1))
        self.assertTrue(status.allowed)
        self.assertEqual(status.attempts_remaining, 5)
        self.assertFalse(RateLimit.objects.filter(ip_address=IP).exists())

    def test_window_expiry_resets_counter(self):
        now = timezone.now()
        for _ in range(4):
            record_failed_attempt(IP, now=now)
        later = now + timedelta(minutes=16)
        self.assertEqual(check_rate_limit(IP, now=later).attempts_remaining, 5)

        status = record_failed_attempt(IP, now=later)
        self.assertTrue(status.allowed)
        self.assertEqual(status.attempts_remaining, 4)
        self.assertEqual(RateLimit.objects.get(ip_address=IP).failed_attempts, 1)

    def test_success_before_max_clears_record(self):
        record_failed_attempt(IP)
        record_failed_attempt(IP)
        status = check_and_consume(IP, True)
        self.assertTrue(status.allowed)
        self.assertFalse(RateLimit.objects.filter(ip_address=IP).exists())

    def test_success_while_locked_is_refused(self):
        for _ in range(5):
            record_failed_attempt(IP)
        status = check_and_consume(IP, True)
        self.assertFalse(status.allowed)
        self.assertTrue(RateLimit.objects.filter(ip_address=IP).exists())

    def test_addresses_counted_separately(self):
        for _ in range(5):
            record_failed_attempt(IP)
        self.assertTrue(check_rate_limit("198.51.100.1").allowed)


class VerifyAdminPasswordTests(TestCase):
    def test_hash_preferred(self):
        conf = {**settings.ADMIN_AUTH, "PASSWORD_HASH": make_password(PASSWORD), "PASSWORD": "other"}
        with self.settings(ADMIN_AUTH=conf):
            self.assertTrue(verify_admin_password(PASSWORD))
            self.assertFalse(verify_admin_password("other"))
            self.assertFalse(verify_admin_password(None))

    def test_plaintext_fallback_warns(self):
        with self.settings(ADMIN_AUTH={**settings.ADMIN_AUTH, "PASSWORD": PASSWORD}):
            with self.assertLogs("adminauth.services", level="WARNING"):
                self.assertTrue(verify_admin_password(PASSWORD))
            self.assertFalse(verify_admin_password(PASSWORD + "x"))

    def test_not_configured(self):
        with self.assertRaises(ImproperlyConfigured):
            verify_admin_password(PASSWORD)


class VerifyPasswordViewTests(TestCase):
    def setUp(self):
        override = override_settings(ADMIN_AUTH={**settings.ADMIN_AUTH, "PASSWORD_HASH": make_password(PASSWORD)})
        override.enable()
        self.addCleanup(override.disable)

    def _post(self, password, ip=IP):
        return self.client.post(
            reverse("adminauth:verify"),
            data=json.dumps({"password": password}),
            content_type="application/json",
            REMOTE_ADDR=ip,
        )

    def test_correct_password(self):
        resp = self._post(PASSWORD)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True})

        entry = ActivityLog.objects.get(action="admin_login")
        self.assertEqual(entry.ip_address, IP)
        self.assertEqual(entry.metadata, {"auth_method": "password"})
        self.assertEqual(self.client.get(reverse("adminauth:status")).json(), {"verified": True})

    def test_wrong_password_reports_remaining(self):
        resp = self._post("nope")
        self.assertEqual(resp.status_code, 401)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "Incorrect password. 4 attempts remaining.")
        self.assertEqual(body["attemptsRemaining"], 4)

        entry = ActivityLog.objects.get(action="admin_login_failed")
        self.assertEqual(entry.metadata["attempts_remaining"], 4)
        self.assertFalse(entry.metadata["locked"])

    def test_lockout_blocks_correct_password(self):
        for _ in range(4):
            self.assertEqual(self._post("nope").status_code, 401)

        resp = self._post("nope")
        self.assertEqual(resp.status_code, 429)
        self.assertEqual(resp.json()["error"], "Too many failed attempts. Please try again later.")
        self.assertEqual(resp["Retry-After"], str(15 * 60))
        self.assertTrue(ActivityLog.objects.filter(action="admin_login_failed", metadata__locked=True).exists())

        resp = self._post(PASSWORD)
        self.assertEqual(resp.status_code, 429)
        self.assertIn("Please try again in", resp.json()["error"])
        self.assertTrue(int(resp["Retry-After"]) > 0)
        self.assertFalse(ActivityLog.objects.filter(action="admin_login").exists())
        self.assertEqual(self.client.get(reverse("adminauth:status")).json(), {"verified": False})

    def test_lockout_is_per_address(self):
        for _ in range(5):
            self._post("nope")
        self.assertEqual(self._post(PASSWORD, ip="198.51.100.1").status_code, 200)

    def test_rotating_forwarded_for_does_not_escape_lockout(self):
        codes = [
            self.client.post(
                reverse("adminauth:verify"),
                data=json.dumps({"password": "nope"}),
                content_type="application/json",
                REMOTE_ADDR="203.0.113.50",
                HTTP_X_FORWARDED_FOR=f"10.9.{i}.1",
            ).status_code
            for i in range(6)
        ]
        self.assertEqual(codes, [401, 401, 401, 401, 429, 429])
        self.assertEqual(list(RateLimit.objects.values_list("ip_address", flat=True)), ["203.0.113.50"])

    @override_settings(TRUSTED_PROXY_COUNT=1)
    def test_lockout_keyed_on_proxy_appended_hop(self):
        for i in range(5):
            resp = self.client.post(
                reverse("adminauth:verify"),
                data=json.dumps({"password": "nope"}),
                content_type="application/json",
                REMOTE_ADDR="10.0.0.2",
                HTTP_X_FORWARDED_FOR=f"10.9.{i}.1, 198.51.100.20",
            )
        self.assertEqual(resp.status_code, 429)
        self.assertTrue(RateLimit.objects.filter(ip_address="198.51.100.20").exists())

    def test_success_resets_counter(self):
        self._post("nope")
        self._post("nope")
        self.assertEqual(self._post(PASSWORD).status_code, 200)
        self.assertFalse(RateLimit.objects.filter(ip_address=IP).exists())
        self.assertEqual(self._post("nope").json()["attemptsRemaining"], 4)

    def test_invalid_json(self):
        resp = self.client.post(reverse("adminauth:verify"), data="{", content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    def test_not_configured(self):
        with self.settings(ADMIN_AUTH={**settings.ADMIN_AUTH, "PASSWORD_HASH": "", "PASSWORD": ""}):
            resp = self._post(PASSWORD)
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"], "Admin password not configured")
        self.assertFalse(RateLimit.objects.exists())

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(reverse("adminauth:verify")).status_code, 405)


class SessionStatusTests(TestCase):
    def test_unverified_by_default(self):
        self.assertEqual(self.client.get(reverse("adminauth:status")).json(), {"verified": False})

    def test_verification_expires(self):
        session = self.client.session
        session[ADMIN_SESSION_KEY] = (timezone.now() - timedelta(minutes=61)).isoformat()
        session.save()
        self.assertEqual(self.client.get(reverse("adminauth:status")).json(), {"verified": False})

        session = self.client.session
        session[ADMIN_SESSION_KEY] = (timezone.now() - timedelta(minutes=5)).isoformat()
        session.save()
        self.assertEqual(self.client.get(reverse("adminauth:status")).json(), {"verified": True})


class PurgeRateLimitsCommandTests(TestCase):
    def test_purges_expired_records_only(self):
        now = timezone.now()
        RateLimit.objects.create(ip_address="10.0.0.1", failed_attempts=5, first_attempt=now - timedelta(hours=1),
                                 locked_until=now - timedelta(minutes=1))
        RateLimit.objects.create(ip_address="10.0.0.2", failed_attempts=2, first_attempt=now - timedelta(hours=1))
        RateLimit.objects.create(ip_address="10.0.0.3", failed_attempts=5, first_attempt=now,
                                 locked_until=now + timedelta(minutes=10))
        RateLimit.objects.create(ip_address="10.0.0.4", failed_attempts=1, first_attempt=now)

        out = StringIO()
        call_command("purge_rate_limits", stdout=out)
        self.assertIn("Deleted 2", out.getvalue())
        self.assertEqual(
            set(RateLimit.objects.values_list("ip_address", flat=True)), {"10.0.0.3", "10.0.0.4"}
        )

    def test_nothing_to_purge(self):
        out = StringIO()
        call_command("purge_rate_limits", "--older-than-minutes", "30", stdout=out)
        self.assertIn("No stale", out.getvalue())
