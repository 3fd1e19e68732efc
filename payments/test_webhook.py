import hashlib
import json
import uuid
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

import requests
from django.conf import settings
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from activity.models import ActivityLog

from .models import Order
from .services import map_midtrans_status, map_xendit_status, reconcile_order_status
from .tests import bearer, make_package
from .webhook import midtrans_signature, verify_midtrans_signature, verify_xendit_token

SERVER_KEY = "SB-Mid-server-test"


def sign(order_id, status_code, gross_amount, key=SERVER_KEY):
    return hashlib.sha512(f"{order_id}{status_code}{gross_amount}{key}".encode()).hexdigest()


def notification(order_id, transaction_status="settlement", status_code="200", gross_amount="800000.00", **extra):
    payload = {
        "transaction_time": "2026-10-19 14:30:00",
        "transaction_status": transaction_status,
        "transaction_id": "f1c3a7d2-1111-4c1d-9b3e-000000000001",
        "status_message": "midtrans payment notification",
        "status_code": status_code,
        "signature_key": sign(order_id, status_code, gross_amount),
        "payment_type": "bank_transfer",
        "order_id": str(order_id),
        "merchant_id": "G123456789",
        "gross_amount": gross_amount,
        "fraud_status": "accept",
        "currency": "IDR",
    }
    payload.update(extra)
    return payload


def make_order(**kwargs):
    defaults = {
        "customer_name": "Budi",
        "customer_email": "budi@example.co.id",
        "package_name": "Business Website",
        "amount": 800000,
    }
    defaults.update(kwargs)
    return Order.objects.create(**defaults)


class StatusMappingTests(SimpleTestCase):
    def test_midtrans_mapping(self):
        self.assertEqual(map_midtrans_status("capture", "accept"), "paid")
        self.assertEqual(map_midtrans_status("capture", "challenge"), "pending")
        self.assertEqual(map_midtrans_status("capture", None), "pending")
        self.assertEqual(map_midtrans_status("settlement"), "paid")
        self.assertEqual(map_midtrans_status("pending"), "pending")
        self.assertEqual(map_midtrans_status("deny"), "cancelled")
        self.assertEqual(map_midtrans_status("cancel"), "cancelled")
        self.assertEqual(map_midtrans_status("expire"), "expired")
        self.assertEqual(map_midtrans_status("refund"), "refunded")

    def test_unknown_status_passes_through_lowercased(self):
        self.assertEqual(map_midtrans_status("AUTHORIZE"), "authorize")
        self.assertEqual(map_xendit_status("Something_New"), "something_new")

    def test_xendit_mapping(self):
        self.assertEqual(map_xendit_status("PAID"), "paid")
        self.assertEqual(map_xendit_status("SETTLED"), "paid")
        self.assertEqual(map_xendit_status("EXPIRED"), "expired")
        self.assertEqual(map_xendit_status("PENDING"), "pending")


class SignatureTests(SimpleTestCase):
    def test_signature_matches_provider_scheme(self):
        self.assertEqual(midtrans_signature("ORDER-1", "200", "10000.00", "key"), sign("ORDER-1", "200", "10000.00", "key"))

    def test_verify_rejects_wrong_key_and_garbage(self):
        payload = notification("ORDER-1")
        self.assertTrue(verify_midtrans_signature(payload, SERVER_KEY))
        self.assertFalse(verify_midtrans_signature(payload, "other-key"))
        self.assertFalse(verify_midtrans_signature({**payload, "signature_key": "ü" * 10}, SERVER_KEY))
        self.assertFalse(verify_midtrans_signature({**payload, "signature_key": ""}, SERVER_KEY))

    def test_xendit_token(self):
        self.assertTrue(verify_xendit_token("tok", "tok"))
        self.assertFalse(verify_xendit_token("tok2", "tok"))
        self.assertFalse(verify_xendit_token("", ""))


class MidtransWebhookTests(TestCase):
    def setUp(self):
        self.order = make_order()

    def _post(self, payload, raw=None):
        return self.client.post(
            reverse("payments:midtrans_webhook"),
            data=raw if raw is not None else json.dumps(payload),
            content_type="application/json",
        )

    def test_settlement_marks_paid(self):
        resp = self._post(notification(self.order.pk))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.payment_method, "bank_transfer")
        # transaction_time is local Jakarta time (UTC+7)
        self.assertEqual(self.order.paid_at, datetime(2026, 10, 19, 7, 30, tzinfo=dt_timezone.utc))
        self.assertEqual(self.order.last_notification["transaction_status"], "settlement")

        entry = ActivityLog.objects.get(action="payment_received")
        self.assertEqual(entry.user_email, "budi@example.co.id")
        self.assertEqual(entry.metadata, {
            "order_id": str(self.order.pk), "amount": 800000, "payment_method": "bank_transfer",
        })

    def test_duplicate_delivery_is_idempotent(self):
        payload = notification(self.order.pk)
        self._post(payload)
        self.order.refresh_from_db()
        first = (self.order.status, self.order.paid_at, self.order.payment_method, self.order.amount)

        resp = self._post(payload)
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual((self.order.status, self.order.paid_at, self.order.payment_method, self.order.amount), first)
        self.assertEqual(ActivityLog.objects.filter(action="payment_received").count(), 1)

    def test_capture_needs_accepted_fraud_status(self):
        self._post(notification(self.order.pk, "capture", fraud_status="challenge", payment_type="credit_card"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertIsNone(self.order.paid_at)
        self.assertFalse(ActivityLog.objects.exists())

        self._post(notification(self.order.pk, "capture", fraud_status="accept", payment_type="credit_card"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.payment_method, "credit_card")

    def test_tampered_signed_fields_rejected(self):
        original = notification(self.order.pk)
        other = make_order()
        for field, value in (("gross_amount", "1.00"), ("status_code", "201"), ("order_id", str(other.pk))):
            with self.subTest(field=field):
                resp = self._post({**original, field: value})
                self.assertEqual(resp.status_code, 403)
                self.assertEqual(resp.json(), {"error": "Invalid signature"})

        for order in (self.order, other):
            order.refresh_from_db()
            self.assertEqual(order.status, Order.Status.PENDING)
        self.assertFalse(ActivityLog.objects.exists())

    def test_unsigned_field_change_keeps_signature_valid(self):
        # transaction_status is not part of the signed string
        resp = self._post({**notification(self.order.pk), "transaction_status": "expire"})
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.EXPIRED)

    def test_missing_signature_rejected(self):
        payload = notification(self.order.pk)
        del payload["signature_key"]
        self.assertEqual(self._post(payload).status_code, 403)

    def test_missing_order_id_is_bad_request(self):
        payload = notification(self.order.pk)
        del payload["order_id"]
        resp = self._post(payload)
        self.assertEqual(resp.status_code, 400)

    def test_unexpected_field_fails_closed(self):
        resp = self._post({**notification(self.order.pk), "is_admin_override": True})
        self.assertEqual(resp.status_code, 400)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_invalid_json(self):
        self.assertEqual(self._post(None, raw="{not json").status_code, 400)
        self.assertEqual(self._post(None, raw="[1, 2]").status_code, 400)

    def test_unknown_order_acknowledged_without_mutation(self):
        missing = uuid.uuid4()
        resp = self._post(notification(missing))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True})
        self.assertFalse(Order.objects.filter(pk=missing).exists())
        self.assertFalse(ActivityLog.objects.exists())

        # dashboard test notifications use non-UUID order ids
        resp = self._post(notification("payment_notif_test_G123456789_1234"))
        self.assertEqual(resp.status_code, 200)

    def test_terminal_status_not_downgraded(self):
        self._post(notification(self.order.pk))
        resp = self._post(notification(self.order.pk, "pending", status_code="201"))
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)

    def test_refund_after_paid(self):
        self._post(notification(self.order.pk))
        paid_at = Order.objects.get(pk=self.order.pk).paid_at
        self._post(notification(self.order.pk, "refund"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.REFUNDED)
        self.assertEqual(self.order.paid_at, paid_at)

    def test_unmapped_status_stored(self):
        self._post(notification(self.order.pk, "authorize", status_code="200"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "authorize")

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(reverse("payments:midtrans_webhook")).status_code, 405)

    @override_settings(MIDTRANS={**settings.MIDTRANS, "SERVER_KEY": ""})
    def test_missing_server_key(self):
        resp = self._post(notification(self.order.pk))
        self.assertEqual(resp.status_code, 500)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)


class XenditWebhookTests(TestCase):
    def setUp(self):
        self.order = make_order(gateway=Order.Gateway.XENDIT)

    def _post(self, payload, token="callback-token-test"):
        extra = {"HTTP_X_CALLBACK_TOKEN": token} if token is not None else {}
        return self.client.post(
            reverse("payments:xendit_webhook"), data=json.dumps(payload), content_type="application/json", **extra
        )

    def _callback(self, status="PAID", **extra):
        payload = {
            "id": "inv_123",
            "external_id": str(self.order.pk),
            "user_id": "5f1a",
            "status": status,
            "merchant_name": "Agency",
            "amount": 800000,
            "paid_amount": 800000,
            "payer_email": "budi@example.co.id",
            "payment_method": "BANK_TRANSFER",
            "paid_at": "2026-10-19T07:30:00.000Z",
            "currency": "IDR",
        }
        payload.update(extra)
        return payload

    def test_paid_callback(self):
        resp = self._post(self._callback())
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.payment_method, "BANK_TRANSFER")
        self.assertEqual(self.order.paid_at, datetime(2026, 10, 19, 7, 30, tzinfo=dt_timezone.utc))
        self.assertEqual(ActivityLog.objects.filter(action="payment_received").count(), 1)

    def test_wrong_or_missing_token_rejected(self):
        self.assertEqual(self._post(self._callback(), token="guess").status_code, 403)
        self.assertEqual(self._post(self._callback(), token=None).status_code, 403)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_expired_callback(self):
        self._post(self._callback("EXPIRED", paid_at=None))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.EXPIRED)
        self.assertIsNone(self.order.paid_at)

    def test_missing_external_id(self):
        payload = self._callback()
        del payload["external_id"]
        self.assertEqual(self._post(payload).status_code, 400)


class ReconcileOrderStatusTests(TestCase):
    def test_audit_failure_does_not_fail_reconciliation(self):
        order = make_order()
        with patch("activity.services.ActivityLog.objects.create", side_effect=RuntimeError("db down")):
            result = reconcile_order_status(str(order.pk), Order.Status.PAID, payment_method="qris")
        self.assertEqual(result.outcome, "applied")
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PAID)
        self.assertIsNotNone(order.paid_at)

    def test_not_found(self):
        self.assertEqual(reconcile_order_status(str(uuid.uuid4()), "paid").outcome, "not_found")
        self.assertEqual(reconcile_order_status("garbage", "paid").outcome, "not_found")

    def test_ignored_from_terminal_state(self):
        order = make_order(status=Order.Status.EXPIRED)
        result = reconcile_order_status(str(order.pk), Order.Status.PAID)
        self.assertEqual(result.outcome, "ignored")
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.EXPIRED)


class LostCheckoutResponseTests(TestCase):
    def _checkout(self, package):
        body = {
            "packageId": str(package.pk),
            "packageName": package.name,
            "amount": 800000,
            "customerName": "Budi Santoso",
            "customerEmail": "budi@example.co.id",
        }
        return self.client.post(
            reverse("payments:checkout"), data=json.dumps(body), content_type="application/json", **bearer()
        )

    def test_settlement_after_gateway_timeout_marks_paid(self):
        package = make_package()
        with patch("payments.integrations.midtrans.requests.post", side_effect=requests.Timeout("read timed out")):
            resp = self._checkout(package)
        self.assertEqual(resp.status_code, 500)
        order = Order.objects.get()
        self.assertEqual(order.status, Order.Status.FAILED)

        resp = self.client.post(
            reverse("payments:midtrans_webhook"), data=json.dumps(notification(order.pk)), content_type="application/json"
        )
        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PAID)
        self.assertIsNotNone(order.paid_at)
        self.assertEqual(ActivityLog.objects.filter(action="payment_received").count(), 1)

    def test_failed_order_accepts_later_expiry(self):
        order = make_order(status=Order.Status.FAILED)
        result = reconcile_order_status(str(order.pk), Order.Status.EXPIRED)
        self.assertEqual(result.outcome, "applied")
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.EXPIRED)


class GatewayMismatchTests(TestCase):
    def test_xendit_callback_cannot_touch_midtrans_order(self):
        order = make_order(gateway=Order.Gateway.MIDTRANS)
        resp = self.client.post(
            reverse("payments:xendit_webhook"),
            data=json.dumps({"external_id": str(order.pk), "status": "PAID"}),
            content_type="application/json",
            HTTP_X_CALLBACK_TOKEN="callback-token-test",
        )
        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertFalse(ActivityLog.objects.exists())

    def test_midtrans_notification_cannot_touch_xendit_order(self):
        order = make_order(gateway=Order.Gateway.XENDIT)
        resp = self.client.post(
            reverse("payments:midtrans_webhook"), data=json.dumps(notification(order.pk)), content_type="application/json"
        )
        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PENDING)

    def test_reconcile_reports_ignored(self):
        order = make_order(gateway=Order.Gateway.XENDIT)
        result = reconcile_order_status(str(order.pk), Order.Status.PAID, gateway=Order.Gateway.MIDTRANS)
        self.assertEqual(result.outcome, "ignored")
