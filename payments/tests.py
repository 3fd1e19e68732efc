import base64
import json
import time
from decimal import Decimal
from unittest.mock import patch

import jwt
import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse

from activity.models import ActivityLog
from catalog.models import PricingPackage

from .auth import Identity
from .exceptions import AmountMismatch, InvalidPackage
from .models import Order
from .pricing import validate_amount


class FakeResponse:
    def __init__(self, status_code=201, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text or json.dumps(data or {})

    def json(self):
        if self._data is None:
            raise ValueError("No JSON object could be decoded")
        return self._data


SNAP_OK = FakeResponse(201, {"token": "snap-token-1", "redirect_url": "https://app.sandbox.midtrans.com/snap/v4/redirection/snap-token-1"})
XENDIT_OK = FakeResponse(200, {
    "id": "inv_123",
    "invoice_url": "https://checkout.xendit.co/web/inv_123",
    "expiry_date": "2026-10-20T10:00:00.000Z",
})


def bearer(sub="0b6f6a0e-user", email="buyer@example.com", secret=None, **claims):
    payload = {"sub": sub, "email": email, "aud": "authenticated", "exp": int(time.time()) + 300, **claims}
    token = jwt.encode(payload, secret or settings.AUTH_JWT["SECRET"], algorithm="HS256")
    return {"HTTP_AUTHORIZATION": f"Bearer {token}"}


def make_package(**kwargs):
    defaults = {"name": "Business Website", "price": Decimal("1000000"), "discount_percentage": Decimal("20")}
    defaults.update(kwargs)
    return PricingPackage.objects.create(**defaults)


class ValidateAmountTests(TestCase):
    def setUp(self):
        self.package = make_package()

    def test_exact_amount_accepted(self):
        quote = validate_amount(str(self.package.pk), 800000)
        self.assertEqual(quote.amount, 800000)
        self.assertEqual(quote.package, self.package)

    def test_within_tolerance_returns_server_amount(self):
        quote = validate_amount(str(self.package.pk), Decimal("800000.9"))
        self.assertEqual(quote.amount, 800000)
        self.assertEqual(validate_amount(str(self.package.pk), 799999).amount, 800000)

    def test_mismatch_rejected_and_audited(self):
        identity = Identity(subject="user-7", email="mallory@example.com")
        with self.assertRaises(AmountMismatch) as cm:
            validate_amount(str(self.package.pk), 750000, identity=identity, ip_address="198.51.100.7")
        self.assertEqual(cm.exception.expected, 800000)

        entry = ActivityLog.objects.get(action="payment_amount_mismatch")
        self.assertEqual(entry.actor_id, "user-7")
        self.assertEqual(entry.user_email, "mallory@example.com")
        self.assertEqual(entry.ip_address, "198.51.100.7")
        self.assertEqual(entry.metadata["expected_amount"], 800000)
        self.assertEqual(entry.metadata["provided_amount"], "750000")
        self.assertEqual(entry.metadata["package_id"], str(self.package.pk))

    def test_just_outside_tolerance_rejected(self):
        with self.assertRaises(AmountMismatch):
            validate_amount(str(self.package.pk), Decimal("800001.5"))

    def test_unknown_package(self):
        with self.assertRaises(InvalidPackage):
            validate_amount("00000000-0000-0000-0000-000000000000", 800000)
        with self.assertRaises(InvalidPackage):
            validate_amount("../etc/passwd", 800000)
        self.assertFalse(ActivityLog.objects.exists())


class CheckoutViewTests(TestCase):
    def setUp(self):
        self.package = make_package()

    def _body(self, **overrides):
        body = {
            "packageId": str(self.package.pk),
            "packageName": self.package.name,
            "amount": 800000,
            "customerName": "Budi Santoso",
            "customerEmail": "budi@example.co.id",
            "customerPhone": "+628123456789",
        }
        body.update(overrides)
        return body

    def _post(self, body, **extra):
        return self.client.post(
            reverse("payments:checkout"), data=json.dumps(body), content_type="application/json", **extra
        )

    def test_requires_authentication(self):
        with patch("payments.integrations.midtrans.requests.post") as post:
            resp = self._post(self._body())
        self.assertEqual(resp.status_code, 401)
        post.assert_not_called()
        self.assertFalse(Order.objects.exists())

    def test_invalid_bearer_token(self):
        resp = self._post(self._body(), **bearer(secret="some-other-secret-that-is-long-enough"))
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"], "Invalid authentication. Please log in again.")

    def test_creates_pending_order_and_snap_transaction(self):
        with patch("payments.integrations.midtrans.requests.post", return_value=SNAP_OK) as post:
            resp = self._post(self._body(), **bearer())

        self.assertEqual(resp.status_code, 200)
        order = Order.objects.get()
        data = resp.json()
        self.assertEqual(data["orderId"], str(order.id))
        self.assertEqual(data["token"], "snap-token-1")
        self.assertEqual(data["redirectUrl"], SNAP_OK._data["redirect_url"])

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.amount, 800000)
        self.assertEqual(order.package, self.package)
        self.assertEqual(order.package_name, "Business Website")
        self.assertEqual(order.user_ref, "0b6f6a0e-user")
        self.assertEqual(order.provider_transaction_id, "snap-token-1")
        self.assertEqual(order.provider_checkout_url, SNAP_OK._data["redirect_url"])

        post.assert_called_once()
        sent = post.call_args.kwargs["json"]
        self.assertEqual(sent["transaction_details"], {"order_id": str(order.id), "gross_amount": 800000})
        self.assertEqual(sent["item_details"][0]["price"], 800000)
        self.assertEqual(sent["callbacks"]["finish"], f"https://agency.test/payment/success?order_id={order.id}")
        self.assertEqual(sent["callbacks"]["error"], f"https://agency.test/payment/failed?order_id={order.id}")
        self.assertIsNotNone(post.call_args.kwargs["timeout"])
        expected_auth = base64.b64encode(b"SB-Mid-server-test:").decode()
        self.assertEqual(post.call_args.kwargs["headers"]["Authorization"], f"Basic {expected_auth}")
        self.assertIn("sandbox", post.call_args.args[0])

    def test_amount_within_tolerance_persists_server_price(self):
        with patch("payments.integrations.midtrans.requests.post", return_value=SNAP_OK) as post:
            resp = self._post(self._body(amount=800000.6), **bearer())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Order.objects.get().amount, 800000)
        self.assertEqual(post.call_args.kwargs["json"]["transaction_details"]["gross_amount"], 800000)

    def test_tampered_amount_rejected_without_order(self):
        with patch("payments.integrations.midtrans.requests.post") as post:
            resp = self._post(self._body(amount=750000), **bearer())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Amount does not match package price. Please refresh and try again.")
        post.assert_not_called()
        self.assertFalse(Order.objects.exists())
        self.assertTrue(ActivityLog.objects.filter(action="payment_amount_mismatch").exists())

    def test_client_package_name_is_not_trusted(self):
        with patch("payments.integrations.midtrans.requests.post", return_value=SNAP_OK):
            self._post(self._body(packageName="Free Stuff"), **bearer())
        self.assertEqual(Order.objects.get().package_name, "Business Website")

    def test_missing_fields(self):
        body = self._body()
        del body["customerName"]
        resp = self._post(body, **bearer())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Missing required fields")

    def test_invalid_email(self):
        resp = self._post(self._body(customerEmail="budi@localhost"), **bearer())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Invalid email format")

    def test_unknown_package(self):
        resp = self._post(self._body(packageId="9f1c7a52-0000-4000-8000-000000000000"), **bearer())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Invalid package selected")

    def test_gateway_error_marks_order_failed(self):
        with patch(
            "payments.integrations.midtrans.requests.post",
            return_value=FakeResponse(401, {"error_messages": ["Access denied"]}),
        ):
            with self.assertLogs("payments.integrations.midtrans", level="ERROR") as cm:
                resp = self._post(self._body(), **bearer())

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Payment processing failed, please try again"})
        order = Order.objects.get()
        self.assertEqual(order.status, Order.Status.FAILED)
        self.assertIsNone(order.provider_transaction_id)
        self.assertIn(str(order.id), cm.output[0])

    def test_gateway_timeout_marks_order_failed(self):
        with patch("payments.integrations.midtrans.requests.post", side_effect=requests.Timeout("read timed out")):
            resp = self._post(self._body(), **bearer())
        self.assertEqual(resp.status_code, 500)
        self.assertNotIn("timed out", resp.content.decode())
        self.assertEqual(Order.objects.get().status, Order.Status.FAILED)

    def test_malformed_gateway_response_marks_order_failed(self):
        with patch("payments.integrations.midtrans.requests.post", return_value=FakeResponse(201, None, text="<html>")):
            resp = self._post(self._body(), **bearer())
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(Order.objects.get().status, Order.Status.FAILED)

    def test_session_user_is_accepted(self):
        user = get_user_model().objects.create_user("budi", "budi@example.co.id", "pw-123456")
        self.client.force_login(user)
        with patch("payments.integrations.midtrans.requests.post", return_value=SNAP_OK):
            resp = self._post(self._body())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Order.objects.get().user_ref, str(user.pk))

    @override_settings(PAYMENTS={**settings.PAYMENTS, "REQUIRE_AUTH": False})
    def test_anonymous_variant_still_validates_price(self):
        with patch("payments.integrations.midtrans.requests.post") as post:
            resp = self._post(self._body(amount=1))
        self.assertEqual(resp.status_code, 400)
        post.assert_not_called()

        with patch("payments.integrations.midtrans.requests.post", return_value=SNAP_OK):
            resp = self._post(self._body())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Order.objects.get().user_ref, "")

    @override_settings(PAYMENTS={**settings.PAYMENTS, "GATEWAY": "xendit"})
    def test_xendit_invoice(self):
        with patch("payments.integrations.xendit.requests.post", return_value=XENDIT_OK) as post:
            resp = self._post(self._body(), **bearer())

        self.assertEqual(resp.status_code, 200)
        order = Order.objects.get()
        self.assertEqual(order.gateway, Order.Gateway.XENDIT)
        self.assertEqual(order.provider_transaction_id, "inv_123")
        self.assertEqual(order.expired_at.year, 2026)
        data = resp.json()
        self.assertEqual(data["transactionId"], "inv_123")
        self.assertEqual(data["redirectUrl"], "https://checkout.xendit.co/web/inv_123")
        self.assertIsNotNone(data["expiryDate"])

        sent = post.call_args.kwargs["json"]
        self.assertEqual(sent["external_id"], str(order.id))
        self.assertEqual(sent["amount"], 800000)
        self.assertEqual(sent["success_redirect_url"], f"https://agency.test/payment/success?order_id={order.id}")

    @override_settings(PAYMENTS={**settings.PAYMENTS, "GATEWAY": "xendit"})
    def test_xendit_impossible_expiry_marks_order_failed(self):
        bad = FakeResponse(200, {**XENDIT_OK._data, "expiry_date": "2026-13-45T99:00:00Z"})
        with patch("payments.integrations.xendit.requests.post", return_value=bad):
            resp = self._post(self._body(), **bearer())

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"], "Payment processing failed, please try again")
        self.assertEqual(Order.objects.get().status, Order.Status.FAILED)

    @override_settings(MIDTRANS={**settings.MIDTRANS, "SERVER_KEY": ""})
    def test_missing_gateway_key(self):
        resp = self._post(self._body(), **bearer())
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(Order.objects.get().status, Order.Status.FAILED)


class OrderStatusViewTests(TestCase):
    def setUp(self):
        self.order = Order.objects.create(
            user_ref="owner-1",
            customer_name="Budi",
            customer_email="budi@example.co.id",
            package_name="Business Website",
            amount=800000,
            provider_checkout_url="https://app.sandbox.midtrans.com/snap/x",
        )

    def test_owner_can_read(self):
        resp = self.client.get(reverse("payments:order_status", args=[self.order.pk]), **bearer(sub="owner-1"))
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["amount"], 800000)
        self.assertEqual(data["checkoutUrl"], "https://app.sandbox.midtrans.com/snap/x")

    def test_other_identity_gets_404(self):
        resp = self.client.get(reverse("payments:order_status", args=[self.order.pk]), **bearer(sub="someone-else"))
        self.assertEqual(resp.status_code, 404)

    def test_anonymous_gets_401(self):
        resp = self.client.get(reverse("payments:order_status", args=[self.order.pk]))
        self.assertEqual(resp.status_code, 401)
