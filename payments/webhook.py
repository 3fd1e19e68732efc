import hashlib
import hmac
import logging

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .exceptions import GatewayNotConfigured, InvalidPayload, InvalidSignature
from .forms import MidtransNotificationForm, XenditCallbackForm
from .models import Order
from .services import map_midtrans_status, map_xendit_status, reconcile_order_status
from .utils import json_body, parse_provider_timestamp

logger = logging.getLogger(__name__)


def midtrans_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """SHA-512 hex digest Midtrans attaches to notifications as ``signature_key``."""
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_midtrans_signature(notification: dict, server_key: str) -> bool:
    expected = midtrans_signature(
        notification.get("order_id") or "",
        notification.get("status_code") or "",
        notification.get("gross_amount") or "",
        server_key,
    )
    received = (notification.get("signature_key") or "").strip().lower()
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def verify_xendit_token(received_token: str, expected_token: str) -> bool:
    """Xendit signs nothing; it echoes the account's callback verification token."""
    if not expected_token:
        return False
    return hmac.compare_digest((received_token or "").encode("utf-8"), expected_token.encode("utf-8"))


def parse_notification(form_class, request):
    """Validate a webhook body against a known field set or raise :class:`InvalidPayload`."""
    payload = json_body(request)
    if payload is None:
        raise InvalidPayload("Invalid JSON", public_message="Invalid JSON")
    form = form_class(payload)
    if not form.is_valid():
        raise InvalidPayload(f"{form.provider} payload rejected: {form.errors.as_json()}")
    return form, payload


def _error(exc):
    return JsonResponse({"error": exc.public_message}, status=exc.status_code)


def _success():
    # always 200 once verified, so the provider stops retrying
    return JsonResponse({"success": True})


@csrf_exempt
@require_POST
def midtrans_webhook(request):
    server_key = settings.MIDTRANS.get("SERVER_KEY")
    if not server_key:
        logger.error("MIDTRANS['SERVER_KEY'] missing; refusing notification")
        return _error(GatewayNotConfigured())

    try:
        form, payload = parse_notification(MidtransNotificationForm, request)
    except InvalidPayload as e:
        logger.warning("Midtrans notification rejected: %s", e)
        return _error(e)

    if not verify_midtrans_signature(form.cleaned_data, server_key):
        logger.warning("Invalid Midtrans signature for order reference %r", form.cleaned_data["order_id"])
        return _error(InvalidSignature())

    status = map_midtrans_status(form.cleaned_data["transaction_status"], form.value("fraud_status"))
    paid_at = parse_provider_timestamp(
        form.value("transaction_time"),
        settings.MIDTRANS.get("TIMEZONE"),
    )
    reconcile_order_status(
        form.cleaned_data["order_id"],
        status,
        payment_method=form.value("payment_type"),
        provider_timestamp=paid_at,
        payload=payload,
        gateway=Order.Gateway.MIDTRANS,
    )
    return _success()


@csrf_exempt
@require_POST
def xendit_webhook(request):
    expected_token = settings.XENDIT.get("CALLBACK_TOKEN")
    if not expected_token:
        logger.error("XENDIT['CALLBACK_TOKEN'] missing; refusing callback")
        return _error(GatewayNotConfigured())

    try:
        form, payload = parse_notification(XenditCallbackForm, request)
    except InvalidPayload as e:
        logger.warning("Xendit callback rejected: %s", e)
        return _error(e)

    if not verify_xendit_token(request.headers.get("X-Callback-Token", ""), expected_token):
        logger.warning("Invalid Xendit callback token for order reference %r", form.cleaned_data["external_id"])
        return _error(InvalidSignature())

    reconcile_order_status(
        form.cleaned_data["external_id"],
        map_xendit_status(form.cleaned_data["status"]),
        payment_method=form.value("payment_method"),
        provider_timestamp=parse_provider_timestamp(form.value("paid_at")),
        payload=payload,
        gateway=Order.Gateway.XENDIT,
    )
    return _success()
