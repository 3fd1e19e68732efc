import base64
import logging

import requests
from django.conf import settings
from django.utils.dateparse import parse_datetime
from requests import RequestException

from ..exceptions import GatewayNotConfigured, XenditError
from . import GatewayCheckout

logger = logging.getLogger(__name__)


def _headers() -> dict:
    secret = settings.XENDIT.get("SECRET_KEY")
    if not secret:
        raise GatewayNotConfigured("XENDIT['SECRET_KEY'] is not configured")
    raw = secret + ":"
    return {
        "Authorization": f"Basic {base64.b64encode(raw.encode('utf-8')).decode('utf-8')}",
        "Content-Type": "application/json",
    }


def create_invoice(*, order, finish_url, error_url) -> GatewayCheckout:
    """Create a hosted invoice for ``order``; ``external_id`` is the order id."""
    headers = _headers()
    customer = {"given_names": order.customer_name, "email": order.customer_email}
    if order.customer_phone:
        customer["mobile_number"] = order.customer_phone
    payload = {
        "external_id": str(order.id),
        "amount": order.amount,
        "payer_email": order.customer_email,
        "description": f"Payment for {order.package_name}",
        "invoice_duration": settings.XENDIT.get("INVOICE_DURATION", 86400),
        "customer": customer,
        "success_redirect_url": finish_url,
        "failure_redirect_url": error_url,
        "currency": order.currency or "IDR",
        "items": [{"name": order.package_name, "quantity": 1, "price": order.amount}],
    }
    url = settings.XENDIT.get("BASE_URL", "https://api.xendit.co").rstrip("/") + "/v2/invoices"
    timeout = settings.PAYMENTS.get("GATEWAY_TIMEOUT", 20)
    try:
        resp = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except RequestException as e:
        raise XenditError(f"Gateway request failed: {e}")

    if not 200 <= resp.status_code < 300:
        logger.error(
            "Xendit invoice error for order_id=%s: status=%s text=%s", order.id, resp.status_code, resp.text[:800]
        )
        raise XenditError(f"Create invoice failed: HTTP {resp.status_code}")

    try:
        data = resp.json()
    except ValueError:
        raise XenditError("Create invoice failed: non-JSON response")
    if not isinstance(data, dict) or not data.get("id") or not data.get("invoice_url"):
        raise XenditError(f"Create invoice failed: id/invoice_url missing in {str(data)[:300]}")

    expiry = data.get("expiry_date")
    try:
        expires_at = parse_datetime(expiry) if isinstance(expiry, str) else None
    except ValueError:
        raise XenditError(f"Create invoice failed: bad expiry_date {expiry!r}")
    return GatewayCheckout(
        transaction_id=str(data["id"]),
        redirect_url=data["invoice_url"],
        expires_at=expires_at,
    )
