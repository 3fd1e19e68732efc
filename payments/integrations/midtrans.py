import base64
import logging

import requests
from django.conf import settings
from requests import RequestException

from ..exceptions import GatewayNotConfigured, MidtransError
from . import GatewayCheckout

logger = logging.getLogger(__name__)

SNAP_PRODUCTION_URL = "https://app.midtrans.com/snap/v1/transactions"
SNAP_SANDBOX_URL = "https://app.sandbox.midtrans.com/snap/v1/transactions"
ITEM_NAME_MAX = 50  # Snap rejects longer item names


def server_key() -> str:
    key = settings.MIDTRANS.get("SERVER_KEY")
    if not key:
        raise GatewayNotConfigured("MIDTRANS['SERVER_KEY'] is not configured")
    return key


def _snap_url() -> str:
    return SNAP_PRODUCTION_URL if settings.MIDTRANS.get("IS_PRODUCTION", True) else SNAP_SANDBOX_URL


def _headers() -> dict:
    raw = server_key() + ":"
    return {
        "Authorization": f"Basic {base64.b64encode(raw.encode('utf-8')).decode('utf-8')}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def create_transaction(*, order, item_id, finish_url, error_url) -> GatewayCheckout:
    """Create a Snap transaction for ``order`` and return its token and redirect URL."""
    headers = _headers()
    payload = {
        "transaction_details": {
            "order_id": str(order.id),
            "gross_amount": order.amount,
        },
        "customer_details": {
            "first_name": order.customer_name,
            "email": order.customer_email,
            "phone": order.customer_phone or "",
        },
        "item_details": [
            {
                "id": str(item_id),
                "price": order.amount,
                "quantity": 1,
                "name": order.package_name[:ITEM_NAME_MAX],
            }
        ],
        "callbacks": {
            "finish": finish_url,
            "error": error_url,
            "pending": finish_url,
        },
    }
    timeout = settings.PAYMENTS.get("GATEWAY_TIMEOUT", 20)
    try:
        resp = requests.post(_snap_url(), json=payload, headers=headers, timeout=timeout)
    except RequestException as e:
        raise MidtransError(f"Gateway request failed: {e}")

    if not 200 <= resp.status_code < 300:
        logger.error(
            "Midtrans Snap error for order_id=%s: status=%s text=%s", order.id, resp.status_code, resp.text[:800]
        )
        raise MidtransError(f"Create transaction failed: HTTP {resp.status_code}")

    try:
        data = resp.json()
    except ValueError:
        raise MidtransError("Create transaction failed: non-JSON response")

    if not isinstance(data, dict) or not data.get("token") or not data.get("redirect_url"):
        raise MidtransError(f"Create transaction failed: token/redirect_url missing in {str(data)[:300]}")
    return GatewayCheckout(transaction_id=data["token"], redirect_url=data["redirect_url"], token=data["token"])
