import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from activity.services import log_activity

from .exceptions import GatewayError, GatewayNotConfigured
from .integrations import midtrans, xendit
from .models import Order
from .pricing import validate_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    transaction_id: str
    redirect_url: str
    token: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReconcileResult:
    APPLIED = "applied"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"

    outcome: str
    order: Optional[Order] = None
    status: Optional[str] = None


# ---------- Transaction initiation ----------

def _gateway_name() -> str:
    return (settings.PAYMENTS.get("GATEWAY") or Order.Gateway.MIDTRANS).lower()


def _call_gateway(order, *, finish_url, error_url):
    if order.gateway == Order.Gateway.XENDIT:
        return xendit.create_invoice(order=order, finish_url=finish_url, error_url=error_url)
    return midtrans.create_transaction(
        order=order, item_id=order.package_id, finish_url=finish_url, error_url=error_url
    )


def initiate_transaction(*, package_id, client_amount, customer: CustomerInfo, identity=None,
                         ip_address="", site_url="") -> CheckoutResult:
    """Validate the price, persist a pending order, then open a gateway checkout.

    The order exists before the gateway is called so that a webhook always
    has something to reconcile against, even if this request's response is lost.
    On gateway failure the order is kept as ``failed`` and :class:`GatewayError` propagates.
    """
    gateway = _gateway_name()
    if gateway not in Order.Gateway.values:
        raise GatewayNotConfigured(f"Unknown PAYMENTS['GATEWAY'] {gateway!r}")

    quote = validate_amount(package_id, client_amount, identity=identity, ip_address=ip_address)

    order = Order.objects.create(
        user_ref=identity.subject if identity else "",
        package=quote.package,
        package_name=quote.package.name,
        amount=quote.amount,
        currency=settings.PAYMENTS.get("CURRENCY", "IDR"),
        gateway=gateway,
        customer_name=customer.name,
        customer_email=customer.email,
        customer_phone=customer.phone or None,
        status=Order.Status.PENDING,
    )

    base = site_url.rstrip("/")
    finish_url = f"{base}/payment/success?order_id={order.id}"
    error_url = f"{base}/payment/failed?order_id={order.id}"

    try:
        checkout = _call_gateway(order, finish_url=finish_url, error_url=error_url)
        order.provider_transaction_id = checkout.transaction_id
        order.provider_checkout_url = checkout.redirect_url
        update_fields = ["provider_transaction_id", "provider_checkout_url", "updated_at"]
        if checkout.expires_at:
            order.expired_at = checkout.expires_at
            update_fields.append("expired_at")
        order.save(update_fields=update_fields)
    except Exception as e:
        logger.exception("Gateway checkout failed for order_id=%s", order.id)
        Order.objects.filter(pk=order.pk).update(status=Order.Status.FAILED, updated_at=timezone.now())
        order.status = Order.Status.FAILED
        if isinstance(e, GatewayError):
            raise
        raise GatewayError(f"Unusable gateway response for order_id={order.id}: {e}") from e

    logger.info("Checkout opened for order_id=%s via %s amount=%s", order.id, gateway, order.amount)
    return CheckoutResult(
        order=order,
        transaction_id=checkout.transaction_id,
        redirect_url=checkout.redirect_url,
        token=checkout.token,
        expires_at=checkout.expires_at,
    )


# ---------- Status mapping ----------

def map_midtrans_status(transaction_status, fraud_status=None) -> str:
    status = (transaction_status or "").strip().lower()
    if status == "capture":
        # card payments: only an accepted fraud check counts as paid
        return Order.Status.PAID if (fraud_status or "").lower() == "accept" else Order.Status.PENDING
    if status == "settlement":
        return Order.Status.PAID
    if status == "pending":
        return Order.Status.PENDING
    if status in ("deny", "cancel"):
        return Order.Status.CANCELLED
    if status == "expire":
        return Order.Status.EXPIRED
    if status in ("refund", "partial_refund"):
        return Order.Status.REFUNDED
    return status


def map_xendit_status(status) -> str:
    status = (status or "").strip().upper()
    if status in ("PAID", "SETTLED"):
        return Order.Status.PAID
    if status == "EXPIRED":
        return Order.Status.EXPIRED
    if status == "PENDING":
        return Order.Status.PENDING
    return status.lower()


def _transition_allowed(order, new) -> bool:
    if order.status == new or not order.is_terminal:
        return True
    # a refund is the only way out of a terminal state
    return order.is_paid and new == Order.Status.REFUNDED


# ---------- Reconciliation ----------

def reconcile_order_status(order_id, status, *, payment_method=None, provider_timestamp=None,
                           payload=None, gateway=None) -> ReconcileResult:
    """Apply a verified provider status (already mapped to ours) to an order.

    Re-delivery of the same notification rewrites the same values and does
    not repeat the ``payment_received`` audit event. Notifications that would
    move an order out of a terminal state are ignored, except paid → refunded.
    When ``gateway`` is given, orders opened with another provider are left alone.
    """
    try:
        pk = uuid.UUID(str(order_id))
    except (TypeError, ValueError):
        logger.info("Notification for unknown order reference %r", order_id)
        return ReconcileResult(ReconcileResult.NOT_FOUND)

    became_paid = False
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=pk).first()
        if order is None:
            logger.info("Notification for unknown order %s", pk)
            return ReconcileResult(ReconcileResult.NOT_FOUND)

        if gateway and order.gateway != gateway:
            logger.warning("Ignoring %s notification for %s order_id=%s", gateway, order.gateway, order.pk)
            return ReconcileResult(ReconcileResult.IGNORED, order=order, status=order.status)

        if not _transition_allowed(order, status):
            logger.warning(
                "Ignoring %s -> %s for order_id=%s (terminal state)", order.status, status, order.pk
            )
            return ReconcileResult(ReconcileResult.IGNORED, order=order, status=order.status)

        became_paid = status == Order.Status.PAID and not order.is_paid
        order.status = status
        order.payment_method = payment_method or order.payment_method
        if payload is not None:
            order.last_notification = payload
        if status == Order.Status.PAID and order.paid_at is None:
            order.paid_at = provider_timestamp or timezone.now()
        order.save()

    logger.info("Order %s updated to status: %s", order.pk, status)

    if became_paid:
        log_activity(
            "payment_received",
            f"Payment received for {order.package_name}",
            user_email=order.customer_email,
            metadata={
                "order_id": str(order.pk),
                "amount": order.amount,
                "payment_method": payment_method,
            },
        )
    return ReconcileResult(ReconcileResult.APPLIED, order=order, status=status)
