import logging

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .auth import resolve_identity
from .exceptions import AuthenticationRequired, OrderNotFound, PaymentError
from .forms import CheckoutForm
from .models import Order
from .services import CustomerInfo, initiate_transaction
from .utils import json_body

logger = logging.getLogger(__name__)


def _error(message, status):
    return JsonResponse({"error": message}, status=status)


def _identity_or_error(request, *, required):
    """Return ``(identity, error_response)``; identity may be None when auth is optional."""
    try:
        identity = resolve_identity(request)
    except AuthenticationRequired as e:
        logger.info("Rejected bearer token: %s", e)
        return None, _error(e.public_message, e.status_code)
    if identity is None and required:
        return None, _error(AuthenticationRequired.public_message, 401)
    return identity, None


def _form_error(form) -> str:
    missing = [name for name, errs in form.errors.as_data().items() if any(e.code == "required" for e in errs)]
    if missing:
        return "Missing required fields"
    if "customerEmail" in form.errors:
        return "Invalid email format"
    return "Invalid request"


@csrf_exempt
@require_POST
def checkout_view(request):
    identity, err = _identity_or_error(request, required=settings.PAYMENTS.get("REQUIRE_AUTH", True))
    if err:
        return err

    body = json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)
    form = CheckoutForm(body)
    if not form.is_valid():
        return _error(_form_error(form), 400)
    data = form.cleaned_data

    site_url = settings.PAYMENTS.get("SITE_URL") or request.build_absolute_uri("/")
    try:
        result = initiate_transaction(
            package_id=data["packageId"],
            client_amount=data["amount"],
            customer=CustomerInfo(
                name=data["customerName"],
                email=data["customerEmail"],
                phone=data.get("customerPhone") or None,
            ),
            identity=identity,
            ip_address=getattr(request, "client_ip", ""),
            site_url=site_url,
        )
    except PaymentError as e:
        # upstream detail stays in the logs
        logger.warning("Checkout rejected (%s): %s", type(e).__name__, e)
        return _error(e.public_message, e.status_code)

    return JsonResponse({
        "orderId": str(result.order.id),
        "transactionId": result.transaction_id,
        "token": result.token,
        "redirectUrl": result.redirect_url,
        "expiryDate": result.expires_at.isoformat() if result.expires_at else None,
    })


@require_GET
def order_status_view(request, order_id):
    """Let the purchaser poll an order after returning from the hosted checkout."""
    identity, err = _identity_or_error(request, required=True)
    if err:
        return err

    order = Order.objects.filter(pk=order_id, user_ref=identity.subject).first()
    if order is None:
        return _error(OrderNotFound.public_message, OrderNotFound.status_code)

    return JsonResponse({
        "orderId": str(order.id),
        "status": order.status,
        "amount": order.amount,
        "currency": order.currency,
        "packageName": order.package_name,
        "paymentMethod": order.payment_method,
        "checkoutUrl": order.provider_checkout_url if order.status == Order.Status.PENDING else None,
        "createdAt": order.created_at.isoformat(),
        "paidAt": order.paid_at.isoformat() if order.paid_at else None,
    })
