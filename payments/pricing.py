import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings

from activity.services import log_activity
from catalog.models import PricingPackage
from catalog.services import get_package

from .exceptions import AmountMismatch, InvalidPackage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    package: PricingPackage
    amount: int  # server-computed, the only value that reaches the order and the gateway


def _tolerance() -> Decimal:
    return Decimal(str(settings.PAYMENTS.get("AMOUNT_TOLERANCE", 1)))


def validate_amount(package_id, client_amount, *, identity=None, ip_address="") -> PriceQuote:
    """Check a client-asserted amount against the catalog price of ``package_id``.

    A deviation beyond the rounding tolerance is treated as tampering: it is
    written to the activity log and :class:`AmountMismatch` is raised.
    """
    package = get_package(package_id)
    if package is None:
        raise InvalidPackage(f"Unknown package {package_id!r}")

    expected = package.expected_price()
    try:
        provided = Decimal(str(client_amount))
    except (InvalidOperation, ValueError):
        raise AmountMismatch(f"Unparseable amount {client_amount!r}", expected=expected, provided=client_amount)

    if not provided.is_finite() or abs(provided - expected) > _tolerance():
        logger.warning(
            "Price mismatch for package=%s: expected %s, received %s", package.pk, expected, client_amount
        )
        log_activity(
            "payment_amount_mismatch",
            f"Price manipulation attempt detected for package {package.name}",
            actor_id=identity.subject if identity else "",
            user_email=identity.email if identity else "",
            ip_address=ip_address,
            metadata={
                "package_id": str(package.pk),
                "package_name": package.name,
                "expected_amount": expected,
                "provided_amount": str(client_amount),
            },
        )
        raise AmountMismatch(
            f"Amount mismatch for package {package.pk}: expected {expected}, received {client_amount}",
            expected=expected,
            provided=client_amount,
        )

    return PriceQuote(package=package, amount=expected)
