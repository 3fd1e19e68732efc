import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.contrib.auth.hashers import check_password
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import constant_time_compare

from .models import RateLimit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    attempts_remaining: int
    retry_after_seconds: Optional[int] = None


def _limits():
    conf = settings.ADMIN_AUTH
    return int(conf.get("MAX_ATTEMPTS", 5)), timedelta(minutes=int(conf.get("LOCKOUT_MINUTES", 15)))


def _seconds_until(moment, now) -> int:
    return max(1, math.ceil((moment - now).total_seconds()))


def check_rate_limit(ip_address, *, now=None) -> RateLimitStatus:
    """Lock status for ``ip_address``; query it before evaluating any password.

    A lock that has run out deletes the record.
    """
    now = now or timezone.now()
    max_attempts, window = _limits()
    with transaction.atomic():
        record = RateLimit.objects.select_for_update().filter(ip_address=ip_address).first()
        if record is None:
            return RateLimitStatus(True, max_attempts)
        if record.locked_until:
            if now < record.locked_until:
                return RateLimitStatus(False, 0, _seconds_until(record.locked_until, now))
            record.delete()
            return RateLimitStatus(True, max_attempts)
        if record.first_attempt and now - record.first_attempt > window:
            return RateLimitStatus(True, max_attempts)
        return RateLimitStatus(True, max(max_attempts - record.failed_attempts, 0))


def record_failed_attempt(ip_address, *, now=None) -> RateLimitStatus:
    """Count a wrong password; reaching the maximum inside the window locks the address.

    The row is created through the unique key and then updated under a row
    lock, so concurrent failures from one address cannot both slip under the threshold.
    """
    now = now or timezone.now()
    max_attempts, window = _limits()
    with transaction.atomic():
        record, _ = RateLimit.objects.select_for_update().get_or_create(
            ip_address=ip_address, defaults={"failed_attempts": 0, "first_attempt": now}
        )
        if record.locked_until and now < record.locked_until:
            return RateLimitStatus(False, 0, _seconds_until(record.locked_until, now))

        if record.locked_until or record.first_attempt is None or now - record.first_attempt > window:
            record.failed_attempts = 0
            record.first_attempt = now
            record.locked_until = None

        record.failed_attempts += 1
        locked = record.failed_attempts >= max_attempts
        if locked:
            record.locked_until = now + window
        record.save()

    if locked:
        logger.warning(
            "IP %s locked out for %s seconds after %s failed attempts",
            ip_address, int(window.total_seconds()), record.failed_attempts,
        )
        return RateLimitStatus(False, 0, int(window.total_seconds()))
    return RateLimitStatus(True, max_attempts - record.failed_attempts)


def clear_rate_limit(ip_address) -> None:
    RateLimit.objects.filter(ip_address=ip_address).delete()


def check_and_consume(ip_address, attempt_succeeded, *, now=None) -> RateLimitStatus:
    """Re-check the lock and record the outcome of one password attempt."""
    status = check_rate_limit(ip_address, now=now)
    if not status.allowed:
        return status
    if attempt_succeeded:
        clear_rate_limit(ip_address)
        return RateLimitStatus(True, _limits()[0])
    return record_failed_attempt(ip_address, now=now)


def verify_admin_password(password) -> bool:
    """Compare ``password`` with the configured admin secret in constant time.

    ``ADMIN_AUTH['PASSWORD_HASH']`` (a Django password hash) is preferred; the
    plaintext ``ADMIN_AUTH['PASSWORD']`` is a deprecated fallback.
    """
    conf = settings.ADMIN_AUTH
    if not isinstance(password, str):
        password = ""
    encoded = conf.get("PASSWORD_HASH")
    if encoded:
        return check_password(password, encoded)
    plain = conf.get("PASSWORD")
    if plain:
        logger.warning("Plaintext ADMIN_AUTH['PASSWORD'] is deprecated; configure ADMIN_PASSWORD_HASH")
        return constant_time_compare(password, plain)
    logger.error("Neither ADMIN_PASSWORD_HASH nor ADMIN_PASSWORD is configured")
    raise ImproperlyConfigured("ADMIN_AUTH['PASSWORD_HASH'] setting is required to verify admin passwords")
