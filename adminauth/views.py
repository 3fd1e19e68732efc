import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from activity.services import log_activity
from agencysite.middleware import client_address
from payments.utils import json_body

from .services import check_and_consume, check_rate_limit, verify_admin_password

logger = logging.getLogger(__name__)

ADMIN_SESSION_KEY = "admin_verified_at"


def _too_many(message, status):
    resp = JsonResponse({"success": False, "error": message}, status=429)
    if status.retry_after_seconds:
        resp["Retry-After"] = str(status.retry_after_seconds)
    return resp


def is_admin_verified(request) -> bool:
    """Whether this session passed the admin password gate within the session lifetime."""
    raw = request.session.get(ADMIN_SESSION_KEY)
    verified_at = parse_datetime(raw) if raw else None
    if verified_at is None:
        return False
    ttl = timedelta(minutes=int(settings.ADMIN_AUTH.get("SESSION_MINUTES", 60)))
    return timezone.now() - verified_at < ttl


@csrf_exempt
@require_POST
def verify_password_view(request):
    ip = getattr(request, "client_ip", None) or client_address(request)

    status = check_rate_limit(ip)
    if not status.allowed:
        logger.info("Rate limited request from IP: %s", ip)
        return _too_many(
            f"Too many failed attempts. Please try again in {status.retry_after_seconds} seconds.", status
        )

    body = json_body(request)
    if body is None:
        return JsonResponse({"success": False, "error": "Invalid JSON body"}, status=400)

    logger.info("Admin password verification attempt from IP: %s", ip)
    try:
        ok = verify_admin_password(body.get("password"))
    except ImproperlyConfigured:
        return JsonResponse({"success": False, "error": "Admin password not configured"}, status=500)

    status = check_and_consume(ip, ok)
    if ok and status.allowed:
        log_activity(
            "admin_login",
            "Admin password authentication successful",
            ip_address=ip,
            metadata={"auth_method": "password"},
        )
        request.session.cycle_key()
        request.session[ADMIN_SESSION_KEY] = timezone.now().isoformat()
        return JsonResponse({"success": True})

    if not ok:
        logger.info("Admin password verification failed from IP: %s. Attempts remaining: %s",
                    ip, status.attempts_remaining)
        log_activity(
            "admin_login_failed",
            "Admin login failed - locked due to too many attempts" if not status.allowed
            else "Admin password authentication failed",
            ip_address=ip,
            metadata={
                "auth_method": "password",
                "attempts_remaining": status.attempts_remaining,
                "locked": not status.allowed,
            },
        )

    if not status.allowed:
        return _too_many("Too many failed attempts. Please try again later.", status)
    return JsonResponse(
        {
            "success": False,
            "error": f"Incorrect password. {status.attempts_remaining} attempts remaining.",
            "attemptsRemaining": status.attempts_remaining,
        },
        status=401,
    )


@require_GET
def session_status_view(request):
    return JsonResponse({"verified": is_admin_verified(request)})
