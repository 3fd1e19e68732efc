import logging

from django.db import transaction

from .models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(action, description="", *, actor_id="", user_email="", ip_address="", metadata=None):
    """Record an audit event. Never raises.

    The write runs in its own savepoint so a failure cannot poison the
    caller's transaction; the primary operation always wins over the audit trail.
    """
    try:
        with transaction.atomic():
            return ActivityLog.objects.create(
                action=str(action)[:ActivityLog.ACTION_MAX],
                description=str(description or "")[:ActivityLog.DESCRIPTION_MAX],
                actor_id=str(actor_id or ""),
                user_email=user_email or "",
                ip_address=ip_address or "",
                metadata=metadata or {},
            )
    except Exception:
        logger.exception("Failed to write activity log action=%s", action)
        return None
