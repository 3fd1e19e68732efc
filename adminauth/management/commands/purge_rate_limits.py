from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db.models import Q
from django.utils import timezone

from adminauth.models import RateLimit


class Command(BaseCommand):
    help = "Delete rate-limit records whose lock or counting window has run out"

    def add_arguments(self, parser):
        parser.add_argument("--older-than-minutes", type=int, default=None,
                            help="Counting window to treat as stale (default: ADMIN_AUTH LOCKOUT_MINUTES)")

    def handle(self, *args, **opts):
        minutes = opts["older_than_minutes"]
        if minutes is None:
            minutes = int(settings.ADMIN_AUTH.get("LOCKOUT_MINUTES", 15))
        now = timezone.now()
        cutoff = now - timedelta(minutes=minutes)

        stale = RateLimit.objects.filter(
            Q(locked_until__lte=now) | Q(locked_until__isnull=True, first_attempt__lt=cutoff)
        )
        deleted, _ = stale.delete()
        if not deleted:
            self.stdout.write(self.style.SUCCESS("No stale rate-limit records."))
            return
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} stale rate-limit records."))
