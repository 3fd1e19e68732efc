from django.db import models


class RateLimit(models.Model):
    """Failed admin-password attempts per client address."""

    ip_address = models.CharField(max_length=64, unique=True)
    failed_attempts = models.PositiveIntegerField(default=0)
    first_attempt = models.DateTimeField(blank=True, null=True)
    locked_until = models.DateTimeField(blank=True, null=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.ip_address}: {self.failed_attempts} failed"
