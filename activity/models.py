import uuid

from django.db import models


class ActivityLog(models.Model):
    ACTION_MAX = 100
    DESCRIPTION_MAX = 500

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor_id = models.CharField(max_length=64, blank=True, default="", db_index=True)  # auth subject, if any
    user_email = models.EmailField(blank=True, default="")
    action = models.CharField(max_length=ACTION_MAX, db_index=True)
    description = models.CharField(max_length=DESCRIPTION_MAX, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.action} @ {self.created_at:%Y-%m-%d %H:%M}"
