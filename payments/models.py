import uuid

from django.db import models


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"
        EXPIRED = "expired", "Expired"
        CANCELLED = "cancelled", "Cancelled"
        REFUNDED = "refunded", "Refunded"

    class Gateway(models.TextChoices):
        MIDTRANS = "midtrans", "Midtrans"
        XENDIT = "xendit", "Xendit"

    # final as reported by the provider; a locally set `failed` can still be settled by a webhook
    TERMINAL_STATUSES = frozenset({
        Status.PAID, Status.EXPIRED, Status.CANCELLED, Status.REFUNDED,
    })

    # also the merchant reference sent to the gateway
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_ref = models.CharField(max_length=64, blank=True, default="", db_index=True)

    customer_name = models.CharField(max_length=150)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=32, blank=True, null=True)

    package = models.ForeignKey(
        "catalog.PricingPackage", on_delete=models.SET_NULL, blank=True, null=True, related_name="orders"
    )
    package_name = models.CharField(max_length=100)  # snapshot at purchase time

    amount = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=8, default="IDR")
    gateway = models.CharField(max_length=16, choices=Gateway.choices, default=Gateway.MIDTRANS)
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_method = models.CharField(max_length=64, blank=True, null=True)

    provider_transaction_id = models.CharField(max_length=128, blank=True, null=True, db_index=True)
    provider_checkout_url = models.URLField(max_length=500, blank=True, null=True)
    last_notification = models.JSONField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    expired_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ("-created_at",)

    @property
    def is_paid(self) -> bool:
        return self.status == self.Status.PAID

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def __str__(self):
        return f"{self.id} ({self.status})"
