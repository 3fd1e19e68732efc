import uuid
from decimal import Decimal, ROUND_HALF_UP

from django.db import models


class PricingPackage(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    price = models.DecimalField(max_digits=14, decimal_places=2)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)
    discount_label = models.CharField(max_length=64, blank=True, default="")
    period = models.CharField(max_length=32, blank=True, default="project")
    features = models.JSONField(default=list, blank=True)
    is_popular = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("sort_order", "name")

    def __str__(self):
        return f"{self.name} ({self.price})"

    def expected_price(self) -> int:
        """Price after discount, rounded half-up to a whole currency unit."""
        price = Decimal(self.price)
        discount = Decimal(self.discount_percentage or 0)
        if discount > 0:
            price = price * (Decimal(1) - discount / Decimal(100))
        return int(price.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
