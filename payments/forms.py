from django import forms
from django.core.validators import RegexValidator

# local@domain.tld, the same shape the checkout page enforces
EMAIL_SHAPE = RegexValidator(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", "Invalid email format")


class CheckoutForm(forms.Form):
    """JSON body of the transaction-initiation endpoint (camelCase keys)."""

    packageId = forms.CharField(max_length=64)
    packageName = forms.CharField(max_length=200)
    amount = forms.DecimalField(min_value=1, max_digits=16)
    customerName = forms.CharField(max_length=150)
    customerEmail = forms.CharField(max_length=254, validators=[EMAIL_SHAPE])
    customerPhone = forms.CharField(max_length=32, required=False)


class StrictPayloadForm(forms.Form):
    """Form over a provider payload that rejects keys outside a known field set.

    ``known_fields`` lists documented keys that are accepted but not parsed;
    anything outside it and the declared fields fails validation.
    """

    known_fields = frozenset()
    provider = ""

    def __init__(self, data=None, *args, **kwargs):
        super().__init__(data, *args, **kwargs)
        allowed = set(self.fields) | set(self.known_fields)
        self.unexpected_fields = sorted(set(data or {}) - allowed)

    def clean(self):
        cleaned = super().clean()
        if self.unexpected_fields:
            raise forms.ValidationError(
                "Unexpected fields: %(fields)s",
                params={"fields": ", ".join(self.unexpected_fields)},
                code="unexpected_fields",
            )
        return cleaned

    def value(self, name):
        """Cleaned value with empty strings normalized to ``None``."""
        return self.cleaned_data.get(name) or None


class MidtransNotificationForm(StrictPayloadForm):
    provider = "midtrans"

    order_id = forms.CharField(max_length=64, strip=False)
    transaction_status = forms.CharField(max_length=32)
    # signed fields keep their exact bytes
    status_code = forms.CharField(max_length=8, required=False, strip=False)
    gross_amount = forms.CharField(max_length=32, required=False, strip=False)
    signature_key = forms.CharField(max_length=256, required=False, strip=False)
    fraud_status = forms.CharField(max_length=32, required=False)
    payment_type = forms.CharField(max_length=64, required=False)
    transaction_time = forms.CharField(max_length=32, required=False)
    settlement_time = forms.CharField(max_length=32, required=False)
    transaction_id = forms.CharField(max_length=128, required=False)

    known_fields = frozenset({
        "status_message", "merchant_id", "currency", "expiry_time", "transaction_type",
        "masked_card", "card_type", "bank", "eci", "approval_code", "channel_response_code",
        "channel_response_message", "three_ds_version", "challenge_completion", "on_us",
        "va_numbers", "payment_amounts", "permata_va_number", "biller_code", "bill_key",
        "store", "payment_code", "merchant_cross_reference_id", "issuer", "acquirer",
        "shopeepay_reference_number", "reference_id", "pdf_url", "installment_term",
        "point_redeem_amount", "refund_amount", "refunds", "refund_chargeback_id",
        "refund_key", "reason", "customer_details", "metadata",
    })


class XenditCallbackForm(StrictPayloadForm):
    provider = "xendit"

    external_id = forms.CharField(max_length=64, strip=False)
    status = forms.CharField(max_length=32)
    id = forms.CharField(max_length=128, required=False)
    payment_method = forms.CharField(max_length=64, required=False)
    paid_at = forms.CharField(max_length=40, required=False)

    known_fields = frozenset({
        "user_id", "is_high", "merchant_name", "amount", "paid_amount", "bank_code",
        "payer_email", "description", "adjusted_received_amount", "fees_paid_amount",
        "updated", "created", "currency", "payment_channel", "payment_destination",
        "payment_details", "payment_id", "payment_method_id", "success_redirect_url",
        "failure_redirect_url", "credit_card_charge_id", "items", "fees",
        "should_authenticate_credit_card", "ewallet_type", "on_demand_link",
        "recurring_payment_id", "initial_amount", "metadata",
    })
