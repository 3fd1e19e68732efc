"""Errors raised by the checkout and webhook flows.

Each error carries the HTTP status the views answer with and a generic
``public_message``; the exception text itself is for logs only.
"""


class PaymentError(Exception):
    status_code = 400
    public_message = "Payment request could not be processed"

    def __init__(self, message="", *, public_message=None):
        super().__init__(message or self.public_message)
        if public_message:
            self.public_message = public_message


class InvalidPayload(PaymentError):
    public_message = "Invalid request"


class InvalidPackage(PaymentError):
    public_message = "Invalid package selected"


class AmountMismatch(PaymentError):
    public_message = "Amount does not match package price. Please refresh and try again."

    def __init__(self, message="", *, expected=None, provided=None, **kwargs):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.provided = provided


class AuthenticationRequired(PaymentError):
    status_code = 401
    public_message = "Authentication required. Please log in to make a purchase."


class InvalidSignature(PaymentError):
    status_code = 403
    public_message = "Invalid signature"


class OrderNotFound(PaymentError):
    status_code = 404
    public_message = "Order not found"


class GatewayError(PaymentError):
    status_code = 500
    public_message = "Payment processing failed, please try again"


class GatewayNotConfigured(GatewayError):
    pass


class MidtransError(GatewayError):
    pass


class XenditError(GatewayError):
    pass
