"""
errors.py — Error Taxonomy of the Checkout Core

    StorefrontError
     ├── ValidationError            local or API-reported validation failure
     ├── ApiError                   unexpected HTTP status
     │    └── NotFoundError         404
     ├── NetworkError               transport failure, timeout, 5xx
     ├── AuthError                  401, session token has been cleared
     ├── PaymentError               gateway-reported payment failure
     │    ├── CardError
     │    ├── PaymentValidationError
     │    └── AuthenticationRequiredError
     ├── PartialFailureError        payment taken, order not recorded
     ├── BasketConflictError        stale basket version on persist
     └── CheckoutStateError         illegal checkout transition
"""


class StorefrontError(Exception):
    """Base class for all errors raised by the checkout core."""


class ValidationError(StorefrontError):
    """
    Raised when input is rejected, either locally before any network call
    or by the API with a 400 response.

    Attributes:
        errors (list[str]): Individual field messages, if any.
    """
    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class ApiError(StorefrontError):
    def __init__(self, status_code, message):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class NotFoundError(ApiError):
    pass


class NetworkError(StorefrontError):
    """Transport failure, timeout or server error. Retryable by the user."""


class AuthError(StorefrontError):
    """Missing or expired session. The stored token has been cleared."""


class PaymentError(StorefrontError):
    """
    Payment rejected by the gateway.

    Attributes:
        user_message (str): Message suitable for showing to the shopper.
        code (str | None): Gateway error code, e.g. 'card_declined'.
    """
    default_message = "Payment failed. Please try again."

    def __init__(self, user_message=None, code=None):
        self.user_message = user_message or self.default_message
        self.code = code
        super().__init__(self.user_message)


class CardError(PaymentError):
    default_message = "Payment failed. Please check your card details."


class PaymentValidationError(PaymentError):
    default_message = "Payment failed. Please check your card details."


class AuthenticationRequiredError(PaymentError):
    default_message = "Authentication required. Please try again."


class PartialFailureError(StorefrontError):
    """
    The payment gateway captured the payment but the order could not be created.

    Resubmitting the checkout would charge the shopper again, so this
    must be surfaced as "payment taken, contact support".
    """
    user_message = (
        "Payment was successful, but there was an issue creating your order. "
        "Please contact support with your payment confirmation."
    )

    def __init__(self, basket_id, payment_intent_id, cause=None):
        super().__init__(
            f"Payment {payment_intent_id} succeeded but order creation for basket {basket_id} failed: {cause}"
        )
        self.basket_id = basket_id
        self.payment_intent_id = payment_intent_id
        self.cause = cause


class BasketConflictError(StorefrontError):
    def __init__(self, expected_version, current_version):
        super().__init__(
            f"Basket changed since version {expected_version} (now {current_version})"
        )
        self.expected_version = expected_version
        self.current_version = current_version


class CheckoutStateError(StorefrontError):
    pass


def payment_error_from_gateway(error):
    """
    Maps a gateway-reported error to the matching PaymentError subclass.

    Args:
        error (models.GatewayError): The error object returned by the gateway.

    Returns:
        PaymentError: card / validation errors keep the gateway's message,
        authentication-required prompts a retry, anything else is generic.
    """
    if error.type == "card_error":
        return CardError(error.message, code=error.code)
    if error.type == "validation_error":
        return PaymentValidationError(error.message, code=error.code)
    if error.type == "authentication_required":
        return AuthenticationRequiredError(code=error.code)
    return PaymentError(code=error.code)
