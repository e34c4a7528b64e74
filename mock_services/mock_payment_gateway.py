"""
mock_payment_gateway.py — Mock Implementation of the Card-Payment Gateway (REST API)

This module provides a simulated payment gateway for testing the checkout workflow.
It exposes a FastAPI application that mimics the confirmation endpoint of a
Stripe-style gateway.

Simulation Scenarios (by card number):
    • 4242424242424242 → payment succeeded
    • 4000000000000002 → card declined (HTTP 402, card_error)
    • 4000000000009995 → insufficient funds (HTTP 402, card_error)
    • 4000000000000341 → authentication required (HTTP 402)
    • 4000002500003155 → intent requires further action
    • 4000000000000259 → payment processing asynchronously
    • expiry in the past → HTTP 400, validation_error
    • client secret not matching the intent → HTTP 400, invalid_request_error

An intent that already succeeded cannot be confirmed again.

Endpoints:
    POST /v1/payment_intents/{intent_id}/confirm — form-encoded confirmation.

Port:
    Default: 8002 (HTTP)
"""

import logging
import time

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("mock_payment_gateway")

SUCCEEDED_CARD = "4242424242424242"
DECLINED_CARD = "4000000000000002"
INSUFFICIENT_FUNDS_CARD = "4000000000009995"
AUTHENTICATION_REQUIRED_CARD = "4000000000000341"
REQUIRES_ACTION_CARD = "4000002500003155"
PROCESSING_CARD = "4000000000000259"

CARD_ERRORS = {
    DECLINED_CARD: ("card_error", "card_declined", "Your card was declined."),
    INSUFFICIENT_FUNDS_CARD: ("card_error", "insufficient_funds", "Your card has insufficient funds."),
    AUTHENTICATION_REQUIRED_CARD: (
        "authentication_required", "authentication_required", "Your card requires authentication."
    ),
}

CARD_STATUSES = {
    SUCCEEDED_CARD: "succeeded",
    REQUIRES_ACTION_CARD: "requires_action",
    PROCESSING_CARD: "processing",
}


def _error(status_code, error_type, code, message):
    return JSONResponse(
        status_code=status_code,
        content={"error": {"type": error_type, "code": code, "message": message}},
    )


def create_app():
    """Builds a fresh mock gateway with no confirmed intents."""
    app = FastAPI(title="Mock Payment Gateway")
    app.state.intents = {}
    app.state.confirmations = []

    @app.post("/v1/payment_intents/{intent_id}/confirm")
    async def confirm_payment_intent(
            intent_id: str,
            request: Request,
            authorization: str = Header(...),
            idempotency_key: str = Header(..., alias="Idempotency-Key"),
    ):
        """
        Confirms a payment intent with the card carried in the form body.

        The outcome is chosen by the card number, see the module docstring.
        """
        form = dict(await request.form())
        app.state.confirmations.append({"intentId": intent_id, "form": form})
        log.info(f"[GW] Confirmation for {intent_id} (Idempotency: {idempotency_key})")

        if not authorization.startswith("Bearer pk_"):
            return _error(401, "invalid_request_error", "api_key_invalid", "Invalid publishable key.")

        client_secret = form.get("client_secret", "")
        if not client_secret.startswith(f"{intent_id}_secret_"):
            return _error(400, "invalid_request_error", "resource_missing", "No such payment_intent.")

        if app.state.intents.get(intent_id) == "succeeded":
            return _error(
                400, "invalid_request_error", "payment_intent_unexpected_state",
                "This PaymentIntent has already succeeded.",
            )

        number = form.get("payment_method_data[card][number]", "")
        exp_month = int(form.get("payment_method_data[card][exp_month]", "0"))
        exp_year = int(form.get("payment_method_data[card][exp_year]", "0"))
        now = time.gmtime()
        if (exp_year, exp_month) < (now.tm_year, now.tm_mon):
            return _error(400, "validation_error", "invalid_expiry_year", "Your card's expiration year is in the past.")

        if number in CARD_ERRORS:
            error_type, code, message = CARD_ERRORS[number]
            app.state.intents[intent_id] = "requires_payment_method"
            log.warning(f"[GW] Payment {intent_id} declined: {code}.")
            return _error(402, error_type, code, message)

        status = CARD_STATUSES.get(number)
        if status is None:
            return _error(402, "card_error", "incorrect_number", "Your card number is incorrect.")

        app.state.intents[intent_id] = status
        log.info(f"[GW] Payment {intent_id} → {status}.")
        return {
            "id": intent_id,
            "object": "payment_intent",
            "status": status,
            "client_secret": client_secret,
        }

    return app


app = create_app()
