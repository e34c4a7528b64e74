"""
config.py — Runtime Settings for the Storefront Checkout Core

All service addresses and tunables are read from environment variables,
with defaults suitable for local development against the mock services.
"""

import os

# Storefront REST API (products, basket, payments, orders, account)
STORE_API_URL = os.environ.get("STORE_API_URL", "http://localhost:5000/api")

# Card-payment gateway used to confirm payment intents
PAYMENT_GATEWAY_URL = os.environ.get("PAYMENT_GATEWAY_URL", "https://api.stripe.com")
PAYMENT_PUBLISHABLE_KEY = os.environ.get("PAYMENT_PUBLISHABLE_KEY", "")

HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "10"))
HTTP_READ_TIMEOUT = float(os.environ.get("HTTP_READ_TIMEOUT", "10"))

# Durable client-side state (basket id, auth token)
STATE_FILE = os.environ.get("STATE_FILE", ".storefront_state.json")

LOG_FILE = os.environ.get("LOG_FILE") or None

# "block": refuse to submit while the payment intent amount is out of date
# "allow": submit with the previously obtained client secret
STALE_INTENT_POLICY = os.environ.get("STALE_INTENT_POLICY", "block")
