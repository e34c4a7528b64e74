"""
This module provides communication clients for the remote systems used by the checkout core:
- Storefront API (REST): catalog, basket, payment intents, orders, account
- Payment Gateway (REST): confirmation of card payments against a payment intent
Each class encapsulates its protocol logic, error mapping, and connection management.
"""

import logging
import uuid

import httpx

from . import config
from .errors import ApiError, AuthError, NetworkError, NotFoundError, ValidationError
from .models import (
    Address,
    Basket,
    Brand,
    DeliveryMethod,
    GatewayError,
    Order,
    OrderToCreate,
    Pagination,
    PaymentConfirmation,
    PaymentIntent,
    Product,
    ProductType,
    User,
)

log = logging.getLogger(__name__)


def _timeout_config():
    return httpx.Timeout(config.HTTP_TIMEOUT, read=config.HTTP_READ_TIMEOUT)


def _body(response):
    """Returns the decoded JSON body, or None for empty / non-JSON bodies."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _decode(response, parse):
    """Parses a successful response body. Malformed bodies raise ApiError."""
    try:
        return parse(response.json())
    except (ValueError, TypeError) as e:
        request = response.request
        log.error(f"[API] {request.method} {request.url.path}: malformed response body: {e!r}")
        raise ApiError(response.status_code, "Malformed response from the server") from e


def _flatten_errors(errors):
    if isinstance(errors, dict):
        messages = []
        for value in errors.values():
            messages.extend(_flatten_errors(value))
        return messages
    if isinstance(errors, (list, tuple)):
        messages = []
        for value in errors:
            messages.extend(_flatten_errors(value))
        return messages
    if errors:
        return [str(errors)]
    return []


# --- Storefront Client (REST) ---
class StoreApiClient:
    """
    Client for the storefront REST API.

    Every request carries the session's bearer token when one exists.
    HTTP failures are translated into the checkout core's error taxonomy:
        - 400 / 422 → ValidationError (field messages flattened)
        - 401 → AuthError, after notifying `on_unauthorized`
        - 404 → NotFoundError
        - 5xx and transport errors (timeouts included) → NetworkError
        - any other 4xx → ApiError
    """
    def __init__(self, base_url=None, token_provider=None, on_unauthorized=None, transport=None):
        """
        Args:
            base_url (str): API root, e.g. 'http://localhost:5000/api'. Defaults to STORE_API_URL.
            token_provider (callable): Returns the current session token or None.
            on_unauthorized (callable): Invoked when the API answers 401.
            transport (httpx.AsyncBaseTransport): Optional transport, used by tests.
        """
        self.token_provider = token_provider
        self.on_unauthorized = on_unauthorized
        self.client = httpx.AsyncClient(
            base_url=base_url or config.STORE_API_URL,
            timeout=_timeout_config(),
            transport=transport,
        )

    async def aclose(self):
        """Closes the HTTP client session."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method, path, **kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            log.error(f"[API] {method} {path} failed: {e!r}")
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            self._raise_for_status(method, path, response)
        return response

    def _raise_for_status(self, method, path, response):
        status = response.status_code
        data = _body(response)
        message = None
        if isinstance(data, dict):
            message = data.get("message") or data.get("detail")
            if not isinstance(message, str):
                message = None

        if status == 401:
            log.warning(f"[API] {method} {path}: session rejected (401).")
            if self.on_unauthorized:
                self.on_unauthorized()
            raise AuthError(message or "Unauthorized")

        if status in (400, 422):
            errors = []
            if isinstance(data, dict):
                errors = _flatten_errors(data.get("errors"))
                if not errors and isinstance(data.get("detail"), list):
                    # FastAPI-style request validation errors
                    errors = [d.get("msg", str(d)) for d in data["detail"] if isinstance(d, dict)]
            log.warning(f"[API] {method} {path}: bad request: {message or errors}")
            raise ValidationError(message or "Bad request", errors)

        if status == 404:
            raise NotFoundError(status, message or "Resource not found")

        if status >= 500:
            log.error(f"[API] {method} {path}: server error {status}.")
            raise NetworkError(f"{method} {path}: server error {status}: {message or 'Internal server error'}")

        raise ApiError(status, message or response.reason_phrase)

    # Shop

    async def get_products(self, params):
        """
        Fetches one page of the product listing.

        Args:
            params (ShopParams): Filter, sort and paging state.

        Returns:
            Pagination: The requested page.
        """
        query = {}
        if params.brandId > 0:
            query["brandId"] = params.brandId
        if params.typeId > 0:
            query["categoryId"] = params.typeId
        if params.search:
            query["search"] = params.search
        query["sort"] = params.sort
        query["pageIndex"] = params.pageNumber
        query["pageSize"] = params.pageSize

        response = await self._request("GET", "/products", params=query)
        return _decode(response, Pagination.model_validate)

    async def get_product(self, product_id):
        response = await self._request("GET", f"/products/{product_id}")
        return _decode(response, Product.model_validate)

    async def get_brands(self):
        response = await self._request("GET", "/products/brands")
        return _decode(response, lambda data: [Brand.model_validate(b) for b in data])

    async def get_product_types(self):
        response = await self._request("GET", "/products/categories")
        return _decode(response, lambda data: [ProductType.model_validate(t) for t in data])

    # Basket

    async def get_basket(self, basket_id):
        response = await self._request("GET", "/basket", params={"id": basket_id})
        return _decode(response, Basket.model_validate)

    async def set_basket(self, basket):
        """
        Upserts the whole basket. The returned basket carries server-computed fields.
        """
        response = await self._request("POST", "/basket", json=basket.model_dump(exclude_none=True))
        return _decode(response, Basket.model_validate)

    async def delete_basket(self, basket_id):
        await self._request("DELETE", "/basket", params={"id": basket_id})

    async def create_payment_intent(self, basket_id, delivery_method_id=None):
        """
        Creates or refreshes the payment intent for a basket.

        Args:
            basket_id (str): The basket to charge.
            delivery_method_id (int | None): Delivery method whose cost is added to the amount.

        Returns:
            Basket: The basket including `clientSecret` and `paymentIntentId`.
        """
        payload = {}
        if delivery_method_id is not None:
            payload["deliveryMethodId"] = delivery_method_id
        response = await self._request("POST", f"/payments/{basket_id}", json=payload)
        return _decode(response, Basket.model_validate)

    # Orders

    async def get_delivery_methods(self):
        response = await self._request("GET", "/orders/deliveryMethods")
        return _decode(response, lambda data: [DeliveryMethod.model_validate(m) for m in data])

    async def create_order(self, order: OrderToCreate):
        response = await self._request("POST", "/orders", json=order.model_dump())
        return _decode(response, Order.model_validate)

    async def get_orders(self):
        response = await self._request("GET", "/orders")
        return _decode(response, lambda data: [Order.model_validate(o) for o in data])

    async def get_order(self, order_id):
        response = await self._request("GET", f"/orders/{order_id}")
        return _decode(response, Order.model_validate)

    # Account

    async def login(self, email, password):
        response = await self._request("POST", "/account/login", json={"email": email, "password": password})
        return _decode(response, User.model_validate)

    async def register(self, display_name, email, password):
        payload = {"displayName": display_name, "email": email, "password": password}
        response = await self._request("POST", "/account/register", json=payload)
        return _decode(response, User.model_validate)

    async def get_current_user(self):
        response = await self._request("GET", "/account")
        return _decode(response, User.model_validate)

    async def get_user_address(self):
        response = await self._request("GET", "/account/address")
        data = _body(response)
        return Address.model_validate(data) if data else None

    async def update_user_address(self, address):
        response = await self._request("PUT", "/account/address", json=address.model_dump())
        return _decode(response, Address.model_validate)

    async def check_email_exists(self, email):
        response = await self._request("GET", "/account/emailexists", params={"email": email})
        return _decode(response, bool)


# --- Payment Gateway Client (REST) ---
class PaymentGatewayClient:
    """
    Client for the card-payment gateway.

    The gateway never sees the basket or the order: it only receives the
    client secret of a payment intent created by the storefront API plus
    card and billing metadata.
    """
    def __init__(self, publishable_key=None, base_url=None, transport=None):
        """
        Args:
            publishable_key (str): Public key of the merchant account. Defaults to PAYMENT_PUBLISHABLE_KEY.
            base_url (str): Gateway API root. Defaults to PAYMENT_GATEWAY_URL.
            transport (httpx.AsyncBaseTransport): Optional transport, used by tests.
        """
        self.publishable_key = publishable_key if publishable_key is not None else config.PAYMENT_PUBLISHABLE_KEY
        self.client = httpx.AsyncClient(
            base_url=base_url or config.PAYMENT_GATEWAY_URL,
            timeout=_timeout_config(),
            transport=transport,
        )

    @property
    def initialized(self):
        """True when the gateway can be used, i.e. a publishable key is configured."""
        return bool(self.publishable_key)

    async def aclose(self):
        await self.client.aclose()

    @staticmethod
    def intent_id_from_secret(client_secret):
        intent_id, sep, _ = client_secret.partition("_secret_")
        if not sep or not intent_id:
            raise ValidationError("Malformed payment intent client secret")
        return intent_id

    async def confirm_card_payment(self, client_secret, card, billing_details=None, shipping=None):
        """
        Confirms a payment intent with card details.

        Args:
            client_secret (str): Client secret returned by the payment intent creation.
            card (CardDetails): Card to charge.
            billing_details (BillingDetails): Name, email and address of the payer.
            shipping (ShippingDetails): Shipping name and address.

        Returns:
            PaymentConfirmation: Either the confirmed intent (with its status) or
            the gateway-reported error.

        Raises:
            NetworkError: If the gateway is unreachable, times out or answers 5xx.
                The payment outcome is unknown in that case.
        """
        intent_id = self.intent_id_from_secret(client_secret)
        form = {
            "client_secret": client_secret,
            "payment_method_data": {
                "type": "card",
                "card": {
                    "number": card.number,
                    "exp_month": card.expMonth,
                    "exp_year": card.expYear,
                    "cvc": card.cvc,
                },
            },
        }
        if billing_details is not None:
            form["payment_method_data"]["billing_details"] = billing_details.model_dump(exclude_none=True)
        if shipping is not None:
            form["shipping"] = shipping.model_dump(exclude_none=True)

        headers = {
            "Authorization": f"Bearer {self.publishable_key}",
            "Idempotency-Key": str(uuid.uuid4()),
        }

        try:
            response = await self.client.post(
                f"/v1/payment_intents/{intent_id}/confirm",
                data=encode_form(form),
                headers=headers,
            )
        except httpx.TransportError as e:
            log.error(f"[Gateway] Confirmation of {intent_id} failed ({e!r}). Payment status unknown.")
            raise NetworkError(f"Payment gateway unreachable: {e}") from e

        data = _body(response)
        if not isinstance(data, dict):
            data = {}
        if response.status_code >= 500:
            log.error(f"[Gateway] Confirmation of {intent_id}: server error {response.status_code}.")
            raise NetworkError(f"Payment gateway error {response.status_code}")

        if response.is_error:
            error = data.get("error") or {}
            gateway_error = GatewayError(
                type=error.get("type") or "api_error",
                code=error.get("code"),
                message=error.get("message"),
            )
            log.warning(f"[Gateway] Payment {intent_id} rejected: {gateway_error.type} ({gateway_error.code}).")
            return PaymentConfirmation(error=gateway_error)

        intent = PaymentIntent(
            id=data.get("id", intent_id),
            status=data.get("status", "unknown"),
            amount=data.get("amount"),
            clientSecret=data.get("client_secret"),
        )
        log.info(f"[Gateway] Payment {intent.id} confirmed with status '{intent.status}'.")
        return PaymentConfirmation(paymentIntent=intent)


def encode_form(data, prefix=""):
    """
    Flattens nested dicts into bracket-notation form fields.

    {'card': {'number': '42'}} → {'card[number]': '42'}
    """
    fields = {}
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            fields.update(encode_form(value, name))
        elif value is not None:
            fields[name] = str(value)
    return fields
