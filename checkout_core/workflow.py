"""
workflow.py — Core Orchestration Logic for the Checkout

This module drives a basket from "ready to check out" to "order placed".
It coordinates three independent remote resources in the correct sequence:
the delivery catalog and payment intents (storefront API), the payment
gateway, and the order service.

Workflow Overview:
1. Initialize: load delivery methods and create a payment intent (concurrently),
   prefill the saved address (best effort)
2. Delivery selection: refresh the payment intent for the new total
3. Submit: validate, save the address (best effort), confirm the payment
4. Create the order, strictly after the gateway reported 'succeeded'

State machine:

    IDLE → INITIALIZING → READY → DELIVERY_SELECTED → SUBMITTING → PAYMENT_CONFIRMED
         → ORDER_CREATING → COMPLETED

    SUBMITTING → PAYMENT_PROCESSING        (asynchronous payment, confirmed by email)
    any non-terminal state → FAILED        (retryable: initialize / submit again)
    ORDER_CREATING → SUCCEEDED_BUT_UNRECORDED
                                           (payment taken, no order; never retried)
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from . import config
from .countries import DEFAULT_COUNTRY_CODE, code_to_name, name_to_code
from .errors import (
    CheckoutStateError,
    NetworkError,
    PartialFailureError,
    PaymentError,
    StorefrontError,
    ValidationError,
    payment_error_from_gateway,
)
from .models import (
    Address,
    BasketTotals,
    BillingDetails,
    GatewayAddress,
    OrderToCreate,
    ShippingDetails,
)

log = logging.getLogger(__name__)

STALE_INTENT_POLICIES = ("block", "allow")


class CheckoutState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    DELIVERY_SELECTED = "delivery_selected"
    SUBMITTING = "submitting"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ORDER_CREATING = "order_creating"
    COMPLETED = "completed"
    PAYMENT_PROCESSING = "payment_processing"
    FAILED = "failed"
    SUCCEEDED_BUT_UNRECORDED = "succeeded_but_unrecorded"


TERMINAL_STATES = {
    CheckoutState.COMPLETED,
    CheckoutState.PAYMENT_PROCESSING,
    CheckoutState.SUCCEEDED_BUT_UNRECORDED,
}

SUBMITTABLE_STATES = {
    CheckoutState.READY,
    CheckoutState.DELIVERY_SELECTED,
    CheckoutState.FAILED,
}


class CheckoutResult(BaseModel):
    """
    Outcome of a submission that did not raise.

    Attributes:
        state (CheckoutState): COMPLETED or PAYMENT_PROCESSING.
        orderId (int | None): Id of the created order (COMPLETED only).
        paymentIntentId (str | None): Confirmed payment intent.
        message (str): Message for the shopper.
    """
    state: CheckoutState
    orderId: Optional[int] = None
    paymentIntentId: Optional[str] = None
    message: str = ""


class UnrecordedPaymentReporter:
    """
    Records payments that were, or may have been, captured without an order being created.

    Every report is logged at CRITICAL level and, when storage is available,
    written to durable client state so that it survives the checkout screen.
    Entries carry `outcome`: 'captured' when the gateway confirmed the payment,
    'unknown' when the confirmation was interrupted before its answer arrived.
    """
    def __init__(self, storage=None):
        self.storage = storage

    def report(self, basket_id, payment_intent_id, reason):
        log.critical(
            f"[Checkout: {basket_id}] PAYMENT {payment_intent_id} CAPTURED WITHOUT ORDER ({reason}). "
            f"REQUIRES MANUAL ACTION!"
        )
        self._record(basket_id, payment_intent_id, reason, "captured")

    def report_unknown_outcome(self, basket_id, payment_intent_id, reason):
        log.critical(
            f"[Checkout: {basket_id}] OUTCOME OF PAYMENT {payment_intent_id} UNKNOWN ({reason}). "
            f"CHECK THE GATEWAY BEFORE REFUNDING OR RETRYING!"
        )
        self._record(basket_id, payment_intent_id, reason, "unknown")

    def _record(self, basket_id, payment_intent_id, reason, outcome):
        if self.storage is not None:
            self.storage.record_unrecorded_payment({
                "basketId": basket_id,
                "paymentIntentId": payment_intent_id,
                "reason": reason,
                "outcome": outcome,
            })


def _field_label(name):
    return re.sub(r"([A-Z])", r" \1", name).lower()


class CheckoutOrchestrator:
    """
    Drives one checkout of the basket held by `basket_store`.

    Args:
        basket_store (BasketStore): Source of the basket; cleared on success.
        api (StoreApiClient): Delivery catalog and order service.
        gateway (PaymentGatewayClient | None): Payment gateway; None if it could not be loaded.
        session (SessionContext | None): Current user, used for address prefill/save and billing email.
        reporter (UnrecordedPaymentReporter | None): Receives paid-but-unrecorded purchases.
        stale_intent_policy (str): 'block' refuses to submit while the payment intent's
            amount is out of date and cannot be refreshed, 'allow' submits anyway.
            Defaults to STALE_INTENT_POLICY.
    """
    def __init__(self, basket_store, api, gateway, session=None, reporter=None, stale_intent_policy=None):
        policy = stale_intent_policy or config.STALE_INTENT_POLICY
        if policy not in STALE_INTENT_POLICIES:
            raise ValueError(f"Unknown stale intent policy: {policy!r}")

        self.basket_store = basket_store
        self.api = api
        self.gateway = gateway
        self.session = session
        self.reporter = reporter or UnrecordedPaymentReporter(basket_store.storage)
        self.stale_intent_policy = policy

        self.state = CheckoutState.IDLE
        self.message = ""
        self.delivery_methods = []
        self.selected_delivery_method = None
        self.address = Address(country=DEFAULT_COUNTRY_CODE)
        self.last_confirmation = None
        self.order = None

        # Amount the current payment intent was created for, None if unknown
        self._intent_total = None
        self._submit_task = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    @property
    def basket(self):
        return self.basket_store.basket

    @property
    def client_secret(self):
        return self.basket.clientSecret if self.basket else None

    @property
    def log_prefix(self):
        return f"[Checkout: {self.basket.id if self.basket else '-'}]"

    @property
    def totals(self):
        """Totals as the shopper will be charged: subtotal plus the selected delivery cost."""
        if self.basket is None:
            return None
        subtotal = BasketTotals.from_basket(self.basket).subtotal
        shipping = self.selected_delivery_method.cost if self.selected_delivery_method else 0
        return BasketTotals(subtotal=subtotal, shipping=shipping, total=subtotal + shipping)

    @property
    def intent_is_stale(self):
        totals = self.totals
        if self._intent_total is None or totals is None:
            return True
        return round(self._intent_total, 2) != round(totals.total, 2)

    def _transition(self, state):
        log.info(f"{self.log_prefix} {self.state.value} → {state.value}")
        self.state = state

    def _fail(self, message):
        self.message = message
        self._transition(CheckoutState.FAILED)

    async def _best_effort(self, label, coro):
        """Awaits a non-critical step. Its failure is logged and never propagates."""
        try:
            return await coro
        except Exception as e:
            log.warning(f"{self.log_prefix} {label} failed (ignored): {e!r}")
            return None

    # --- Initialization ---

    async def initialize(self):
        """
        Loads the delivery methods (selecting the first one) and creates the
        payment intent concurrently. The saved address is prefilled alongside
        when the shopper is signed in.

        May be called again after a failure.

        Raises:
            ValidationError: If the basket is empty.
            CheckoutStateError: If checkout is already initialized or finished.
            StorefrontError: If delivery methods or the payment intent could not be loaded.
        """
        if self.state not in (CheckoutState.IDLE, CheckoutState.FAILED):
            raise CheckoutStateError(f"Cannot initialize checkout in state {self.state.value}")
        if self.basket is None or not self.basket.items:
            raise ValidationError("Your basket is empty")

        self._transition(CheckoutState.INITIALIZING)
        steps = [self._load_delivery_methods(), self._create_intent()]
        if self.session is not None and self.session.is_authenticated:
            steps.append(self._best_effort("Address prefill", self._prefill_address()))

        try:
            results = await asyncio.gather(*steps, return_exceptions=True)
        except asyncio.CancelledError:
            self._fail("Checkout initialization was cancelled.")
            raise

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            log.error(f"{self.log_prefix} Initialization failed: {errors[0]!r}")
            self._fail("Failed to initialize checkout")
            raise errors[0]

        self.message = ""
        self._transition(CheckoutState.READY)

        # The intent was created before a delivery method was known
        if self.selected_delivery_method is not None and self.intent_is_stale:
            await self._refresh_intent()

    async def _load_delivery_methods(self):
        methods = await self.api.get_delivery_methods()
        self.delivery_methods = methods
        self.selected_delivery_method = methods[0] if methods else None

    async def _create_intent(self):
        basket = await self.basket_store.create_payment_intent()
        self._intent_total = BasketTotals.from_basket(basket).total

    async def _prefill_address(self):
        saved = await self.session.get_user_address()
        if saved:
            self.address = saved.model_copy(update={"country": name_to_code(saved.country)})
            log.info(f"{self.log_prefix} Prefilled saved address.")

    # --- Delivery method ---

    async def select_delivery_method(self, method):
        """
        Selects a delivery method and refreshes the payment intent for the new total.

        A failed refresh does not raise; the intent is then considered stale
        and handled at submission according to the stale intent policy.

        Args:
            method (DeliveryMethod | int): Method or its id, one of `delivery_methods`.

        Returns:
            bool: True if the payment intent now matches the new total.
        """
        if self.state not in SUBMITTABLE_STATES:
            raise CheckoutStateError(f"Cannot select a delivery method in state {self.state.value}")

        method_id = method if isinstance(method, int) else method.id
        chosen = next((m for m in self.delivery_methods if m.id == method_id), None)
        if chosen is None:
            raise ValidationError("Please select a delivery method")

        self.selected_delivery_method = chosen
        self._transition(CheckoutState.DELIVERY_SELECTED)
        return await self._refresh_intent()

    async def _refresh_intent(self):
        method = self.selected_delivery_method
        try:
            basket = await self.basket_store.create_payment_intent(method.id)
        except StorefrontError as e:
            self._intent_total = None
            log.warning(f"{self.log_prefix} Failed to update payment intent for delivery method {method.id}: {e}")
            return False
        self._intent_total = BasketTotals.from_basket(basket).subtotal + method.cost
        return True

    # --- Submission ---

    def _validate(self, address, card):
        missing = address.missing_fields()
        if missing:
            raise ValidationError(
                f"Please fill in the {_field_label(missing[0])} field",
                [f"{_field_label(name)} is required" for name in missing],
            )
        if self.selected_delivery_method is None:
            raise ValidationError("Please select a delivery method")
        if self.gateway is None or not self.gateway.initialized or not self.client_secret:
            raise ValidationError("Payment system not ready. Please try again.")
        if card is None:
            raise ValidationError("Please enter your card details")

    async def _ensure_current_intent(self):
        if not self.intent_is_stale:
            return
        if self.stale_intent_policy == "allow":
            log.warning(f"{self.log_prefix} Submitting with a payment intent for a different amount.")
            return
        if not await self._refresh_intent():
            raise ValidationError("The payment amount could not be updated. Please try again.")

    async def submit(self, address, card):
        """
        Pays for the basket and places the order.

        Args:
            address (Address): Shipping address, `country` as two-letter code.
            card (CardDetails): Card to charge.

        Returns:
            CheckoutResult: COMPLETED with the order id, or PAYMENT_PROCESSING when the
            gateway settles the payment asynchronously (no order is created here).

        Raises:
            ValidationError: Missing input or payment system not ready; nothing was sent.
            PaymentError: The gateway rejected the payment; no order was created.
            NetworkError: The gateway could not be reached.
            PartialFailureError: The payment succeeded but the order could not be created.
            CheckoutStateError: Submission is not possible in the current state.
        """
        if self._submit_task is not None and not self._submit_task.done():
            raise CheckoutStateError("A submission is already in progress")
        self._submit_task = asyncio.ensure_future(self._submit(address, card))
        return await self._submit_task

    async def _submit(self, address, card):
        if self.state not in SUBMITTABLE_STATES:
            raise CheckoutStateError(f"Cannot submit checkout in state {self.state.value}")

        self.address = address
        self._validate(address, card)
        await self._ensure_current_intent()

        basket = self.basket
        client_secret = basket.clientSecret
        self._transition(CheckoutState.SUBMITTING)

        try:
            if self.session is not None and self.session.is_authenticated:
                await self._best_effort("Address save", self.session.update_user_address(self._api_address(address)))

            confirmation = await self._confirm_payment(client_secret, address, card)
        except BaseException as e:
            if self.state == CheckoutState.SUBMITTING:
                log.error(f"{self.log_prefix} Submission aborted: {e!r}")
                self._fail("Checkout was interrupted. Please try again.")
            raise
        self.last_confirmation = confirmation

        if confirmation.error is not None:
            error = payment_error_from_gateway(confirmation.error)
            log.error(f"{self.log_prefix} Payment failed: {confirmation.error.type} ({confirmation.error.code}).")
            self._fail(error.user_message)
            raise error

        intent = confirmation.paymentIntent
        if intent.status == "succeeded":
            self._transition(CheckoutState.PAYMENT_CONFIRMED)
            return await self._create_order(basket, intent)

        if intent.status == "processing":
            self.message = "Payment is being processed. You will receive an email confirmation once complete."
            self._transition(CheckoutState.PAYMENT_PROCESSING)
            return CheckoutResult(state=self.state, paymentIntentId=intent.id, message=self.message)

        if intent.status == "requires_action":
            message = "Additional authentication is required. Please try again."
        else:
            message = "Payment was not completed. Please try again."
        log.error(f"{self.log_prefix} Payment {intent.id} ended with status '{intent.status}'.")
        self._fail(message)
        raise PaymentError(message, code=intent.status)

    async def _confirm_payment(self, client_secret, address, card):
        gateway_address = GatewayAddress(line1=address.street, city=address.city, country=address.country)
        billing = BillingDetails(
            name=address.full_name,
            email=self.session.email if self.session is not None else None,
            address=gateway_address,
        )
        shipping = ShippingDetails(name=address.full_name, address=gateway_address)
        try:
            return await self.gateway.confirm_card_payment(client_secret, card, billing, shipping)
        except asyncio.CancelledError:
            self._report_unknown_outcome("confirmation cancelled")
            self._fail("Payment was interrupted. Please check your orders before trying again.")
            raise
        except NetworkError as e:
            self._report_unknown_outcome(f"confirmation failed: {e}")
            self._fail("Network error. Please check your orders before trying again.")
            raise
        except StorefrontError as e:
            self._fail(str(e) or "Checkout failed. Please try again.")
            raise

    def _report_unknown_outcome(self, reason):
        basket = self.basket
        self.reporter.report_unknown_outcome(basket.id, basket.paymentIntentId, f"outcome unknown: {reason}")

    async def _create_order(self, basket, intent):
        self._transition(CheckoutState.ORDER_CREATING)
        order_request = OrderToCreate(
            basketId=basket.id,
            deliveryMethodId=self.selected_delivery_method.id,
            shippingAddress=self._api_address(self.address),
            paymentIntentId=intent.id,
        )
        try:
            order = await self.api.create_order(order_request)
        except (Exception, asyncio.CancelledError) as e:
            self.message = PartialFailureError.user_message
            self._transition(CheckoutState.SUCCEEDED_BUT_UNRECORDED)
            self.reporter.report(basket.id, intent.id, repr(e))
            if isinstance(e, asyncio.CancelledError):
                raise
            raise PartialFailureError(basket.id, intent.id, cause=e) from e

        self.order = order
        self.basket_store.clear()
        self.message = "Payment successful! Your order has been placed."
        self._transition(CheckoutState.COMPLETED)
        log.info(f"[Checkout: {basket.id}] Order {order.id} created for payment {intent.id}.")
        return CheckoutResult(state=self.state, orderId=order.id, paymentIntentId=intent.id, message=self.message)

    @staticmethod
    def _api_address(address):
        return address.model_copy(update={"country": code_to_name(address.country)})

    # --- Lifetime ---

    def cancel(self):
        """Aborts an in-flight submission. Returns True if one was running."""
        if self._submit_task is None or self._submit_task.done():
            return False
        log.warning(f"{self.log_prefix} Cancelling submission in state {self.state.value}.")
        self._submit_task.cancel()
        return True

    async def aclose(self):
        if self.cancel():
            await asyncio.gather(self._submit_task, return_exceptions=True)
