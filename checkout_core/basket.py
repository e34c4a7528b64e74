"""
basket.py — Local Basket State and its Remote Synchronization

BasketStore owns the single authoritative in-memory basket, keeps the
remote basket resource in sync with it, and derives the basket totals.

Every state change goes through one asyncio.Lock, so mutations issued
back-to-back are applied one after the other, each against the basket the
previous one left behind. Mutations work on a copy: the in-memory basket is
only replaced by the server's representation once the upsert succeeded.
"""

import asyncio
import logging

from .errors import BasketConflictError, StorefrontError, ValidationError
from .models import Basket, BasketItem, BasketTotals

log = logging.getLogger(__name__)


def _product_id(item):
    return item if isinstance(item, int) else item.id


class BasketStore:
    """
    Args:
        api (StoreApiClient): Remote basket resource.
        storage (ClientStorage): Durable store of the basket id.

    Attributes:
        basket (Basket | None): Current basket, None when there is none.
        totals (BasketTotals | None): Projection of `basket`, recomputed on every change.
        version (int): Incremented on every state change; see `persist`.
    """
    def __init__(self, api, storage):
        self.api = api
        self.storage = storage
        self.basket = None
        self.totals = None
        self.version = 0
        self._lock = asyncio.Lock()

    @property
    def item_count(self):
        if self.basket is None:
            return 0
        return sum(item.quantity for item in self.basket.items)

    def _log_prefix(self, basket=None):
        basket = basket or self.basket
        return f"[Basket: {basket.id if basket else '-'}]"

    def _replace(self, basket):
        self.basket = basket
        self.version += 1
        self.calculate_totals()

    def calculate_totals(self):
        """Recomputes `totals` from `basket`. No I/O."""
        self.totals = BasketTotals.from_basket(self.basket) if self.basket else None
        return self.totals

    async def fetch(self, basket_id):
        """
        Loads the remote basket and replaces the local one.

        Failures are logged and leave the local state untouched; the caller
        continues with whatever basket it already has.

        Returns:
            Basket | None: The fetched basket, None on failure or when it has no items.
        """
        async with self._lock:
            try:
                basket = await self.api.get_basket(basket_id)
            except StorefrontError as e:
                log.error(f"[Basket: {basket_id}] Failed to get basket: {e}")
                return None
            if not basket.items:
                log.warning(f"[Basket: {basket_id}] Remote basket is empty, ignoring it.")
                return None
            self._replace(basket)
            log.info(f"{self._log_prefix()} Loaded with {len(basket.items)} item(s).")
            return basket

    async def persist(self, basket, expected_version=None):
        """
        Sends the full basket to the remote resource and adopts the server's answer.

        Args:
            basket (Basket): Basket to upsert.
            expected_version (int | None): Version the caller's copy was derived from.
                If given and the store has moved on since, nothing is sent.

        Returns:
            Basket: The server's representation, now the local basket.

        Raises:
            BasketConflictError: If `expected_version` is stale.
            StorefrontError: Any failure of the upsert; local state is unchanged.
        """
        async with self._lock:
            return await self._persist_locked(basket, expected_version)

    async def _persist_locked(self, basket, expected_version=None):
        if expected_version is not None and expected_version != self.version:
            raise BasketConflictError(expected_version, self.version)
        try:
            updated = await self.api.set_basket(basket)
        except StorefrontError as e:
            log.error(f"{self._log_prefix(basket)} Failed to set basket: {e}")
            raise
        self._replace(updated)
        self.storage.basket_id = updated.id
        return updated

    async def _delete_locked(self):
        if self.basket is None:
            return
        basket_id = self.basket.id
        try:
            await self.api.delete_basket(basket_id)
        except StorefrontError as e:
            log.error(f"[Basket: {basket_id}] Failed to delete basket: {e}")
            raise
        self._reset()
        log.info(f"[Basket: {basket_id}] Deleted.")

    def _reset(self):
        self.storage.basket_id = None
        self.basket = None
        self.version += 1
        self.calculate_totals()

    async def _mutate(self, change, create=False):
        """
        Single entry point of all item mutations.

        `change` receives a copy of the current basket and returns it modified,
        or None when there is nothing to do. A basket left without items is
        deleted instead of persisted.
        """
        async with self._lock:
            if self.basket is None and not create:
                return None
            basket = self.basket.model_copy(deep=True) if self.basket else Basket.create()
            changed = change(basket)
            if changed is None:
                return self.basket
            if not changed.items:
                await self._delete_locked()
                return None
            return await self._persist_locked(changed)

    async def add_item(self, product, quantity=1):
        """
        Adds `quantity` of a product, creating the basket on first use.

        Raises:
            ValidationError: If quantity is not a positive integer.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        def change(basket):
            existing = basket.find_item(product.id)
            if existing:
                existing.quantity += quantity
            else:
                basket.items.append(BasketItem.from_product(product, quantity))
            return basket

        return await self._mutate(change, create=True)

    async def increment_item(self, item):
        product_id = _product_id(item)

        def change(basket):
            existing = basket.find_item(product_id)
            if existing is None:
                return None
            existing.quantity += 1
            return basket

        return await self._mutate(change)

    async def decrement_item(self, item):
        """Decrements the quantity by one; an item at quantity 1 is removed instead."""
        product_id = _product_id(item)

        def change(basket):
            existing = basket.find_item(product_id)
            if existing is None:
                return None
            if existing.quantity > 1:
                existing.quantity -= 1
            else:
                basket.items = [i for i in basket.items if i.id != product_id]
            return basket

        return await self._mutate(change)

    async def remove_item(self, item):
        """Removes the item. Removing the last item deletes the basket locally and remotely."""
        product_id = _product_id(item)

        def change(basket):
            if basket.find_item(product_id) is None:
                return None
            basket.items = [i for i in basket.items if i.id != product_id]
            return basket

        return await self._mutate(change)

    async def delete(self):
        """Deletes the remote basket and discards local state. Failures propagate."""
        async with self._lock:
            await self._delete_locked()

    def clear(self):
        """
        Discards the local basket and the durable id without contacting the server.

        Used once an order has been placed: the order service tears down the
        remote basket itself.
        """
        if self.basket is not None:
            log.info(f"{self._log_prefix()} Cleared locally.")
        self._reset()

    async def set_delivery_method(self, method):
        """Records the chosen delivery method and its cost on the basket."""
        def change(basket):
            basket.deliveryMethodId = method.id
            basket.shippingPrice = method.cost
            return basket

        return await self._mutate(change)

    async def create_payment_intent(self, delivery_method_id=None):
        """
        Requests (or refreshes) the payment intent for the current basket.

        Returns:
            Basket: The basket carrying `clientSecret` and `paymentIntentId`.

        Raises:
            ValidationError: If there is no basket.
            StorefrontError: If the payment intent request fails.
        """
        async with self._lock:
            if self.basket is None:
                raise ValidationError("There is no basket to pay for")
            updated = await self.api.create_payment_intent(self.basket.id, delivery_method_id)
            self._replace(updated)
            log.info(f"{self._log_prefix()} Payment intent {updated.paymentIntentId} ready.")
            return updated
