import asyncio

import httpx
import pytest

from checkout_core.basket import BasketStore
from checkout_core.clients import StoreApiClient
from checkout_core.errors import BasketConflictError, NetworkError, ValidationError
from checkout_core.models import DeliveryMethod, Product
from checkout_core.storage import ClientStorage


def product(product_id=1, price=200.0):
    return Product(id=product_id, name=f"Product {product_id}", price=price, brand="Angular", category="Boards")


def assert_totals_consistent(store):
    if store.basket is None:
        assert store.totals is None
        return
    subtotal = sum(item.price * item.quantity for item in store.basket.items)
    assert store.totals.subtotal == subtotal
    assert store.totals.total == store.totals.subtotal + store.totals.shipping
    assert all(item.quantity >= 1 for item in store.basket.items)


async def test_add_item_creates_and_persists_basket(storefront, store_app, storage):
    store = storefront.basket

    basket = await store.add_item(product(1), quantity=2)

    assert basket.id == storage.basket_id
    assert store_app.state.store.baskets[basket.id]["items"][0]["quantity"] == 2
    assert store.totals.subtotal == 400.0
    assert store.totals.total == 400.0
    assert store.item_count == 2


async def test_add_existing_product_merges_quantity(storefront):
    store = storefront.basket
    await store.add_item(product(1))
    await store.add_item(product(2, price=10.0))
    await store.add_item(product(1), quantity=3)

    assert [(i.id, i.quantity) for i in store.basket.items] == [(1, 4), (2, 1)]
    assert_totals_consistent(store)


async def test_concurrent_mutations_are_applied_in_order(storefront, store_app):
    store = storefront.basket
    await store.add_item(product(1))

    await asyncio.gather(
        store.increment_item(1),
        store.add_item(product(2, price=10.0)),
        store.increment_item(1),
        store.add_item(product(2, price=10.0)),
    )

    assert [(i.id, i.quantity) for i in store.basket.items] == [(1, 3), (2, 2)]
    remote = store_app.state.store.baskets[store.basket.id]
    assert [(i["id"], i["quantity"]) for i in remote["items"]] == [(1, 3), (2, 2)]


async def test_decrement_at_one_removes_item(storefront):
    store = storefront.basket
    await store.add_item(product(1), quantity=2)
    await store.add_item(product(2, price=10.0))

    await store.decrement_item(store.basket.items[0])
    assert store.basket.find_item(1).quantity == 1

    await store.decrement_item(1)
    assert store.basket.find_item(1) is None
    assert [i.id for i in store.basket.items] == [2]
    assert_totals_consistent(store)


async def test_removing_last_item_deletes_basket(storefront, store_app, storage):
    store = storefront.basket
    basket = await store.add_item(product(1))

    result = await store.decrement_item(1)

    assert result is None
    assert store.basket is None
    assert store.totals is None
    assert storage.basket_id is None
    assert basket.id not in store_app.state.store.baskets


async def test_totals_hold_after_every_mutation(storefront):
    store = storefront.basket
    steps = [
        lambda: store.add_item(product(1, price=19.99)),
        lambda: store.add_item(product(2, price=0.1), quantity=3),
        lambda: store.increment_item(1),
        lambda: store.decrement_item(2),
        lambda: store.set_delivery_method(DeliveryMethod(id=2, shortName="UPS2", cost=5.0)),
        lambda: store.remove_item(1),
        lambda: store.decrement_item(2),
        lambda: store.decrement_item(2),
    ]
    for step in steps:
        await step()
        assert_totals_consistent(store)
    assert store.basket is None


async def test_set_delivery_method_adopts_server_shipping_price(storefront):
    store = storefront.basket
    await store.add_item(product(1))

    await store.set_delivery_method(DeliveryMethod(id=1, shortName="UPS1", cost=10.0))

    assert store.basket.deliveryMethodId == 1
    assert store.basket.shippingPrice == 10.0
    assert store.totals.shipping == 10.0
    assert store.totals.total == 210.0


async def test_failed_persist_propagates_and_keeps_local_state(storefront, store_app):
    store = storefront.basket
    await store.add_item(product(1))
    version = store.version

    store_app.state.failures.add("set_basket")
    with pytest.raises(NetworkError):
        await store.add_item(product(1))

    assert store.basket.find_item(1).quantity == 1
    assert store.version == version
    assert store.totals.subtotal == 200.0


async def test_failed_remote_delete_propagates(storefront, store_app, storage):
    store = storefront.basket
    basket = await store.add_item(product(1))

    store_app.state.failures.add("delete_basket")
    with pytest.raises(NetworkError):
        await store.remove_item(1)

    assert store.basket.find_item(1) is not None
    assert storage.basket_id == basket.id


async def test_fetch_replaces_state(storefront, store_app):
    store = storefront.basket
    store_app.state.store.baskets["b-1"] = {
        "id": "b-1",
        "items": [{"id": 6, "productName": "Core Blue Hat", "price": 10.0, "quantity": 3}],
        "shippingPrice": 2.0,
    }

    basket = await store.fetch("b-1")

    assert basket.id == "b-1"
    assert store.totals.subtotal == 30.0
    assert store.totals.total == 32.0


async def test_fetch_failure_leaves_state_untouched(storefront, store_app):
    store = storefront.basket
    await store.add_item(product(1))
    before = store.basket

    store_app.state.failures.add("get_basket")
    assert await store.fetch(before.id) is None
    assert store.basket is before


async def test_fetch_ignores_empty_remote_basket(storefront, store_app):
    store = storefront.basket
    await store.add_item(product(1))
    before = store.basket

    assert await store.fetch("unknown-basket") is None
    assert store.basket is before


async def test_fetch_degrades_on_malformed_body():
    api = StoreApiClient(
        base_url="http://store.test/api",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"null")),
    )
    store = BasketStore(api, ClientStorage())

    assert await store.fetch("b-1") is None
    assert store.basket is None
    await api.aclose()


async def test_persist_rejects_stale_version(storefront):
    store = storefront.basket
    await store.add_item(product(1))
    stale_version = store.version
    stale_copy = store.basket.model_copy(deep=True)

    await store.increment_item(1)

    with pytest.raises(BasketConflictError):
        await store.persist(stale_copy, expected_version=stale_version)
    assert store.basket.find_item(1).quantity == 2


async def test_clear_does_not_contact_server(storefront, store_app, storage):
    store = storefront.basket
    basket = await store.add_item(product(1))

    store.clear()

    assert store.basket is None
    assert storage.basket_id is None
    assert basket.id in store_app.state.store.baskets


async def test_add_item_rejects_non_positive_quantity(storefront):
    with pytest.raises(ValidationError):
        await storefront.basket.add_item(product(1), quantity=0)
    assert storefront.basket.basket is None


async def test_calculate_totals_is_idempotent(storefront):
    store = storefront.basket
    await store.add_item(product(1, price=33.33), quantity=3)

    first = store.calculate_totals()
    second = store.calculate_totals()

    assert first == second
