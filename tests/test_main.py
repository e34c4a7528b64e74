from checkout_core.main import create_storefront
from checkout_core.models import BasketItem
from tests.conftest import build_storefront, card


async def test_startup_refetches_persisted_basket(store_app, gateway_app, storage):
    store_app.state.store.baskets["b-7"] = {
        "id": "b-7",
        "items": [BasketItem(id=6, productName="Core Blue Hat", price=10.0, quantity=2).model_dump()],
    }
    storage.basket_id = "b-7"

    async with build_storefront(store_app, gateway_app, storage) as storefront:
        assert storefront.basket.basket.id == "b-7"
        assert storefront.basket.totals.total == 20.0
        assert storefront.session.user is None


async def test_startup_without_basket_or_token(store_app, gateway_app, storage):
    async with build_storefront(store_app, gateway_app, storage) as storefront:
        assert storefront.basket.basket is None
        assert store_app.state.store.calls == []


async def test_startup_survives_unreachable_basket(store_app, gateway_app, storage):
    storage.basket_id = "b-7"
    store_app.state.failures.add("get_basket")

    async with build_storefront(store_app, gateway_app, storage) as storefront:
        assert storefront.basket.basket is None
        assert storage.basket_id == "b-7"


async def test_order_history(signed_in, store_app, address):
    await signed_in.basket.add_item(await signed_in.catalog.lookup_by_id(2))
    checkout = signed_in.checkout()
    await checkout.initialize()
    result = await checkout.submit(address, card())

    orders = await signed_in.get_orders()
    order = await signed_in.get_order(result.orderId)

    assert [o.id for o in orders] == [result.orderId]
    assert order.shipToAddress.country == "Egypt"
    assert order.total == 160.0


async def test_create_storefront_wires_components(store_app, gateway_app, storage):
    wired = build_storefront(store_app, gateway_app, storage)
    storefront = create_storefront(storage=storage, api=wired.api, gateway=wired.gateway)
    async with storefront:
        assert storefront.session.api is wired.api
        assert wired.api.on_unauthorized == storefront.session.expire
