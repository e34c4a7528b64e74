import asyncio

import pytest

from checkout_core.errors import NetworkError
from checkout_core.models import ShopParams


def calls(store_app, name):
    return store_app.state.store.calls.count(name)


def test_cache_key_has_fixed_field_order():
    from checkout_core.catalog import ProductQueryCache

    params = ShopParams(brandId=2, typeId=1, sort="priceAsc", pageNumber=3, pageSize=6, search="hat")
    assert ProductQueryCache.cache_key(params) == "2-1-priceAsc-3-6-hat"
    assert ProductQueryCache.cache_key(ShopParams()) == "0-0-name-1-6-"


async def test_identical_queries_hit_network_once(storefront, store_app):
    catalog = storefront.catalog
    params = ShopParams(brandId=3)

    first = await catalog.query(params)
    second = await catalog.query(ShopParams(brandId=3))

    assert calls(store_app, "products") == 1
    assert second is first
    assert {p.brand for p in first.data} == {"React"}


async def test_bypass_cache_refetches_and_drops_other_entries(storefront, store_app):
    catalog = storefront.catalog
    await catalog.query(ShopParams(brandId=1))
    await catalog.query(ShopParams(brandId=2))
    assert len(catalog) == 2

    await catalog.query(ShopParams(brandId=1), bypass_cache=True)
    await catalog.query(ShopParams(brandId=1), bypass_cache=True)

    assert calls(store_app, "products") == 4
    assert len(catalog) == 1

    await catalog.query(ShopParams(brandId=2))
    assert calls(store_app, "products") == 5


async def test_query_uses_current_params(storefront):
    catalog = storefront.catalog
    catalog.set_params(typeId=2, sort="priceDesc")

    page = await catalog.query()

    assert [p.price for p in page.data] == [15.0, 10.0, 8.0]
    assert catalog.reset_params() == ShopParams()


async def test_failed_query_propagates_and_caches_nothing(storefront, store_app):
    store_app.state.failures.add("products")

    with pytest.raises(NetworkError):
        await storefront.catalog.query(ShopParams())
    assert len(storefront.catalog) == 0


async def test_lookup_by_id_prefers_cached_pages(storefront, store_app):
    catalog = storefront.catalog
    await catalog.query(ShopParams(typeId=2))

    product = await catalog.lookup_by_id(7)

    assert product.name == "Green React Woolen Hat"
    assert calls(store_app, "product") == 0


async def test_lookup_by_id_falls_back_to_direct_fetch(storefront, store_app):
    product = await storefront.catalog.lookup_by_id(4)

    assert product.name == "Net Core Super Board"
    assert calls(store_app, "product") == 1
    assert await storefront.catalog.lookup_by_id(999) is None


async def test_brands_fetched_once_and_deduplicated(storefront, store_app):
    catalog = storefront.catalog

    results = await asyncio.gather(catalog.get_brands(), catalog.get_brands(), catalog.get_brands())
    await catalog.get_brands()

    assert calls(store_app, "brands") == 1
    assert [b.id for b in results[0]] == [1, 2, 3]
    assert all(r == results[0] for r in results)


async def test_failed_reference_list_fetch_can_be_retried(storefront, store_app):
    catalog = storefront.catalog
    store_app.state.failures.add("categories")

    assert await catalog.get_product_types() == []

    store_app.state.failures.discard("categories")
    types = await catalog.get_product_types()
    assert [t.name for t in types] == ["Boards", "Hats", "Boots"]
    assert calls(store_app, "categories") == 2
