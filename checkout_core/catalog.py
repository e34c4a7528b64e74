"""
catalog.py — Product Query Cache

Memoizes product-listing pages keyed by their query parameters so that
rapid filter changes back and forth do not refetch pages already seen.
Reference lists (brands, categories) are fetched at most once per session.
"""

import asyncio
import logging

from .errors import StorefrontError
from .models import ShopParams

log = logging.getLogger(__name__)

KEY_FIELDS = ("brandId", "typeId", "sort", "pageNumber", "pageSize", "search")


def _unique_by_id(entries):
    seen = {}
    for entry in entries:
        seen.setdefault(entry.id, entry)
    return list(seen.values())


class ProductQueryCache:
    """
    Args:
        api (StoreApiClient): Catalog endpoints.

    Attributes:
        params (ShopParams): Current filter/sort/paging state of the shop page.
        brands (list[Brand]): Brand reference list, empty until fetched.
        product_types (list[ProductType]): Category reference list, empty until fetched.
    """
    def __init__(self, api):
        self.api = api
        self.params = ShopParams()
        self.brands = []
        self.product_types = []
        self._pages = {}
        self._brands_task = None
        self._types_task = None

    @staticmethod
    def cache_key(params):
        return "-".join(str(getattr(params, name)) for name in KEY_FIELDS)

    def __len__(self):
        return len(self._pages)

    def clear(self):
        self._pages = {}

    def set_params(self, **changes):
        self.params = self.params.model_copy(update=changes)
        return self.params

    def reset_params(self):
        self.params = ShopParams()
        return self.params

    async def query(self, params=None, bypass_cache=False):
        """
        Returns the product page for `params` (default: the current params).

        A cached page is returned without any network call unless
        `bypass_cache` is set, in which case every cached page is dropped
        before the fresh request.

        Raises:
            StorefrontError: If the listing request fails. Nothing is cached.
        """
        params = params or self.params
        key = self.cache_key(params)

        if not bypass_cache and key in self._pages:
            return self._pages[key]

        if bypass_cache:
            self.clear()

        page = await self.api.get_products(params)
        self._pages[key] = page
        log.debug(f"[Catalog] Cached page '{key}' ({len(page.data)} products).")
        return page

    async def lookup_by_id(self, product_id):
        """
        Returns a product from any cached page, otherwise fetches it.

        Returns:
            Product | None: None when the direct fetch fails.
        """
        for page in self._pages.values():
            for product in page.data:
                if product.id == product_id:
                    return product

        try:
            return await self.api.get_product(product_id)
        except StorefrontError as e:
            log.error(f"[Catalog] Failed to get product {product_id}: {e}")
            return None

    async def get_brands(self):
        if self.brands:
            return self.brands
        if self._brands_task is None:
            self._brands_task = asyncio.ensure_future(self._load_brands())
        try:
            await asyncio.shield(self._brands_task)
        finally:
            if self._brands_task is not None and self._brands_task.done():
                self._brands_task = None
        return self.brands

    async def _load_brands(self):
        try:
            self.brands = _unique_by_id(await self.api.get_brands())
        except StorefrontError as e:
            log.warning(f"[Catalog] Failed to get brands: {e}")

    async def get_product_types(self):
        if self.product_types:
            return self.product_types
        if self._types_task is None:
            self._types_task = asyncio.ensure_future(self._load_product_types())
        try:
            await asyncio.shield(self._types_task)
        finally:
            if self._types_task is not None and self._types_task.done():
                self._types_task = None
        return self.product_types

    async def _load_product_types(self):
        try:
            self.product_types = _unique_by_id(await self.api.get_product_types())
        except StorefrontError as e:
            log.warning(f"[Catalog] Failed to get product types: {e}")
