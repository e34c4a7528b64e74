"""
main.py — Composition Root of the Storefront Client

This module wires the checkout core together: durable storage, the remote
clients, the session, the basket store and the product query cache. All
state containers are created here and passed explicitly to the components
that need them.

Responsibilities:
    • Build the components from configuration
    • Restore the session and the persisted basket on startup
    • Hand out checkout orchestrators bound to the current basket
    • Close the HTTP clients on shutdown
"""

from . import config
from .basket import BasketStore
from .catalog import ProductQueryCache
from .clients import PaymentGatewayClient, StoreApiClient
from .logging_config import get_logger, setup_logging
from .session import SessionContext
from .storage import ClientStorage
from .workflow import CheckoutOrchestrator, UnrecordedPaymentReporter

log = get_logger(__name__)


class Storefront:
    """
    Container of the storefront client's components.

    Args:
        storage (ClientStorage): Durable client state. Defaults to the STATE_FILE setting.
        api (StoreApiClient): Storefront API client. Defaults to one built from config.
        gateway (PaymentGatewayClient): Payment gateway client. Defaults to one built from config.
    """
    def __init__(self, storage=None, api=None, gateway=None):
        self.storage = storage if storage is not None else ClientStorage(config.STATE_FILE)
        self.api = api or StoreApiClient(token_provider=lambda: self.storage.token)
        self.gateway = gateway or PaymentGatewayClient()
        self.session = SessionContext(self.api, self.storage)
        self.api.on_unauthorized = self.session.expire
        self.basket = BasketStore(self.api, self.storage)
        self.catalog = ProductQueryCache(self.api)
        self.reporter = UnrecordedPaymentReporter(self.storage)

    async def __aenter__(self):
        await self.startup()
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def startup(self):
        """
        Startup handler.

        Restores the signed-in user from the stored token and re-fetches the
        basket whose id was persisted by a previous run. Neither failure
        prevents the storefront from starting.
        """
        log.info("Storefront client starting...")
        await self.session.load_current_user()
        basket_id = self.storage.basket_id
        if basket_id:
            await self.basket.fetch(basket_id)
        pending = self.storage.unrecorded_payments()
        if pending:
            log.warning(f"{len(pending)} payment(s) captured, or possibly captured, without an order are awaiting support.")

    def checkout(self, stale_intent_policy=None):
        """Returns a new orchestrator for checking out the current basket."""
        return CheckoutOrchestrator(
            self.basket,
            self.api,
            self.gateway if self.gateway.initialized else None,
            session=self.session,
            reporter=self.reporter,
            stale_intent_policy=stale_intent_policy,
        )

    async def get_orders(self):
        return await self.api.get_orders()

    async def get_order(self, order_id):
        return await self.api.get_order(order_id)

    async def aclose(self):
        await self.api.aclose()
        await self.gateway.aclose()


def create_storefront(storage=None, api=None, gateway=None, log_file=None):
    """
    Application entry point: configures logging and builds the storefront client.

    Use as `async with create_storefront() as storefront:` to run startup and
    close the clients on exit.
    """
    setup_logging(log_file=log_file)
    return Storefront(storage=storage, api=api, gateway=gateway)
