"""Basket and checkout orchestration core of the storefront client."""

from .basket import BasketStore
from .catalog import ProductQueryCache
from .clients import PaymentGatewayClient, StoreApiClient
from .main import Storefront, create_storefront
from .session import SessionContext
from .storage import ClientStorage
from .workflow import CheckoutOrchestrator, CheckoutResult, CheckoutState

__all__ = [
    "BasketStore",
    "CheckoutOrchestrator",
    "CheckoutResult",
    "CheckoutState",
    "ClientStorage",
    "PaymentGatewayClient",
    "ProductQueryCache",
    "SessionContext",
    "StoreApiClient",
    "Storefront",
    "create_storefront",
]
