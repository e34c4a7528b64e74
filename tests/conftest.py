import httpx
import pytest

from checkout_core.clients import PaymentGatewayClient, StoreApiClient
from checkout_core.main import Storefront
from checkout_core.models import Address, CardDetails
from checkout_core.storage import ClientStorage
from mock_services import mock_payment_gateway, mock_store_api

STORE_URL = "http://store.test/api"
GATEWAY_URL = "http://gateway.test"


@pytest.fixture
def store_app():
    return mock_store_api.create_app()


@pytest.fixture
def gateway_app():
    return mock_payment_gateway.create_app()


@pytest.fixture
def storage():
    return ClientStorage()


def build_storefront(store_app, gateway_app, storage, publishable_key="pk_test_123"):
    api = StoreApiClient(
        base_url=STORE_URL,
        token_provider=lambda: storage.token,
        transport=httpx.ASGITransport(app=store_app),
    )
    gateway = PaymentGatewayClient(
        publishable_key=publishable_key,
        base_url=GATEWAY_URL,
        transport=httpx.ASGITransport(app=gateway_app),
    )
    return Storefront(storage=storage, api=api, gateway=gateway)


@pytest.fixture
async def storefront(store_app, gateway_app, storage):
    storefront = build_storefront(store_app, gateway_app, storage)
    yield storefront
    await storefront.aclose()


@pytest.fixture
async def signed_in(storefront):
    await storefront.session.register("Ada", "ada@example.com", "Pa$$w0rd")
    return storefront


@pytest.fixture
def address():
    return Address(firstName="Ada", lastName="Lovelace", street="12 Nile St", city="Cairo", country="EG")


def card(number=mock_payment_gateway.SUCCEEDED_CARD):
    return CardDetails(number=number, expMonth=12, expYear=2099, cvc="123")
