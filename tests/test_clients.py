import httpx
import pytest

from checkout_core.clients import PaymentGatewayClient, StoreApiClient, encode_form
from checkout_core.errors import ApiError, AuthError, NetworkError, NotFoundError, ValidationError
from checkout_core.models import CardDetails, ShopParams


def api_with(handler, **kwargs):
    return StoreApiClient(base_url="http://store.test/api", transport=httpx.MockTransport(handler), **kwargs)


async def test_product_query_parameters():
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, json={"pageIndex": 2, "pageSize": 6, "count": 0, "data": []})

    api = api_with(handler)
    await api.get_products(ShopParams(typeId=3, sort="priceAsc", pageNumber=2))
    await api.get_products(ShopParams(brandId=1, search="boot"))
    await api.aclose()

    assert seen[0].path == "/api/products"
    assert dict(seen[0].params) == {"categoryId": "3", "sort": "priceAsc", "pageIndex": "2", "pageSize": "6"}
    assert dict(seen[1].params) == {"brandId": "1", "search": "boot", "sort": "name", "pageIndex": "1", "pageSize": "6"}


async def test_bearer_token_is_sent():
    headers = []

    def handler(request):
        headers.append(request.headers.get("Authorization"))
        return httpx.Response(200, json=[])

    api = api_with(handler, token_provider=lambda: "tok")
    await api.get_orders()
    await api.aclose()

    assert headers == ["Bearer tok"]


async def test_unauthorized_notifies_session_and_raises():
    expired = []
    api = api_with(lambda request: httpx.Response(401), on_unauthorized=lambda: expired.append(True))

    with pytest.raises(AuthError):
        await api.get_current_user()
    await api.aclose()

    assert expired == [True]


async def test_bad_request_flattens_model_errors():
    body = {"errors": {"Email": ["Email address is in use"], "Password": ["Too short", "Needs a digit"]}}
    api = api_with(lambda request: httpx.Response(400, json=body))

    with pytest.raises(ValidationError) as exc_info:
        await api.register("Ada", "ada@example.com", "x")
    await api.aclose()

    assert exc_info.value.errors == ["Email address is in use", "Too short", "Needs a digit"]


@pytest.mark.parametrize("status,error", [
    (404, NotFoundError),
    (500, NetworkError),
    (503, NetworkError),
    (409, ApiError),
])
async def test_status_mapping(status, error):
    api = api_with(lambda request: httpx.Response(status, json={"message": "nope"}))

    with pytest.raises(error):
        await api.get_product(1)
    await api.aclose()


@pytest.mark.parametrize("content", [b"null", b"<html>oops</html>", b'{"items": "many"}'])
async def test_malformed_body_is_api_error(content):
    api = api_with(lambda request: httpx.Response(200, content=content))

    with pytest.raises(ApiError):
        await api.get_basket("b-1")
    await api.aclose()


async def test_gateway_non_object_error_body_is_returned_as_error():
    gateway = gateway_with(lambda request: httpx.Response(402, json=["declined"]))

    confirmation = await gateway.confirm_card_payment("pi_1_secret_x", CARD)
    await gateway.aclose()

    assert confirmation.error.type == "api_error"


async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    api = api_with(handler)
    with pytest.raises(NetworkError):
        await api.get_delivery_methods()
    await api.aclose()


async def test_empty_address_body_is_none():
    api = api_with(lambda request: httpx.Response(200, content=b"null"))
    assert await api.get_user_address() is None
    await api.aclose()


def test_encode_form_uses_bracket_notation():
    form = encode_form({"client_secret": "s", "payment_method_data": {"card": {"number": "42", "cvc": None}}})
    assert form == {"client_secret": "s", "payment_method_data[card][number]": "42"}


def test_intent_id_from_secret():
    assert PaymentGatewayClient.intent_id_from_secret("pi_123_secret_abc") == "pi_123"
    with pytest.raises(ValidationError):
        PaymentGatewayClient.intent_id_from_secret("garbage")


def gateway_with(handler):
    return PaymentGatewayClient(
        publishable_key="pk_test_1", base_url="http://gateway.test", transport=httpx.MockTransport(handler)
    )


CARD = CardDetails(number="4242424242424242", expMonth=1, expYear=2099, cvc="123")


async def test_gateway_confirmation_request():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"id": "pi_1", "status": "succeeded", "client_secret": "pi_1_secret_x"})

    gateway = gateway_with(handler)
    confirmation = await gateway.confirm_card_payment("pi_1_secret_x", CARD)
    await gateway.aclose()

    request = requests[0]
    assert request.url.path == "/v1/payment_intents/pi_1/confirm"
    assert request.headers["Authorization"] == "Bearer pk_test_1"
    assert request.headers["Idempotency-Key"]
    assert b"payment_method_data%5Bcard%5D%5Bnumber%5D=4242424242424242" in request.content
    assert confirmation.error is None
    assert confirmation.paymentIntent.status == "succeeded"


async def test_gateway_reported_error_is_returned():
    body = {"error": {"type": "card_error", "code": "card_declined", "message": "Your card was declined."}}
    gateway = gateway_with(lambda request: httpx.Response(402, json=body))

    confirmation = await gateway.confirm_card_payment("pi_1_secret_x", CARD)
    await gateway.aclose()

    assert confirmation.paymentIntent is None
    assert confirmation.error.type == "card_error"
    assert confirmation.error.message == "Your card was declined."


async def test_gateway_server_error_raises():
    gateway = gateway_with(lambda request: httpx.Response(502))

    with pytest.raises(NetworkError):
        await gateway.confirm_card_payment("pi_1_secret_x", CARD)
    await gateway.aclose()


def test_gateway_without_key_is_not_initialized():
    assert not PaymentGatewayClient(publishable_key="").initialized
