"""
models.py — Data Models of the Storefront Checkout Core

This module defines the data structures exchanged with the storefront REST API
and the payment gateway. It uses Pydantic models to ensure type safety and
validation of both outgoing and incoming data. Field names follow the wire
format (camelCase) so that models serialize directly to request payloads.

Models:
    - Catalog: Product, Brand, ProductType, Pagination, ShopParams
    - Basket: BasketItem, Basket, BasketTotals
    - Checkout: DeliveryMethod, Address, OrderToCreate, OrderItem, Order
    - Account: User
    - Payment gateway: CardDetails, GatewayAddress, BillingDetails,
      ShippingDetails, PaymentIntent, GatewayError, PaymentConfirmation
"""

import uuid
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field, model_validator


# --- Catalog ---

class Product(BaseModel):
    id: int
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    pictureUrl: str = ""
    brand: str = ""
    category: str = ""


class Brand(BaseModel):
    id: int
    name: str


class ProductType(BaseModel):
    id: int
    name: str


class Pagination(BaseModel):
    """One page of a product listing."""
    pageIndex: int
    pageSize: int
    count: int
    data: List[Product] = []


class ShopParams(BaseModel):
    """
    Filter, sort and paging state of a product listing query.

    Attributes:
        brandId (int): Brand filter, 0 means all brands.
        typeId (int): Category filter, 0 means all categories.
        sort (str): 'name', 'priceAsc' or 'priceDesc'.
        pageNumber (int): 1-based page index.
        pageSize (int): Products per page.
        search (str): Free-text search, empty for none.
    """
    brandId: int = 0
    typeId: int = 0
    sort: str = "name"
    pageNumber: int = Field(1, ge=1)
    pageSize: int = Field(6, ge=1)
    search: str = ""


# --- Basket ---

class BasketItem(BaseModel):
    """
    A product line in the basket. `id` is the product id and is unique per basket.
    """
    id: int
    productName: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    pictureUrl: str = ""
    brand: str = ""
    category: str = ""

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "BasketItem":
        return cls(
            id=product.id,
            productName=product.name,
            price=product.price,
            quantity=quantity,
            pictureUrl=product.pictureUrl,
            brand=product.brand,
            category=product.category,
        )


class Basket(BaseModel):
    """
    The shopper's basket, mirrored on the remote basket resource.

    `clientSecret`, `paymentIntentId`, `deliveryMethodId` and `shippingPrice`
    are filled in by the server once a payment intent has been requested.
    """
    id: str
    items: List[BasketItem] = []
    clientSecret: Optional[str] = None
    paymentIntentId: Optional[str] = None
    deliveryMethodId: Optional[int] = None
    shippingPrice: Optional[float] = None

    @model_validator(mode="after")
    def check_unique_item_ids(self):
        ids = [item.id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("basket items must have distinct product ids")
        return self

    @classmethod
    def create(cls) -> "Basket":
        """Returns an empty basket with a freshly generated identifier."""
        return cls(id=str(uuid.uuid4()), items=[])

    def find_item(self, product_id: int) -> Optional[BasketItem]:
        for item in self.items:
            if item.id == product_id:
                return item
        return None


class BasketTotals(BaseModel):
    shipping: float
    subtotal: float
    total: float

    @classmethod
    def from_basket(cls, basket: Basket) -> "BasketTotals":
        shipping = basket.shippingPrice or 0
        subtotal = sum(item.price * item.quantity for item in basket.items)
        return cls(shipping=shipping, subtotal=subtotal, total=subtotal + shipping)


# --- Checkout & Orders ---

class DeliveryMethod(BaseModel):
    id: int
    shortName: str
    description: str = ""
    deliveryTime: str = ""
    cost: float = Field(..., ge=0)


class Address(BaseModel):
    """
    Shipping address. `country` holds a two-letter code on the checkout form
    and a display name when exchanged with the account and order services.
    """
    firstName: str = ""
    lastName: str = ""
    street: str = ""
    city: str = ""
    country: str = ""

    REQUIRED_FIELDS: ClassVar[tuple] = ("firstName", "lastName", "street", "city", "country")

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if not (getattr(self, name) or "").strip()]

    @property
    def full_name(self) -> str:
        return f"{self.firstName} {self.lastName}"


class OrderToCreate(BaseModel):
    basketId: str
    deliveryMethodId: int
    shippingAddress: Address
    paymentIntentId: str


class OrderItem(BaseModel):
    productId: int
    productName: str
    pictureUrl: str = ""
    price: float
    quantity: int


class Order(BaseModel):
    id: int
    buyerEmail: str = ""
    orderDate: str = ""
    shipToAddress: Address
    deliveryMethod: str = ""
    deliveryCost: float = 0
    items: List[OrderItem] = []
    subtotal: float
    total: float
    status: str = "Pending"
    paymentIntentId: Optional[str] = None


# --- Account ---

class User(BaseModel):
    email: str
    displayName: str
    token: str


# --- Payment gateway ---

class CardDetails(BaseModel):
    number: str
    expMonth: int = Field(..., ge=1, le=12)
    expYear: int
    cvc: str


class GatewayAddress(BaseModel):
    line1: str
    city: str
    country: str


class BillingDetails(BaseModel):
    name: str
    email: Optional[str] = None
    address: GatewayAddress


class ShippingDetails(BaseModel):
    name: str
    address: GatewayAddress


class PaymentIntent(BaseModel):
    id: str
    status: str
    amount: Optional[int] = None
    clientSecret: Optional[str] = None


class GatewayError(BaseModel):
    """
    Error reported by the gateway. `type` is one of 'card_error',
    'validation_error', 'authentication_required', 'api_error', ...
    """
    type: str
    code: Optional[str] = None
    message: Optional[str] = None


class PaymentConfirmation(BaseModel):
    """Outcome of a confirmation call: exactly one of `error` / `paymentIntent`."""
    error: Optional[GatewayError] = None
    paymentIntent: Optional[PaymentIntent] = None
