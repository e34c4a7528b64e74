"""
mock_store_api.py — Mock Implementation of the Storefront REST API

This module provides a simulated storefront backend for testing the checkout core.
It exposes a FastAPI application that mimics the real API's resources with
in-memory state.

Simulation Scenarios:
    • Paginated, filtered and sorted product listing
    • Brand list containing a duplicate entry (upstream data quality issue)
    • Basket upsert / fetch / delete, server-computed shipping price
    • Payment intent creation for the basket total
    • Order creation (tears down the basket), order history
    • Account: login, register, current user, saved address, email check
    • Failure injection: add a name to `app.state.failures` to make that
      endpoint answer HTTP 500 ("get_basket", "set_basket", "delete_basket",
      "payments", "delivery_methods", "create_order", "get_address",
      "update_address", "products")

Endpoints are served under the /api prefix.

Port:
    Default: 5000 (HTTP)
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("mock_store_api")

BRANDS = [
    {"id": 1, "name": "Angular"},
    {"id": 2, "name": "NetCore"},
    {"id": 3, "name": "React"},
    {"id": 3, "name": "React"},
]

CATEGORIES = [
    {"id": 1, "name": "Boards"},
    {"id": 2, "name": "Hats"},
    {"id": 3, "name": "Boots"},
]

PRODUCTS = [
    {"id": 1, "name": "Angular Speedster Board", "price": 200.0, "brandId": 1, "typeId": 1},
    {"id": 2, "name": "Green Angular Board", "price": 150.0, "brandId": 1, "typeId": 1},
    {"id": 3, "name": "Core Board Speed Rush", "price": 180.0, "brandId": 2, "typeId": 1},
    {"id": 4, "name": "Net Core Super Board", "price": 300.0, "brandId": 2, "typeId": 1},
    {"id": 5, "name": "React Board Super Whizzy Fast", "price": 250.0, "brandId": 3, "typeId": 1},
    {"id": 6, "name": "Core Blue Hat", "price": 10.0, "brandId": 2, "typeId": 2},
    {"id": 7, "name": "Green React Woolen Hat", "price": 8.0, "brandId": 3, "typeId": 2},
    {"id": 8, "name": "Purple React Woolen Hat", "price": 15.0, "brandId": 3, "typeId": 2},
    {"id": 9, "name": "Angular Blue Boots", "price": 180.0, "brandId": 1, "typeId": 3},
    {"id": 10, "name": "Core Red Boots", "price": 189.99, "brandId": 2, "typeId": 3},
]

DELIVERY_METHODS = [
    {"id": 1, "shortName": "UPS1", "description": "Fastest delivery time", "deliveryTime": "1-2 Days", "cost": 10.0},
    {"id": 2, "shortName": "UPS2", "description": "Get it within 5 days", "deliveryTime": "2-5 Days", "cost": 5.0},
    {"id": 3, "shortName": "UPS3", "description": "Slower but cheap", "deliveryTime": "5-10 Days", "cost": 2.0},
    {"id": 4, "shortName": "FREE", "description": "Free! You get what you pay for", "deliveryTime": "1-2 Weeks", "cost": 0.0},
]


class StoreState:
    """In-memory state of one mock API instance."""
    def __init__(self):
        self.baskets = {}
        self.intents = {}
        self.orders = []
        self.users = {}
        self.tokens = {}
        self.calls = []


class PaymentRequest(BaseModel):
    deliveryMethodId: Optional[int] = None


def _product_view(product):
    brand = next(b["name"] for b in BRANDS if b["id"] == product["brandId"])
    category = next(c["name"] for c in CATEGORIES if c["id"] == product["typeId"])
    return {
        "id": product["id"],
        "name": product["name"],
        "description": f"{product['name']} description",
        "price": product["price"],
        "pictureUrl": f"images/products/{product['id']}.png",
        "brand": brand,
        "category": category,
    }


def _delivery_method(method_id):
    return next((m for m in DELIVERY_METHODS if m["id"] == method_id), None)


def create_app():
    """Builds a fresh mock API with empty state."""
    app = FastAPI(title="Mock Storefront API")
    app.state.store = StoreState()
    app.state.failures = set()
    router = APIRouter(prefix="/api")

    def store(request: Request) -> StoreState:
        return request.app.state.store

    def fail_if(request: Request, name: str):
        request.app.state.store.calls.append(name)
        if name in request.app.state.failures:
            log.warning(f"[API] Simulating failure of '{name}'.")
            raise HTTPException(status_code=500, detail="Internal server error")

    def current_user(request: Request, authorization: Optional[str] = Header(None)):
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Unauthorized")
        email = request.app.state.store.tokens.get(authorization[len("Bearer "):])
        if email is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return request.app.state.store.users[email]

    # Products

    @router.get("/products/brands")
    def get_brands(request: Request):
        fail_if(request, "brands")
        return BRANDS

    @router.get("/products/categories")
    def get_categories(request: Request):
        fail_if(request, "categories")
        return CATEGORIES

    @router.get("/products/{product_id}")
    def get_product(product_id: int, request: Request):
        fail_if(request, "product")
        product = next((p for p in PRODUCTS if p["id"] == product_id), None)
        if product is None:
            raise HTTPException(status_code=404, detail="Resource not found")
        return _product_view(product)

    @router.get("/products")
    def get_products(
            request: Request,
            sort: str = "name",
            pageIndex: int = 1,
            pageSize: int = 6,
            brandId: Optional[int] = None,
            categoryId: Optional[int] = None,
            search: Optional[str] = None,
    ):
        fail_if(request, "products")
        products = PRODUCTS
        if brandId:
            products = [p for p in products if p["brandId"] == brandId]
        if categoryId:
            products = [p for p in products if p["typeId"] == categoryId]
        if search:
            products = [p for p in products if search.lower() in p["name"].lower()]
        if sort == "priceAsc":
            products = sorted(products, key=lambda p: p["price"])
        elif sort == "priceDesc":
            products = sorted(products, key=lambda p: p["price"], reverse=True)
        else:
            products = sorted(products, key=lambda p: p["name"])
        start = (pageIndex - 1) * pageSize
        return {
            "pageIndex": pageIndex,
            "pageSize": pageSize,
            "count": len(products),
            "data": [_product_view(p) for p in products[start:start + pageSize]],
        }

    # Basket

    @router.get("/basket")
    def get_basket(id: str, request: Request, state: StoreState = Depends(store)):
        fail_if(request, "get_basket")
        return state.baskets.get(id, {"id": id, "items": []})

    @router.post("/basket")
    def set_basket(request: Request, basket: dict = Body(...), state: StoreState = Depends(store)):
        fail_if(request, "set_basket")
        if not basket.get("id"):
            raise HTTPException(status_code=400, detail="Basket id is required")
        method = _delivery_method(basket.get("deliveryMethodId"))
        if method is not None:
            basket["shippingPrice"] = method["cost"]
        state.baskets[basket["id"]] = basket
        return basket

    @router.delete("/basket")
    def delete_basket(id: str, request: Request, state: StoreState = Depends(store)):
        fail_if(request, "delete_basket")
        state.baskets.pop(id, None)
        return True

    # Payments

    @router.post("/payments/{basket_id}")
    def create_payment_intent(
            basket_id: str,
            request: Request,
            payload: Optional[PaymentRequest] = None,
            state: StoreState = Depends(store),
    ):
        fail_if(request, "payments")
        basket = state.baskets.get(basket_id)
        if basket is None:
            raise HTTPException(status_code=400, detail="Problem with your basket")
        if payload is not None and payload.deliveryMethodId is not None:
            method = _delivery_method(payload.deliveryMethodId)
            if method is None:
                raise HTTPException(status_code=400, detail="Unknown delivery method")
            basket["deliveryMethodId"] = method["id"]
            basket["shippingPrice"] = method["cost"]

        subtotal = sum(item["price"] * item["quantity"] for item in basket["items"])
        amount = int(round((subtotal + (basket.get("shippingPrice") or 0)) * 100))
        if not basket.get("paymentIntentId"):
            intent_id = f"pi_{uuid.uuid4().hex[:24]}"
            basket["paymentIntentId"] = intent_id
            basket["clientSecret"] = f"{intent_id}_secret_{uuid.uuid4().hex[:24]}"
        state.intents[basket["paymentIntentId"]] = amount
        log.info(f"[API] Payment intent {basket['paymentIntentId']} for {amount} cents.")
        return basket

    # Orders

    @router.get("/orders/deliveryMethods")
    def get_delivery_methods(request: Request):
        fail_if(request, "delivery_methods")
        return DELIVERY_METHODS

    @router.post("/orders")
    def create_order(
            request: Request,
            order: dict = Body(...),
            user: dict = Depends(current_user),
            state: StoreState = Depends(store),
    ):
        fail_if(request, "create_order")
        basket = state.baskets.get(order.get("basketId"))
        method = _delivery_method(order.get("deliveryMethodId"))
        if basket is None or method is None:
            raise HTTPException(status_code=400, detail="Problem creating order")
        if order.get("paymentIntentId") not in state.intents:
            raise HTTPException(status_code=400, detail="Unknown payment intent")

        items = [
            {
                "productId": item["id"],
                "productName": item["productName"],
                "pictureUrl": item.get("pictureUrl", ""),
                "price": item["price"],
                "quantity": item["quantity"],
            }
            for item in basket["items"]
        ]
        subtotal = sum(i["price"] * i["quantity"] for i in items)
        created = {
            "id": len(state.orders) + 1,
            "buyerEmail": user["email"],
            "orderDate": datetime.now(timezone.utc).isoformat(),
            "shipToAddress": order["shippingAddress"],
            "deliveryMethod": method["shortName"],
            "deliveryCost": method["cost"],
            "items": items,
            "subtotal": subtotal,
            "total": subtotal + method["cost"],
            "status": "Pending",
            "paymentIntentId": order["paymentIntentId"],
        }
        state.orders.append(created)
        state.baskets.pop(basket["id"], None)
        log.info(f"[API] Order {created['id']} created for {user['email']}.")
        return created

    @router.get("/orders")
    def get_orders(user: dict = Depends(current_user), state: StoreState = Depends(store)):
        return [o for o in state.orders if o["buyerEmail"] == user["email"]]

    @router.get("/orders/{order_id}")
    def get_order(order_id: int, user: dict = Depends(current_user), state: StoreState = Depends(store)):
        for order in state.orders:
            if order["id"] == order_id and order["buyerEmail"] == user["email"]:
                return order
        raise HTTPException(status_code=404, detail="Resource not found")

    # Account

    def _issue_token(state, email):
        token = uuid.uuid4().hex
        state.tokens[token] = email
        user = state.users[email]
        return {"email": email, "displayName": user["displayName"], "token": token}

    @router.post("/account/login")
    def login(credentials: dict = Body(...), state: StoreState = Depends(store)):
        user = state.users.get(credentials.get("email"))
        if user is None or user["password"] != credentials.get("password"):
            raise HTTPException(status_code=401, detail="Unauthorized")
        return _issue_token(state, user["email"])

    @router.post("/account/register")
    def register(payload: dict = Body(...), state: StoreState = Depends(store)):
        email = payload.get("email")
        if not email or not payload.get("password"):
            raise HTTPException(status_code=400, detail="Email and password are required")
        if email in state.users:
            return JSONResponse(status_code=400, content={"errors": {"Email": ["Email address is in use"]}})
        state.users[email] = {
            "email": email,
            "displayName": payload.get("displayName", ""),
            "password": payload["password"],
            "address": None,
        }
        return _issue_token(state, email)

    @router.get("/account")
    def get_current_user(request: Request, user: dict = Depends(current_user)):
        token = request.headers["authorization"][len("Bearer "):]
        return {"email": user["email"], "displayName": user["displayName"], "token": token}

    @router.get("/account/address")
    def get_address(request: Request, user: dict = Depends(current_user)):
        fail_if(request, "get_address")
        return user["address"]

    @router.put("/account/address")
    def update_address(request: Request, address: dict = Body(...), user: dict = Depends(current_user)):
        fail_if(request, "update_address")
        user["address"] = address
        return address

    @router.get("/account/emailexists")
    def email_exists(email: str, state: StoreState = Depends(store)):
        return email in state.users

    app.include_router(router)
    return app


app = create_app()
